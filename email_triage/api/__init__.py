from .app import create_app
from .deps import Services, header_user_resolver

__all__ = [
    'create_app',
    'Services',
    'header_user_resolver'
]
