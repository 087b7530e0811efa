from .dispatcher import (
    DISABLED, EXCEPTION, EXPO_ERROR, NO_TOKEN, RATE_LIMIT, NotificationCategory, NotificationDispatcher
)
from .expo import ExpoNotifier, is_expo_push_token

__all__ = [
    'NotificationCategory',
    'NotificationDispatcher',
    'ExpoNotifier',
    'is_expo_push_token',
    'NO_TOKEN',
    'DISABLED',
    'RATE_LIMIT',
    'EXPO_ERROR',
    'EXCEPTION'
]
