"""
FastAPI application factory for the mobile client's HTTP surface.
"""
from typing import Callable, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..errors import ConflictError, NotFoundError, TriageError, ValidationError
from ..logger import get_logger
from .deps import Services, header_user_resolver
from .routes import dashboard, decisions, emails, notifications, reminders, tasks

logger = get_logger(__name__)

# Most specific first
_STATUS_CODES = (
    (ValidationError, 400),
    (NotFoundError, 404),
    (ConflictError, 409),
)


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={'success': False, 'message': message})


def create_app(services: Services, auth_resolver: Optional[Callable[[Request], str]] = None) -> FastAPI:
    """Build the application around an already-wired service container.

    Args:
        services: Repository and engines used by the routes
        auth_resolver: Callable mapping a request to a user id; defaults to
            the identity header set by the auth gateway
    """
    app = FastAPI(title="Email Triage", version="0.1.0")
    app.state.services = services
    app.state.auth_resolver = auth_resolver or header_user_resolver

    @app.exception_handler(TriageError)
    async def triage_error_handler(request: Request, exc: TriageError) -> JSONResponse:
        for error_type, status_code in _STATUS_CODES:
            if isinstance(exc, error_type):
                return _error_response(status_code, str(exc))
        logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}")
        return _error_response(500, "Internal server error")

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.debug(f"Rejected request to {request.url.path}: {exc.errors()}")
        return _error_response(400, "Invalid request")

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(f"Unexpected error on {request.method} {request.url.path}")
        return _error_response(500, "Internal server error")

    for module in (emails, decisions, reminders, dashboard, tasks, notifications):
        app.include_router(module.router)

    @app.get("/health")
    def health():
        return {'status': 'ok'}

    return app
