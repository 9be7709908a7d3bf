"""
Error taxonomy & global exception handlers.

Services raise ``AppError`` subclasses; the handlers below turn them
into the response envelope ``{success, message, error?}``.  Anything
unexpected becomes a generic 500 whose detail is logged server-side and
only echoed back as ``error`` when DEBUG is on.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core import messages

logger = logging.getLogger(__name__)

_BEARER_CHALLENGE = {"WWW-Authenticate": "Bearer"}


class AppError(Exception):
    status_code: int = status.HTTP_400_BAD_REQUEST
    default_message: str = messages.SERVER_ERROR

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AppError):
    default_message = messages.VALIDATION_ERRORS


class DuplicateIdentityError(AppError):
    """Username, email or phone already taken; message names the field."""


class InvalidCredentialsError(AppError):
    default_message = messages.INVALID_CREDENTIALS


class InvalidTokenError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = messages.INVALID_TOKEN


class SessionInvalidError(AppError):
    """Token verifies but its backing session row is closed or gone."""

    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = messages.SESSION_INVALID


class ForbiddenError(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = messages.ADMIN_REQUIRED


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = messages.USER_NOT_FOUND


class SessionConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT
    default_message = messages.CONCURRENT_LOGIN


def _envelope(status_code: int, message: str, headers: dict | None = None, **extra) -> JSONResponse:
    content = {"success": False, "message": message}
    content.update(extra)
    return JSONResponse(status_code=status_code, content=content, headers=headers)


def _debug_enabled(request: Request) -> bool:
    settings = getattr(request.app.state, "settings", None)
    return bool(settings and settings.DEBUG)


async def _app_error_handler(_request: Request, exc: AppError) -> JSONResponse:
    headers = _BEARER_CHALLENGE if exc.status_code == status.HTTP_401_UNAUTHORIZED else None
    return _envelope(exc.status_code, exc.message, headers=headers)


async def _request_validation_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"field": ".".join(str(p) for p in err.get("loc", ()) if p != "body"), "msg": err.get("msg")}
        for err in exc.errors()
    ]
    return _envelope(status.HTTP_400_BAD_REQUEST, messages.VALIDATION_ERRORS, errors=errors)


async def _http_exception_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = messages.ROUTE_NOT_FOUND if exc.status_code == 404 else str(exc.detail)
    return _envelope(exc.status_code, message, headers=getattr(exc, "headers", None))


async def _sqlalchemy_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error("Database error on %s %s: %s", request.method, request.url.path, exc, exc_info=True)
    extra = {"error": str(exc)} if _debug_enabled(request) else {}
    return _envelope(status.HTTP_500_INTERNAL_SERVER_ERROR, messages.SERVER_ERROR, **extra)


async def _generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception on %s %s: %s", request.method, request.url.path, exc)
    extra = {"error": str(exc)} if _debug_enabled(request) else {}
    return _envelope(status.HTTP_500_INTERNAL_SERVER_ERROR, messages.SERVER_ERROR, **extra)


def register_exception_handlers(app: FastAPI) -> None:
    """Attach all exception handlers to the FastAPI app."""
    app.add_exception_handler(AppError, _app_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _request_validation_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(SQLAlchemyError, _sqlalchemy_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _generic_exception_handler)
