"""Application errors and their HTTP translation.

Services raise these; routers let them propagate and the handlers registered in
``register_exception_handlers`` turn them into ``{"detail": ...}`` responses, the same
shape FastAPI uses for ``HTTPException``.
"""

import logging
from enum import StrEnum

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

logger = logging.getLogger(__name__)


class AuthFailure(StrEnum):
    """Why a credential was refused."""

    NO_TOKEN = "no_token"
    INVALID_TOKEN = "invalid_token"
    EXPIRED_TOKEN = "expired_token"
    INVALID_CREDENTIALS = "invalid_credentials"

    @property
    def close_code(self) -> int:
        """WebSocket close code: 4002 means refresh and retry, 4001 means log in again."""
        return 4002 if self is AuthFailure.EXPIRED_TOKEN else 4001


class AppError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)


class AuthenticationError(AppError):
    """Missing, malformed or expired credential."""

    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, reason: AuthFailure, message: str | None = None) -> None:
        self.reason = reason
        super().__init__(message or "Invalid authentication credentials")


class AuthorizationError(AppError):
    """Caller is authenticated but not allowed to do this."""

    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND


class ValidationError(AppError):
    """Malformed input, rejected before anything is persisted."""

    status_code = status.HTTP_400_BAD_REQUEST


class ConflictError(AppError):
    """Request conflicts with current state (duplicate invite, stale write)."""

    status_code = status.HTTP_409_CONFLICT


class TransientStorageError(AppError):
    """Storage is temporarily unavailable. Not retried by the server."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


def register_exception_handlers(app: FastAPI) -> None:
    """Register handlers that render application errors as JSON."""

    @app.exception_handler(AppError)
    async def _app_error_handler(_request: Request, exc: AppError) -> JSONResponse:
        headers = None
        if isinstance(exc, AuthenticationError):
            headers = {"WWW-Authenticate": "Bearer"}
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.message},
            headers=headers,
        )

    @app.exception_handler(OperationalError)
    async def _storage_error_handler(_request: Request, exc: OperationalError) -> JSONResponse:
        logger.error(f"Storage error: {exc}")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": "Storage temporarily unavailable"},
        )
