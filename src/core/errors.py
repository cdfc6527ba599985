"""
Application error taxonomy.

Every error a caller can see derives from AppError and carries a stable
code plus the HTTP status the API layer answers with. Use
register_error_handlers() to translate them into the JSON envelope
{"success": false, "error": ..., "code": ...}.
"""

from typing import Any, Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from core.logging import get_logger


logger = get_logger(__name__)


class AppError(Exception):
    """Base class for errors surfaced to API callers."""

    code: str = "INTERNAL"
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, details: Optional[Any] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        body = {"success": False, "error": self.message, "code": self.code}
        if self.details is not None:
            body["details"] = self.details
        return body


class InvalidSeedCount(AppError):
    """Seed set is empty or carries more than the allowed number of seeds."""

    code = "INVALID_SEED_COUNT"
    status_code = status.HTTP_400_BAD_REQUEST


class InvalidInput(AppError):
    code = "INVALID_INPUT"
    status_code = status.HTTP_400_BAD_REQUEST


class Unauthorized(AppError):
    """Missing, expired or otherwise invalid bearer token."""

    code = "UNAUTHORIZED"
    status_code = status.HTTP_401_UNAUTHORIZED


class AuthNotConfigured(AppError):
    code = "AUTH_NOT_CONFIGURED"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class NotFound(AppError):
    code = "NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND


class Forbidden(AppError):
    """Caller is not the owner of the resource."""

    code = "FORBIDDEN"
    status_code = status.HTTP_403_FORBIDDEN


class Conflict(AppError):
    """A write kept losing the optimistic-concurrency race; safe to retry."""

    code = "CONFLICT"
    status_code = status.HTTP_409_CONFLICT


class UpstreamDegraded(AppError):
    """
    A catalog call failed or timed out.

    The candidate pipeline absorbs these; they only reach callers from
    direct catalog use.
    """

    code = "UPSTREAM_DEGRADED"
    status_code = status.HTTP_502_BAD_GATEWAY

    def __init__(
        self,
        message: str,
        details: Optional[Any] = None,
        upstream_status: Optional[int] = None,
    ) -> None:
        super().__init__(message, details)
        self.upstream_status = upstream_status


class StaleVersionError(Exception):
    """
    Raised by a session store when a conditional write's base version is stale.

    Internal to the session layer: the service retries and converts
    exhaustion into Conflict.
    """

    def __init__(self, session_id: str, expected_version: int) -> None:
        super().__init__(
            f"Session {session_id} changed since version {expected_version}"
        )
        self.session_id = session_id
        self.expected_version = expected_version


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("Request failed", code=exc.code, error=exc.message)
    else:
        logger.info("Request rejected", code=exc.code, error=exc.message)
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, Unauthorized) else None
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


def register_error_handlers(app: FastAPI) -> None:
    """Install the AppError -> JSON envelope handler on an application."""
    app.add_exception_handler(AppError, app_error_handler)
