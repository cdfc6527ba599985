"""
Core module for cross-cutting concerns.

This module provides:
- Structured logging configuration
- Request tracing middleware
- Authentication utilities
- The application error taxonomy
"""

from core.logging import configure_logging, get_logger
from core.auth import require_auth, AuthenticatedUser
from core.errors import (
    AppError,
    AuthNotConfigured,
    Conflict,
    Forbidden,
    InvalidInput,
    InvalidSeedCount,
    NotFound,
    Unauthorized,
    UpstreamDegraded,
)

__all__ = [
    "configure_logging",
    "get_logger",
    "require_auth",
    "AuthenticatedUser",
    "AppError",
    "AuthNotConfigured",
    "Conflict",
    "Forbidden",
    "InvalidInput",
    "InvalidSeedCount",
    "NotFound",
    "Unauthorized",
    "UpstreamDegraded",
]
