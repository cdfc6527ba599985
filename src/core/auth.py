"""
Supabase JWT Authentication Module.

Identity is issued elsewhere; this module only verifies the bearer token
and hands the caller id to the swipe session service, which trusts it.
Failures raise Unauthorized / AuthNotConfigured so they render as the
standard error envelope.

Usage:
    from core.auth import require_auth, AuthenticatedUser

    @router.post("/session")
    def create(user: AuthenticatedUser = Depends(require_auth)):
        owner_id = user.id
"""

from dataclasses import dataclass
from typing import Optional

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from config.settings import get_settings
from core.errors import AuthNotConfigured, Unauthorized
from core.logging import bind_context, get_logger


logger = get_logger(__name__)

JWT_ALGORITHMS = ["HS256"]
JWT_AUDIENCE = "authenticated"
REQUIRED_CLAIMS = ["sub", "exp", "aud"]

security = HTTPBearer(
    scheme_name="Supabase JWT",
    description="Access token issued by Supabase Auth.",
    auto_error=False,
)


@dataclass
class AuthenticatedUser:
    """
    Caller identity extracted from a verified JWT.

    Attributes:
        id: User's UUID (from 'sub' claim); owner id of swipe sessions
        email: User's email address
        role: Postgres role (usually 'authenticated')
    """
    id: str
    email: Optional[str] = None
    role: str = "authenticated"


def verify_jwt(token: str) -> dict:
    """
    Verify a Supabase HS256 token and return its claims.

    Raises:
        AuthNotConfigured: SUPABASE_JWT_SECRET is not set
        Unauthorized: expired, wrong audience, bad signature or missing claims
    """
    secret = get_settings().supabase_jwt_secret
    if not secret:
        raise AuthNotConfigured("Authentication is not configured")

    try:
        return jwt.decode(
            token,
            secret,
            algorithms=JWT_ALGORITHMS,
            audience=JWT_AUDIENCE,
            options={"require": REQUIRED_CLAIMS},
        )
    except jwt.ExpiredSignatureError:
        raise Unauthorized("Token has expired")
    except jwt.InvalidAudienceError:
        raise Unauthorized("Invalid token audience")
    except jwt.InvalidTokenError as e:
        logger.info("Rejected bearer token", error=str(e))
        raise Unauthorized("Invalid token")


def extract_user(payload: dict) -> AuthenticatedUser:
    return AuthenticatedUser(
        id=payload["sub"],
        email=payload.get("email"),
        role=payload.get("role", "authenticated"),
    )


async def require_auth(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> AuthenticatedUser:
    """
    FastAPI dependency for routes that act on behalf of a user.

    Binds user_id to the log context.
    """
    if not credentials or not credentials.credentials:
        raise Unauthorized("Authorization header required")

    user = extract_user(verify_jwt(credentials.credentials))
    bind_context(user_id=user.id)
    return user
