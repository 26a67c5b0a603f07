"""Authentication dependencies for FastAPI."""

import hmac
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ...config import settings
from ...core.exceptions import AuthenticationError
from ...core.logging import get_logger
from .jwt_service import decode_access_token
from .schemas import AuthenticatedUser

logger = get_logger("auth")

security = HTTPBearer()


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
) -> AuthenticatedUser:
    """Extract the caller from the JWT without touching the database."""
    payload = decode_access_token(credentials.credentials)

    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        return AuthenticatedUser(
            id=int(payload["sub"]),
            organization_id=int(payload["organization_id"]),
            email=payload["email"],
            role_slug=payload.get("role", "viewer"),
        )
    except (KeyError, ValueError) as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid token payload: {e}",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def verify_cron_secret(
    authorization: Annotated[str | None, Header()] = None,
) -> None:
    """Guard for scheduler endpoints: ``Authorization: Bearer <cron_secret>``."""
    if not settings.cron_secret:
        logger.error("Cron endpoint called but cron_secret is not configured")
        raise AuthenticationError("CRON_SECRET environment variable not configured")

    expected = f"Bearer {settings.cron_secret}"
    if not authorization or not hmac.compare_digest(authorization, expected):
        logger.warning("Rejected cron request with invalid secret")
        raise AuthenticationError("Invalid cron secret")


# Type alias for dependency injection
CurrentUser = Annotated[AuthenticatedUser, Depends(get_current_user)]
CronAuthorized = Depends(verify_cron_secret)
