"""JWT helpers.

Tokens are issued by the identity service; this backend only needs to
validate them and, in tests and tooling, mint them with the same secret.
"""

from datetime import datetime, timedelta, timezone

import jwt

from ...config import settings


def create_access_token(
    user_id: int,
    organization_id: int,
    email: str,
    role_slug: str = "manager",
    expires_delta: timedelta | None = None,
) -> str:
    """Create a JWT access token."""
    issued_at = datetime.now(timezone.utc)
    expire = issued_at + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )

    payload = {
        "sub": str(user_id),
        "organization_id": organization_id,
        "email": email,
        "role": role_slug,
        "exp": expire,
        "iat": issued_at,
        "type": "access",
    }

    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> dict | None:
    """Decode and validate a JWT access token.

    Returns:
        Token payload if valid, None if invalid or expired.
    """
    try:
        payload = jwt.decode(
            token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm]
        )
    except jwt.InvalidTokenError:
        return None
    if payload.get("type") != "access":
        return None
    return payload
