"""
security.py — Bearer token utilities.

The companion API does not own user accounts: sessions are issued by the
auth provider as HS256 JWTs whose `sub` claim is the user ID. This module
verifies those tokens (and can mint one for local development / tests).

Uses python-jose for JWT creation / verification. Configuration is read
from app.core.config.settings so the shared secret lives in the environment.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt

from app.core.config import settings


def create_access_token(subject: str, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a signed JWT.

    Args:
        subject:       The user's string ID.
        expires_delta: Custom TTL; defaults to settings.jwt_expiry_hours.

    Returns:
        Encoded JWT string.
    """
    delta = expires_delta or timedelta(hours=settings.jwt_expiry_hours)
    expire = datetime.now(tz=timezone.utc) + delta
    payload = {"sub": subject, "exp": expire}
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: Optional[str]) -> Optional[str]:
    """
    Decode and validate a JWT.

    Returns the *sub* claim (user ID) on success, or None if the token
    is missing, expired, or otherwise invalid.
    """
    if not token:
        return None
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError:
        return None

    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject:
        return None
    return subject
