"""Security utilities: JWT terminal tokens and PIN hashing."""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any

import bcrypt
import jwt
from jwt.exceptions import PyJWTError

from dinepos.core.config import settings

logger = logging.getLogger(__name__)


def verify_pin(plain_pin: str, hashed_pin: str) -> bool:
    """Verify a plain PIN against a hash.

    Uses bcrypt's built-in timing-safe comparison.
    """
    try:
        return bcrypt.checkpw(
            plain_pin.encode('utf-8'),
            hashed_pin.encode('utf-8')
        )
    except ValueError as e:
        logger.warning(f"PIN verification error: {e}")
        return False


def get_pin_hash(pin: str) -> str:
    """Hash a PIN code using bcrypt."""
    return bcrypt.hashpw(
        pin.encode('utf-8'),
        bcrypt.gensalt()
    ).decode('utf-8')


def create_access_token(data: dict[str, Any], expires_delta: timedelta | None = None) -> str:
    """Create a JWT access token for a terminal login."""
    to_encode = data.copy()
    now = datetime.now(timezone.utc)

    if expires_delta:
        expire = now + expires_delta
    else:
        expire = now + timedelta(minutes=settings.access_token_expire_minutes)

    to_encode.update({
        "exp": expire,
        "iat": now,
        "jti": secrets.token_urlsafe(16),
    })
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str) -> dict[str, Any] | None:
    """Decode and validate a JWT token."""
    try:
        return jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.algorithm],
            options={"require_exp": True}
        )
    except PyJWTError as e:
        logger.debug(f"JWT decode error: {e}")
        return None
