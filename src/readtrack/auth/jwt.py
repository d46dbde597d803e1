"""
RS256 access-token handling.

Readers authenticate elsewhere; this service only needs to turn a bearer
token into a reader id. create_access_token exists for local tooling and
tests that need a signed token.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import jwt

from readtrack.config import get_settings

_private_key: str | None = None
_public_key: str | None = None


def _read_key(path: str) -> str:
    return Path(path).read_text()


def _load_public_key() -> str:
    global _public_key  # noqa: PLW0603
    if _public_key is None:
        _public_key = _read_key(get_settings().jwt_public_key_path)
    return _public_key


def _load_private_key() -> str:
    global _private_key  # noqa: PLW0603
    if _private_key is None:
        _private_key = _read_key(get_settings().jwt_private_key_path)
    return _private_key


def reset_keys() -> None:
    """Drop cached keys so the next call re-reads the configured paths."""
    global _private_key, _public_key  # noqa: PLW0603
    _private_key = None
    _public_key = None


def create_access_token(reader_id: int, expires_in: timedelta | None = None) -> str:
    """
    Sign an access token for a reader.

    Args:
        reader_id: The reader's id, carried in the `sub` claim.
        expires_in: Lifetime override; defaults to the configured minutes.

    Returns:
        Encoded JWT string.
    """
    settings = get_settings()
    if expires_in is None:
        expires_in = timedelta(minutes=settings.jwt_access_token_expire_minutes)
    now = datetime.now(timezone.utc)
    payload: dict[str, Any] = {
        "sub": str(reader_id),
        "iat": now,
        "exp": now + expires_in,
        "iss": settings.jwt_issuer,
        "type": "access",
    }
    return jwt.encode(payload, _load_private_key(), algorithm=settings.jwt_algorithm)


def verify_token(token: str) -> dict[str, Any]:
    """
    Verify and decode an access token.

    Raises:
        jwt.InvalidTokenError: If the token is invalid, expired, not an
            access token, or has no usable subject.
    """
    settings = get_settings()
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            _load_public_key(),
            algorithms=[settings.jwt_algorithm],
            issuer=settings.jwt_issuer,
        )
    except jwt.ExpiredSignatureError:
        msg = "Token has expired"
        raise jwt.InvalidTokenError(msg) from None

    if payload.get("type") != "access":
        msg = f"Expected token type 'access', got '{payload.get('type')}'"
        raise jwt.InvalidTokenError(msg)
    if not str(payload.get("sub", "")).isdigit():
        msg = "Token subject is not a reader id"
        raise jwt.InvalidTokenError(msg)

    return payload
