"""FastAPI authentication dependencies."""

from __future__ import annotations

import jwt
from fastapi import HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from readtrack.auth.jwt import verify_token

_bearer = HTTPBearer()


async def get_current_reader_id(
    credentials: HTTPAuthorizationCredentials = Security(_bearer),
) -> int:
    """Verify the bearer token and return the reader id from its subject."""
    try:
        payload = verify_token(credentials.credentials)
    except jwt.InvalidTokenError as e:
        raise HTTPException(status_code=401, detail=str(e)) from e
    return int(payload["sub"])
