"""FastAPI authentication dependencies."""

from __future__ import annotations

import jwt
import structlog
from fastapi import Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from raidcity.auth.identity import verify_token
from raidcity.raids.errors import AuthenticationRequired

_bearer = HTTPBearer(auto_error=False)


async def get_caller_login(
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
) -> str:
    """Resolve the bearer token to the caller's profile login. Raises 401 on failure."""
    if credentials is None:
        raise AuthenticationRequired
    try:
        login = verify_token(credentials.credentials)
    except jwt.InvalidTokenError as e:
        raise AuthenticationRequired(str(e)) from e
    structlog.contextvars.bind_contextvars(caller=login)
    return login
