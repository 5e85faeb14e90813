"""
JWT identity resolution.

Sessions are issued elsewhere; this service only verifies the bearer token
and reads the caller's profile login from the ``sub`` claim.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

from raidcity.config import get_settings


def create_access_token(login: str, expires_minutes: int = 60) -> str:
    """
    Create a signed access token for ``login``.

    Used by tests and local tooling; production tokens come from the auth service.
    """
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload: dict[str, Any] = {
        "sub": login.lower(),
        "iat": now,
        "exp": now + timedelta(minutes=expires_minutes),
        "iss": settings.jwt_issuer,
        "type": "access",
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_token(token: str) -> str:
    """
    Verify an access token and return the caller's login.

    Raises:
        jwt.InvalidTokenError: On bad signature, expiry, issuer or token type.
    """
    settings = get_settings()
    payload = jwt.decode(
        token,
        settings.jwt_secret,
        algorithms=[settings.jwt_algorithm],
        issuer=settings.jwt_issuer,
        options={"require": ["exp", "sub"]},
    )
    if payload.get("type") != "access":
        raise jwt.InvalidTokenError("Invalid token type")
    login = payload["sub"]
    if not isinstance(login, str) or not login:
        raise jwt.InvalidTokenError("Invalid subject")
    return login
