"""Bearer-token authentication against the hosted auth service's access tokens.

Access tokens are HS256 JWTs signed with the project's JWT secret. ``sub``
carries the user id and ``email`` the address; the matching profile row is
created on first use.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from focustube.core.config import settings
from focustube.core.errors import AuthenticationError, NotConfiguredError
from focustube.db.models import Profile
from focustube.db.session import get_session
from focustube.services.account import get_or_create_profile

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def decode_access_token(token: str) -> dict[str, Any]:
    """Verify and decode an access token, raising ``AuthenticationError`` when invalid."""

    secret = settings.auth_jwt_secret
    if not secret:
        raise NotConfiguredError("Server configuration error")

    options: dict[str, bool] = {}
    if not settings.auth_jwt_audience:
        options["verify_aud"] = False

    try:
        return jwt.decode(
            token,
            secret,
            algorithms=["HS256"],
            audience=settings.auth_jwt_audience,
            options=options,
        )
    except JWTError as exc:
        logger.info("Rejected access token: %s", exc)
        raise AuthenticationError("Invalid or expired token") from exc


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    session: AsyncSession = Depends(get_session),
) -> Profile:
    """FastAPI dependency resolving the caller's profile from the bearer token."""

    if credentials is None or credentials.scheme.lower() != "bearer" or not credentials.credentials:
        raise AuthenticationError("Missing or invalid Authorization header")

    claims = decode_access_token(credentials.credentials)
    user_id = claims.get("sub")
    if not user_id:
        raise AuthenticationError("Invalid or expired token")

    profile = await get_or_create_profile(
        session,
        user_id=user_id,
        email=claims.get("email"),
        full_name=(claims.get("user_metadata") or {}).get("full_name"),
    )
    await session.commit()
    return profile
