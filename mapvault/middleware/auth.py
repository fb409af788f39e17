#  Map Vault - Auth Middleware
#
#  FastAPI dependencies for JWT authentication.
#  get_current_user: validates Bearer token, returns user dict.
#  require_admin: wraps get_current_user + user_roles lookup.
#
#  Depends on: mapvault/services/auth.py, mapvault/container.py
#  Used by:    app.py, routes/*

import logging

import jwt
from dependency_injector.wiring import inject, Provide
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from mapvault.container import Container
from mapvault.logging_config import set_subject_id
from mapvault.models.enums import Role
from mapvault.services.auth import AuthService

logger = logging.getLogger("mapvault.auth")

_bearer_scheme = HTTPBearer(auto_error=False)


async def _validate_token(auth: AuthService, token: str, expected_type: str) -> tuple[dict, dict]:
    """Decode a JWT, check its type, and load the active user it names."""
    try:
        payload = auth.decode_token(token)
    except jwt.PyJWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if payload.get("type") != expected_type:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token type",
        )

    user = await auth.get_user(payload["sub"])
    if not user or not user["is_active"]:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or disabled",
        )
    return user, payload


@inject
async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
    auth: AuthService = Depends(Provide[Container.auth]),
) -> dict:
    """Validate Bearer token and return user dict. Raises 401 on failure."""
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user, _ = await _validate_token(auth, credentials.credentials, "access")
    set_subject_id(user["id"])
    return user


@inject
async def require_admin(
    user: dict = Depends(get_current_user),
    auth: AuthService = Depends(Provide[Container.auth]),
) -> dict:
    """Require the current user to hold the admin role."""
    if not await auth.has_role(user["id"], Role.ADMIN):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return user
