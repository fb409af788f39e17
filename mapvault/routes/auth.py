#  Map Vault - Auth Routes
#
#  Account endpoints for archivists and visitors: register, login, token
#  refresh, and the caller's own profile. Guarded by the per-IP limiter;
#  the per-user quotas in services/rate_limiter.py only cover edge functions.
#
#  Depends on: container.py, services/auth.py, middleware/auth.py, rate_limit.py
#  Used by:    app.py

import logging

from dependency_injector.wiring import inject, Provide
from fastapi import APIRouter, Depends, HTTPException
from starlette.requests import Request

from mapvault.config import AUTH_LOGIN_RATE_LIMIT, AUTH_REFRESH_RATE_LIMIT
from mapvault.container import Container
from mapvault.logging_config import set_subject_id
from mapvault.middleware.auth import get_current_user
from mapvault.models.schemas import (
    LoginRequest,
    LoginResponse,
    RefreshRequest,
    RefreshResponse,
    RegisterRequest,
    UserOut,
)
from mapvault.rate_limit import limiter
from mapvault.services.auth import AuthService

logger = logging.getLogger("mapvault.routes.auth")

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", status_code=201)
@limiter.limit(AUTH_LOGIN_RATE_LIMIT)
@inject
async def register(
    request: Request,
    body: RegisterRequest,
    auth: AuthService = Depends(Provide[Container.auth]),
) -> UserOut:
    """Create an account. The first account on an empty vault is its admin."""
    try:
        user = await auth.register(body.email, body.password, body.display_name)
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    set_subject_id(user["id"])
    return UserOut(**user)


@router.post("/login")
@limiter.limit(AUTH_LOGIN_RATE_LIMIT)
@inject
async def login(
    request: Request,
    body: LoginRequest,
    auth: AuthService = Depends(Provide[Container.auth]),
) -> LoginResponse:
    try:
        result = await auth.login(body.email, body.password)
    except (ValueError, PermissionError) as e:
        # Same 401 for unknown, wrong password and disabled accounts
        logger.info("Login rejected: %s", e)
        raise HTTPException(status_code=401, detail=str(e))
    set_subject_id(result["user"]["id"])
    return LoginResponse(**result)


@router.post("/refresh")
@limiter.limit(AUTH_REFRESH_RATE_LIMIT)
@inject
async def refresh(
    request: Request,
    body: RefreshRequest,
    auth: AuthService = Depends(Provide[Container.auth]),
) -> RefreshResponse:
    """Trade a refresh token for a fresh access/refresh pair."""
    try:
        result = await auth.refresh_tokens(body.refresh_token)
    except ValueError as e:
        raise HTTPException(status_code=401, detail=str(e))
    return RefreshResponse(**result)


@router.get("/me")
async def get_me(
    user: dict = Depends(get_current_user),
) -> UserOut:
    return UserOut(**user)
