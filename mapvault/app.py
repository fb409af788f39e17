#  Map Vault - FastAPI Application
#
#  Main app setup: lifespan, CORS, exception mapping, router includes.
#  Creates the DI container and manages service lifecycle.
#
#  Depends on: config.py, container.py, routes/*.py, middleware/auth.py
#  Used by:    run.py

import logging
import uuid
from contextlib import AsyncExitStack, asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.middleware.base import BaseHTTPMiddleware

from mapvault.config import CORS_ORIGINS, DB_PATH, validate_config
from mapvault.container import Container
from mapvault.exceptions import (
    AuthenticationError,
    AuthorizationError,
    InvalidStateError,
    MapVaultError,
    NotFoundError,
    PayloadValidationError,
    RateLimitExceededError,
    StorageError,
    UpstreamError,
)
from mapvault.logging_config import set_request_id, set_subject_id
from mapvault.middleware.auth import get_current_user
from mapvault.rate_limit import limiter
from mapvault.routes.admin import router as admin_router
from mapvault.routes.auth import router as auth_router
from mapvault.routes.base_maps import router as base_maps_router
from mapvault.routes.chat_history import router as chat_history_router
from mapvault.routes.functions import EDGE_PREFIX, router as functions_router
from mapvault.routes.health import router as health_router
from mapvault.routes.overlays import router as overlays_router

logger = logging.getLogger("mapvault.app")

# Create and wire the DI container
container = Container()

# Auth dependency for all protected routes
_auth_dep = [Depends(get_current_user)]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle.

    Uses AsyncExitStack so that if any startup step fails, all previously
    initialized resources are cleaned up in reverse order.
    """
    logger.info("Map Vault starting...")

    # Validate critical config before anything else
    validate_config()

    db = container.db()
    http_client = container.http_client()
    rate_limiter = container.rate_limiter()

    async with AsyncExitStack() as stack:
        await db.init(DB_PATH, run_migrations=True)
        stack.push_async_callback(db.close)

        # Shared httpx client, closed on shutdown
        stack.push_async_callback(http_client.aclose)

        # Pending audit writes must land before the db closes
        stack.push_async_callback(rate_limiter.drain)

        yield

    logger.info("Map Vault shutting down")


app = FastAPI(
    title="Map Vault",
    version="0.1.0",
    lifespan=lifespan,
)
app.state.limiter = limiter


@app.exception_handler(RateLimitExceeded)
async def ip_rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(
        status_code=429,
        content={"detail": "Rate limit exceeded. Try again later."},
    )


# Global exception handlers for business errors raised by services
@app.exception_handler(RateLimitExceededError)
async def quota_handler(request: Request, exc: RateLimitExceededError):
    return JSONResponse(
        status_code=429,
        content={"detail": "Rate limit exceeded. Please try again later.", "remaining": exc.remaining},
    )


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(InvalidStateError)
async def invalid_state_handler(request: Request, exc: InvalidStateError):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(PayloadValidationError)
async def payload_handler(request: Request, exc: PayloadValidationError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(AuthenticationError)
async def authentication_handler(request: Request, exc: AuthenticationError):
    return JSONResponse(status_code=401, content={"detail": "Not authenticated"})


@app.exception_handler(AuthorizationError)
async def authorization_handler(request: Request, exc: AuthorizationError):
    return JSONResponse(status_code=403, content={"detail": "Admin access required"})


@app.exception_handler(UpstreamError)
async def upstream_handler(request: Request, exc: UpstreamError):
    logger.error("Upstream failure: %s", exc)
    return JSONResponse(status_code=502, content={"detail": "Upstream service failed"})


@app.exception_handler(StorageError)
async def storage_handler(request: Request, exc: StorageError):
    logger.error("Storage failure: %s", exc)
    return JSONResponse(status_code=500, content={"detail": "Storage error"})


@app.exception_handler(MapVaultError)
async def mapvault_handler(request: Request, exc: MapVaultError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(Exception)
async def unhandled_handler(request: Request, exc: Exception):
    logger.error("Unhandled exception: %s", exc, exc_info=True)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# Request ID tracing
class RequestIDMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        rid = uuid.uuid4().hex[:12]
        set_request_id(rid)
        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = rid
            return response
        finally:
            set_request_id(None)
            set_subject_id(None)

app.add_middleware(RequestIDMiddleware)


class ApiCORSMiddleware(CORSMiddleware):
    """Configured-origin CORS for everything outside /functions.

    Edge handlers set their own wildcard headers and answer their own preflights.
    """

    async def __call__(self, scope, receive, send):
        if scope["type"] == "http" and scope["path"].startswith(EDGE_PREFIX + "/"):
            await self.app(scope, receive, send)
            return
        await super().__call__(scope, receive, send)


# CORS
app.add_middleware(
    ApiCORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Client-Info", "Apikey"],
)

# Health check (public, for liveness probes)
app.include_router(health_router, prefix="/api")

# Auth routes (public, no token required)
app.include_router(auth_router, prefix="/api")

# Protected API routes (require valid JWT)
app.include_router(base_maps_router, prefix="/api", dependencies=_auth_dep)
app.include_router(overlays_router, prefix="/api", dependencies=_auth_dep)
app.include_router(chat_history_router, prefix="/api", dependencies=_auth_dep)
app.include_router(admin_router, prefix="/api", dependencies=_auth_dep)

# Edge functions run their own auth pipeline so failures keep their wire shape
app.include_router(functions_router)
