#  Map Vault - Edge Function Pipeline
#
#  Shared request pipeline for the authenticated edge functions.
#  Every call walks the same fixed sequence:
#    preflight -> authenticate -> authorize -> admit -> audit -> validate
#    -> delegate
#  and every response, including errors, carries the CORS headers.
#  Error bodies are {"error": "..."} so browser clients can show them as-is.
#
#  Depends on: services/auth.py, services/rate_limiter.py, mapvault/exceptions.py
#  Used by:    edge/functions.py, routes/functions.py

import json
import logging
from abc import ABC, abstractmethod

import jwt
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError

from mapvault.exceptions import (
    AuthenticationError,
    AuthorizationError,
    PayloadValidationError,
    RateLimitExceededError,
)
from mapvault.logging_config import set_subject_id
from mapvault.models.enums import Role
from mapvault.services.auth import AuthService
from mapvault.services.rate_limiter import RateLimiter

logger = logging.getLogger("mapvault.edge")

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
}

UNAUTHORIZED_MESSAGE = "Unauthorized"
FORBIDDEN_MESSAGE = "Forbidden - Admin access required"
RATE_LIMITED_MESSAGE = "Rate limit exceeded. Please try again later."


def error_response(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse({"error": message, **extra}, status_code=status_code, headers=CORS_HEADERS)


def format_validation_error(exc: ValidationError) -> str:
    """'field: message; other.field: message' from a pydantic error."""
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{loc}: {err.get('msg', 'invalid')}" if loc else err.get("msg", "invalid"))
    return "; ".join(parts)


class EdgeHandler(ABC):
    """One edge function. Subclasses set endpoint/body_model and implement delegate()."""

    endpoint: str = ""
    body_model: type[BaseModel]
    requires_admin: bool = False
    failure_message: str = "Request failed. Please try again."

    def __init__(self, auth: AuthService, rate_limiter: RateLimiter):
        self._auth = auth
        self._rate_limiter = rate_limiter

    async def handle(self, request: Request) -> Response:
        if request.method == "OPTIONS":
            return Response(status_code=204, headers=CORS_HEADERS)

        try:
            subject = await self.authenticate(request)
            if self.requires_admin:
                await self.authorize(subject)
            await self.admit(subject)
            self._rate_limiter.submit_log_request(subject["id"], self.endpoint)
            body = await self.parse_body(request)
        except AuthenticationError:
            return error_response(401, UNAUTHORIZED_MESSAGE)
        except AuthorizationError:
            return error_response(403, FORBIDDEN_MESSAGE)
        except RateLimitExceededError as e:
            return error_response(429, RATE_LIMITED_MESSAGE, remaining=e.remaining)
        except PayloadValidationError as e:
            return error_response(400, str(e))

        try:
            response = await self.delegate(subject, body)
        except Exception as e:
            logger.error("%s failed: %s", self.endpoint, type(e).__name__)
            return error_response(500, self.failure_message)

        response.headers.update(CORS_HEADERS)
        return response

    async def authenticate(self, request: Request) -> dict:
        header = request.headers.get("authorization", "")
        scheme, _, token = header.partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            raise AuthenticationError("Missing bearer token")

        try:
            payload = self._auth.decode_token(token.strip())
            if payload.get("type") != "access":
                raise AuthenticationError("Invalid token type")
            user = await self._auth.get_user(payload["sub"])
        except AuthenticationError:
            raise
        except (jwt.PyJWTError, KeyError) as e:
            raise AuthenticationError("Invalid or expired token") from e
        except Exception as e:
            logger.error("Auth lookup failed for %s: %s", self.endpoint, type(e).__name__)
            raise AuthenticationError("Auth lookup failed") from e

        if not user or not user["is_active"]:
            raise AuthenticationError("User not found or disabled")
        set_subject_id(user["id"])
        return user

    async def authorize(self, subject: dict) -> None:
        try:
            is_admin = await self._auth.has_role(subject["id"], Role.ADMIN)
        except Exception as e:
            logger.error("Role lookup failed for %s: %s", self.endpoint, type(e).__name__)
            raise AuthorizationError("Role lookup failed") from e
        if not is_admin:
            raise AuthorizationError("Admin access required")

    async def admit(self, subject: dict) -> None:
        result = await self._rate_limiter.check_rate_limit(subject["id"], self.endpoint)
        if not result.allowed:
            logger.warning("Rate limit hit: %s on %s", subject["id"], self.endpoint)
            raise RateLimitExceededError(self.endpoint, remaining=0)

    async def parse_body(self, request: Request) -> BaseModel:
        raw = await request.body()
        try:
            data = json.loads(raw) if raw else None
        except ValueError:
            raise PayloadValidationError("Request body must be valid JSON") from None
        if not isinstance(data, dict):
            raise PayloadValidationError("Request body must be a JSON object")
        try:
            return self.body_model.model_validate(data)
        except ValidationError as e:
            raise PayloadValidationError(format_validation_error(e)) from None

    @abstractmethod
    async def delegate(self, subject: dict, body: BaseModel) -> Response:
        """Perform the single upstream side effect and build the success response."""
        ...
