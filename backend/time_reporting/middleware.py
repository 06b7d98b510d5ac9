from __future__ import annotations

import logging

import jwt
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from .errors import AclParseError
from .identity import principal_from_claims
from .security import decode_identity_token

logger = logging.getLogger(__name__)

PUBLIC_PATHS = {"/healthz", "/docs", "/openapi.json", "/redoc"}


class BearerAuthMiddleware(BaseHTTPMiddleware):
    """Resolve the caller's principal from the Authorization header."""

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        if request.url.path in PUBLIC_PATHS:
            return await call_next(request)
        header = request.headers.get("Authorization")
        if not header:
            return self._unauthorized("Missing Authorization header")
        scheme, _, token = header.partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            return self._unauthorized("Invalid Authorization header format. Expected: Bearer <token>")
        try:
            claims = decode_identity_token(token.strip())
        except jwt.InvalidTokenError as exc:
            logger.info("Rejected bearer token: %s", exc)
            return self._unauthorized("Invalid or expired bearer token")
        try:
            principal = principal_from_claims(claims)
        except AclParseError as exc:
            return JSONResponse(exc.to_dict(), status_code=401)
        if principal is None:
            return self._unauthorized("Token does not identify a user")
        request.state.principal = principal
        return await call_next(request)

    def _unauthorized(self, detail: str) -> JSONResponse:
        return JSONResponse(
            {"detail": detail},
            status_code=401,
            headers={"WWW-Authenticate": "Bearer"},
        )
