"""Middleware for the MCP OAuth bridge.

- MCPOAuthMiddleware validates Bearer tokens on protected routes and
  enforces the allow-list of permitted users
- CORSHeadersMiddleware answers preflights and adds permissive CORS headers
  to every response that does not set them already
"""

import logging
from typing import Iterable

from fastapi import Request
from fastapi.responses import JSONResponse, Response
from starlette.middleware.base import BaseHTTPMiddleware

from oauth.errors import ForbiddenError, OAuthError, UnauthorizedError
from oauth.verifier import TokenVerifier, is_authorized

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}


def _error_response(exc: OAuthError) -> JSONResponse:
    # Exception handlers do not see errors raised in middleware
    return JSONResponse(exc.to_dict(), status_code=exc.status_code, headers=exc.headers)


def extract_bearer_token(authorization: str) -> str:
    """Return the token from an `Authorization: Bearer <token>` header, or ''."""
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer":
        return ""
    return token.strip()


class MCPOAuthMiddleware(BaseHTTPMiddleware):
    """Middleware to validate OAuth Bearer tokens for the MCP endpoint."""

    def __init__(self, app, verifier: TokenVerifier, server_url: str, allowed_users: Iterable[str] = ()):
        super().__init__(app)
        self.verifier = verifier
        self.server_url = server_url
        self.allowed_users = frozenset(allowed_users)

    def _unauthorized(self, description: str) -> JSONResponse:
        return _error_response(UnauthorizedError(
            description,
            headers={"WWW-Authenticate": f'Bearer resource_metadata="{self.server_url}/.well-known/oauth-protected-resource"'},
        ))

    async def dispatch(self, request: Request, call_next):
        if request.method == "OPTIONS":
            return await call_next(request)

        token = extract_bearer_token(request.headers.get("Authorization", ""))
        if not token:
            logger.info("[AUTH] Request rejected: no Bearer token")
            return self._unauthorized("Missing or invalid Authorization header")

        try:
            principal = await self.verifier.verify(token)
        except OAuthError as e:
            return _error_response(e)

        if principal is None:
            logger.info("[AUTH] Request rejected: invalid or expired token")
            return self._unauthorized("Invalid or expired token")

        if not is_authorized(principal, self.allowed_users):
            logger.warning(f"[AUTH] Access denied: user {principal.id} is not authorized")
            return _error_response(ForbiddenError("Access denied: not authorized for this server"))

        logger.info(f"[AUTH] Request authorized: {principal.email or principal.id}")
        request.state.principal = principal
        return await call_next(request)


class CORSHeadersMiddleware(BaseHTTPMiddleware):
    """Permissive CORS for browser-based MCP clients and inspectors."""

    async def dispatch(self, request: Request, call_next):
        if request.method == "OPTIONS":
            return Response(status_code=204, headers={**CORS_HEADERS, "Access-Control-Max-Age": "86400"})

        response = await call_next(request)
        # Only add CORS headers the handler did not set itself
        for key, value in CORS_HEADERS.items():
            if key not in response.headers:
                response.headers[key] = value
        return response
