"""OAuth error taxonomy.

Handlers raise these; the application turns them into the standard
`{"error": ..., "error_description": ...}` JSON body (RFC 6749 section 5.2).
"""

from typing import Optional

from fastapi import Request
from fastapi.responses import JSONResponse


class OAuthError(Exception):
    """Base class for every error returned to an OAuth caller.

    Attributes:
        error: The OAuth error code (e.g. "invalid_request")
        description: Human-readable detail sent as error_description
        status_code: HTTP status code of the response
    """

    error = "server_error"
    status_code = 500

    def __init__(self, description: str = "", status_code: Optional[int] = None, headers: Optional[dict] = None):
        self.description = description
        if status_code is not None:
            self.status_code = status_code
        self.headers = headers or {}
        super().__init__(description or self.error)

    def to_dict(self) -> dict:
        body = {"error": self.error}
        if self.description:
            body["error_description"] = self.description
        return body


class InvalidRequestError(OAuthError):
    error = "invalid_request"
    status_code = 400


class InvalidGrantError(OAuthError):
    error = "invalid_grant"
    status_code = 400


class InvalidClientError(OAuthError):
    error = "invalid_client"
    status_code = 400


class UnsupportedGrantTypeError(OAuthError):
    error = "unsupported_grant_type"
    status_code = 400


class UnauthorizedError(OAuthError):
    error = "unauthorized"
    status_code = 401


class ForbiddenError(OAuthError):
    error = "forbidden"
    status_code = 403


class UpstreamError(OAuthError):
    """The identity provider rejected the exchange or sent a malformed payload."""

    error = "upstream_error"
    status_code = 500


class ServerError(OAuthError):
    error = "server_error"
    status_code = 500


async def oauth_error_handler(request: Request, exc: OAuthError) -> JSONResponse:
    """FastAPI exception handler rendering an OAuthError as JSON."""
    return JSONResponse(exc.to_dict(), status_code=exc.status_code, headers=exc.headers)
