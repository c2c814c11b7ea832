"""OAuth 2.0 endpoints for the MCP OAuth bridge.

The bridge is an authorization server toward MCP clients and an OAuth client
toward the upstream identity provider (Google or GitHub):

    MCP client --/authorize--> bridge --302--> provider login
    provider --/callback--> bridge --302--> MCP client redirect_uri?code=...
    MCP client --/token--> bridge --> {"access_token": ..., "token_type": "Bearer"}

Endpoints:
- Discovery metadata (/.well-known/*)
- Client registration (/register)
- Authorization flow (/authorize, /callback)
- Token endpoint (/token)

Handlers live on OAuthBridge, which receives its store, signer, upstream
client and config explicitly; ROUTES maps method + path to a handler.
"""

import logging
import secrets
from typing import Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, Response

from config import Config
from oauth.errors import (
    InvalidClientError,
    InvalidGrantError,
    InvalidRequestError,
    UnsupportedGrantTypeError,
    UpstreamError,
)
from oauth.models import AuthorizationSession, IssuedToken
from oauth.pkce import verify_pkce
from oauth.registry import ClientRegistry
from oauth.signer import APPROVAL_COOKIE_MAX_AGE, APPROVAL_COOKIE_NAME, ApprovalSigner
from oauth.stores import SessionStore
from oauth.templates import render_consent_page
from oauth.upstream import UpstreamClient

logger = logging.getLogger(__name__)

SERVER_NAME = "MCP OAuth Bridge"
SCOPES_SUPPORTED = ["mcp:tools"]

# Authorization parameters carried through the consent form
AUTHORIZE_PARAMS = (
    "client_id",
    "redirect_uri",
    "response_type",
    "state",
    "scope",
    "code_challenge",
    "code_challenge_method",
)


def append_query(url: str, params: dict) -> str:
    """Add query parameters to a URL, keeping any it already has."""
    parts = urlsplit(url)
    query = parse_qsl(parts.query, keep_blank_values=True)
    query.extend((k, v) for k, v in params.items() if v is not None)
    return urlunsplit(parts._replace(query=urlencode(query)))


async def read_params(request: Request) -> dict:
    """Collect request parameters: query string, overlaid by a form or JSON body."""
    params = dict(request.query_params)
    if request.method != "POST":
        return params

    content_type = request.headers.get("content-type", "")
    if "application/json" in content_type:
        try:
            body = await request.json()
        except ValueError:
            raise InvalidRequestError("Malformed JSON body") from None
        if not isinstance(body, dict):
            raise InvalidRequestError("Request body must be a JSON object")
        params.update({k: str(v) for k, v in body.items() if v is not None})
    else:
        form = await request.form()
        params.update({k: v for k, v in form.items() if isinstance(v, str)})
    return params


class OAuthBridge:
    """Request handlers for the downstream authorization server."""

    def __init__(
        self,
        config: Config,
        store: SessionStore,
        signer: ApprovalSigner,
        upstream: UpstreamClient,
        registry: Optional[ClientRegistry] = None,
    ):
        self.config = config
        self.store = store
        self.signer = signer
        self.upstream = upstream
        self.registry = registry or ClientRegistry(store)

    @property
    def server_url(self) -> str:
        return self.config.server_url

    @property
    def callback_url(self) -> str:
        return f"{self.server_url}/callback"

    # ============== OAuth 2.0 Discovery Endpoints ==============

    async def protected_resource_metadata(self, request: Request) -> Response:
        """OAuth 2.0 Protected Resource Metadata (RFC 9728)."""
        return JSONResponse({
            "resource": self.server_url,
            "authorization_servers": [self.server_url],
            "scopes_supported": SCOPES_SUPPORTED,
            "bearer_methods_supported": ["header"],
            "resource_documentation": self.server_url,
            "resource_registration_endpoint": f"{self.server_url}/register",
        })

    async def authorization_server_metadata(self, request: Request) -> Response:
        """OAuth 2.0 Authorization Server Metadata (RFC 8414)."""
        return JSONResponse({
            "issuer": self.server_url,
            "authorization_endpoint": f"{self.server_url}/authorize",
            "token_endpoint": f"{self.server_url}/token",
            "registration_endpoint": f"{self.server_url}/register",
            "scopes_supported": SCOPES_SUPPORTED,
            "response_types_supported": ["code"],
            "response_modes_supported": ["query"],
            "grant_types_supported": ["authorization_code"],
            "token_endpoint_auth_methods_supported": ["client_secret_post", "none"],
            "code_challenge_methods_supported": ["S256", "plain"],
        })

    # ============== Client Registration ==============

    async def register(self, request: Request) -> Response:
        """OAuth 2.0 Dynamic Client Registration (RFC 7591)."""
        try:
            data = await request.json()
        except ValueError:
            raise InvalidRequestError("Invalid registration request") from None

        client = await self.registry.register(data)
        return JSONResponse(client.to_response(), status_code=201)

    # ============== Authorization Flow ==============

    async def authorize(self, request: Request) -> Response:
        """OAuth 2.0 Authorization Endpoint.

        Shows the consent page unless the approval cookie already lists the
        client, then sends the browser to the upstream provider.
        """
        params = await read_params(request)
        client_id = params.get("client_id", "")
        redirect_uri = params.get("redirect_uri", "")
        response_type = params.get("response_type", "")

        logger.info(f"[AUTHORIZE] {request.method} client_id={client_id or '-'}")

        if not client_id or not redirect_uri or response_type != "code":
            raise InvalidRequestError(
                "Missing required parameters: client_id, redirect_uri, response_type=code"
            )

        client = await self.registry.lookup(client_id)
        if self.config.require_registered_clients:
            if client is None:
                raise InvalidClientError("Unknown client_id")
            if redirect_uri not in client.redirect_uris:
                raise InvalidRequestError("redirect_uri is not registered for this client")

        # Some MCP clients (e.g. the inspector) omit state
        if not params.get("state"):
            logger.info("[AUTHORIZE] Request missing state, generating one")
            params["state"] = secrets.token_urlsafe(16)

        cookie = request.cookies.get(APPROVAL_COOKIE_NAME)
        action = params.get("action")

        if action == "deny":
            logger.info(f"[AUTHORIZE] User denied access for client {client_id}")
            location = append_query(redirect_uri, {
                "error": "access_denied",
                "error_description": "User denied access",
                "state": params["state"],
            })
            return RedirectResponse(url=location, status_code=302)

        if action == "approve":
            response = await self._redirect_upstream(params)
            response.set_cookie(
                APPROVAL_COOKIE_NAME,
                self.signer.approve(cookie, client_id),
                max_age=APPROVAL_COOKIE_MAX_AGE,
                path="/",
                httponly=True,
                secure=self.config.cookie_secure,
                samesite="lax",
            )
            logger.info(f"[AUTHORIZE] Client {client_id} approved")
            return response

        if action:
            raise InvalidRequestError(f"Unsupported action: {action}")

        if self.signer.is_approved(cookie, client_id):
            logger.info(f"[AUTHORIZE] Client {client_id} already approved, skipping consent")
            return await self._redirect_upstream(params)

        return HTMLResponse(render_consent_page(
            server_name=SERVER_NAME,
            client_id=client_id,
            client_name=client.client_name if client else None,
            redirect_uris=client.redirect_uris if client else [redirect_uri],
            scope=params.get("scope", ""),
            params={name: params.get(name) for name in AUTHORIZE_PARAMS},
        ))

    async def _redirect_upstream(self, params: dict) -> Response:
        """Persist the downstream request and send the browser to the provider."""
        session = AuthorizationSession(
            session_id=secrets.token_urlsafe(32),
            downstream_redirect_uri=params["redirect_uri"],
            downstream_state=params["state"],
            downstream_client_id=params["client_id"],
            created_at=self.store.clock(),
            scope=params.get("scope") or None,
            code_challenge=params.get("code_challenge") or None,
            code_challenge_method=params.get("code_challenge_method") or None,
        )
        await self.store.save_session(session)

        location = self.upstream.authorize_url(redirect_uri=self.callback_url, state=session.session_id)
        logger.info(f"[AUTHORIZE] Redirecting to {self.upstream.provider.name} for session {session.session_id[:8]}...")
        return RedirectResponse(url=location, status_code=302)

    async def callback(self, request: Request) -> Response:
        """Upstream redirect target.

        Exchanges the provider code, mints our own token for the user and
        sends the browser back to the MCP client with it as `code`.
        """
        query = request.query_params
        error = query.get("error")
        if error:
            logger.warning(f"[CALLBACK] Provider returned error: {error}")
            raise UpstreamError(f"Upstream authorization failed: {error}", status_code=400)

        code = query.get("code")
        state = query.get("state")
        if not code or not state:
            raise InvalidRequestError("Missing code or state")

        session = await self.store.consume_session(state)
        if session is None:
            logger.warning(f"[CALLBACK] Unknown or expired session: {state[:8]}...")
            raise InvalidRequestError("Invalid or expired session")

        tokens = await self.upstream.exchange_code(code, redirect_uri=self.callback_url)
        principal = await self.upstream.fetch_profile(tokens.access_token)
        logger.info(f"[CALLBACK] Upstream user authenticated: id={principal.id}, email={principal.email or '-'}")

        issued = IssuedToken(
            token_value="mcp_" + secrets.token_hex(16),
            principal=principal,
            upstream_access_token=tokens.access_token,
            upstream_refresh_token=tokens.refresh_token,
            created_at=self.store.clock(),
            client_id=session.downstream_client_id,
            code_challenge=session.code_challenge,
            code_challenge_method=session.code_challenge_method,
        )
        await self.store.save_token(issued)

        location = append_query(session.downstream_redirect_uri, {
            "code": issued.token_value,
            "state": session.downstream_state,
        })
        logger.info(f"[CALLBACK] Token issued for client {session.downstream_client_id}, redirecting")
        return RedirectResponse(url=location, status_code=302)

    # ============== Token Endpoint ==============

    async def token(self, request: Request) -> Response:
        """OAuth 2.0 Token Endpoint.

        The authorization code handed out at /callback is also the access
        token, so a successful exchange returns the code itself.
        """
        params = await read_params(request)
        grant_type = params.get("grant_type")
        code = params.get("code")
        client_id = params.get("client_id")

        logger.debug(f"[TOKEN] grant_type: {grant_type}, client_id: {client_id}")

        if not grant_type or not code or not client_id:
            raise InvalidRequestError("Missing required parameters: grant_type, code, client_id")
        if grant_type != "authorization_code":
            raise UnsupportedGrantTypeError(f"Unsupported grant_type: {grant_type}")

        issued = await self.store.get_token(code)
        if issued is None:
            logger.info(f"[TOKEN] Invalid authorization code: {code[:10]}...")
            raise InvalidGrantError("Invalid or expired authorization code")

        if issued.client_id and issued.client_id != client_id:
            logger.warning(f"[TOKEN] client_id mismatch for code {code[:10]}...")
            raise InvalidGrantError("Authorization code was issued to another client")

        if issued.code_challenge and not verify_pkce(
            params.get("code_verifier", ""), issued.code_challenge, issued.code_challenge_method
        ):
            raise InvalidGrantError("PKCE verification failed")

        logger.info(f"[TOKEN] Access token issued for user: {issued.principal.email or issued.principal.id}")
        return JSONResponse(
            {
                "access_token": issued.token_value,
                "token_type": "Bearer",
                "expires_in": self.store.seconds_remaining(issued),
            },
            headers={"Cache-Control": "no-store", "Pragma": "no-cache"},
        )


# (path, methods, handler name) for every OAuth route
ROUTES = (
    ("/.well-known/oauth-authorization-server", ["GET"], "authorization_server_metadata"),
    ("/.well-known/oauth-protected-resource", ["GET"], "protected_resource_metadata"),
    ("/register", ["POST"], "register"),
    ("/authorize", ["GET", "POST"], "authorize"),
    ("/callback", ["GET"], "callback"),
    ("/token", ["POST"], "token"),
)


def build_router(bridge: OAuthBridge) -> APIRouter:
    """Create the OAuth router with every ROUTES entry bound to `bridge`."""
    router = APIRouter(tags=["oauth"])
    for path, methods, handler in ROUTES:
        router.add_api_route(path, getattr(bridge, handler), methods=methods)
    return router
