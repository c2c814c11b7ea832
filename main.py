"""MCP OAuth Bridge - authorization server in front of an MCP endpoint.

It handles:
- OAuth discovery, client registration, authorization and token endpoints (oauth/)
- Login delegation to the upstream provider (Google or GitHub)
- MCP protocol endpoint via Streamable HTTP (/mcp), Bearer-protected
- MCP tools via tools.py

MCP clients register, authorize through the browser and then call /mcp with
the access token the bridge minted for them.
"""
import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI
from starlette.middleware import Middleware

from config import Config, load_config
from logging_config import setup_logging
from oauth.endpoints import OAuthBridge, build_router
from oauth.errors import OAuthError, oauth_error_handler
from oauth.middleware import CORSHeadersMiddleware, MCPOAuthMiddleware
from oauth.signer import ApprovalSigner
from oauth.stores import SessionStore
from oauth.upstream import UpstreamClient, get_provider
from oauth.verifier import TokenVerifier
from tools import create_mcp

logger = logging.getLogger(__name__)

SERVICE_NAME = "mcp-oauth-bridge"
VERSION = "1.0.0"


def create_app(config: Config = None, kv=None, upstream: UpstreamClient = None, clock=time.time) -> FastAPI:
    """Wire the store, signer, upstream client and routes into one FastAPI app.

    Args:
        config: Settings; loaded from the environment when omitted
        kv: Key-value backend; selected from config when omitted
        upstream: Provider client; built from config when omitted
        clock: Time source for session and token expiry
    """
    config = config or load_config()

    store = SessionStore.from_config(config, kv=kv, clock=clock)
    signer = ApprovalSigner(config.cookie_secret)
    if upstream is None:
        upstream = UpstreamClient(
            get_provider(config.upstream_provider),
            client_id=config.upstream_client_id,
            client_secret=config.upstream_client_secret,
            hosted_domain=config.hosted_domain,
        )
    bridge = OAuthBridge(config, store, signer, upstream)

    if not config.is_valid():
        logger.warning("[STARTUP] Upstream client credentials are not configured; logins will fail")
    logger.info(f"[STARTUP] SERVER_URL: {config.server_url}")
    logger.info(f"[STARTUP] Upstream provider: {upstream.provider.name}, storage: {config.storage_type}")

    # ============== Streamable HTTP MCP App ==============
    # Created before the FastAPI app because its lifespan is needed there
    mcp = create_mcp(SERVICE_NAME)
    mcp_http_app = mcp.http_app(
        path="/",
        transport="streamable-http",
        middleware=[
            Middleware(
                MCPOAuthMiddleware,
                verifier=TokenVerifier(store),
                server_url=config.server_url,
                allowed_users=config.allowed_users,
            )
        ],
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Required for FastMCP task group initialization
        async with mcp_http_app.lifespan(app):
            yield
        await upstream.close()

    app = FastAPI(
        title="MCP OAuth Bridge",
        description="OAuth 2.0 authorization bridge for MCP clients",
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.bridge = bridge
    app.add_exception_handler(OAuthError, oauth_error_handler)
    app.add_middleware(CORSHeadersMiddleware)
    app.include_router(build_router(bridge))
    app.mount("/mcp", mcp_http_app)

    # ============== Server Info Endpoints ==============

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "service": SERVICE_NAME}

    @app.get("/")
    async def root():
        """Root endpoint with server info."""
        return {
            "name": "MCP OAuth Bridge",
            "version": VERSION,
            "endpoints": {"streamable_http": "/mcp"},
            "upstream_provider": upstream.provider.name,
            "oauth": {
                "protected_resource": f"{config.server_url}/.well-known/oauth-protected-resource",
                "authorization_server": f"{config.server_url}/.well-known/oauth-authorization-server",
            },
        }

    return app


# ============== Main Entry Point ==============

def run():
    import uvicorn

    config = load_config()
    setup_logging(level=config.log_level, log_format=config.log_format, service_name=SERVICE_NAME)
    logger.info(f"Starting MCP OAuth bridge on {config.host}:{config.port}")
    logger.info("Streamable HTTP endpoint: /mcp")
    uvicorn.run(create_app(config), host=config.host, port=config.port)


if __name__ == "__main__":
    run()
