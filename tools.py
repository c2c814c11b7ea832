"""MCP tools exposed behind the OAuth bridge.

The tool surface is intentionally small: it shows how a tool reads the
authenticated principal that MCPOAuthMiddleware attached to the request.
"""

import logging

from fastmcp import FastMCP
from fastmcp.server.dependencies import get_http_request

from oauth.models import Principal

logger = logging.getLogger(__name__)


def format_user_info(principal: Principal) -> str:
    return f"User: {principal.display_name or principal.id}\nEmail: {principal.email or 'not shared'}"


def create_mcp(name: str = "mcp-oauth-bridge") -> FastMCP:
    """Create the FastMCP server instance with its tools registered."""
    mcp = FastMCP(name)

    @mcp.tool()
    def whoami() -> str:
        """Describe the user this MCP session is authenticated as.

        Returns:
            The user's display name and email
        """
        principal = getattr(get_http_request().state, "principal", None)
        if principal is None:
            raise ValueError("User not authenticated")
        logger.info(f"[TOOL] whoami invoked by {principal.id}")
        return format_user_info(principal)

    @mcp.tool()
    def add(a: int, b: int) -> str:
        """Add two numbers.

        Args:
            a: First addend
            b: Second addend
        """
        logger.info("[TOOL] add invoked")
        return f"{a} + {b} = {a + b}"

    return mcp
