"""Config management for the MCP OAuth bridge.

All settings come from the environment. A local `.env` file is loaded first
when present so development setups don't need exported variables.
"""
import logging
import os
import secrets
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


logger = logging.getLogger(__name__)

DEFAULT_SERVER_URL = "http://localhost:8787"

SESSION_TTL_SECONDS = 60 * 60  # 1 hour
TOKEN_TTL_SECONDS = 7 * 24 * 60 * 60  # 7 days
CLIENT_TTL_SECONDS = 30 * 24 * 60 * 60  # 30 days


def _as_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _as_set(value: Optional[str]) -> frozenset:
    if not value:
        return frozenset()
    return frozenset(item.strip() for item in value.split(",") if item.strip())


class Config:
    """Configuration container."""

    def __init__(self, data: dict = None):
        self.data = data or {}

    @property
    def server_url(self) -> str:
        return (self.data.get("server_url") or DEFAULT_SERVER_URL).rstrip("/")

    @property
    def host(self) -> str:
        return self.data.get("host", "0.0.0.0")

    @property
    def port(self) -> int:
        return int(self.data.get("port", 8787))

    @property
    def upstream_provider(self) -> str:
        return (self.data.get("upstream_provider") or "google").lower()

    @property
    def upstream_client_id(self) -> str:
        return self.data.get("upstream_client_id", "")

    @property
    def upstream_client_secret(self) -> str:
        return self.data.get("upstream_client_secret", "")

    @property
    def hosted_domain(self) -> Optional[str]:
        return self.data.get("hosted_domain") or None

    @property
    def cookie_secret(self) -> str:
        # Generated once per Config so an unset key still signs consistently
        # for the lifetime of the process.
        if not self.data.get("cookie_secret"):
            logger.warning("[STARTUP] COOKIE_ENCRYPTION_KEY not set, using a generated key")
            self.data["cookie_secret"] = secrets.token_urlsafe(32)
        return self.data["cookie_secret"]

    @property
    def allowed_users(self) -> frozenset:
        return frozenset(self.data.get("allowed_users", ()))

    @property
    def require_registered_clients(self) -> bool:
        return bool(self.data.get("require_registered_clients", False))

    @property
    def storage_type(self) -> str:
        return (self.data.get("storage_type") or "memory").lower()

    @property
    def redis_url(self) -> str:
        return self.data.get("redis_url") or "redis://localhost:6379"

    @property
    def session_ttl(self) -> int:
        return int(self.data.get("session_ttl", SESSION_TTL_SECONDS))

    @property
    def token_ttl(self) -> int:
        return int(self.data.get("token_ttl", TOKEN_TTL_SECONDS))

    @property
    def client_ttl(self) -> int:
        return int(self.data.get("client_ttl", CLIENT_TTL_SECONDS))

    @property
    def log_level(self) -> str:
        return (self.data.get("log_level") or "INFO").upper()

    @property
    def log_format(self) -> str:
        return (self.data.get("log_format") or "plain").lower()

    @property
    def cookie_secure(self) -> bool:
        return self.server_url.startswith("https://")

    def is_valid(self) -> bool:
        """Check if the upstream credentials needed for a login are present."""
        return bool(self.upstream_client_id and self.upstream_client_secret)


def load_config(env_file: Optional[Path] = None) -> Config:
    """Build a Config from environment variables (and `.env` if present)."""
    env_path = env_file or Path(".env")
    if env_path.exists():
        load_dotenv(env_path)

    provider = os.getenv("UPSTREAM_PROVIDER", "google").lower()
    # Provider-specific variable names are accepted as a fallback.
    prefix = "GITHUB" if provider == "github" else "GOOGLE"

    data = {
        "server_url": os.getenv("SERVER_URL", DEFAULT_SERVER_URL),
        "host": os.getenv("MCP_HOST", "0.0.0.0"),
        "port": int(os.getenv("MCP_PORT", "8787")),
        "upstream_provider": provider,
        "upstream_client_id": os.getenv("UPSTREAM_CLIENT_ID") or os.getenv(f"{prefix}_CLIENT_ID", ""),
        "upstream_client_secret": os.getenv("UPSTREAM_CLIENT_SECRET") or os.getenv(f"{prefix}_CLIENT_SECRET", ""),
        "hosted_domain": os.getenv("HOSTED_DOMAIN", ""),
        "cookie_secret": os.getenv("COOKIE_ENCRYPTION_KEY", ""),
        "allowed_users": _as_set(os.getenv("ALLOWED_USERS")),
        "require_registered_clients": _as_bool(os.getenv("REQUIRE_REGISTERED_CLIENTS")),
        "storage_type": os.getenv("OAUTH_STORAGE_TYPE", "memory"),
        "redis_url": os.getenv("REDIS_URL", ""),
        "session_ttl": int(os.getenv("SESSION_TTL_SECONDS", str(SESSION_TTL_SECONDS))),
        "token_ttl": int(os.getenv("TOKEN_TTL_SECONDS", str(TOKEN_TTL_SECONDS))),
        "client_ttl": int(os.getenv("CLIENT_TTL_SECONDS", str(CLIENT_TTL_SECONDS))),
        "log_level": os.getenv("LOG_LEVEL", "INFO"),
        "log_format": os.getenv("LOG_FORMAT", "plain"),
    }
    return Config(data)
