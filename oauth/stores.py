"""Key-value persistence for OAuth sessions, tokens and client registrations.

Everything that has to survive between requests lives here. The backend is
any `AsyncKeyValue` (in-memory for development, redis in production); this
module only relies on get / put-with-ttl / delete.

Key layout (single collection):
    session:<session_id>    AuthorizationSession   TTL 1 hour
    mcp_token:<token>       IssuedToken            TTL 7 days
    client:<client_id>      ClientRegistration     TTL 30 days (soft)

Expiry is also checked lazily on read from the record's own `created_at`, so
correctness does not depend on the backend's TTL garbage collection.
"""

import logging
import time
from typing import TYPE_CHECKING, Callable, Optional

from config import Config
from oauth.errors import ServerError
from oauth.models import AuthorizationSession, ClientRegistration, IssuedToken

if TYPE_CHECKING:
    from key_value.aio.protocols.key_value import AsyncKeyValue

logger = logging.getLogger(__name__)

COLLECTION = "mcp-oauth"

SESSION_PREFIX = "session:"
TOKEN_PREFIX = "mcp_token:"
CLIENT_PREFIX = "client:"


def create_kv_store(config: Config) -> "AsyncKeyValue":
    """Create the key-value backend selected by OAUTH_STORAGE_TYPE.

    Raises:
        ValueError: If the storage type is unknown
    """
    storage_type = config.storage_type
    logger.info(f"[STARTUP] Creating storage backend: type={storage_type}")

    if storage_type == "memory":
        from key_value.aio.stores.memory import MemoryStore

        return MemoryStore()

    if storage_type == "redis":
        from key_value.aio.stores.redis import RedisStore

        return RedisStore(url=config.redis_url)

    raise ValueError(f"Unknown storage type: {storage_type}")


class SessionStore:
    """Typed access to the OAuth records kept in the key-value backend."""

    def __init__(
        self,
        kv: "AsyncKeyValue",
        session_ttl: int,
        token_ttl: int,
        client_ttl: int,
        clock: Callable[[], float] = time.time,
    ):
        self._kv = kv
        self.session_ttl = session_ttl
        self.token_ttl = token_ttl
        self.client_ttl = client_ttl
        self.clock = clock

    @classmethod
    def from_config(cls, config: Config, kv: "AsyncKeyValue" = None, clock: Callable[[], float] = time.time) -> "SessionStore":
        return cls(
            kv if kv is not None else create_kv_store(config),
            session_ttl=config.session_ttl,
            token_ttl=config.token_ttl,
            client_ttl=config.client_ttl,
            clock=clock,
        )

    # ---- raw primitives ----

    async def get(self, key: str) -> Optional[dict]:
        try:
            return await self._kv.get(key, collection=COLLECTION)
        except Exception as e:
            logger.error(f"[STORE] get failed for {key.split(':', 1)[0]}: {e}")
            raise ServerError("Session store unavailable") from e

    async def put(self, key: str, value: dict, ttl: int) -> None:
        try:
            await self._kv.put(key, value, collection=COLLECTION, ttl=ttl)
        except Exception as e:
            logger.error(f"[STORE] put failed for {key.split(':', 1)[0]}: {e}")
            raise ServerError("Session store unavailable") from e

    async def delete(self, key: str) -> None:
        try:
            await self._kv.delete(key, collection=COLLECTION)
        except Exception as e:
            logger.error(f"[STORE] delete failed for {key.split(':', 1)[0]}: {e}")
            raise ServerError("Session store unavailable") from e

    def _expired(self, created_at: float, ttl: int) -> bool:
        return created_at + ttl < self.clock()

    # ---- authorization sessions ----

    async def save_session(self, session: AuthorizationSession) -> None:
        await self.put(SESSION_PREFIX + session.session_id, session.to_dict(), self.session_ttl)

    async def get_session(self, session_id: str) -> Optional[AuthorizationSession]:
        data = await self.get(SESSION_PREFIX + session_id)
        if data is None:
            return None
        session = AuthorizationSession.from_dict(data)
        if self._expired(session.created_at, self.session_ttl):
            await self.delete(SESSION_PREFIX + session_id)
            return None
        return session

    async def consume_session(self, session_id: str) -> Optional[AuthorizationSession]:
        """Return the session and delete it so the same `state` cannot be replayed."""
        session = await self.get_session(session_id)
        if session is not None:
            await self.delete(SESSION_PREFIX + session_id)
        return session

    # ---- issued tokens ----

    async def save_token(self, token: IssuedToken) -> None:
        await self.put(TOKEN_PREFIX + token.token_value, token.to_dict(), self.token_ttl)

    async def get_token(self, token_value: str) -> Optional[IssuedToken]:
        data = await self.get(TOKEN_PREFIX + token_value)
        if data is None:
            return None
        token = IssuedToken.from_dict(data)
        if self._expired(token.created_at, self.token_ttl):
            logger.info(f"[STORE] Token expired, deleting: {token_value[:10]}...")
            await self.delete(TOKEN_PREFIX + token_value)
            return None
        return token

    async def delete_token(self, token_value: str) -> None:
        await self.delete(TOKEN_PREFIX + token_value)

    def seconds_remaining(self, token: IssuedToken) -> int:
        return max(0, int(token.created_at + self.token_ttl - self.clock()))

    # ---- client registrations ----

    async def save_client(self, client: ClientRegistration) -> None:
        await self.put(CLIENT_PREFIX + client.client_id, client.to_dict(), self.client_ttl)

    async def get_client(self, client_id: str) -> Optional[ClientRegistration]:
        data = await self.get(CLIENT_PREFIX + client_id)
        if data is None:
            return None
        return ClientRegistration.from_dict(data)
