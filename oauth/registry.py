"""OAuth 2.0 Dynamic Client Registration (RFC 7591).

Registration is deliberately permissive: any well-formed request gets a new
client, so inspector-style tools can discover and register on the fly.
"""

import logging
import secrets
import uuid

from oauth.errors import InvalidRequestError
from oauth.models import ClientRegistration
from oauth.stores import SessionStore

logger = logging.getLogger(__name__)


class ClientRegistry:
    def __init__(self, store: SessionStore):
        self.store = store

    async def register(self, metadata) -> ClientRegistration:
        """Validate client metadata, mint credentials and persist the client.

        Raises:
            InvalidRequestError: If the body is not an object or redirect_uris
                is missing or not a list of strings.
        """
        if not isinstance(metadata, dict):
            raise InvalidRequestError("Registration body must be a JSON object")

        redirect_uris = metadata.get("redirect_uris")
        if not isinstance(redirect_uris, list) or not all(isinstance(u, str) for u in redirect_uris):
            raise InvalidRequestError("redirect_uris must be a list of strings")

        client_name = metadata.get("client_name")
        client = ClientRegistration(
            client_id=str(uuid.uuid4()),
            client_secret=secrets.token_urlsafe(32),
            redirect_uris=redirect_uris,
            issued_at=int(self.store.clock()),
            client_name=client_name if isinstance(client_name, str) else None,
        )
        await self.store.save_client(client)
        logger.info(f"[REGISTER] Client registered: {client.client_id} ({client.client_name or 'unnamed'})")
        return client

    async def lookup(self, client_id: str):
        return await self.store.get_client(client_id)
