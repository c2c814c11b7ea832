"""Bearer token verification for protected routes."""

import logging
from typing import Iterable, Optional

from oauth.models import Principal
from oauth.stores import SessionStore

logger = logging.getLogger(__name__)


class TokenVerifier:
    """Resolves a downstream bearer token to the Principal it was issued for.

    Performs one store read per call, plus a delete when the token has expired.
    """

    def __init__(self, store: SessionStore):
        self.store = store

    async def verify(self, token: str) -> Optional[Principal]:
        if not token:
            return None
        issued = await self.store.get_token(token)
        if issued is None:
            logger.debug(f"[AUTH] Unknown or expired token: {token[:10]}...")
            return None
        return issued.principal


def is_authorized(principal: Principal, allowed: Iterable[str]) -> bool:
    """Check a principal against an allow-list of user ids or emails.

    An empty allow-list admits every authenticated principal.
    """
    allowed = {entry.lower() for entry in allowed}
    if not allowed:
        return True
    if principal.id.lower() in allowed:
        return True
    return bool(principal.email) and principal.email.lower() in allowed
