"""Signed cookie recording which OAuth clients a browser has approved.

Cookie value: b64(json(client_ids)) + "." + b64(hmac_sha256(key, payload)),
URL-safe base64 with the padding stripped so the value never needs quoting.
"""

import base64
import binascii
import hashlib
import hmac
import json
import logging
from typing import Optional

logger = logging.getLogger(__name__)

APPROVAL_COOKIE_NAME = "mcp-approved-clients"
APPROVAL_COOKIE_MAX_AGE = 365 * 24 * 60 * 60  # 1 year


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64decode(value: str) -> bytes:
    padded = value + "=" * (-len(value) % 4)
    return base64.urlsafe_b64decode(padded.encode("ascii"))


class ApprovalSigner:
    """HMAC-SHA256 signer for the approved-clients cookie."""

    def __init__(self, key: str):
        if not key:
            raise ValueError("Approval signer requires a non-empty key")
        self._key = key.encode("utf-8")

    def _signature(self, payload: str) -> bytes:
        return hmac.new(self._key, payload.encode("ascii"), hashlib.sha256).digest()

    def sign(self, client_ids: list) -> str:
        payload = _b64encode(json.dumps(list(client_ids)).encode("utf-8"))
        return f"{payload}.{_b64encode(self._signature(payload))}"

    def verify(self, cookie_value: Optional[str]) -> Optional[list]:
        """Return the approved client ids, or None if the cookie is not trustworthy."""
        if not cookie_value or "." not in cookie_value:
            return None

        payload, _, signature = cookie_value.rpartition(".")
        try:
            expected = self._signature(payload)
            provided = _b64decode(signature)
        except (UnicodeEncodeError, binascii.Error, ValueError):
            logger.debug("[APPROVAL] Malformed cookie signature")
            return None

        if not hmac.compare_digest(expected, provided):
            logger.debug("[APPROVAL] Cookie signature mismatch")
            return None

        try:
            client_ids = json.loads(_b64decode(payload))
        except (binascii.Error, ValueError):
            logger.debug("[APPROVAL] Malformed cookie payload")
            return None

        if not isinstance(client_ids, list) or not all(isinstance(c, str) for c in client_ids):
            return None
        return client_ids

    def is_approved(self, cookie_value: Optional[str], client_id: str) -> bool:
        approved = self.verify(cookie_value)
        return bool(approved) and client_id in approved

    def approve(self, cookie_value: Optional[str], client_id: str) -> str:
        """Return a freshly signed cookie value with client_id appended.

        An invalid existing cookie is discarded rather than rejected.
        """
        approved = self.verify(cookie_value) or []
        if client_id not in approved:
            approved.append(client_id)
        return self.sign(approved)
