"""PKCE (Proof Key for Code Exchange) utilities, RFC 7636."""

import base64
import hashlib
import hmac
from typing import Optional


def compute_challenge(code_verifier: str) -> str:
    """BASE64URL(SHA256(code_verifier)) without padding."""
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")


def verify_pkce(code_verifier: str, code_challenge: str, method: Optional[str] = "S256") -> bool:
    """Check a code_verifier against the challenge recorded at /authorize.

    An absent method means "plain", as RFC 7636 section 4.3 specifies.
    """
    if not code_verifier:
        return False
    if (method or "plain") == "plain":
        expected = code_verifier
    elif method == "S256":
        try:
            expected = compute_challenge(code_verifier)
        except UnicodeEncodeError:
            return False
    else:
        return False
    return hmac.compare_digest(expected.encode("utf-8"), code_challenge.encode("utf-8"))
