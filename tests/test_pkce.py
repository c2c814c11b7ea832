"""Tests for PKCE verification (oauth/pkce.py)."""

from oauth.pkce import compute_challenge, verify_pkce

# RFC 7636 Appendix B
RFC_VERIFIER = "dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk"
RFC_CHALLENGE = "E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM"


class TestPKCE:
    def test_rfc_vector(self):
        assert compute_challenge(RFC_VERIFIER) == RFC_CHALLENGE

    def test_s256_match(self):
        assert verify_pkce(RFC_VERIFIER, RFC_CHALLENGE, "S256")

    def test_s256_mismatch(self):
        assert not verify_pkce("wrong-verifier", RFC_CHALLENGE, "S256")

    def test_plain_and_missing_method(self):
        assert verify_pkce("same-value", "same-value", "plain")
        assert verify_pkce("same-value", "same-value", None)
        assert not verify_pkce("other", "same-value", None)

    def test_unknown_method_rejected(self):
        assert not verify_pkce(RFC_VERIFIER, RFC_CHALLENGE, "S512")

    def test_empty_verifier_rejected(self):
        assert not verify_pkce("", RFC_CHALLENGE, "S256")

    def test_non_ascii_verifier_rejected(self):
        assert not verify_pkce("vérifier", RFC_CHALLENGE, "S256")
        assert not verify_pkce("vérifier", "verifier", "plain")
