"""
Unit tests for the approved-clients cookie signer (oauth/signer.py).

verify() must never raise: every malformed or tampered cookie simply reads
as "no approvals".
"""

import json

import pytest

from oauth.signer import ApprovalSigner, _b64encode


@pytest.fixture
def signer():
    return ApprovalSigner("test-cookie-secret")


class TestSignVerify:
    def test_round_trip(self, signer):
        value = signer.sign(["client-a", "client-b"])

        assert signer.verify(value) == ["client-a", "client-b"]

    def test_value_needs_no_cookie_quoting(self, signer):
        value = signer.sign(["c" * 50, "client/with+chars"])

        assert "=" not in value
        assert all(ch.isalnum() or ch in "-_." for ch in value)

    def test_other_key_rejected(self, signer):
        value = ApprovalSigner("another-secret").sign(["client-a"])

        assert signer.verify(value) is None

    def test_tampered_payload_rejected(self, signer):
        value = signer.sign(["client-a"])
        _, _, signature = value.partition(".")
        forged = _b64encode(json.dumps(["client-a", "evil"]).encode()) + "." + signature

        assert signer.verify(forged) is None

    def test_tampered_signature_rejected(self, signer):
        payload, _, signature = signer.sign(["client-a"]).partition(".")
        flipped = ("A" if signature[0] != "A" else "B") + signature[1:]

        assert signer.verify(f"{payload}.{flipped}") is None

    @pytest.mark.parametrize("value", [None, "", "no-dot-here", ".", "!!!.???", "abc.é"])
    def test_malformed_values_read_as_none(self, signer, value):
        assert signer.verify(value) is None

    def test_signed_non_list_payload_rejected(self, signer):
        payload = _b64encode(json.dumps({"client": "a"}).encode())
        value = f"{payload}.{_b64encode(signer._signature(payload))}"

        assert signer.verify(value) is None

    def test_signed_invalid_json_rejected(self, signer):
        payload = _b64encode(b"not json")
        value = f"{payload}.{_b64encode(signer._signature(payload))}"

        assert signer.verify(value) is None

    def test_empty_key_refused(self):
        with pytest.raises(ValueError):
            ApprovalSigner("")


class TestApprove:
    def test_appends_client(self, signer):
        value = signer.approve(signer.sign(["client-a"]), "client-b")

        assert signer.verify(value) == ["client-a", "client-b"]
        assert signer.is_approved(value, "client-b")

    def test_no_duplicates(self, signer):
        value = signer.approve(signer.sign(["client-a"]), "client-a")

        assert signer.verify(value) == ["client-a"]

    def test_invalid_existing_cookie_discarded(self, signer):
        value = signer.approve("garbage.cookie", "client-a")

        assert signer.verify(value) == ["client-a"]

    def test_is_approved_false_without_cookie(self, signer):
        assert not signer.is_approved(None, "client-a")
        assert not signer.is_approved(signer.sign([]), "client-a")
