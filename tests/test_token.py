"""Tests for the token endpoint (/token)."""

import pytest

from conftest import query_of
from oauth.pkce import compute_challenge

VERIFIER = "dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk"


@pytest.fixture
async def code(login):
    callback = await login("client-a")
    return query_of(callback.headers["location"])["code"]


class TestTokenExchange:
    async def test_exchange_returns_code_as_access_token(self, client, code):
        response = await client.post(
            "/token", data={"grant_type": "authorization_code", "code": code, "client_id": "client-a"}
        )

        assert response.status_code == 200
        assert response.headers["cache-control"] == "no-store"
        body = response.json()
        assert body["access_token"] == code
        assert body["token_type"] == "Bearer"
        assert body["expires_in"] == 604800

    async def test_expires_in_counts_down(self, client, code, clock):
        clock.advance(3600)

        response = await client.post(
            "/token", data={"grant_type": "authorization_code", "code": code, "client_id": "client-a"}
        )

        assert response.json()["expires_in"] == 604800 - 3600

    async def test_repeated_exchange_succeeds(self, client, code):
        form = {"grant_type": "authorization_code", "code": code, "client_id": "client-a"}

        first = await client.post("/token", data=form)
        second = await client.post("/token", data=form)

        assert first.json()["access_token"] == second.json()["access_token"] == code

    async def test_json_body_accepted(self, client, code):
        response = await client.post(
            "/token", json={"grant_type": "authorization_code", "code": code, "client_id": "client-a"}
        )

        assert response.status_code == 200


class TestTokenErrors:
    @pytest.mark.parametrize("missing", ["grant_type", "code", "client_id"])
    async def test_missing_parameter(self, client, missing):
        form = {"grant_type": "authorization_code", "code": "mcp_x", "client_id": "client-a"}
        del form[missing]

        response = await client.post("/token", data=form)

        assert response.status_code == 400
        assert response.json()["error"] == "invalid_request"

    async def test_unsupported_grant_type(self, client):
        response = await client.post(
            "/token", data={"grant_type": "password", "code": "mcp_x", "client_id": "client-a"}
        )

        assert response.status_code == 400
        assert response.json()["error"] == "unsupported_grant_type"

    async def test_unknown_code(self, client):
        response = await client.post(
            "/token", data={"grant_type": "authorization_code", "code": "mcp_unknown", "client_id": "client-a"}
        )

        assert response.status_code == 400
        assert response.json()["error"] == "invalid_grant"

    async def test_expired_code(self, client, code, clock):
        clock.advance(604801)

        response = await client.post(
            "/token", data={"grant_type": "authorization_code", "code": code, "client_id": "client-a"}
        )

        assert response.json()["error"] == "invalid_grant"

    async def test_other_client_rejected(self, client, code):
        response = await client.post(
            "/token", data={"grant_type": "authorization_code", "code": code, "client_id": "client-b"}
        )

        assert response.status_code == 400
        assert response.json()["error"] == "invalid_grant"

    async def test_get_not_allowed(self, client):
        assert (await client.get("/token")).status_code == 405


class TestPKCE:
    @pytest.fixture
    async def pkce_code(self, login):
        callback = await login("client-a", code_challenge=compute_challenge(VERIFIER), code_challenge_method="S256")
        return query_of(callback.headers["location"])["code"]

    async def test_matching_verifier(self, client, pkce_code):
        response = await client.post("/token", data={
            "grant_type": "authorization_code",
            "code": pkce_code,
            "client_id": "client-a",
            "code_verifier": VERIFIER,
        })

        assert response.status_code == 200

    @pytest.mark.parametrize("verifier", [None, "wrong-verifier"])
    async def test_missing_or_wrong_verifier(self, client, pkce_code, verifier):
        form = {"grant_type": "authorization_code", "code": pkce_code, "client_id": "client-a"}
        if verifier:
            form["code_verifier"] = verifier

        response = await client.post("/token", data=form)

        assert response.status_code == 400
        assert response.json() == {"error": "invalid_grant", "error_description": "PKCE verification failed"}
