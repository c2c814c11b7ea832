"""
Shared test fixtures for the MCP OAuth bridge test suite.

Key fixtures:
- clock: A controllable time source injected into the session store
- provider: A fake Google endpoint served through httpx.MockTransport
- app / client: The full FastAPI app driven in-memory via httpx.ASGITransport
- register_client / login: Factory fixtures for the registration and
  browser login steps most endpoint tests start from

No network is used: upstream calls hit the fake provider and downstream
calls go straight into the ASGI app.
"""

from urllib.parse import parse_qs, urlsplit

import httpx
import pytest
from key_value.aio.stores.memory import MemoryStore

from config import Config
from main import create_app
from oauth.stores import SessionStore
from oauth.upstream import GOOGLE, UpstreamClient

SERVER_URL = "http://localhost:8787"
UPSTREAM_CLIENT_ID = "google-client-id"
UPSTREAM_CLIENT_SECRET = "google-client-secret"
COOKIE_SECRET = "test-cookie-secret"
REDIRECT_URI = "http://localhost:6274/cb"


class FakeClock:
    """Callable clock whose time only moves when a test advances it."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeProvider:
    """In-memory stand-in for Google's token and userinfo endpoints.

    Tests tweak the status/body attributes to simulate provider failures;
    every request is recorded for assertions.
    """

    def __init__(self):
        self.token_status = 200
        self.token_body = {
            "access_token": "upstream-access-token",
            "refresh_token": "upstream-refresh-token",
            "token_type": "Bearer",
        }
        self.profile_status = 200
        self.profile_body = {"id": "1234567890", "name": "Ada Lovelace", "email": "ada@example.com"}
        self.requests = []

    @staticmethod
    def _respond(status: int, body) -> httpx.Response:
        if isinstance(body, (dict, list)):
            return httpx.Response(status, json=body)
        return httpx.Response(status, text=body)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if str(request.url).startswith(GOOGLE.token_url):
            return self._respond(self.token_status, self.token_body)
        if str(request.url).startswith(GOOGLE.userinfo_url):
            return self._respond(self.profile_status, self.profile_body)
        return httpx.Response(404, json={"error": "not_found"})


def make_config(**overrides) -> Config:
    data = {
        "server_url": SERVER_URL,
        "upstream_provider": "google",
        "upstream_client_id": UPSTREAM_CLIENT_ID,
        "upstream_client_secret": UPSTREAM_CLIENT_SECRET,
        "cookie_secret": COOKIE_SECRET,
    }
    data.update(overrides)
    return Config(data)


@pytest.fixture
def config():
    return make_config()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def kv():
    return MemoryStore()


@pytest.fixture
def store(kv, config, clock):
    """A SessionStore sharing the app's backend and clock."""
    return SessionStore.from_config(config, kv=kv, clock=clock)


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def upstream(provider):
    return UpstreamClient(
        GOOGLE,
        client_id=UPSTREAM_CLIENT_ID,
        client_secret=UPSTREAM_CLIENT_SECRET,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(provider)),
    )


@pytest.fixture
def app(config, kv, upstream, clock):
    return create_app(config, kv=kv, upstream=upstream, clock=clock)


@pytest.fixture
async def client(app):
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver") as c:
        yield c


def query_of(location: str) -> dict:
    """Flatten a redirect URL's query string into a dict."""
    return {k: v[0] for k, v in parse_qs(urlsplit(location).query).items()}


@pytest.fixture
def register_client(client):
    """Factory fixture: register a client and return the registration JSON."""

    async def _register(redirect_uris=None, **metadata) -> dict:
        body = {"redirect_uris": redirect_uris or [REDIRECT_URI], **metadata}
        response = await client.post("/register", json=body)
        assert response.status_code == 201, response.text
        return response.json()

    return _register


@pytest.fixture
def login(client):
    """Factory fixture: approve consent, complete the upstream callback.

    Returns the /callback response (a redirect back to the MCP client).
    """

    async def _login(client_id: str, redirect_uri: str = REDIRECT_URI, state: str = "xyz", **extra):
        form = {
            "client_id": client_id,
            "redirect_uri": redirect_uri,
            "response_type": "code",
            "state": state,
            "action": "approve",
            **extra,
        }
        authorize = await client.post("/authorize", data=form)
        assert authorize.status_code == 302, authorize.text
        session_id = query_of(authorize.headers["location"])["state"]
        return await client.get("/callback", params={"code": "upstream-code", "state": session_id})

    return _login
