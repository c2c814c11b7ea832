"""Upstream identity provider client (Google or GitHub).

The bridge is an ordinary OAuth client of the provider: it builds the
authorization URL, exchanges the returned code for an access token and
reads the user's profile with it.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional
from urllib.parse import urlencode

import httpx

from oauth.errors import UpstreamError
from oauth.models import Principal

logger = logging.getLogger(__name__)


def _google_profile(data: dict) -> dict:
    return {"id": data["id"], "name": data.get("name"), "email": data.get("email")}


def _github_profile(data: dict) -> dict:
    # GitHub users may hide their name and email; the login is always set.
    return {"id": data["id"], "name": data.get("name") or data.get("login"), "email": data.get("email")}


@dataclass(frozen=True)
class UpstreamProvider:
    """Endpoints and quirks of one identity provider."""

    name: str
    authorize_url: str
    token_url: str
    userinfo_url: str
    scope: str
    parse_profile: Callable[[dict], dict]
    # GitHub historically documents "token <value>" for the Authorization header
    auth_scheme: str = "Bearer"


GOOGLE = UpstreamProvider(
    name="google",
    authorize_url="https://accounts.google.com/o/oauth2/v2/auth",
    token_url="https://oauth2.googleapis.com/token",
    userinfo_url="https://www.googleapis.com/oauth2/v2/userinfo",
    scope="openid email profile",
    parse_profile=_google_profile,
)

GITHUB = UpstreamProvider(
    name="github",
    authorize_url="https://github.com/login/oauth/authorize",
    token_url="https://github.com/login/oauth/access_token",
    userinfo_url="https://api.github.com/user",
    scope="user:email",
    parse_profile=_github_profile,
    auth_scheme="token",
)

PROVIDERS = {p.name: p for p in (GOOGLE, GITHUB)}


def get_provider(name: str) -> UpstreamProvider:
    try:
        return PROVIDERS[name.lower()]
    except KeyError:
        raise ValueError(f"Unknown upstream provider: {name}") from None


@dataclass(frozen=True)
class UpstreamTokens:
    access_token: str
    refresh_token: Optional[str] = None


def _error_summary(data: dict) -> str:
    """Provider error fields only; raw bodies stay in the logs."""
    error = data.get("error") or "unknown_error"
    description = data.get("error_description")
    return f"{error}: {description}" if description else str(error)


class UpstreamClient:
    """Performs the provider-side half of the authorization code grant."""

    def __init__(
        self,
        provider: UpstreamProvider,
        client_id: str,
        client_secret: str,
        hosted_domain: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.provider = provider
        self.client_id = client_id
        self.client_secret = client_secret
        self.hosted_domain = hosted_domain
        self._http_client = http_client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create async HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=30.0)
        return self._http_client

    def authorize_url(self, redirect_uri: str, state: str) -> str:
        params = {
            "response_type": "code",
            "client_id": self.client_id,
            "redirect_uri": redirect_uri,
            "scope": self.provider.scope,
            "state": state,
        }
        if self.hosted_domain and self.provider is GOOGLE:
            params["hd"] = self.hosted_domain
        return f"{self.provider.authorize_url}?{urlencode(params)}"

    async def exchange_code(self, code: str, redirect_uri: str) -> UpstreamTokens:
        """Exchange an upstream authorization code for tokens.

        Raises:
            UpstreamError: On transport failure, non-2xx status, a non-JSON
                body, an error payload, or a missing access_token.
        """
        client = await self._get_client()
        try:
            response = await client.post(
                self.provider.token_url,
                data={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "code": code,
                    "grant_type": "authorization_code",
                    "redirect_uri": redirect_uri,
                },
                headers={"Accept": "application/json"},
            )
        except httpx.HTTPError as e:
            logger.error(f"[UPSTREAM] Token exchange request to {self.provider.name} failed: {e}")
            raise UpstreamError(f"Token exchange with {self.provider.name} failed: {type(e).__name__}") from e

        try:
            data = response.json()
        except ValueError:
            logger.error(
                f"[UPSTREAM] Token exchange returned non-JSON body. "
                f"Status: {response.status_code}, body: {response.text[:500]}"
            )
            raise UpstreamError(
                f"Token exchange with {self.provider.name} returned a malformed response (status {response.status_code})"
            ) from None

        if not response.is_success or not isinstance(data, dict) or data.get("error"):
            logger.error(
                f"[UPSTREAM] Token exchange failed. Status: {response.status_code}, body: {response.text[:500]}"
            )
            summary = _error_summary(data) if isinstance(data, dict) else "unexpected payload"
            raise UpstreamError(
                f"Token exchange with {self.provider.name} failed (status {response.status_code}): {summary}"
            )

        access_token = data.get("access_token")
        if not access_token:
            logger.error(f"[UPSTREAM] Token exchange response without access_token: keys={sorted(data)}")
            raise UpstreamError(f"Token exchange with {self.provider.name} returned no access_token")

        return UpstreamTokens(access_token=access_token, refresh_token=data.get("refresh_token"))

    async def fetch_profile(self, access_token: str) -> Principal:
        """Fetch the authenticated user's profile from the provider.

        Raises:
            UpstreamError: On transport failure, non-2xx status or a malformed profile.
        """
        client = await self._get_client()
        try:
            response = await client.get(
                self.provider.userinfo_url,
                headers={
                    "Authorization": f"{self.provider.auth_scheme} {access_token}",
                    "Accept": "application/json",
                    "User-Agent": "mcp-oauth-bridge/1.0",
                },
            )
        except httpx.HTTPError as e:
            logger.error(f"[UPSTREAM] Profile request to {self.provider.name} failed: {e}")
            raise UpstreamError(f"Failed to fetch user info: {type(e).__name__}") from e

        if not response.is_success:
            logger.error(
                f"[UPSTREAM] Failed to fetch user info. Status: {response.status_code}, body: {response.text[:500]}"
            )
            raise UpstreamError(f"Failed to fetch user info (status {response.status_code})")

        try:
            profile = self.provider.parse_profile(response.json())
        except (ValueError, KeyError, TypeError, AttributeError):
            logger.error(f"[UPSTREAM] Malformed user info payload: {response.text[:500]}")
            raise UpstreamError("Failed to fetch user info: malformed profile") from None

        if profile["id"] is None or str(profile["id"]).strip() == "":
            logger.error(f"[UPSTREAM] User info payload without a user id: {response.text[:500]}")
            raise UpstreamError("Failed to fetch user info: malformed profile")

        return Principal(
            id=str(profile["id"]),
            display_name=profile.get("name") or "",
            email=profile.get("email") or "",
            upstream_access_token=access_token,
        )

    async def close(self) -> None:
        """Close the async HTTP client."""
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None
