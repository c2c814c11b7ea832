"""Records persisted by the OAuth bridge.

Each record round-trips through a plain dict so it can live in any
key-value backend (memory, redis, ...).
"""

from dataclasses import asdict, dataclass, field
from typing import Optional


@dataclass(frozen=True)
class Principal:
    """The authenticated end user behind an issued token.

    Attributes:
        id: Upstream user identifier (Google sub / GitHub numeric id)
        display_name: Human name, or the login when the provider has none
        email: Primary email; may be empty when the provider hides it
        upstream_access_token: Credential for calling the provider on the user's behalf
    """

    id: str
    display_name: str
    email: str
    upstream_access_token: str

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Principal":
        return cls(
            id=str(data["id"]),
            display_name=data.get("display_name") or "",
            email=data.get("email") or "",
            upstream_access_token=data.get("upstream_access_token") or "",
        )


@dataclass(frozen=True)
class ClientRegistration:
    client_id: str
    client_secret: str
    redirect_uris: list
    issued_at: int
    client_name: Optional[str] = None
    grant_types: list = field(default_factory=lambda: ["authorization_code"])
    response_types: list = field(default_factory=lambda: ["code"])
    token_endpoint_auth_method: str = "client_secret_post"

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "ClientRegistration":
        return cls(
            client_id=data["client_id"],
            client_secret=data["client_secret"],
            redirect_uris=list(data.get("redirect_uris") or []),
            issued_at=int(data["issued_at"]),
            client_name=data.get("client_name"),
            grant_types=list(data.get("grant_types") or ["authorization_code"]),
            response_types=list(data.get("response_types") or ["code"]),
            token_endpoint_auth_method=data.get("token_endpoint_auth_method", "client_secret_post"),
        )

    def to_response(self) -> dict:
        """Registration document returned from /register (RFC 7591 section 3.2.1)."""
        body = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "client_id_issued_at": self.issued_at,
            "client_secret_expires_at": 0,
            "redirect_uris": self.redirect_uris,
            "grant_types": self.grant_types,
            "response_types": self.response_types,
            "token_endpoint_auth_method": self.token_endpoint_auth_method,
        }
        if self.client_name:
            body["client_name"] = self.client_name
        return body


@dataclass(frozen=True)
class AuthorizationSession:
    """Pending downstream authorization, keyed by the upstream `state`."""

    session_id: str
    downstream_redirect_uri: str
    downstream_state: str
    downstream_client_id: str
    created_at: float
    scope: Optional[str] = None
    code_challenge: Optional[str] = None
    code_challenge_method: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "AuthorizationSession":
        return cls(
            session_id=data["session_id"],
            downstream_redirect_uri=data["downstream_redirect_uri"],
            downstream_state=data["downstream_state"],
            downstream_client_id=data["downstream_client_id"],
            created_at=float(data["created_at"]),
            scope=data.get("scope"),
            code_challenge=data.get("code_challenge"),
            code_challenge_method=data.get("code_challenge_method"),
        )


@dataclass(frozen=True)
class IssuedToken:
    """Opaque downstream token minted after a successful upstream login."""

    token_value: str
    principal: Principal
    upstream_access_token: str
    created_at: float
    client_id: str = ""
    upstream_refresh_token: Optional[str] = None
    code_challenge: Optional[str] = None
    code_challenge_method: Optional[str] = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["principal"] = self.principal.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "IssuedToken":
        return cls(
            token_value=data["token_value"],
            principal=Principal.from_dict(data["principal"]),
            upstream_access_token=data.get("upstream_access_token") or "",
            created_at=float(data["created_at"]),
            client_id=data.get("client_id") or "",
            upstream_refresh_token=data.get("upstream_refresh_token"),
            code_challenge=data.get("code_challenge"),
            code_challenge_method=data.get("code_challenge_method"),
        )
