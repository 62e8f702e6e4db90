"""Records owned by the registry, the stores and the session."""

from dataclasses import asdict, dataclass, field
from typing import Mapping, Optional

from oauth_server.errors import MalformedRequest, UnsupportedResponseType

AUTHORIZATION_CODE = "authorization_code"
PASSWORD = "password"
DEFAULT_GRANT_TYPES = (AUTHORIZATION_CODE, PASSWORD)


@dataclass(frozen=True)
class Client:
    client_id: str
    client_secret: str
    redirect_domain: str
    grant_types: tuple = DEFAULT_GRANT_TYPES

    def allows(self, grant_type: str) -> bool:
        return grant_type in self.grant_types


@dataclass(frozen=True)
class PendingAuthorizationRequest:
    """Parameters of an /authorize call parked across the login redirect."""

    client_id: str
    redirect_uri: str
    response_type: str = "code"
    scope: str = ""
    state: str = ""
    form: dict = field(default_factory=dict)

    @classmethod
    def from_form(cls, form: Mapping[str, str]) -> "PendingAuthorizationRequest":
        """Build from inbound query/form parameters, rejecting malformed ones."""
        response_type = form.get("response_type") or ""
        client_id = form.get("client_id") or ""
        redirect_uri = form.get("redirect_uri") or ""

        if not client_id:
            raise MalformedRequest("Missing client_id")
        if not redirect_uri:
            raise MalformedRequest("Missing redirect_uri")
        if response_type != "code":
            raise UnsupportedResponseType()

        return cls(
            client_id=client_id,
            redirect_uri=redirect_uri,
            response_type=response_type,
            scope=form.get("scope") or "",
            state=form.get("state") or "",
            form=dict(form),
        )

    @classmethod
    def from_dict(cls, data: Mapping) -> "PendingAuthorizationRequest":
        try:
            return cls(
                client_id=data["client_id"],
                redirect_uri=data["redirect_uri"],
                response_type=data.get("response_type", "code"),
                scope=data.get("scope", ""),
                state=data.get("state", ""),
                form=dict(data.get("form", {})),
            )
        except (KeyError, TypeError) as e:
            raise MalformedRequest("Stored authorization request is incomplete") from e

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class AuthorizationCode:
    code: str
    client_id: str
    user_id: str
    redirect_uri: str
    scope: str
    issued_at: float
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


@dataclass(frozen=True)
class TokenClaims:
    """Identity carried by a valid access token."""

    user_id: str
    client_id: str
    scope: str
    expires_at: float


@dataclass(frozen=True)
class Token:
    access_token: str
    user_id: str
    client_id: str
    scope: str
    issued_at: float
    expires_at: float
    refresh_token: Optional[str] = None
    token_type: str = "Bearer"

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at

    def claims(self) -> TokenClaims:
        return TokenClaims(
            user_id=self.user_id,
            client_id=self.client_id,
            scope=self.scope,
            expires_at=self.expires_at,
        )

    def to_response(self, now: float) -> dict:
        """Token endpoint success body."""
        body = {
            "access_token": self.access_token,
            "token_type": self.token_type,
            "expires_in": max(0, int(self.expires_at - now)),
            "scope": self.scope,
        }
        if self.refresh_token:
            body["refresh_token"] = self.refresh_token
        return body
