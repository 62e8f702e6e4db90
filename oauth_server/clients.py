"""Client registry.

Clients are registered once at startup from configuration and are
read-only afterwards, so lookups need no locking.
"""

import base64
import hmac
import logging
import secrets
import uuid
from typing import Iterable, Optional
from urllib.parse import unquote, urlsplit

from oauth_server.errors import InvalidRedirect, UnknownClient
from oauth_server.models import DEFAULT_GRANT_TYPES, Client

logger = logging.getLogger(__name__)


def generate_client_id() -> str:
    """Random UUID4 client identifier."""
    return str(uuid.uuid4())


def generate_client_secret(n_bytes: int = 32) -> str:
    """URL-safe base64 of `n_bytes` bytes from the OS CSPRNG."""
    if n_bytes <= 0:
        raise ValueError("n_bytes must be positive")
    return base64.urlsafe_b64encode(secrets.token_bytes(n_bytes)).decode("ascii")


def redirect_matches(domain: str, redirect_uri: str) -> bool:
    """True if redirect_uri equals the registered domain or sits under its path."""
    if redirect_uri == domain:
        return True

    registered = urlsplit(domain)
    requested = urlsplit(redirect_uri)

    if requested.scheme.lower() != registered.scheme.lower():
        return False
    if requested.netloc.lower() != registered.netloc.lower():
        return False
    if requested.fragment:
        return False

    path = requested.path or "/"
    # Browsers treat backslashes and percent-encoded dots as path syntax.
    decoded = unquote(path)
    if "\\" in decoded:
        return False
    segments = decoded.split("/")
    if ".." in segments or "." in segments:
        return False

    base = registered.path or "/"
    if path == base or path.rstrip("/") == base.rstrip("/"):
        return True

    prefix = base if base.endswith("/") else base + "/"
    return path.startswith(prefix)


class ClientRegistry:
    """Registered client identities and secrets."""

    def __init__(self, clients: Iterable[Client] = ()):
        self._clients: dict[str, Client] = {}
        for client in clients:
            self.register(client)

    @classmethod
    def from_config(cls, entries: Iterable[dict]) -> "ClientRegistry":
        """Build from config dicts: client_id, client_secret, domain[, grant_types]."""
        return cls(
            Client(
                client_id=entry["client_id"],
                client_secret=entry["client_secret"],
                redirect_domain=entry["domain"],
                grant_types=tuple(entry.get("grant_types") or DEFAULT_GRANT_TYPES),
            )
            for entry in entries
        )

    def register(self, client: Client) -> None:
        if client.client_id in self._clients:
            raise ValueError(f"Client already registered: {client.client_id}")
        self._clients[client.client_id] = client
        logger.info(f"[STARTUP] Registered client {client.client_id} -> {client.redirect_domain}")

    def __len__(self) -> int:
        return len(self._clients)

    def lookup(self, client_id: str) -> Client:
        client = self._clients.get(client_id)
        if client is None:
            raise UnknownClient(f"Unknown client: {client_id}")
        return client

    def validate(self, client_id: str, client_secret: Optional[str]) -> bool:
        client = self._clients.get(client_id)
        if client is None or client_secret is None:
            return False
        return hmac.compare_digest(
            client.client_secret.encode("utf-8"), client_secret.encode("utf-8")
        )

    def validate_redirect(self, client_id: str, redirect_uri: str) -> bool:
        client = self._clients.get(client_id)
        if client is None or not redirect_uri:
            return False
        return redirect_matches(client.redirect_domain, redirect_uri)

    def check_request(self, client_id: str, redirect_uri: str) -> Client:
        """Lookup plus redirect check, raising the matching error."""
        client = self.lookup(client_id)
        if not redirect_matches(client.redirect_domain, redirect_uri):
            raise InvalidRedirect(f"redirect_uri not registered for client {client_id}")
        return client
