"""Shared fixtures: every test gets its own registry, stores and sessions."""
import pytest
from fastapi.testclient import TestClient

from config import Config
from main import create_app
from oauth_server.clients import ClientRegistry
from oauth_server.coordinator import AuthorizationCoordinator
from oauth_server.credentials import StaticCredentialValidator
from oauth_server.sessions import InMemorySessionBridge
from oauth_server.stores import AuthorizationCodeStore, TokenStore

CLIENTS = [
    {"client_id": "c1", "client_secret": "s1", "domain": "http://cb/"},
    {"client_id": "c2", "client_secret": "s2", "domain": "http://other.example/oauth2"},
    {
        "client_id": "code-only",
        "client_secret": "s3",
        "domain": "http://cb/",
        "grant_types": ["authorization_code"],
    },
]

ACCOUNTS = [
    {
        "username": "test",
        "password": "test",
        "user_id": "test",
        "name": "Test User",
        "email": "test@example.com",
    },
    {"username": "alice", "password": "wonderland", "user_id": "user-alice"},
]


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0):
        self.current = start

    def now(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


class FakeRequest:
    """Just enough of a request for SessionBridge.start()."""

    def __init__(self, cookies=None):
        self.cookies = cookies or {}


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def clients():
    return ClientRegistry.from_config(CLIENTS)


@pytest.fixture
def credentials():
    return StaticCredentialValidator(ACCOUNTS)


@pytest.fixture
def sessions(clock):
    return InMemorySessionBridge(clock=clock, lifetime=3600)


@pytest.fixture
def codes(clients, clock):
    return AuthorizationCodeStore(clients, clock=clock, lifetime=600)


@pytest.fixture
def tokens(codes, clients, credentials, clock):
    return TokenStore(codes, clients, credentials, clock=clock, access_lifetime=3600)


@pytest.fixture
def coordinator(clients, sessions, codes, credentials):
    return AuthorizationCoordinator(clients, sessions, codes, credentials)


@pytest.fixture
def app(clock, credentials):
    config = Config({
        "issuer_url": "http://testserver",
        "code_lifetime": 600,
        "access_token_lifetime": 3600,
        "session_lifetime": 3600,
        "clients": CLIENTS,
        "accounts": ACCOUNTS,
    })
    return create_app(config, clock=clock, credentials=credentials, purge_interval=None)


@pytest.fixture
def http(app):
    with TestClient(app) as test_client:
        yield test_client
