"""Tests for bearer authentication and request dumping."""
import logging

import pytest
from fastapi.testclient import TestClient

from config import Config
from main import create_app
from oauth_server.errors import InvalidOrExpiredToken
from oauth_server.middleware import BearerTokenValidator

from conftest import ACCOUNTS, CLIENTS


@pytest.fixture
def bearer(tokens):
    return BearerTokenValidator(tokens)


class TestBearerExtract:
    @pytest.mark.parametrize("header", ["Bearer abc", "bearer abc", "BEARER   abc  "])
    def test_accepts_bearer_scheme(self, header):
        assert BearerTokenValidator.extract(header) == "abc"

    @pytest.mark.parametrize("header", [None, ""])
    def test_missing_header(self, header):
        with pytest.raises(InvalidOrExpiredToken, match="Missing"):
            BearerTokenValidator.extract(header)

    @pytest.mark.parametrize("header", ["Basic abc", "Bearer", "Bearer ", "Bearer a b", "abc"])
    def test_malformed_header(self, header):
        with pytest.raises(InvalidOrExpiredToken, match="Bearer scheme"):
            BearerTokenValidator.extract(header)


class TestBearerAuthenticate:
    def test_fresh_token(self, bearer, tokens):
        issued = tokens.issue_from_password("c1", "s1", "test", "test", "read")

        claims = bearer.authenticate(f"Bearer {issued.access_token}")

        assert claims.user_id == "test"
        assert claims.client_id == "c1"
        assert claims.scope == "read"

    def test_unknown_token(self, bearer):
        with pytest.raises(InvalidOrExpiredToken):
            bearer.authenticate("Bearer not-issued")

    def test_expired_token(self, bearer, tokens, clock):
        issued = tokens.issue_from_password("c1", "s1", "test", "test")
        clock.advance(3600)

        with pytest.raises(InvalidOrExpiredToken):
            bearer.authenticate(f"Bearer {issued.access_token}")

    def test_revoked_token(self, bearer, tokens):
        issued = tokens.issue_from_password("c1", "s1", "test", "test")
        tokens.revoke(issued.access_token)

        with pytest.raises(InvalidOrExpiredToken):
            bearer.authenticate(f"Bearer {issued.access_token}")


class TestRequestDumpMiddleware:
    @pytest.fixture
    def dump_client(self, clock, credentials):
        config = Config({"clients": CLIENTS, "accounts": ACCOUNTS, "dump_requests": True})
        app = create_app(config, clock=clock, credentials=credentials, purge_interval=None)
        with TestClient(app) as client:
            yield client

    def test_logs_request_with_credentials_redacted(self, dump_client, caplog):
        with caplog.at_level(logging.INFO, logger="oauth_server.middleware"):
            response = dump_client.post(
                "/oauth/token",
                data={"grant_type": "password", "username": "test", "password": "test"},
                headers={"Authorization": "Basic YzE6czE="},
            )

        assert response.status_code == 200
        dumped = [r.getMessage() for r in caplog.records if r.getMessage().startswith("[DUMP]")]
        assert any("POST /oauth/token" in line and "body_bytes=" in line for line in dumped)
        assert any(line.endswith("-> 200") for line in dumped)
        assert not any("YzE6czE=" in line for line in dumped)
        assert any("<redacted>" in line for line in dumped)

    def test_dump_disabled_by_default(self, http, caplog):
        with caplog.at_level(logging.INFO, logger="oauth_server.middleware"):
            http.get("/health")
        assert not [r for r in caplog.records if r.getMessage().startswith("[DUMP]")]
