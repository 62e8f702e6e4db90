"""Tests for config loading, the CLI and log formatting."""
import json
import logging
import os
import stat

import pytest

import cli
from config import Config, add_client, clear_config, load_config
from logging_config import JSONFormatter


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    path = tmp_path / "config.json"
    monkeypatch.setenv("OAUTH_SERVER_CONFIG", str(path))
    for name in ("OAUTH_HOST", "OAUTH_PORT", "OAUTH_DUMP_REQUESTS", "OAUTH_ISSUER_URL"):
        monkeypatch.delenv(name, raising=False)
    return path


# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

class TestConfig:
    def test_defaults(self, config_file):
        config = load_config()
        assert config.port == 9096
        assert config.host == "0.0.0.0"
        assert not config.dump_requests
        assert config.issuer_url == "http://localhost:9096"
        assert [c["client_id"] for c in config.clients] == ["grafana_id", "demo_client_id"]
        assert config.accounts[0]["username"] == "test"

    def test_file_values_override_defaults(self, config_file):
        config_file.write_text(json.dumps({"port": 8080, "code_lifetime": 30}))
        config = load_config()
        assert config.port == 8080
        assert config.code_lifetime == 30
        assert config.access_token_lifetime == 7200

    def test_env_overrides_file(self, config_file, monkeypatch):
        config_file.write_text(json.dumps({"port": 8080}))
        monkeypatch.setenv("OAUTH_PORT", "9999")
        monkeypatch.setenv("OAUTH_DUMP_REQUESTS", "true")
        monkeypatch.setenv("OAUTH_ISSUER_URL", "https://auth.example.com/")

        config = load_config()
        assert config.port == 9999
        assert config.dump_requests
        assert config.issuer_url == "https://auth.example.com"

    def test_unreadable_file_falls_back_to_defaults(self, config_file):
        config_file.write_text("{not json")
        assert load_config().port == 9096

    def test_defaults_are_not_shared(self):
        first = Config()
        first.data["clients"].append({"client_id": "x"})
        assert len(Config().clients) == 2

    def test_add_client(self, config_file):
        add_client("new-id", "new-secret", "http://app.example/cb")

        clients = load_config().clients
        assert clients[-1] == {
            "client_id": "new-id",
            "client_secret": "new-secret",
            "domain": "http://app.example/cb",
        }
        assert len(clients) == 3
        assert stat.S_IMODE(os.stat(config_file).st_mode) == 0o600

    def test_add_duplicate_client(self, config_file):
        with pytest.raises(ValueError, match="already exists"):
            add_client("grafana_id", "x", "http://x/")

    def test_clear_config(self, config_file):
        add_client("new-id", "new-secret", "http://app.example/cb")
        clear_config()
        assert not config_file.exists()
        clear_config()


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

class TestCli:
    def test_version(self, capsys):
        assert cli.main(["version"]) == 0
        assert "oauth-server v" in capsys.readouterr().out

    def test_gen_client(self, config_file, capsys):
        assert cli.main(["gen-client"]) == 0

        out = capsys.readouterr().out
        assert "Generated Client ID:" in out
        assert "Generated Client Secret (32 random bytes):" in out
        assert not config_file.exists()

    def test_gen_client_register(self, config_file, capsys):
        assert cli.main(["gen-client", "--register", "http://app.example/cb"]) == 0

        client_id = capsys.readouterr().out.split("Generated Client ID: ")[1].split()[0]
        clients = load_config().clients
        assert clients[-1]["client_id"] == client_id
        assert clients[-1]["domain"] == "http://app.example/cb"

    def test_gen_client_bad_length(self, config_file, capsys):
        assert cli.main(["gen-client", "--bytes", "0"]) == 1
        assert "[X]" in capsys.readouterr().err

    def test_reset(self, config_file):
        add_client("new-id", "new-secret", "http://app.example/cb")
        assert cli.main(["reset"]) == 0
        assert not config_file.exists()

    def test_start_flags(self):
        args = cli.build_parser().parse_args(["start", "-p", "9000", "-d"])
        assert args.port == 9000
        assert args.dump
        assert args.func is cli.cmd_start


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

def test_json_formatter_extracts_tag():
    record = logging.LogRecord(
        "oauth_server.stores", logging.INFO, __file__, 1, "[CODE] Issued code abc", None, None
    )
    entry = json.loads(JSONFormatter().format(record))
    assert entry["tag"] == "CODE"
    assert entry["message"] == "Issued code abc"
    assert entry["level"] == "INFO"
    assert entry["service"] == "oauth-server"
