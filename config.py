"""Config management for the authorization server."""
import copy
import json
import os
from pathlib import Path
from typing import Optional


CONFIG_DIR = Path.home() / ".oauth-server"
CONFIG_FILE = CONFIG_DIR / "config.json"

DEFAULTS = {
    "host": "0.0.0.0",
    "port": 9096,
    "dump_requests": False,
    "issuer_url": "",
    "code_lifetime": 600,
    "access_token_lifetime": 7200,
    "session_lifetime": 7200,
    "session_cookie": "oauth_session_id",
    "secure_cookies": False,
    "clients": [
        {
            "client_id": "grafana_id",
            "client_secret": "grafana_secret",
            "domain": "http://localhost:3000/login/generic_oauth",
        },
        {
            "client_id": "demo_client_id",
            "client_secret": "demo_client_secret",
            "domain": "http://localhost:9094/oauth2",
        },
    ],
    "accounts": [
        {
            "username": "test",
            "password": "test",
            "user_id": "test",
            "name": "Test User",
            "login": "test",
            "email": "test@example.com",
            "role": "Admin",
        },
    ],
}


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Configuration container."""

    def __init__(self, data: dict = None):
        self.data = copy.deepcopy(DEFAULTS)
        self.data.update(data or {})

    @property
    def host(self) -> str:
        return self.data["host"]

    @property
    def port(self) -> int:
        return int(self.data["port"])

    @property
    def dump_requests(self) -> bool:
        return bool(self.data["dump_requests"])

    @property
    def issuer_url(self) -> str:
        return (self.data.get("issuer_url") or f"http://localhost:{self.port}").rstrip("/")

    @property
    def clients(self) -> list[dict]:
        return list(self.data["clients"])

    @property
    def accounts(self) -> list[dict]:
        return list(self.data["accounts"])

    @property
    def code_lifetime(self) -> int:
        return int(self.data["code_lifetime"])

    @property
    def access_token_lifetime(self) -> int:
        return int(self.data["access_token_lifetime"])

    @property
    def session_lifetime(self) -> int:
        return int(self.data["session_lifetime"])

    @property
    def session_cookie(self) -> str:
        return self.data["session_cookie"]

    @property
    def secure_cookies(self) -> bool:
        return bool(self.data["secure_cookies"])


def config_path(path: Optional[Path] = None) -> Path:
    if path is not None:
        return Path(path)
    env_path = os.getenv("OAUTH_SERVER_CONFIG")
    return Path(env_path) if env_path else CONFIG_FILE


def _read_file(path: Path) -> dict:
    if not path.exists():
        return {}
    try:
        with open(path, "r") as f:
            data = json.load(f)
        return data if isinstance(data, dict) else {}
    except (json.JSONDecodeError, IOError):
        return {}


def load_config(path: Optional[Path] = None) -> Config:
    """Load config from file, then apply environment overrides."""
    data = _read_file(config_path(path))

    if os.getenv("OAUTH_HOST"):
        data["host"] = os.environ["OAUTH_HOST"]
    if os.getenv("OAUTH_PORT"):
        data["port"] = int(os.environ["OAUTH_PORT"])
    if os.getenv("OAUTH_DUMP_REQUESTS"):
        data["dump_requests"] = _env_bool(os.environ["OAUTH_DUMP_REQUESTS"])
    if os.getenv("OAUTH_ISSUER_URL"):
        data["issuer_url"] = os.environ["OAUTH_ISSUER_URL"]

    return Config(data)


def add_client(client_id: str, client_secret: str, domain: str, path: Optional[Path] = None) -> None:
    """Append a client registration to the config file."""
    path = config_path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    data = _read_file(path)
    clients = data.get("clients") or copy.deepcopy(DEFAULTS["clients"])
    if any(c.get("client_id") == client_id for c in clients):
        raise ValueError(f"Client already exists: {client_id}")
    clients.append({"client_id": client_id, "client_secret": client_secret, "domain": domain})
    data["clients"] = clients

    with open(path, "w") as f:
        json.dump(data, f, indent=2)

    # Set restrictive permissions (owner read/write only)
    os.chmod(path, 0o600)


def clear_config(path: Optional[Path] = None) -> None:
    """Remove config file."""
    path = config_path(path)
    if path.exists():
        path.unlink()
