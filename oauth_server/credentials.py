"""End-user credential validation.

Both the login form and the password grant resolve a username/password
pair to a user id through a CredentialValidator.
"""

import hmac
import logging
import threading
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Iterable, Optional

from oauth_server.errors import InvalidCredentials

logger = logging.getLogger(__name__)

# Compared against when the username is unknown, so both failure paths
# do the same amount of work.
_DUMMY_PASSWORD = b"\x00" * 32

PROFILE_CACHE_SIZE = 1024


class CredentialValidator(ABC):
    """Resolve a credential pair to a user identity."""

    @abstractmethod
    def validate_password(self, username: str, password: str) -> str:
        """Return the user id, or raise InvalidCredentials."""

    def profile(self, user_id: str) -> dict:
        """Profile fields for user info responses (empty when unknown)."""
        return {}


class StaticCredentialValidator(CredentialValidator):
    """Fixed account table, typically from config.

    Each account is a dict with `username`, `password`, optional
    `user_id` (defaults to the username) and profile fields.
    """

    PROFILE_FIELDS = ("name", "login", "email", "role")

    def __init__(self, accounts: Iterable[dict]):
        self._accounts: dict[str, dict] = {}
        self._profiles: dict[str, dict] = {}
        for account in accounts:
            username = account["username"]
            user_id = account.get("user_id") or username
            self._accounts[username] = {
                "password": account["password"].encode("utf-8"),
                "user_id": user_id,
            }
            self._profiles[user_id] = {
                key: account[key] for key in self.PROFILE_FIELDS if account.get(key)
            }

    def validate_password(self, username: str, password: str) -> str:
        account = self._accounts.get(username or "")
        expected = account["password"] if account else _DUMMY_PASSWORD
        matched = hmac.compare_digest(expected, (password or "").encode("utf-8"))

        if account is None or not matched:
            logger.info("[LOGIN] Credential check failed")
            raise InvalidCredentials()
        return account["user_id"]

    def profile(self, user_id: str) -> dict:
        return dict(self._profiles.get(user_id, {}))


class SupabaseCredentialValidator(CredentialValidator):
    """Delegates to Supabase email/password sign-in.

    Profiles of the most recent sign-ins are kept for user info, least
    recently used first out once `max_profiles` is reached.
    """

    def __init__(self, supabase_client, max_profiles: int = PROFILE_CACHE_SIZE):
        self.supabase = supabase_client
        self.max_profiles = max_profiles
        self._profiles: OrderedDict[str, dict] = OrderedDict()
        self._lock = threading.Lock()

    def validate_password(self, username: str, password: str) -> str:
        if not username or not password:
            raise InvalidCredentials()

        try:
            response = self.supabase.auth.sign_in_with_password({
                "email": username,
                "password": password
            })
        except Exception as e:
            logger.info(f"[LOGIN] Supabase sign-in rejected: {e}")
            raise InvalidCredentials() from e

        user = getattr(response, "user", None)
        if not user:
            raise InvalidCredentials()

        metadata: Optional[dict] = getattr(user, "user_metadata", None) or {}
        profile = {
            "email": user.email,
            "login": user.email,
            "name": metadata.get("name", ""),
        }
        with self._lock:
            self._profiles[user.id] = profile
            self._profiles.move_to_end(user.id)
            while len(self._profiles) > self.max_profiles:
                self._profiles.popitem(last=False)
        logger.info(f"[LOGIN] User authenticated via Supabase: {user.id}")
        return user.id

    def profile(self, user_id: str) -> dict:
        with self._lock:
            profile = self._profiles.get(user_id)
            if profile is None:
                return {}
            self._profiles.move_to_end(user_id)
            return dict(profile)
