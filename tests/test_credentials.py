"""Tests for oauth_server/credentials.py."""
from unittest.mock import MagicMock

import pytest

from oauth_server.credentials import StaticCredentialValidator, SupabaseCredentialValidator
from oauth_server.errors import InvalidCredentials


class TestStaticCredentialValidator:
    def test_valid_credentials_return_user_id(self, credentials):
        assert credentials.validate_password("test", "test") == "test"
        assert credentials.validate_password("alice", "wonderland") == "user-alice"

    @pytest.mark.parametrize("username,password", [
        ("test", "wrong"),
        ("nobody", "test"),
        ("", ""),
        ("test", ""),
        (None, None),
    ])
    def test_invalid_credentials(self, credentials, username, password):
        with pytest.raises(InvalidCredentials):
            credentials.validate_password(username, password)

    def test_unknown_user_and_wrong_password_look_the_same(self, credentials):
        with pytest.raises(InvalidCredentials) as unknown:
            credentials.validate_password("nobody", "x")
        with pytest.raises(InvalidCredentials) as wrong:
            credentials.validate_password("test", "x")
        assert unknown.value.to_dict() == wrong.value.to_dict()

    def test_user_id_defaults_to_username(self):
        validator = StaticCredentialValidator([{"username": "bob", "password": "pw"}])
        assert validator.validate_password("bob", "pw") == "bob"

    def test_profile(self, credentials):
        assert credentials.profile("test") == {"name": "Test User", "email": "test@example.com"}
        assert credentials.profile("user-alice") == {}
        assert credentials.profile("unknown") == {}


class TestSupabaseCredentialValidator:
    def _client(self, user=None, error=None):
        client = MagicMock()
        if error:
            client.auth.sign_in_with_password.side_effect = error
        else:
            client.auth.sign_in_with_password.return_value = MagicMock(user=user)
        return client

    def test_successful_sign_in(self):
        user = MagicMock(id="uid-1", email="a@example.com", user_metadata={"name": "A"})
        client = self._client(user=user)
        validator = SupabaseCredentialValidator(client)

        assert validator.validate_password("a@example.com", "pw") == "uid-1"
        client.auth.sign_in_with_password.assert_called_once_with(
            {"email": "a@example.com", "password": "pw"}
        )
        assert validator.profile("uid-1")["email"] == "a@example.com"
        assert validator.profile("uid-1")["name"] == "A"

    def test_rejected_sign_in(self):
        validator = SupabaseCredentialValidator(self._client(error=RuntimeError("Invalid login")))
        with pytest.raises(InvalidCredentials):
            validator.validate_password("a@example.com", "bad")

    def test_no_user_in_response(self):
        validator = SupabaseCredentialValidator(self._client(user=None))
        with pytest.raises(InvalidCredentials):
            validator.validate_password("a@example.com", "pw")

    def test_empty_credentials_skip_remote_call(self):
        client = self._client()
        validator = SupabaseCredentialValidator(client)
        with pytest.raises(InvalidCredentials):
            validator.validate_password("", "")
        client.auth.sign_in_with_password.assert_not_called()

    def test_profile_cache_is_bounded(self):
        client = MagicMock()
        client.auth.sign_in_with_password.side_effect = lambda creds: MagicMock(
            user=MagicMock(id=f"uid-{creds['email']}", email=creds["email"], user_metadata={})
        )
        validator = SupabaseCredentialValidator(client, max_profiles=2)

        validator.validate_password("a@example.com", "pw")
        validator.validate_password("b@example.com", "pw")
        validator.profile("uid-a@example.com")
        validator.validate_password("c@example.com", "pw")

        assert validator.profile("uid-a@example.com")["email"] == "a@example.com"
        assert validator.profile("uid-b@example.com") == {}
        assert validator.profile("uid-c@example.com")["email"] == "c@example.com"
