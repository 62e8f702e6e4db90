"""In-memory stores for authorization codes and tokens.

Codes and tokens are opaque random strings; everything they stand for
lives only in these stores, so deleting a record revokes it at once.
Each store guards its maps with one lock, and every check-then-mutate
sequence runs inside a single acquisition.
"""

import logging
import secrets
import threading
from typing import Optional

from oauth_server.clients import ClientRegistry
from oauth_server.clock import Clock, SystemClock
from oauth_server.credentials import CredentialValidator
from oauth_server.errors import (
    CodeAlreadyRedeemed,
    InvalidOrExpiredCode,
    InvalidOrExpiredToken,
    UnauthorizedClient,
    UnknownClient,
)
from oauth_server.models import (
    AUTHORIZATION_CODE,
    PASSWORD,
    AuthorizationCode,
    Token,
    TokenClaims,
)

logger = logging.getLogger(__name__)

CODE_LIFETIME = 10 * 60  # 10 minutes
ACCESS_TOKEN_LIFETIME = 2 * 60 * 60  # 2 hours


def _new_secret() -> str:
    return secrets.token_urlsafe(32)


def _short(value: str) -> str:
    return f"{value[:8]}..." if value else "<empty>"


class AuthorizationCodeStore:
    """Issues and redeems single-use authorization codes."""

    def __init__(
        self,
        clients: ClientRegistry,
        clock: Optional[Clock] = None,
        lifetime: int = CODE_LIFETIME,
    ):
        self.clients = clients
        self.clock = clock or SystemClock()
        self.lifetime = lifetime
        self._codes: dict[str, AuthorizationCode] = {}
        # Consumed codes, remembered until they would have expired so that
        # reuse can be told apart from garbage in the logs.
        self._redeemed: dict[str, float] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._codes)

    def issue(self, client_id: str, user_id: str, redirect_uri: str, scope: str = "") -> AuthorizationCode:
        self.clients.check_request(client_id, redirect_uri)

        now = self.clock.now()
        record = AuthorizationCode(
            code=_new_secret(),
            client_id=client_id,
            user_id=user_id,
            redirect_uri=redirect_uri,
            scope=scope,
            issued_at=now,
            expires_at=now + self.lifetime,
        )
        with self._lock:
            self._codes[record.code] = record

        logger.info(f"[CODE] Issued {_short(record.code)} to client {client_id} for user {user_id}")
        return record

    def redeem(self, code: str, client_id: str, redirect_uri: str) -> AuthorizationCode:
        """Consume a code, returning its record.

        Lookup, expiry check, binding check and removal happen under one
        lock acquisition; of several concurrent callers at most one wins.
        """
        now = self.clock.now()
        with self._lock:
            record = self._codes.get(code or "")

            if record is None:
                redeemed_until = self._redeemed.get(code or "")
                if redeemed_until is not None and redeemed_until > now:
                    logger.warning(f"[CODE] Reuse of redeemed code {_short(code)} by client {client_id}")
                    raise CodeAlreadyRedeemed()
                logger.info(f"[CODE] Unknown code {_short(code)} presented by client {client_id}")
                raise InvalidOrExpiredCode()

            if record.is_expired(now):
                del self._codes[code]
                logger.info(f"[CODE] Expired code {_short(code)} presented by client {client_id}")
                raise InvalidOrExpiredCode()

            if record.client_id != client_id or record.redirect_uri != redirect_uri:
                logger.warning(
                    f"[CODE] Binding mismatch for {_short(code)}: "
                    f"issued to {record.client_id}, presented by {client_id}"
                )
                raise InvalidOrExpiredCode()

            del self._codes[code]
            self._redeemed[code] = record.expires_at

        logger.info(f"[CODE] Redeemed {_short(code)} for client {client_id}")
        return record

    def purge_expired(self) -> int:
        now = self.clock.now()
        with self._lock:
            expired = [c for c, record in self._codes.items() if record.is_expired(now)]
            for c in expired:
                del self._codes[c]
            for c in [c for c, until in self._redeemed.items() if until <= now]:
                del self._redeemed[c]
        return len(expired)


class TokenStore:
    """Issues, validates and revokes bearer tokens."""

    def __init__(
        self,
        codes: AuthorizationCodeStore,
        clients: ClientRegistry,
        credentials: CredentialValidator,
        clock: Optional[Clock] = None,
        access_lifetime: int = ACCESS_TOKEN_LIFETIME,
        issue_refresh_tokens: bool = True,
    ):
        self.codes = codes
        self.clients = clients
        self.credentials = credentials
        self.clock = clock or SystemClock()
        self.access_lifetime = access_lifetime
        self.issue_refresh_tokens = issue_refresh_tokens
        self._tokens: dict[str, Token] = {}
        self._refresh_index: dict[str, str] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._tokens)

    def _mint(self, user_id: str, client_id: str, scope: str) -> Token:
        now = self.clock.now()
        token = Token(
            access_token=_new_secret(),
            user_id=user_id,
            client_id=client_id,
            scope=scope,
            issued_at=now,
            expires_at=now + self.access_lifetime,
            refresh_token=_new_secret() if self.issue_refresh_tokens else None,
        )
        with self._lock:
            self._tokens[token.access_token] = token
            if token.refresh_token:
                self._refresh_index[token.refresh_token] = token.access_token

        logger.info(f"[TOKEN] Access token {_short(token.access_token)} issued for user {user_id} (client {client_id})")
        return token

    def _authorize_client(self, client_id: str, client_secret: Optional[str], grant_type: str, require_secret: bool):
        client = self.clients.lookup(client_id)
        if (require_secret or client_secret is not None) and not self.clients.validate(client_id, client_secret):
            logger.info(f"[TOKEN] Client authentication failed for {client_id}")
            raise UnknownClient()
        if not client.allows(grant_type):
            raise UnauthorizedClient(f"Client {client_id} may not use grant {grant_type}")
        return client

    def issue_from_code(
        self,
        code: str,
        client_id: str,
        redirect_uri: str,
        client_secret: Optional[str] = None,
    ) -> Token:
        """Exchange an authorization code for a token.

        The secret is optional for the code grant but checked when given.
        """
        self._authorize_client(client_id, client_secret, AUTHORIZATION_CODE, require_secret=False)
        record = self.codes.redeem(code, client_id, redirect_uri)
        return self._mint(record.user_id, record.client_id, record.scope)

    def issue_from_password(
        self,
        client_id: str,
        client_secret: Optional[str],
        username: str,
        password: str,
        scope: str = "",
    ) -> Token:
        self._authorize_client(client_id, client_secret, PASSWORD, require_secret=True)
        user_id = self.credentials.validate_password(username, password)
        return self._mint(user_id, client_id, scope)

    def validate(self, access_token: str) -> TokenClaims:
        now = self.clock.now()
        with self._lock:
            token = self._tokens.get(access_token or "")
            if token is not None and token.is_expired(now):
                self._drop(token)
                logger.info(f"[TOKEN] Expired token {_short(access_token)} presented")
                token = None

        if token is None:
            raise InvalidOrExpiredToken()
        return token.claims()

    def revoke(self, token: str, client_id: Optional[str] = None) -> bool:
        """Revoke by access or refresh token string. True if a record was removed.

        With client_id set, only tokens issued to that client are touched.
        """
        with self._lock:
            access_token = self._refresh_index.get(token or "", token)
            record = self._tokens.get(access_token or "")
            if record is None:
                return False
            if client_id is not None and record.client_id != client_id:
                logger.warning(f"[TOKEN] Client {client_id} tried to revoke a token it does not own")
                return False
            self._drop(record)

        logger.info(f"[TOKEN] Revoked token {_short(record.access_token)} for client {record.client_id}")
        return True

    def _drop(self, token: Token) -> None:
        # Caller holds self._lock.
        self._tokens.pop(token.access_token, None)
        if token.refresh_token:
            self._refresh_index.pop(token.refresh_token, None)

    def purge_expired(self) -> int:
        now = self.clock.now()
        with self._lock:
            expired = [t for t in self._tokens.values() if t.is_expired(now)]
            for token in expired:
                self._drop(token)
        return len(expired)
