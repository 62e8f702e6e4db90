"""Authorize-request state machine.

An /authorize call moves through these states:

    Unauthenticated --park request, redirect to login--> PendingLogin
    PendingLogin    --credentials accepted-------------> Authenticated
    Authenticated   --resumed /authorize, code minted--> CodeIssued
    any             --validation or session failure----> Error

The parked request and the logged-in user id live in the browser
session and are each consumed exactly once. Every failure is raised
before the session is saved, so an aborted request leaves nothing behind.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Mapping, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from oauth_server.clients import ClientRegistry
from oauth_server.credentials import CredentialValidator
from oauth_server.errors import InvalidCredentials, OAuthError, SessionIOFailure
from oauth_server.models import AuthorizationCode, PendingAuthorizationRequest
from oauth_server.sessions import SessionBridge, SessionHandle
from oauth_server.stores import AuthorizationCodeStore

logger = logging.getLogger(__name__)

SESSION_KEY_PENDING_REQUEST = "ReturnUri"
SESSION_KEY_LOGGED_IN_USER_ID = "LoggedInUserID"

LOGIN_PATH = "/login"
RESUME_PATH = "/auth"


class AuthorizationState(str, enum.Enum):
    UNAUTHENTICATED = "Unauthenticated"
    PENDING_LOGIN = "PendingLogin"
    AUTHENTICATED = "Authenticated"
    CODE_ISSUED = "CodeIssued"
    ERROR = "Error"


@dataclass(frozen=True)
class AuthorizeOutcome:
    """Where the browser goes next."""

    state: AuthorizationState
    location: str
    code: Optional[AuthorizationCode] = None


def add_query_params(uri: str, **params: str) -> str:
    """Append params to a URI, keeping any query it already has."""
    parts = urlsplit(uri)
    query = parse_qsl(parts.query, keep_blank_values=True)
    query.extend((key, value) for key, value in params.items() if value)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment))


class AuthorizationCoordinator:
    """Drives the authorize / login / resume sequence for one session at a time."""

    def __init__(
        self,
        clients: ClientRegistry,
        sessions: SessionBridge,
        codes: AuthorizationCodeStore,
        credentials: CredentialValidator,
        login_path: str = LOGIN_PATH,
        resume_path: str = RESUME_PATH,
    ):
        self.clients = clients
        self.sessions = sessions
        self.codes = codes
        self.credentials = credentials
        self.login_path = login_path
        self.resume_path = resume_path

    def _save(self, handle: SessionHandle) -> None:
        try:
            self.sessions.save(handle)
        except SessionIOFailure:
            raise
        except Exception as e:
            logger.error(f"[SESSION] Save failed for session: {e}")
            raise SessionIOFailure() from e

    def state_of(self, handle: SessionHandle) -> AuthorizationState:
        logged_in = self.sessions.get(handle, SESSION_KEY_LOGGED_IN_USER_ID) is not None
        pending = self.sessions.get(handle, SESSION_KEY_PENDING_REQUEST) is not None
        if logged_in and pending:
            return AuthorizationState.AUTHENTICATED
        if pending:
            return AuthorizationState.PENDING_LOGIN
        return AuthorizationState.UNAUTHENTICATED

    def logged_in_user(self, handle: SessionHandle) -> Optional[str]:
        return self.sessions.get(handle, SESSION_KEY_LOGGED_IN_USER_ID)

    def authorize(self, handle: SessionHandle, form: Mapping[str, str]) -> AuthorizeOutcome:
        """Handle an /authorize request (fresh or resumed)."""
        if self.state_of(handle) is AuthorizationState.AUTHENTICATED:
            return self._resume(handle)
        return self._park(handle, form)

    def _park(self, handle: SessionHandle, form: Mapping[str, str]) -> AuthorizeOutcome:
        # A resume without a parked request lands here too and is handled
        # as a fresh entry.
        try:
            request = PendingAuthorizationRequest.from_form(form)
            self.clients.check_request(request.client_id, request.redirect_uri)
        except OAuthError as e:
            logger.info(f"[AUTHORIZE] Rejected request: {e.error} ({e.description})")
            raise

        self.sessions.set(handle, SESSION_KEY_PENDING_REQUEST, request.to_dict())
        self._save(handle)

        logger.info(f"[AUTHORIZE] Parked request for client {request.client_id}, redirecting to login")
        return AuthorizeOutcome(state=AuthorizationState.PENDING_LOGIN, location=self.login_path)

    def _resume(self, handle: SessionHandle) -> AuthorizeOutcome:
        user_id = self.sessions.get(handle, SESSION_KEY_LOGGED_IN_USER_ID)
        request = PendingAuthorizationRequest.from_dict(
            self.sessions.get(handle, SESSION_KEY_PENDING_REQUEST)
        )
        self.clients.check_request(request.client_id, request.redirect_uri)

        self.sessions.delete(handle, SESSION_KEY_PENDING_REQUEST)
        self.sessions.delete(handle, SESSION_KEY_LOGGED_IN_USER_ID)
        self._save(handle)

        code = self.codes.issue(request.client_id, user_id, request.redirect_uri, request.scope)
        location = add_query_params(request.redirect_uri, code=code.code, state=request.state)

        logger.info(f"[AUTHORIZE] Code issued to client {request.client_id} for user {user_id}")
        return AuthorizeOutcome(state=AuthorizationState.CODE_ISSUED, location=location, code=code)

    def login(self, handle: SessionHandle, username: str, password: str) -> str:
        """Check login credentials; on success return the resume location.

        A failed attempt raises InvalidCredentials and leaves the session
        untouched.
        """
        try:
            user_id = self.credentials.validate_password(username, password)
        except InvalidCredentials:
            logger.info("[LOGIN] Login failed")
            raise

        self.sessions.set(handle, SESSION_KEY_LOGGED_IN_USER_ID, user_id)
        self._save(handle)

        logger.info(f"[LOGIN] User {user_id} logged in")
        return self.resume_path
