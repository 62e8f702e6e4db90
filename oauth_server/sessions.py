"""Per-browser session storage.

The authorization flow only talks to the SessionBridge interface. The
session id travels in a cookie the bridge writes onto the response.
"""

import copy
import logging
import secrets
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

from oauth_server.clock import Clock, SystemClock

logger = logging.getLogger(__name__)

SESSION_COOKIE = "oauth_session_id"
DEFAULT_SESSION_LIFETIME = 2 * 60 * 60  # 2 hours


@dataclass
class SessionHandle:
    """A request's private view of one session.

    Mutations stay local to the handle until the bridge saves it.
    """

    session_id: str
    data: dict = field(default_factory=dict)


class SessionBridge(ABC):
    """Key-value session scope with explicit save."""

    @abstractmethod
    def start(self, request) -> SessionHandle:
        """Open (or create) the session identified by the request cookie."""

    @abstractmethod
    def save(self, handle: SessionHandle) -> None:
        """Persist the handle. Raises SessionIOFailure on storage errors."""

    @abstractmethod
    def bind(self, handle: SessionHandle, response) -> None:
        """Attach the session cookie to an outgoing response."""

    def get(self, handle: SessionHandle, key: str, default: Any = None) -> Any:
        return handle.data.get(key, default)

    def set(self, handle: SessionHandle, key: str, value: Any) -> None:
        handle.data[key] = value

    def delete(self, handle: SessionHandle, key: str) -> None:
        handle.data.pop(key, None)


class InMemorySessionBridge(SessionBridge):
    """Server-side sessions held in process memory.

    Concurrent saves to the same session id are last-write-wins.
    """

    def __init__(
        self,
        clock: Optional[Clock] = None,
        lifetime: int = DEFAULT_SESSION_LIFETIME,
        cookie_name: str = SESSION_COOKIE,
        secure: bool = False,
    ):
        self.clock = clock or SystemClock()
        self.lifetime = lifetime
        self.cookie_name = cookie_name
        self.secure = secure
        self._sessions: dict[str, tuple[dict, float]] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._sessions)

    def start(self, request) -> SessionHandle:
        session_id = request.cookies.get(self.cookie_name)
        now = self.clock.now()

        with self._lock:
            entry = self._sessions.get(session_id) if session_id else None
            if entry is not None and entry[1] <= now:
                del self._sessions[session_id]
                entry = None
            data = copy.deepcopy(entry[0]) if entry is not None else None

        if data is None:
            # Unknown ids from the client are never adopted.
            return SessionHandle(session_id=secrets.token_urlsafe(32))
        return SessionHandle(session_id=session_id, data=data)

    def save(self, handle: SessionHandle) -> None:
        expires_at = self.clock.now() + self.lifetime
        snapshot = copy.deepcopy(handle.data)
        with self._lock:
            self._sessions[handle.session_id] = (snapshot, expires_at)

    def bind(self, handle: SessionHandle, response) -> None:
        response.set_cookie(
            key=self.cookie_name,
            value=handle.session_id,
            max_age=self.lifetime,
            path="/",
            httponly=True,
            secure=self.secure,
            samesite="lax",
        )

    def purge_expired(self) -> int:
        now = self.clock.now()
        with self._lock:
            expired = [sid for sid, (_, expires_at) in self._sessions.items() if expires_at <= now]
            for sid in expired:
                del self._sessions[sid]
        if expired:
            logger.info(f"[SESSION] Purged {len(expired)} expired sessions")
        return len(expired)
