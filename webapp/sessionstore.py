"""Storage of HTTP sessions that removes them when they expire."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable

from .cookie import HttpCookie
from .request import HttpRequest
from .response import HttpResponse
from .session import HttpSession
from .settings import Settings

logger = logging.getLogger(__name__)

_CLEANUP_INTERVAL = 60.0


class HttpSessionStore:
    """Creates, finds and expires sessions, tracked by a session cookie.

    Settings: ``cookieName`` (default "sessionid"), ``expirationTime`` in
    milliseconds (default 3600000) and the optional ``cookiePath``,
    ``cookieComment`` and ``cookieDomain``.
    """

    def __init__(self, settings: Settings | None = None, cleanup_interval: float = _CLEANUP_INTERVAL) -> None:
        self.settings = settings if settings is not None else Settings()
        self.cookie_name = self.settings.get_str("cookieName", "sessionid").encode("utf-8")
        self.expiration_time = self.settings.get_int("expirationTime", 3600000)
        self.cleanup_interval = cleanup_interval
        self.sessions: dict[bytes, HttpSession] = {}
        self.on_session_deleted: list[Callable[[bytes], None]] = []
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        logger.debug("HttpSessionStore: sessions expire after %i milliseconds", self.expiration_time)

    def _emit_deleted(self, session_id: bytes) -> None:
        for callback in list(self.on_session_deleted):
            callback(session_id)

    def _lookup_id(self, request: HttpRequest, response: HttpResponse) -> bytes:
        cookie = response.cookies.get(self.cookie_name)
        session_id = cookie.value if cookie is not None else b""
        if not session_id:
            session_id = request.cookie(self.cookie_name)
        if session_id and session_id not in self.sessions:
            logger.debug("HttpSessionStore: received invalid session cookie with ID %r", session_id)
            session_id = b""
        return session_id

    def get_session_id(self, request: HttpRequest, response: HttpResponse) -> bytes:
        """The id of the current valid session, or b"" if there is none.

        The cookie in the response takes priority over the one in the request.
        """
        with self._lock:
            return self._lookup_id(request, response)

    def _session_cookie(self, session: HttpSession) -> HttpCookie:
        return HttpCookie(
            self.settings.get_str("cookieName", "sessionid").encode("utf-8"),
            session.id,
            int(self.expiration_time / 1000),
            self.settings.get_str("cookiePath", "").encode("utf-8"),
            self.settings.get_str("cookieComment", "").encode("utf-8"),
            self.settings.get_str("cookieDomain", "").encode("utf-8"),
            False,
            False,
            b"Lax",
        )

    def get_session(
        self, request: HttpRequest, response: HttpResponse, allow_create: bool = True
    ) -> HttpSession:
        """The session of a request, created if needed and allowed.

        The session cookie is set in the response, so this must be called before
        the first write. Without a session and with ``allow_create`` false, a null
        session is returned.
        """
        with self._lock:
            session_id = self._lookup_id(request, response)
            session = self.sessions.get(session_id) if session_id else None
            if session is None and allow_create:
                session = HttpSession(True)
                logger.debug("HttpSessionStore: create new session with ID %r", session.id)
                self.sessions[session.id] = session
                response.set_cookie(self._session_cookie(session))
                return session
        if session is None:
            return HttpSession()
        response.set_cookie(self._session_cookie(session))
        session.touch()
        return session

    def session_by_id(self, session_id: bytes | str) -> HttpSession:
        """The session with the given id, or a null session if there is none."""
        if isinstance(session_id, str):
            session_id = session_id.encode("utf-8")
        with self._lock:
            session = self.sessions.get(bytes(session_id), HttpSession())
        session.touch()
        return session

    def remove_session(self, session: HttpSession) -> None:
        """Delete a session and announce it to the deletion callbacks."""
        with self._lock:
            self._emit_deleted(session.id)
            self.sessions.pop(session.id, None)

    def remove_expired(self, now: int | None = None) -> list[bytes]:
        """Delete the sessions not accessed within the expiration time; return their ids."""
        if now is None:
            now = int(time.time() * 1000)
        removed: list[bytes] = []
        with self._lock:
            for session_id, session in list(self.sessions.items()):
                if now - session.last_access > self.expiration_time:
                    logger.debug("HttpSessionStore: session %r expired", session_id)
                    self._emit_deleted(session_id)
                    del self.sessions[session_id]
                    removed.append(session_id)
        return removed

    @property
    def running(self) -> bool:
        """True while the background cleanup is active."""
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start removing expired sessions periodically in the background."""
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._cleanup_loop, name="session-cleanup", daemon=True)
        self._thread.start()

    def _cleanup_loop(self) -> None:
        while not self._stop.wait(self.cleanup_interval):
            self.remove_expired()

    def close(self) -> None:
        """Stop the background cleanup."""
        self._stop.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None

    def __enter__(self) -> HttpSessionStore:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()