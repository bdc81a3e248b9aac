"""A pool of connection handlers that grows on demand and shrinks when idle."""

from __future__ import annotations

import errno
import logging
import os
import ssl
import threading

from .connection import HttpConnectionHandler
from .handler import HttpRequestHandler
from .settings import Settings

logger = logging.getLogger(__name__)

_MIN_CLEANUP_WAIT = 0.01


def _require_file(label: str, path: str) -> None:
    if not os.path.isfile(path):
        logger.critical("HttpConnectionHandlerPool: cannot open %s %s", label, path)
        raise FileNotFoundError(errno.ENOENT, f"cannot open {label}", path)


def load_ssl_context(settings: Settings) -> ssl.SSLContext | None:
    """Build a server TLS context from the settings, or None if SSL is not configured.

    Settings: ``sslKeyFile`` and ``sslCertFile`` (both PEM, both required to enable
    SSL), the optional ``caCertFile`` to verify clients, and ``verifyPeer``
    (default false). Relative file names are resolved against the directory of
    the configuration file. A configured file that cannot be found raises
    FileNotFoundError.
    """
    key_file = settings.get_str("sslKeyFile", "")
    cert_file = settings.get_str("sslCertFile", "")
    ca_file = settings.get_str("caCertFile", "")
    verify_peer = settings.get_bool("verifyPeer", False)
    if not key_file or not cert_file:
        return None

    key_path = settings.resolve_path(key_file)
    cert_path = settings.resolve_path(cert_file)
    _require_file("sslCertFile", cert_path)
    _require_file("sslKeyFile", key_path)

    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    context.load_cert_chain(cert_path, key_path)

    if ca_file:
        ca_path = settings.resolve_path(ca_file)
        _require_file("caCertFile", ca_path)
        context.load_verify_locations(cafile=ca_path)

    if verify_peer:
        context.verify_mode = ssl.CERT_REQUIRED
        if not ca_file:
            context.load_default_certs(ssl.Purpose.CLIENT_AUTH)
    else:
        context.verify_mode = ssl.CERT_NONE
    logger.debug("HttpConnectionHandlerPool: SSL settings loaded")
    return context


class HttpConnectionHandlerPool:
    """Hands out free connection handlers, creating new ones up to a limit.

    Settings: ``maxThreads`` (default 100) limits the number of handlers,
    ``minThreads`` (default 1) is the number of idle handlers kept, and every
    ``cleanupInterval`` milliseconds (default 1000) at most one idle handler
    beyond that is closed. SSL settings are read by :func:`load_ssl_context`.
    """

    def __init__(self, settings: Settings | None, request_handler: HttpRequestHandler) -> None:
        self.settings = settings if settings is not None else Settings()
        self.request_handler = request_handler
        self.ssl_context = load_ssl_context(self.settings)
        self._pool: list[HttpConnectionHandler] = []
        self._lock = threading.Lock()
        self._stop = threading.Event()
        interval = self.settings.get_int("cleanupInterval", 1000) / 1000
        self.cleanup_interval = max(interval, _MIN_CLEANUP_WAIT)
        self._thread = threading.Thread(target=self._cleanup_loop, name="pool-cleanup", daemon=True)
        self._thread.start()

    @property
    def handlers(self) -> list[HttpConnectionHandler]:
        """A snapshot of the handlers in the pool."""
        with self._lock:
            return list(self._pool)

    def __len__(self) -> int:
        with self._lock:
            return len(self._pool)

    def get_connection_handler(self) -> HttpConnectionHandler | None:
        """Reserve a free handler, or None if all are busy and the pool is full."""
        with self._lock:
            for handler in self._pool:
                if not handler.busy:
                    handler.set_busy()
                    return handler
            if len(self._pool) < self.settings.get_int("maxThreads", 100):
                handler = HttpConnectionHandler(self.settings, self.request_handler, self.ssl_context)
                handler.set_busy()
                self._pool.append(handler)
                return handler
        return None

    def cleanup(self) -> bool:
        """Close one idle handler beyond the minimum; return True if one was removed."""
        max_idle = self.settings.get_int("minThreads", 1)
        idle = 0
        with self._lock:
            for handler in self._pool:
                if handler.busy:
                    continue
                idle += 1
                if idle > max_idle:
                    handler.close()
                    self._pool.remove(handler)
                    logger.debug(
                        "HttpConnectionHandlerPool: removed connection handler (%x), pool size is now %i",
                        id(handler),
                        len(self._pool),
                    )
                    return True
        return False

    def _cleanup_loop(self) -> None:
        while not self._stop.wait(self.cleanup_interval):
            self.cleanup()

    def close(self) -> None:
        """Stop the cleanup and close every handler, waiting for their connections to end."""
        self._stop.set()
        if self._thread is not threading.current_thread():
            self._thread.join()
        with self._lock:
            handlers = list(self._pool)
            self._pool.clear()
        for handler in handlers:
            handler.close()
        logger.debug("HttpConnectionHandlerPool (%x): destroyed", id(self))

    def __enter__(self) -> HttpConnectionHandlerPool:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()