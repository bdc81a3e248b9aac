"""The TCP listener that accepts connections and passes them to connection handlers."""

from __future__ import annotations

import logging
import socket
import threading
from typing import Any

from .handler import HttpRequestHandler
from .pool import HttpConnectionHandlerPool
from .settings import Settings

logger = logging.getLogger(__name__)

_ACCEPT_POLL = 0.1
_TOO_MANY_CONNECTIONS = (
    b"HTTP/1.1 503 too many connections\r\nConnection: close\r\n\r\nToo many connections\r\n"
)


class HttpListener:
    """Listens on the configured host and port and serves every connection.

    Settings: ``host`` (default: all interfaces) and ``port``, plus the settings
    of the connection handler pool. Listening starts on construction; a bind
    failure raises OSError. Close the listener before the request handler.
    """

    def __init__(self, settings: Settings | None, request_handler: HttpRequestHandler) -> None:
        if request_handler is None:
            raise ValueError("a request handler is required")
        self.settings = settings if settings is not None else Settings()
        self.request_handler = request_handler
        self._pool: HttpConnectionHandlerPool | None = None
        self._server: socket.socket | None = None
        self._thread: threading.Thread | None = None
        self._stop = threading.Event()
        self.listen()

    @property
    def is_listening(self) -> bool:
        return self._server is not None

    @property
    def address(self) -> tuple[str, int]:
        """The host and port the listener is bound to."""
        if self._server is None:
            raise RuntimeError("the listener is not listening")
        host, port = self._server.getsockname()[:2]
        return host, port

    @property
    def port(self) -> int:
        return self.address[1]

    @property
    def pool(self) -> HttpConnectionHandlerPool | None:
        return self._pool

    def listen(self) -> None:
        """Start listening, also again after :meth:`close`."""
        if self._server is not None:
            return
        if self._pool is None:
            self._pool = HttpConnectionHandlerPool(self.settings, self.request_handler)
        host = self.settings.get_str("host", "")
        port = self.settings.get_int("port", 0) & 0xFFFF
        try:
            server = socket.create_server((host, port))
        except OSError as error:
            logger.critical("HttpListener: cannot bind on port %i: %s", port, error)
            self._pool.close()
            self._pool = None
            raise
        server.settimeout(_ACCEPT_POLL)
        self._server = server
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._accept_loop, args=(server,), name="http-listener", daemon=True
        )
        self._thread.start()
        logger.debug("HttpListener: listening on port %i", server.getsockname()[1])

    def _accept_loop(self, server: socket.socket) -> None:
        while not self._stop.is_set():
            try:
                sock, address = server.accept()
            except TimeoutError:
                continue
            except OSError:
                break
            self.incoming_connection(sock, address)

    def incoming_connection(self, sock: socket.socket, address: Any = None) -> None:
        """Give a new connection to a free handler, or reject it with 503."""
        handler = self._pool.get_connection_handler() if self._pool is not None else None
        if handler is None:
            logger.debug("HttpListener: too many incoming connections")
            try:
                sock.sendall(_TOO_MANY_CONNECTIONS)
                sock.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
            sock.close()
            return
        try:
            handler.handle_connection(sock, address)
        except RuntimeError:
            # The previous connection's thread is still finishing.
            handler.close()
            handler.handle_connection(sock, address)

    def close(self) -> None:
        """Stop listening, wait for pending connections, then close the pool."""
        self._stop.set()
        server, self._server = self._server, None
        thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join()
        if server is not None:
            server.close()
        logger.debug("HttpListener: closed")
        if self._pool is not None:
            self._pool.close()
            self._pool = None

    def __enter__(self) -> HttpListener:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()