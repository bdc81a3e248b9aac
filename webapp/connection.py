"""Handling of one client connection: reading requests and dispatching them."""

from __future__ import annotations

import logging
import socket
import ssl
import threading
from typing import Any, BinaryIO

from .handler import HttpRequestHandler
from .request import HttpRequest, RequestStatus
from .response import HttpResponse
from .settings import Settings

logger = logging.getLogger(__name__)

_ENTITY_TOO_LARGE = (
    b"HTTP/1.1 413 entity too large\r\nConnection: close\r\n\r\n413 Entity too large\r\n"
)


def _peer_of(address: Any) -> str | None:
    if isinstance(address, tuple) and address:
        return str(address[0])
    if address is None:
        return None
    return str(address)


class HttpConnectionHandler:
    """Reads HTTP requests from one connection and passes them to a request handler.

    Several requests may arrive on the same connection (pipelining); they are
    processed one after the other. The setting ``readTimeout`` (milliseconds,
    default 10000) limits each wait for incoming data; when it expires the
    connection is closed. Requests that exceed the size limits are answered
    with 413 and the connection is closed.
    """

    def __init__(
        self,
        settings: Settings | None,
        request_handler: HttpRequestHandler,
        ssl_context: ssl.SSLContext | None = None,
    ) -> None:
        if request_handler is None:
            raise ValueError("a request handler is required")
        self.settings = settings if settings is not None else Settings()
        self.request_handler = request_handler
        self.ssl_context = ssl_context
        self._busy = False
        self._lock = threading.Lock()
        self._socket: socket.socket | None = None
        self._thread: threading.Thread | None = None

    @property
    def busy(self) -> bool:
        """True while the handler is reserved for or serving a connection."""
        return self._busy

    @property
    def read_timeout(self) -> float:
        """The read timeout in seconds."""
        return self.settings.get_int("readTimeout", 10000) / 1000

    def set_busy(self) -> None:
        """Reserve this handler for a connection that is about to be handed over."""
        self._busy = True

    def handle_connection(self, sock: socket.socket, address: Any = None) -> None:
        """Start serving an accepted connection in a background thread."""
        if self._thread is not None and self._thread.is_alive():
            raise RuntimeError("the connection handler is already serving a connection")
        self._busy = True
        self._thread = threading.Thread(
            target=self.serve, args=(sock, address), name="http-connection", daemon=True
        )
        self._thread.start()

    def serve(self, sock: socket.socket, address: Any = None) -> None:
        """Serve a connection until it is closed by either side or times out."""
        logger.debug("HttpConnectionHandler (%x): handle new connection", id(self))
        self._busy = True
        peer = _peer_of(address)
        try:
            if self.ssl_context is not None:
                logger.debug("HttpConnectionHandler (%x): starting encryption", id(self))
                sock = self.ssl_context.wrap_socket(sock, server_side=True)
            with self._lock:
                self._socket = sock
            sock.settimeout(self.read_timeout)
            with sock.makefile("rb") as reader, sock.makefile("wb") as writer:
                while self._process_request(reader, writer, peer):
                    pass
        except TimeoutError:
            logger.debug("HttpConnectionHandler (%x): read timeout occurred", id(self))
        except OSError as error:
            logger.debug("HttpConnectionHandler (%x): connection error: %s", id(self), error)
        finally:
            with self._lock:
                self._socket = None
            try:
                sock.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
            sock.close()
            logger.debug("HttpConnectionHandler (%x): disconnected", id(self))
            self._busy = False

    def _process_request(self, reader: BinaryIO, writer: BinaryIO, peer: str | None) -> bool:
        """Read and answer one request; return True if the connection stays open."""
        with HttpRequest(self.settings) as request:
            status = request.read_from(reader, peer)
            if status is RequestStatus.ABORT:
                writer.write(_ENTITY_TOO_LARGE)
                writer.flush()
                return False
            if status is not RequestStatus.COMPLETE:
                return False

            logger.debug("HttpConnectionHandler (%x): received request", id(self))
            response = HttpResponse(writer)
            close_connection = request.header(b"Connection").lower() == b"close"
            if close_connection or request.version.lower() == b"http/1.0":
                close_connection = True
                response.set_header(b"Connection", b"close")

            try:
                self.request_handler.service(request, response)
            except Exception:
                logger.critical(
                    "HttpConnectionHandler (%x): an uncaught exception occurred in the request handler",
                    id(self),
                    exc_info=True,
                )

            if not response.sent_last_part:
                response.write(b"", True)
            logger.debug("HttpConnectionHandler (%x): finished request", id(self))

            if not close_connection:
                headers = response.headers
                if headers.get(b"Connection", b"").lower() == b"close":
                    close_connection = True
                elif b"Content-Length" not in headers:
                    if headers.get(b"Transfer-Encoding", b"").lower() != b"chunked":
                        close_connection = True
            return not close_connection

    def close(self) -> None:
        """Drop the current connection, if any, and wait for its thread to end."""
        with self._lock:
            sock = self._socket
        if sock is not None:
            try:
                sock.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join()
        self._thread = None

    def __enter__(self) -> HttpConnectionHandler:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()