"""The HTTP response that a request handler writes to the client."""

from __future__ import annotations

from typing import BinaryIO

from .cookie import HttpCookie


def _as_bytes(value: bytes | bytearray | str) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8")
    return bytes(value)


class HttpResponse:
    """Status line, headers, cookies and body, written to a binary stream.

    Status, headers and cookies are sent before the first body data. A single
    write with ``last_part=True`` sets Content-Length automatically; otherwise,
    without a Content-Length or ``Connection: close`` header, chunked mode is used.
    """

    def __init__(self, stream: BinaryIO) -> None:
        self._stream = stream
        self.status_code = 200
        self.status_text = b"OK"
        self.headers: dict[bytes, bytes] = {}
        self.cookies: dict[bytes, HttpCookie] = {}
        self._sent_headers = False
        self._sent_last_part = False
        self._chunked = False

    @property
    def sent_headers(self) -> bool:
        return self._sent_headers

    @property
    def sent_last_part(self) -> bool:
        """True once the body has been sent completely."""
        return self._sent_last_part

    @property
    def chunked_mode(self) -> bool:
        return self._chunked

    @property
    def is_connected(self) -> bool:
        """False once the connection to the client has been closed."""
        return not self._stream.closed

    def _require_headers_open(self) -> None:
        if self._sent_headers:
            raise RuntimeError("headers have already been sent")

    def set_header(self, name: bytes | str, value: bytes | str | int) -> None:
        """Set a response header; only possible before the first write."""
        self._require_headers_open()
        if isinstance(value, int) and not isinstance(value, bool):
            value = str(value)
        self.headers[_as_bytes(name)] = _as_bytes(value)

    def set_status(self, status_code: int, description: bytes | str = b"") -> None:
        self.status_code = status_code
        self.status_text = _as_bytes(description)

    def set_cookie(self, cookie: HttpCookie) -> None:
        """Add a cookie; cookies without a name are ignored."""
        self._require_headers_open()
        if cookie.name:
            self.cookies[cookie.name] = cookie

    def _send(self, data: bytes) -> None:
        if data and not self._stream.closed:
            self._stream.write(data)

    def _write_headers(self) -> None:
        self._require_headers_open()
        lines = [b"HTTP/1.1 " + str(self.status_code).encode("ascii") + b" " + self.status_text]
        lines.extend(name + b": " + self.headers[name] for name in sorted(self.headers))
        lines.extend(b"Set-Cookie: " + self.cookies[name].to_bytes() for name in sorted(self.cookies))
        self._send(b"\r\n".join(lines) + b"\r\n\r\n")
        self.flush()
        self._sent_headers = True

    def write(self, data: bytes | str = b"", last_part: bool = False) -> None:
        """Write body data, sending the headers first if that has not happened yet."""
        if self._sent_last_part:
            raise RuntimeError("the last part of the response has already been sent")
        data = _as_bytes(data)

        if not self._sent_headers:
            if last_part:
                self.headers[b"Content-Length"] = str(len(data)).encode("ascii")
            elif b"Content-Length" not in self.headers:
                connection = self.headers.get(b"Connection", self.headers.get(b"connection", b""))
                if connection.lower() != b"close":
                    self.headers[b"Transfer-Encoding"] = b"chunked"
                    self._chunked = True
            self._write_headers()

        if data:
            if self._chunked:
                self._send(format(len(data), "x").encode("ascii") + b"\r\n" + data + b"\r\n")
            else:
                self._send(data)

        if last_part:
            if self._chunked:
                self._send(b"0\r\n\r\n")
            self.flush()
            self._sent_last_part = True

    def redirect(self, url: bytes | str) -> None:
        """Send a complete 303 redirect response."""
        self.set_status(303, b"See Other")
        self.set_header(b"Location", url)
        self.write(b"Redirect", True)

    def flush(self) -> None:
        """Flush the underlying stream, if it is still open."""
        if not self._stream.closed:
            self._stream.flush()