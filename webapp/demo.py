"""Example request handlers showing how the server is used."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from .cookie import HttpCookie
from .handler import HttpRequestHandler
from .request import HttpRequest
from .response import HttpResponse
from .sessionstore import HttpSessionStore

logger = logging.getLogger(__name__)

_BLOCK_SIZE = 65536


def _entries(mapping: dict[bytes, list[bytes]]) -> list[tuple[bytes, bytes]]:
    """Entries sorted by name, the most recent value of a name first."""
    return [(name, value) for name in sorted(mapping) for value in reversed(mapping[name])]


def _format_time(moment: Any) -> bytes:
    if isinstance(moment, datetime):
        return f"{moment:%a %b} {moment.day} {moment:%H:%M:%S %Y}".encode("utf-8")
    return str(moment).encode("utf-8")


class DumpController(HttpRequestHandler):
    """Answers with an HTML dump of the received request."""

    def service(self, request: HttpRequest, response: HttpResponse) -> None:
        response.set_header(b"Content-Type", b"text/html; charset=UTF-8")
        response.set_cookie(HttpCookie(b"firstCookie", b"hello", 600, b"", b"", b"", False, True))
        response.set_cookie(HttpCookie(b"secondCookie", b"world", 600))

        body = bytearray(b"<html><body>")
        body += b"<b>Request:</b>"
        body += b"<br>Method: " + request.method
        body += b"<br>Path: " + request.path
        body += b"<br>Version: " + request.version

        body += b"<p><b>Headers:</b>"
        for name, value in _entries(request.header_map):
            body += b"<br>" + name + b"=" + value

        body += b"<p><b>Parameters:</b>"
        for name, value in _entries(request.parameter_map):
            body += b"<br>" + name + b"=" + value

        body += b"<p><b>Cookies:</b>"
        cookies = request.cookie_map
        for name in sorted(cookies):
            body += b"<br>" + name + b"=" + cookies[name]

        body += b"<p><b>Body:</b><br>" + request.body
        body += b"</body></html>"
        response.write(bytes(body), True)


class FormController(HttpRequestHandler):
    """Shows an HTML form and echoes the submitted input."""

    def service(self, request: HttpRequest, response: HttpResponse) -> None:
        response.set_header(b"Content-Type", b"text/html; charset=UTF-8")
        if request.parameter(b"action") == b"show":
            response.write(b"<html><body>")
            response.write(b"Name = ")
            response.write(request.parameter(b"name"))
            response.write(b"<br>City = ")
            response.write(request.parameter(b"city"))
            response.write(b"</body></html>", True)
        else:
            response.write(b"<html><body>")
            response.write(b'<form method="post">')
            response.write(b'  <input type="hidden" name="action" value="show">')
            response.write(b'  Name: <input type="text" name="name"><br>')
            response.write(b'  City: <input type="text" name="city"><br>')
            response.write(b'  <input type="submit">')
            response.write(b"</form>")
            response.write(b"</body></html>", True)


class FileUploadController(HttpRequestHandler):
    """Shows an upload form and sends an uploaded JPEG image back."""

    def service(self, request: HttpRequest, response: HttpResponse) -> None:
        if request.parameter(b"action") == b"show":
            response.set_header(b"Content-Type", b"image/jpeg")
            upload = request.uploaded_file(b"file1")
            if upload is not None:
                for block in iter(lambda: upload.read(_BLOCK_SIZE), b""):
                    response.write(block)
            else:
                response.write(b"upload failed")
        else:
            response.set_header(b"Content-Type", b"text/html; charset=UTF-8")
            response.write(b"<html><body>")
            response.write(b"Upload a JPEG image file<p>")
            response.write(b'<form method="post" enctype="multipart/form-data">')
            response.write(b'  <input type="hidden" name="action" value="show">')
            response.write(b'  File: <input type="file" name="file1"><br>')
            response.write(b'  <input type="submit">')
            response.write(b"</form>")
            response.write(b"</body></html>", True)


class SessionController(HttpRequestHandler):
    """Remembers when the session started and tells the client on later visits."""

    def __init__(self, session_store: HttpSessionStore) -> None:
        self.session_store = session_store

    def service(self, request: HttpRequest, response: HttpResponse) -> None:
        response.set_header(b"Content-Type", b"text/html; charset=UTF-8")
        session = self.session_store.get_session(request, response)
        if not session.contains(b"startTime"):
            response.write(b"<html><body>New session started. Reload this page now.</body></html>")
            session.set(b"startTime", datetime.now())
        else:
            start_time = session.get(b"startTime")
            response.write(b"<html><body>Your session started ")
            response.write(_format_time(start_time))
            response.write(b"</body></html>")


class HelloWorldHandler(HttpRequestHandler):
    """Answers every request with a fixed HTML greeting."""

    def service(self, request: HttpRequest, response: HttpResponse) -> None:
        logger.debug("HelloWorldHandler: path=%r", request.path)
        response.set_header(b"Content-Type", b"text/html; charset=ISO-8859-1")
        response.write(b"<html><body>Hello World!</body></html>", True)