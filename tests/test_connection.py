import socket
import threading

import pytest

from webapp.connection import HttpConnectionHandler
from webapp.demo import HelloWorldHandler
from webapp.handler import HttpRequestHandler
from webapp.settings import Settings


class RecordingHandler(HttpRequestHandler):
    def __init__(self):
        self.seen = []

    def service(self, request, response):
        self.seen.append((request.method, request.path, request.parameter("a")))
        response.write(b"ok", True)


class FailingHandler(HttpRequestHandler):
    def service(self, request, response):
        raise ValueError("broken")


class ChunkedHandler(HttpRequestHandler):
    def service(self, request, response):
        response.write(b"abc")


class ClosingHandler(HttpRequestHandler):
    def service(self, request, response):
        response.set_header(b"Connection", b"close")
        response.write(b"bye", True)


def recv_all(sock):
    chunks = []
    while True:
        data = sock.recv(65536)
        if not data:
            return b"".join(chunks)
        chunks.append(data)


def run(handler, payload, shutdown_write=True, settings=None):
    server, client = socket.socketpair()
    client.settimeout(5)
    connection = HttpConnectionHandler(settings or Settings(), handler)
    thread = threading.Thread(target=connection.serve, args=(server, ("127.0.0.1", 1234)))
    thread.start()
    if payload:
        client.sendall(payload)
    if shutdown_write:
        client.shutdown(socket.SHUT_WR)
    data = recv_all(client)
    thread.join(5)
    client.close()
    assert not thread.is_alive()
    return connection, data


def test_connection_close_request_gets_hello_world():
    connection, data = run(
        HelloWorldHandler(), b"GET / HTTP/1.1\r\nConnection: close\r\n\r\n", shutdown_write=False
    )
    assert data.startswith(b"HTTP/1.1 200 OK\r\n")
    assert b"Connection: close\r\n" in data
    assert data.endswith(b"<html><body>Hello World!</body></html>")
    assert connection.busy is False


def test_http_1_0_closes_connection():
    _, data = run(HelloWorldHandler(), b"GET / HTTP/1.0\r\n\r\n", shutdown_write=False)
    assert b"Connection: close\r\n" in data
    assert data.endswith(b"Hello World!</body></html>")


def test_pipelined_requests_are_answered_in_order():
    handler = RecordingHandler()
    payload = b"GET /one?a=1 HTTP/1.1\r\n\r\nGET /two?a=2 HTTP/1.1\r\n\r\n"
    _, data = run(handler, payload)
    assert data.count(b"HTTP/1.1 200 OK") == 2
    assert handler.seen == [(b"GET", b"/one", b"1"), (b"GET", b"/two", b"2")]


def test_too_large_request_gets_413():
    settings = Settings({"maxRequestSize": "100"})
    payload = b"POST / HTTP/1.1\r\nContent-Length: 1000\r\n\r\n"
    handler = RecordingHandler()
    _, data = run(handler, payload, shutdown_write=False, settings=settings)
    assert data == (
        b"HTTP/1.1 413 entity too large\r\nConnection: close\r\n\r\n413 Entity too large\r\n"
    )
    assert handler.seen == []


def test_failing_handler_still_gets_finished_response():
    _, data = run(FailingHandler(), b"GET / HTTP/1.1\r\nConnection: close\r\n\r\n", shutdown_write=False)
    assert data.startswith(b"HTTP/1.1 200 OK\r\n")
    assert b"Content-Length: 0\r\n" in data


def test_default_handler_answers_501():
    _, data = run(HttpRequestHandler(), b"GET / HTTP/1.1\r\nConnection: close\r\n\r\n", shutdown_write=False)
    assert data.startswith(b"HTTP/1.1 501 not implemented\r\n")
    assert data.endswith(b"501 not implemented")


def test_chunked_response_keeps_connection_open():
    payload = b"GET /a HTTP/1.1\r\n\r\nGET /b HTTP/1.1\r\n\r\n"
    _, data = run(ChunkedHandler(), payload)
    assert data.count(b"Transfer-Encoding: chunked\r\n") == 2
    assert data.count(b"3\r\nabc\r\n0\r\n\r\n") == 2


def test_handler_may_request_close():
    payload = b"GET /a HTTP/1.1\r\n\r\nGET /b HTTP/1.1\r\n\r\n"
    _, data = run(ClosingHandler(), payload, shutdown_write=False)
    assert data.count(b"HTTP/1.1 200 OK") == 1
    assert data.endswith(b"bye")


def test_read_timeout_drops_connection():
    settings = Settings({"readTimeout": "100"})
    handler = RecordingHandler()
    connection, data = run(handler, b"GET / HTTP/1.1\r\n", shutdown_write=False, settings=settings)
    assert data == b""
    assert handler.seen == []
    assert connection.busy is False


def test_empty_connection_gives_no_response():
    handler = RecordingHandler()
    connection, data = run(handler, b"")
    assert data == b""
    assert handler.seen == []


def test_set_busy_marks_handler():
    connection = HttpConnectionHandler(Settings(), RecordingHandler())
    assert connection.busy is False
    connection.set_busy()
    assert connection.busy is True


def test_read_timeout_setting_in_seconds():
    connection = HttpConnectionHandler(Settings({"readTimeout": "2500"}), RecordingHandler())
    assert connection.read_timeout == pytest.approx(2.5)


def test_missing_request_handler_is_rejected():
    with pytest.raises(ValueError):
        HttpConnectionHandler(Settings(), None)


def test_handle_connection_serves_in_background():
    server, client = socket.socketpair()
    client.settimeout(5)
    handler = RecordingHandler()
    connection = HttpConnectionHandler(Settings(), handler)
    connection.handle_connection(server, ("127.0.0.1", 1234))
    assert connection.busy is True
    client.sendall(b"GET /x?a=z HTTP/1.1\r\nConnection: close\r\n\r\n")
    data = recv_all(client)
    connection.close()
    client.close()
    assert data.endswith(b"ok")
    assert handler.seen == [(b"GET", b"/x", b"z")]
    assert connection.busy is False