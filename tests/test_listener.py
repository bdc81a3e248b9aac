import socket

import pytest

from webapp.demo import HelloWorldHandler
from webapp.handler import HttpRequestHandler
from webapp.listener import HttpListener
from webapp.settings import Settings

GET_CLOSE = b"GET / HTTP/1.1\r\nHost: localhost\r\nConnection: close\r\n\r\n"


def _settings(**values):
    base = {"host": "127.0.0.1", "cleanupInterval": "3600000", "readTimeout": "5000"}
    base.update(values)
    return Settings(base)


def _fetch(port, request):
    with socket.create_connection(("127.0.0.1", port), timeout=5) as conn:
        conn.sendall(request)
        chunks = []
        while True:
            data = conn.recv(4096)
            if not data:
                break
            chunks.append(data)
    return b"".join(chunks)


def test_serves_request():
    with HttpListener(_settings(), HelloWorldHandler()) as listener:
        reply = _fetch(listener.port, GET_CLOSE)
    assert reply.startswith(b"HTTP/1.1 200 OK\r\n")
    assert reply.endswith(b"\r\n\r\n<html><body>Hello World!</body></html>")


def test_default_handler_answers_501():
    with HttpListener(_settings(), HttpRequestHandler()) as listener:
        reply = _fetch(listener.port, GET_CLOSE)
    assert reply.startswith(b"HTTP/1.1 501 not implemented\r\n")
    assert reply.endswith(b"501 not implemented")


def test_rejects_when_pool_is_full():
    with HttpListener(_settings(maxThreads="0"), HelloWorldHandler()) as listener:
        reply = _fetch(listener.port, GET_CLOSE)
    assert reply == (
        b"HTTP/1.1 503 too many connections\r\nConnection: close\r\n\r\nToo many connections\r\n"
    )


def test_close_stops_listening():
    listener = HttpListener(_settings(), HelloWorldHandler())
    assert listener.is_listening is True
    listener.close()
    assert listener.is_listening is False
    assert listener.pool is None
    with pytest.raises(RuntimeError):
        listener.address


def test_listen_again_after_close():
    listener = HttpListener(_settings(), HelloWorldHandler())
    listener.close()
    listener.listen()
    try:
        reply = _fetch(listener.port, GET_CLOSE)
    finally:
        listener.close()
    assert b"Hello World!" in reply


def test_configured_port_is_used():
    with socket.socket() as probe:
        probe.bind(("127.0.0.1", 0))
        free_port = probe.getsockname()[1]
    with HttpListener(_settings(port=str(free_port)), HelloWorldHandler()) as listener:
        assert listener.port == free_port


def test_bind_failure_raises():
    with HttpListener(_settings(), HelloWorldHandler()) as first:
        with socket.socket() as blocker:
            blocker.bind(("127.0.0.1", 0))
            blocker.listen()
            taken = blocker.getsockname()[1]
            with pytest.raises(OSError):
                HttpListener(_settings(port=str(taken)), HelloWorldHandler())
        assert first.is_listening is True


def test_requires_request_handler():
    with pytest.raises(ValueError):
        HttpListener(_settings(), None)