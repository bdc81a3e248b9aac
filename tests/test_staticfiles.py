import io

import pytest

from webapp.request import HttpRequest
from webapp.response import HttpResponse
from webapp.settings import Settings
from webapp.staticfiles import StaticFileController, content_type_for


def serve(controller, target):
    request = HttpRequest()
    request.read_from(io.BytesIO(b"GET " + target + b" HTTP/1.1\r\nHost: localhost\r\n\r\n"))
    stream = io.BytesIO()
    response = HttpResponse(stream)
    controller.service(request, response)
    if not response.sent_last_part:
        response.write(b"", True)
    head, _, body = stream.getvalue().partition(b"\r\n\r\n")
    return response, head, body


@pytest.fixture
def docroot(tmp_path):
    root = tmp_path / "docroot"
    root.mkdir()
    (root / "page.html").write_bytes(b"<p>hello</p>")
    (root / "notes.txt").write_bytes(b"some notes")
    return root


def make_controller(docroot, **extra):
    values = {"path": str(docroot)}
    values.update(extra)
    return StaticFileController(Settings(values))


def test_serves_file_with_headers(docroot):
    controller = make_controller(docroot)
    response, head, body = serve(controller, b"/page.html")
    assert response.status_code == 200
    assert body == b"<p>hello</p>"
    assert b"Content-Type: text/html; charset=UTF-8" in head
    assert b"Cache-Control: max-age=60" in head
    assert response.headers[b"Content-Length"] == str(len(body)).encode()


def test_encoding_setting_used_for_text(docroot):
    controller = make_controller(docroot, encoding="ISO-8859-1")
    _, head, body = serve(controller, b"/notes.txt")
    assert body == b"some notes"
    assert b"Content-Type: text/plain; charset=ISO-8859-1" in head


def test_missing_file_gives_404(docroot):
    response, _, body = serve(make_controller(docroot), b"/nothing.html")
    assert response.status_code == 404
    assert body == b"404 not found"


def test_parent_directory_is_forbidden(docroot):
    response, _, body = serve(make_controller(docroot), b"/../secret.txt")
    assert response.status_code == 403
    assert body == b"403 forbidden"


def test_encoded_parent_directory_is_forbidden(docroot):
    response, _, _ = serve(make_controller(docroot), b"/%2E%2E/secret.txt")
    assert response.status_code == 403


def test_directory_serves_index(docroot):
    sub = docroot / "sub"
    sub.mkdir()
    (sub / "index.html").write_bytes(b"index page")
    response, head, body = serve(make_controller(docroot), b"/sub")
    assert response.status_code == 200
    assert body == b"index page"
    assert b"text/html" in head


def test_directory_without_index_gives_404(docroot):
    (docroot / "empty").mkdir()
    response, _, _ = serve(make_controller(docroot), b"/empty")
    assert response.status_code == 404


def test_small_files_are_cached(docroot):
    controller = make_controller(docroot)
    serve(controller, b"/page.html")
    (docroot / "page.html").write_bytes(b"changed")
    response, head, body = serve(controller, b"/page.html")
    assert body == b"<p>hello</p>"
    assert b"text/html" in head
    assert response.headers[b"Content-Length"] == str(len(body)).encode()


def test_large_files_are_not_cached(docroot):
    controller = make_controller(docroot, maxCachedFileSize="4")
    serve(controller, b"/page.html")
    (docroot / "page.html").write_bytes(b"changed")
    _, _, body = serve(controller, b"/page.html")
    assert body == b"changed"


def test_cache_evicts_least_recently_used(docroot):
    (docroot / "a.txt").write_bytes(b"aaaaaaaaaa")
    (docroot / "b.txt").write_bytes(b"bbbbbbbbbb")
    controller = make_controller(docroot, cacheSize="15")
    serve(controller, b"/a.txt")
    serve(controller, b"/b.txt")
    (docroot / "a.txt").write_bytes(b"new a")
    (docroot / "b.txt").write_bytes(b"new b")
    assert serve(controller, b"/a.txt")[2] == b"new a"


def test_relative_docroot_resolved_against_config_file(tmp_path):
    settings = Settings({"path": "docroot"}, file_name=tmp_path / "app.ini")
    controller = StaticFileController(settings)
    assert controller.docroot == str(tmp_path / "docroot")


@pytest.mark.parametrize(
    "name, expected",
    [
        ("picture.png", "image/png"),
        ("photo.jpg", "image/jpeg"),
        ("style.css", "text/css"),
        ("app.js", "text/javascript"),
        ("font.woff2", "font/woff2"),
        ("font.woff", "font/woff"),
        ("data.json", "application/json"),
        ("page.htm", "text/html; charset=UTF-8"),
    ],
)
def test_content_type_for_known_endings(name, expected):
    assert content_type_for(name, "UTF-8") == expected


def test_content_type_for_unknown_ending():
    assert content_type_for("archive.zip", "UTF-8") is None