import pytest

from webapp.cookie import HttpCookie, split_csv


def test_split_csv_basic():
    assert split_csv(b"a=1; b=2;c=3") == [b"a=1", b"b=2", b"c=3"]


def test_split_csv_quoted_semicolon_and_empty_parts():
    assert split_csv(b'a=1; b="x;y"; ; c') == [b"a=1", b"b=x;y", b"c"]


def test_split_csv_accepts_text():
    assert split_csv("  one ;two  ") == [b"one", b"two"]


def test_split_csv_empty():
    assert split_csv(b"") == []


def test_constructor_defaults():
    cookie = HttpCookie("name", "value", 600)
    assert cookie.name == b"name"
    assert cookie.path == b"/"
    assert cookie.version == 1
    assert cookie.secure is False


def test_to_bytes_session_cookie():
    cookie = HttpCookie(b"sessionid", b"abc", 3600, same_site=b"Lax")
    assert cookie.to_bytes() == b"sessionid=abc; Max-Age=3600; Path=/; SameSite=Lax; Version=1"


def test_to_bytes_omits_zero_max_age_and_empty_path():
    cookie = HttpCookie(b"a", b"b", 0, b"")
    rendered = cookie.to_bytes()
    assert b"Max-Age" not in rendered
    assert b"Path" not in rendered
    assert rendered.endswith(b"; Version=1")


def test_to_bytes_flags():
    cookie = HttpCookie(b"firstCookie", b"hello", 600, b"", secure=True, http_only=True)
    rendered = bytes(cookie)
    assert b"; Secure" in rendered
    assert b"; HttpOnly" in rendered


def test_parse_attributes():
    cookie = HttpCookie.parse(
        b'theme="dark"; Comment=hi; Domain=example.com; Max-Age=600; Path=/app; '
        b"Secure; HttpOnly; SameSite=Strict; Version=1"
    )
    assert cookie.name == b"theme"
    assert cookie.value == b"dark"
    assert cookie.comment == b"hi"
    assert cookie.domain == b"example.com"
    assert cookie.max_age == 600
    assert cookie.path == b"/app"
    assert cookie.secure and cookie.http_only
    assert cookie.same_site == b"Strict"


def test_parse_defaults_to_empty_path():
    cookie = HttpCookie.parse(b"a=b")
    assert cookie.path == b""
    assert cookie.max_age == 0
    assert cookie.version == 1


def test_parse_invalid_number_gives_zero():
    assert HttpCookie.parse(b"a=b; Max-Age=soon").max_age == 0


def test_parse_ignores_second_unknown_pair():
    cookie = HttpCookie.parse(b"first=1; second=2")
    assert (cookie.name, cookie.value) == (b"first", b"1")


@pytest.mark.parametrize(
    "cookie",
    [
        HttpCookie(b"sessionid", b"abc", 3600, same_site=b"Lax"),
        HttpCookie(b"x", b"y", 10, b"/p", b"note", b"example.com", True, True, b"Strict"),
        HttpCookie(b"empty", b"", 0, b"/"),
    ],
)
def test_round_trip(cookie):
    assert HttpCookie.parse(cookie.to_bytes()) == cookie