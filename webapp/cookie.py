"""HTTP cookies as defined in RFC 2109, with some attributes of RFC 6265bis."""

from __future__ import annotations

import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)


def _as_bytes(value: bytes | bytearray | str) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8")
    return bytes(value)


def _to_int(value: bytes) -> int:
    try:
        return int(value.strip())
    except ValueError:
        return 0


def split_csv(source: bytes | str) -> list[bytes]:
    """Split on semicolons, skipping those inside double quotes; quotes are removed.

    Parts are trimmed and empty parts are dropped.
    """
    parts: list[bytes] = []
    buffer = bytearray()
    in_string = False
    for byte in _as_bytes(source):
        char = bytes((byte,))
        if char == b'"':
            in_string = not in_string
        elif char == b";" and not in_string:
            part = bytes(buffer).strip()
            if part:
                parts.append(part)
            buffer.clear()
        else:
            buffer += char
    part = bytes(buffer).strip()
    if part:
        parts.append(part)
    return parts


@dataclass
class HttpCookie:
    """A cookie with its attributes. A max_age of 0 means discard immediately."""

    name: bytes = b""
    value: bytes = b""
    max_age: int = 0
    path: bytes = b"/"
    comment: bytes = b""
    domain: bytes = b""
    secure: bool = False
    http_only: bool = False
    same_site: bytes = b""
    version: int = 1

    def __post_init__(self) -> None:
        self.name = _as_bytes(self.name)
        self.value = _as_bytes(self.value)
        self.path = _as_bytes(self.path)
        self.comment = _as_bytes(self.comment)
        self.domain = _as_bytes(self.domain)
        self.same_site = _as_bytes(self.same_site)

    @classmethod
    def parse(cls, source: bytes | str) -> HttpCookie:
        """Create a cookie from the text of a Set-Cookie or Cookie2 header."""
        cookie = cls(path=b"")
        for part in split_csv(source):
            position = part.find(b"=")
            if position > 0:
                name = part[:position].strip()
                value = part[position + 1:].strip()
            else:
                name = part.strip()
                value = b""

            if name == b"Comment":
                cookie.comment = value
            elif name == b"Domain":
                cookie.domain = value
            elif name == b"Max-Age":
                cookie.max_age = _to_int(value)
            elif name == b"Path":
                cookie.path = value
            elif name == b"Secure":
                cookie.secure = True
            elif name == b"HttpOnly":
                cookie.http_only = True
            elif name == b"SameSite":
                cookie.same_site = value
            elif name == b"Version":
                cookie.version = _to_int(value)
            elif not cookie.name:
                cookie.name = name
                cookie.value = value
            else:
                logger.warning("HttpCookie: ignoring unknown %r=%r", name, value)
        return cookie

    def to_bytes(self) -> bytes:
        """Render the cookie for use in a Set-Cookie header."""
        parts = [self.name + b"=" + self.value]
        if self.comment:
            parts.append(b"Comment=" + self.comment)
        if self.domain:
            parts.append(b"Domain=" + self.domain)
        if self.max_age != 0:
            parts.append(b"Max-Age=" + str(self.max_age).encode("ascii"))
        if self.path:
            parts.append(b"Path=" + self.path)
        if self.secure:
            parts.append(b"Secure")
        if self.http_only:
            parts.append(b"HttpOnly")
        if self.same_site:
            parts.append(b"SameSite=" + self.same_site)
        parts.append(b"Version=" + str(self.version).encode("ascii"))
        return b"; ".join(parts)

    def __bytes__(self) -> bytes:
        return self.to_bytes()