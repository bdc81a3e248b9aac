"""Thread-safe storage for the data of one HTTP session."""

from __future__ import annotations

import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Any


def _now_ms() -> int:
    return int(time.time() * 1000)


def _as_bytes(value: bytes | bytearray | str) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8")
    return bytes(value)


@dataclass
class _SessionData:
    id: bytes
    last_access: int
    values: dict[bytes, Any] = field(default_factory=dict)
    lock: threading.Lock = field(default_factory=threading.Lock)


class HttpSession:
    """Key/value data of one HTTP session.

    A session created with ``can_store=False`` is a null session: it has no id
    and ignores every change. Copies of a session (``copy.copy``) share its data.
    """

    def __init__(self, can_store: bool = False) -> None:
        self._data: _SessionData | None = None
        if can_store:
            session_id = ("{" + str(uuid.uuid4()) + "}").encode("ascii")
            self._data = _SessionData(id=session_id, last_access=_now_ms())

    @property
    def id(self) -> bytes:
        """The unique id of the session, or b"" for a null session."""
        return self._data.id if self._data is not None else b""

    @property
    def is_null(self) -> bool:
        """True if the session cannot store data."""
        return self._data is None

    @property
    def last_access(self) -> int:
        """Time of the last access in milliseconds since the epoch; 0 for a null session."""
        data = self._data
        if data is None:
            return 0
        with data.lock:
            return data.last_access

    def set(self, key: bytes | str, value: Any) -> None:
        data = self._data
        if data is not None:
            with data.lock:
                data.values[_as_bytes(key)] = value

    def remove(self, key: bytes | str) -> None:
        data = self._data
        if data is not None:
            with data.lock:
                data.values.pop(_as_bytes(key), None)

    def get(self, key: bytes | str, default: Any = None) -> Any:
        data = self._data
        if data is None:
            return default
        with data.lock:
            return data.values.get(_as_bytes(key), default)

    def contains(self, key: bytes | str) -> bool:
        data = self._data
        if data is None:
            return False
        with data.lock:
            return _as_bytes(key) in data.values

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, (bytes, bytearray, str)):
            return False
        return self.contains(key)

    def get_all(self) -> dict[bytes, Any]:
        """A copy of all stored values; later changes do not affect it."""
        data = self._data
        if data is None:
            return {}
        with data.lock:
            return dict(data.values)

    def touch(self) -> None:
        """Renew the timeout period by setting the last access time to now."""
        data = self._data
        if data is not None:
            with data.lock:
                data.last_access = _now_ms()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, HttpSession):
            return NotImplemented
        return self._data is other._data

    def __hash__(self) -> int:
        return hash(self.id)

    def __repr__(self) -> str:
        return f"HttpSession(id={self.id!r})"