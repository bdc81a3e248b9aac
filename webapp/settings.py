"""Configuration settings for the HTTP server, read from INI files or given directly."""

from __future__ import annotations

import configparser
import os
from collections.abc import Iterator, Mapping
from pathlib import Path
from typing import Any

_VERSION = "1.8.6"
_DEFAULT_GROUP = "General"
_HIDDEN_DEFAULTS = "\0defaults"
_FALSE_WORDS = frozenset({"", "0", "false"})


def library_version() -> str:
    """Return the version number of the library."""
    return _VERSION


def _unquote(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value.startswith('"') and value.endswith('"'):
        return value[1:-1]
    return value


class Settings:
    """A flat group of key/value settings, optionally tied to the file it came from.

    Relative paths in the settings are resolved against the directory of that file.
    """

    def __init__(
        self,
        values: Mapping[str, Any] | None = None,
        file_name: str | os.PathLike[str] | None = None,
    ) -> None:
        self.values: dict[str, Any] = dict(values or {})
        self.file_name: str | None = os.fspath(file_name) if file_name is not None else None

    @classmethod
    def from_ini(cls, path: str | os.PathLike[str], group: str | None = None) -> Settings:
        """Load the keys of one group (INI section) of a configuration file.

        Keys that stand before any section header belong to the group "General".
        A group that does not exist gives empty settings.
        """
        file_path = Path(path)
        text = file_path.read_text(encoding="utf-8")
        parser = configparser.ConfigParser(
            interpolation=None,
            strict=False,
            comment_prefixes=(";", "#"),
            default_section=_HIDDEN_DEFAULTS,
        )
        parser.optionxform = str  # type: ignore[assignment,method-assign]
        parser.read_string(f"[{_DEFAULT_GROUP}]\n{text}", source=str(file_path))
        section = group or _DEFAULT_GROUP
        values: dict[str, Any] = {}
        if parser.has_section(section):
            values = {key: _unquote(value) for key, value in parser.items(section)}
        return cls(values, file_path)

    def __getitem__(self, key: str) -> Any:
        return self.values[key]

    def __setitem__(self, key: str, value: Any) -> None:
        self.values[key] = value

    def __contains__(self, key: object) -> bool:
        return key in self.values

    def __iter__(self) -> Iterator[str]:
        return iter(self.values)

    def __len__(self) -> int:
        return len(self.values)

    def get(self, key: str, default: Any = None) -> Any:
        """Return the raw value of a key, or the default if it is missing."""
        return self.values.get(key, default)

    def get_int(self, key: str, default: int = 0) -> int:
        """Return a value as integer; a present value that is not a number gives 0."""
        value = self.values.get(key)
        if value is None:
            return default
        if isinstance(value, int):
            return int(value)
        try:
            return int(str(value).strip())
        except ValueError:
            return 0

    def get_str(self, key: str, default: str = "") -> str:
        """Return a value as text."""
        value = self.values.get(key)
        if value is None:
            return default
        if isinstance(value, bytes):
            return value.decode("utf-8", errors="replace")
        return str(value)

    def get_bool(self, key: str, default: bool = False) -> bool:
        """Return a value as boolean: empty, "0" and "false" are false, anything else is true."""
        value = self.values.get(key)
        if value is None:
            return default
        if isinstance(value, bool):
            return value
        return str(value).strip().lower() not in _FALSE_WORDS

    def resolve_path(self, path: str | os.PathLike[str]) -> str:
        """Make a path absolute, relative to the directory of the configuration file."""
        text = os.fspath(path)
        if os.path.isabs(text):
            return text
        if self.file_name is not None:
            base = os.path.dirname(os.path.abspath(self.file_name))
        else:
            base = os.getcwd()
        return os.path.abspath(os.path.join(base, text))