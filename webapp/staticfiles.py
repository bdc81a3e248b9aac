"""Delivery of static files from a document root, with a small in-memory cache."""

from __future__ import annotations

import logging
import os
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass

from .handler import HttpRequestHandler
from .request import HttpRequest
from .response import HttpResponse
from .settings import Settings

logger = logging.getLogger(__name__)

_BLOCK_SIZE = 65536

_FIXED_TYPES: tuple[tuple[tuple[str, ...], str], ...] = (
    ((".png",), "image/png"),
    ((".jpg",), "image/jpeg"),
    ((".gif",), "image/gif"),
    ((".pdf",), "application/pdf"),
    ((".txt",), "text/plain; charset={encoding}"),
    ((".html", ".htm"), "text/html; charset={encoding}"),
    ((".css",), "text/css"),
    ((".js",), "text/javascript"),
    ((".svg",), "image/svg+xml"),
    ((".woff",), "font/woff"),
    ((".woff2",), "font/woff2"),
    ((".ttf",), "application/x-font-ttf"),
    ((".eot",), "application/vnd.ms-fontobject"),
    ((".otf",), "application/font-otf"),
    ((".json",), "application/json"),
    ((".xml",), "text/xml"),
)


def content_type_for(file_name: str, encoding: str = "UTF-8") -> str | None:
    """The Content-Type for a file name, judged by its ending; None if unknown."""
    for endings, content_type in _FIXED_TYPES:
        if file_name.endswith(endings):
            return content_type.format(encoding=encoding)
    logger.debug("StaticFileController: unknown MIME type for filename %r", file_name)
    return None


@dataclass
class _CacheEntry:
    document: bytes
    created: int
    filename: str


class _CostCache:
    """Least-recently-used cache limited by the total cost of its entries."""

    def __init__(self, max_cost: int) -> None:
        self.max_cost = max_cost
        self._entries: OrderedDict[bytes, tuple[_CacheEntry, int]] = OrderedDict()
        self._total = 0

    def get(self, key: bytes) -> _CacheEntry | None:
        item = self._entries.get(key)
        if item is None:
            return None
        self._entries.move_to_end(key)
        return item[0]

    def insert(self, key: bytes, entry: _CacheEntry, cost: int) -> bool:
        self._discard(key)
        if cost > self.max_cost:
            return False
        while self._entries and self._total + cost > self.max_cost:
            _, (_, old_cost) = self._entries.popitem(last=False)
            self._total -= old_cost
        self._entries[key] = (entry, cost)
        self._total += cost
        return True

    def _discard(self, key: bytes) -> None:
        item = self._entries.pop(key, None)
        if item is not None:
            self._total -= item[1]

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)


class StaticFileController(HttpRequestHandler):
    """Serves files below a document root.

    Settings: ``path`` (default ".", relative to the configuration file),
    ``encoding`` (default "UTF-8"), ``maxAge`` in milliseconds for the browser
    cache (default 60000), ``cacheTime`` in milliseconds, 0 meaning forever
    (default 60000), ``cacheSize`` in bytes (default 1000000) and
    ``maxCachedFileSize`` (default 65536). Create one instance and reuse it,
    otherwise the cache is useless.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        settings = settings if settings is not None else Settings()
        self.max_age = settings.get_int("maxAge", 60000)
        self.encoding = settings.get_str("encoding", "UTF-8")
        self.docroot = settings.resolve_path(settings.get_str("path", "."))
        self.max_cached_file_size = settings.get_int("maxCachedFileSize", 65536)
        self.cache_timeout = settings.get_int("cacheTime", 60000)
        self._cache = _CostCache(settings.get_int("cacheSize", 1000000))
        self._lock = threading.Lock()
        logger.debug(
            "StaticFileController: docroot=%s, encoding=%s, maxAge=%i",
            self.docroot,
            self.encoding,
            self.max_age,
        )

    def _set_content_type(self, file_name: str, response: HttpResponse) -> None:
        content_type = content_type_for(file_name, self.encoding)
        if content_type is not None:
            response.set_header(b"Content-Type", content_type)

    def _cache_control(self) -> bytes:
        return b"max-age=" + str(int(self.max_age / 1000)).encode("ascii")

    def service(self, request: HttpRequest, response: HttpResponse) -> None:
        """Send the requested file, a 403 for forbidden paths or a 404 if missing."""
        request_path = request.path
        now = int(time.time() * 1000)
        with self._lock:
            entry = self._cache.get(request_path)
            if entry is not None and not (
                self.cache_timeout == 0 or entry.created > now - self.cache_timeout
            ):
                entry = None
        if entry is not None:
            logger.debug("StaticFileController: cache hit for %r", request_path)
            self._set_content_type(entry.filename, response)
            response.set_header(b"Cache-Control", self._cache_control())
            response.write(entry.document, True)
            return

        logger.debug("StaticFileController: cache miss for %r", request_path)
        if b"/.." in request_path:
            logger.warning("StaticFileController: detected forbidden characters in path %r", request_path)
            response.set_status(403, b"forbidden")
            response.write(b"403 forbidden", True)
            return

        path = os.fsdecode(request_path)
        if os.path.isdir(self.docroot + path):
            path += "/index.html"
        file_name = self.docroot + path
        logger.debug("StaticFileController: open file %s", file_name)
        try:
            file = open(file_name, "rb")
        except OSError:
            if os.path.exists(file_name):
                logger.warning("StaticFileController: cannot open existing file %s for reading", file_name)
                response.set_status(403, b"forbidden")
                response.write(b"403 forbidden", True)
            else:
                response.set_status(404, b"not found")
                response.write(b"404 not found", True)
            return

        with file:
            size = os.fstat(file.fileno()).st_size
            self._set_content_type(path, response)
            response.set_header(b"Cache-Control", self._cache_control())
            response.set_header(b"Content-Length", size)
            if size <= self.max_cached_file_size:
                document = bytearray()
                for block in iter(lambda: file.read(_BLOCK_SIZE), b""):
                    response.write(block)
                    document += block
                new_entry = _CacheEntry(bytes(document), now, path)
                with self._lock:
                    self._cache.insert(request_path, new_entry, len(new_entry.document))
            else:
                for block in iter(lambda: file.read(_BLOCK_SIZE), b""):
                    response.write(block)