"""Parsing of HTTP requests read from a binary stream."""

from __future__ import annotations

import enum
import logging
import tempfile
from typing import IO, BinaryIO

from .settings import Settings

logger = logging.getLogger(__name__)

_HEX_DIGITS = frozenset(b"0123456789abcdefABCDEF")
_BLOCK_SIZE = 65536


def _as_bytes(value: bytes | bytearray | str) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8")
    return bytes(value)


def _to_int(value: bytes) -> int:
    try:
        return int(value.strip())
    except ValueError:
        return 0


def url_decode(source: bytes | str) -> bytes:
    """Decode a URL-encoded value: "+" becomes a space and "%xx" becomes the byte xx."""
    data = _as_bytes(source).replace(b"+", b" ")
    result = bytearray()
    position = 0
    while position < len(data):
        byte = data[position]
        if byte == ord("%"):
            code = data[position + 1:position + 3]
            if code and all(digit in _HEX_DIGITS for digit in code):
                result.append(int(code, 16))
                position += 1 + len(code)
                continue
        result.append(byte)
        position += 1
    return bytes(result)


class RequestStatus(enum.Enum):
    """States of the request parser."""

    WAIT_FOR_REQUEST = "waitForRequest"
    WAIT_FOR_HEADER = "waitForHeader"
    WAIT_FOR_BODY = "waitForBody"
    COMPLETE = "complete"
    ABORT = "abort"


class HttpRequest:
    """A single HTTP request, read step by step from a stream.

    Reads are limited by the settings ``maxRequestSize`` (default 16000) and, for
    multipart/form-data bodies, ``maxMultiPartSize`` (default 1000000).
    """

    def __init__(self, settings: Settings | None = None) -> None:
        settings = settings if settings is not None else Settings()
        self.status = RequestStatus.WAIT_FOR_REQUEST
        self.max_size = settings.get_int("maxRequestSize", 16000)
        self.max_multipart_size = settings.get_int("maxMultiPartSize", 1000000)
        self.method = b""
        self.raw_path = b""
        self.version = b""
        self.body = b""
        self.peer_address: str | None = None
        self.boundary = b""
        self._headers: dict[bytes, list[bytes]] = {}
        self._parameters: dict[bytes, list[bytes]] = {}
        self._uploaded_files: dict[bytes, IO[bytes]] = {}
        self._cookies: dict[bytes, bytes] = {}
        self._current_size = 0
        self._expected_body_size = 0
        self._current_header = b""
        self._line_buffer = bytearray()
        self._body_buffer = bytearray()
        self._temp_file: IO[bytes] | None = None

    # Reading

    def read_from(self, stream: BinaryIO, peer_address: str | None = None) -> RequestStatus:
        """Read from the stream until the request is complete, aborted, or no data is left.

        The parser keeps its state, so a partial request can be continued by a later call.
        """
        if self.status is RequestStatus.COMPLETE:
            raise RuntimeError("the request has already been read completely")
        while self.status not in (RequestStatus.COMPLETE, RequestStatus.ABORT):
            if not self._step(stream, peer_address):
                break
        return self.status

    def _step(self, stream: BinaryIO, peer_address: str | None) -> int:
        if self.status is RequestStatus.WAIT_FOR_REQUEST:
            consumed = self._read_request(stream, peer_address)
        elif self.status is RequestStatus.WAIT_FOR_HEADER:
            consumed = self._read_header(stream)
        else:
            consumed = self._read_body(stream)

        limit = self.max_multipart_size if self.boundary else self.max_size
        if self._current_size > limit:
            logger.warning("HttpRequest: received too many bytes")
            self.status = RequestStatus.ABORT
        if self.status is RequestStatus.COMPLETE:
            self._decode_request_params()
            self._extract_cookies()
        return consumed

    def _read_line(self, stream: BinaryIO) -> tuple[int, bytes | None]:
        """Collect data until a line break; return the bytes read and the trimmed line, if any."""
        data = stream.readline(self.max_size - self._current_size + 1) or b""
        self._current_size += len(data)
        self._line_buffer += data
        if b"\r\n" not in self._line_buffer:
            return len(data), None
        line = bytes(self._line_buffer).strip()
        self._line_buffer.clear()
        return len(data), line

    def _read_request(self, stream: BinaryIO, peer_address: str | None) -> int:
        consumed, line = self._read_line(stream)
        if line:
            logger.debug("HttpRequest: from %s: %r", peer_address, line)
            parts = line.split(b" ")
            if len(parts) != 3 or b"HTTP" not in parts[2]:
                logger.warning("HttpRequest: received broken HTTP request, invalid first line")
                self.status = RequestStatus.ABORT
            else:
                self.method = parts[0].strip()
                self.raw_path = parts[1]
                self.version = parts[2]
                self.peer_address = peer_address
                self.status = RequestStatus.WAIT_FOR_HEADER
        return consumed

    def _read_header(self, stream: BinaryIO) -> int:
        consumed, line = self._read_line(stream)
        if line is None:
            return consumed
        colon = line.find(b":")
        if colon > 0:
            self._current_header = line[:colon].lower()
            value = line[colon + 1:].strip()
            self._headers.setdefault(self._current_header, []).append(value)
        elif line:
            values = self._headers.get(self._current_header)
            if values:
                values[-1] = values[-1] + b" " + line
        else:
            self._finish_headers()
        return consumed

    def _finish_headers(self) -> None:
        content_type = self.header(b"content-type")
        if content_type.startswith(b"multipart/form-data"):
            position = content_type.find(b"boundary=")
            if position >= 0:
                boundary = content_type[position + 9:]
                if len(boundary) >= 2 and boundary.startswith(b'"') and boundary.endswith(b'"'):
                    boundary = boundary[1:-1]
                self.boundary = boundary
        content_length = self.header(b"content-length")
        if content_length:
            self._expected_body_size = _to_int(content_length)

        if self._expected_body_size == 0:
            self.status = RequestStatus.COMPLETE
        elif not self.boundary and self._expected_body_size + self._current_size > self.max_size:
            logger.warning("HttpRequest: expected body is too large")
            self.status = RequestStatus.ABORT
        elif self.boundary and self._expected_body_size > self.max_multipart_size:
            logger.warning("HttpRequest: expected multipart body is too large")
            self.status = RequestStatus.ABORT
        else:
            self.status = RequestStatus.WAIT_FOR_BODY

    def _read_body(self, stream: BinaryIO) -> int:
        if not self.boundary:
            wanted = self._expected_body_size - len(self._body_buffer)
            data = stream.read(wanted) or b""
            self._current_size += len(data)
            self._body_buffer += data
            if len(self._body_buffer) >= self._expected_body_size:
                self.body = bytes(self._body_buffer)
                self.status = RequestStatus.COMPLETE
            return len(data)

        if self._temp_file is None:
            self._temp_file = tempfile.TemporaryFile()
        temp_file = self._temp_file
        file_size = temp_file.seek(0, 2)
        wanted = min(self._expected_body_size - file_size, _BLOCK_SIZE)
        data = stream.read(wanted) or b""
        file_size += temp_file.write(data)
        if file_size >= self.max_multipart_size:
            logger.warning("HttpRequest: received too many multipart bytes")
            self.status = RequestStatus.ABORT
        elif file_size >= self._expected_body_size:
            temp_file.flush()
            self._parse_multipart(temp_file)
            temp_file.close()
            self._temp_file = None
            self.status = RequestStatus.COMPLETE
        return len(data)

    def _parse_multipart(self, source: IO[bytes]) -> None:
        source.seek(0)
        delimiter = b"--" + self.boundary
        finished = False
        at_end = False
        while not finished and not at_end:
            field_name = b""
            file_name = b""
            while True:
                raw = source.readline(_BLOCK_SIZE)
                if not raw:
                    at_end = True
                    break
                line = raw.strip()
                if line.startswith(b"Content-Disposition:"):
                    if b"form-data" in line:
                        field_name = _quoted_attribute(line, b' name="') or field_name
                        file_name = _quoted_attribute(line, b' filename="') or file_name
                    else:
                        logger.debug("HttpRequest: ignoring unsupported content part %r", line)
                elif not line:
                    break

            upload: IO[bytes] | None = None
            field_value = bytearray()
            while not at_end:
                line = source.readline(_BLOCK_SIZE)
                if not line:
                    at_end = True
                    break
                if line.startswith(delimiter):
                    if field_name and not file_name:
                        del field_value[-2:]
                        self._parameters.setdefault(field_name, []).append(bytes(field_value))
                    elif field_name and file_name:
                        if upload is not None:
                            upload.truncate(max(upload.tell() - 2, 0))
                            upload.flush()
                            upload.seek(0)
                            self._parameters.setdefault(field_name, []).append(file_name)
                            previous = self._uploaded_files.pop(field_name, None)
                            if previous is not None:
                                previous.close()
                            self._uploaded_files[field_name] = upload
                            upload = None
                        else:
                            logger.warning("HttpRequest: format error, unexpected end of file data")
                    if self.boundary + b"--" in line:
                        finished = True
                    break
                if field_name and not file_name:
                    self._current_size += len(line)
                    field_value += line
                elif field_name and file_name:
                    if upload is None:
                        upload = tempfile.TemporaryFile()
                    upload.write(line)
            if upload is not None:
                upload.close()

    def _decode_request_params(self) -> None:
        raw_parameters = b""
        question_mark = self.raw_path.find(b"?")
        if question_mark >= 0:
            raw_parameters = self.raw_path[question_mark + 1:]
            self.raw_path = self.raw_path[:question_mark]
        content_type = self.header(b"content-type")
        if self.body and (
            not content_type or content_type.startswith(b"application/x-www-form-urlencoded")
        ):
            raw_parameters = raw_parameters + b"&" + self.body if raw_parameters else self.body
        for part in raw_parameters.split(b"&"):
            equals = part.find(b"=")
            if equals >= 0:
                name = url_decode(part[:equals].strip())
                value = url_decode(part[equals + 1:].strip())
                self._parameters.setdefault(name, []).append(value)
            elif part:
                self._parameters.setdefault(url_decode(part), []).append(b"")

    def _extract_cookies(self) -> None:
        from .cookie import split_csv

        for cookie_text in self._headers.pop(b"cookie", []):
            for part in split_csv(cookie_text):
                position = part.find(b"=")
                if position > 0:
                    self._cookies[part[:position].strip()] = part[position + 1:].strip()
                else:
                    self._cookies[part.strip()] = b""

    # Access

    @property
    def path(self) -> bytes:
        """The decoded path, e.g. b"/index.html"."""
        return url_decode(self.raw_path)

    def header(self, name: bytes | str) -> bytes:
        """The last value of a header (case-insensitive name), or b"" if missing."""
        values = self._headers.get(_as_bytes(name).lower())
        return values[-1] if values else b""

    def headers(self, name: bytes | str) -> list[bytes]:
        """All values of a header (case-insensitive name), in the order received."""
        return list(self._headers.get(_as_bytes(name).lower(), []))

    @property
    def header_map(self) -> dict[bytes, list[bytes]]:
        """All headers with lower-case names."""
        return {name: list(values) for name, values in self._headers.items()}

    def parameter(self, name: bytes | str) -> bytes:
        """The last value of a parameter (case-sensitive name), or b"" if missing."""
        values = self._parameters.get(_as_bytes(name))
        return values[-1] if values else b""

    def parameters(self, name: bytes | str) -> list[bytes]:
        """All values of a parameter, in the order received."""
        return list(self._parameters.get(_as_bytes(name), []))

    @property
    def parameter_map(self) -> dict[bytes, list[bytes]]:
        return {name: list(values) for name, values in self._parameters.items()}

    def uploaded_file(self, field_name: bytes | str) -> IO[bytes] | None:
        """The open temporary file uploaded under a field name, positioned at its start."""
        return self._uploaded_files.get(_as_bytes(field_name))

    def cookie(self, name: bytes | str) -> bytes:
        """The value of a received cookie, or b"" if missing."""
        return self._cookies.get(_as_bytes(name), b"")

    @property
    def cookie_map(self) -> dict[bytes, bytes]:
        return self._cookies

    def close(self) -> None:
        """Close and delete uploaded and temporary files."""
        for upload in self._uploaded_files.values():
            upload.close()
        self._uploaded_files.clear()
        if self._temp_file is not None:
            self._temp_file.close()
            self._temp_file = None

    def __enter__(self) -> HttpRequest:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def _quoted_attribute(line: bytes, marker: bytes) -> bytes:
    start = line.find(marker)
    if start < 0:
        return b""
    end = line.find(b'"', start + len(marker))
    if end < 0:
        return b""
    return line[start + len(marker):end]