"""
=============================================================================
HTTP RESPONSE
=============================================================================

Builds HTTP/1.1 responses with proper formatting per RFC 7230.

=============================================================================
TWO KINDS OF BODY
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     HTTP RESPONSE STRUCTURE                         │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                     │
    │  HEAD   HTTP/1.1 200 OK\r\n                                         │
    │         Content-Type: text/javascript\r\n                           │
    │         Content-Length: 1048576\r\n                                 │
    │         Last-Modified: Wed, 01 Jan 2026 12:00:00 GMT\r\n            │
    │         \r\n                                                        │
    │                                                                     │
    │  BODY   either                                                      │
    │           body=b"..."           in memory (errors, relayed assets)  │
    │         or                                                          │
    │           stream=FileBody(f)    read from disk chunk by chunk       │
    │                                                                     │
    └─────────────────────────────────────────────────────────────────────┘

A compiled bundle can be many megabytes. Reading it fully into memory for
every request would make memory use proportional to concurrency × asset
size, so the static handler hands the open file to the connection and the
connection copies it to the socket in chunks:

    Connection.send_response(response)
        │
        ├── sendall(response.head_bytes())
        ├── for chunk in response.iter_body(): sendall(chunk)
        └── finally: response.close()        ← file handle released once

=============================================================================
STATUS CODES ARE PLAIN INTS
=============================================================================

A relayed response carries whatever status the development server chose,
so ``status`` is an int. HTTPStatus members are ints too, so handlers can
keep writing ``status=HTTPStatus.NOT_FOUND``.

=============================================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Dict, Any, Union, BinaryIO, Iterator
import json

from .status_codes import HTTPStatus, reason_phrase


DEFAULT_CHUNK_SIZE = 64 * 1024

# Responses that must not carry a body or a Content-Length (RFC 7230 §3.3.2)
_BODYLESS_STATUSES = frozenset({HTTPStatus.NO_CONTENT, HTTPStatus.NOT_MODIFIED})


class FileBody:
    """
    A response body read lazily from an open binary file.

    Owns the file handle. The handle is closed when iteration reaches EOF
    or when close() is called, whichever happens first; closing twice is
    a no-op.
    """

    def __init__(self, fileobj: BinaryIO, chunk_size: int = DEFAULT_CHUNK_SIZE):
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        self._file = fileobj
        self.chunk_size = chunk_size
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def __iter__(self) -> Iterator[bytes]:
        try:
            while not self._closed:
                chunk = self._file.read(self.chunk_size)
                if not chunk:
                    break
                yield chunk
        finally:
            self.close()

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._file.close()


@dataclass
class HTTPResponse:
    """
    Represents an HTTP response to be sent to the client.

    Header names keep the case they were set with (relayed headers keep
    the upstream's spelling); lookups through get_header() ignore case.
    """

    status: int = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    stream: Optional[FileBody] = None
    version: str = "HTTP/1.1"

    @property
    def status_line(self) -> str:
        """
        Format: HTTP-VERSION SP STATUS-CODE SP REASON-PHRASE

        Codes unknown to HTTPStatus get the phrase "Unknown".
        """
        return f"{self.version} {int(self.status)} {reason_phrase(self.status)}"

    # =========================================================================
    # HEADERS
    # =========================================================================

    def _find_header(self, name: str) -> Optional[str]:
        lowered = name.lower()
        for existing in self.headers:
            if existing.lower() == lowered:
                return existing
        return None

    def get_header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Get a header value, case-insensitively."""
        existing = self._find_header(name)
        return self.headers[existing] if existing is not None else default

    def has_header(self, name: str) -> bool:
        return self._find_header(name) is not None

    def set_header(self, name: str, value: str) -> "HTTPResponse":
        """
        Set a header, replacing any existing one with the same name in
        any case. Returns self for chaining.
        """
        existing = self._find_header(name)
        if existing is not None:
            del self.headers[existing]
        self.headers[name] = value
        return self

    def add_header(self, name: str, value: str) -> "HTTPResponse":
        """
        Add a header value, comma-joining it onto an existing one.

        Used when relaying upstream headers that arrive more than once.
        """
        existing = self._find_header(name)
        if existing is None:
            self.headers[name] = value
        else:
            self.headers[existing] = f"{self.headers[existing]}, {value}"
        return self

    def remove_header(self, name: str) -> None:
        existing = self._find_header(name)
        if existing is not None:
            del self.headers[existing]

    def set_content_type(self, content_type: str) -> "HTTPResponse":
        return self.set_header("Content-Type", content_type)

    def set_body(self, body: Union[str, bytes]) -> "HTTPResponse":
        """Set an in-memory body; strings are encoded as UTF-8."""
        self.body = body.encode("utf-8") if isinstance(body, str) else body
        return self

    # =========================================================================
    # SERIALIZATION
    # =========================================================================

    def head_bytes(self, server_name: str = "assetrelay") -> bytes:
        """
        Serialize the status line and headers, including the blank line.

        Content-Length is derived from the in-memory body when absent
        (streamed bodies must set it themselves). Date and Server are
        added when absent.
        """
        response_headers = dict(self.headers)
        bodyless = self.status in _BODYLESS_STATUSES or 100 <= self.status < 200

        if bodyless:
            for name in [n for n in response_headers if n.lower() == "content-length"]:
                del response_headers[name]
        elif self.stream is None and not self.has_header("Content-Length"):
            response_headers["Content-Length"] = str(len(self.body))

        if not self.has_header("Date"):
            response_headers["Date"] = format_http_date(datetime.now(timezone.utc))

        if not self.has_header("Server"):
            response_headers["Server"] = server_name

        lines = [self.status_line]
        for name, value in response_headers.items():
            lines.append(f"{name}: {value}")
        lines.append("")
        lines.append("")

        # Relayed header values were decoded as ISO-8859-1, so encode the same way
        return "\r\n".join(lines).encode("iso-8859-1", errors="replace")

    def iter_body(self) -> Iterator[bytes]:
        """Yield the body in the pieces it should be written to the socket."""
        if self.status in _BODYLESS_STATUSES:
            return
        if self.stream is not None:
            yield from self.stream
        elif self.body:
            yield self.body

    def close(self) -> None:
        """Release the streamed body, if any. Safe to call more than once."""
        if self.stream is not None:
            self.stream.close()

    def to_bytes(self, server_name: str = "assetrelay") -> bytes:
        """
        Serialize the whole response, reading any stream to the end.

        Convenient for tests and small responses; the connection uses
        head_bytes() and iter_body() instead so large files are never
        held in memory.
        """
        try:
            return self.head_bytes(server_name) + b"".join(self.iter_body())
        finally:
            self.close()


class ResponseBuilder:
    """
    Fluent builder for constructing HTTP responses.

        response = (ResponseBuilder()
            .status(HTTPStatus.BAD_GATEWAY)
            .json({"error": "development server unavailable"})
            .close_connection()
            .build())

    Every method except build() returns self.
    """

    def __init__(self):
        self._status: int = HTTPStatus.OK
        self._headers: Dict[str, str] = {}
        self._body: bytes = b""
        self._stream: Optional[FileBody] = None

    def status(self, status: int) -> "ResponseBuilder":
        self._status = status
        return self

    def header(self, name: str, value: str) -> "ResponseBuilder":
        self._headers[name] = value
        return self

    def headers(self, headers: Dict[str, str]) -> "ResponseBuilder":
        self._headers.update(headers)
        return self

    def content_type(self, content_type: str) -> "ResponseBuilder":
        return self.header("Content-Type", content_type)

    def body(self, body: Union[str, bytes]) -> "ResponseBuilder":
        self._body = body.encode("utf-8") if isinstance(body, str) else body
        return self

    def text(self, text: str, content_type: str = "text/plain; charset=utf-8") -> "ResponseBuilder":
        self._body = text.encode("utf-8")
        self._headers["Content-Type"] = content_type
        return self

    def json(self, data: Any, pretty: bool = False) -> "ResponseBuilder":
        """
        Serialize ``data`` as the body and set a JSON Content-Type.

        ensure_ascii=False keeps non-ASCII characters readable instead of
        escaping them.
        """
        indent = 2 if pretty else None
        self._body = json.dumps(data, indent=indent, ensure_ascii=False).encode("utf-8")
        self._headers["Content-Type"] = "application/json; charset=utf-8"
        return self

    def stream(
        self,
        fileobj: BinaryIO,
        content_length: int,
        chunk_size: int = DEFAULT_CHUNK_SIZE
    ) -> "ResponseBuilder":
        """
        Stream the body from an open binary file.

        The builder takes ownership of ``fileobj``: the built response
        closes it.
        """
        self._stream = FileBody(fileobj, chunk_size)
        self._body = b""
        self._headers["Content-Length"] = str(content_length)
        return self

    def close_connection(self) -> "ResponseBuilder":
        self._headers["Connection"] = "close"
        return self

    def build(self) -> HTTPResponse:
        return HTTPResponse(
            status=self._status,
            headers=self._headers,
            body=self._body,
            stream=self._stream,
        )


def format_http_date(dt: datetime) -> str:
    """
    Format a datetime as an HTTP-date (RFC 7231 IMF-fixdate).

    Format: Day, DD Mon YYYY HH:MM:SS GMT
    Example: Wed, 01 Jan 2026 12:00:00 GMT

    HTTP dates are always GMT. Aware datetimes are converted to UTC
    first; naive ones are assumed to be UTC already. Names are fixed
    English abbreviations, never locale-dependent.
    """
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc)

    # Weekday names (0=Monday in Python's datetime)
    days = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]

    months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

    return (
        f"{days[dt.weekday()]}, "
        f"{dt.day:02d} {months[dt.month - 1]} {dt.year:04d} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================
#
# One-liners for the responses the server and dispatcher produce.
#
# =============================================================================

def ok(body: Union[str, bytes, dict, list] = "", content_type: Optional[str] = None) -> HTTPResponse:
    """
    Create a 200 OK response.

    dicts and lists become JSON; strings become text/plain unless
    ``content_type`` says otherwise.
    """
    builder = ResponseBuilder().status(HTTPStatus.OK)

    if isinstance(body, (dict, list)):
        builder.json(body)
    elif isinstance(body, str):
        builder.text(body, content_type or "text/plain; charset=utf-8")
    else:
        builder.body(body)
        if content_type:
            builder.content_type(content_type)

    return builder.build()


def error_response(status: int, message: str) -> HTTPResponse:
    """A JSON error body ``{"error": message}`` with the given status."""
    return ResponseBuilder().status(status).json({"error": message}).build()


def bad_request(message: str = "Bad Request") -> HTTPResponse:
    return error_response(HTTPStatus.BAD_REQUEST, message)


def not_found(message: str = "Not Found") -> HTTPResponse:
    return error_response(HTTPStatus.NOT_FOUND, message)


def method_not_allowed(allowed_methods: list[str]) -> HTTPResponse:
    """
    Create a 405 Method Not Allowed response.

    Includes the Allow header listing valid methods (RFC 7231 requirement).
    """
    return (ResponseBuilder()
        .status(HTTPStatus.METHOD_NOT_ALLOWED)
        .header("Allow", ", ".join(allowed_methods))
        .json({"error": "Method Not Allowed", "allowed": allowed_methods})
        .build())


def internal_error(message: str = "Internal Server Error") -> HTTPResponse:
    """
    Create a 500 Internal Server Error response.

    Keep the message generic; details belong in the log, not the client.
    """
    return error_response(HTTPStatus.INTERNAL_SERVER_ERROR, message)


def bad_gateway(message: str = "Bad Gateway") -> HTTPResponse:
    return error_response(HTTPStatus.BAD_GATEWAY, message)


def service_unavailable(message: str = "Service Unavailable") -> HTTPResponse:
    return (ResponseBuilder()
        .status(HTTPStatus.SERVICE_UNAVAILABLE)
        .json({"error": message})
        .close_connection()
        .build())
