"""
=============================================================================
HTTP REQUEST PARSER
=============================================================================

Parses raw HTTP/1.1 request bytes into structured HTTPRequest objects.
Implements the parts of RFC 7230 an asset server needs.

=============================================================================
WHAT THE ASSET HANDLERS NEED FROM A REQUEST
=============================================================================

    GET /scripts/main.dart.js?v=3 HTTP/1.1\r\n
    Host: localhost:8000\r\n
    Accept-Encoding: gzip\r\n
    Cookie: a=1\r\n
    Cookie: b=2\r\n
    \r\n

    ┌──────────────────┬───────────────────────────────────────────────┐
    │ Field            │ Used by                                       │
    ├──────────────────┼───────────────────────────────────────────────┤
    │ target           │ logging, error messages                       │
    │ raw_path         │ static: split into segments BEFORE decoding   │
    │ path             │ router matching (percent-decoded)             │
    │ query_string     │ relay: forwarded verbatim                     │
    │ headers          │ folded view: "cookie" → "a=1, b=2"            │
    │ header_lists     │ relay: "cookie" → ["a=1", "b=2"] (2 values!)  │
    └──────────────────┴───────────────────────────────────────────────┘

Two details matter for security and fidelity:

1. The raw path is kept percent-encoded. "/a%2F..%2Fb" must be split on
   real "/" first and decoded per segment, otherwise an encoded slash
   could smuggle a ".." past the traversal check.

2. Repeated headers are kept separately as well as folded. The relay
   refuses to forward a header that appears more than once, and it can
   only tell if the parser did not merge them away.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Optional, Dict, List
from urllib.parse import parse_qs, urlsplit, unquote
import re

_ABSOLUTE_FORM = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*://")


def split_target(target: str) -> tuple[str, str, str, str]:
    """
    Split a request target into (raw_path, query, fragment, userinfo).

    Only absolute-form targets ("http://host/x") carry an authority. An
    origin-form target such as "//scripts/main.js" is all path, so it is
    cut at "#" and "?" by hand rather than handed to urlsplit(), which
    would read "scripts" as a host.
    """
    if _ABSOLUTE_FORM.match(target):
        parts = urlsplit(target)
        userinfo = parts.netloc.rpartition("@")[0]
        return parts.path or "/", parts.query, parts.fragment, userinfo

    rest, _, fragment = target.partition("#")
    raw_path, _, query = rest.partition("?")
    return raw_path or "/", query, fragment, ""


class HTTPParseError(Exception):
    """
    Raised when HTTP request parsing fails.

    Carries the HTTP status code the server should answer with:

        400 Bad Request                - Malformed request syntax
        405 Method Not Allowed         - Unknown method
        413 Payload Too Large          - Request exceeds size limit
        505 HTTP Version Not Supported - Unknown HTTP version
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class HTTPRequest:
    """
    A parsed HTTP request.

    Header names are stored lowercase (HTTP header names are
    case-insensitive). ``headers`` folds repeated headers into one
    comma-separated value; ``header_lists`` keeps every value.
    """

    # Request line
    method: str
    target: str                          # Raw request target ("/a/b?x=1")
    version: str = "HTTP/1.1"

    # Target components
    raw_path: str = "/"                  # Still percent-encoded
    path: str = "/"                      # Percent-decoded
    query_string: str = ""
    fragment: str = ""
    userinfo: str = ""

    headers: Dict[str, str] = field(default_factory=dict)
    header_lists: Dict[str, List[str]] = field(default_factory=dict)
    query_params: Dict[str, List[str]] = field(default_factory=dict)
    body: bytes = b""

    # Router-injected parameters
    path_params: Dict[str, str] = field(default_factory=dict)

    client_address: tuple[str, int] = ("", 0)

    @property
    def host(self) -> str:
        return self.headers.get("host", "")

    @property
    def user_agent(self) -> str:
        return self.headers.get("user-agent", "")

    @property
    def is_keep_alive(self) -> bool:
        """
        Should the connection stay open after this request?

        HTTP/1.1 keeps alive unless "Connection: close";
        HTTP/1.0 closes unless "Connection: keep-alive".
        """
        connection = self.headers.get("connection", "").lower()
        if self.version == "HTTP/1.1":
            return connection != "close"
        return connection == "keep-alive"

    def get_header(self, name: str, default: str = "") -> str:
        """Get a (folded) header value, case-insensitively."""
        return self.headers.get(name.lower(), default)

    def get_header_values(self, name: str) -> List[str]:
        """Get every value received for a header, in arrival order."""
        return list(self.header_lists.get(name.lower(), []))

    def get_query(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Get the first value of a query parameter."""
        values = self.query_params.get(name, [])
        return values[0] if values else default

    @property
    def path_segments(self) -> List[str]:
        """
        Percent-decoded path segments, split on the raw "/" separators.

            "/a/b%20c/"   → ["a", "b c", ""]
            "/a%2Fb"      → ["a/b"]      (one segment, encoded slash)
        """
        raw = self.raw_path[1:] if self.raw_path.startswith("/") else self.raw_path
        if not raw:
            return []
        return [unquote(segment) for segment in raw.split("/")]


class RequestParser:
    """
    Parses raw HTTP request bytes into HTTPRequest objects.

        1. Size check               → 413 if too large
        2. Split at \\r\\n\\r\\n        → 400 if missing
        3. Request line             → 400 / 405 / 505
        4. Headers                  → folded + unfolded views
        5. Body by Content-Length   → 400 if short
    """

    VALID_METHODS = {
        "GET", "POST", "PUT", "DELETE", "PATCH",
        "HEAD", "OPTIONS", "TRACE", "CONNECT",
    }

    REQUEST_LINE_PATTERN = re.compile(r"^([A-Z]+) ([^ ]+) (HTTP/\d\.\d)$")
    HEADER_PATTERN = re.compile(r"^([^:]+):\s*(.*)$")

    def __init__(self, max_request_size: int = 10 * 1024 * 1024):
        self.max_request_size = max_request_size

    def parse(
        self,
        data: bytes,
        client_address: tuple[str, int] = ("", 0)
    ) -> HTTPRequest:
        """
        Parse raw HTTP request data into an HTTPRequest.

        Raises:
            HTTPParseError: If the request is malformed.
        """
        if len(data) > self.max_request_size:
            raise HTTPParseError(
                f"Request too large: {len(data)} bytes",
                status_code=413
            )

        header_end = data.find(b"\r\n\r\n")
        if header_end == -1:
            raise HTTPParseError("Incomplete request: no header terminator")

        # ISO-8859-1 maps every byte to a character, so decoding cannot fail
        header_section = data[:header_end].decode("iso-8859-1")
        body = data[header_end + 4:]

        lines = header_section.split("\r\n")
        method, target, version = self._parse_request_line(lines[0])
        headers, header_lists = self._parse_headers(lines[1:])

        try:
            content_length = int(headers.get("content-length", 0))
        except ValueError:
            raise HTTPParseError("Invalid Content-Length header")
        if len(body) < content_length:
            raise HTTPParseError(
                f"Incomplete body: expected {content_length} bytes, got {len(body)}"
            )

        raw_path, query_string, fragment, userinfo = split_target(target)

        return HTTPRequest(
            method=method,
            target=target,
            version=version,
            raw_path=raw_path,
            path=unquote(raw_path),
            query_string=query_string,
            fragment=fragment,
            userinfo=userinfo,
            headers=headers,
            header_lists=header_lists,
            query_params=parse_qs(query_string, keep_blank_values=True),
            body=body[:content_length],
            client_address=client_address,
        )

    def _parse_request_line(self, line: str) -> tuple[str, str, str]:
        """
        Parse "METHOD SP REQUEST-TARGET SP HTTP-VERSION".

        The target is returned untouched; path traversal is the static
        handler's business, not the parser's, because only the handler
        knows what a path segment maps to on disk.
        """
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise HTTPParseError(f"Invalid request line: {line}")

        method, target, version = match.groups()

        if method not in self.VALID_METHODS:
            raise HTTPParseError(f"Invalid method: {method}", status_code=405)

        if version not in ("HTTP/1.0", "HTTP/1.1"):
            raise HTTPParseError(
                f"Unsupported HTTP version: {version}",
                status_code=505
            )

        return method, target, version

    def _parse_headers(
        self,
        lines: list[str]
    ) -> tuple[Dict[str, str], Dict[str, List[str]]]:
        """
        Parse header lines into folded and unfolded dictionaries.

        Obsolete line folding (continuation lines starting with SP/HT)
        extends the previous value. Malformed lines are skipped.
        """
        header_lists: Dict[str, List[str]] = {}
        current_name = None

        for line in lines:
            if not line:
                continue

            if line[0] in (" ", "\t"):
                if current_name is not None:
                    values = header_lists[current_name]
                    values[-1] = f"{values[-1]} {line.strip()}"
                continue

            match = self.HEADER_PATTERN.match(line)
            if not match:
                continue

            name, value = match.groups()
            current_name = name.strip().lower()
            header_lists.setdefault(current_name, []).append(value.strip())

        # RFC 7230: repeated fields are equivalent to one comma-joined field
        headers = {name: ", ".join(values) for name, values in header_lists.items()}
        return headers, header_lists


def parse_request(
    data: bytes,
    client_address: tuple[str, int] = ("", 0),
    max_size: int = 10 * 1024 * 1024
) -> HTTPRequest:
    """Parse a single request with a throwaway RequestParser."""
    return RequestParser(max_request_size=max_size).parse(data, client_address)
