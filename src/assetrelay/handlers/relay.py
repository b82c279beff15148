"""
=============================================================================
RELAYING ASSET REQUESTS TO A DEVELOPMENT SERVER
=============================================================================

Debug mode: assets are compiled on demand by a separate development
server. The browser still asks OUR server for them (same origin as the
HTML), so we forward each unhandled GET and mirror the answer back.

    Browser                    assetrelay                  dev server
       │  GET /main.dart.js         │                           │
       │ ─────────────────────────► │  GET /main.dart.js        │
       │                            │  Host: localhost:8080     │
       │                            │  Connection: close        │
       │                            │ ────────────────────────► │
       │                            │                           │ compile
       │                            │  200 + headers + body     │
       │                            │ ◄──────────────────────── │
       │  200 + filtered headers    │                           │
       │  + same body               │                           │
       │ ◄───────────────────────── │                           │

=============================================================================
HEADER TRANSLATION
=============================================================================

    Request headers (client → dev server)
    ─────────────────────────────────────
    Host          replaced by the dev server's host[:port]
    Connection    replaced by "close" (one request per connection)
    anything      forwarded unchanged; a header received more than once
                  is refused (UnsupportedRequest) before any call is made

    Response headers (dev server → client)
    ──────────────────────────────────────
    policy.discarded      never copied (default: x-xss-protection)
    FRAMING_HEADERS       never copied; the body is re-framed here, so
                          Content-Length is recomputed
    Content-Encoding      copied; the body bytes are relayed still encoded,
                          exactly as the dev server sent them
    anything else         copied with the upstream's name spelling

The status code is relayed unchanged, including codes this server has no
name for.

=============================================================================
FAILURES
=============================================================================

    ┌───────────────────────────────────┬─────────────────────────────────┐
    │ What went wrong                   │ Raised                          │
    ├───────────────────────────────────┼─────────────────────────────────┤
    │ serve_url missing/invalid         │ InvalidConfiguration            │
    │ not a GET                         │ InvalidConfiguration            │
    │ repeated request header           │ UnsupportedRequest              │
    │ connection refused                │ ServerUnavailable("cannot       │
    │                                   │   connect")                     │
    │ anything else (timeout, bad reply)│ ServerUnavailable("(Type): ..") │
    └───────────────────────────────────┴─────────────────────────────────┘

No retries. The upstream body is buffered in full before anything is
sent back to the browser.

=============================================================================
"""

import errno
import logging
from dataclasses import dataclass, field
from typing import Optional, Union, Dict, FrozenSet, Iterable

import httpx

from ..errors import InvalidConfiguration, ServerUnavailable, UnsupportedRequest
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse

logger = logging.getLogger(__name__)


# RFC 7230 hop-by-hop headers plus the body framing headers that stop
# being true once the body has been buffered.
FRAMING_HEADERS = frozenset({
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailer",
    "transfer-encoding",
    "upgrade",
    "content-length",
})

DEFAULT_UPSTREAM_TIMEOUT = 30.0


@dataclass(frozen=True)
class UpstreamOrigin:
    """
    Scheme, host and optional port of the development server.

    Parsed once at startup; any path, query or fragment in the configured
    URL is ignored, the request supplies those.
    """

    url: httpx.URL

    @classmethod
    def parse(
        cls,
        value: Union[str, httpx.URL, "UpstreamOrigin", None],
        request: Optional[HTTPRequest] = None
    ) -> "UpstreamOrigin":
        """
        Raises:
            InvalidConfiguration: ``value`` is None, unparsable, not
                http/https, or has no host.
        """
        if isinstance(value, UpstreamOrigin):
            return value
        if value is None:
            raise InvalidConfiguration(request, "development server URL not set")

        try:
            url = value if isinstance(value, httpx.URL) else httpx.URL(str(value))
        except httpx.InvalidURL as e:
            raise InvalidConfiguration(
                request, f"invalid development server URL: {value}: {e}"
            ) from e

        if url.scheme not in ("http", "https"):
            raise InvalidConfiguration(
                request, f"development server URL must be http or https: {value}"
            )
        if not url.host:
            raise InvalidConfiguration(
                request, f"development server URL has no host: {value}"
            )

        return cls(url)

    @property
    def scheme(self) -> str:
        return self.url.scheme

    @property
    def host(self) -> str:
        return self.url.host

    @property
    def port(self) -> Optional[int]:
        """The explicit port, or None when the scheme default applies."""
        return self.url.port

    @property
    def host_header(self) -> str:
        """
        Value for the forwarded Host header: host, or host:port when a
        port was given. IPv6 literals are bracketed.
        """
        host = f"[{self.host}]" if ":" in self.host else self.host
        return host if self.port is None else f"{host}:{self.port}"

    def __str__(self) -> str:
        return f"{self.scheme}://{self.host_header}"


@dataclass(frozen=True)
class HeaderFilterPolicy:
    """
    Which upstream response headers are withheld, and what Connection
    value is sent upstream.

    Names are compared case-insensitively.
    """

    discarded: FrozenSet[str] = field(
        default_factory=lambda: frozenset({"x-xss-protection"})
    )
    connection_value: str = "close"

    def __post_init__(self):
        object.__setattr__(
            self, "discarded", frozenset(name.lower() for name in self.discarded)
        )

    def is_discarded(self, name: str) -> bool:
        return name.lower() in self.discarded

    def with_discarded(self, names: Iterable[str]) -> "HeaderFilterPolicy":
        """A copy that also withholds ``names``."""
        return HeaderFilterPolicy(
            discarded=self.discarded | {name.lower() for name in names},
            connection_value=self.connection_value,
        )


DEFAULT_HEADER_POLICY = HeaderFilterPolicy()


def build_target_url(request: HTTPRequest, origin: UpstreamOrigin) -> str:
    """
    Origin scheme/host/port + the request's userinfo, path and query.
    The fragment is kept only when non-empty.

        origin  http://localhost:8080
        request /packages/app/main.dart.js?v=2
        target  http://localhost:8080/packages/app/main.dart.js?v=2
    """
    userinfo = f"{request.userinfo}@" if request.userinfo else ""
    target = f"{origin.scheme}://{userinfo}{origin.host_header}{request.raw_path or '/'}"
    if request.query_string:
        target += f"?{request.query_string}"
    if request.fragment:
        target += f"#{request.fragment}"
    return target


def build_upstream_headers(
    request: HTTPRequest,
    origin: UpstreamOrigin,
    policy: HeaderFilterPolicy = DEFAULT_HEADER_POLICY,
    log: logging.Logger = logger,
) -> Dict[str, str]:
    """
    One value per header name, with Host and Connection overridden.

    Raises:
        UnsupportedRequest: a header (other than Host or Connection,
            which are replaced anyway) was received more than once.
    """
    headers: Dict[str, str] = {}

    for name, values in request.header_lists.items():
        if name in ("host", "connection"):
            continue
        if len(values) != 1:
            log.warning(f"multiple headers not passed to development server: {name}")
            raise UnsupportedRequest(
                request, f"multiple values for header not supported: {name}"
            )
        headers[name] = values[0]

    headers["host"] = origin.host_header
    headers["connection"] = policy.connection_value

    for name, value in headers.items():
        log.debug(f"  {name}: {value}")

    return headers


def _connection_refused(exc: BaseException) -> bool:
    """Walk the cause chain looking for ECONNREFUSED."""
    seen = set()
    current: Optional[BaseException] = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        if isinstance(current, ConnectionRefusedError):
            return True
        if isinstance(current, OSError) and current.errno == errno.ECONNREFUSED:
            return True
        current = current.__cause__ or current.__context__

    text = str(exc).lower()
    return isinstance(exc, httpx.ConnectError) and (
        "connection refused" in text or "actively refused" in text
    )


def describe_failure(exc: BaseException) -> str:
    """Short message for a ServerUnavailable raised because of ``exc``."""
    if _connection_refused(exc):
        return "cannot connect"
    return f"({type(exc).__name__}): {exc}"


def _relay_response(
    upstream: httpx.Response,
    body: bytes,
    policy: HeaderFilterPolicy,
    log: logging.Logger,
) -> HTTPResponse:
    response = HTTPResponse(status=upstream.status_code)

    # .raw keeps the upstream's header name spelling; values are Latin-1 on the wire
    for raw_name, raw_value in upstream.headers.raw:
        name = raw_name.decode("latin-1")
        lowered = name.lower()
        if policy.is_discarded(lowered):
            log.debug(f"discarded header from development server: {name}")
            continue
        if lowered in FRAMING_HEADERS:
            continue
        response.add_header(name, raw_value.decode("latin-1"))

    response.body = body
    return response


def respond_from_serve(
    request: HTTPRequest,
    serve_url: Union[str, httpx.URL, UpstreamOrigin, None],
    *,
    policy: HeaderFilterPolicy = DEFAULT_HEADER_POLICY,
    timeout: float = DEFAULT_UPSTREAM_TIMEOUT,
    transport: Optional[httpx.BaseTransport] = None,
    log: logging.Logger = logger,
) -> HTTPResponse:
    """
    Forward a GET request to the development server and mirror its reply.

    ``transport`` replaces httpx's network transport; tests pass an
    httpx.MockTransport.

    Raises:
        InvalidConfiguration: bad ``serve_url`` or a non-GET request.
        UnsupportedRequest: a request header has several values.
        ServerUnavailable: the upstream call failed in any way.
    """
    origin = UpstreamOrigin.parse(serve_url, request)

    if request.method != "GET":
        raise InvalidConfiguration(
            request, f"not a HTTP GET request: {request.method}"
        )

    # Refused before the try block: this is the client's fault, not the upstream's
    headers = build_upstream_headers(request, origin, policy, log)

    try:
        target = build_target_url(request, origin)
        log.debug(f"proxy request: {target}")

        outgoing = httpx.Request(
            "GET",
            target,
            headers=headers,
            extensions={"timeout": httpx.Timeout(timeout).as_dict()},
        )

        # Requests built by hand skip the client's default headers
        with httpx.Client(transport=transport, follow_redirects=False) as client:
            upstream = client.send(outgoing, stream=True)
            try:
                # Raw bytes: content-coded bodies stay encoded, matching the
                # Content-Encoding header relayed with them
                body = b"".join(upstream.iter_raw())
            finally:
                upstream.close()

        if upstream.status_code in (200, 304):
            log.debug(f"proxy response: status {upstream.status_code}")
        else:
            log.info(f"proxy response: status {upstream.status_code}: {target}")

        return _relay_response(upstream, body, policy, log)

    except Exception as e:
        raise ServerUnavailable(request, describe_failure(e)) from e
