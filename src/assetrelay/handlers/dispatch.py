"""
=============================================================================
ASSET DISPATCHER
=============================================================================

Picks one of the two asset strategies at startup and turns their
failures into HTTP responses.

    ┌──────────────────────────────────────────────────────────────────┐
    │  AssetDispatcher(build_dir="/srv/app/build")   production mode   │
    │      handle(request) → respond_from_build(...)                   │
    │                                                                  │
    │  AssetDispatcher(serve_url="http://localhost:8080")  debug mode  │
    │      handle(request) → respond_from_serve(...)                   │
    └──────────────────────────────────────────────────────────────────┘

    ┌──────────────────────┬────────┬────────────────────────────────────┐
    │ Failure              │ Status │ Body                               │
    ├──────────────────────┼────────┼────────────────────────────────────┤
    │ BadRequest           │ 400    │ {"error": message}                 │
    │ UnsupportedRequest   │ 400    │ {"error": message}                 │
    │ FileNotFound         │ 404    │ {"error": "Not Found"}             │
    │ ServerUnavailable    │ 502    │ {"error": "development server      │
    │                      │        │   unavailable: " + message}        │
    │ InvalidConfiguration │ re-raised; the server answers 500          │
    └──────────────────────┴────────┴────────────────────────────────────┘

The 404 body never includes the resolved filesystem path.

=============================================================================
"""

import logging
from typing import Optional, Union
from pathlib import Path

import httpx

from ..errors import (
    BadRequest, FileNotFound, InvalidConfiguration, ServerUnavailable, UnsupportedRequest
)
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, HTTPStatus, DEFAULT_CHUNK_SIZE, error_response
from ..http.mime_types import MimeTable, DEFAULT_MIME_TABLE
from .static import BuildDirectory, respond_from_build
from .relay import (
    UpstreamOrigin, HeaderFilterPolicy, DEFAULT_HEADER_POLICY,
    DEFAULT_UPSTREAM_TIMEOUT, respond_from_serve
)

logger = logging.getLogger(__name__)


class AssetDispatcher:
    """
    Serves assets in exactly one mode: from a build directory or from a
    development server.

    Usable directly as a router fallback:

        dispatcher = AssetDispatcher(build_dir="/srv/app/build")
        router = Router(fallback=dispatcher.handle)
    """

    def __init__(
        self,
        build_dir: Union[str, Path, BuildDirectory, None] = None,
        serve_url: Union[str, httpx.URL, UpstreamOrigin, None] = None,
        *,
        mime_table: MimeTable = DEFAULT_MIME_TABLE,
        policy: HeaderFilterPolicy = DEFAULT_HEADER_POLICY,
        upstream_timeout: float = DEFAULT_UPSTREAM_TIMEOUT,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        transport: Optional[httpx.BaseTransport] = None,
        log: logging.Logger = logger,
    ):
        if (build_dir is None) == (serve_url is None):
            raise InvalidConfiguration(
                None, "exactly one of build directory or development server URL is required"
            )

        self.build_dir = BuildDirectory.parse(build_dir) if build_dir is not None else None
        self.origin = UpstreamOrigin.parse(serve_url) if serve_url is not None else None
        self.mime_table = mime_table
        self.policy = policy
        self.upstream_timeout = upstream_timeout
        self.chunk_size = chunk_size
        self.transport = transport
        self.log = log

    @property
    def mode(self) -> str:
        """Either 'build' or 'serve'."""
        return "build" if self.build_dir is not None else "serve"

    @property
    def source(self) -> str:
        """Where assets come from: the directory or the upstream origin."""
        return str(self.build_dir) if self.build_dir is not None else str(self.origin)

    def respond(self, request: HTTPRequest) -> HTTPResponse:
        """Run the selected strategy without translating failures."""
        if self.build_dir is not None:
            return respond_from_build(
                request,
                self.build_dir,
                mime_table=self.mime_table,
                chunk_size=self.chunk_size,
                log=self.log,
            )
        return respond_from_serve(
            request,
            self.origin,
            policy=self.policy,
            timeout=self.upstream_timeout,
            transport=self.transport,
            log=self.log,
        )

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        """
        Serve an asset, mapping asset failures to error responses.

        Raises:
            InvalidConfiguration: propagated unchanged.
        """
        try:
            return self.respond(request)

        except FileNotFound as e:
            self.log.info(f"{request.target}: not found ({e.path})")
            return error_response(HTTPStatus.NOT_FOUND, "Not Found")

        except (BadRequest, UnsupportedRequest) as e:
            self.log.warning(f"Bad request: {e}")
            return error_response(HTTPStatus.BAD_REQUEST, e.message)

        except ServerUnavailable as e:
            self.log.warning(f"Development server unavailable: {e}")
            return error_response(
                HTTPStatus.BAD_GATEWAY,
                f"development server unavailable: {e.message}",
            )

    def __call__(self, request: HTTPRequest) -> HTTPResponse:
        return self.handle(request)

    def __repr__(self) -> str:
        return f"AssetDispatcher(mode={self.mode!r}, source={self.source!r})"
