"""
=============================================================================
ASSET DISPATCH ERRORS
=============================================================================

One exception class per way an asset request can fail.

    ┌──────────────────────┬────────┬──────────────────────────────────────┐
    │ Exception            │ Status │ Raised when                          │
    ├──────────────────────┼────────┼──────────────────────────────────────┤
    │ InvalidConfiguration │ 500    │ build dir missing/relative, upstream │
    │                      │        │ URL missing/invalid, non-GET request │
    │ BadRequest           │ 400    │ path tries to escape the build dir   │
    │ FileNotFound         │ 404    │ no regular file at the resolved path │
    │ UnsupportedRequest   │ 400    │ request header received twice        │
    │ ServerUnavailable    │ 502    │ development server unreachable or    │
    │                      │        │ returned something unusable          │
    └──────────────────────┴────────┴──────────────────────────────────────┘

Every error carries the request that triggered it and a short message.
The handlers raise; only the dispatcher turns these into responses, the
same way HTTPParseError carries its status up to the server.

InvalidConfiguration is also a ValueError so argument validation at
startup can be caught with the usual ``except ValueError``.

=============================================================================
"""

from typing import Optional

from .http.request import HTTPRequest
from .http.status_codes import HTTPStatus


class AssetRelayError(Exception):
    """Base class for asset dispatch failures."""

    status_code: int = HTTPStatus.INTERNAL_SERVER_ERROR

    def __init__(self, request: Optional[HTTPRequest], message: str):
        super().__init__(message)
        self.request = request
        self.message = message

    @property
    def target(self) -> str:
        return self.request.target if self.request is not None else ""

    def __str__(self) -> str:
        if self.request is None:
            return self.message
        return f"{self.request.target}: {self.message}"


class InvalidConfiguration(AssetRelayError, ValueError):
    """The server was set up wrong. Not the client's fault; never retried."""

    status_code = HTTPStatus.INTERNAL_SERVER_ERROR


class BadRequest(AssetRelayError):
    """The request path would resolve outside the build directory."""

    status_code = HTTPStatus.BAD_REQUEST


class FileNotFound(AssetRelayError):
    """
    No regular file exists at the resolved path.

    ``path`` is the resolved filesystem path. It is for logs only and
    must never be sent to the client.
    """

    status_code = HTTPStatus.NOT_FOUND

    def __init__(self, request: Optional[HTTPRequest], message: str, path: str):
        super().__init__(request, message)
        self.path = path


class UnsupportedRequest(AssetRelayError):
    """The request cannot be forwarded as-is (a header has several values)."""

    status_code = HTTPStatus.BAD_REQUEST


class ServerUnavailable(AssetRelayError):
    """The development server could not be reached or its reply was unusable."""

    status_code = HTTPStatus.BAD_GATEWAY
