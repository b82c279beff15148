"""
=============================================================================
HTTP PROTOCOL LAYER
=============================================================================

Translates raw bytes from TCP into structured HTTP messages and back.

    ┌─────────────────────────────────────────────────────────────────────┐
    │ request.py      bytes → HTTPRequest (raw + decoded path, header     │
    │                 lists for repeated headers)                         │
    │ response.py     HTTPResponse (in-memory or streamed FileBody),      │
    │                 ResponseBuilder, format_http_date, ok/not_found/... │
    │ router.py       (method, path) → handler, fallback for assets       │
    │ status_codes.py HTTPStatus + reason phrases for any int code        │
    │ mime_types.py   MimeTable: extension → Content-Type                 │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .request import HTTPRequest, RequestParser, HTTPParseError, parse_request
from .response import (
    HTTPResponse,
    ResponseBuilder,
    FileBody,
    format_http_date,
    ok,
    error_response,
    bad_request,
    not_found,
    method_not_allowed,
    internal_error,
    bad_gateway,
    service_unavailable,
)
from .router import Router, Route, RouteMatch, Handler
from .status_codes import HTTPStatus, reason_phrase
from .mime_types import (
    MimeTable,
    DEFAULT_MIME_TABLE,
    DEFAULT_MIME_TYPE,
    DEFAULT_MIME_TYPES,
    file_extension,
    get_content_type,
)

__all__ = [
    # Request
    "HTTPRequest",
    "RequestParser",
    "HTTPParseError",
    "parse_request",
    # Response
    "HTTPResponse",
    "ResponseBuilder",
    "FileBody",
    "format_http_date",
    "ok",
    "error_response",
    "bad_request",
    "not_found",
    "method_not_allowed",
    "internal_error",
    "bad_gateway",
    "service_unavailable",
    # Routing
    "Router",
    "Route",
    "RouteMatch",
    "Handler",
    # Status codes
    "HTTPStatus",
    "reason_phrase",
    # MIME types
    "MimeTable",
    "DEFAULT_MIME_TABLE",
    "DEFAULT_MIME_TYPE",
    "DEFAULT_MIME_TYPES",
    "file_extension",
    "get_content_type",
]
