"""
=============================================================================
ACCESS LOGGING
=============================================================================

One line per request on the ``assetrelay.access`` logger, in Apache-like
text or JSON:

    127.0.0.1 - - [17/Oct/2026:09:12:44 +0000] "GET /main.dart.js" 200 1482233 3.41ms
    {"request_id": "9f2c01ab", "method": "GET", "path": "/main.dart.js", ...}

Every response gets an ``X-Request-ID`` header so a browser-side failure
can be matched to its log line. A client-supplied X-Request-ID is reused.

The byte count comes from Content-Length when it is set, because a
streamed asset has an empty in-memory body until the connection sends it.

=============================================================================
"""

import time
import json
import uuid
import logging
from typing import Optional
from dataclasses import dataclass, asdict

from .base import Middleware, NextHandler
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse

# Namespaced so deployments can route access logs separately:
#   logging.getLogger("assetrelay.access").addHandler(file_handler)
logger = logging.getLogger("assetrelay.access")


@dataclass
class RequestLog:
    """One access log entry."""

    request_id: str
    method: str
    path: str
    query: str
    client_ip: str
    user_agent: str
    status_code: int
    content_length: int
    duration_ms: float
    timestamp: str

    def to_dict(self) -> dict:
        entry = asdict(self)
        entry["duration_ms"] = round(self.duration_ms, 2)
        return entry

    def to_text(self) -> str:
        target = f"{self.path}?{self.query}" if self.query else self.path
        return (
            f'{self.client_ip} - - [{self.timestamp}] '
            f'"{self.method} {target}" {self.status_code} '
            f'{self.content_length} {self.duration_ms:.2f}ms'
        )


def response_size(response: HTTPResponse) -> int:
    """Bytes the response will put on the wire as its body."""
    declared = response.get_header("Content-Length")
    if declared is not None:
        try:
            return int(declared)
        except ValueError:
            pass
    return len(response.body)


class LoggingMiddleware(Middleware):
    """
    Access log middleware. Add it first so it sees every request.

        pipeline.add(LoggingMiddleware(log_format="json"))

    Server errors (5xx) are logged at WARNING regardless of ``log_level``
    so a dead development server shows up in a quiet log.
    """

    def __init__(
        self,
        log_format: str = "text",
        include_request_id: bool = True,
        log_level: int = logging.INFO,
        skip_paths: Optional[list[str]] = None,
    ):
        self.log_format = log_format
        self.include_request_id = include_request_id
        self.log_level = log_level
        self.skip_paths = set(skip_paths or [])

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        request_id = request.get_header("x-request-id") or str(uuid.uuid4())[:8]
        start_time = time.time()

        try:
            response = next(request)
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                f"Request failed: {request.method} {request.path} "
                f"- {type(e).__name__}: {e} ({duration_ms:.2f}ms)"
            )
            raise

        duration_ms = (time.time() - start_time) * 1000

        if self.include_request_id:
            response.set_header("X-Request-ID", request_id)

        if request.path in self.skip_paths:
            return response

        entry = RequestLog(
            request_id=request_id,
            method=request.method,
            path=request.path,
            query=request.query_string,
            client_ip=request.client_address[0] or "-",
            user_agent=request.user_agent or "-",
            status_code=int(response.status),
            content_length=response_size(response),
            duration_ms=duration_ms,
            timestamp=time.strftime("%d/%b/%Y:%H:%M:%S %z"),
        )

        level = logging.WARNING if entry.status_code >= 500 else self.log_level
        if self.log_format == "json":
            logger.log(level, json.dumps(entry.to_dict()))
        else:
            logger.log(level, entry.to_text())

        return response
