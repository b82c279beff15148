"""
=============================================================================
MIDDLEWARE
=============================================================================

Cross-cutting request/response processing around the router.

    base.py       Middleware, MiddlewarePipeline, function_middleware
    logging.py    LoggingMiddleware (access log + X-Request-ID)

=============================================================================
"""

from .base import (
    Middleware,
    MiddlewarePipeline,
    FunctionMiddleware,
    NextHandler,
    function_middleware,
)
from .logging import LoggingMiddleware, RequestLog, response_size

__all__ = [
    "Middleware",
    "MiddlewarePipeline",
    "FunctionMiddleware",
    "NextHandler",
    "function_middleware",
    "LoggingMiddleware",
    "RequestLog",
    "response_size",
]
