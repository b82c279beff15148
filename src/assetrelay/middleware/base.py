"""
=============================================================================
MIDDLEWARE
=============================================================================

Layers around the router. Each one gets the request and a ``next``
callable, and returns a response:

        request ──► LoggingMiddleware ──► ... ──► Router ──► AssetDispatcher
        response ◄──────────────────────────────────────────────────┘

The first layer added sees the request first and the response last.
Returning without calling next() answers the request on the spot.

A layer may edit status and headers. It must leave response.stream
alone: the connection reads the asset file from it after every layer
has returned. A response a layer drops, by raising or by returning a
different one, is closed by the pipeline.

=============================================================================
"""

import logging
from abc import ABC, abstractmethod
from functools import partial, reduce
from typing import Callable, Iterator, List

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse

logger = logging.getLogger(__name__)

NextHandler = Callable[[HTTPRequest], HTTPResponse]


class Middleware(ABC):
    """One layer; subclasses implement __call__(request, next)."""

    @abstractmethod
    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        ...

    @property
    def name(self) -> str:
        return type(self).__name__


class FunctionMiddleware(Middleware):
    """A plain ``func(request, next)`` used as a layer."""

    def __init__(self, func: Callable[[HTTPRequest, NextHandler], HTTPResponse]):
        self.func = func

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        return self.func(request, next)

    @property
    def name(self) -> str:
        return self.func.__name__


def function_middleware(func: Callable[[HTTPRequest, NextHandler], HTTPResponse]) -> FunctionMiddleware:
    """
    Decorator turning a function into a layer:

        @function_middleware
        def no_sniff(request, next):
            response = next(request)
            response.set_header("X-Content-Type-Options", "nosniff")
            return response

        server.use(no_sniff)
    """
    return FunctionMiddleware(func)


class MiddlewarePipeline:
    """Ordered layers, folded around a final handler by wrap()."""

    def __init__(self):
        self._layers: List[Middleware] = []

    def add(self, layer: Middleware) -> "MiddlewarePipeline":
        self._layers.append(layer)
        logger.debug(f"Middleware added: {layer.name}")
        return self

    def use(self, *layers: Middleware) -> "MiddlewarePipeline":
        for layer in layers:
            self.add(layer)
        return self

    def wrap(self, handler: NextHandler) -> NextHandler:
        """Return a handler that runs every layer, then ``handler``."""
        return reduce(
            lambda inner, layer: partial(_run_layer, layer, inner),
            reversed(self._layers),
            handler,
        )

    def __len__(self) -> int:
        return len(self._layers)

    def __iter__(self) -> Iterator[Middleware]:
        return iter(self._layers)


def _run_layer(layer: Middleware, inner: NextHandler, request: HTTPRequest) -> HTTPResponse:
    """
    Call one layer. Responses it got from next() and did not return
    (because it raised, or answered with a different response) are
    closed, so an open asset file does not outlive the request.
    """
    produced: List[HTTPResponse] = []

    def next_handler(req: HTTPRequest) -> HTTPResponse:
        response = inner(req)
        produced.append(response)
        return response

    try:
        result = layer(request, next_handler)
    except BaseException:
        for response in produced:
            response.close()
        raise

    for response in produced:
        if response is not result:
            response.close()
    return result
