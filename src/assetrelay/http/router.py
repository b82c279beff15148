"""
=============================================================================
ROUTER
=============================================================================

The asset dispatcher answers for the whole URL space, so routing here is
mostly about the exceptions: a handful of the application's own paths
that must win over asset lookup.

    GET  /__status        registered route       → its handler
    GET  /main.dart.js    nothing registered     → fallback (assets)
    GET  /                nothing registered     → fallback (assets)
    POST /main.dart.js    not GET, no route      → 404
    POST /__status        path known, not POST   → 405 + Allow

=============================================================================
PATTERNS
=============================================================================

    /__status             literal
    /files/:name          ":" captures one segment
    /debug/*rest          "*" captures the remainder, slashes included

Routes are tried in the order they were added.

=============================================================================
"""

import re
import logging
from dataclasses import dataclass, field
from typing import Callable, Optional, Dict, List, Any

from .request import HTTPRequest
from .response import HTTPResponse, not_found, method_not_allowed

logger = logging.getLogger(__name__)

Handler = Callable[[HTTPRequest], HTTPResponse]

ALL_METHODS = ["DELETE", "GET", "HEAD", "OPTIONS", "PATCH", "POST", "PUT"]


def compile_path(path: str) -> re.Pattern:
    """Turn a route pattern into an anchored regex with named groups."""
    parts = []
    for segment in filter(None, path.split("/")):
        if segment[0] == ":":
            parts.append(f"/(?P<{segment[1:]}>[^/]+)")
        elif segment[0] == "*":
            parts.append(f"/(?P<{segment[1:] or 'rest'}>.*)")
            break
        else:
            parts.append("/" + re.escape(segment))
    return re.compile("^" + ("".join(parts) or "/") + "$")


def normalize_path(path: str) -> str:
    """Leading slash, no trailing slash (except the root itself)."""
    return "/" + path.strip("/")


@dataclass
class Route:
    """A pattern, the method it answers (None = any) and its handler."""

    path: str
    method: Optional[str]
    handler: Handler
    name: Optional[str] = None
    meta: Dict[str, Any] = field(default_factory=dict)
    regex: re.Pattern = field(init=False, repr=False)

    def __post_init__(self):
        if self.method:
            self.method = self.method.upper()
        self.regex = compile_path(self.path)

    def params_for(self, path: str) -> Optional[Dict[str, str]]:
        """Captured parameters if ``path`` fits the pattern, else None."""
        found = self.regex.match(path)
        return found.groupdict() if found else None

    def accepts(self, method: str) -> bool:
        return self.method is None or self.method == method.upper()


@dataclass
class RouteMatch:
    route: Route
    params: Dict[str, str]


class Router:
    """
    Routes first, then the fallback for unmatched GET requests.

        router = Router(fallback=dispatcher.handle)

        @router.get("/__status")
        def status(request):
            return ok({"mode": dispatcher.mode})
    """

    def __init__(self, fallback: Optional[Handler] = None):
        self.fallback = fallback
        self._routes: List[Route] = []

    @property
    def routes(self) -> List[Route]:
        return list(self._routes)

    def add_route(
        self,
        path: str,
        handler: Handler,
        method: Optional[str] = None,
        name: Optional[str] = None,
        **meta: Any
    ) -> Route:
        route = Route(path, method, handler, name, meta)
        self._routes.append(route)
        logger.debug(f"Route added: {route.method or 'ANY'} {path}")
        return route

    def match(self, method: str, path: str) -> Optional[RouteMatch]:
        path = normalize_path(path)
        for route in self._routes:
            if not route.accepts(method):
                continue
            params = route.params_for(path)
            if params is not None:
                return RouteMatch(route, params)
        return None

    def get_allowed_methods(self, path: str) -> List[str]:
        """Methods some route answers at ``path``, sorted; empty if none."""
        path = normalize_path(path)
        methods = set()
        for route in self._routes:
            if route.params_for(path) is None:
                continue
            if route.method is None:
                return list(ALL_METHODS)
            methods.add(route.method)
        return sorted(methods)

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        found = self.match(request.method, request.path)
        if found is not None:
            request.path_params = found.params
            return found.route.handler(request)

        if request.method == "GET" and self.fallback is not None:
            return self.fallback(request)

        allowed = self.get_allowed_methods(request.path)
        return method_not_allowed(allowed) if allowed else not_found()

    def route(
        self,
        path: str,
        method: Optional[str] = None,
        name: Optional[str] = None,
        **meta: Any
    ) -> Callable[[Handler], Handler]:
        """Decorator form of add_route()."""
        def register(handler: Handler) -> Handler:
            self.add_route(path, handler, method, name, **meta)
            return handler
        return register

    def get(self, path: str, name: Optional[str] = None, **meta: Any) -> Callable[[Handler], Handler]:
        return self.route(path, "GET", name, **meta)
