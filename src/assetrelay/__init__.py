"""
=============================================================================
ASSETRELAY
=============================================================================

Serve a web application's compiled client-side assets from one HTTP
server, in either of two modes, without the browser or the application's
routes knowing which one is active.

    PRODUCTION                              DEBUG
    ──────────                              ─────
    python -m assetrelay --build build      python -m assetrelay \\
                                                --debug http://localhost:8080

    GET /main.dart.js                       GET /main.dart.js
      → build/main.dart.js                    → http://localhost:8080/main.dart.js
      → 200, Content-Type, Last-Modified      → dev server's status/headers/body

=============================================================================
LAYOUT
=============================================================================

    assetrelay/
        errors.py        failure kinds (BadRequest, FileNotFound, ...)
        handlers/        respond_from_build, respond_from_serve, dispatcher
        http/            request parser, response, router, MIME table
        core/            sockets, connections, thread pool
        middleware/      access logging
        server.py        AssetServer
        config.py        ServerConfig
        __main__.py      command line

=============================================================================
EMBEDDING
=============================================================================

The two operations work on any HTTPRequest, so an application can call
them from its own handlers:

    from assetrelay import respond_from_build, FileNotFound

    def assets(request):
        try:
            return respond_from_build(request, "/srv/app/build")
        except FileNotFound:
            return not_found()

=============================================================================
"""

__version__ = "1.0.0"

from .errors import (
    AssetRelayError,
    InvalidConfiguration,
    BadRequest,
    FileNotFound,
    UnsupportedRequest,
    ServerUnavailable,
)
from .handlers import (
    AssetDispatcher,
    BuildDirectory,
    UpstreamOrigin,
    HeaderFilterPolicy,
    respond_from_build,
    respond_from_serve,
)
from .http import MimeTable
from .config import ServerConfig
from .server import AssetServer, create_server

__all__ = [
    "__version__",
    "AssetRelayError",
    "InvalidConfiguration",
    "BadRequest",
    "FileNotFound",
    "UnsupportedRequest",
    "ServerUnavailable",
    "AssetDispatcher",
    "BuildDirectory",
    "UpstreamOrigin",
    "HeaderFilterPolicy",
    "MimeTable",
    "respond_from_build",
    "respond_from_serve",
    "ServerConfig",
    "AssetServer",
    "create_server",
]
