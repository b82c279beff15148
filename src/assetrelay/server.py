"""
=============================================================================
ASSET SERVER
=============================================================================

Ties the pieces together into a runnable HTTP/1.1 server:

    SocketServer ──accept──► ThreadPool ──► _process_connection(conn)
                                                │
                       conn.read_request()  ◄───┤ keep-alive loop
                       RequestParser.parse()    │
                       LoggingMiddleware        │
                         └─► Router             │
                               ├─ own routes    │
                               └─ fallback: AssetDispatcher.handle
                       conn.send_response() ────┘ head, chunks, close

=============================================================================
WHERE ERRORS BECOME RESPONSES
=============================================================================

    HTTPParseError         → its status_code (400/405/413/505), close
    read timeout           → 408, close
    thread pool full       → 503, close
    asset failures         → 400/404/502 (AssetDispatcher, not here)
    InvalidConfiguration   → 500, logged CRITICAL
    any other exception    → 500, logged with traceback

=============================================================================
"""

import logging
import threading
from typing import Optional, Callable

import httpx

from .config import ServerConfig
from .core import SocketServer, Connection, ThreadPool
from .core.connection import ConnectionState
from .errors import InvalidConfiguration
from .handlers import AssetDispatcher, HeaderFilterPolicy, DEFAULT_HEADER_POLICY
from .http import (
    HTTPRequest, RequestParser, HTTPParseError,
    HTTPResponse, ResponseBuilder, HTTPStatus,
    MimeTable, DEFAULT_MIME_TABLE,
    Router, internal_error,
)
from .middleware import MiddlewarePipeline, Middleware, LoggingMiddleware

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Set up root logging once, the way the CLI wants it."""
    numeric = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(level=numeric, format=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    logging.getLogger("assetrelay").setLevel(numeric)


class AssetServer:
    """
    HTTP server whose unhandled GET requests are answered with assets.

        config = ServerConfig(build_dir="/srv/app/build", port=8000)
        server = AssetServer(config)

        @server.get("/api/version")
        def version(request):
            return ok({"version": "1.2.0"})

        server.run()          # Blocks until Ctrl+C

    ``transport`` is handed to httpx in debug mode; tests use it to put
    an httpx.MockTransport in place of the development server.
    """

    def __init__(
        self,
        config: Optional[ServerConfig] = None,
        *,
        mime_table: MimeTable = DEFAULT_MIME_TABLE,
        policy: HeaderFilterPolicy = DEFAULT_HEADER_POLICY,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.config = config or ServerConfig.from_env()
        self.config.validate()

        self.dispatcher = AssetDispatcher(
            build_dir=self.config.build_dir,
            serve_url=self.config.serve_url,
            mime_table=mime_table,
            policy=policy,
            upstream_timeout=self.config.upstream_timeout,
            chunk_size=self.config.chunk_size,
            transport=transport,
        )

        self._socket_server = SocketServer(self.config)
        self._thread_pool = ThreadPool(
            num_workers=self.config.workers,
            queue_size=self.config.queue_size,
        )
        self._parser = RequestParser(max_request_size=self.config.max_request_size)
        self._router = Router(fallback=self.dispatcher.handle)
        self._middleware = MiddlewarePipeline()
        self._middleware.add(LoggingMiddleware(log_format=self.config.log_format))
        self._handler: Optional[Callable[[HTTPRequest], HTTPResponse]] = None
        self._running = False

    # =========================================================================
    # CONFIGURATION
    # =========================================================================

    @property
    def router(self) -> Router:
        return self._router

    @property
    def address(self) -> tuple[str, int]:
        """Bound (host, port); the real port once listening on port 0."""
        return self._socket_server.address

    @property
    def base_url(self) -> str:
        host, port = self.address
        return f"http://{host}:{port}"

    def use(self, middleware: Middleware) -> "AssetServer":
        """Add middleware inside the access logger."""
        self._middleware.add(middleware)
        return self

    def get(self, path: str, **kwargs):
        """Register a GET route that takes priority over assets."""
        return self._router.get(path, **kwargs)

    def route(self, path: str, method: Optional[str] = None, **kwargs):
        return self._router.route(path, method, **kwargs)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def run(self):
        """Serve until shutdown (SIGINT/SIGTERM or stop())."""
        self._running = True
        self._handler = self._middleware.wrap(self._router.handle)
        self._thread_pool.start()

        if self.dispatcher.mode == "build":
            logger.info(f"Serving assets from build directory {self.dispatcher.source}")
        else:
            logger.info(f"Relaying assets to development server {self.dispatcher.source}")

        try:
            self._socket_server.start(self._handle_connection)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def start(self, timeout: float = 5.0) -> threading.Thread:
        """
        Run the server on a background thread and wait until it listens.

        Raises:
            RuntimeError: It wasn't listening within ``timeout`` seconds.
        """
        thread = threading.Thread(target=self.run, name="assetrelay-server", daemon=True)
        thread.start()
        if not self._socket_server.wait_until_ready(timeout):
            self.stop()
            raise RuntimeError(f"Server did not start within {timeout}s")
        return thread

    def stop(self):
        """Ask the accept loop to exit; run() then finishes its shutdown."""
        self._socket_server.shutdown()

    def _shutdown(self):
        logger.info("Shutting down server...")
        self._running = False
        self._thread_pool.shutdown(wait=True, timeout=30.0)
        logger.info("Server stopped")

    # =========================================================================
    # CONNECTION HANDLING
    # =========================================================================

    def _handle_connection(self, conn: Connection):
        """Queue a connection on the pool; answer 503 if the queue is full."""
        if not self._thread_pool.submit(self._process_connection, conn):
            logger.warning(f"[{conn.id}] Thread pool full, rejecting connection")
            self._send_error(conn, HTTPStatus.SERVICE_UNAVAILABLE, "Server overloaded")
            conn.close()

    def _process_connection(self, conn: Connection):
        """Keep-alive loop for one connection (runs on a worker thread)."""
        with conn:
            while self._running:
                try:
                    raw_request = conn.read_request()
                    if raw_request is None:
                        break

                    try:
                        request = self._parser.parse(raw_request, conn.address)
                    except HTTPParseError as e:
                        logger.info(f"[{conn.id}] Unparsable request: {e}")
                        self._send_error(conn, e.status_code, str(e))
                        break

                    conn.state = ConnectionState.PROCESSING
                    response = self._dispatch(conn, request)

                    keep_alive = request.is_keep_alive and self.config.keep_alive
                    if keep_alive:
                        if not response.has_header("Connection"):
                            response.set_header("Connection", "keep-alive")
                            response.set_header(
                                "Keep-Alive", f"timeout={int(self.config.keep_alive_timeout)}"
                            )
                    else:
                        response.set_header("Connection", "close")

                    if not conn.send_response(response, self.config.server_name):
                        break

                    if not keep_alive or response.get_header("Connection", "").lower() == "close":
                        break

                    conn.set_keep_alive()

                except TimeoutError:
                    self._send_error(conn, HTTPStatus.REQUEST_TIMEOUT, "Request timeout")
                    break
                except ValueError as e:
                    # Request larger than max_request_size
                    self._send_error(conn, HTTPStatus.PAYLOAD_TOO_LARGE, str(e))
                    break
                except Exception as e:
                    logger.exception(f"[{conn.id}] Connection error: {e}")
                    break

    def _dispatch(self, conn: Connection, request: HTTPRequest) -> HTTPResponse:
        try:
            return self._handler(request)
        except InvalidConfiguration as e:
            logger.critical(f"[{conn.id}] Server misconfigured: {e}")
            return internal_error()
        except Exception as e:
            logger.exception(f"[{conn.id}] Handler error: {e}")
            return internal_error()

    def _send_error(self, conn: Connection, status: int, message: str):
        """Send an error produced outside the handler (parse errors, timeouts)."""
        response = (ResponseBuilder()
            .status(status)
            .json({"error": message})
            .close_connection()
            .build())
        conn.send_response(response, self.config.server_name)


def create_server(config: Optional[ServerConfig] = None, **kwargs) -> AssetServer:
    """Factory for AssetServer; ``kwargs`` go to its constructor."""
    return AssetServer(config, **kwargs)
