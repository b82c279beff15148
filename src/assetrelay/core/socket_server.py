"""
=============================================================================
LISTENING SOCKET
=============================================================================

Binds the configured address and hands every accepted client, wrapped in
a Connection, to a callback. The AssetServer's callback only queues the
connection on the thread pool, so the accept loop never waits on a slow
asset.

    resolve host ──► bind ──► listen ──► accept ─┬─► Connection ──► callback
                                          ▲      │
                                          └──────┘ (1s poll for shutdown)

=============================================================================
ADDRESSES
=============================================================================

The host is resolved with getaddrinfo, so IPv6 binds work too:

    --host 127.0.0.1   AF_INET
    --host ::1         AF_INET6
    --host localhost   whatever the resolver lists first

Port 0 lets the OS choose; ``address`` reports the real port once the
socket is listening.

=============================================================================
STOPPING
=============================================================================

shutdown() may be called from any thread and takes effect within one
accept poll. When the server runs on the main thread, SIGINT and SIGTERM
call shutdown() too; the previous handlers come back when the loop ends.

=============================================================================
"""

import socket
import signal
import logging
import threading
from contextlib import contextmanager
from typing import Optional, Callable, Tuple, Iterator

from ..config import ServerConfig
from .connection import Connection

logger = logging.getLogger(__name__)

ACCEPT_POLL_SECONDS = 1.0

ConnectionHandler = Callable[[Connection], None]


def open_listener(host: str, port: int, backlog: int) -> socket.socket:
    """
    Bind and listen on the first usable address for ``host``.

    Raises:
        OSError: No resolved address could be bound.
    """
    candidates = socket.getaddrinfo(
        host, port, type=socket.SOCK_STREAM, flags=socket.AI_PASSIVE
    )
    last_error: Optional[OSError] = None

    for family, kind, proto, _, sockaddr in candidates:
        listener = socket.socket(family, kind, proto)
        try:
            listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            listener.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
            listener.bind(sockaddr)
            listener.listen(backlog)
        except OSError as e:
            listener.close()
            last_error = e
            continue

        listener.settimeout(ACCEPT_POLL_SECONDS)
        return listener

    raise last_error or OSError(f"no address to bind for {host}:{port}")


class SocketServer:
    """
    Accept loop for one listening socket.

        server = SocketServer(config)
        server.start(on_connection)       # Blocks until shutdown()
    """

    def __init__(self, config: ServerConfig):
        self.config = config
        self._listener: Optional[socket.socket] = None
        self._running = False
        self._ready = threading.Event()
        self._stopped = threading.Event()
        self._bound: Optional[Tuple[str, int]] = None

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def address(self) -> Tuple[str, int]:
        """(host, port) actually bound, or the configured pair before that."""
        return self._bound or (self.config.host, self.config.port)

    def start(self, on_connection: ConnectionHandler):
        """
        Listen and dispatch connections until shutdown() is called.

        Raises:
            OSError: The address could not be bound.
        """
        try:
            self._listener = open_listener(self.config.host, self.config.port, self.config.backlog)
        except OSError as e:
            logger.error(f"Cannot listen on {self.config.host}:{self.config.port}: {e}")
            raise

        self._bound = self._listener.getsockname()[:2]
        self._running = True
        self._stopped.clear()
        logger.info(f"Listening on {self._bound[0]}:{self._bound[1]}")
        self._ready.set()

        try:
            with self._stop_on_signals():
                self._accept_until_stopped(on_connection)
        finally:
            self._close_listener()

    def _accept_until_stopped(self, on_connection: ConnectionHandler):
        while self._running:
            try:
                client, peer = self._listener.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if self._running:
                    logger.error(f"accept() failed: {e}")
                break

            logger.debug(f"Connection from {peer[0]}:{peer[1]}")
            on_connection(Connection(
                socket=client,
                address=peer[:2],
                buffer_size=self.config.buffer_size,
                timeout=self.config.timeout,
                keep_alive_timeout=self.config.keep_alive_timeout,
                max_request_size=self.config.max_request_size,
            ))

    @contextmanager
    def _stop_on_signals(self) -> Iterator[None]:
        """Route SIGINT/SIGTERM to shutdown() while the loop runs (main thread only)."""
        if threading.current_thread() is not threading.main_thread():
            yield
            return

        def on_signal(signum, frame):
            logger.info(f"Received {signal.Signals(signum).name}, shutting down")
            self.shutdown()

        previous = {sig: signal.signal(sig, on_signal) for sig in (signal.SIGINT, signal.SIGTERM)}
        try:
            yield
        finally:
            for sig, handler in previous.items():
                signal.signal(sig, handler)

    def shutdown(self):
        """Ask the accept loop to exit. Safe from any thread, any number of times."""
        if self._running:
            logger.info("Stopping accept loop")
        self._running = False
        self._stopped.set()

    def _close_listener(self):
        if self._listener is not None:
            self._listener.close()
            self._listener = None
        self._ready.clear()
        logger.info("Listener closed")

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the socket is listening. True if it is."""
        return self._ready.wait(timeout)

    def wait_for_shutdown(self, timeout: Optional[float] = None) -> bool:
        return self._stopped.wait(timeout)
