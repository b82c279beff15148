"""
=============================================================================
CORE NETWORKING
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │ SocketServer   listening socket, accept loop, signal handling       │
    │ Connection     one client: buffered reads, streamed writes          │
    │ ThreadPool     fixed workers; a full queue means 503                │
    └─────────────────────────────────────────────────────────────────────┘

One accepted connection is handled start to finish by one worker thread.

=============================================================================
"""

from .socket_server import SocketServer
from .connection import Connection, ConnectionState
from .thread_pool import ThreadPool

__all__ = [
    "SocketServer",
    "Connection",
    "ConnectionState",
    "ThreadPool",
]
