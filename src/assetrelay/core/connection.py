"""
=============================================================================
CLIENT CONNECTION
=============================================================================

One accepted socket. Cuts complete requests out of the TCP byte stream
and writes responses back, including file-backed asset bodies.

=============================================================================
FRAMING
=============================================================================

TCP delivers bytes, not messages:

    recv() → b"GET /main.dart.js HTTP/1.1\\r\\nHo"
    recv() → b"st: localhost\\r\\n\\r\\nGET /styles.css HT"

The buffer grows until it holds the blank line that ends the head, then
until it holds the Content-Length body (asset requests almost never have
one). Whatever follows belongs to the next pipelined request and stays
buffered.

=============================================================================
TIMEOUTS
=============================================================================

    first request       ``timeout``             miss → TimeoutError (408)
    later requests      ``keep_alive_timeout``  miss → None (just close)

=============================================================================
WRITING
=============================================================================

    send_response(response)
        head                       status line + headers
        body chunks                one piece, or 64 KiB file chunks
        response.close()           always, even if the client vanished

=============================================================================
"""

import re
import socket
import time
import logging
import uuid
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional

from ..http.response import HTTPResponse

logger = logging.getLogger(__name__)

HEAD_TERMINATOR = b"\r\n\r\n"
_CONTENT_LENGTH = re.compile(rb"^content-length[ \t]*:[ \t]*(\d+)[ \t]*$", re.I | re.M)


class ConnectionState(Enum):
    """Where a connection is in its life; shown in debug logs."""

    NEW = "new"
    READING = "reading"
    PROCESSING = "processing"
    WRITING = "writing"
    KEEP_ALIVE = "keep_alive"
    CLOSED = "closed"


def declared_body_length(head: bytes) -> int:
    """Content-Length from a raw request head; 0 when absent or malformed."""
    match = _CONTENT_LENGTH.search(head)
    return int(match.group(1)) if match else 0


@dataclass
class Connection:
    """
    An accepted client socket plus its read buffer.

    ``id`` tags every log line about this client; ``bytes_sent`` and
    ``requests_handled`` are totals over the connection's lifetime.
    """

    socket: socket.socket
    address: tuple[str, int]

    buffer_size: int = 8192
    timeout: Optional[float] = 30.0
    keep_alive_timeout: float = 5.0
    max_request_size: int = 1024 * 1024

    id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    state: ConnectionState = ConnectionState.NEW
    opened_at: float = field(default_factory=time.monotonic)
    requests_handled: int = 0
    bytes_sent: int = 0

    _pending: bytearray = field(default_factory=bytearray, repr=False)

    def __post_init__(self):
        self.socket.settimeout(self.timeout)

    @property
    def client_ip(self) -> str:
        return self.address[0]

    @property
    def age(self) -> float:
        """Seconds since accept()."""
        return time.monotonic() - self.opened_at

    # =========================================================================
    # READING
    # =========================================================================

    def read_request(self) -> Optional[bytes]:
        """
        Return the next complete request, or None once the client is done.

        Raises:
            TimeoutError: The first request did not arrive within ``timeout``.
            ValueError: The request is larger than ``max_request_size``.
        """
        self.state = ConnectionState.READING
        waiting_for_reuse = self.requests_handled > 0
        if waiting_for_reuse:
            self.socket.settimeout(self.keep_alive_timeout)

        try:
            head_end = self._fill_until_head()
            if head_end < 0:
                return None

            total = head_end + len(HEAD_TERMINATOR) + declared_body_length(
                bytes(self._pending[:head_end])
            )
            self._fill_to(total)

            request = bytes(self._pending[:total])
            del self._pending[:total]
            self.requests_handled += 1
            return request

        except socket.timeout:
            if waiting_for_reuse:
                logger.debug(f"[{self.id}] Idle keep-alive connection timed out")
                return None
            raise TimeoutError("Request read timeout")

        finally:
            self.socket.settimeout(self.timeout)

    def _fill_until_head(self) -> int:
        """Index of the head terminator, or -1 if the client closed first."""
        while True:
            position = self._pending.find(HEAD_TERMINATOR)
            if position >= 0:
                return position
            if not self._receive():
                return -1

    def _fill_to(self, size: int) -> None:
        """Buffer ``size`` bytes; a short body is left for the parser to reject."""
        while len(self._pending) < size:
            if not self._receive():
                return

    def _receive(self) -> bool:
        """One recv() into the buffer. False when the peer is gone."""
        try:
            data = self.socket.recv(self.buffer_size)
        except (ConnectionResetError, BrokenPipeError):
            return False
        if not data:
            return False

        self._pending += data
        if len(self._pending) > self.max_request_size:
            raise ValueError(f"Request too large: over {self.max_request_size} bytes")
        return True

    # =========================================================================
    # WRITING
    # =========================================================================

    def send_bytes(self, data: bytes) -> bool:
        """sendall() that reports a vanished client as False instead of raising."""
        self.state = ConnectionState.WRITING
        try:
            self.socket.sendall(data)
        except OSError as e:
            logger.info(f"[{self.id}] Client went away while sending: {e}")
            return False
        self.bytes_sent += len(data)
        return True

    def send_response(self, response: HTTPResponse, server_name: str = "assetrelay") -> bool:
        """
        Write the head, then the body chunk by chunk.

        The response is closed whatever happens, so an asset file is never
        left open by a client that disconnects mid-download.
        """
        try:
            if not self.send_bytes(response.head_bytes(server_name)):
                return False
            return all(self.send_bytes(chunk) for chunk in response.iter_body())
        finally:
            response.close()

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self):
        """
        Half-close, discard what the client still sends, then release the
        socket. Idempotent.
        """
        if self.state == ConnectionState.CLOSED:
            return
        self.state = ConnectionState.CLOSED

        try:
            self.socket.shutdown(socket.SHUT_WR)
            self.socket.settimeout(0.5)
            while self.socket.recv(4096):
                pass
        except OSError:
            pass  # Peer already gone or reset
        finally:
            self.socket.close()

        logger.debug(
            f"[{self.id}] Closed after {self.requests_handled} requests, "
            f"{self.bytes_sent} bytes sent, {self.age:.1f}s"
        )

    def set_keep_alive(self):
        self.state = ConnectionState.KEEP_ALIVE

    def __enter__(self) -> "Connection":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
