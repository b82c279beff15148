"""
Unit tests for Connection framing, using a local socket pair.
"""

import io
import socket

import pytest

from assetrelay.core import Connection
from assetrelay.core.connection import declared_body_length
from assetrelay.http import ResponseBuilder


@pytest.fixture
def pair():
    server_side, client_side = socket.socketpair()
    conn = Connection(socket=server_side, address=("local", 0), timeout=2.0, keep_alive_timeout=0.2)
    yield conn, client_side
    client_side.close()
    conn.close()


def read_all(sock: socket.socket) -> bytes:
    sock.settimeout(2.0)
    chunks = []
    while True:
        chunk = sock.recv(65536)
        if not chunk:
            return b"".join(chunks)
        chunks.append(chunk)


class TestReadRequest:
    """Tests for Connection.read_request()."""

    def test_pipelined_requests(self, pair):
        conn, client = pair
        client.sendall(
            b"GET /a.js HTTP/1.1\r\nHost: x\r\n\r\n"
            b"GET /b.css HTTP/1.1\r\nHost: x\r\n\r\n"
        )

        assert conn.read_request() == b"GET /a.js HTTP/1.1\r\nHost: x\r\n\r\n"
        assert conn.read_request() == b"GET /b.css HTTP/1.1\r\nHost: x\r\n\r\n"
        assert conn.requests_handled == 2

    def test_body_by_content_length(self, pair):
        conn, client = pair
        client.sendall(b"POST / HTTP/1.1\r\nContent-Length: 5\r\n\r\nhelloGET")

        assert conn.read_request().endswith(b"\r\n\r\nhello")

    def test_client_closed(self, pair):
        conn, client = pair
        client.shutdown(socket.SHUT_WR)

        assert conn.read_request() is None

    def test_idle_keep_alive_returns_none(self, pair):
        conn, client = pair
        client.sendall(b"GET / HTTP/1.1\r\n\r\n")
        conn.read_request()

        assert conn.read_request() is None

    def test_too_large(self, pair):
        conn, client = pair
        conn.max_request_size = 64
        client.sendall(b"GET / HTTP/1.1\r\nX-Pad: " + b"a" * 200 + b"\r\n\r\n")

        with pytest.raises(ValueError):
            conn.read_request()

    def test_declared_body_length(self):
        assert declared_body_length(b"GET / HTTP/1.1\r\nContent-Length: 12") == 12
        assert declared_body_length(b"GET / HTTP/1.1\r\ncontent-length:3\r\nX: y") == 3
        assert declared_body_length(b"GET / HTTP/1.1\r\nContent-Length: nope") == 0
        assert declared_body_length(b"GET / HTTP/1.1") == 0


class TestSendResponse:
    """Tests for Connection.send_response()."""

    def test_streams_file_and_closes_it(self, pair):
        conn, client = pair
        fileobj = io.BytesIO(b"z" * 10_000)
        response = ResponseBuilder().stream(fileobj, 10_000, chunk_size=1024).build()

        assert conn.send_response(response)
        conn.close()

        reply = read_all(client)
        head, _, body = reply.partition(b"\r\n\r\n")
        assert head.startswith(b"HTTP/1.1 200 OK")
        assert b"Content-Length: 10000" in head
        assert body == b"z" * 10_000
        assert fileobj.closed
        assert conn.bytes_sent == len(reply)

    def test_vanished_client_still_closes_file(self, pair):
        conn, client = pair
        client.close()
        fileobj = io.BytesIO(b"z" * 1_000_000)
        response = ResponseBuilder().stream(fileobj, 1_000_000).build()

        assert conn.send_response(response) is False
        assert fileobj.closed
