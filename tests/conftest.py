"""
pytest configuration and fixtures.
"""

import os
import socket
from pathlib import Path
from typing import Dict, Optional

import pytest

# Add src to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from assetrelay.http import HTTPRequest, parse_request


# Files written into the build_dir fixture, relative path → contents
BUILD_FILES = {
    "index.html": b"<!doctype html><script src=\"scripts/main.dart.js\"></script>",
    "scripts/main.dart.js": b"console.log('compiled');\n" * 200,
    "styles/Site.CSS": b"body { margin: 0; }\n",
    "LICENSE": b"MIT\n",
    "packages/app/deep/nested/data.json": b'{"ok": true}',
    "name with space.txt": b"spaced\n",
}


def make_request(
    target: str,
    method: str = "GET",
    headers: Optional[Dict[str, str]] = None,
    raw_headers: Optional[list] = None,
) -> HTTPRequest:
    """
    Build a request by running real bytes through the parser.

    ``raw_headers`` is a list of (name, value) pairs and may repeat a name.
    """
    lines = [f"{method} {target} HTTP/1.1", "Host: localhost:8000"]
    for name, value in (headers or {}).items():
        lines.append(f"{name}: {value}")
    for name, value in (raw_headers or []):
        lines.append(f"{name}: {value}")
    data = ("\r\n".join(lines) + "\r\n\r\n").encode("iso-8859-1")
    return parse_request(data, ("127.0.0.1", 50000))


@pytest.fixture
def build_dir(tmp_path: Path) -> Path:
    """A build directory populated with BUILD_FILES."""
    root = tmp_path / "build"
    for relative, contents in BUILD_FILES.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(contents)

    # A file next to the build directory that must never be reachable
    (tmp_path / "secret.txt").write_bytes(b"do not serve")

    # Fixed mtime so Last-Modified is predictable
    os.utime(root / "index.html", (1_700_000_000, 1_700_000_000))
    return root


@pytest.fixture
def free_port() -> int:
    """A port nothing is listening on."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample asset request with a query string and a repeated header."""
    return (
        b"GET /scripts/main.dart.js?v=3 HTTP/1.1\r\n"
        b"Host: localhost:8000\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: */*\r\n"
        b"Cookie: a=1\r\n"
        b"Cookie: b=2\r\n"
        b"Connection: keep-alive\r\n"
        b"\r\n"
    )


@pytest.fixture
def request_factory():
    """The make_request helper, for building parsed requests in tests."""
    return make_request


@pytest.fixture
def build_files() -> Dict[str, bytes]:
    """Contents written by the build_dir fixture."""
    return dict(BUILD_FILES)
