"""
=============================================================================
SERVING COMPILED ASSETS FROM A BUILD DIRECTORY
=============================================================================

Production mode: every GET the application doesn't handle itself is
answered with a file from the build output directory.

    GET /scripts/main.dart.js
              │
              ▼
    /srv/app/build/scripts/main.dart.js
              │
              ▼
    HTTP/1.1 200 OK
    Content-Type: text/javascript
    Date: Sat, 17 Oct 2026 09:12:44 GMT
    Last-Modified: Fri, 16 Oct 2026 22:03:10 GMT
    Content-Length: 1482233
    (file contents, streamed in chunks)

=============================================================================
PATH TRAVERSAL
=============================================================================

The request path is attacker-controlled. Anything that lets it climb out
of the build directory is rejected BEFORE the filesystem is touched:

    ┌──────────────────────────────┬────────────────────────────────────┐
    │ Request path                 │ Result                             │
    ├──────────────────────────────┼────────────────────────────────────┤
    │ /a/./b.js                    │ build/a/b.js  ("." dropped)        │
    │ /a//b.js                     │ build/a/b.js  (empty dropped)      │
    │ /a/../b.js                   │ 400 BadRequest (".." segment)      │
    │ /a/%2E%2E/b.js               │ 400 BadRequest (decodes to "..")   │
    │ /..%2Fetc%2Fpasswd           │ 400 BadRequest (escapes the root)  │
    └──────────────────────────────┴────────────────────────────────────┘

Segments are split on the raw "/" and decoded afterwards, so an encoded
separator stays inside its segment. The composed path is then normalised
and checked against the build directory once more.

There is no directory index, no listing, no range support and no
conditional GET: a directory or missing file is simply FileNotFound.

=============================================================================
"""

import os
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Union, List
from pathlib import Path

from ..errors import BadRequest, FileNotFound, InvalidConfiguration
from ..http.request import HTTPRequest
from ..http.response import (
    HTTPResponse, ResponseBuilder, HTTPStatus, DEFAULT_CHUNK_SIZE, format_http_date
)
from ..http.mime_types import MimeTable, DEFAULT_MIME_TABLE

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BuildDirectory:
    """
    Absolute path of the compiled-asset directory.

    Validated once at startup. The directory does not have to exist yet
    (a build may still be running); a missing directory just means every
    request is FileNotFound.
    """

    path: str

    @classmethod
    def parse(
        cls,
        value: Union[str, Path, "BuildDirectory", None],
        request: Optional[HTTPRequest] = None
    ) -> "BuildDirectory":
        """
        Validate ``value`` as a build directory.

        Raises:
            InvalidConfiguration: ``value`` is None, empty, or relative.
        """
        if isinstance(value, BuildDirectory):
            return value
        if value is None:
            raise InvalidConfiguration(request, "build directory not set")

        text = os.fspath(value)
        if not text:
            raise InvalidConfiguration(request, "build directory is empty")
        if not os.path.isabs(text):
            raise InvalidConfiguration(
                request, f"build directory is not an absolute path: {text}"
            )
        return cls(os.path.normpath(text))

    def __str__(self) -> str:
        return self.path


def resolve_asset_path(request: HTTPRequest, build_dir: BuildDirectory) -> str:
    """
    Map the request path onto a filesystem path inside ``build_dir``.

    Raises:
        BadRequest: the path has a ".." segment or would escape the root.
    """
    segments: List[str] = request.path_segments

    if ".." in segments:
        logger.warning(f"Rejected path with '..' segment: {request.target}")
        raise BadRequest(request, 'path contains ".."')

    kept = [segment for segment in segments if segment not in ("", ".")]
    candidate = os.path.normpath(os.path.join(build_dir.path, *kept))

    # An encoded separator ("%2F..") only shows up after joining
    if os.path.commonpath([build_dir.path, candidate]) != build_dir.path:
        logger.warning(f"Rejected path escaping build directory: {request.target}")
        raise BadRequest(request, "path escapes the build directory")

    return candidate


def respond_from_build(
    request: HTTPRequest,
    build_dir: Union[str, Path, BuildDirectory, None],
    *,
    mime_table: MimeTable = DEFAULT_MIME_TABLE,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    log: logging.Logger = logger,
) -> HTTPResponse:
    """
    Answer a GET request with a file from the build directory.

    The returned response owns the open file; whoever sends it must
    close it (Connection.send_response does).

    Raises:
        InvalidConfiguration: bad ``build_dir`` or a non-GET request.
        BadRequest: the path tries to leave the build directory.
        FileNotFound: no regular file at the resolved path, or it
            cannot be opened.
    """
    root = BuildDirectory.parse(build_dir, request)

    if request.method != "GET":
        raise InvalidConfiguration(
            request, f"not a HTTP GET request: {request.method}"
        )

    file_path = resolve_asset_path(request, root)

    if not os.path.isfile(file_path):
        log.debug(f"file not found: {file_path}")
        raise FileNotFound(request, f"file not found: {file_path}", file_path)

    try:
        fileobj = open(file_path, "rb")
    except OSError as e:
        log.debug(f"file not readable: {file_path}: {e}")
        raise FileNotFound(request, f"file not readable: {file_path}", file_path) from e

    try:
        stat = os.fstat(fileobj.fileno())
        modified = datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc)

        response = (ResponseBuilder()
            .status(HTTPStatus.OK)
            .content_type(mime_table.content_type_for(file_path))
            .header("Date", format_http_date(datetime.now(timezone.utc)))
            .header("Last-Modified", format_http_date(modified))
            .stream(fileobj, stat.st_size, chunk_size)
            .build())
    except BaseException:
        fileobj.close()
        raise

    log.debug(f"serving {file_path} ({stat.st_size} bytes)")
    return response
