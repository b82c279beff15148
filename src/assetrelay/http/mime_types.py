"""
=============================================================================
MIME TYPE DETECTION
=============================================================================

Maps filename extensions to Content-Type values for assets served from
the build directory.

=============================================================================
WHY MIME TYPES MATTER FOR COMPILED ASSETS
=============================================================================

Browsers refuse to execute a script served with the wrong type:

    ┌────────────────────────────────────────────────────────────────────┐
    │  GET /main.dart.js                                                 │
    │                                                                     │
    │  Content-Type: text/javascript          → script runs               │
    │  Content-Type: application/octet-stream → blocked (strict MIME)     │
    │                                                                     │
    │  GET /main.dart.js.map                                              │
    │  Content-Type: application/json         → devtools load the map     │
    └────────────────────────────────────────────────────────────────────┘

=============================================================================
LOOKUP RULES
=============================================================================

    /build/app/Main.CSS
               ────┬───
                   └── extension = text after the LAST "." of the LAST
                       path component, case-folded → "css"

    /build/v1.2/LICENSE     → no "." in last component → octet-stream
    /build/archive.tar.gz   → "gz"

Keys in the table have no leading dot and are lowercase.

=============================================================================
"""

import os
from types import MappingProxyType
from typing import Mapping, Optional


# =============================================================================
# MIME TYPE DATABASE
# =============================================================================
#
# Text types carry an explicit charset so browsers never sniff encodings.
#
# =============================================================================

DEFAULT_MIME_TYPES = {
    # Documents and data
    "txt": "text/plain; charset=utf-8",
    "html": "text/html; charset=utf-8",
    "htm": "text/html; charset=utf-8",
    "json": "application/json; charset=utf-8",
    "xml": "application/xml",
    "css": "text/css",
    "csv": "text/csv; charset=utf-8",
    "md": "text/markdown; charset=utf-8",

    # Scripts
    "js": "text/javascript",
    "mjs": "text/javascript",
    "map": "application/json",       # Source maps
    "dart": "application/dart",
    "wasm": "application/wasm",

    # Images
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "gif": "image/gif",
    "svg": "image/svg+xml",
    "ico": "image/vnd.microsoft.icon",
    "webp": "image/webp",
    "avif": "image/avif",

    # Fonts
    "woff": "font/woff",
    "woff2": "font/woff2",
    "ttf": "font/ttf",
    "otf": "font/otf",

    # Media
    "mp3": "audio/mpeg",
    "ogg": "audio/ogg",
    "wav": "audio/wav",
    "mp4": "video/mp4",
    "webm": "video/webm",

    # Archives
    "pdf": "application/pdf",
    "zip": "application/zip",
    "gz": "application/gzip",
}

# "I don't know what this is, treat as binary"
DEFAULT_MIME_TYPE = "application/octet-stream"


def file_extension(path: str) -> Optional[str]:
    """
    Extract the lowercase extension of the final path component.

    Returns None when the final component has no dot. Only the platform
    separator (and "/") count as component boundaries.

    Examples:
        >>> file_extension("/build/a/b/c.CSS")
        'css'
        >>> file_extension("/build/v1.2/LICENSE") is None
        True
    """
    name = os.path.basename(path.replace("/", os.sep))
    stem, dot, suffix = name.rpartition(".")
    if not dot or not suffix:
        return None
    return suffix.lower()


class MimeTable:
    """
    Immutable extension → Content-Type table.

    Created once at startup and shared by every request, so the mapping
    is wrapped in a read-only proxy.

        table = MimeTable({"dart": "application/dart"})
        table.content_type_for("/build/web/main.DART")   # application/dart
        table.content_type_for("/build/web/README")      # octet-stream
    """

    def __init__(
        self,
        types: Optional[Mapping[str, str]] = None,
        default: str = DEFAULT_MIME_TYPE,
    ):
        table = DEFAULT_MIME_TYPES if types is None else types
        # Normalise keys so callers may write ".CSS" or "css"
        self._types = MappingProxyType(
            {ext.lstrip(".").lower(): value for ext, value in table.items()}
        )
        self.default = default

    def content_type_for(self, path: str) -> str:
        """Look up the Content-Type for a file path."""
        extension = file_extension(path)
        if extension is None:
            return self.default
        return self._types.get(extension, self.default)

    def with_types(self, extra: Mapping[str, str]) -> "MimeTable":
        """Return a new table with additional or overriding entries."""
        merged = dict(self._types)
        merged.update({ext.lstrip(".").lower(): value for ext, value in extra.items()})
        return MimeTable(merged, self.default)

    def __contains__(self, extension: str) -> bool:
        return extension.lstrip(".").lower() in self._types

    def __len__(self) -> int:
        return len(self._types)


DEFAULT_MIME_TABLE = MimeTable()


def get_content_type(path: str) -> str:
    """Content-Type for ``path`` using the default table."""
    return DEFAULT_MIME_TABLE.content_type_for(path)
