"""
=============================================================================
ASSET HANDLERS
=============================================================================

The two ways of answering a request for a compiled client-side asset,
and the dispatcher that picks between them.

    ┌─────────────────────────────────────────────────────────────────────┐
    │ static.py     respond_from_build   file from the build directory   │
    │ relay.py      respond_from_serve   forwarded to a dev server       │
    │ dispatch.py   AssetDispatcher      one mode, failures → 400/404/502│
    └─────────────────────────────────────────────────────────────────────┘

Both operations are terminal: they return a complete HTTPResponse or
raise one of the exceptions in assetrelay.errors.

=============================================================================
"""

from .static import BuildDirectory, respond_from_build, resolve_asset_path
from .relay import (
    UpstreamOrigin,
    HeaderFilterPolicy,
    DEFAULT_HEADER_POLICY,
    FRAMING_HEADERS,
    build_target_url,
    build_upstream_headers,
    describe_failure,
    respond_from_serve,
)
from .dispatch import AssetDispatcher

__all__ = [
    "BuildDirectory",
    "respond_from_build",
    "resolve_asset_path",
    "UpstreamOrigin",
    "HeaderFilterPolicy",
    "DEFAULT_HEADER_POLICY",
    "FRAMING_HEADERS",
    "build_target_url",
    "build_upstream_headers",
    "describe_failure",
    "respond_from_serve",
    "AssetDispatcher",
]
