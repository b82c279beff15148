"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Every tunable setting in one dataclass, filled in from defaults, the
environment, or the command line, and validated once before the server
starts listening.

=============================================================================
THE TWO MODES
=============================================================================

Exactly one of these must be set:

    build_dir   production   serve compiled assets from this directory
    serve_url   debug        relay asset requests to this dev server

    ServerConfig(build_dir="/srv/app/build")
    ServerConfig(serve_url="http://localhost:8080")

Setting both, or neither, is an InvalidConfiguration at validate() time,
as is a relative build_dir or a serve_url that isn't http(s)://host[:port].

=============================================================================
ENVIRONMENT VARIABLES
=============================================================================

    ASSETRELAY_HOST          bind address         (127.0.0.1)
    ASSETRELAY_PORT          bind port            (8000)
    ASSETRELAY_WORKERS       worker threads       (10)
    ASSETRELAY_TIMEOUT       client socket timeout, seconds (30)
    ASSETRELAY_BUILD_DIR     production mode build directory
    ASSETRELAY_SERVE_URL     debug mode development server URL
    ASSETRELAY_LOG_LEVEL     DEBUG/INFO/WARNING/ERROR/CRITICAL (INFO)

=============================================================================
"""

import os
import logging
from dataclasses import dataclass
from typing import Optional

from . import __version__
from .errors import InvalidConfiguration
from .handlers.static import BuildDirectory
from .handlers.relay import UpstreamOrigin

logger = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("text", "json")

ENV_PREFIX = "ASSETRELAY_"


@dataclass
class ServerConfig:
    """
    Server configuration.

    Network, HTTP, threading and logging settings plus the asset mode.
    Port 0 asks the OS for a free port (handy in tests).
    """

    # Network
    host: str = "127.0.0.1"
    port: int = 8000
    backlog: int = 128
    buffer_size: int = 8192
    timeout: Optional[float] = 30.0

    # HTTP
    keep_alive: bool = True
    keep_alive_timeout: float = 5.0
    max_request_size: int = 1024 * 1024   # Asset requests are GETs; 1 MB is plenty

    # Thread pool
    workers: int = 10
    queue_size: int = 100

    # Asset mode: exactly one of these
    build_dir: Optional[str] = None
    serve_url: Optional[str] = None

    # Asset handling
    upstream_timeout: float = 30.0
    chunk_size: int = 64 * 1024

    # Logging
    log_level: str = "INFO"
    log_format: str = "text"

    server_name: str = f"assetrelay/{__version__}"

    @property
    def mode(self) -> Optional[str]:
        """'build', 'serve', or None when no mode is configured."""
        if self.build_dir is not None:
            return "build"
        if self.serve_url is not None:
            return "serve"
        return None

    @classmethod
    def from_env(cls, environ: Optional[dict] = None, **overrides) -> "ServerConfig":
        """
        Create configuration from ASSETRELAY_* environment variables.

        ``overrides`` win over the environment; the CLI passes its
        explicit flags this way.

        Raises:
            ValueError: A numeric variable doesn't parse.
        """
        env = os.environ if environ is None else environ

        def get(name: str, default: Optional[str] = None) -> Optional[str]:
            value = env.get(ENV_PREFIX + name)
            return value if value not in (None, "") else default

        values = dict(
            host=get("HOST", "127.0.0.1"),
            port=int(get("PORT", "8000")),
            workers=int(get("WORKERS", "10")),
            timeout=float(get("TIMEOUT", "30")),
            build_dir=get("BUILD_DIR"),
            serve_url=get("SERVE_URL"),
            log_level=get("LOG_LEVEL", "INFO").upper(),
        )
        values.update({k: v for k, v in overrides.items() if v is not None})

        return cls(**values)

    def validate(self) -> None:
        """
        Fail fast on bad settings, before any socket is opened.

        Raises:
            ValueError: A numeric or logging setting is out of range.
            InvalidConfiguration: The asset mode is missing, doubled, or
                its build directory / server URL is unusable.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.workers < 1:
            raise ValueError(f"workers must be >= 1, got {self.workers}")

        if self.queue_size < 1:
            raise ValueError(f"queue_size must be >= 1, got {self.queue_size}")

        if self.buffer_size < 1024:
            raise ValueError("buffer_size must be >= 1024")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")

        if self.upstream_timeout <= 0:
            raise ValueError("upstream_timeout must be > 0")

        if self.chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")

        if self.log_level.upper() not in LOG_LEVELS:
            raise ValueError(
                f"Invalid log level: {self.log_level}. Must be one of {', '.join(LOG_LEVELS)}."
            )

        if self.log_format not in LOG_FORMATS:
            raise ValueError(f"Invalid log format: {self.log_format}. Must be 'text' or 'json'.")

        if self.build_dir is not None and self.serve_url is not None:
            raise InvalidConfiguration(
                None, "build directory and development server URL are mutually exclusive"
            )

        if self.build_dir is None and self.serve_url is None:
            raise InvalidConfiguration(
                None, "either a build directory or a development server URL is required"
            )

        if self.build_dir is not None:
            BuildDirectory.parse(self.build_dir)
            if not os.path.isdir(self.build_dir):
                logger.warning(f"Build directory does not exist (yet): {self.build_dir}")
        else:
            UpstreamOrigin.parse(self.serve_url)
