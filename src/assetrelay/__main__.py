"""
=============================================================================
COMMAND LINE
=============================================================================

    python -m assetrelay [--build [DIR] | --debug URL] [options]

    --build DIR     production mode: serve compiled assets from DIR
                    (default ./build, made absolute)
    --debug URL     debug mode: relay asset requests to the development
                    server at URL, e.g. http://localhost:8080

Unset options fall back to ASSETRELAY_* environment variables, then to
built-in defaults (see config.py).

Exit status: 0 after a clean shutdown, 2 for bad arguments or
configuration, 1 when the server fails at runtime (e.g. port in use).

=============================================================================
"""

import argparse
import os
import sys
import logging
from typing import Optional, List

from . import __version__
from .config import ServerConfig, LOG_LEVELS, LOG_FORMATS
from .server import AssetServer, configure_logging

logger = logging.getLogger(__name__)

DEFAULT_BUILD_DIR = "build"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="assetrelay",
        description="Serve compiled web assets from a build directory or a development server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m assetrelay                                  # ./build, port 8000
  python -m assetrelay --build /srv/app/build           # explicit build dir
  python -m assetrelay --debug http://localhost:8080    # relay to dev server
  python -m assetrelay --host 0.0.0.0 --port 3000       # listen elsewhere
        """
    )

    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--build", "-b",
        metavar="DIR",
        nargs="?",
        const=DEFAULT_BUILD_DIR,
        default=None,
        help=f"Serve assets from DIR (default: ./{DEFAULT_BUILD_DIR})"
    )
    mode.add_argument(
        "--debug", "-d",
        metavar="URL",
        default=None,
        help="Relay asset requests to the development server at URL"
    )

    parser.add_argument(
        "--host", "-H",
        default=None,
        help="Host to bind to (default: 127.0.0.1, use 0.0.0.0 for containers)"
    )
    parser.add_argument(
        "--port", "-p",
        type=int,
        default=None,
        help="Port to listen on (default: 8000)"
    )
    parser.add_argument(
        "--workers", "-w",
        type=int,
        default=None,
        help="Number of worker threads (default: 10)"
    )
    parser.add_argument(
        "--log-level", "-l",
        type=str.upper,
        choices=LOG_LEVELS,
        default=None,
        help="Logging level (default: INFO)"
    )
    parser.add_argument(
        "--log-format",
        choices=LOG_FORMATS,
        default=None,
        help="Access log format (default: text)"
    )
    parser.add_argument(
        "--upstream-timeout",
        type=float,
        default=None,
        metavar="SECONDS",
        help="Timeout for requests to the development server (default: 30)"
    )
    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"assetrelay {__version__}"
    )

    return parser


def config_from_args(args: argparse.Namespace, environ: Optional[dict] = None) -> ServerConfig:
    """
    Merge parsed arguments over the environment.

    A mode given on the command line replaces any mode from the
    environment. With no mode anywhere, production mode with ./build is
    assumed.
    """
    env = dict(os.environ if environ is None else environ)

    if args.build is not None or args.debug is not None:
        env.pop("ASSETRELAY_BUILD_DIR", None)
        env.pop("ASSETRELAY_SERVE_URL", None)

    config = ServerConfig.from_env(
        env,
        host=args.host,
        port=args.port,
        workers=args.workers,
        log_level=args.log_level,
        log_format=args.log_format,
        upstream_timeout=args.upstream_timeout,
        build_dir=os.path.abspath(args.build) if args.build is not None else None,
        serve_url=args.debug,
    )

    if config.mode is None:
        config.build_dir = os.path.abspath(DEFAULT_BUILD_DIR)

    return config


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = config_from_args(args)
        # validate() may log a warning
        configure_logging(config.log_level)
        config.validate()
    except ValueError as e:
        # InvalidConfiguration is a ValueError too
        parser.print_usage(sys.stderr)
        print(f"{parser.prog}: error: {e}", file=sys.stderr)
        return 2

    try:
        server = AssetServer(config)
        server.run()
    except Exception as e:
        logger.critical(f"Server failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
