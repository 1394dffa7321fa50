"""
=============================================================================
RAWHTTP CLI ENTRY POINT
=============================================================================

    # Defaults: 0.0.0.0:4221, no file directory
    python -m rawhttp

    # Serve and accept uploads under /tmp/files
    python -m rawhttp --directory /tmp/files

    # Local only, verbose
    python -m rawhttp --host 127.0.0.1 --log-level DEBUG

Environment variables (RAWHTTP_PORT, ...) provide the defaults; flags
given on the command line win.

=============================================================================
"""

import argparse
import os
import sys
from typing import List, Optional

from . import __version__
from .config import LOG_LEVELS, ServerConfig
from .server import HTTPServer


def build_parser(defaults: Optional[ServerConfig] = None) -> argparse.ArgumentParser:
    """Build the argument parser, with defaults taken from `defaults`."""
    defaults = defaults or ServerConfig()

    parser = argparse.ArgumentParser(
        prog="rawhttp",
        description="HTTP/1.1 server built directly on raw sockets",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m rawhttp                            # 0.0.0.0:4221
  python -m rawhttp --directory /tmp/files     # Enable /files/
  python -m rawhttp --port 8080 -l DEBUG       # Custom port, verbose
        """
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--host", "-H",
        default=defaults.host,
        help=f"Host to bind to (default: {defaults.host})"
    )

    parser.add_argument(
        "--port", "-p",
        type=int,
        default=defaults.port,
        help=f"Port to listen on (default: {defaults.port})"
    )

    parser.add_argument(
        "--idle-timeout",
        type=float,
        default=defaults.idle_timeout,
        help=f"Seconds to wait for each request before closing (default: {defaults.idle_timeout})"
    )

    # ─────────────────────────────────────────────────────────────────────
    # FEATURE ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--directory",
        default=defaults.directory,
        help="Directory served and written by /files/{name}"
    )

    parser.add_argument(
        "--log-level", "-l",
        type=str.upper,
        choices=[level for level in LOG_LEVELS if level != "CRITICAL"],
        default=defaults.log_level.upper(),
        help=f"Logging level (default: {defaults.log_level.upper()})"
    )

    # ─────────────────────────────────────────────────────────────────────
    # META ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"rawhttp {__version__}"
    )

    return parser


def parse_config(argv: Optional[List[str]] = None) -> ServerConfig:
    """
    Turn command-line arguments into a validated ServerConfig.

    Exits with status 2 (argparse error) on invalid input, including a
    --directory that does not exist.
    """
    try:
        defaults = ServerConfig.from_env()
    except ValueError as e:
        print(f"Error: invalid environment setting: {e}", file=sys.stderr)
        sys.exit(2)

    parser = build_parser(defaults)
    args = parser.parse_args(argv)

    if args.directory is not None and not os.path.isdir(args.directory):
        parser.error(f"--directory {args.directory!r} is not a directory")

    config = ServerConfig(
        host=args.host,
        port=args.port,
        directory=args.directory,
        idle_timeout=args.idle_timeout,
        log_level=args.log_level,
        log_format=defaults.log_format,
    )

    try:
        config.validate()
    except ValueError as e:
        parser.error(str(e))

    return config


def main(argv: Optional[List[str]] = None):
    """Main CLI entry point."""
    config = parse_config(argv)
    server = HTTPServer(config)

    try:
        server.run()
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
