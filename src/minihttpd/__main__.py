"""
=============================================================================
CLI ENTRY POINT
=============================================================================

    # Serve ./files on localhost:8080
    minihttpd static 8080

    # Serve another directory on all interfaces
    minihttpd static 8080 --root ./public --host 0.0.0.0

    # Forward proxy with a 10 second upstream timeout
    minihttpd proxy 8888 --connect-timeout 10

    # Same as above, as a module
    python -m minihttpd proxy 8888

Options left out on the command line fall back to HTTP_* environment
variables, then to the ServerConfig defaults.

=============================================================================
"""

import argparse
import sys

from . import __version__
from .config import ServerConfig, LOG_LEVELS
from .handlers import MODES
from .server import Server


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="minihttpd",
        description="Concurrency-limited static file server and forward HTTP proxy",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  minihttpd static 8080                     # Serve ./files
  minihttpd static 8080 --root ./public     # Serve another directory
  minihttpd proxy 8888                      # Forward proxy
  minihttpd proxy 8888 --max-connections 50
        """
    )

    parser.add_argument("mode", choices=MODES, help="Operating mode")
    parser.add_argument("port", type=int, help="Port to listen on (0 = any free port)")

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--host", "-H",
        default=None,
        help="Host to bind to (default: 127.0.0.1, use 0.0.0.0 for containers)"
    )

    parser.add_argument(
        "--max-connections", "-c",
        type=int,
        default=None,
        help="Connections served at once; extra ones are dropped (default: 10)"
    )

    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Client socket timeout in seconds (default: none)"
    )

    parser.add_argument(
        "--connect-timeout",
        type=float,
        default=None,
        help="Proxy upstream timeout in seconds (default: none)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # MODE ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--root", "-r",
        default=None,
        help="Static mode: directory to serve (default: files)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # META ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--log-level", "-l",
        type=str.upper,
        choices=LOG_LEVELS,
        default=None,
        help="Logging level (default: INFO)"
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"minihttpd {__version__}"
    )

    return parser


def main(argv=None) -> int:
    """
    Main CLI entry point.

    Returns:
        Process exit code: 0 after a clean shutdown, 1 if the server
        couldn't start. Usage errors exit with 2 via argparse.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = ServerConfig.from_env(
            mode=args.mode,
            port=args.port,
            host=args.host,
            max_connections=args.max_connections,
            root_dir=args.root,
            timeout=args.timeout,
            connect_timeout=args.connect_timeout,
            log_level=args.log_level,
        )
        server = Server(config)
    except ValueError as e:
        parser.error(str(e))

    try:
        server.run()
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
