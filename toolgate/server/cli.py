"""
Command-line interface for the toolgate gateway.
"""

import argparse
import logging
import sys


def main(argv=None):
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        prog="toolgate-server",
        description="Toolgate Server - session-scoped JSON-RPC gateway for remote tools",
    )

    parser.add_argument(
        "--host",
        default="0.0.0.0",
        help="Host to bind to (default: 0.0.0.0)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8080,
        help="Port to bind to (default: 8080)",
    )
    parser.add_argument(
        "--session-idle-timeout",
        type=float,
        default=None,
        help="Retire sessions idle for this many seconds (default: never)",
    )
    parser.add_argument(
        "--cors-origins",
        default=None,
        help="Comma-separated list of allowed CORS origins (default: *)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug mode",
    )
    parser.add_argument(
        "--log-level",
        default="info",
        choices=["debug", "info", "warning", "error"],
        help="Log level (default: info)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version="%(prog)s 0.1.0",
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    from .app import ToolgateServer

    kwargs = {}
    if args.cors_origins:
        kwargs["cors_origins"] = args.cors_origins.split(",")

    print(f"✓ Toolgate server → http://{args.host}:{args.port}/invoke")

    try:
        server = ToolgateServer(
            host=args.host,
            port=args.port,
            session_idle_timeout=args.session_idle_timeout,
            debug=args.debug,
            log_level=args.log_level,
            **kwargs,
        )
        server.run()
    except KeyboardInterrupt:
        print("\nServer stopped.")
        sys.exit(0)


if __name__ == "__main__":
    main()
