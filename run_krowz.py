#!/usr/bin/env python3
"""Run the Krowz site on a local machine or small server.

This helper accepts a port number as its first argument and can optionally
start a production-ready WSGI server when the ``--production`` flag is
present.  Without the flag the built-in Flask development server is used.

Usage::

    python run_krowz.py [port] [--production] [--host HOST]

Omitting ``port`` defaults to ``5000``.
"""

import argparse
import logging

from krowz_app import app

try:
    # Waitress is a lightweight production WSGI server
    from waitress import serve
except ImportError:  # pragma: no cover - waitress is optional in dev
    serve = None


def parse_args(argv=None) -> argparse.Namespace:
    """Define and parse the launcher's command line."""
    parser = argparse.ArgumentParser(description="Run the Krowz site")
    parser.add_argument(
        "port",
        nargs="?",
        default=5000,
        type=int,
        help="Port number to bind to (default: 5000)",
    )
    parser.add_argument(
        "--host",
        default="0.0.0.0",
        help="Interface to listen on (default: all interfaces)",
    )
    parser.add_argument(
        "--production",
        action="store_true",
        help="Use the Waitress WSGI server for production",
    )
    return parser.parse_args(argv)


def main(argv=None) -> None:
    """Parse command line arguments and start the appropriate server."""
    args = parse_args(argv)

    if args.production:
        if serve is None:
            logging.getLogger(__name__).warning(
                "Waitress is not installed; falling back to Flask's development server."
            )
        else:
            logging.getLogger(__name__).info("Serving Krowz with Waitress on port %s", args.port)
            serve(app, host=args.host, port=args.port)
            return

    # Fall back to the built-in development server (either explicitly chosen or
    # because Waitress is unavailable).
    app.run(host=args.host, port=args.port)


if __name__ == "__main__":
    main()
