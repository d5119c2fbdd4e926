"""Entry point for running the wsb server.

Usage:
    wsb --static dist --wait-for-static 2000
    python -m wsb --port 9000 --compress --static dist
    python -m wsb --static dist --pausable-static --wait-for-lockfile 5000
"""

from __future__ import annotations

import argparse
import logging

import uvicorn
from pydantic import ValidationError

from wsb import __version__
from wsb.app import create_app
from wsb.config import ServerConfig, default_port


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="wsb",
        description="WebSocket broadcaster and static file server",
    )
    parser.add_argument(
        "--version",
        "-v",
        "-V",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Add some logging about what the server is doing",
    )
    parser.add_argument("--host", default="127.0.0.1", help="Bind host")
    parser.add_argument(
        "--port",
        "-p",
        type=int,
        default=default_port(),
        help="Start the server running on this port (default $PORT or 8080)",
    )
    parser.add_argument("--static", default=None, help="Serve static files from this directory")
    parser.add_argument(
        "--pausable-static",
        action="store_true",
        help="Enable /pause and /unpause to hold static requests",
    )
    parser.add_argument(
        "--compress",
        action="store_true",
        help="Gzip html/js/css/json responses for clients that accept it",
    )
    parser.add_argument(
        "--wait-for-static",
        type=int,
        default=0,
        metavar="MS",
        help="If the file can't be found, keep trying until this many ms have passed",
    )
    parser.add_argument(
        "--wait-for-lockfile",
        type=int,
        default=0,
        metavar="MS",
        help="While any *.lock file exists in the static root, wait up to this many ms",
    )
    return parser


def parse_config(argv: list[str] | None = None) -> ServerConfig:
    """Parse command-line arguments into a validated config.

    Exits with status 2 on unknown options or invalid values.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        return ServerConfig(
            host=args.host,
            port=args.port,
            static_root=args.static,
            pausable_static=args.pausable_static,
            compress=args.compress,
            wait_for_static_ms=args.wait_for_static,
            wait_for_lockfile_ms=args.wait_for_lockfile,
            verbose=args.verbose,
        )
    except ValidationError as e:
        parser.error(str(e))


def main(argv: list[str] | None = None) -> None:
    config = parse_config(argv)

    logging.basicConfig(
        level=logging.DEBUG if config.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = create_app(config)

    base = f"http://{config.host}:{config.port}"
    print(f"wsb listening on {base}")
    if config.static_root:
        print(f"Serving static files from {config.static_root}")
    print()
    print("Endpoints:")
    print(f"  GET  {base}/b?key=value")
    if config.pausable_static:
        print(f"  GET  {base}/pause")
        print(f"  GET  {base}/unpause")
    print(f"  WS   ws://{config.host}:{config.port}/")
    print()

    uvicorn.run(
        app,
        host=config.host,
        port=config.port,
        log_level="debug" if config.verbose else "info",
    )


if __name__ == "__main__":
    main()
