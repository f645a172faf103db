"""Command-line entry point serving the training API with uvicorn."""

from __future__ import annotations

import argparse
from typing import Optional, Sequence

import uvicorn

from ..core.config import config
from ..core.logger import log
from .app import create_app


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="UI Pattern Training API server")
    parser.add_argument("--host", default=config.api_host, help="Host to bind to")
    parser.add_argument("--port", type=int, default=config.api_port, help="Port to bind to")
    parser.add_argument("--debug", action="store_true", help="Enable debug mode")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = build_parser().parse_args(argv)

    log.info(f"Starting UI Pattern Training API on {args.host}:{args.port}")

    uvicorn.run(
        create_app(),
        host=args.host,
        port=args.port,
        log_level="debug" if args.debug else "info"
    )


if __name__ == "__main__":
    main()
