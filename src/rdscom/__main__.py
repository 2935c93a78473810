"""Broker package CLI entry point."""

from __future__ import annotations

import argparse
import os

import uvicorn


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Serve a message broker over HTTP.")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument(
        "--backend",
        choices=("redis", "memory"),
        default=None,
        help="Queue store to use; overrides QUEUE_BACKEND.",
    )
    parser.add_argument(
        "--redis-url",
        default=None,
        help="Redis connection URL; overrides REDIS_URL.",
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Enable auto-reload (development only).",
    )
    return parser.parse_args(args=argv)


def main(argv: list[str] | None = None) -> int:
    """Run the broker HTTP API under uvicorn."""

    args = parse_args(argv)
    # the app factory reads settings from the environment, also under --reload
    if args.backend:
        os.environ["QUEUE_BACKEND"] = args.backend
    if args.redis_url:
        os.environ["REDIS_URL"] = args.redis_url
    uvicorn.run(
        "rdscom.app:create_app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        factory=True,
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
