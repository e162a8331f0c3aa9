"""
Run the blog backend with uvicorn.
"""

from __future__ import annotations

import argparse
import logging

import uvicorn

from graphblog.config import get_settings


def main() -> int:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="graphblog API server")
    parser.add_argument(
        "--host",
        type=str,
        default=settings.server_host,
        help="Interface to bind",
    )
    parser.add_argument(
        "-p",
        "--port",
        type=int,
        default=settings.server_port,
        help="Port to listen on",
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Reload on source changes (development only)",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(
        "graphblog.app:create_app",
        factory=True,
        host=args.host,
        port=args.port,
        reload=args.reload,
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
