"""
toolhub entry point.

    python -m toolhub                 # HTTP server (uvicorn)
    python -m toolhub --stdio         # MCP over stdin/stdout
"""
import argparse
import asyncio
import sys

import uvicorn

from .config import get_settings
from .services.dispatcher import build_dispatcher
from .utils.central_logging import setup_logging
from .utils.http_client import HttpClient


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="toolhub", description="toolhub tool-provider dispatch server")
    parser.add_argument("--stdio", action="store_true", help="Serve MCP JSON-RPC over stdin/stdout")
    parser.add_argument("--host", default=None, help="Bind host (default: MCP_SERVER_HOST)")
    parser.add_argument("--port", type=int, default=None, help="Bind port (default: MCP_SERVER_PORT)")
    return parser.parse_args(argv)


async def _run_stdio(settings) -> None:
    from .mcp.stdio import serve_stdio

    dispatcher = build_dispatcher(settings)
    try:
        await serve_stdio(dispatcher)
    finally:
        await HttpClient.close_all()


def main(argv=None) -> int:
    args = parse_args(argv)
    settings = get_settings()

    if args.stdio:
        setup_logging(settings.log_level, settings.log_file or None, stream=sys.stderr)
        asyncio.run(_run_stdio(settings))
        return 0

    setup_logging(settings.log_level, settings.log_file or None)

    from .main import create_app

    uvicorn.run(
        create_app(settings),
        host=args.host or settings.host,
        port=args.port or settings.port,
        log_level=settings.log_level.lower(),
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
