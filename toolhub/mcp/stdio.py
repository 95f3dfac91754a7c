"""
stdio transport: newline-delimited JSON-RPC on stdin/stdout.

stdout carries protocol messages only; logging goes to stderr.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from typing import Any, Optional, TextIO

from ..services.dispatcher import Dispatcher
from .protocol import process_batch

logger = logging.getLogger("toolhub.stdio")

PARSE_ERROR = -32700


def _write(stdout: TextIO, message: Any) -> None:
    stdout.write(json.dumps(message, ensure_ascii=False) + "\n")
    stdout.flush()


async def serve_stdio(
    dispatcher: Dispatcher,
    stdin: Optional[TextIO] = None,
    stdout: Optional[TextIO] = None,
) -> None:
    """Main loop - read one request per line until EOF."""
    stdin = stdin or sys.stdin
    stdout = stdout or sys.stdout
    loop = asyncio.get_running_loop()

    logger.info("MCP stdio transport started")
    while True:
        line = await loop.run_in_executor(None, stdin.readline)
        if not line:
            break
        line = line.strip()
        if not line:
            continue

        try:
            request = json.loads(line)
        except json.JSONDecodeError as e:
            _write(stdout, {
                "jsonrpc": "2.0",
                "error": {"code": PARSE_ERROR, "message": f"Parse error: {e}"},
                "id": None,
            })
            continue

        response = await process_batch(request, dispatcher)
        if response is not None:
            _write(stdout, response)

    logger.info("MCP stdio transport stopped (EOF)")
