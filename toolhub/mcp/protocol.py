from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from .. import __version__
from ..services.dispatcher import Dispatcher
from ..utils.errors import ToolError, sanitize_error_message
from .tools import call_tool, list_tools

logger = logging.getLogger("toolhub.mcp")

PROTOCOL_VERSION = "2024-11-05"
SERVER_NAME = "toolhub"

# JSON-RPC 2.0 error codes
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
SERVER_ERROR = -32000


def _error(req_id: Any, code: int, message: str, data: Optional[str] = None) -> Dict[str, Any]:
    error: Dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        error["data"] = data
    return {"jsonrpc": "2.0", "error": error, "id": req_id}


def _result(req_id: Any, result: Any) -> Dict[str, Any]:
    return {"jsonrpc": "2.0", "result": result, "id": req_id}


def server_info() -> Dict[str, Any]:
    return {
        "protocolVersion": PROTOCOL_VERSION,
        "serverInfo": {"name": SERVER_NAME, "version": __version__},
        "capabilities": {"tools": {"listChanged": False}},
    }


async def process_jsonrpc(body: Any, dispatcher: Dispatcher) -> Optional[Dict[str, Any]]:
    """Handle one JSON-RPC 2.0 message.

    Returns the response object, or None for notifications sent without an id.
    """
    if not isinstance(body, dict):
        return _error(None, INVALID_REQUEST, "Invalid Request", "request must be a JSON object")

    method = body.get("method")
    params = body.get("params") or {}
    req_id = body.get("id")

    if body.get("jsonrpc") != "2.0":
        return _error(req_id, INVALID_REQUEST, "Invalid Request", "jsonrpc must be '2.0'")

    if not method or not isinstance(method, str):
        return _error(req_id, INVALID_REQUEST, "Invalid Request", "method is required")

    if method.startswith("notifications/"):
        if req_id is None:
            return None
        return _result(req_id, {})

    logger.info(f"MCP_METHOD | {method} | id={req_id}")

    if method == "initialize":
        return _result(req_id, server_info())

    if method == "ping":
        return _result(req_id, {})

    if method == "tools/list":
        return _result(req_id, {"tools": list_tools()})

    if method == "tools/call":
        if not isinstance(params, dict):
            return _error(req_id, SERVER_ERROR, "params must be an object")
        try:
            result = await call_tool(dispatcher, params.get("name") or "", params.get("arguments") or {})
        except ToolError as exc:
            return _error(req_id, SERVER_ERROR, exc.message)
        except Exception as exc:
            logger.error(f"MCP_ERROR | tools/call {params.get('name')} | {exc}")
            return _error(req_id, SERVER_ERROR, "Internal error", sanitize_error_message(str(exc)))
        return _result(req_id, result)

    return _error(req_id, METHOD_NOT_FOUND, "Method not found", f"Method '{method}' not supported")


async def process_batch(payload: Any, dispatcher: Dispatcher) -> Any:
    """Accept a single message or a batch; notifications produce no entry."""
    if isinstance(payload, list):
        responses: List[Dict[str, Any]] = []
        for item in payload:
            response = await process_jsonrpc(item, dispatcher)
            if response is not None:
                responses.append(response)
        return responses or None
    return await process_jsonrpc(payload, dispatcher)
