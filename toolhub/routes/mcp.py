import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse

from ..mcp.protocol import PROTOCOL_VERSION, process_batch
from ..mcp.tools import list_tools
from ..services.dispatcher import Dispatcher
from .deps import get_dispatcher

router = APIRouter()

mcp_logger = logging.getLogger("toolhub.mcp")


@router.post("/mcp", summary="MCP JSON-RPC 2.0 endpoint")
async def mcp_endpoint(request: Request, dispatcher: Dispatcher = Depends(get_dispatcher)):
    client_ip = request.client.host if request.client else "unknown"
    try:
        payload = json.loads(await request.body())
    except ValueError as e:
        mcp_logger.warning(f"MCP_PARSE_ERROR | IP: {client_ip} | {e}")
        return JSONResponse(
            content={"jsonrpc": "2.0", "error": {"code": -32700, "message": "Parse error", "data": str(e)}, "id": None},
            status_code=400,
        )

    response = await process_batch(payload, dispatcher)
    if response is None:
        return Response(status_code=202)
    return JSONResponse(content=response)


@router.get("/mcp/status", summary="Health check for MCP subsystem")
async def mcp_status(dispatcher: Dispatcher = Depends(get_dispatcher)) -> Dict[str, Any]:
    health = dispatcher.health()
    return {
        "status": "ok" if all(health.values()) else "degraded",
        "protocolVersion": PROTOCOL_VERSION,
        "tools": [tool["name"] for tool in list_tools()],
        "services": health,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
