import json
import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request

from ..schemas.dispatch import DispatchRequest
from ..services.dispatcher import Dispatcher
from ..utils.errors import InvalidArgument
from .deps import get_dispatcher

router = APIRouter()
passthrough_router = APIRouter()

logger = logging.getLogger("toolhub.routes")


@router.get("/providers", summary="List providers, their health and routes")
async def list_providers(dispatcher: Dispatcher = Depends(get_dispatcher)) -> Dict[str, Any]:
    health = dispatcher.health()
    return {
        "providers": [
            {"name": name, "healthy": health[name], "routes": routes}
            for name, routes in dispatcher.routes().items()
        ]
    }


@router.post("/dispatch/{provider}", summary="Dispatch a (method, path, body) request to a provider")
async def dispatch(
    provider: str,
    payload: DispatchRequest,
    dispatcher: Dispatcher = Depends(get_dispatcher),
) -> Dict[str, Any]:
    return await dispatcher.handle(provider, payload.method, payload.path, payload.body)


async def _request_body(request: Request) -> Dict[str, Any]:
    """JSON body (if any) overlaid on the query parameters."""
    body: Dict[str, Any] = dict(request.query_params)
    raw = await request.body()
    if not raw:
        return body
    try:
        data = json.loads(raw)
    except ValueError:
        raise InvalidArgument("Request body must be valid JSON") from None
    if not isinstance(data, dict):
        raise InvalidArgument("Request body must be a JSON object")
    body.update(data)
    return body


@passthrough_router.api_route(
    "/{provider}/{route:path}",
    methods=["GET", "POST", "PUT", "DELETE"],
    summary="Provider passthrough: method and path come from the HTTP request",
)
async def provider_passthrough(
    provider: str,
    route: str,
    request: Request,
    dispatcher: Dispatcher = Depends(get_dispatcher),
) -> Dict[str, Any]:
    body = await _request_body(request)
    return await dispatcher.handle(provider, request.method, f"/{route}", body)
