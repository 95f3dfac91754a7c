import logging
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends

from ..services.dispatcher import Dispatcher
from .deps import get_dispatcher

router = APIRouter()

logger = logging.getLogger("toolhub.health")


@router.get("/health", summary="Health check endpoint")
@router.get("/healthz", summary="Kubernetes style health check endpoint", include_in_schema=False)
async def health_check(dispatcher: Dispatcher = Depends(get_dispatcher)) -> Dict[str, Any]:
    logger.debug("Health probe received")
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "services": dispatcher.health(),
    }
