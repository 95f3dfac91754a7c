from typing import Any, Dict

from pydantic import BaseModel, Field


class DispatchRequest(BaseModel):
    method: str = Field(..., min_length=1, description="HTTP-style verb, e.g. GET")
    path: str = Field(..., min_length=1, description="Provider route path, e.g. /read")
    body: Dict[str, Any] = Field(default_factory=dict, description="Route arguments")
