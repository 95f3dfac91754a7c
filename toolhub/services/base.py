from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Type

from ..utils.errors import InvalidArgument, RouteNotFound

Handler = Callable[[Dict[str, Any]], Awaitable[Dict[str, Any]]]


class Route(str, Enum):
    """Base for provider route enums; values are ``"METHOD:/path"`` keys."""

    @property
    def method(self) -> str:
        return self.value.split(":", 1)[0]

    @property
    def path(self) -> str:
        return self.value.split(":", 1)[1]


def route_key(method: str, path: str) -> str:
    return f"{(method or '').upper()}:{path}"


class Provider:
    """A pluggable backend behind the ``(method, path, body) -> result`` contract.

    Subclasses declare ``name``, ``display_name`` and ``route_enum`` and return
    one handler per enum member from ``_build_routes``. The table is built once
    at construction and must cover the enum exactly.
    """

    name: str = "provider"
    display_name: str = "Provider"
    route_enum: Type[Route]

    def __init__(self) -> None:
        self.logger = logging.getLogger(f"toolhub.{self.name}")
        routes = self._build_routes()
        missing = [r.value for r in self.route_enum if r not in routes]
        if missing:
            raise TypeError(f"{type(self).__name__} has no handler for routes: {', '.join(missing)}")
        self._routes: Mapping[Route, Handler] = dict(routes)

    def _build_routes(self) -> Dict[Route, Handler]:
        raise NotImplementedError

    def is_healthy(self) -> bool:
        raise NotImplementedError

    def routes(self) -> List[str]:
        return [r.value for r in self.route_enum]

    def resolve_route(self, method: str, path: str) -> Route:
        key = route_key(method, path)
        try:
            return self.route_enum(key)
        except ValueError:
            raise RouteNotFound(self.display_name, key) from None

    async def handle_request(self, method: str, path: str, body: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        route = self.resolve_route(method, path)
        return await self._routes[route](body or {})


# ============================================================================
# Body helpers shared by the route handlers
# ============================================================================

def require_str(body: Dict[str, Any], key: str) -> str:
    value = body.get(key)
    if not isinstance(value, str) or not value:
        raise InvalidArgument(f"'{key}' is required")
    return value


def optional_str(body: Dict[str, Any], key: str, default: Optional[str] = None) -> Optional[str]:
    value = body.get(key)
    if value is None or value == "":
        return default
    if not isinstance(value, str):
        raise InvalidArgument(f"'{key}' must be a string")
    return value


def optional_int(body: Dict[str, Any], key: str, default: int) -> int:
    value = body.get(key)
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        raise InvalidArgument(f"'{key}' must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidArgument(f"'{key}' must be an integer") from None
