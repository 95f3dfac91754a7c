from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

from ..config import Settings
from ..utils.errors import RouteNotFound
from .base import Provider
from .figma import FigmaProvider
from .filesystem import FilesystemProvider
from .github import GitHubProvider
from .sandbox import SandboxPolicy

logger = logging.getLogger("toolhub.dispatcher")


class Dispatcher:
    """Registry of providers keyed by name.

    ``handle`` forwards the request untouched; validation belongs to the
    provider that owns the route.
    """

    def __init__(self, providers: Iterable[Provider]):
        self._providers: Dict[str, Provider] = {}
        for provider in providers:
            if provider.name in self._providers:
                raise ValueError(f"Duplicate provider name: {provider.name}")
            self._providers[provider.name] = provider

    @property
    def providers(self) -> Dict[str, Provider]:
        return dict(self._providers)

    def get(self, name: str) -> Provider:
        provider = self._providers.get(name)
        if provider is None:
            raise RouteNotFound(name, "*", f"Unknown provider: {name}")
        return provider

    async def handle(
        self,
        provider_name: str,
        method: str,
        path: str,
        body: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        provider = self.get(provider_name)
        logger.debug(f"{provider_name} <- {method.upper()} {path}")
        return await provider.handle_request(method, path, body)

    def health(self) -> Dict[str, bool]:
        return {name: provider.is_healthy() for name, provider in self._providers.items()}

    def routes(self) -> Dict[str, List[str]]:
        return {name: provider.routes() for name, provider in self._providers.items()}


def build_dispatcher(settings: Settings) -> Dispatcher:
    dispatcher = Dispatcher([
        FilesystemProvider(SandboxPolicy.from_settings(settings)),
        GitHubProvider.from_settings(settings),
        FigmaProvider.from_settings(settings),
    ])
    logger.info(f"Providers ready: {', '.join(dispatcher.providers)} (project root: {settings.resolved_project_root})")
    return dispatcher
