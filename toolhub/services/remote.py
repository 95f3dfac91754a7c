from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from ..utils.errors import ProviderUnavailable, UpstreamError
from ..utils.http import extract_http_error
from ..utils.http_client import HttpClient
from .base import Provider


class RemoteProvider(Provider):
    """Provider backed by a remote HTTP API authenticated with a single token.

    A missing token does not prevent construction; it shows up in
    ``is_healthy`` and every call raises ProviderUnavailable instead.
    """

    token_env: str = "API_TOKEN"

    def __init__(self, base_url: str, token: Optional[str], *, timeout: float = 30.0) -> None:
        super().__init__()
        self.base_url = base_url.rstrip("/")
        self._token = token or None
        self._http = HttpClient(base_url=self.base_url, timeout=timeout)
        if not self._token:
            self.logger.warning(f"{self.token_env} is not set; {self.display_name} calls will be rejected")

    def is_healthy(self) -> bool:
        return bool(self._token)

    def _auth_headers(self) -> Dict[str, str]:
        raise NotImplementedError

    async def _request_json(self, method: str, endpoint: str, **kwargs) -> Any:
        if not self._token:
            raise ProviderUnavailable(f"{self.token_env} environment variable is required")

        headers = {**self._auth_headers(), **kwargs.pop("headers", {})}
        try:
            response = await self._http.request(method, endpoint, headers=headers, **kwargs)
        except httpx.HTTPStatusError as exc:
            message, _ = extract_http_error(exc.response)
            status_code = exc.response.status_code
            raise UpstreamError(
                f"{self.display_name} API error: {status_code} - {message}",
                upstream_status=status_code,
            ) from exc
        except httpx.HTTPError as exc:
            raise UpstreamError(f"{self.display_name} API unreachable: {exc}") from exc

        if response.status_code == 204 or not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamError(f"{self.display_name} API returned invalid JSON") from exc
