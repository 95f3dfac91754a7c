from __future__ import annotations
import asyncio
import logging
from threading import Lock
from typing import Dict, Optional, Tuple

import httpx

logger = logging.getLogger("toolhub.http")

DEFAULT_TIMEOUT = httpx.Timeout(10.0, connect=5.0)
RETRY_BACKOFF: Tuple[int, ...] = (1, 2, 4)  # seconds
RETRYABLE_STATUS = (408, 429, 500, 502, 503, 504)
RETRYABLE_EXC = (httpx.ConnectError, httpx.ReadTimeout, httpx.RemoteProtocolError)


class HttpClient:
    """
    HTTP client with retries and timeouts for the remote providers.

    One ``httpx.AsyncClient`` is pooled per base URL; per-call headers
    (credentials) are passed on each request.
    """

    _shared_clients: Dict[str, httpx.AsyncClient] = {}
    _lock = Lock()

    def __init__(
        self,
        timeout: httpx.Timeout | float = DEFAULT_TIMEOUT,
        retries: int = 3,
        backoff: Tuple[int, ...] = RETRY_BACKOFF,
        follow_redirects: bool = True,
        base_url: Optional[str] = None,
        headers: Optional[dict] = None,
    ) -> None:
        if not isinstance(timeout, httpx.Timeout):
            timeout = httpx.Timeout(timeout)
        self.timeout = timeout
        self.retries = retries
        self.backoff = backoff
        self.follow_redirects = follow_redirects
        self.headers = dict(headers or {})

        key = f"{base_url}"
        with HttpClient._lock:
            shared = HttpClient._shared_clients.get(key)
            if shared is None or shared.is_closed:
                shared = httpx.AsyncClient(
                    timeout=self.timeout,
                    follow_redirects=self.follow_redirects,
                    base_url=base_url or "",
                )
                HttpClient._shared_clients[key] = shared
            self._client = shared

    @classmethod
    async def close_all(cls) -> None:
        with cls._lock:
            clients = list(cls._shared_clients.values())
            cls._shared_clients.clear()
        for shared in clients:
            if not shared.is_closed:
                await shared.aclose()

    async def _request(self, method: str, url: str, *, name: Optional[str] = None, **kwargs) -> httpx.Response:
        name = name or method.upper()
        if "timeout" not in kwargs:
            kwargs["timeout"] = self.timeout
        if self.headers:
            kwargs["headers"] = {**self.headers, **(kwargs.get("headers") or {})}

        retries = kwargs.pop("retries", self.retries)

        for attempt in range(retries):
            try:
                resp = await self._client.request(method, url, **kwargs)
                resp.raise_for_status()
                return resp
            except httpx.HTTPStatusError as e:
                if e.response.status_code not in RETRYABLE_STATUS:
                    raise
            except RETRYABLE_EXC:
                pass

            delay = self.backoff[min(attempt, len(self.backoff) - 1)]
            logger.warning("Retrying %s attempt=%d delay=%ss url=%s", name, attempt + 1, delay, url)
            await asyncio.sleep(delay)

        # Final attempt propagates whatever goes wrong
        resp = await self._client.request(method, url, **kwargs)
        resp.raise_for_status()
        return resp

    async def request(self, method: str, url: str, **kwargs) -> httpx.Response:
        return await self._request(method.upper(), url, **kwargs)

    async def get(self, url: str, **kwargs) -> httpx.Response:
        return await self._request("GET", url, **kwargs)

__all__ = ["HttpClient", "DEFAULT_TIMEOUT", "RETRY_BACKOFF"]
