"""
Outbound HTTP transport shared by every upstream client.

Wraps a single ``httpx.AsyncClient`` with a fixed per-request timeout and a
configurable number of retries. Transport errors and 5xx responses are
retried with exponential backoff; after the last attempt a 5xx response is
handed back to the caller, which maps it to its own status error.
"""

import logging
from typing import Any

import httpx

from src.utils.retry import with_async_retry

logger = logging.getLogger(__name__)

INITIAL_BACKOFF_TIMEOUT = 0.002
MAX_BACKOFF_TIMEOUT = 0.009
EXPONENT_FACTOR = 2.0
MAX_JITTER_INTERVAL = 0.002


class _RetryableStatus(Exception):
    def __init__(self, response: httpx.Response):
        self.response = response
        super().__init__(f"{response.request.method} {response.request.url} -> {response.status_code}")


class HTTPClient:
    """Retrying async HTTP client."""

    def __init__(
        self,
        retries: int = 0,
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.retries = retries
        self.timeout = timeout
        self._client = httpx.AsyncClient(timeout=httpx.Timeout(timeout), transport=transport)
        self._send_with_retry = with_async_retry(
            max_attempts=retries + 1,
            initial_delay=INITIAL_BACKOFF_TIMEOUT,
            max_delay=MAX_BACKOFF_TIMEOUT,
            exponential_base=EXPONENT_FACTOR,
            max_jitter=MAX_JITTER_INTERVAL,
            exceptions=(httpx.TransportError, _RetryableStatus),
        )(self._send_once)

    async def _send_once(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        response = await self._client.request(method, url, **kwargs)
        if response.status_code >= 500:
            raise _RetryableStatus(response)
        return response

    async def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            return await self._send_with_retry(method, url, **kwargs)
        except _RetryableStatus as e:
            return e.response

    async def get(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        return await self.request("GET", url, params=params, headers=headers)

    async def post_json(
        self, url: str, payload: Any, headers: dict[str, str] | None = None
    ) -> httpx.Response:
        return await self.request("POST", url, json=payload, headers=headers)

    async def post_form(
        self, url: str, data: dict[str, str], headers: dict[str, str] | None = None
    ) -> httpx.Response:
        return await self.request("POST", url, data=data, headers=headers)

    async def aclose(self) -> None:
        await self._client.aclose()
