"""
HTTP Transport - aiohttp session owner for the rate limiter.

The limiter dispatches every request through a transport callable
`(url, options) -> HttpResponse`. AiohttpTransport is the production
implementation; tests pass a plain async function instead.
"""

import logging
import time
from typing import Any, Dict, Optional

import aiohttp

from data_sources.models import HttpResponse


logger = logging.getLogger(__name__)


class AiohttpTransport:
    """
    Callable transport backed by one aiohttp ClientSession.

    Timeout policy lives here (ClientTimeout), not in the limiter.
    Response bodies are read fully before the connection is released.
    """

    DEFAULT_TIMEOUT = 30.0

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[aiohttp.ClientSession] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        self._timeout = timeout
        self._session = session
        self._owns_session = session is None
        self._extra_headers = headers or {}

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._timeout),
                headers=self._get_default_headers(),
            )
            self._owns_session = True
        return self._session

    def _get_default_headers(self) -> Dict[str, str]:
        """Get default HTTP headers."""
        headers = {
            "Accept": "application/json",
            "User-Agent": "SignalIngestion/1.0",
        }
        headers.update(self._extra_headers)
        return headers

    async def __call__(self, url: str, options: Dict[str, Any]) -> HttpResponse:
        """
        Perform one GET request.

        Args:
            url: Target URL
            options: May contain "params" and "headers"

        Returns:
            HttpResponse with the body already read

        Raises:
            aiohttp.ClientError / asyncio.TimeoutError on transport failure
        """
        session = await self._get_session()

        start_time = time.time()
        async with session.get(
            url,
            params=options.get("params"),
            headers=options.get("headers"),
        ) as response:
            body = await response.text()
            latency_ms = (time.time() - start_time) * 1000
            logger.debug(f"GET {url} -> {response.status} in {latency_ms:.1f}ms")
            return HttpResponse(
                status=response.status,
                url=str(response.url),
                body=body,
                headers=dict(response.headers),
            )

    async def close(self) -> None:
        """Close resources."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "AiohttpTransport":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


__all__ = ["AiohttpTransport"]
