"""Shared httpx client plumbing: lazy creation, async context management, shutdown."""

import logging
from typing import Any, Awaitable, Callable, Optional

import httpx

logger = logging.getLogger(__name__)

Closer = Callable[[], Awaitable[None]]

# ---------------------------------------------------------------------------
# Shutdown registry
# ---------------------------------------------------------------------------

_cleanup_registry: dict[str, Closer] = {}


def register_cleanup(name: str, closer: Closer) -> None:
    """Register a coroutine function to run at shutdown. Re-registering a name replaces it."""
    _cleanup_registry[name] = closer


async def cleanup_all_clients() -> None:
    """Run every registered closer once; one failure doesn't stop the rest."""
    closers = list(_cleanup_registry.items())
    _cleanup_registry.clear()
    for name, closer in closers:
        try:
            await closer()
        except Exception as e:
            logger.warning(f"Error closing {name} client: {e}")


class AsyncContextManager:
    """`async with` support for anything with an async close()."""

    async def close(self) -> None:
        pass

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


class BaseAsyncHttpClient(AsyncContextManager):
    """
    Owner of one lazily created httpx.AsyncClient.

    The underlying client is built on first use and rebuilt if used again
    after close(). Default headers and query params go on every request;
    `transport` lets tests substitute httpx.MockTransport.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        headers: Optional[dict[str, str]] = None,
        params: Optional[dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url
        self.timeout = timeout
        self.headers = dict(headers or {})
        self.params = dict(params or {})
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _client_options(self) -> dict[str, Any]:
        return {
            "base_url": self.base_url,
            "timeout": self.timeout,
            "headers": self.headers,
            "params": self.params,
            "transport": self._transport,
        }

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(**self._client_options())
        return self._client

    async def close(self) -> None:
        client, self._client = self._client, None
        if client is not None and not client.is_closed:
            await client.aclose()
