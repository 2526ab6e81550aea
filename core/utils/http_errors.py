"""Mapping of httpx failures onto project exception classes."""

import logging
from typing import Any, Type

import httpx

logger = logging.getLogger(__name__)

# Checked in order: ConnectError and TimeoutException are both TransportErrors
_TRANSPORT_FAILURES: list[tuple[type[httpx.HTTPError], str]] = [
    (httpx.ConnectError, "Connection failed"),
    (httpx.TimeoutException, "Request timeout"),
    (httpx.HTTPError, "Request failed"),
]


async def safe_http_request(
    client: httpx.AsyncClient,
    method: str,
    path: str,
    error_class: Type[Exception],
    **kwargs: Any,
) -> httpx.Response:
    """
    Send a request and raise `error_class` on any failure.

    `error_class` is constructed as ``error_class(message, details=...)``
    where details carry the method, path and, for HTTP status failures,
    ``status_code``. The httpx exception is chained as ``__cause__``.

    Args:
        client: httpx.AsyncClient instance
        method: HTTP method
        path: Request path, relative to the client's base_url
        error_class: Exception class to raise
        **kwargs: Passed through to client.request()

    Returns:
        The successful (2xx/3xx) response
    """
    details: dict[str, Any] = {"method": method, "path": path}
    url = f"{client.base_url}{path}"

    try:
        response = await client.request(method, path, **kwargs)
        response.raise_for_status()
        return response
    except httpx.HTTPStatusError as e:
        status = e.response.status_code
        logger.error(f"{method} {url} returned HTTP {status}")
        raise error_class(
            f"HTTP {status}: {e.response.text[:200]}",
            details={**details, "status_code": status},
        ) from e
    except httpx.HTTPError as e:
        label = next(text for kind, text in _TRANSPORT_FAILURES if isinstance(e, kind))
        logger.error(f"{label} for {method} {url}: {e}")
        raise error_class(f"{label}: {e}", details=details) from e
