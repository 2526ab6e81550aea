"""Core utilities for async HTTP clients, caching, and error handling."""

from .async_http_client import (
    AsyncContextManager,
    BaseAsyncHttpClient,
    cleanup_all_clients,
    register_cleanup,
)
from .async_utils import gather_with_error_collection
from .http_errors import safe_http_request
from .ttl_cache import create_ttl_cache, ttl_cache_stats

__all__ = [
    "AsyncContextManager",
    "BaseAsyncHttpClient",
    "cleanup_all_clients",
    "register_cleanup",
    "gather_with_error_collection",
    "safe_http_request",
    "create_ttl_cache",
    "ttl_cache_stats",
]
