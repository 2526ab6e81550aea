"""TTL cache construction with env-var configuration."""

import os
from typing import Any

from cachetools import TTLCache


def create_ttl_cache(
    name: str,
    *,
    maxsize: int | None = None,
    ttl: float | None = None,
    env_prefix: str | None = None,
) -> TTLCache:
    """Create a TTL cache configured from explicit values or env vars.

    Unlike a module-level registry, every call returns a new cache, so each
    owner (e.g. one graph session) gets an isolated instance.

    Args:
        name: Cache name (used as the default env var prefix)
        maxsize: Maximum items (default: 500, or from {ENV_PREFIX}_CACHE_SIZE)
        ttl: TTL in seconds (default: 300, or from {ENV_PREFIX}_CACHE_TTL)
        env_prefix: Override env var prefix (default: uppercase name)

    Example:
        cache = create_ttl_cache("entity")  # ENTITY_CACHE_SIZE, ENTITY_CACHE_TTL
        cache = create_ttl_cache("entity", maxsize=50, ttl=60)
    """
    prefix = (env_prefix or name).upper()

    actual_maxsize = maxsize or int(os.getenv(f"{prefix}_CACHE_SIZE", "500"))
    actual_ttl = ttl or float(os.getenv(f"{prefix}_CACHE_TTL", "300"))

    return TTLCache(maxsize=actual_maxsize, ttl=actual_ttl)


def ttl_cache_stats(cache: TTLCache) -> dict[str, Any]:
    """Size, maxsize and ttl of a cache."""
    return {
        "size": len(cache),
        "maxsize": cache.maxsize,
        "ttl": cache.ttl,
    }
