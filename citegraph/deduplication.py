"""Single-flight entity fetching over a freshness-bounded cache.

At most one fetch per key is in flight at any time: concurrent callers for
the same key await one shared task, and only the first caller's fetch
function ever runs. Successful results are kept in a cachetools TTLCache.

Usage:
    dedup = FetchDeduplicator(ttl=300)
    work = await dedup.get_entity(
        "https://openalex.org/W1",
        lambda: client.fetch_entity(EntityType.WORKS, "W1"),
    )
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from cachetools import TTLCache
from typing_extensions import TypedDict

from core.utils import create_ttl_cache, ttl_cache_stats

from .events import EventEmitter, EventSink

logger = logging.getLogger(__name__)

FetchFn = Callable[[], Awaitable[Any]]

_MISSING = object()


@dataclass
class InFlightRequest:
    """Pending fetch for one key. Lives exactly as long as the fetch."""

    entity_id: str
    task: "asyncio.Task[Any]"
    started_at: float


class DeduplicationStats(TypedDict):
    pending_count: int
    oldest_pending_age: float
    pending_ages: dict[str, float]
    cache: dict[str, Any]


class FetchDeduplicator:
    """Coalesces concurrent fetches per key and caches results.

    Each graph session owns its own instance; nothing is module-global.

    Args:
        cache: Cache to use. Defaults to a new TTLCache configured from
            ENTITY_CACHE_SIZE / ENTITY_CACHE_TTL.
        maxsize: Cache size when creating the default cache
        ttl: Freshness bound in seconds when creating the default cache
        event_sink: Optional receiver for structured cache events
    """

    def __init__(
        self,
        cache: Optional[TTLCache] = None,
        *,
        maxsize: Optional[int] = None,
        ttl: Optional[float] = None,
        event_sink: Optional[EventSink] = None,
    ):
        self._cache = cache if cache is not None else create_ttl_cache(
            "entity", maxsize=maxsize, ttl=ttl
        )
        self._pending: dict[str, InFlightRequest] = {}
        self._events = EventEmitter("FetchDeduplicator", sink=event_sink, log=logger)

    async def get_entity(self, entity_id: str, fetch_fn: FetchFn) -> Any:
        """Return the cached value, join the pending fetch, or start one.

        Args:
            entity_id: Cache and single-flight key
            fetch_fn: Zero-argument coroutine function; only called when no
                fresh value is cached and nothing is in flight for the key

        Raises:
            Whatever fetch_fn raised, for every caller coalesced onto it
        """
        cached = self._cache.get(entity_id, _MISSING)
        if cached is not _MISSING:
            self._events.emit("cache", "hit", entity_id=entity_id)
            return cached

        record = self._pending.get(entity_id)
        if record is None:
            record = self._start_fetch(entity_id, fetch_fn)
        else:
            self._events.emit("cache", "joined in-flight fetch", entity_id=entity_id)

        # One cancelled waiter must not cancel the fetch the others share
        return await asyncio.shield(record.task)

    async def refresh_entity(self, entity_id: str, fetch_fn: FetchFn) -> Any:
        """Drop the cached value and any pending fetch, then fetch again."""
        self._cache.pop(entity_id, None)
        self._pending.pop(entity_id, None)
        self._events.emit("cache", "refresh", entity_id=entity_id)
        return await self.get_entity(entity_id, fetch_fn)

    def get_cached(self, entity_id: str) -> Any:
        """Fresh cached value for a key, or None. Never fetches."""
        return self._cache.get(entity_id)

    def is_pending(self, entity_id: str) -> bool:
        return entity_id in self._pending

    def get_stats(self) -> DeduplicationStats:
        """Pending-request count and ages (seconds), plus cache occupancy."""
        now = time.monotonic()
        ages = {key: now - record.started_at for key, record in self._pending.items()}
        return DeduplicationStats(
            pending_count=len(ages),
            oldest_pending_age=max(ages.values(), default=0.0),
            pending_ages=ages,
            cache=ttl_cache_stats(self._cache),
        )

    def clear(self) -> None:
        """Empty the cache and forget pending fetches (they still run to completion)."""
        self._cache.clear()
        self._pending.clear()

    def _start_fetch(self, entity_id: str, fetch_fn: FetchFn) -> InFlightRequest:
        task = asyncio.ensure_future(self._run_fetch(entity_id, fetch_fn))
        task.add_done_callback(_retrieve_exception)
        record = InFlightRequest(entity_id=entity_id, task=task, started_at=time.monotonic())
        self._pending[entity_id] = record
        self._events.emit("cache", "miss, fetching", entity_id=entity_id)
        return record

    async def _run_fetch(self, entity_id: str, fetch_fn: FetchFn) -> Any:
        try:
            value = await fetch_fn()
            # A fetch superseded by refresh_entity() or clear() doesn't write
            if self._owns_record(entity_id):
                self._store(entity_id, value)
            return value
        finally:
            if self._owns_record(entity_id):
                del self._pending[entity_id]

    def _owns_record(self, entity_id: str) -> bool:
        record = self._pending.get(entity_id)
        return record is not None and record.task is asyncio.current_task()

    def _store(self, entity_id: str, value: Any) -> None:
        try:
            self._cache[entity_id] = value
        except Exception as e:
            logger.warning(f"Failed to cache {entity_id}, returning uncached value: {e}")


def _retrieve_exception(task: "asyncio.Task[Any]") -> None:
    # Marks the exception retrieved when every waiter was cancelled
    if not task.cancelled():
        task.exception()
