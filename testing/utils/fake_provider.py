"""
Scripted EntityProvider for tests.

Serves payloads from dicts instead of the OpenAlex API, applies `select`
projections the way the API does, and records every call so tests can
assert on fetch counts.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Optional, Sequence

from core.openalex import (
    EntityFetchError,
    EntityProvider,
    EntityType,
    OpenAlexEntity,
    canonical_id,
    parse_entity,
    resolve_identifier,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FetchCall:
    entity_type: EntityType
    entity_id: str
    select: Optional[tuple[str, ...]]


class FakeProvider(EntityProvider):
    """In-memory provider.

    Args:
        payloads: Full payloads, keyed by any id form (normalized on add)
        delay: Seconds each fetch sleeps before answering, to hold it in flight
    """

    def __init__(self, payloads: Optional[list[dict[str, Any]]] = None, delay: float = 0.0):
        self.payloads: dict[str, dict[str, Any]] = {}
        self.listings: dict[tuple[EntityType, Optional[str]], list[dict[str, Any]]] = {}
        self.search_results: dict[tuple[EntityType, str], list[dict[str, Any]]] = {}
        self.failing: set[str] = set()
        self.failing_listings: set[EntityType] = set()
        self.delay = delay

        self.fetch_calls: list[FetchCall] = []
        self.list_calls: list[tuple[EntityType, dict[str, Any]]] = []
        self.search_calls: list[tuple[EntityType, str, int]] = []

        for payload in payloads or []:
            self.add(payload)

    def add(self, payload: dict[str, Any]) -> None:
        self.payloads[canonical_id(payload["id"])] = payload

    def fail(self, entity_id: str) -> None:
        self.failing.add(canonical_id(entity_id))

    def set_listing(
        self,
        entity_type: EntityType,
        filter_string: Optional[str],
        payloads: list[dict[str, Any]],
    ) -> None:
        self.listings[(entity_type, filter_string)] = payloads

    def calls_for(self, entity_id: str) -> list[FetchCall]:
        key = canonical_id(entity_id)
        return [call for call in self.fetch_calls if canonical_id(call.entity_id) == key]

    async def fetch_entity(
        self,
        entity_type: EntityType,
        entity_id: str,
        select: Optional[Sequence[str]] = None,
    ) -> OpenAlexEntity:
        self.fetch_calls.append(
            FetchCall(entity_type, entity_id, tuple(select) if select else None)
        )
        if self.delay:
            await asyncio.sleep(self.delay)

        key = resolve_identifier(entity_id).entity_id
        if key in self.failing:
            raise EntityFetchError(f"Scripted failure for {key}", {"path": key})

        payload = self.payloads.get(key) or self._find_by_external_id(key)
        if payload is None:
            raise EntityFetchError(
                f"HTTP 404 for GET /{entity_type.value}/{entity_id}",
                {"status_code": 404},
            )

        return parse_entity(_project(payload, select), entity_type)

    async def search_entities(
        self,
        entity_type: EntityType,
        query: str,
        per_page: int = 25,
    ) -> list[OpenAlexEntity]:
        self.search_calls.append((entity_type, query, per_page))
        if entity_type in self.failing_listings:
            raise EntityFetchError(f"Scripted search failure for {entity_type.value}")
        results = self.search_results.get((entity_type, query), [])[:per_page]
        return [parse_entity(payload, entity_type) for payload in results]

    async def list_entities(
        self,
        entity_type: EntityType,
        params: dict[str, Any],
    ) -> list[OpenAlexEntity]:
        self.list_calls.append((entity_type, dict(params)))
        if entity_type in self.failing_listings:
            raise EntityFetchError(f"Scripted listing failure for {entity_type.value}")

        results = self.listings.get((entity_type, params.get("filter")), [])
        per_page = params.get("per_page")
        if per_page:
            results = results[:per_page]

        select = params["select"].split(",") if params.get("select") else None
        return [parse_entity(_project(payload, select), entity_type) for payload in results]

    def _find_by_external_id(self, key: str) -> Optional[dict[str, Any]]:
        for payload in self.payloads.values():
            if key in (payload.get("doi"), payload.get("orcid"), payload.get("ror")):
                return payload
        return None


def _project(payload: dict[str, Any], select: Optional[Sequence[str]]) -> dict[str, Any]:
    if not select:
        return dict(payload)
    return {field: payload[field] for field in select if field in payload}
