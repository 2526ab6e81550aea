"""Async OpenAlex client.

EntityProvider is the interface the graph engine depends on; OpenAlexClient
implements it over the OpenAlex REST API with httpx.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Optional, Sequence

import httpx

from core.config import get_openalex_base_url, get_openalex_email, get_openalex_timeout
from core.utils import BaseAsyncHttpClient, register_cleanup, safe_http_request

from .entities import OpenAlexEntity, parse_entity
from .errors import EntityFetchError, MalformedEntityError
from .identifiers import EntityType, resolve_identifier

logger = logging.getLogger(__name__)

MAX_PER_PAGE = 200


class EntityProvider(ABC):
    """Abstract upstream source of entities."""

    @abstractmethod
    async def fetch_entity(
        self,
        entity_type: EntityType,
        entity_id: str,
        select: Optional[Sequence[str]] = None,
    ) -> OpenAlexEntity:
        """Fetch one entity.

        Args:
            entity_type: Collection to fetch from
            entity_id: OpenAlex id/URL or an external id (DOI, ORCID, ROR, ISSN)
            select: Top-level fields to return (None for all)

        Raises:
            EntityFetchError: On network or API errors
            UnresolvableIdentifierError: If entity_id is not a usable id
        """
        pass

    @abstractmethod
    async def search_entities(
        self,
        entity_type: EntityType,
        query: str,
        per_page: int = 25,
    ) -> list[OpenAlexEntity]:
        """Full-text search within one collection."""
        pass

    @abstractmethod
    async def list_entities(
        self,
        entity_type: EntityType,
        params: dict[str, Any],
    ) -> list[OpenAlexEntity]:
        """List one page of a collection with filter/sort/per_page/select params."""
        pass


class OpenAlexClient(BaseAsyncHttpClient, EntityProvider):
    """
    OpenAlex REST client.

    Example:
        async with OpenAlexClient(email="me@example.org") as client:
            work = await client.fetch_entity(EntityType.WORKS, "W2741809807")
            refs = await client.fetch_entity(
                EntityType.WORKS, work.id, select=["id", "referenced_works"]
            )
    """

    def __init__(
        self,
        email: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        email = get_openalex_email() if email is None else email

        # OpenAlex recommends providing email for polite pool (faster rate limits)
        headers = {"User-Agent": f"citegraph (mailto:{email})"} if email else {}
        params = {"mailto": email} if email else {}

        super().__init__(
            base_url=base_url or get_openalex_base_url(),
            timeout=timeout or get_openalex_timeout(),
            headers=headers,
            params=params,
            transport=transport,
        )

    async def _get_json(self, path: str, params: dict[str, Any]) -> Any:
        client = await self._get_client()
        response = await safe_http_request(client, "GET", path, EntityFetchError, params=params)
        try:
            return response.json()
        except ValueError as e:
            raise EntityFetchError(
                f"Invalid JSON from {path}: {e}", {"path": path}
            ) from e

    async def fetch_entity(
        self,
        entity_type: EntityType,
        entity_id: str,
        select: Optional[Sequence[str]] = None,
    ) -> OpenAlexEntity:
        resolved = resolve_identifier(entity_id)
        params = {"select": ",".join(select)} if select else {}
        path = f"/{entity_type.value}/{resolved.api_key}"

        payload = await self._get_json(path, params)
        try:
            entity = parse_entity(payload, entity_type)
        except MalformedEntityError as e:
            raise EntityFetchError(e.message, {"path": path, **e.details}) from e

        logger.debug(f"Fetched {entity_type.value} {entity.id} (select={params.get('select', '*')})")
        return entity

    async def search_entities(
        self,
        entity_type: EntityType,
        query: str,
        per_page: int = 25,
    ) -> list[OpenAlexEntity]:
        params = {"search": query, "per_page": min(max(1, per_page), MAX_PER_PAGE)}
        return await self.list_entities(entity_type, params)

    async def list_entities(
        self,
        entity_type: EntityType,
        params: dict[str, Any],
    ) -> list[OpenAlexEntity]:
        data = await self._get_json(f"/{entity_type.value}", params)

        results = []
        for item in data.get("results", []) if isinstance(data, dict) else []:
            try:
                results.append(parse_entity(item, entity_type))
            except MalformedEntityError as e:
                logger.warning(f"Skipping malformed {entity_type.value} result: {e}")
                continue

        logger.debug(
            f"Listed {len(results)} {entity_type.value} "
            f"(filter={params.get('filter')}, search={params.get('search')})"
        )
        return results


_openalex_client: Optional[OpenAlexClient] = None


def get_openalex_client() -> OpenAlexClient:
    """Get the shared OpenAlex client (lazy init, closed by cleanup_all_clients)."""
    global _openalex_client
    if _openalex_client is None:
        _openalex_client = OpenAlexClient()
        register_cleanup("openalex", _openalex_client.close)
    return _openalex_client
