"""Graph materializer: loading, expansion and hydration of graph nodes.

Node hydration moves through absent -> minimal -> loading -> full, with
error reachable from any fetch and recoverable by hydrating again. Nodes
are only created for entities the user loaded or expanded into; a mere
reference never creates a node.

Usage:
    store = InMemoryGraphStore()
    async with OpenAlexClient() as client:
        materializer = GraphMaterializer(store, provider=client)
        primary = await materializer.load_entity_graph("W2741809807")
        await materializer.expand_node(primary.id, limit=20)
        await materializer.hydrate_all_minimal_nodes()
"""

import asyncio
import logging
from typing import Optional, Sequence

from pydantic import BaseModel, Field

from core.openalex import (
    EntityProvider,
    EntityType,
    OpenAlexEntity,
    OpenAlexError,
    Work,
    canonical_id,
    get_openalex_client,
    parse_entity,
    resolve_identifier,
)
from core.openalex.fields import CREATE_NODE_FIELDS, metadata_fields
from core.utils import gather_with_error_collection

from ..deduplication import FetchDeduplicator
from ..errors import GraphError, InvalidExpansionSettingsError, NodeNotFoundError
from ..events import EventEmitter, EventSink
from ..expansion import (
    EXPANSION_RULES,
    ExpansionRule,
    ExpansionSettings,
    ExpansionSettingsRegistry,
    build_query_params,
    merge_filters,
    validate_settings,
)
from ..expansion.query_builder import PER_PAGE
from ..relationships import RelationshipDetector, projection_key
from ..store import GraphStore
from ..types import GraphEdge, GraphNode, HydrationLevel, Position, RelationType
from .transform import (
    create_minimal_node,
    create_node_from_entity,
    extract_external_ids,
    transform_entity_to_graph,
)

logger = logging.getLogger(__name__)

GRID_COLUMNS = 5
GRID_X_SPACING = 200
GRID_Y_SPACING = 150


class ExpansionResult(BaseModel):
    node_id: str
    skipped: bool = False
    added_node_ids: list[str] = Field(default_factory=list)
    added_edges: int = 0
    detected_edges: int = 0


class HydrationSummary(BaseModel):
    hydrated: list[str] = Field(default_factory=list)
    failed: list[str] = Field(default_factory=list)


class SearchStats(BaseModel):
    query: str
    total_results: int = 0
    results_by_type: dict[str, int] = Field(default_factory=dict)


class GraphMaterializer:
    """Orchestrates entity loading, expansion and hydration into a GraphStore.

    Args:
        store: Graph store collaborator (owned by the caller)
        provider: Upstream entity source (defaults to the shared OpenAlex client)
        deduplicator: Single-flight fetcher (a new one per materializer by default)
        settings: Per-type expansion settings
        event_sink: Optional receiver for structured events
        node_delay: Seconds between nodes in the paced hydration sweep
        batch_pause: Seconds paused every `batch_size` nodes in that sweep
        batch_size: Nodes per paced-sweep batch (at least 1)
    """

    def __init__(
        self,
        store: GraphStore,
        provider: Optional[EntityProvider] = None,
        deduplicator: Optional[FetchDeduplicator] = None,
        settings: Optional[ExpansionSettingsRegistry] = None,
        event_sink: Optional[EventSink] = None,
        node_delay: float = 0.1,
        batch_pause: float = 0.5,
        batch_size: int = 10,
    ):
        if batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {batch_size}")

        self.store = store
        self.provider = provider or get_openalex_client()
        self.deduplicator = deduplicator or FetchDeduplicator(event_sink=event_sink)
        self.settings = settings or ExpansionSettingsRegistry()
        self.detector = RelationshipDetector(
            store, self.deduplicator, self.provider, event_sink=event_sink
        )
        self.node_delay = node_delay
        self.batch_pause = batch_pause
        self.batch_size = batch_size
        self._events = EventEmitter("GraphMaterializer", sink=event_sink, log=logger)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def load_entity_graph(self, entity_id: str) -> GraphNode:
        """Replace the graph with one fully loaded entity.

        Raises:
            UnresolvableIdentifierError: Before any mutation
            EntityFetchError: If the fetch fails (the graph is left as it was)
        """
        resolved = resolve_identifier(entity_id)
        self._events.emit("graph", "load started", entity_id=resolved.entity_id)

        try:
            entity = await self._fetch_full(resolved.entity_type, resolved.entity_id)
        except OpenAlexError as e:
            logger.error(f"Failed to load {resolved.entity_id}: {e}")
            self._events.emit("error", "load failed", entity_id=resolved.entity_id, error=str(e))
            raise

        self.store.clear()
        fragment = transform_entity_to_graph(entity, resolved.entity_type, existing_ids=[])
        self.store.add_nodes(fragment.nodes)
        self.store.add_edges(fragment.edges)
        primary_id = fragment.nodes[0].id

        await self.detector.detect_for_nodes([node.id for node in self.store.get_nodes()])
        self.store.calculate_node_depths(primary_id)

        logger.info(f"Loaded {primary_id} ({resolved.entity_type.value}) as new graph")
        self._events.emit("graph", "load complete", node_id=primary_id)
        return self.store.get_node(primary_id)

    async def load_entity_into_graph(self, entity_id: str) -> GraphNode:
        """Add an entity to the current graph without clearing it.

        An existing node is returned as-is, after hydrating it if minimal.
        """
        resolved = resolve_identifier(entity_id)
        if self.store.has_node(resolved.entity_id):
            return await self._ensure_full(resolved.entity_id)

        entity = await self._fetch_full(resolved.entity_type, resolved.entity_id)
        node_id = canonical_id(entity.id)
        if self.store.has_node(node_id):
            return await self._ensure_full(node_id)

        existing_ids = [node.id for node in self.store.get_nodes()]
        fragment = transform_entity_to_graph(entity, resolved.entity_type, existing_ids)
        self.store.add_nodes(fragment.nodes)
        self.store.add_edges(fragment.edges)
        await self.detector.detect_for_nodes([node_id])

        self._events.emit("graph", "entity added", node_id=node_id, edges=len(fragment.edges))
        return self.store.get_node(node_id)

    def create_minimal_node(
        self,
        entity_id: str,
        entity_type: Optional[EntityType] = None,
        label: Optional[str] = None,
    ) -> GraphNode:
        """Add a minimal node for a known id without fetching anything."""
        if entity_type is None:
            entity_type = resolve_identifier(entity_id).entity_type
        node = create_minimal_node(entity_id, entity_type, label)
        self.store.add_nodes([node])
        return self.store.get_node(node.id)

    async def search_and_visualize(
        self,
        query: str,
        entity_types: Sequence[EntityType],
        per_page: int = 20,
    ) -> SearchStats:
        """Replace the graph with search results laid out on a grid."""
        stats = SearchStats(query=query)
        found: list[tuple[OpenAlexEntity, EntityType]] = []

        for entity_type in entity_types:
            try:
                results = await self.provider.search_entities(entity_type, query, per_page=per_page)
            except OpenAlexError as e:
                logger.warning(f"Search for '{query}' in {entity_type.value} failed: {e}")
                self._events.emit("error", "search failed", entity_type=entity_type.value, error=str(e))
                continue
            stats.results_by_type[entity_type.value] = len(results)
            found.extend((entity, entity_type) for entity in results)

        self.store.clear()
        nodes = []
        for index, (entity, entity_type) in enumerate(found):
            position = Position(
                x=(index % GRID_COLUMNS) * GRID_X_SPACING,
                y=(index // GRID_COLUMNS) * GRID_Y_SPACING,
            )
            nodes.append(create_node_from_entity(entity, entity_type, HydrationLevel.MINIMAL, position))

        added = self.store.add_nodes(nodes)
        stats.total_results = len(added)
        await self.detector.detect_for_nodes([node.id for node in added])

        self._events.emit("graph", "search loaded", query=query, total=stats.total_results)
        return stats

    # ------------------------------------------------------------------
    # Expansion
    # ------------------------------------------------------------------

    async def expand_node(
        self,
        node_id: str,
        limit: Optional[int] = None,
        depth: int = 1,
        force: bool = False,
    ) -> ExpansionResult:
        """Add a node's related entities to the graph.

        An already expanded node is not re-fetched unless `force`; detection
        is re-run over the whole graph instead, to pick up nodes added since.

        Args:
            node_id: Node to expand
            limit: Overrides the type's settings limit
            depth: Expand newly added nodes this many levels further
            force: Re-fetch even if expanded, then re-detect over the whole graph

        Raises:
            NodeNotFoundError: If the node is not in the graph
            InvalidExpansionSettingsError: Before any fetch
            EntityFetchError: After marking the node as error
        """
        node = self._require_node(node_id)

        if self.store.is_expanded(node_id) and not force:
            detected = await self._detect_all()
            logger.debug(f"{node_id} already expanded, re-ran detection only")
            return ExpansionResult(node_id=node_id, skipped=True, detected_edges=len(detected))

        settings = self.settings.get(node.entity_type)
        if limit is not None:
            settings = settings.model_copy(update={"limit": limit})
        errors = validate_settings(settings)
        if errors:
            raise InvalidExpansionSettingsError(node.entity_type.value, errors)

        rule = EXPANSION_RULES[node.entity_type]
        self._events.emit("expansion", "started", node_id=node_id, limit=settings.limit)

        try:
            new_nodes, new_edges = await self._collect_related(node, rule, settings)
        except OpenAlexError as e:
            logger.error(f"Expansion of {node_id} failed: {e}")
            self.store.mark_node_as_error(node_id, str(e))
            self._events.emit("error", "expansion failed", node_id=node_id, error=str(e))
            raise

        added = self.store.add_nodes(new_nodes)
        added_edges = self.store.add_edges(new_edges)
        added_ids = [added_node.id for added_node in added]

        detected = await self.detector.detect_for_nodes(added_ids) if added_ids else []
        self.store.mark_node_as_expanded(node_id)
        if force:
            detected = await self._detect_all()

        result = ExpansionResult(
            node_id=node_id,
            added_node_ids=added_ids,
            added_edges=len(added_edges),
            detected_edges=len(detected),
        )
        logger.info(f"Expanded {node_id}: {len(added_ids)} nodes, {len(added_edges)} edges")
        self._events.emit("expansion", "complete", **result.model_dump())

        if depth > 1:
            for child_id in added_ids:
                await self._expand_quietly(child_id, limit=limit, depth=depth - 1)

        return result

    async def expand_all_nodes_of_type(
        self,
        entity_type: EntityType,
        limit: Optional[int] = None,
    ) -> list[ExpansionResult]:
        """Expand every not-yet-expanded node of one type, skipping failures."""
        results = []
        for node in self.store.get_nodes_by_type(entity_type):
            if node.metadata.expanded:
                continue
            result = await self._expand_quietly(node.id, limit=limit)
            if result is not None:
                results.append(result)
        return results

    async def _expand_quietly(
        self,
        node_id: str,
        limit: Optional[int] = None,
        depth: int = 1,
    ) -> Optional[ExpansionResult]:
        try:
            return await self.expand_node(node_id, limit=limit, depth=depth)
        except (OpenAlexError, GraphError) as e:
            logger.warning(f"Skipping expansion of {node_id}: {e}")
            return None

    async def _collect_related(
        self,
        node: GraphNode,
        rule: ExpansionRule,
        settings: ExpansionSettings,
    ) -> tuple[list[GraphNode], list[GraphEdge]]:
        related = await self._fetch_related(node, rule, settings)

        nodes: dict[str, GraphNode] = {}
        edges: list[GraphEdge] = []

        def add(candidate: GraphNode, relation_type: RelationType, related_is_source: bool, label: str):
            if candidate.id == node.id:
                return
            if candidate.id not in nodes and not self.store.has_node(candidate.id):
                nodes[candidate.id] = candidate
            source, target = (candidate.id, node.id) if related_is_source else (node.id, candidate.id)
            edges.append(GraphEdge.create(source, target, relation_type, label=label))

        for entity in related:
            candidate = create_node_from_entity(entity, rule.related_type, HydrationLevel.MINIMAL)
            add(candidate, rule.relation_type, rule.related_is_source, rule.label)

        if node.entity_type == EntityType.WORKS:
            work = await self._work_payload(node)
            for candidate, relation_type, related_is_source, label in _work_neighbours(work, settings.limit):
                add(candidate, relation_type, related_is_source, label)

        return list(nodes.values()), edges

    async def _fetch_related(
        self,
        node: GraphNode,
        rule: ExpansionRule,
        settings: ExpansionSettings,
    ) -> list[OpenAlexEntity]:
        params = build_query_params(settings, select=CREATE_NODE_FIELDS[rule.related_type])
        params["filter"] = merge_filters(rule.relationship_filter(node.entity_id), settings.filters)
        if settings.limit > 0:
            params["per_page"] = min(settings.limit, PER_PAGE)

        entities = await self.provider.list_entities(rule.related_type, params)
        return entities[: settings.limit] if settings.limit > 0 else entities

    async def _work_payload(self, node: GraphNode) -> Optional[Work]:
        data = node.entity_data or {}
        if "authorships" in data and "primary_location" in data:
            entity = parse_entity({**data, "id": data.get("id") or node.entity_id}, EntityType.WORKS)
        else:
            entity = await self._fetch_full(EntityType.WORKS, node.entity_id)
        return entity if isinstance(entity, Work) else None

    # ------------------------------------------------------------------
    # Hydration
    # ------------------------------------------------------------------

    async def hydrate_node_to_full(self, node_id: str) -> Optional[GraphNode]:
        """Upgrade a minimal (or errored minimal) node to full. Full nodes are left alone.

        Returns:
            The updated node, or None if the node was removed mid-fetch

        Raises:
            NodeNotFoundError: If the node is not in the graph
            EntityFetchError: After marking the node as error
        """
        node = self._require_node(node_id)
        if node.hydration_level == HydrationLevel.FULL:
            return node
        return await self._hydrate(node, refresh=False)

    async def hydrate_node(self, node_id: str, force: bool = False) -> Optional[GraphNode]:
        """Hydrate a node; with `force`, re-fetch even a full node bypassing the cache."""
        node = self._require_node(node_id)
        if not force:
            return await self.hydrate_node_to_full(node_id)
        return await self._hydrate(node, refresh=True)

    async def hydrate_all_minimal_nodes(self) -> HydrationSummary:
        """Paced sweep: one node at a time, pausing longer every batch_size nodes."""
        summary = HydrationSummary()
        nodes = self.store.get_minimal_nodes()
        self._events.emit("hydration", "paced sweep started", nodes=len(nodes))

        for index, node in enumerate(nodes):
            if index > 0:
                pause = self.batch_pause if index % self.batch_size == 0 else self.node_delay
                await asyncio.sleep(pause)
            try:
                await self.hydrate_node_to_full(node.id)
                summary.hydrated.append(node.id)
            except (OpenAlexError, GraphError) as e:
                logger.warning(f"Hydration of {node.id} failed, continuing sweep: {e}")
                summary.failed.append(node.id)

        logger.info(f"Paced hydration: {len(summary.hydrated)} hydrated, {len(summary.failed)} failed")
        return summary

    async def hydrate_all_minimal_nodes_immediate(self) -> HydrationSummary:
        """Hydrate every minimal node concurrently and wait for all to settle."""
        node_ids = [node.id for node in self.store.get_minimal_nodes()]
        self._events.emit("hydration", "immediate sweep started", nodes=len(node_ids))

        _, errors = await gather_with_error_collection(
            [self.hydrate_node_to_full(node_id) for node_id in node_ids],
            logger,
            error_template="Hydration task {index} failed: {error}",
        )
        failed = {node_ids[error["index"]] for error in errors}

        summary = HydrationSummary(
            hydrated=[node_id for node_id in node_ids if node_id not in failed],
            failed=[node_id for node_id in node_ids if node_id in failed],
        )
        logger.info(f"Immediate hydration: {len(summary.hydrated)} hydrated, {len(summary.failed)} failed")
        return summary

    async def _ensure_full(self, node_id: str) -> GraphNode:
        node = self.store.get_node(node_id)
        if node.is_minimal:
            await self.hydrate_node_to_full(node_id)
        return self.store.get_node(node_id)

    async def _hydrate(self, node: GraphNode, refresh: bool) -> Optional[GraphNode]:
        self.store.mark_node_as_loading(node.id)
        select = metadata_fields(node.entity_type)
        # Projected hydrations must never answer an unrestricted fetch
        key = node.entity_id if select is None else projection_key(node.entity_id, "metadata")

        def fetch():
            return self.provider.fetch_entity(node.entity_type, node.entity_id, select=select)

        try:
            if refresh:
                entity = await self.deduplicator.refresh_entity(key, fetch)
            else:
                entity = await self.deduplicator.get_entity(key, fetch)
        except OpenAlexError as e:
            logger.error(f"Hydration of {node.id} failed: {e}")
            self.store.mark_node_as_error(node.id, str(e))
            self._events.emit("error", "hydration failed", node_id=node.id, error=str(e))
            raise

        # Re-read after the await: the graph may have been cleared meanwhile
        current = self.store.get_node(node.id)
        if current is None:
            logger.debug(f"{node.id} left the graph while hydrating, result dropped")
            return None

        self.store.update_node(
            node.id,
            label=entity.label,
            entity_data={**(current.entity_data or {}), **entity.to_data()},
            external_ids=extract_external_ids(entity) or current.external_ids,
        )
        self.store.mark_node_as_loaded(node.id, HydrationLevel.FULL)
        self._events.emit("hydration", "node hydrated", node_id=node.id)
        return self.store.get_node(node.id)

    # ------------------------------------------------------------------
    # Detection sweeps
    # ------------------------------------------------------------------

    async def detect_relationships_for_all_nodes(
        self,
        batch_size: int = 5,
        batch_delay: float = 1.0,
    ) -> list[GraphEdge]:
        """Batched detection over the whole graph with a delay between batches."""
        node_ids = [node.id for node in self.store.get_nodes()]
        found: dict[str, GraphEdge] = {}

        for start in range(0, len(node_ids), batch_size):
            if start > 0:
                await asyncio.sleep(batch_delay)
            for edge in await self.detector.detect_for_nodes(node_ids[start:start + batch_size]):
                found.setdefault(edge.id, edge)

        self._events.emit("detection", "full sweep complete", nodes=len(node_ids), edges=len(found))
        return list(found.values())

    async def _detect_all(self) -> list[GraphEdge]:
        return await self.detector.detect_for_nodes([node.id for node in self.store.get_nodes()])

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_node(self, node_id: str) -> GraphNode:
        node = self.store.get_node(node_id)
        if node is None:
            raise NodeNotFoundError(node_id)
        return node

    async def _fetch_full(self, entity_type: EntityType, entity_id: str) -> OpenAlexEntity:
        return await self.deduplicator.get_entity(
            entity_id,
            lambda: self.provider.fetch_entity(entity_type, entity_id),
        )


def _work_neighbours(work: Optional[Work], limit: int):
    """Authors and primary source of a work as minimal nodes, with their edges."""
    if work is None:
        return []

    neighbours = []
    authorships = work.authorships or []
    if limit > 0:
        authorships = authorships[:limit]
    for authorship in authorships:
        author = authorship.author
        if author and author.id:
            neighbours.append((
                create_minimal_node(author.id, EntityType.AUTHORS, author.display_name),
                RelationType.AUTHORED,
                True,
                "authored",
            ))

    source = work.primary_location.source if work.primary_location else None
    if source and source.id:
        neighbours.append((
            create_minimal_node(source.id, EntityType.SOURCES, source.display_name),
            RelationType.PUBLISHED_IN,
            False,
            "published in",
        ))
    return neighbours
