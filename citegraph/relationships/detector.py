"""Relationship detection between nodes already in the graph.

Single-node detection projects one node onto its candidate links and keeps
those whose target is a node in the graph. Batch detection adds a second
pass restricted to the batch itself, so references among nodes added
together are found regardless of processing order.
"""

import logging
from typing import Iterable, Optional, Sequence

from core.openalex import (
    EntityProvider,
    EntityType,
    OpenAlexEntity,
    OpenAlexError,
    Work,
)
from core.openalex.fields import (
    METADATA_FIELDS,
    MINIMAL_FIELDS,
    REFERENCES_FIELDS,
    has_fields,
    inference_fields,
)

from ..deduplication import FetchDeduplicator
from ..events import EventEmitter, EventSink
from ..store import GraphStore
from ..types import DetectedRelationship, GraphEdge, GraphNode
from .projection import (
    CandidateLink,
    MinimalEntityData,
    extract_minimal,
    match_key,
    projection_from_data,
    reference_links,
)

logger = logging.getLogger(__name__)


def projection_key(entity_id: str, projection: str) -> str:
    """Deduplicator key for a partial fetch (full fetches use the bare id)."""
    return f"{entity_id}|{projection}"


class RelationshipDetector:
    """Infers edges between a node and the other nodes in the store.

    Args:
        store: Graph store holding the nodes to compare against
        deduplicator: Shared single-flight fetcher
        provider: Upstream entity source for projection fetches
        event_sink: Optional receiver for structured detection events
    """

    def __init__(
        self,
        store: GraphStore,
        deduplicator: FetchDeduplicator,
        provider: EntityProvider,
        event_sink: Optional[EventSink] = None,
    ):
        self._store = store
        self._dedup = deduplicator
        self._provider = provider
        self._events = EventEmitter("RelationshipDetector", sink=event_sink, log=logger)

    async def detect_for_node(self, node_id: str) -> list[GraphEdge]:
        """Detect and commit edges between one node and every other node.

        Returns:
            Edges found (already committed to the store). Empty if the node
            is unknown or its projection could not be fetched.
        """
        return await self._detect_and_commit(node_id, None, failed=set())

    async def detect_for_nodes(self, node_ids: Sequence[str]) -> list[GraphEdge]:
        """Two-pass detection over a batch of (usually newly added) nodes.

        Pass 1 compares each node with the whole graph. Pass 2 compares each
        node with the other batch members only. Pass 1 is fully committed
        before pass 2 starts.

        Returns:
            Union of both passes, deduplicated by edge id
        """
        batch = list(dict.fromkeys(node_ids))
        found: dict[str, GraphEdge] = {}
        # Fetches that failed in pass 1 are not retried in pass 2
        failed: set[str] = set()

        for node_id in batch:
            for edge in await self._detect_and_commit(node_id, None, failed):
                found.setdefault(edge.id, edge)

        present = [node_id for node_id in batch if self._store.has_node(node_id)]
        for node_id in present:
            others = [other for other in present if other != node_id]
            if not others:
                continue
            for edge in await self._detect_and_commit(node_id, others, failed):
                found.setdefault(edge.id, edge)

        logger.info(f"Detected {len(found)} relationships across batch of {len(batch)} nodes")
        self._events.emit(
            "detection", "batch complete", batch_size=len(batch), edges=len(found)
        )
        return list(found.values())

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _detect_and_commit(
        self,
        node_id: str,
        comparison_ids: Optional[Iterable[str]],
        failed: set[str],
    ) -> list[GraphEdge]:
        try:
            relationships = await self._detect(node_id, comparison_ids, failed)
        except OpenAlexError as e:
            logger.warning(f"Relationship detection skipped for {node_id}: {e}")
            self._events.emit("error", "detection failed", node_id=node_id, error=str(e))
            return []

        return self._commit(node_id, relationships)

    def _commit(self, node_id: str, relationships: list[DetectedRelationship]) -> list[GraphEdge]:
        edges = [relationship.to_edge() for relationship in relationships]
        added = self._store.add_edges(edges)
        if edges:
            self._events.emit(
                "detection", "node scanned", node_id=node_id, found=len(edges), new=len(added)
            )
        return edges

    async def _detect(
        self,
        node_id: str,
        comparison_ids: Optional[Iterable[str]],
        failed: set[str],
    ) -> list[DetectedRelationship]:
        node = self._store.get_node(node_id)
        if node is None:
            logger.debug(f"Node {node_id} not in graph, nothing to detect")
            return []

        projection = await self._load_projection(node, failed)
        if projection is None:
            logger.debug(f"Projection fetch for {node_id} already failed, skipping")
            return []
        if node.entity_type == EntityType.WORKS and not projection.has_references:
            projection.links.extend(await self._fallback_references(node, failed))

        return self._match(node, projection, self._comparison_index(node, comparison_ids))

    async def _load_projection(
        self, node: GraphNode, failed: set[str]
    ) -> Optional[MinimalEntityData]:
        # referenced_works has its own fallback fetch, so retained data may lack it
        required = [f for f in inference_fields(node.entity_type) if f != "referenced_works"]
        if has_fields(node.entity_data, required):
            return projection_from_data(node.entity_type, node.entity_data, node.entity_id)

        key = projection_key(node.entity_id, "minimal")
        if key in failed:
            return None
        try:
            entity = await self._fetch_minimal(node)
        except OpenAlexError:
            failed.add(key)
            raise
        return extract_minimal(entity, node.entity_type)

    async def _fetch_minimal(self, node: GraphNode) -> OpenAlexEntity:
        # Full and metadata fetches carry every inference field, so reuse one if we can
        supersets = {
            node.entity_id: None,
            projection_key(node.entity_id, "metadata"): METADATA_FIELDS.get(node.entity_type),
        }
        for key in supersets:
            cached = self._dedup.get_cached(key)
            if cached is not None:
                return cached
        for key, superset_select in supersets.items():
            if self._dedup.is_pending(key):
                return await self._dedup.get_entity(
                    key,
                    lambda: self._provider.fetch_entity(
                        node.entity_type, node.entity_id, select=superset_select
                    ),
                )

        select = MINIMAL_FIELDS[node.entity_type]
        return await self._dedup.get_entity(
            projection_key(node.entity_id, "minimal"),
            lambda: self._provider.fetch_entity(node.entity_type, node.entity_id, select=select),
        )

    async def _fallback_references(self, node: GraphNode, failed: set[str]) -> list[CandidateLink]:
        retained = (node.entity_data or {}).get("referenced_works")
        if isinstance(retained, list):
            return reference_links(retained)

        key = projection_key(node.entity_id, "referenced_works")
        if key in failed:
            return []
        try:
            entity = await self._dedup.get_entity(
                key,
                lambda: self._provider.fetch_entity(
                    node.entity_type, node.entity_id, select=REFERENCES_FIELDS
                ),
            )
        except OpenAlexError as e:
            failed.add(key)
            logger.warning(f"Reference list fetch failed for {node.entity_id}: {e}")
            return []

        if isinstance(entity, Work) and entity.referenced_works:
            logger.debug(f"Recovered {len(entity.referenced_works)} references for {node.entity_id}")
            return reference_links(entity.referenced_works)
        return []

    def _comparison_index(
        self,
        node: GraphNode,
        comparison_ids: Optional[Iterable[str]],
    ) -> dict[str, GraphNode]:
        if comparison_ids is None:
            candidates = self._store.get_nodes()
        else:
            candidates = [self._store.get_node(other_id) for other_id in comparison_ids]

        index: dict[str, GraphNode] = {}
        for other in candidates:
            if other is None or other.id == node.id:
                continue
            index[match_key(other.id)] = other
            index[match_key(other.entity_id)] = other
        return index

    def _match(
        self,
        node: GraphNode,
        projection: MinimalEntityData,
        index: dict[str, GraphNode],
    ) -> list[DetectedRelationship]:
        results: dict[str, DetectedRelationship] = {}
        for link in projection.links:
            other = index.get(match_key(link.target_id))
            if other is None:
                continue

            if link.direction == "outbound":
                source_id, target_id = node.id, other.id
            else:
                source_id, target_id = other.id, node.id

            relationship = DetectedRelationship(
                source_node_id=source_id,
                target_node_id=target_id,
                relation_type=link.relation_type,
                direction=link.direction,
                label=link.label,
                weight=link.weight,
                metadata={"field": link.field},
            )
            results.setdefault(relationship.key, relationship)

        logger.debug(
            f"{node.id}: {len(results)} of {len(projection.links)} candidate links "
            f"matched against {len(index)} keys"
        )
        return list(results.values())
