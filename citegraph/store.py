"""Graph store interface and the in-memory adapter.

The engine never owns the node/edge collections: it mutates them only
through a GraphStore. InMemoryGraphStore is the reference implementation,
used by tests and scripts.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

import networkx as nx

from core.openalex import EntityType

from .types import GraphEdge, GraphNode, HydrationLevel

logger = logging.getLogger(__name__)


class GraphStore(ABC):
    """Abstract node/edge store."""

    @abstractmethod
    def add_nodes(self, nodes: Iterable[GraphNode]) -> list[GraphNode]:
        """Add nodes whose id is not yet present.

        Returns:
            The nodes actually added
        """
        pass

    @abstractmethod
    def add_edges(self, edges: Iterable[GraphEdge]) -> list[GraphEdge]:
        """Set-union edges by id. Edges with a missing endpoint are rejected.

        Returns:
            The edges actually added
        """
        pass

    @abstractmethod
    def get_node(self, node_id: str) -> Optional[GraphNode]:
        pass

    @abstractmethod
    def get_nodes(self) -> list[GraphNode]:
        pass

    @abstractmethod
    def get_edges(self) -> list[GraphEdge]:
        pass

    @abstractmethod
    def update_node(self, node_id: str, **changes: Any) -> Optional[GraphNode]:
        """Replace top-level node fields. Hydration level never regresses."""
        pass

    @abstractmethod
    def mark_node_as_loading(self, node_id: str) -> None:
        pass

    @abstractmethod
    def mark_node_as_loaded(
        self,
        node_id: str,
        hydration_level: HydrationLevel = HydrationLevel.FULL,
    ) -> None:
        pass

    @abstractmethod
    def mark_node_as_error(self, node_id: str, error: str) -> None:
        pass

    @abstractmethod
    def mark_node_as_expanded(self, node_id: str) -> None:
        pass

    @abstractmethod
    def clear(self) -> None:
        pass

    @abstractmethod
    def calculate_node_depths(self, primary_node_id: str) -> dict[str, int]:
        """Hop distance of every reachable node from the primary node."""
        pass

    # Derived queries, expressed over the abstract operations

    def has_node(self, node_id: str) -> bool:
        return self.get_node(node_id) is not None

    def is_expanded(self, node_id: str) -> bool:
        node = self.get_node(node_id)
        return bool(node and node.metadata.expanded)

    def get_minimal_nodes(self) -> list[GraphNode]:
        return [node for node in self.get_nodes() if node.is_minimal]

    def get_nodes_by_type(self, entity_type: EntityType) -> list[GraphNode]:
        return [node for node in self.get_nodes() if node.entity_type == entity_type]


def _merge_level(current: HydrationLevel, requested: HydrationLevel) -> HydrationLevel:
    if current == HydrationLevel.FULL:
        return HydrationLevel.FULL
    return requested


class InMemoryGraphStore(GraphStore):
    """GraphStore over a networkx MultiDiGraph.

    Node and edge models live in insertion-ordered dicts; the MultiDiGraph
    holds the topology, with each edge keyed by its edge id.
    """

    def __init__(self):
        self._graph: nx.MultiDiGraph = nx.MultiDiGraph()
        self._nodes: dict[str, GraphNode] = {}
        self._edges: dict[str, GraphEdge] = {}

    def add_nodes(self, nodes: Iterable[GraphNode]) -> list[GraphNode]:
        added = []
        for node in nodes:
            if node.id in self._nodes:
                continue
            self._nodes[node.id] = node
            self._graph.add_node(node.id)
            added.append(node)
        return added

    def add_edges(self, edges: Iterable[GraphEdge]) -> list[GraphEdge]:
        added = []
        for edge in edges:
            if edge.id in self._edges:
                continue
            if not (self._graph.has_node(edge.source) and self._graph.has_node(edge.target)):
                logger.warning(f"Rejected edge {edge.id}: endpoint not in graph")
                continue
            self._edges[edge.id] = edge
            self._graph.add_edge(edge.source, edge.target, key=edge.id, type=edge.type)
            added.append(edge)
        return added

    def get_node(self, node_id: str) -> Optional[GraphNode]:
        return self._nodes.get(node_id)

    def get_nodes(self) -> list[GraphNode]:
        return list(self._nodes.values())

    def get_edges(self) -> list[GraphEdge]:
        return list(self._edges.values())

    def update_node(self, node_id: str, **changes: Any) -> Optional[GraphNode]:
        node = self._nodes.get(node_id)
        if node is None:
            return None

        metadata = changes.get("metadata")
        if metadata is not None:
            level = _merge_level(node.metadata.hydration_level, metadata.hydration_level)
            changes["metadata"] = metadata.model_copy(update={"hydration_level": level})

        updated = node.model_copy(update=changes)
        self._nodes[node_id] = updated
        return updated

    def _update_metadata(self, node_id: str, **changes: Any) -> None:
        node = self._nodes.get(node_id)
        if node is None:
            logger.debug(f"Metadata update for missing node {node_id} ignored")
            return
        self.update_node(node_id, metadata=node.metadata.model_copy(update=changes))

    def mark_node_as_loading(self, node_id: str) -> None:
        self._update_metadata(node_id, is_loading=True, error=None)

    def mark_node_as_loaded(
        self,
        node_id: str,
        hydration_level: HydrationLevel = HydrationLevel.FULL,
    ) -> None:
        self._update_metadata(
            node_id,
            hydration_level=hydration_level,
            is_loading=False,
            error=None,
            data_loaded_at=datetime.now(timezone.utc),
        )

    def mark_node_as_error(self, node_id: str, error: str) -> None:
        self._update_metadata(node_id, is_loading=False, error=error)

    def mark_node_as_expanded(self, node_id: str) -> None:
        self._update_metadata(node_id, expanded=True)

    def clear(self) -> None:
        self._graph.clear()
        self._nodes.clear()
        self._edges.clear()

    def calculate_node_depths(self, primary_node_id: str) -> dict[str, int]:
        if primary_node_id not in self._nodes:
            return {}

        # Hop distance ignores edge direction
        depths = nx.single_source_shortest_path_length(
            self._graph.to_undirected(as_view=True), primary_node_id
        )
        for node_id, depth in depths.items():
            self._update_metadata(node_id, depth=depth)
        return depths
