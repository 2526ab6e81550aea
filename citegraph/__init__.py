"""
Citation-graph engine over OpenAlex.

Builds a graph of scholarly entities (works, authors, sources, institutions
and the topic hierarchy) from the OpenAlex catalog. Three parts cooperate:

- FetchDeduplicator: single-flight, cached entity fetches
- RelationshipDetector: infers edges between nodes already in the graph
- GraphMaterializer: loads, expands and hydrates nodes through a GraphStore

Usage:
    from citegraph import GraphMaterializer, InMemoryGraphStore

    store = InMemoryGraphStore()
    materializer = GraphMaterializer(store)
    await materializer.load_entity_graph("10.7717/peerj.4375")
"""

from .deduplication import DeduplicationStats, FetchDeduplicator
from .errors import (
    EntityFetchError,
    GraphError,
    InvalidExpansionSettingsError,
    MalformedEntityError,
    NodeNotFoundError,
    OpenAlexError,
    UnresolvableIdentifierError,
)
from .events import EventEmitter, GraphEvent
from .expansion import (
    EXPANSION_RULES,
    ExpansionSettings,
    ExpansionSettingsRegistry,
    FilterCriteria,
    SortCriteria,
    build_query_params,
    validate_settings,
)
from .materializer import (
    ExpansionResult,
    GraphMaterializer,
    HydrationSummary,
    SearchStats,
)
from .relationships import RelationshipDetector
from .store import GraphStore, InMemoryGraphStore
from .types import (
    DetectedRelationship,
    GraphEdge,
    GraphFragment,
    GraphNode,
    HydrationLevel,
    NodeMetadata,
    RelationType,
)

__all__ = [
    "FetchDeduplicator",
    "DeduplicationStats",
    "GraphError",
    "NodeNotFoundError",
    "InvalidExpansionSettingsError",
    "OpenAlexError",
    "EntityFetchError",
    "MalformedEntityError",
    "UnresolvableIdentifierError",
    "EventEmitter",
    "GraphEvent",
    "EXPANSION_RULES",
    "ExpansionSettings",
    "ExpansionSettingsRegistry",
    "FilterCriteria",
    "SortCriteria",
    "build_query_params",
    "validate_settings",
    "GraphMaterializer",
    "ExpansionResult",
    "HydrationSummary",
    "SearchStats",
    "RelationshipDetector",
    "GraphStore",
    "InMemoryGraphStore",
    "DetectedRelationship",
    "GraphEdge",
    "GraphFragment",
    "GraphNode",
    "HydrationLevel",
    "NodeMetadata",
    "RelationType",
]
