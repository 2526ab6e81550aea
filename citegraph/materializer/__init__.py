"""Graph materialization: entities in, nodes and edges out."""

from .service import (
    ExpansionResult,
    GraphMaterializer,
    HydrationSummary,
    SearchStats,
)
from .transform import (
    create_minimal_node,
    create_node_from_entity,
    extract_external_ids,
    transform_entity_to_graph,
)

__all__ = [
    "GraphMaterializer",
    "ExpansionResult",
    "HydrationSummary",
    "SearchStats",
    "create_minimal_node",
    "create_node_from_entity",
    "extract_external_ids",
    "transform_entity_to_graph",
]
