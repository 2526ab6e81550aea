"""Pure mapping from fetched entities to graph nodes and edges."""

from datetime import datetime, timezone
from typing import Iterable, Optional

from core.openalex import (
    Author,
    EntityType,
    Institution,
    OpenAlexEntity,
    Source,
    Work,
    canonical_id,
)

from ..relationships.projection import extract_minimal, match_key
from ..types import (
    ExternalIdentifier,
    GraphEdge,
    GraphFragment,
    GraphNode,
    HydrationLevel,
    NodeMetadata,
    Position,
)

DOI_URL_PREFIX = "https://doi.org/"
ISSN_URL_PREFIX = "https://portal.issn.org/resource/ISSN/"


def _strip_url(value: str, prefix: str) -> str:
    return value[len(prefix):] if value.lower().startswith(prefix) else value


def extract_external_ids(entity: OpenAlexEntity) -> list[ExternalIdentifier]:
    """DOI, ORCID, ISSN-L and ROR identifiers, each with a resolvable URL."""
    external_ids = []

    if isinstance(entity, Work) and entity.doi:
        doi = _strip_url(entity.doi, DOI_URL_PREFIX)
        external_ids.append(ExternalIdentifier(type="doi", value=doi, url=f"{DOI_URL_PREFIX}{doi}"))

    if isinstance(entity, Author) and entity.orcid:
        external_ids.append(
            ExternalIdentifier(
                type="orcid",
                value=_strip_url(entity.orcid, "https://orcid.org/"),
                url=entity.orcid,
            )
        )

    if isinstance(entity, Source) and entity.issn_l:
        external_ids.append(
            ExternalIdentifier(
                type="issn_l", value=entity.issn_l, url=f"{ISSN_URL_PREFIX}{entity.issn_l}"
            )
        )

    if isinstance(entity, Institution) and entity.ror:
        external_ids.append(
            ExternalIdentifier(
                type="ror",
                value=_strip_url(entity.ror, "https://ror.org/"),
                url=entity.ror,
            )
        )

    return external_ids


def create_node_from_entity(
    entity: OpenAlexEntity,
    entity_type: EntityType,
    hydration_level: HydrationLevel = HydrationLevel.FULL,
    position: Optional[Position] = None,
) -> GraphNode:
    node_id = canonical_id(entity.id)
    return GraphNode(
        id=node_id,
        entity_id=node_id,
        entity_type=entity_type,
        label=entity.label,
        external_ids=extract_external_ids(entity),
        entity_data=entity.to_data(),
        position=position or Position(),
        metadata=NodeMetadata(
            hydration_level=hydration_level,
            data_loaded_at=datetime.now(timezone.utc),
        ),
    )


def create_minimal_node(
    entity_id: str,
    entity_type: EntityType,
    label: Optional[str] = None,
) -> GraphNode:
    """Node for a known id with no fetched data."""
    node_id = canonical_id(entity_id)
    return GraphNode(
        id=node_id,
        entity_id=node_id,
        entity_type=entity_type,
        label=label or node_id,
    )


def transform_entity_to_graph(
    entity: OpenAlexEntity,
    entity_type: EntityType,
    existing_ids: Iterable[str],
) -> GraphFragment:
    """Map one entity to its node plus edges to referents already in the graph.

    Nothing is created for referents that are not in `existing_ids`.
    """
    node = create_node_from_entity(entity, entity_type)

    present = {match_key(existing_id): existing_id for existing_id in existing_ids}
    present.pop(match_key(node.id), None)

    edges: dict[str, GraphEdge] = {}
    for link in extract_minimal(entity, entity_type).links:
        other_id = present.get(match_key(link.target_id))
        if other_id is None:
            continue
        if link.direction == "outbound":
            source, target = node.id, other_id
        else:
            source, target = other_id, node.id
        edge = GraphEdge.create(
            source,
            target,
            link.relation_type,
            label=link.label,
            weight=link.weight,
            metadata={"field": link.field},
        )
        edges.setdefault(edge.id, edge)

    return GraphFragment(nodes=[node], edges=list(edges.values()))
