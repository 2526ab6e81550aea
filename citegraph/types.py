"""Graph data model: nodes, edges, relation vocabulary and hydration state."""

from datetime import datetime
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

from core.openalex import EntityType


class RelationType(str, Enum):
    """Directed relationship vocabulary. Comments give source -> target."""

    AUTHORED = "authored"  # author -> work
    PUBLISHED_IN = "published_in"  # work -> source
    REFERENCES = "references"  # work -> work
    AFFILIATED = "affiliated"  # author -> institution
    SOURCE_PUBLISHED_BY = "source_published_by"  # source -> publisher/host
    INSTITUTION_CHILD_OF = "institution_child_of"
    PUBLISHER_CHILD_OF = "publisher_child_of"
    TOPIC_PART_OF_SUBFIELD = "topic_part_of_subfield"
    SUBFIELD_PART_OF_FIELD = "subfield_part_of_field"
    FIELD_PART_OF_DOMAIN = "field_part_of_domain"
    FUNDED_BY = "funded_by"  # work -> funder
    WORK_HAS_TOPIC = "work_has_topic"  # work -> topic/concept
    WORK_HAS_KEYWORD = "work_has_keyword"
    AUTHOR_RESEARCHES = "author_researches"  # author -> topic
    HAS_TOPIC = "has_topic"  # source/institution -> topic
    RELATED_TO = "related_to"


class HydrationLevel(str, Enum):
    MINIMAL = "minimal"
    FULL = "full"


RelationDirection = Literal["outbound", "inbound"]


class ExternalIdentifier(BaseModel):
    """External id of an entity (DOI, ORCID, ISSN-L, ROR)."""

    type: str
    value: str
    url: Optional[str] = None


class Position(BaseModel):
    """Opaque layout position, never computed here."""

    x: float = 0.0
    y: float = 0.0


class NodeMetadata(BaseModel):
    hydration_level: HydrationLevel = HydrationLevel.MINIMAL
    is_loading: bool = False
    error: Optional[str] = None
    data_loaded_at: Optional[datetime] = None
    expanded: bool = False
    depth: Optional[int] = None


class GraphNode(BaseModel):
    """One entity in the graph. `id` equals the canonical entity id."""

    id: str
    entity_id: str
    entity_type: EntityType
    label: str
    external_ids: list[ExternalIdentifier] = Field(default_factory=list)
    entity_data: Optional[dict[str, Any]] = None
    position: Position = Field(default_factory=Position)
    metadata: NodeMetadata = Field(default_factory=NodeMetadata)

    @property
    def hydration_level(self) -> HydrationLevel:
        return self.metadata.hydration_level

    @property
    def is_minimal(self) -> bool:
        return self.metadata.hydration_level == HydrationLevel.MINIMAL


def make_edge_id(source: str, relation_type: RelationType, target: str) -> str:
    """Deterministic edge id, so the same relationship always maps to one edge."""
    return f"{source}-{relation_type.value}-{target}"


class GraphEdge(BaseModel):
    id: str
    source: str
    target: str
    type: RelationType
    label: str = ""
    weight: Optional[float] = None
    metadata: Optional[dict[str, Any]] = None

    @classmethod
    def create(
        cls,
        source: str,
        target: str,
        relation_type: RelationType,
        label: str = "",
        weight: Optional[float] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> "GraphEdge":
        return cls(
            id=make_edge_id(source, relation_type, target),
            source=source,
            target=target,
            type=relation_type,
            label=label,
            weight=weight,
            metadata=metadata,
        )


class DetectedRelationship(BaseModel):
    """A relationship inferred by the detector, converted 1:1 into a GraphEdge."""

    source_node_id: str
    target_node_id: str
    relation_type: RelationType
    direction: RelationDirection
    label: str = ""
    weight: Optional[float] = None
    metadata: Optional[dict[str, Any]] = None

    @property
    def key(self) -> str:
        return make_edge_id(self.source_node_id, self.relation_type, self.target_node_id)

    def to_edge(self) -> GraphEdge:
        return GraphEdge.create(
            self.source_node_id,
            self.target_node_id,
            self.relation_type,
            label=self.label,
            weight=self.weight,
            metadata=self.metadata,
        )


class GraphFragment(BaseModel):
    """Nodes and edges derived from one entity."""

    nodes: list[GraphNode] = Field(default_factory=list)
    edges: list[GraphEdge] = Field(default_factory=list)
