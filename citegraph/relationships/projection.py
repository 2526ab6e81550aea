"""Minimal per-type projections used for relationship inference.

A projection reduces an entity variant to the candidate links its
relationship-bearing fields point at. Matching candidates against the nodes
actually in the graph is the detector's job.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional

from core.openalex import (
    Author,
    Domain,
    EntityType,
    Institution,
    OpenAlexEntity,
    Publisher,
    ResearchField,
    Source,
    Subfield,
    Topic,
    Work,
    parse_entity,
    short_id,
)

from ..types import RelationDirection, RelationType


@dataclass(frozen=True)
class CandidateLink:
    """A reference from the projected entity's field to another entity id.

    `outbound` means the projected entity is the edge source; `inbound`
    means the referenced entity is.
    """

    field: str
    target_id: str
    relation_type: RelationType
    direction: RelationDirection
    label: str
    weight: Optional[float] = None


@dataclass
class MinimalEntityData:
    id: str
    entity_type: EntityType
    display_name: Optional[str] = None
    links: list[CandidateLink] = field(default_factory=list)
    # Only meaningful for works: whether referenced_works was in the payload
    has_references: bool = True


def match_key(entity_id: str) -> str:
    """Comparison key that treats URL and short OpenAlex ids as equal."""
    return short_id(entity_id).upper()


def _links(
    field_name: str,
    ids: Iterable[Optional[str]],
    relation_type: RelationType,
    label: str,
    direction: RelationDirection = "outbound",
    weight: Optional[float] = None,
) -> list[CandidateLink]:
    return [
        CandidateLink(field_name, target_id, relation_type, direction, label, weight)
        for target_id in ids
        if target_id
    ]


def _ref_ids(refs) -> list[Optional[str]]:
    return [ref.id for ref in refs or []]


def reference_links(referenced_works: Iterable[str]) -> list[CandidateLink]:
    return _links("referenced_works", referenced_works, RelationType.REFERENCES, "references")


# ---------------------------------------------------------------------------
# Per-variant extraction
# ---------------------------------------------------------------------------


def _work_links(work: Work) -> list[CandidateLink]:
    links = []
    for position, authorship in enumerate(work.authorships or []):
        if authorship.author is None or not authorship.author.id:
            continue
        is_first = authorship.author_position == "first" or (
            authorship.author_position is None and position == 0
        )
        links.append(
            CandidateLink(
                "authorships",
                authorship.author.id,
                RelationType.AUTHORED,
                "inbound",
                "authored",
                1.0 if is_first else 0.5,
            )
        )

    if work.primary_location and work.primary_location.source:
        links += _links(
            "primary_location.source",
            [work.primary_location.source.id],
            RelationType.PUBLISHED_IN,
            "published in",
        )

    links += reference_links(work.referenced_works or [])
    links += _links(
        "grants",
        [grant.funder for grant in work.grants or []],
        RelationType.FUNDED_BY,
        "funded by",
    )
    links += _links("keywords", _ref_ids(work.keywords), RelationType.WORK_HAS_KEYWORD, "has keyword")
    links += _links("concepts", _ref_ids(work.concepts), RelationType.WORK_HAS_TOPIC, "has concept")
    links += _links("topics", _ref_ids(work.topics), RelationType.WORK_HAS_TOPIC, "has topic")
    return links


def _author_links(author: Author) -> list[CandidateLink]:
    institution_ids = [
        affiliation.institution.id
        for affiliation in author.affiliations or []
        if affiliation.institution
    ]
    institution_ids += _ref_ids(author.last_known_institutions)
    return _links(
        "affiliations", institution_ids, RelationType.AFFILIATED, "affiliated with"
    ) + _links("topics", _ref_ids(author.topics), RelationType.AUTHOR_RESEARCHES, "researches")


def _source_links(source: Source) -> list[CandidateLink]:
    return _links(
        "host_organization",
        [source.host_organization, source.publisher],
        RelationType.SOURCE_PUBLISHED_BY,
        "published by",
    ) + _links("topics", _ref_ids(source.topics), RelationType.HAS_TOPIC, "has topic")


def _institution_links(institution: Institution) -> list[CandidateLink]:
    return _links(
        "lineage",
        institution.lineage or [],
        RelationType.INSTITUTION_CHILD_OF,
        "child of",
    ) + _links("topics", _ref_ids(institution.topics), RelationType.HAS_TOPIC, "has topic")


def _publisher_links(publisher: Publisher) -> list[CandidateLink]:
    return _links("lineage", publisher.lineage or [], RelationType.PUBLISHER_CHILD_OF, "child of")


def _topic_links(topic: Topic) -> list[CandidateLink]:
    parent = [topic.subfield.id] if topic.subfield else []
    return _links("subfield", parent, RelationType.TOPIC_PART_OF_SUBFIELD, "part of")


def _subfield_links(subfield: Subfield) -> list[CandidateLink]:
    parent = [subfield.field.id] if subfield.field else []
    return _links(
        "field", parent, RelationType.SUBFIELD_PART_OF_FIELD, "part of"
    ) + _links(
        "topics",
        _ref_ids(subfield.topics),
        RelationType.TOPIC_PART_OF_SUBFIELD,
        "part of",
        direction="inbound",
    )


def _field_links(research_field: ResearchField) -> list[CandidateLink]:
    parent = [research_field.domain.id] if research_field.domain else []
    return _links(
        "domain", parent, RelationType.FIELD_PART_OF_DOMAIN, "part of"
    ) + _links(
        "subfields",
        _ref_ids(research_field.subfields),
        RelationType.SUBFIELD_PART_OF_FIELD,
        "part of",
        direction="inbound",
    )


def _domain_links(domain: Domain) -> list[CandidateLink]:
    return _links(
        "fields",
        _ref_ids(domain.fields),
        RelationType.FIELD_PART_OF_DOMAIN,
        "part of",
        direction="inbound",
    )


_EXTRACTORS: dict[type, Callable[[Any], list[CandidateLink]]] = {
    Work: _work_links,
    Author: _author_links,
    Source: _source_links,
    Institution: _institution_links,
    Publisher: _publisher_links,
    Topic: _topic_links,
    Subfield: _subfield_links,
    ResearchField: _field_links,
    Domain: _domain_links,
}


def extract_minimal(entity: OpenAlexEntity, entity_type: EntityType) -> MinimalEntityData:
    """Project an entity variant onto its candidate links.

    A bare OpenAlexEntity (payload that failed its variant check) and types
    without relationship fields project to no links.
    """
    extractor = _EXTRACTORS.get(type(entity))
    links = extractor(entity) if extractor else []

    own_key = match_key(entity.id)
    unique: dict[tuple[str, RelationType, str], CandidateLink] = {}
    for link in links:
        key = match_key(link.target_id)
        if key == own_key:
            continue
        unique.setdefault((key, link.relation_type, link.direction), link)

    has_references = True
    if isinstance(entity, Work):
        has_references = entity.referenced_works is not None
    elif entity_type == EntityType.WORKS:
        has_references = False

    return MinimalEntityData(
        id=entity.id,
        entity_type=entity_type,
        display_name=entity.display_name,
        links=list(unique.values()),
        has_references=has_references,
    )


def projection_from_data(
    entity_type: EntityType,
    entity_data: dict[str, Any],
    entity_id: str,
) -> MinimalEntityData:
    """Project a node's retained payload without fetching."""
    payload = {**entity_data, "id": entity_data.get("id") or entity_id}
    return extract_minimal(parse_entity(payload, entity_type), entity_type)
