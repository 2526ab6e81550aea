"""Which related entities an expansion fetches, and how they connect.

Each rule names the collection listed for a node of a given type, the
OpenAlex filter that selects entities related to the node, and the edge
drawn between the node and each listed entity.
"""

from dataclasses import dataclass

from core.openalex import EntityType, resolve_identifier

from ..types import RelationType


@dataclass(frozen=True)
class ExpansionRule:
    related_type: EntityType
    filter_property: str
    relation_type: RelationType
    # True when the listed entity is the edge source (e.g. work -> source)
    related_is_source: bool
    label: str

    def relationship_filter(self, entity_id: str) -> str:
        """Filter clause selecting entities related to `entity_id`."""
        return f"{self.filter_property}:{resolve_identifier(entity_id).api_key}"


EXPANSION_RULES: dict[EntityType, ExpansionRule] = {
    EntityType.WORKS: ExpansionRule(
        EntityType.WORKS, "cited_by", RelationType.REFERENCES, False, "references"
    ),
    EntityType.AUTHORS: ExpansionRule(
        EntityType.WORKS, "author.id", RelationType.AUTHORED, False, "authored"
    ),
    EntityType.SOURCES: ExpansionRule(
        EntityType.WORKS,
        "primary_location.source.id",
        RelationType.PUBLISHED_IN,
        True,
        "published in",
    ),
    EntityType.INSTITUTIONS: ExpansionRule(
        EntityType.AUTHORS,
        "last_known_institutions.id",
        RelationType.AFFILIATED,
        True,
        "affiliated with",
    ),
    EntityType.TOPICS: ExpansionRule(
        EntityType.WORKS, "topics.id", RelationType.WORK_HAS_TOPIC, True, "has topic"
    ),
    EntityType.PUBLISHERS: ExpansionRule(
        EntityType.SOURCES,
        "host_organization",
        RelationType.SOURCE_PUBLISHED_BY,
        True,
        "published by",
    ),
    EntityType.FUNDERS: ExpansionRule(
        EntityType.WORKS, "grants.funder", RelationType.FUNDED_BY, True, "funded by"
    ),
    EntityType.KEYWORDS: ExpansionRule(
        EntityType.WORKS, "keywords.id", RelationType.WORK_HAS_KEYWORD, True, "has keyword"
    ),
    EntityType.CONCEPTS: ExpansionRule(
        EntityType.WORKS, "concepts.id", RelationType.WORK_HAS_TOPIC, True, "has concept"
    ),
    EntityType.DOMAINS: ExpansionRule(
        EntityType.FIELDS, "domain.id", RelationType.FIELD_PART_OF_DOMAIN, True, "part of"
    ),
    EntityType.FIELDS: ExpansionRule(
        EntityType.SUBFIELDS, "field.id", RelationType.SUBFIELD_PART_OF_FIELD, True, "part of"
    ),
    EntityType.SUBFIELDS: ExpansionRule(
        EntityType.TOPICS, "subfield.id", RelationType.TOPIC_PART_OF_SUBFIELD, True, "part of"
    ),
}
