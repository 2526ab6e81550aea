"""Per-entity-type field selections for OpenAlex `select=` requests.

MINIMAL_FIELDS are the inference projections: just the fields that can
point at another entity. METADATA_FIELDS are what a fully hydrated node
displays. CREATE_NODE_FIELDS are requested when listing related entities,
so freshly created nodes already carry their inference fields.
"""

from typing import Any, Mapping, Optional, Sequence

from .identifiers import EntityType

BASE_FIELDS = ["id", "display_name"]

REFERENCES_FIELDS = ["id", "referenced_works"]

MINIMAL_FIELDS: dict[EntityType, list[str]] = {
    EntityType.WORKS: BASE_FIELDS + [
        "authorships",
        "primary_location",
        "referenced_works",
        "grants",
        "keywords",
        "concepts",
        "topics",
    ],
    EntityType.AUTHORS: BASE_FIELDS + ["affiliations", "last_known_institutions", "topics"],
    EntityType.SOURCES: BASE_FIELDS + ["publisher", "host_organization", "topics"],
    EntityType.INSTITUTIONS: BASE_FIELDS + ["lineage", "topics"],
    EntityType.TOPICS: BASE_FIELDS + ["subfield"],
    EntityType.SUBFIELDS: BASE_FIELDS + ["field", "topics"],
    EntityType.FIELDS: BASE_FIELDS + ["domain", "subfields"],
    EntityType.DOMAINS: BASE_FIELDS + ["fields"],
    EntityType.PUBLISHERS: BASE_FIELDS + ["lineage"],
    EntityType.FUNDERS: list(BASE_FIELDS),
    EntityType.KEYWORDS: list(BASE_FIELDS),
    EntityType.CONCEPTS: list(BASE_FIELDS),
}

# Types without an entry are fetched unrestricted when hydrated
METADATA_FIELDS: dict[EntityType, list[str]] = {
    EntityType.WORKS: MINIMAL_FIELDS[EntityType.WORKS] + [
        "title",
        "doi",
        "ids",
        "publication_year",
        "publication_date",
        "type",
        "cited_by_count",
        "open_access",
        "primary_topic",
    ],
    EntityType.AUTHORS: MINIMAL_FIELDS[EntityType.AUTHORS] + [
        "orcid",
        "ids",
        "works_count",
        "cited_by_count",
        "summary_stats",
    ],
    EntityType.SOURCES: MINIMAL_FIELDS[EntityType.SOURCES] + [
        "issn_l",
        "issn",
        "ids",
        "type",
        "works_count",
        "cited_by_count",
        "is_oa",
    ],
    EntityType.INSTITUTIONS: MINIMAL_FIELDS[EntityType.INSTITUTIONS] + [
        "ror",
        "ids",
        "country_code",
        "type",
        "works_count",
        "cited_by_count",
    ],
}

_NODE_DISPLAY_FIELDS: dict[EntityType, list[str]] = {
    EntityType.WORKS: ["publication_year", "cited_by_count", "open_access", "doi"],
    EntityType.AUTHORS: ["works_count", "cited_by_count", "orcid"],
    EntityType.SOURCES: ["works_count", "issn_l"],
    EntityType.INSTITUTIONS: ["works_count", "country_code", "ror"],
    EntityType.TOPICS: ["works_count"],
    EntityType.PUBLISHERS: ["works_count"],
    EntityType.FUNDERS: ["works_count"],
}

CREATE_NODE_FIELDS: dict[EntityType, list[str]] = {
    entity_type: fields + _NODE_DISPLAY_FIELDS.get(entity_type, [])
    for entity_type, fields in MINIMAL_FIELDS.items()
}


def inference_fields(entity_type: EntityType) -> list[str]:
    """Relationship-bearing fields of a type (the minimal projection minus id/name)."""
    return [f for f in MINIMAL_FIELDS[entity_type] if f not in BASE_FIELDS]


def metadata_fields(entity_type: EntityType) -> Optional[list[str]]:
    """Hydration projection for a type, or None for an unrestricted fetch."""
    return METADATA_FIELDS.get(entity_type)


def has_fields(entity_data: Optional[Mapping[str, Any]], fields: Sequence[str]) -> bool:
    """Whether retained data already carries every field (presence, not truthiness)."""
    if not entity_data:
        return False
    return all(field in entity_data for field in fields)
