"""Tagged entity variants for OpenAlex payloads.

Every payload is validated once, in parse_entity(), into the variant for its
entity type. Downstream code dispatches on the variant class instead of
probing dict keys. Relationship-bearing fields default to None so "absent
from the payload" (e.g. not selected) stays distinguishable from "empty".
"""

import logging
from typing import Any, ClassVar, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import MalformedEntityError
from .identifiers import EntityType, entity_type_from_id

logger = logging.getLogger(__name__)


class EntityRef(BaseModel):
    """Nested reference to another entity ({id, display_name, ...})."""

    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    display_name: Optional[str] = None


class Authorship(BaseModel):
    model_config = ConfigDict(extra="allow")

    author: Optional[EntityRef] = None
    author_position: Optional[str] = None
    institutions: list[EntityRef] = Field(default_factory=list)


class Location(BaseModel):
    model_config = ConfigDict(extra="allow")

    source: Optional[EntityRef] = None


class Grant(BaseModel):
    model_config = ConfigDict(extra="allow")

    funder: Optional[str] = None
    funder_display_name: Optional[str] = None
    award_id: Optional[str] = None


class Affiliation(BaseModel):
    model_config = ConfigDict(extra="allow")

    institution: Optional[EntityRef] = None
    years: list[int] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Entity variants
# ---------------------------------------------------------------------------


class OpenAlexEntity(BaseModel):
    """Common base. Also used as-is for payloads that fail their variant check."""

    model_config = ConfigDict(extra="allow")

    entity_type: ClassVar[Optional[EntityType]] = None

    id: str
    display_name: Optional[str] = None

    @property
    def label(self) -> str:
        return self.display_name or "Unknown"

    def to_data(self) -> dict[str, Any]:
        """Payload as retained on a graph node (only fields the payload set)."""
        return self.model_dump(exclude_unset=True, mode="json")


class Work(OpenAlexEntity):
    entity_type: ClassVar[Optional[EntityType]] = EntityType.WORKS

    title: Optional[str] = None
    doi: Optional[str] = None
    publication_year: Optional[int] = None
    cited_by_count: Optional[int] = None
    authorships: Optional[list[Authorship]] = None
    primary_location: Optional[Location] = None
    referenced_works: Optional[list[str]] = None
    grants: Optional[list[Grant]] = None
    keywords: Optional[list[EntityRef]] = None
    concepts: Optional[list[EntityRef]] = None
    topics: Optional[list[EntityRef]] = None

    @property
    def label(self) -> str:
        return self.display_name or self.title or "Untitled"


class Author(OpenAlexEntity):
    entity_type: ClassVar[Optional[EntityType]] = EntityType.AUTHORS

    orcid: Optional[str] = None
    works_count: Optional[int] = None
    cited_by_count: Optional[int] = None
    affiliations: Optional[list[Affiliation]] = None
    last_known_institutions: Optional[list[EntityRef]] = None
    topics: Optional[list[EntityRef]] = None


class Source(OpenAlexEntity):
    entity_type: ClassVar[Optional[EntityType]] = EntityType.SOURCES

    issn_l: Optional[str] = None
    publisher: Optional[str] = None
    host_organization: Optional[str] = None
    topics: Optional[list[EntityRef]] = None


class Institution(OpenAlexEntity):
    entity_type: ClassVar[Optional[EntityType]] = EntityType.INSTITUTIONS

    ror: Optional[str] = None
    country_code: Optional[str] = None
    lineage: Optional[list[str]] = None
    topics: Optional[list[EntityRef]] = None


class Topic(OpenAlexEntity):
    entity_type: ClassVar[Optional[EntityType]] = EntityType.TOPICS

    subfield: Optional[EntityRef] = None
    field: Optional[EntityRef] = None
    domain: Optional[EntityRef] = None


class Subfield(OpenAlexEntity):
    entity_type: ClassVar[Optional[EntityType]] = EntityType.SUBFIELDS

    field: Optional[EntityRef] = None
    topics: Optional[list[EntityRef]] = None


class ResearchField(OpenAlexEntity):
    entity_type: ClassVar[Optional[EntityType]] = EntityType.FIELDS

    domain: Optional[EntityRef] = None
    subfields: Optional[list[EntityRef]] = None


class Domain(OpenAlexEntity):
    entity_type: ClassVar[Optional[EntityType]] = EntityType.DOMAINS

    fields: Optional[list[EntityRef]] = None


class Publisher(OpenAlexEntity):
    entity_type: ClassVar[Optional[EntityType]] = EntityType.PUBLISHERS

    lineage: Optional[list[str]] = None


class Funder(OpenAlexEntity):
    entity_type: ClassVar[Optional[EntityType]] = EntityType.FUNDERS


class Keyword(OpenAlexEntity):
    entity_type: ClassVar[Optional[EntityType]] = EntityType.KEYWORDS


class Concept(OpenAlexEntity):
    entity_type: ClassVar[Optional[EntityType]] = EntityType.CONCEPTS


ENTITY_MODELS: dict[EntityType, type[OpenAlexEntity]] = {
    EntityType.WORKS: Work,
    EntityType.AUTHORS: Author,
    EntityType.SOURCES: Source,
    EntityType.INSTITUTIONS: Institution,
    EntityType.TOPICS: Topic,
    EntityType.SUBFIELDS: Subfield,
    EntityType.FIELDS: ResearchField,
    EntityType.DOMAINS: Domain,
    EntityType.PUBLISHERS: Publisher,
    EntityType.FUNDERS: Funder,
    EntityType.KEYWORDS: Keyword,
    EntityType.CONCEPTS: Concept,
}


def parse_entity(
    payload: Any,
    entity_type: Optional[EntityType] = None,
) -> OpenAlexEntity:
    """Validate a raw payload into its entity variant.

    The type comes from the payload id when it is an OpenAlex id, otherwise
    from `entity_type`. A payload whose variant fails validation (or whose id
    contradicts `entity_type`) degrades to a bare OpenAlexEntity.

    Args:
        payload: Decoded JSON object from the API
        entity_type: Expected entity type, if known

    Returns:
        Entity variant, or OpenAlexEntity if the variant check failed

    Raises:
        MalformedEntityError: If the payload has no string id
    """
    if not isinstance(payload, dict):
        raise MalformedEntityError(f"Expected an object, got {type(payload).__name__}")

    entity_id = payload.get("id")
    if not isinstance(entity_id, str) or not entity_id:
        raise MalformedEntityError("OpenAlex payload has no id", sorted(payload))

    id_type = entity_type_from_id(entity_id)
    if entity_type is not None and id_type is not None and id_type != entity_type:
        logger.debug(f"Entity {entity_id} is {id_type.value}, expected {entity_type.value}")
        return _bare_entity(payload)

    resolved_type = id_type or entity_type
    if resolved_type is None:
        return _bare_entity(payload)

    try:
        return ENTITY_MODELS[resolved_type].model_validate(payload)
    except ValidationError as e:
        logger.debug(
            f"Payload for {entity_id} failed {resolved_type.value} validation "
            f"({e.error_count()} errors), keeping base fields only"
        )
        return _bare_entity(payload)


def _bare_entity(payload: dict[str, Any]) -> OpenAlexEntity:
    try:
        return OpenAlexEntity.model_validate(payload)
    except ValidationError:
        display_name = payload.get("display_name")
        return OpenAlexEntity(
            id=payload["id"],
            display_name=display_name if isinstance(display_name, str) else None,
        )
