"""
OpenAlex provider layer.

OpenAlex is a free, open catalog of scholarly works, authors, venues,
institutions and the topic hierarchy. Provides the async client, tagged
entity variants, identifier resolution and per-type field selections.
"""

from .client import EntityProvider, OpenAlexClient, get_openalex_client
from .entities import (
    ENTITY_MODELS,
    Author,
    Concept,
    Domain,
    EntityRef,
    Funder,
    Institution,
    Keyword,
    OpenAlexEntity,
    Publisher,
    ResearchField,
    Source,
    Subfield,
    Topic,
    Work,
    parse_entity,
)
from .errors import (
    EntityFetchError,
    MalformedEntityError,
    OpenAlexError,
    UnresolvableIdentifierError,
)
from .identifiers import (
    EntityType,
    ResolvedIdentifier,
    canonical_id,
    entity_type_from_id,
    resolve_identifier,
    short_id,
)

__all__ = [
    "EntityProvider",
    "OpenAlexClient",
    "get_openalex_client",
    "ENTITY_MODELS",
    "OpenAlexEntity",
    "EntityRef",
    "Work",
    "Author",
    "Source",
    "Institution",
    "Topic",
    "Subfield",
    "ResearchField",
    "Domain",
    "Publisher",
    "Funder",
    "Keyword",
    "Concept",
    "parse_entity",
    "OpenAlexError",
    "EntityFetchError",
    "MalformedEntityError",
    "UnresolvableIdentifierError",
    "EntityType",
    "ResolvedIdentifier",
    "resolve_identifier",
    "entity_type_from_id",
    "canonical_id",
    "short_id",
]
