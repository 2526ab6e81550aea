"""Entity types and identifier resolution for OpenAlex.

Maps user input (OpenAlex short ids and URLs, DOIs, ORCIDs, ROR ids, ISSNs)
to an entity type plus the key used in `/{entity_type}/{key}` requests.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .errors import UnresolvableIdentifierError

OPENALEX_URL_PREFIX = "https://openalex.org/"


class EntityType(str, Enum):
    """OpenAlex entity collections."""

    WORKS = "works"
    AUTHORS = "authors"
    SOURCES = "sources"
    INSTITUTIONS = "institutions"
    TOPICS = "topics"
    PUBLISHERS = "publishers"
    FUNDERS = "funders"
    KEYWORDS = "keywords"
    CONCEPTS = "concepts"
    DOMAINS = "domains"
    FIELDS = "fields"
    SUBFIELDS = "subfields"


ID_PREFIXES: dict[str, EntityType] = {
    "W": EntityType.WORKS,
    "A": EntityType.AUTHORS,
    "S": EntityType.SOURCES,
    "I": EntityType.INSTITUTIONS,
    "T": EntityType.TOPICS,
    "P": EntityType.PUBLISHERS,
    "F": EntityType.FUNDERS,
    "C": EntityType.CONCEPTS,
}

_SHORT_ID_RE = re.compile(r"^([WASITPFC])(\d+)$", re.IGNORECASE)
_PATH_ID_RE = re.compile(
    r"^(" + "|".join(t.value for t in EntityType) + r")/([^/?#]+)$",
    re.IGNORECASE,
)
_DOI_RE = re.compile(r"^10\.\d{4,9}/\S+$")
_ORCID_RE = re.compile(r"^\d{4}-\d{4}-\d{4}-\d{3}[\dX]$", re.IGNORECASE)
_ROR_RE = re.compile(r"^0[a-z0-9]{6}\d{2}$", re.IGNORECASE)
_ISSN_RE = re.compile(r"^\d{4}-\d{3}[\dX]$", re.IGNORECASE)

_URL_PREFIXES = {
    "openalex": ("https://openalex.org/", "http://openalex.org/", "https://api.openalex.org/"),
    "doi": ("https://doi.org/", "http://doi.org/", "https://dx.doi.org/", "http://dx.doi.org/", "doi:"),
    "orcid": ("https://orcid.org/", "http://orcid.org/", "orcid:"),
    "ror": ("https://ror.org/", "http://ror.org/", "ror:"),
    "issn": ("issn:",),
}


@dataclass(frozen=True)
class ResolvedIdentifier:
    """Result of resolving a raw identifier.

    Attributes:
        entity_type: Collection the identifier belongs to
        entity_id: Canonical form (OpenAlex URL, or the external id URL)
        api_key: Path segment for `/{entity_type}/{api_key}`
        id_type: "openalex", "doi", "orcid", "ror" or "issn"
    """

    entity_type: EntityType
    entity_id: str
    api_key: str
    id_type: str


def _strip_prefix(value: str, kind: str) -> Optional[str]:
    lowered = value.lower()
    for prefix in _URL_PREFIXES[kind]:
        if lowered.startswith(prefix):
            return value[len(prefix):]
    return None


def _resolve_openalex(value: str) -> Optional[ResolvedIdentifier]:
    rest = _strip_prefix(value, "openalex")
    candidate = rest if rest is not None else value

    match = _SHORT_ID_RE.match(candidate)
    if match:
        short = candidate.upper()
        return ResolvedIdentifier(
            entity_type=ID_PREFIXES[match.group(1).upper()],
            entity_id=OPENALEX_URL_PREFIX + short,
            api_key=short,
            id_type="openalex",
        )

    match = _PATH_ID_RE.match(candidate)
    if match:
        entity_type = EntityType(match.group(1).lower())
        key = match.group(2)
        short = _SHORT_ID_RE.match(key)
        if short:
            # works/W123 style: the prefix letter must agree with the path
            if ID_PREFIXES[short.group(1).upper()] != entity_type:
                return None
            key = key.upper()
            entity_id = OPENALEX_URL_PREFIX + key
        else:
            entity_id = f"{OPENALEX_URL_PREFIX}{entity_type.value}/{key}"
        return ResolvedIdentifier(entity_type, entity_id, key, "openalex")

    return None


def resolve_identifier(raw: str) -> ResolvedIdentifier:
    """Resolve a raw identifier to its entity type.

    Args:
        raw: OpenAlex id or URL, DOI, ORCID, ROR id, or ISSN

    Returns:
        ResolvedIdentifier

    Raises:
        UnresolvableIdentifierError: If no entity type matches
    """
    value = (raw or "").strip()
    if not value:
        raise UnresolvableIdentifierError(raw)

    resolved = _resolve_openalex(value)
    if resolved:
        return resolved

    doi = _strip_prefix(value, "doi")
    doi = doi if doi is not None else value
    if _DOI_RE.match(doi):
        return ResolvedIdentifier(
            EntityType.WORKS, f"https://doi.org/{doi}", f"doi:{doi}", "doi"
        )

    orcid = _strip_prefix(value, "orcid")
    orcid = orcid if orcid is not None else value
    if _ORCID_RE.match(orcid):
        orcid = orcid.upper()
        return ResolvedIdentifier(
            EntityType.AUTHORS, f"https://orcid.org/{orcid}", f"orcid:{orcid}", "orcid"
        )

    ror = _strip_prefix(value, "ror")
    ror = ror if ror is not None else value
    if _ROR_RE.match(ror):
        ror = ror.lower()
        return ResolvedIdentifier(
            EntityType.INSTITUTIONS, f"https://ror.org/{ror}", f"ror:{ror}", "ror"
        )

    issn = _strip_prefix(value, "issn")
    issn = issn if issn is not None else value
    if _ISSN_RE.match(issn):
        issn = issn.upper()
        return ResolvedIdentifier(EntityType.SOURCES, issn, f"issn:{issn}", "issn")

    raise UnresolvableIdentifierError(raw)


def entity_type_from_id(entity_id: str) -> Optional[EntityType]:
    """Entity type of an OpenAlex id, or None if it isn't one."""
    resolved = _resolve_openalex((entity_id or "").strip())
    return resolved.entity_type if resolved else None


def short_id(entity_id: str) -> str:
    """Strip the OpenAlex URL prefix: https://openalex.org/W1 -> W1.

    Path forms keep their collection: https://openalex.org/fields/17 -> fields/17.
    Non-OpenAlex values are returned unchanged.
    """
    resolved = _resolve_openalex((entity_id or "").strip())
    if resolved is None:
        return entity_id
    return resolved.entity_id[len(OPENALEX_URL_PREFIX):]


def canonical_id(entity_id: str) -> str:
    """OpenAlex URL form of an id: W1 -> https://openalex.org/W1."""
    resolved = _resolve_openalex((entity_id or "").strip())
    return resolved.entity_id if resolved else entity_id
