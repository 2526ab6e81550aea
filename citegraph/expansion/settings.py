"""Per-entity-type expansion settings: limit, sort and filter criteria."""

from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

from core.openalex import EntityType

from .rules import EXPANSION_RULES

DEFAULT_EXPANSION_LIMIT = 10
MAX_EXPANSION_LIMIT = 10000

SortDirection = Literal["asc", "desc"]

FilterOperator = Literal[
    "eq", "ne", "gt", "lt", "gte", "lte", "between", "in", "notin", "contains"
]


class SortCriteria(BaseModel):
    """One sort clause. Lower priority values sort first."""

    property: str = ""
    # Plain str so invalid directions reach validate_settings() instead of failing here
    direction: str = "desc"
    priority: int = 1
    label: Optional[str] = None


class FilterCriteria(BaseModel):
    property: str = ""
    operator: FilterOperator = "eq"
    value: Any = None
    enabled: bool = True
    label: Optional[str] = None


class ExpansionSettings(BaseModel):
    """How to expand nodes of one entity type.

    Attributes:
        target: Entity type of the node being expanded
        enabled: Whether expansion is allowed for this type
        limit: Maximum related entities to add (0 = one full page)
        sorts: Sort criteria for the related-entity listing
        filters: Extra filters ANDed with the relationship filter
    """

    target: EntityType
    enabled: bool = True
    limit: int = DEFAULT_EXPANSION_LIMIT
    sorts: list[SortCriteria] = Field(default_factory=list)
    filters: list[FilterCriteria] = Field(default_factory=list)


def default_expansion_settings(entity_type: EntityType) -> ExpansionSettings:
    """Defaults: limit 10, newest first when the related entities are works."""
    sorts = []
    if EXPANSION_RULES[entity_type].related_type == EntityType.WORKS:
        sorts.append(SortCriteria(property="publication_year", direction="desc", priority=1))
    return ExpansionSettings(target=entity_type, sorts=sorts)


class ExpansionSettingsRegistry:
    """Holds per-type overrides, falling back to defaults."""

    def __init__(self, overrides: Optional[list[ExpansionSettings]] = None):
        self._settings: dict[EntityType, ExpansionSettings] = {}
        for settings in overrides or []:
            self.set(settings)

    def get(self, entity_type: EntityType) -> ExpansionSettings:
        return self._settings.get(entity_type) or default_expansion_settings(entity_type)

    def set(self, settings: ExpansionSettings) -> None:
        self._settings[settings.target] = settings

    def reset(self, entity_type: Optional[EntityType] = None) -> None:
        if entity_type is None:
            self._settings.clear()
        else:
            self._settings.pop(entity_type, None)
