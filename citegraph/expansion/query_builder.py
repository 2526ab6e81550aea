"""Compile expansion settings into OpenAlex list query parameters.

Sorts become `property:direction` clauses ordered by priority; filters
become OpenAlex filter clauses, one per enabled criterion:

    eq       property:value          between  property:min-max
    ne       property:!value         in       property:a|b
    gt/lt    property:>value         notin    property:!a|b
    gte/lte  property:>=value        contains property:value

String values have `,`, `:` and `|` backslash-escaped.
"""

import logging
from datetime import date
from typing import Any, Iterable, Optional, Sequence

from .settings import (
    MAX_EXPANSION_LIMIT,
    ExpansionSettings,
    FilterCriteria,
    SortCriteria,
)

logger = logging.getLogger(__name__)

PER_PAGE = 200

_PREFIXES = {
    "eq": "",
    "contains": "",
    "ne": "!",
    "gt": ">",
    "lt": "<",
    "gte": ">=",
    "lte": "<=",
}


def format_filter_value(value: Any) -> str:
    """Render one filter value: escaped strings, true/false, years for dates."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, date):
        return str(value.year)
    if isinstance(value, str):
        return value.replace(",", "\\,").replace(":", "\\:").replace("|", "\\|")
    return str(value)


def _is_pair(value: Any) -> bool:
    return isinstance(value, (list, tuple)) and len(value) == 2


def build_filter_clause(criteria: FilterCriteria) -> Optional[str]:
    """One filter clause, or None if the criterion doesn't contribute."""
    if not criteria.enabled or not criteria.property:
        return None

    prop, operator, value = criteria.property, criteria.operator, criteria.value

    if operator == "between":
        if not _is_pair(value):
            logger.warning(f"Skipping between filter on {prop}: needs a [min, max] pair")
            return None
        low, high = value
        return f"{prop}:{format_filter_value(low)}-{format_filter_value(high)}"

    if operator in ("in", "notin"):
        values = value if isinstance(value, (list, tuple)) else [value]
        joined = "|".join(format_filter_value(v) for v in values)
        return f"{prop}:{'!' if operator == 'notin' else ''}{joined}"

    return f"{prop}:{_PREFIXES[operator]}{format_filter_value(value)}"


def build_sort_string(sorts: Iterable[SortCriteria]) -> Optional[str]:
    clauses = [
        f"{sort.property}:{sort.direction}"
        for sort in sorted(sorts, key=lambda s: s.priority)
        if sort.property
    ]
    return ",".join(clauses) or None


def build_filter_string(filters: Iterable[FilterCriteria]) -> Optional[str]:
    clauses = [clause for clause in map(build_filter_clause, filters) if clause]
    return ",".join(clauses) or None


def build_query_params(
    settings: ExpansionSettings,
    select: Optional[Sequence[str]] = None,
) -> dict[str, Any]:
    """Query params for a related-entity listing.

    Always requests a full page (per_page=200); callers narrow it to a limit.
    """
    params: dict[str, Any] = {"per_page": PER_PAGE}
    if select:
        params["select"] = ",".join(select)

    sort = build_sort_string(settings.sorts)
    if sort:
        params["sort"] = sort

    filters = build_filter_string(settings.filters)
    if filters:
        params["filter"] = filters

    return params


def merge_filters(
    base: Optional[str],
    additional: Iterable[FilterCriteria],
) -> Optional[str]:
    """AND a pre-built filter string with extra criteria."""
    parts = [part for part in (base, build_filter_string(additional)) if part]
    return ",".join(parts) or None


def with_additional_filters(
    settings: ExpansionSettings,
    filters: Sequence[FilterCriteria],
) -> ExpansionSettings:
    return settings.model_copy(update={"filters": [*settings.filters, *filters]})


def with_fallback_sort(settings: ExpansionSettings, sort: SortCriteria) -> ExpansionSettings:
    """Use `sort` only if the settings have no sorts of their own."""
    if settings.sorts:
        return settings
    return settings.model_copy(update={"sorts": [sort]})


def validate_settings(settings: ExpansionSettings) -> list[str]:
    """Check settings for problems.

    Returns:
        Error messages; empty when the settings are valid
    """
    errors = []

    if settings.limit < 0:
        errors.append("Limit must be 0 (unlimited) or greater")
    elif settings.limit > MAX_EXPANSION_LIMIT:
        errors.append(f"Limit cannot exceed {MAX_EXPANSION_LIMIT} for performance reasons")

    seen_properties = set()
    for sort in settings.sorts:
        if not sort.property:
            errors.append("Sort criteria must have a property")
        if sort.direction not in ("asc", "desc"):
            errors.append(f"Invalid sort direction: {sort.direction}")
        if sort.priority < 1:
            errors.append("Sort priority must be 1 or greater")
        if sort.property and sort.property in seen_properties:
            errors.append("Duplicate sort properties are not allowed")
        seen_properties.add(sort.property)

    for criteria in settings.filters:
        if not criteria.property:
            errors.append("Filter criteria must have a property")
        if criteria.operator == "between" and not _is_pair(criteria.value):
            errors.append("Between filter must have exactly 2 values")
        if criteria.operator in ("in", "notin") and not isinstance(
            criteria.value, (list, tuple, str, int, float)
        ):
            errors.append(
                f"Filter operator {criteria.operator} requires array, string, or number value"
            )

    return errors


def get_query_preview(settings: ExpansionSettings) -> str:
    """Human-readable query string, e.g. ?per_page=200&sort=cited_by_count:desc."""
    params = build_query_params(settings)
    return "?" + "&".join(f"{key}={value}" for key, value in params.items())
