"""Expansion settings, rules and the query compiler."""

from .query_builder import (
    build_filter_clause,
    build_filter_string,
    build_query_params,
    build_sort_string,
    format_filter_value,
    get_query_preview,
    merge_filters,
    validate_settings,
    with_additional_filters,
    with_fallback_sort,
)
from .rules import EXPANSION_RULES, ExpansionRule
from .settings import (
    DEFAULT_EXPANSION_LIMIT,
    ExpansionSettings,
    ExpansionSettingsRegistry,
    FilterCriteria,
    SortCriteria,
    default_expansion_settings,
)

__all__ = [
    "build_filter_clause",
    "build_filter_string",
    "build_query_params",
    "build_sort_string",
    "format_filter_value",
    "get_query_preview",
    "merge_filters",
    "validate_settings",
    "with_additional_filters",
    "with_fallback_sort",
    "EXPANSION_RULES",
    "ExpansionRule",
    "DEFAULT_EXPANSION_LIMIT",
    "ExpansionSettings",
    "ExpansionSettingsRegistry",
    "FilterCriteria",
    "SortCriteria",
    "default_expansion_settings",
]
