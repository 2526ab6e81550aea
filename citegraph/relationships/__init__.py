"""Relationship inference between graph nodes."""

from .detector import RelationshipDetector, projection_key
from .projection import (
    CandidateLink,
    MinimalEntityData,
    extract_minimal,
    match_key,
    projection_from_data,
)

__all__ = [
    "RelationshipDetector",
    "projection_key",
    "CandidateLink",
    "MinimalEntityData",
    "extract_minimal",
    "match_key",
    "projection_from_data",
]
