"""Errors raised by the graph engine."""

from typing import Any

from core.openalex import (
    EntityFetchError,
    MalformedEntityError,
    OpenAlexError,
    UnresolvableIdentifierError,
)


class GraphError(Exception):
    """Base class for graph engine errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class NodeNotFoundError(GraphError):
    """Operation addressed a node that is not in the store."""

    def __init__(self, node_id: str):
        super().__init__(
            f"Node not found in graph: {node_id}",
            {"node_id": node_id},
        )


class InvalidExpansionSettingsError(GraphError):
    """Expansion settings failed validation."""

    def __init__(self, target: str, errors: list[str]):
        super().__init__(
            f"Invalid expansion settings for {target}: {'; '.join(errors)}",
            {"target": target, "errors": errors},
        )


__all__ = [
    "GraphError",
    "NodeNotFoundError",
    "InvalidExpansionSettingsError",
    "OpenAlexError",
    "EntityFetchError",
    "MalformedEntityError",
    "UnresolvableIdentifierError",
]
