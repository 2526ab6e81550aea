"""Errors raised by the OpenAlex provider layer."""

from typing import Any


class OpenAlexError(Exception):
    """Base class for OpenAlex provider errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class EntityFetchError(OpenAlexError):
    """Network or API failure while fetching an entity or a listing."""


class UnresolvableIdentifierError(OpenAlexError):
    """Input cannot be mapped to a known entity type."""

    def __init__(self, identifier: str):
        super().__init__(
            f"Cannot detect entity type for ID: {identifier}",
            {"identifier": identifier},
        )


class MalformedEntityError(OpenAlexError):
    """Payload has no usable OpenAlex id."""

    def __init__(self, message: str, payload_keys: list[str] | None = None):
        super().__init__(message, {"payload_keys": payload_keys or []})
