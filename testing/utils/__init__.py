"""
Shared testing utilities for graph engine tests.

- fake_provider: scripted in-memory EntityProvider with call recording
- payloads: builders for OpenAlex-shaped JSON payloads
"""

from .fake_provider import FakeProvider, FetchCall
from .payloads import (
    author_payload,
    institution_payload,
    source_payload,
    work_payload,
)

__all__ = [
    "FakeProvider",
    "FetchCall",
    "author_payload",
    "institution_payload",
    "source_payload",
    "work_payload",
]
