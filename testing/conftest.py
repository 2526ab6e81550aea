"""
Pytest configuration for graph engine tests.

Provides the per-module logging run plus fixtures for the in-memory graph
store, a scripted provider and a deduplicator. No test touches the network.

Usage:
    pytest testing/
    pytest testing/test_deduplication.py -v
"""

import os
from collections.abc import Generator

import pytest

from citegraph import FetchDeduplicator, GraphEvent, GraphMaterializer, InMemoryGraphStore
from core.logging import end_run, start_run
from testing.utils import FakeProvider


@pytest.fixture(autouse=True)
def logging_run(request: pytest.FixtureRequest, monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """One logging run per test module, so each module's logs rotate once.

    Under pytest-xdist every worker logs to its own directory.
    """
    worker_id = os.environ.get("PYTEST_XDIST_WORKER")
    if worker_id:
        monkeypatch.setenv("CITEGRAPH_LOG_DIR", f"logs/test-{worker_id}")

    # "testing/test_materializer.py::TestX::test_y" -> "test-testing-test_materializer"
    module_path = request.node.nodeid.split("::", 1)[0]
    start_run("test-" + module_path.removesuffix(".py").replace("/", "-"))
    yield
    end_run()


@pytest.fixture
def store() -> InMemoryGraphStore:
    return InMemoryGraphStore()


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def dedup() -> FetchDeduplicator:
    return FetchDeduplicator(maxsize=100, ttl=60)


@pytest.fixture
def events() -> list[GraphEvent]:
    """Recorder usable as an event sink via `events.append`."""
    return []


@pytest.fixture
def materializer(store, provider, dedup, events) -> GraphMaterializer:
    """Materializer with no pacing delays."""
    return GraphMaterializer(
        store,
        provider=provider,
        deduplicator=dedup,
        event_sink=events.append,
        node_delay=0,
        batch_pause=0,
    )


def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line(
        "markers",
        "slow: marks tests as slow (run with --runslow)",
    )
    config.addinivalue_line(
        "markers",
        "integration: marks tests as integration tests requiring external services",
    )
