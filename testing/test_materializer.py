"""Tests for loading, expanding and hydrating graph nodes."""

import asyncio

import pytest

from citegraph import (
    ExpansionSettings,
    GraphMaterializer,
    HydrationLevel,
    InvalidExpansionSettingsError,
    NodeNotFoundError,
    RelationType,
)
from core.openalex import EntityFetchError, EntityType, UnresolvableIdentifierError
from core.openalex.fields import CREATE_NODE_FIELDS, metadata_fields
from testing.utils import author_payload, source_payload, work_payload

OA = "https://openalex.org/"


def _edge_keys(store):
    return {(edge.source, edge.type, edge.target) for edge in store.get_edges()}


@pytest.fixture
def catalog(provider):
    """W1 by A1 in S1, citing W2 and W3; W3 also cites W2."""
    provider.add(work_payload(
        "W1", title="Primary", authors=("A1",), source="S1",
        references=["W2", "W3"], doi="https://doi.org/10.1234/primary",
    ))
    provider.add(work_payload("W2", references=[]))
    provider.add(work_payload("W3", references=["W2"]))
    provider.add(author_payload("A1", name="Ada"))
    provider.add(source_payload("S1"))
    provider.set_listing(
        EntityType.WORKS,
        "cited_by:W1",
        [provider.payloads[OA + "W2"], provider.payloads[OA + "W3"]],
    )
    return provider


class TestLoadEntityGraph:
    async def test_loads_single_full_node(self, materializer, store, catalog):
        node = await materializer.load_entity_graph("W1")

        assert node.id == OA + "W1"
        assert node.label == "Primary"
        assert node.hydration_level == HydrationLevel.FULL
        assert node.metadata.depth == 0
        assert [n.id for n in store.get_nodes()] == [OA + "W1"]
        assert store.get_edges() == []

    async def test_external_ids(self, materializer, catalog):
        node = await materializer.load_entity_graph("W1")

        assert [(ext.type, ext.value, ext.url) for ext in node.external_ids] == [
            ("doi", "10.1234/primary", "https://doi.org/10.1234/primary")
        ]

    async def test_load_by_doi(self, materializer, catalog):
        node = await materializer.load_entity_graph("https://doi.org/10.1234/primary")

        assert node.id == OA + "W1"

    async def test_replaces_existing_graph(self, materializer, store, catalog):
        materializer.create_minimal_node("W9")

        await materializer.load_entity_graph("W1")

        assert not store.has_node(OA + "W9")

    async def test_unresolvable_id_changes_nothing(self, materializer, store, catalog):
        materializer.create_minimal_node("W9")

        with pytest.raises(UnresolvableIdentifierError):
            await materializer.load_entity_graph("definitely not an id")

        assert store.has_node(OA + "W9")
        assert catalog.fetch_calls == []

    async def test_fetch_failure_keeps_graph(self, materializer, store, catalog):
        materializer.create_minimal_node("W9")
        catalog.fail("W1")

        with pytest.raises(EntityFetchError):
            await materializer.load_entity_graph("W1")

        assert store.has_node(OA + "W9")

    async def test_emits_events(self, materializer, events, catalog):
        await materializer.load_entity_graph("W1")

        messages = [(event.category, event.message) for event in events]
        assert ("graph", "load started") in messages
        assert ("graph", "load complete") in messages


class TestLoadIntoGraph:
    async def test_adds_with_edges_to_existing_nodes(self, materializer, store, catalog):
        await materializer.load_entity_graph("W2")

        node = await materializer.load_entity_into_graph("W1")

        assert node.hydration_level == HydrationLevel.FULL
        assert store.has_node(OA + "W2")
        assert (OA + "W1", RelationType.REFERENCES, OA + "W2") in _edge_keys(store)

    async def test_existing_node_is_returned(self, materializer, catalog):
        await materializer.load_entity_graph("W1")
        calls = len(catalog.fetch_calls)

        node = await materializer.load_entity_into_graph("https://openalex.org/W1")

        assert node.id == OA + "W1"
        assert len(catalog.fetch_calls) == calls

    async def test_existing_minimal_node_is_hydrated(self, materializer, catalog):
        materializer.create_minimal_node("W2")

        node = await materializer.load_entity_into_graph("W2")

        assert node.hydration_level == HydrationLevel.FULL


class TestExpandNode:
    async def test_expand_work(self, materializer, store, catalog):
        await materializer.load_entity_graph("W1")

        result = await materializer.expand_node(OA + "W1")

        assert set(result.added_node_ids) == {OA + "W2", OA + "W3", OA + "A1", OA + "S1"}
        assert result.added_edges == 4
        assert {
            (OA + "W1", RelationType.REFERENCES, OA + "W2"),
            (OA + "W1", RelationType.REFERENCES, OA + "W3"),
            (OA + "A1", RelationType.AUTHORED, OA + "W1"),
            (OA + "W1", RelationType.PUBLISHED_IN, OA + "S1"),
            (OA + "W3", RelationType.REFERENCES, OA + "W2"),
        } <= _edge_keys(store)
        assert store.is_expanded(OA + "W1")
        assert all(store.get_node(node_id).is_minimal for node_id in result.added_node_ids)

    async def test_listing_query(self, materializer, catalog):
        await materializer.load_entity_graph("W1")

        await materializer.expand_node(OA + "W1")

        entity_type, params = catalog.list_calls[0]
        assert entity_type == EntityType.WORKS
        assert params["filter"] == "cited_by:W1"
        assert params["sort"] == "publication_year:desc"
        assert params["per_page"] == 10
        assert params["select"] == ",".join(CREATE_NODE_FIELDS[EntityType.WORKS])

    async def test_limit_override(self, materializer, store, catalog):
        await materializer.load_entity_graph("W1")

        await materializer.expand_node(OA + "W1", limit=1)

        assert store.has_node(OA + "W2")
        assert not store.has_node(OA + "W3")

    async def test_already_expanded_only_redetects(self, materializer, catalog):
        await materializer.load_entity_graph("W1")
        await materializer.expand_node(OA + "W1")

        result = await materializer.expand_node(OA + "W1")

        assert result.skipped
        assert len(catalog.list_calls) == 1

    async def test_force_refetches(self, materializer, store, catalog):
        await materializer.load_entity_graph("W1")
        await materializer.expand_node(OA + "W1")
        edges = len(store.get_edges())

        result = await materializer.expand_node(OA + "W1", force=True)

        assert not result.skipped
        assert result.added_node_ids == []
        assert len(catalog.list_calls) == 2
        assert len(store.get_edges()) == edges

    async def test_expand_author(self, materializer, store, catalog):
        catalog.set_listing(EntityType.WORKS, "author.id:A1", [catalog.payloads[OA + "W1"]])
        await materializer.load_entity_graph("A1")

        await materializer.expand_node(OA + "A1")

        assert _edge_keys(store) == {(OA + "A1", RelationType.AUTHORED, OA + "W1")}

    async def test_invalid_settings_rejected_before_fetch(self, materializer, catalog):
        await materializer.load_entity_graph("W1")
        materializer.settings.set(ExpansionSettings(target=EntityType.WORKS, limit=-1))

        with pytest.raises(InvalidExpansionSettingsError):
            await materializer.expand_node(OA + "W1")

        assert catalog.list_calls == []

    async def test_listing_failure_marks_node(self, materializer, store, catalog):
        await materializer.load_entity_graph("W1")
        catalog.failing_listings.add(EntityType.WORKS)

        with pytest.raises(EntityFetchError):
            await materializer.expand_node(OA + "W1")

        node = store.get_node(OA + "W1")
        assert node.metadata.error
        assert not node.metadata.expanded

    async def test_unknown_node(self, materializer):
        with pytest.raises(NodeNotFoundError):
            await materializer.expand_node(OA + "W404")

    async def test_depth_expands_new_nodes(self, materializer, store, catalog):
        await materializer.load_entity_graph("W1")

        result = await materializer.expand_node(OA + "W1", depth=2)

        assert all(store.is_expanded(node_id) for node_id in result.added_node_ids)

    async def test_expand_all_of_type_skips_failures(self, materializer, store, catalog):
        await materializer.load_entity_graph("W1")
        await materializer.expand_node(OA + "W1")
        materializer.create_minimal_node("W9")
        catalog.fail("W9")

        results = await materializer.expand_all_nodes_of_type(EntityType.WORKS)

        assert {result.node_id for result in results} == {OA + "W2", OA + "W3"}
        assert store.get_node(OA + "W9").metadata.error


class TestHydration:
    def test_batch_size_must_be_positive(self, store, provider):
        with pytest.raises(ValueError):
            GraphMaterializer(store, provider=provider, batch_size=0)

    async def test_minimal_to_full(self, materializer, store, catalog):
        node = materializer.create_minimal_node("W2")
        assert node.label == OA + "W2"

        hydrated = await materializer.hydrate_node_to_full(OA + "W2")

        assert hydrated.hydration_level == HydrationLevel.FULL
        assert hydrated.label == "Work W2"
        assert hydrated.entity_data["title"] == "Work W2"
        assert catalog.fetch_calls[0].select == tuple(metadata_fields(EntityType.WORKS))

    async def test_hydration_does_not_answer_full_load(self, materializer, catalog):
        catalog.add(work_payload(
            "W1", title="Primary", authors=("A1",), source="S1",
            references=["W2", "W3"], abstract_inverted_index={"Graphs": [0]},
        ))
        materializer.create_minimal_node("W1")
        await materializer.hydrate_node_to_full(OA + "W1")

        node = await materializer.load_entity_graph("W1")

        assert "abstract_inverted_index" in node.entity_data
        assert [call.select for call in catalog.calls_for("W1")] == [
            tuple(metadata_fields(EntityType.WORKS)),
            None,
        ]

    async def test_full_node_left_alone(self, materializer, catalog):
        await materializer.load_entity_graph("W1")
        calls = len(catalog.fetch_calls)

        await materializer.hydrate_node_to_full(OA + "W1")

        assert len(catalog.fetch_calls) == calls

    async def test_failure_marks_error_then_recovers(self, materializer, store, catalog):
        materializer.create_minimal_node("W2")
        catalog.fail("W2")

        with pytest.raises(EntityFetchError):
            await materializer.hydrate_node_to_full(OA + "W2")

        node = store.get_node(OA + "W2")
        assert node.metadata.error
        assert node.is_minimal

        catalog.failing.clear()
        node = await materializer.hydrate_node_to_full(OA + "W2")
        assert node.hydration_level == HydrationLevel.FULL
        assert node.metadata.error is None

    async def test_force_refetches(self, materializer, catalog):
        materializer.create_minimal_node("W2")
        await materializer.hydrate_node(OA + "W2")
        await materializer.hydrate_node(OA + "W2")
        assert len(catalog.calls_for("W2")) == 1

        await materializer.hydrate_node(OA + "W2", force=True)
        assert len(catalog.calls_for("W2")) == 2

    async def test_concurrent_hydrations_share_one_fetch(self, materializer, catalog):
        catalog.delay = 0.01
        materializer.create_minimal_node("W2")

        nodes = await asyncio.gather(
            *(materializer.hydrate_node_to_full(OA + "W2") for _ in range(3))
        )

        assert len(catalog.calls_for("W2")) == 1
        assert all(node.hydration_level == HydrationLevel.FULL for node in nodes)

    async def test_node_removed_mid_fetch(self, materializer, store, catalog):
        catalog.delay = 0.05
        materializer.create_minimal_node("W2")

        task = asyncio.ensure_future(materializer.hydrate_node_to_full(OA + "W2"))
        await asyncio.sleep(0.01)
        store.clear()

        assert await task is None
        assert store.get_nodes() == []

    async def test_paced_sweep_tolerates_failures(self, materializer, store, catalog):
        for short in ("W2", "W3", "A1"):
            materializer.create_minimal_node(short)
        catalog.fail("W3")

        summary = await materializer.hydrate_all_minimal_nodes()

        assert summary.hydrated == [OA + "W2", OA + "A1"]
        assert summary.failed == [OA + "W3"]
        assert [node.id for node in store.get_minimal_nodes()] == [OA + "W3"]

    async def test_immediate_sweep_tolerates_failures(self, materializer, store, catalog):
        for short in ("W2", "W3", "A1"):
            materializer.create_minimal_node(short)
        catalog.fail("W2")

        summary = await materializer.hydrate_all_minimal_nodes_immediate()

        assert summary.hydrated == [OA + "W3", OA + "A1"]
        assert summary.failed == [OA + "W2"]
        assert store.get_node(OA + "A1").label == "Ada"


class TestDetectionAndSearch:
    async def test_detect_for_all_nodes_in_batches(self, materializer, store, catalog):
        for short in ("W1", "W2", "W3"):
            materializer.create_minimal_node(short)

        edges = await materializer.detect_relationships_for_all_nodes(batch_size=2, batch_delay=0)

        assert {(edge.source, edge.target) for edge in edges} == {
            (OA + "W1", OA + "W2"),
            (OA + "W1", OA + "W3"),
            (OA + "W3", OA + "W2"),
        }
        assert len(store.get_edges()) == 3

    async def test_search_lays_out_minimal_nodes(self, materializer, store, catalog):
        catalog.search_results[(EntityType.WORKS, "primary")] = [
            catalog.payloads[OA + "W1"],
            catalog.payloads[OA + "W2"],
        ]
        catalog.search_results[(EntityType.AUTHORS, "primary")] = [catalog.payloads[OA + "A1"]]
        materializer.create_minimal_node("W9")

        stats = await materializer.search_and_visualize(
            "primary", [EntityType.WORKS, EntityType.AUTHORS]
        )

        assert stats.total_results == 3
        assert stats.results_by_type == {"works": 2, "authors": 1}
        assert not store.has_node(OA + "W9")
        assert all(node.is_minimal for node in store.get_nodes())
        author = store.get_node(OA + "A1")
        assert (author.position.x, author.position.y) == (400, 0)
        assert (OA + "A1", RelationType.AUTHORED, OA + "W1") in _edge_keys(store)

    async def test_search_skips_failing_type(self, materializer, catalog):
        catalog.search_results[(EntityType.WORKS, "primary")] = [catalog.payloads[OA + "W1"]]
        catalog.failing_listings.add(EntityType.AUTHORS)

        stats = await materializer.search_and_visualize(
            "primary", [EntityType.AUTHORS, EntityType.WORKS]
        )

        assert stats.results_by_type == {"works": 1}
        assert stats.total_results == 1

    def test_create_minimal_node_infers_type(self, materializer):
        node = materializer.create_minimal_node("https://openalex.org/A1", label="Ada")

        assert node.entity_type == EntityType.AUTHORS
        assert node.label == "Ada"
        assert node.is_minimal
