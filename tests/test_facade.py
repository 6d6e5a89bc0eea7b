"""End-to-end tests through IntelGraphAsync."""

from __future__ import annotations

import pytest
from conftest import FakeProvider

from intelgraph import (
    AuditEventType,
    Direction,
    EdgePatch,
    IntelGraphAsync,
    NodePatch,
    NodeType,
    NotFoundError,
)

TENANT = "acme"


async def _newsroom(g: IntelGraphAsync):
    ada = await g.create_node(TENANT, "journalist", "Ada Lovelace", {"beat": "semiconductors"})
    notes = await g.create_node(TENANT, "article", "Semiconductor export controls")
    daily = await g.create_node(TENANT, "publication", "Coffee harvest daily")
    await g.create_edge(TENANT, "authored", ada.id, notes.id)
    await g.create_edge(TENANT, "belongs_to", notes.id, daily.id, weight=0.5)
    return ada, notes, daily


# ==================================================================
# Lifecycle
# ==================================================================


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_context_manager_in_memory(self):
        async with IntelGraphAsync() as g:
            node = await g.create_node(TENANT, "topic", "Chips")
            assert (await g.get_node(TENANT, node.id)).label == "Chips"
            assert not g.search.enabled

    @pytest.mark.asyncio
    async def test_open_and_close_are_idempotent(self):
        g = IntelGraphAsync("sqlite+aiosqlite:///:memory:")
        await g.open()
        await g.open()
        await g.close()
        await g.close()

    @pytest.mark.asyncio
    async def test_search_handlers_registered_with_provider(self, graph):
        assert graph.search.enabled
        assert graph.events.handler_count == 4

    @pytest.mark.asyncio
    async def test_no_handlers_without_provider(self, graph_no_search):
        assert graph_no_search.events.handler_count == 0

    @pytest.mark.asyncio
    async def test_properties(self, graph, config):
        assert graph.config is config
        assert graph.store is not None
        assert graph.traversal is not None
        assert graph.analytics is not None
        assert graph.snapshots is not None
        assert graph.audit is not None
        assert graph.schemas is not None
        assert graph.db is not None


# ==================================================================
# CRUD
# ==================================================================


class TestCrud:
    @pytest.mark.asyncio
    async def test_node_round_trip(self, graph):
        ada, notes, _ = await _newsroom(graph)

        nodes = await graph.list_nodes(TENANT, node_types=[NodeType.JOURNALIST])
        assert [n.id for n in nodes] == [ada.id]

        updated = await graph.update_node(TENANT, ada.id, NodePatch(label="Ada King"))
        assert updated.label == "Ada King"
        assert updated.properties["beat"] == "semiconductors"

        view = await graph.get_node_with_connections(TENANT, ada.id)
        assert [e.target_node_id for e in view.outgoing] == [notes.id]
        assert view.neighbors[notes.id].label == "Semiconductor export controls"

    @pytest.mark.asyncio
    async def test_edge_round_trip(self, graph):
        ada, notes, daily = await _newsroom(graph)

        edges = await graph.list_edges(TENANT, min_weight=0.75)
        assert len(edges) == 1
        edge = edges[0]
        assert edge.source_node_id == ada.id

        patched = await graph.update_edge(TENANT, edge.id, EdgePatch(weight=0.25))
        assert patched.weight == 0.25
        full = await graph.get_edge_with_nodes(TENANT, edge.id)
        assert (full.source.id, full.target.id) == (ada.id, notes.id)
        assert len(await graph.find_edges_by_node(TENANT, notes.id, "both")) == 2
        assert len(await graph.find_edges_by_node(TENANT, daily.id, "outbound")) == 0

    @pytest.mark.asyncio
    async def test_upserts(self, graph):
        first = await graph.upsert_node(TENANT, "topic", "crm-1", "Chips")
        second = await graph.upsert_node(TENANT, "topic", "crm-1", "Chips and wafers")
        assert first.id == second.id
        assert second.label == "Chips and wafers"

        other = await graph.create_node(TENANT, "topic", "Fabs")
        edge = await graph.upsert_edge(TENANT, "related_to", "crm-e1", first.id, other.id)
        again = await graph.upsert_edge(
            TENANT, "related_to", "crm-e1", first.id, other.id, weight=0.5
        )
        assert edge.id == again.id
        assert again.weight == 0.5

    @pytest.mark.asyncio
    async def test_delete_node_cascades(self, graph):
        ada, notes, _ = await _newsroom(graph)
        assert await graph.delete_node(TENANT, notes.id) is True
        with pytest.raises(NotFoundError):
            await graph.get_node(TENANT, notes.id)
        assert await graph.list_edges(TENANT) == []
        assert await graph.delete_node(TENANT, notes.id) is False
        assert (await graph.get_node(TENANT, ada.id)).id == ada.id

    @pytest.mark.asyncio
    async def test_merge(self, graph):
        ada, notes, _ = await _newsroom(graph)
        dup = await graph.create_node(TENANT, "journalist", "A. Lovelace", {"desk": "tech"})
        await graph.create_edge(TENANT, "authored", dup.id, notes.id)

        preview = await graph.preview_merge(TENANT, ada.id, [dup.id])
        assert preview.merged_properties["desk"] == "tech"

        result = await graph.merge_nodes(TENANT, ada.id, [dup.id])
        assert result.merged_node_ids == (dup.id,)
        assert result.node.properties["desk"] == "tech"
        with pytest.raises(NotFoundError):
            await graph.get_node(TENANT, dup.id)


# ==================================================================
# Traversal and analytics
# ==================================================================


class TestGraphQueries:
    @pytest.mark.asyncio
    async def test_traverse_and_path(self, graph):
        ada, notes, daily = await _newsroom(graph)

        hits = await graph.traverse(TENANT, ada.id, Direction.OUTBOUND, 2)
        assert [(h.node.id, h.depth) for h in hits] == [(ada.id, 0), (notes.id, 1), (daily.id, 2)]

        path = await graph.find_path(TENANT, daily.id, ada.id, 5)
        assert path is not None
        assert [n.id for n in path.nodes] == [daily.id, notes.id, ada.id]
        assert path.total_weight == 1.5

    @pytest.mark.asyncio
    async def test_traverse_filters(self, graph):
        ada, notes, _ = await _newsroom(graph)
        hits = await graph.traverse(
            TENANT, ada.id, "outbound", 2, node_types=[NodeType.ARTICLE], limit=5
        )
        assert [h.node.id for h in hits] == [ada.id, notes.id]
        hits = await graph.traverse(TENANT, ada.id, "outbound", 2, limit=2)
        assert [h.node.id for h in hits] == [ada.id, notes.id]

    @pytest.mark.asyncio
    async def test_traverse_after_merge_goes_through_primary(self, graph):
        source = await graph.create_node(TENANT, "press_release", "Chip launch")
        primary = await graph.create_node(TENANT, "topic", "Semiconductors")
        dup = await graph.create_node(TENANT, "topic", "Semis")
        await graph.create_edge(TENANT, "mentions", source.id, dup.id)

        await graph.merge_nodes(TENANT, primary.id, [dup.id])

        hits = await graph.traverse(TENANT, source.id, "outbound", 3)
        assert [h.node.id for h in hits] == [source.id, primary.id]
        path = await graph.find_path(TENANT, source.id, primary.id, 3)
        assert path is not None
        assert [n.id for n in path.nodes] == [source.id, primary.id]
        assert dup.id not in {n.id for n in await graph.list_nodes(TENANT)}

    @pytest.mark.asyncio
    async def test_explain_path(self, graph):
        ada, notes, _ = await _newsroom(graph)
        explanation = await graph.explain_path(TENANT, ada.id, notes.id, 3)
        assert explanation is not None
        assert explanation.error_code is None
        assert explanation.explanation == "Ada Lovelace authored Semiconductor export controls"

    @pytest.mark.asyncio
    async def test_analytics(self, graph):
        ada, notes, daily = await _newsroom(graph)

        scores = await graph.compute_centrality(TENANT)
        assert scores[notes.id].degree == 1.0
        assert (await graph.get_node(TENANT, notes.id)).centrality_score == 1.0

        clusters = await graph.detect_clusters(TENANT)
        assert len(clusters) == 1
        assert set(clusters[0].member_ids) == {ada.id, notes.id, daily.id}

        metrics = await graph.compute_metrics(TENANT)
        assert metrics.node_count == 3
        assert metrics.edge_count == 2
        assert metrics.cluster_count == 1


# ==================================================================
# Search, snapshots, audit
# ==================================================================


class TestSearchSnapshotsAudit:
    @pytest.mark.asyncio
    async def test_semantic_search(self, graph):
        _, notes, _ = await _newsroom(graph)
        results = await graph.semantic_search(
            TENANT, "semiconductor export controls", 3, kinds=["node"]
        )
        assert not results.degraded
        assert results.hits[0].entity_id == notes.id

    @pytest.mark.asyncio
    async def test_search_without_provider_is_degraded(self, graph_no_search):
        await graph_no_search.create_node(TENANT, "topic", "Chips")
        results = await graph_no_search.semantic_search(TENANT, "chips")
        assert results.degraded
        assert len(results) == 0

    @pytest.mark.asyncio
    async def test_reembed(self, graph):
        await _newsroom(graph)
        report = await graph.reembed_tenant(TENANT)
        assert report.failed == 0
        assert report.embedded == 0

    @pytest.mark.asyncio
    async def test_snapshots(self, graph):
        ada, _, daily = await _newsroom(graph)
        before = await graph.create_snapshot(TENANT, "before")
        await graph.delete_node(TENANT, daily.id)
        after = await graph.create_snapshot(TENANT, "after")

        assert (await graph.get_snapshot(TENANT, before.id)).node_count == 3
        listed = await graph.list_snapshots(TENANT)
        assert {s.id for s in listed} == {before.id, after.id}

        loaded = await graph.load_snapshot_graph(TENANT, before.id)
        assert ada.id in {n.id for n in loaded.nodes}

        diff = await graph.diff_snapshots(TENANT, before.id, after.id)
        assert diff.removed_nodes == (daily.id,)
        assert len(diff.removed_edges) == 1

        assert await graph.prune_snapshots(TENANT, 1) == [before.id]
        assert await graph.delete_snapshot(TENANT, after.id) is True
        assert await graph.list_snapshots(TENANT) == []

    @pytest.mark.asyncio
    async def test_audit_trail(self, graph):
        ada, _, _ = await _newsroom(graph)
        created = await graph.list_audit_entries(
            TENANT, event_type=AuditEventType.CREATED, target_id=ada.id
        )
        assert len(created) == 1
        assert created[0].new_state["label"] == "Ada Lovelace"

        everything = await graph.list_audit_entries(TENANT, limit=100)
        assert await graph.verify_audit_chain(TENANT) == len(everything)


# ==================================================================
# Shared engine
# ==================================================================


class TestSharedEngine:
    @pytest.mark.asyncio
    async def test_two_facades_share_database(self, async_engine, config):
        async with IntelGraphAsync(async_engine, config=config) as writer:
            node = await writer.create_node(TENANT, "topic", "Chips")
        async with IntelGraphAsync(
            async_engine, config=config, embedding_provider=FakeProvider()
        ) as reader:
            assert (await reader.get_node(TENANT, node.id)).label == "Chips"
