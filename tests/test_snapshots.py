"""Tests for SnapshotManager — capture, listing, diff, retention."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from intelgraph.exceptions import InvalidArgumentError, NotFoundError
from intelgraph.graph import AnalyticsEngine
from intelgraph.snapshots import SnapshotManager
from intelgraph.store import EdgePatch, NodePatch
from intelgraph.types import Actor, ActorType, AuditEventType, EntityKind

if TYPE_CHECKING:
    from intelgraph.audit import AuditLog
    from intelgraph.config import GraphConfig
    from intelgraph.graph import GraphViews
    from intelgraph.store import Database, GraphStore

T1 = "tenant-1"


@pytest.fixture
def snapshots(
    views: GraphViews, db: Database, audit: AuditLog, config: GraphConfig
) -> SnapshotManager:
    return SnapshotManager(views, db, audit, config)


@pytest.fixture
async def small_graph(store: GraphStore):
    a = await store.create_node(T1, "person", "Ada", {"role": "author"})
    b = await store.create_node(T1, "article", "Notes")
    edge = await store.create_edge(T1, "authored", a.id, b.id)
    return a, b, edge


# ======================================================================
# Capture and reads
# ======================================================================


class TestCreateSnapshot:
    @pytest.mark.asyncio
    async def test_counts_and_stats(self, snapshots: SnapshotManager, small_graph):
        info = await snapshots.create_snapshot(T1, "baseline")
        assert info.tenant_id == T1
        assert info.label == "baseline"
        assert info.node_count == 2
        assert info.edge_count == 1
        assert info.stats["cluster_count"] == 1
        assert info.stats["nodes_by_type"] == {"article": 1, "person": 1}

    @pytest.mark.asyncio
    async def test_graph_round_trip(self, snapshots: SnapshotManager, small_graph):
        a, b, edge = small_graph
        info = await snapshots.create_snapshot(T1)
        captured = await snapshots.load_snapshot_graph(T1, info.id)
        assert [n.id for n in captured.nodes] == [a.id, b.id]
        assert captured.nodes[0].properties["role"] == "author"
        assert [e.id for e in captured.edges] == [edge.id]
        assert captured.info.id == info.id

    @pytest.mark.asyncio
    async def test_snapshot_is_frozen(
        self, snapshots: SnapshotManager, store: GraphStore, small_graph
    ):
        a, _, _ = small_graph
        info = await snapshots.create_snapshot(T1)
        await store.update_node(T1, a.id, NodePatch(label="Countess"))
        await store.create_node(T1, "topic", "Engines")
        captured = await snapshots.load_snapshot_graph(T1, info.id)
        assert len(captured.nodes) == 2
        assert captured.nodes[0].label == "Ada"

    @pytest.mark.asyncio
    async def test_empty_tenant(self, snapshots: SnapshotManager):
        info = await snapshots.create_snapshot(T1)
        assert info.node_count == 0
        assert info.edge_count == 0
        captured = await snapshots.load_snapshot_graph(T1, info.id)
        assert captured.nodes == ()

    @pytest.mark.asyncio
    async def test_audited(self, snapshots: SnapshotManager, audit: AuditLog, small_graph):
        actor = Actor(ActorType.USER, "analyst-1")
        info = await snapshots.create_snapshot(T1, "weekly", actor=actor)
        entry = (await audit.list_entries(T1, event_type=AuditEventType.SNAPSHOTTED))[0]
        assert entry.target_id == info.id
        assert entry.target_kind is EntityKind.SNAPSHOT
        assert entry.actor_id == "analyst-1"
        assert entry.new_state == {"label": "weekly", "node_count": 2, "edge_count": 1}

    @pytest.mark.asyncio
    async def test_get_and_list(self, snapshots: SnapshotManager, small_graph):
        first = await snapshots.create_snapshot(T1, "one")
        second = await snapshots.create_snapshot(T1, "two")
        assert (await snapshots.get_snapshot(T1, first.id)).label == "one"
        listed = await snapshots.list_snapshots(T1)
        assert [s.id for s in listed] == [second.id, first.id]
        assert [s.id for s in await snapshots.list_snapshots(T1, limit=1, offset=1)] == [first.id]

    @pytest.mark.asyncio
    async def test_other_tenant_cannot_read(self, snapshots: SnapshotManager, small_graph):
        info = await snapshots.create_snapshot(T1)
        with pytest.raises(NotFoundError):
            await snapshots.get_snapshot("tenant-2", info.id)
        with pytest.raises(NotFoundError):
            await snapshots.load_snapshot_graph("tenant-2", info.id)
        assert await snapshots.list_snapshots("tenant-2") == []


# ======================================================================
# Diff
# ======================================================================


class TestDiff:
    @pytest.mark.asyncio
    async def test_same_snapshot_is_empty(self, snapshots: SnapshotManager, small_graph):
        info = await snapshots.create_snapshot(T1)
        diff = await snapshots.diff(T1, info.id, info.id)
        assert diff.is_empty

    @pytest.mark.asyncio
    async def test_consecutive_unchanged_snapshots(self, snapshots: SnapshotManager, small_graph):
        a = await snapshots.create_snapshot(T1)
        b = await snapshots.create_snapshot(T1)
        assert (await snapshots.diff(T1, a.id, b.id)).is_empty

    @pytest.mark.asyncio
    async def test_added_removed_modified(
        self, snapshots: SnapshotManager, store: GraphStore, small_graph
    ):
        a, b, edge = small_graph
        before = await snapshots.create_snapshot(T1)

        c = await store.create_node(T1, "topic", "Engines")
        new_edge = await store.create_edge(T1, "covers", b.id, c.id)
        await store.update_node(T1, a.id, NodePatch(properties={"role": "mathematician"}))
        await store.update_edge(T1, edge.id, EdgePatch(weight=4.0))
        after = await snapshots.create_snapshot(T1)

        diff = await snapshots.diff(T1, before.id, after.id)
        assert diff.added_nodes == (c.id,)
        assert diff.removed_nodes == ()
        assert diff.modified_nodes == (a.id,)
        assert diff.added_edges == (new_edge.id,)
        assert diff.modified_edges == (edge.id,)

        reverse = await snapshots.diff(T1, after.id, before.id)
        assert reverse.removed_nodes == (c.id,)
        assert reverse.removed_edges == (new_edge.id,)

    @pytest.mark.asyncio
    async def test_delete_shows_as_removed(
        self, snapshots: SnapshotManager, store: GraphStore, small_graph
    ):
        _, b, edge = small_graph
        before = await snapshots.create_snapshot(T1)
        await store.delete_node(T1, b.id)
        after = await snapshots.create_snapshot(T1)
        diff = await snapshots.diff(T1, before.id, after.id)
        assert diff.removed_nodes == (b.id,)
        assert diff.removed_edges == (edge.id,)
        assert diff.to_dict()["removed_nodes"] == [b.id]

    @pytest.mark.asyncio
    async def test_analytics_fields_ignored(
        self,
        snapshots: SnapshotManager,
        views: GraphViews,
        db: Database,
        audit: AuditLog,
        config: GraphConfig,
        small_graph,
    ):
        before = await snapshots.create_snapshot(T1)
        await AnalyticsEngine(views, db, audit, config).compute_centrality(T1)
        after = await snapshots.create_snapshot(T1)
        assert (await snapshots.diff(T1, before.id, after.id)).is_empty

    @pytest.mark.asyncio
    async def test_missing_snapshot(self, snapshots: SnapshotManager, small_graph):
        info = await snapshots.create_snapshot(T1)
        with pytest.raises(NotFoundError):
            await snapshots.diff(T1, info.id, "ghost")


# ======================================================================
# Retention
# ======================================================================


class TestRetention:
    @pytest.mark.asyncio
    async def test_delete_snapshot(self, snapshots: SnapshotManager, audit: AuditLog):
        info = await snapshots.create_snapshot(T1)
        assert await snapshots.delete_snapshot(T1, info.id) is True
        assert await snapshots.delete_snapshot(T1, info.id) is False
        with pytest.raises(NotFoundError):
            await snapshots.get_snapshot(T1, info.id)
        entry = (await audit.list_entries(T1, event_type=AuditEventType.DELETED))[0]
        assert entry.target_kind is EntityKind.SNAPSHOT
        assert entry.previous_state["id"] == info.id

    @pytest.mark.asyncio
    async def test_delete_other_tenant(self, snapshots: SnapshotManager):
        info = await snapshots.create_snapshot(T1)
        assert await snapshots.delete_snapshot("tenant-2", info.id) is False
        assert (await snapshots.get_snapshot(T1, info.id)).id == info.id

    @pytest.mark.asyncio
    async def test_prune_keeps_newest(self, snapshots: SnapshotManager, audit: AuditLog):
        infos = [await snapshots.create_snapshot(T1, f"s{i}") for i in range(4)]
        deleted = await snapshots.prune_snapshots(T1, 2)
        assert deleted == [infos[1].id, infos[0].id]
        assert [s.label for s in await snapshots.list_snapshots(T1)] == ["s3", "s2"]

        entries = await audit.list_entries(T1, event_type=AuditEventType.DELETED)
        assert len(entries) == 2
        assert all(e.actor_type is ActorType.SYSTEM for e in entries)
        assert entries[0].metadata == {"operation": "prune_snapshots", "keep_last": 2}

    @pytest.mark.asyncio
    async def test_prune_nothing_to_do(self, snapshots: SnapshotManager):
        await snapshots.create_snapshot(T1)
        assert await snapshots.prune_snapshots(T1, 5) == []

    @pytest.mark.asyncio
    async def test_prune_negative(self, snapshots: SnapshotManager):
        with pytest.raises(InvalidArgumentError):
            await snapshots.prune_snapshots(T1, -1)
