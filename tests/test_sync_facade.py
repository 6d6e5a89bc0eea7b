"""Tests for the synchronous IntelGraph wrapper."""

from __future__ import annotations

import pytest
from conftest import FakeNarrator, FakeProvider

from intelgraph import IntelGraph, IntelGraphAsync, NodePatch, NotFoundError


@pytest.fixture
def sync_graph():
    g = IntelGraph(embedding_provider=FakeProvider(), narrator=FakeNarrator())
    yield g
    g.close()


class TestIntelGraph:
    def test_basic_operations(self, sync_graph):
        a = sync_graph.create_node("t1", "person", "Ada")
        b = sync_graph.create_node("t1", "article", "Notes")
        edge = sync_graph.create_edge("t1", "authored", a.id, b.id)

        assert sync_graph.get_edge("t1", edge.id).source_node_id == a.id
        assert [h.node.id for h in sync_graph.traverse("t1", a.id, "outbound", 1)] == [a.id, b.id]
        filtered = sync_graph.traverse("t1", a.id, "outbound", 1, node_types=["topic"], limit=5)
        assert [h.node.id for h in filtered] == [a.id]
        assert sync_graph.get_edge_with_nodes("t1", edge.id).target.label == "Notes"

        path = sync_graph.find_path("t1", a.id, b.id, 3)
        assert path is not None
        assert [n.label for n in path.nodes] == ["Ada", "Notes"]

        explanation = sync_graph.explain_path("t1", a.id, b.id, 3)
        assert explanation.explanation == "Ada authored Notes"

    def test_update_and_delete(self, sync_graph):
        a = sync_graph.create_node("t1", "topic", "Chips")
        assert sync_graph.update_node("t1", a.id, NodePatch(label="Wafers")).label == "Wafers"
        assert sync_graph.delete_node("t1", a.id) is True
        with pytest.raises(NotFoundError):
            sync_graph.get_node("t1", a.id)

    def test_search_and_audit(self, sync_graph):
        node = sync_graph.create_node("t1", "topic", "Semiconductor supply chain")
        results = sync_graph.semantic_search("t1", "semiconductor supply", 1)
        assert results.hits[0].entity_id == node.id
        assert sync_graph.verify_audit_chain("t1") >= 1

    def test_snapshots(self, sync_graph):
        sync_graph.create_node("t1", "topic", "Chips")
        info = sync_graph.create_snapshot("t1", "first")
        assert sync_graph.get_snapshot("t1", info.id).node_count == 1
        assert [s.id for s in sync_graph.list_snapshots("t1")] == [info.id]

    def test_aio(self, sync_graph):
        assert isinstance(sync_graph.aio, IntelGraphAsync)

    def test_close_idempotent(self):
        g = IntelGraph()
        g.close()
        g.close()

    def test_context_manager(self):
        with IntelGraph() as g:
            node = g.create_node("t1", "topic", "Chips")
            assert g.list_nodes("t1")[0].id == node.id
