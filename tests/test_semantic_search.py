"""Tests for SemanticSearch — embedding on write, ranking, degradation, staleness."""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING

import pytest
from conftest import FailingProvider, FakeProvider, HangingProvider

from intelgraph import IntelGraphAsync
from intelgraph.cancellation import CancellationToken
from intelgraph.exceptions import InvalidArgumentError, OperationCancelledError
from intelgraph.search import HitKind, IndexOutcome, SearchHit
from intelgraph.store import EdgePatch, NodePatch

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

    from intelgraph.config import GraphConfig

T1 = "tenant-1"
T2 = "tenant-2"


async def _corpus(g: IntelGraphAsync):
    ml = await g.create_node(T1, "topic", "Machine learning research")
    rev = await g.create_node(T1, "board_report", "Quarterly revenue report")
    crisis = await g.create_node(T1, "crisis_event", "Factory fire in Ohio")
    edge = await g.create_edge(T1, "related_to", ml.id, rev.id)
    return ml, rev, crisis, edge


# ======================================================================
# Indexing on write
# ======================================================================


class TestIndexingOnWrite:
    @pytest.mark.asyncio
    async def test_nodes_and_edges_embedded(self, graph: IntelGraphAsync):
        ml, _, _, edge = await _corpus(graph)
        store = graph.search.store
        assert store.has(f"node:{ml.id}", namespace=T1)
        assert store.has(f"edge:{edge.id}", namespace=T1)
        assert store.count(T1) == 4

    @pytest.mark.asyncio
    async def test_unchanged_text_not_reembedded(
        self, graph: IntelGraphAsync, provider: FakeProvider
    ):
        ml, _, _, edge = await _corpus(graph)
        calls = len(provider.calls)
        await graph.update_edge(T1, edge.id, EdgePatch(weight=3.0))
        assert len(provider.calls) == calls
        assert await graph.search.index_node(T1, ml.id) is IndexOutcome.UNCHANGED
        assert len(provider.calls) == calls

    @pytest.mark.asyncio
    async def test_relabel_reembeds(self, graph: IntelGraphAsync, provider: FakeProvider):
        ml, _, _, _ = await _corpus(graph)
        await graph.update_node(T1, ml.id, NodePatch(label="Deep learning research"))
        assert provider.calls[-1].startswith("Deep learning research")

    @pytest.mark.asyncio
    async def test_delete_removes_vectors(self, graph: IntelGraphAsync):
        ml, _, _, edge = await _corpus(graph)
        await graph.delete_node(T1, ml.id)
        store = graph.search.store
        assert not store.has(f"node:{ml.id}", namespace=T1)
        assert not store.has(f"edge:{edge.id}", namespace=T1)
        results = await graph.semantic_search(T1, "Machine learning research")
        assert ml.id not in [h.entity_id for h in results]

    @pytest.mark.asyncio
    async def test_index_missing_entity(self, graph: IntelGraphAsync):
        assert await graph.search.index_node(T1, "ghost") is IndexOutcome.MISSING
        assert await graph.search.index_edge(T1, "ghost") is IndexOutcome.MISSING

    @pytest.mark.asyncio
    async def test_index_disabled_without_provider(self, graph_no_search: IntelGraphAsync):
        node = await graph_no_search.create_node(T1, "topic", "AI")
        assert await graph_no_search.search.index_node(T1, node.id) is IndexOutcome.DISABLED


# ======================================================================
# Query
# ======================================================================


class TestSearch:
    @pytest.mark.asyncio
    async def test_best_match_first(self, graph: IntelGraphAsync):
        ml, _, _, _ = await _corpus(graph)
        results = await graph.semantic_search(T1, "machine learning research", k=5)
        assert not results.degraded
        assert results.error_code is None
        assert results.hits[0].kind is HitKind.NODE
        assert results.hits[0].node.id == ml.id
        scores = [h.score for h in results]
        assert scores == sorted(scores, reverse=True)
        assert all(not h.stale for h in results)

    @pytest.mark.asyncio
    async def test_k_limits_results(self, graph: IntelGraphAsync):
        await _corpus(graph)
        results = await graph.semantic_search(T1, "report", k=1)
        assert len(results) == 1

    @pytest.mark.asyncio
    async def test_invalid_k(self, graph: IntelGraphAsync):
        with pytest.raises(InvalidArgumentError):
            await graph.semantic_search(T1, "anything", k=0)

    @pytest.mark.asyncio
    async def test_min_similarity(self, graph: IntelGraphAsync):
        ml, _, _, _ = await _corpus(graph)
        results = await graph.semantic_search(
            T1, "Machine learning research. Type: topic", min_similarity=0.999
        )
        assert [h.entity_id for h in results] == [ml.id]
        assert results.hits[0].score == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_node_types_excludes_edges(self, graph: IntelGraphAsync):
        _, rev, _, _ = await _corpus(graph)
        results = await graph.semantic_search(
            T1, "Quarterly revenue report", node_types=["board_report"]
        )
        assert [h.entity_id for h in results] == [rev.id]

    @pytest.mark.asyncio
    async def test_edges_only(self, graph: IntelGraphAsync):
        _, _, _, edge = await _corpus(graph)
        results = await graph.semantic_search(T1, "related_to", kinds=["edge"])
        assert [h.kind for h in results] == [HitKind.EDGE]
        assert results.hits[0].edge.id == edge.id

    @pytest.mark.asyncio
    async def test_tenant_isolation(self, graph: IntelGraphAsync):
        await _corpus(graph)
        other = await graph.create_node(T2, "topic", "Machine learning research")
        results = await graph.semantic_search(T1, "Machine learning research")
        assert other.id not in [h.entity_id for h in results]
        assert all(h.node is None or h.node.tenant_id == T1 for h in results)
        results = await graph.semantic_search(T2, "Machine learning research")
        assert [h.entity_id for h in results] == [other.id]

    @pytest.mark.asyncio
    async def test_equal_scores_prefer_recently_updated(self, graph: IntelGraphAsync):
        older = await graph.create_node(T1, "topic", "Solar panels")
        newer = await graph.create_node(T1, "topic", "Solar panels")
        await graph.update_node(T1, older.id, NodePatch(label="Wind turbines"))
        await graph.update_node(T1, older.id, NodePatch(label="Solar panels"))

        results = await graph.semantic_search(T1, "solar panels", k=2)
        assert [h.entity_id for h in results] == [older.id, newer.id]
        assert results.hits[0].score == results.hits[1].score

    @pytest.mark.asyncio
    async def test_empty_tenant(self, graph: IntelGraphAsync):
        results = await graph.semantic_search(T1, "anything")
        assert results.hits == ()
        assert not results.degraded

    def test_hit_needs_exactly_one_entity(self):
        with pytest.raises(InvalidArgumentError):
            SearchHit(HitKind.NODE, 1.0, False)


# ======================================================================
# Degradation
# ======================================================================


class TestDegradation:
    @pytest.mark.asyncio
    async def test_no_provider(self, graph_no_search: IntelGraphAsync):
        await graph_no_search.create_node(T1, "topic", "AI")
        results = await graph_no_search.semantic_search(T1, "AI")
        assert results.degraded
        assert results.hits == ()
        assert results.error_code == "collaborator_unavailable"

    @pytest.mark.asyncio
    async def test_failing_provider_never_fails_writes(self, config: GraphConfig):
        provider = FailingProvider()
        provider.fail = True
        async with IntelGraphAsync(config=config, embedding_provider=provider) as g:
            node = await g.create_node(T1, "topic", "AI")
            assert (await g.get_node(T1, node.id)).label == "AI"
            assert not g.search.store.has(f"node:{node.id}", namespace=T1)

            results = await g.semantic_search(T1, "AI")
            assert results.degraded
            assert results.error_code == "collaborator_error"

    @pytest.mark.asyncio
    async def test_hanging_provider_times_out(self, config: GraphConfig):
        async with IntelGraphAsync(config=config, embedding_provider=HangingProvider()) as g:
            node = await g.create_node(T1, "topic", "AI")
            assert (await g.get_node(T1, node.id)).id == node.id
            results = await g.semantic_search(T1, "AI")
            assert results.degraded
            assert results.error_code == "collaborator_timeout"

    @pytest.mark.asyncio
    async def test_unusable_vector(self, config: GraphConfig):
        class ZeroProvider(FakeProvider):
            async def embed(self, text: str) -> list[float]:
                return [0.0] * 8

        async with IntelGraphAsync(config=config, embedding_provider=ZeroProvider()) as g:
            results = await g.semantic_search(T1, "AI")
            assert results.degraded
            assert results.error_code == "collaborator_error"


# ======================================================================
# Staleness and re-embedding
# ======================================================================


class TestStaleness:
    @pytest.mark.asyncio
    async def test_failed_refresh_marks_stale(self, config: GraphConfig):
        provider = FailingProvider()
        async with IntelGraphAsync(config=config, embedding_provider=provider) as g:
            node = await g.create_node(T1, "topic", "Machine learning")
            provider.fail = True
            await g.update_node(T1, node.id, NodePatch(label="Machine learning ops"))
            provider.fail = False

            results = await g.semantic_search(T1, "Machine learning")
            assert [h.entity_id for h in results] == [node.id]
            assert results.hits[0].stale

            report = await g.reembed_tenant(T1)
            assert report.embedded == 1
            assert report.failed == 0
            results = await g.semantic_search(T1, "Machine learning")
            assert not results.hits[0].stale

    @pytest.mark.asyncio
    async def test_old_embeddings_are_stale(self, config: GraphConfig):
        aged = config.with_overrides(embedding_staleness=timedelta(0))
        async with IntelGraphAsync(config=aged, embedding_provider=FakeProvider()) as g:
            await g.create_node(T1, "topic", "AI")
            results = await g.semantic_search(T1, "AI")
            assert results.hits[0].stale

    @pytest.mark.asyncio
    async def test_reembed_counts(self, graph: IntelGraphAsync):
        await _corpus(graph)
        report = await graph.reembed_tenant(T1)
        assert report.embedded == 0
        assert report.unchanged == 4

        forced = await graph.reembed_tenant(T1, force=True)
        assert forced.embedded == 4
        assert forced.failed_ids == ()

    @pytest.mark.asyncio
    async def test_reembed_reports_failures(self, config: GraphConfig):
        provider = FailingProvider()
        async with IntelGraphAsync(config=config, embedding_provider=provider) as g:
            a = await g.create_node(T1, "topic", "A")
            provider.fail = True
            report = await g.reembed_tenant(T1, force=True)
            assert report.failed == 1
            assert report.failed_ids == (a.id,)

    @pytest.mark.asyncio
    async def test_reembed_cancelled(self, graph: IntelGraphAsync):
        await _corpus(graph)
        token = CancellationToken()
        token.cancel()
        with pytest.raises(OperationCancelledError):
            await graph.reembed_tenant(T1, force=True, cancel=token)


# ======================================================================
# Reload
# ======================================================================


class TestLoad:
    @pytest.mark.asyncio
    async def test_vectors_rebuilt_on_open(self, async_engine: AsyncEngine, config):
        async with IntelGraphAsync(
            async_engine, config=config, embedding_provider=FakeProvider()
        ) as first:
            ml, _, _, _ = await _corpus(first)

        async with IntelGraphAsync(
            async_engine, config=config, embedding_provider=FakeProvider()
        ) as second:
            assert second.search.store.count(T1) == 4
            results = await second.semantic_search(T1, "machine learning research")
            assert results.hits[0].entity_id == ml.id
