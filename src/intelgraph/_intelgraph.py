"""IntelGraph — synchronous wrapper around :class:`IntelGraphAsync`."""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import TYPE_CHECKING, Any

from intelgraph._intelgraph_async import IntelGraphAsync

if TYPE_CHECKING:
    from collections.abc import Coroutine, Sequence

    from sqlalchemy.ext.asyncio import AsyncEngine

    from intelgraph.audit import AuditRecord
    from intelgraph.collaborators import NarrativeProvider
    from intelgraph.config import GraphConfig
    from intelgraph.graph import Cluster, GraphMetrics, GraphPath, NodeCentrality
    from intelgraph.graph import PathExplanation, TraversalHit
    from intelgraph.search import EmbeddingProvider, ReembedReport, SearchResults
    from intelgraph.snapshots import SnapshotDiff, SnapshotGraph, SnapshotInfo
    from intelgraph.store import (
        EdgePatch,
        EdgeWithNodes,
        MergePreview,
        MergeResult,
        NodePatch,
        NodeWithConnections,
        PropertySchemaRegistry,
    )
    from intelgraph.types import Direction, Edge, EdgeType, Node, NodeType

logger = logging.getLogger(__name__)


class IntelGraph:
    """Synchronous facade over the intelligence graph.

    Runs an :class:`IntelGraphAsync` on a private event loop in a daemon
    thread, so callers can use it from plain sync code or notebooks.

    Usage::

        with IntelGraph() as g:
            a = g.create_node("t1", "person", "Ada")
            b = g.create_node("t1", "article", "Notes")
            g.create_edge("t1", "authored", a.id, b.id)
            path = g.find_path("t1", a.id, b.id, 5)
    """

    def __init__(
        self,
        engine: AsyncEngine | str | None = None,
        *,
        config: GraphConfig | None = None,
        embedding_provider: EmbeddingProvider | None = None,
        narrator: NarrativeProvider | None = None,
        schemas: PropertySchemaRegistry | None = None,
    ) -> None:
        self._closed = False

        # Private event loop in a daemon thread
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._loop.run_forever, daemon=True)
        self._thread.start()

        self._async = self._run(
            self._async_init(engine, config, embedding_provider, narrator, schemas)
        )

    async def _async_init(
        self,
        engine: AsyncEngine | str | None,
        config: GraphConfig | None,
        embedding_provider: EmbeddingProvider | None,
        narrator: NarrativeProvider | None,
        schemas: PropertySchemaRegistry | None,
    ) -> IntelGraphAsync:
        # Built on the private loop so engine pools bind to it
        graph = IntelGraphAsync(
            engine,
            config=config,
            embedding_provider=embedding_provider,
            narrator=narrator,
            schemas=schemas,
        )
        await graph.open()
        return graph

    def _run(self, coro: Coroutine[Any, Any, Any]) -> Any:
        """Submit *coro* to the private loop and block for the result."""
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        return future.result()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Close the async graph, stop the event loop and join the thread."""
        if self._closed:
            return
        self._closed = True

        try:
            self._run(self._async.close())
        finally:
            self._loop.call_soon_threadsafe(self._loop.stop)
            self._thread.join(timeout=5)

    def __enter__(self) -> IntelGraph:
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Graph store
    # ------------------------------------------------------------------

    def create_node(
        self,
        tenant_id: str,
        node_type: NodeType | str,
        label: str,
        properties: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> Node:
        return self._run(
            self._async.create_node(tenant_id, node_type, label, properties, **kwargs)
        )

    def upsert_node(
        self,
        tenant_id: str,
        node_type: NodeType | str,
        external_source_id: str,
        label: str,
        properties: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> Node:
        return self._run(
            self._async.upsert_node(
                tenant_id, node_type, external_source_id, label, properties, **kwargs
            )
        )

    def get_node(self, tenant_id: str, node_id: str) -> Node:
        return self._run(self._async.get_node(tenant_id, node_id))

    def get_node_with_connections(self, tenant_id: str, node_id: str) -> NodeWithConnections:
        return self._run(self._async.get_node_with_connections(tenant_id, node_id))

    def list_nodes(self, tenant_id: str, **filters: Any) -> list[Node]:
        return self._run(self._async.list_nodes(tenant_id, **filters))

    def update_node(self, tenant_id: str, node_id: str, patch: NodePatch, **kwargs: Any) -> Node:
        return self._run(self._async.update_node(tenant_id, node_id, patch, **kwargs))

    def delete_node(self, tenant_id: str, node_id: str, **kwargs: Any) -> bool:
        return self._run(self._async.delete_node(tenant_id, node_id, **kwargs))

    def create_edge(
        self,
        tenant_id: str,
        edge_type: EdgeType | str,
        source_id: str,
        target_id: str,
        **kwargs: Any,
    ) -> Edge:
        return self._run(
            self._async.create_edge(tenant_id, edge_type, source_id, target_id, **kwargs)
        )

    def upsert_edge(
        self,
        tenant_id: str,
        edge_type: EdgeType | str,
        external_source_id: str,
        source_id: str,
        target_id: str,
        **kwargs: Any,
    ) -> Edge:
        return self._run(
            self._async.upsert_edge(
                tenant_id, edge_type, external_source_id, source_id, target_id, **kwargs
            )
        )

    def get_edge(self, tenant_id: str, edge_id: str) -> Edge:
        return self._run(self._async.get_edge(tenant_id, edge_id))

    def get_edge_with_nodes(self, tenant_id: str, edge_id: str) -> EdgeWithNodes:
        return self._run(self._async.get_edge_with_nodes(tenant_id, edge_id))

    def list_edges(self, tenant_id: str, **filters: Any) -> list[Edge]:
        return self._run(self._async.list_edges(tenant_id, **filters))

    def find_edges_by_node(
        self, tenant_id: str, node_id: str, direction: Direction | str = "both"
    ) -> list[Edge]:
        return self._run(self._async.find_edges_by_node(tenant_id, node_id, direction))

    def update_edge(self, tenant_id: str, edge_id: str, patch: EdgePatch, **kwargs: Any) -> Edge:
        return self._run(self._async.update_edge(tenant_id, edge_id, patch, **kwargs))

    def delete_edge(self, tenant_id: str, edge_id: str, **kwargs: Any) -> bool:
        return self._run(self._async.delete_edge(tenant_id, edge_id, **kwargs))

    def preview_merge(
        self, tenant_id: str, primary_id: str, duplicate_ids: Sequence[str], **kwargs: Any
    ) -> MergePreview:
        return self._run(
            self._async.preview_merge(tenant_id, primary_id, duplicate_ids, **kwargs)
        )

    def merge_nodes(
        self, tenant_id: str, primary_id: str, duplicate_ids: Sequence[str], **kwargs: Any
    ) -> MergeResult:
        return self._run(self._async.merge_nodes(tenant_id, primary_id, duplicate_ids, **kwargs))

    # ------------------------------------------------------------------
    # Traversal and analytics
    # ------------------------------------------------------------------

    def traverse(
        self,
        tenant_id: str,
        start_id: str,
        direction: Direction | str,
        max_depth: int,
        **kwargs: Any,
    ) -> list[TraversalHit]:
        return self._run(
            self._async.traverse(tenant_id, start_id, direction, max_depth, **kwargs)
        )

    def find_path(
        self, tenant_id: str, from_id: str, to_id: str, max_depth: int, **kwargs: Any
    ) -> GraphPath | None:
        return self._run(self._async.find_path(tenant_id, from_id, to_id, max_depth, **kwargs))

    def explain_path(
        self, tenant_id: str, from_id: str, to_id: str, max_depth: int, **kwargs: Any
    ) -> PathExplanation | None:
        return self._run(
            self._async.explain_path(tenant_id, from_id, to_id, max_depth, **kwargs)
        )

    def compute_centrality(self, tenant_id: str, **kwargs: Any) -> dict[str, NodeCentrality]:
        return self._run(self._async.compute_centrality(tenant_id, **kwargs))

    def detect_clusters(self, tenant_id: str, **kwargs: Any) -> list[Cluster]:
        return self._run(self._async.detect_clusters(tenant_id, **kwargs))

    def compute_metrics(self, tenant_id: str, **kwargs: Any) -> GraphMetrics:
        return self._run(self._async.compute_metrics(tenant_id, **kwargs))

    # ------------------------------------------------------------------
    # Search, snapshots, audit
    # ------------------------------------------------------------------

    def semantic_search(
        self, tenant_id: str, query_text: str, k: int = 10, **kwargs: Any
    ) -> SearchResults:
        return self._run(self._async.semantic_search(tenant_id, query_text, k, **kwargs))

    def reembed_tenant(self, tenant_id: str, **kwargs: Any) -> ReembedReport:
        return self._run(self._async.reembed_tenant(tenant_id, **kwargs))

    def create_snapshot(
        self, tenant_id: str, label: str | None = None, **kwargs: Any
    ) -> SnapshotInfo:
        return self._run(self._async.create_snapshot(tenant_id, label, **kwargs))

    def get_snapshot(self, tenant_id: str, snapshot_id: str) -> SnapshotInfo:
        return self._run(self._async.get_snapshot(tenant_id, snapshot_id))

    def list_snapshots(self, tenant_id: str, **kwargs: Any) -> list[SnapshotInfo]:
        return self._run(self._async.list_snapshots(tenant_id, **kwargs))

    def load_snapshot_graph(self, tenant_id: str, snapshot_id: str) -> SnapshotGraph:
        return self._run(self._async.load_snapshot_graph(tenant_id, snapshot_id))

    def diff_snapshots(self, tenant_id: str, snapshot_a: str, snapshot_b: str) -> SnapshotDiff:
        return self._run(self._async.diff_snapshots(tenant_id, snapshot_a, snapshot_b))

    def delete_snapshot(self, tenant_id: str, snapshot_id: str, **kwargs: Any) -> bool:
        return self._run(self._async.delete_snapshot(tenant_id, snapshot_id, **kwargs))

    def prune_snapshots(self, tenant_id: str, keep_last: int, **kwargs: Any) -> list[str]:
        return self._run(self._async.prune_snapshots(tenant_id, keep_last, **kwargs))

    def list_audit_entries(self, tenant_id: str, **filters: Any) -> list[AuditRecord]:
        return self._run(self._async.list_audit_entries(tenant_id, **filters))

    def verify_audit_chain(self, tenant_id: str) -> int:
        return self._run(self._async.verify_audit_chain(tenant_id))

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def aio(self) -> IntelGraphAsync:
        """The underlying ``IntelGraphAsync`` (for advanced async use)."""
        return self._async
