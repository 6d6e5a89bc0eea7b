"""IntelGraphAsync — primary async class wiring store, engines and search."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool

from intelgraph.audit import AuditLog
from intelgraph.config import GraphConfig
from intelgraph.events import EventBus, EventType
from intelgraph.graph import AnalyticsEngine, GraphViews, TraversalEngine
from intelgraph.search import SemanticSearch
from intelgraph.snapshots import SnapshotManager
from intelgraph.store import Database, GraphStore, PropertySchemaRegistry
from intelgraph.types import Direction

if TYPE_CHECKING:
    from collections.abc import Collection, Sequence

    from intelgraph.audit import AuditRecord
    from intelgraph.cancellation import CancellationToken
    from intelgraph.collaborators import NarrativeProvider
    from intelgraph.graph import Cluster, GraphMetrics, GraphPath, NodeCentrality
    from intelgraph.graph import PathExplanation, TraversalHit
    from intelgraph.search import EmbeddingProvider, HitKind, ReembedReport, SearchResults
    from intelgraph.snapshots import SnapshotDiff, SnapshotGraph, SnapshotInfo
    from intelgraph.store import (
        EdgeOrder,
        EdgePatch,
        EdgeWithNodes,
        MergePreview,
        MergeResult,
        NodeOrder,
        NodePatch,
        NodeWithConnections,
    )
    from intelgraph.types import Actor, AuditEventType, Edge, EdgeType, Node, NodeType

logger = logging.getLogger(__name__)

_MEMORY_URL = "sqlite+aiosqlite://"


def _make_engine(url: str) -> AsyncEngine:
    if url in (_MEMORY_URL, "sqlite+aiosqlite:///:memory:"):
        # One shared connection so every session sees the same in-memory DB
        return create_async_engine(
            url,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    return create_async_engine(url)


class IntelGraphAsync:
    """Async facade over the multi-tenant intelligence graph.

    Owns the database, the graph store, the read-side engines, semantic
    search, snapshots and the audit log, and routes committed mutation
    events from the store to the search index.

    Usage::

        async with IntelGraphAsync("postgresql+asyncpg://...") as g:
            a = await g.create_node("t1", "person", "Ada")
            b = await g.create_node("t1", "article", "Notes")
            await g.create_edge("t1", "authored", a.id, b.id)
            hits = await g.traverse("t1", a.id, "outbound", 1)

    With no *engine*, an in-memory SQLite database is used.
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
        self._opened = False
        self._config = config or GraphConfig()

        if isinstance(engine, AsyncEngine):
            self._engine = engine
            self._owns_engine = False
        else:
            self._engine = _make_engine(engine or _MEMORY_URL)
            self._owns_engine = True

        # Core subsystems
        self._db = Database(self._engine, self._config)
        self._event_bus = EventBus()
        self._audit = AuditLog(self._db, self._config)
        self._schemas = schemas or PropertySchemaRegistry()
        self._store = GraphStore(
            self._db, self._audit, self._event_bus, self._config, self._schemas
        )
        self._views = GraphViews(self._db)
        self._traversal = TraversalEngine(
            self._views, self._db, self._audit, self._config, narrator
        )
        self._analytics = AnalyticsEngine(self._views, self._db, self._audit, self._config)
        self._snapshots = SnapshotManager(self._views, self._db, self._audit, self._config)
        self._search = SemanticSearch(self._db, self._config, embedding_provider)

        # Register event handlers
        if self._search.enabled:
            self._event_bus.register(EventType.NODE_WRITTEN, self._search.on_node_written)
            self._event_bus.register(EventType.NODE_DELETED, self._search.on_node_deleted)
            self._event_bus.register(EventType.EDGE_WRITTEN, self._search.on_edge_written)
            self._event_bus.register(EventType.EDGE_DELETED, self._search.on_edge_deleted)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self) -> None:
        """Create missing tables and rebuild the vector index."""
        if self._opened:
            return
        await self._db.create_tables()
        if self._search.enabled:
            await self._search.load()
        self._opened = True
        logger.info("Intelligence graph opened on %s", self._db.dialect)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._event_bus.clear()
        self._views.invalidate()
        if self._owns_engine:
            await self._engine.dispose()

    async def __aenter__(self) -> IntelGraphAsync:
        await self.open()
        return self

    async def __aexit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------------

    async def create_node(
        self,
        tenant_id: str,
        node_type: NodeType | str,
        label: str,
        properties: dict[str, Any] | None = None,
        *,
        external_source_id: str | None = None,
        actor: Actor | None = None,
    ) -> Node:
        return await self._store.create_node(
            tenant_id,
            node_type,
            label,
            properties,
            external_source_id=external_source_id,
            actor=actor,
        )

    async def upsert_node(
        self,
        tenant_id: str,
        node_type: NodeType | str,
        external_source_id: str,
        label: str,
        properties: dict[str, Any] | None = None,
        *,
        actor: Actor | None = None,
    ) -> Node:
        return await self._store.upsert_node(
            tenant_id, node_type, external_source_id, label, properties, actor=actor
        )

    async def get_node(self, tenant_id: str, node_id: str) -> Node:
        return await self._store.get_node(tenant_id, node_id)

    async def get_node_with_connections(
        self, tenant_id: str, node_id: str
    ) -> NodeWithConnections:
        return await self._store.get_node_with_connections(tenant_id, node_id)

    async def list_nodes(
        self,
        tenant_id: str,
        *,
        node_types: Sequence[NodeType | str] | None = None,
        cluster_id: str | None = None,
        search: str | None = None,
        limit: int | None = None,
        offset: int = 0,
        order_by: NodeOrder | str = "created_at",
    ) -> list[Node]:
        return await self._store.list_nodes(
            tenant_id,
            node_types=node_types,
            cluster_id=cluster_id,
            search=search,
            limit=limit,
            offset=offset,
            order_by=order_by,
        )

    async def update_node(
        self, tenant_id: str, node_id: str, patch: NodePatch, *, actor: Actor | None = None
    ) -> Node:
        return await self._store.update_node(tenant_id, node_id, patch, actor=actor)

    async def delete_node(
        self, tenant_id: str, node_id: str, *, actor: Actor | None = None
    ) -> bool:
        return await self._store.delete_node(tenant_id, node_id, actor=actor)

    # ------------------------------------------------------------------
    # Edges
    # ------------------------------------------------------------------

    async def create_edge(
        self,
        tenant_id: str,
        edge_type: EdgeType | str,
        source_id: str,
        target_id: str,
        *,
        weight: float = 1.0,
        properties: dict[str, Any] | None = None,
        external_source_id: str | None = None,
        actor: Actor | None = None,
    ) -> Edge:
        return await self._store.create_edge(
            tenant_id,
            edge_type,
            source_id,
            target_id,
            weight=weight,
            properties=properties,
            external_source_id=external_source_id,
            actor=actor,
        )

    async def upsert_edge(
        self,
        tenant_id: str,
        edge_type: EdgeType | str,
        external_source_id: str,
        source_id: str,
        target_id: str,
        *,
        weight: float = 1.0,
        properties: dict[str, Any] | None = None,
        actor: Actor | None = None,
    ) -> Edge:
        return await self._store.upsert_edge(
            tenant_id,
            edge_type,
            external_source_id,
            source_id,
            target_id,
            weight=weight,
            properties=properties,
            actor=actor,
        )

    async def get_edge(self, tenant_id: str, edge_id: str) -> Edge:
        return await self._store.get_edge(tenant_id, edge_id)

    async def get_edge_with_nodes(self, tenant_id: str, edge_id: str) -> EdgeWithNodes:
        return await self._store.get_edge_with_nodes(tenant_id, edge_id)

    async def list_edges(
        self,
        tenant_id: str,
        *,
        edge_types: Sequence[EdgeType | str] | None = None,
        source_id: str | None = None,
        target_id: str | None = None,
        min_weight: float | None = None,
        max_weight: float | None = None,
        limit: int | None = None,
        offset: int = 0,
        order_by: EdgeOrder | str = "created_at",
    ) -> list[Edge]:
        return await self._store.list_edges(
            tenant_id,
            edge_types=edge_types,
            source_id=source_id,
            target_id=target_id,
            min_weight=min_weight,
            max_weight=max_weight,
            limit=limit,
            offset=offset,
            order_by=order_by,
        )

    async def find_edges_by_node(
        self, tenant_id: str, node_id: str, direction: Direction | str = Direction.BOTH
    ) -> list[Edge]:
        return await self._store.find_edges_by_node(tenant_id, node_id, direction)

    async def update_edge(
        self, tenant_id: str, edge_id: str, patch: EdgePatch, *, actor: Actor | None = None
    ) -> Edge:
        return await self._store.update_edge(tenant_id, edge_id, patch, actor=actor)

    async def delete_edge(
        self, tenant_id: str, edge_id: str, *, actor: Actor | None = None
    ) -> bool:
        return await self._store.delete_edge(tenant_id, edge_id, actor=actor)

    # ------------------------------------------------------------------
    # Merge
    # ------------------------------------------------------------------

    async def preview_merge(
        self,
        tenant_id: str,
        primary_id: str,
        duplicate_ids: Sequence[str],
        *,
        actor: Actor | None = None,
    ) -> MergePreview:
        return await self._store.preview_merge(tenant_id, primary_id, duplicate_ids, actor=actor)

    async def merge_nodes(
        self,
        tenant_id: str,
        primary_id: str,
        duplicate_ids: Sequence[str],
        *,
        actor: Actor | None = None,
    ) -> MergeResult:
        return await self._store.merge_nodes(tenant_id, primary_id, duplicate_ids, actor=actor)

    # ------------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------------

    async def traverse(
        self,
        tenant_id: str,
        start_id: str,
        direction: Direction | str,
        max_depth: int,
        *,
        edge_types: Collection[EdgeType | str] | None = None,
        node_types: Collection[NodeType | str] | None = None,
        limit: int | None = None,
        cancel: CancellationToken | None = None,
    ) -> list[TraversalHit]:
        return await self._traversal.traverse(
            tenant_id,
            start_id,
            direction,
            max_depth,
            edge_types=edge_types,
            node_types=node_types,
            limit=limit,
            cancel=cancel,
        )

    async def find_path(
        self,
        tenant_id: str,
        from_id: str,
        to_id: str,
        max_depth: int,
        *,
        direction: Direction | str = Direction.BOTH,
        edge_types: Collection[EdgeType | str] | None = None,
        cancel: CancellationToken | None = None,
    ) -> GraphPath | None:
        return await self._traversal.find_path(
            tenant_id,
            from_id,
            to_id,
            max_depth,
            direction=direction,
            edge_types=edge_types,
            cancel=cancel,
        )

    async def explain_path(
        self,
        tenant_id: str,
        from_id: str,
        to_id: str,
        max_depth: int,
        *,
        direction: Direction | str = Direction.BOTH,
        edge_types: Collection[EdgeType | str] | None = None,
        actor: Actor | None = None,
        cancel: CancellationToken | None = None,
    ) -> PathExplanation | None:
        return await self._traversal.explain_path(
            tenant_id,
            from_id,
            to_id,
            max_depth,
            direction=direction,
            edge_types=edge_types,
            actor=actor,
            cancel=cancel,
        )

    # ------------------------------------------------------------------
    # Analytics
    # ------------------------------------------------------------------

    async def compute_centrality(
        self, tenant_id: str, *, persist: bool = True
    ) -> dict[str, NodeCentrality]:
        return await self._analytics.compute_centrality(tenant_id, persist=persist)

    async def detect_clusters(self, tenant_id: str, *, persist: bool = True) -> list[Cluster]:
        return await self._analytics.detect_clusters(tenant_id, persist=persist)

    async def compute_metrics(self, tenant_id: str, *, top_n: int = 10) -> GraphMetrics:
        return await self._analytics.compute_metrics(tenant_id, top_n=top_n)

    # ------------------------------------------------------------------
    # Semantic search
    # ------------------------------------------------------------------

    async def semantic_search(
        self,
        tenant_id: str,
        query_text: str,
        k: int = 10,
        *,
        min_similarity: float = 0.0,
        kinds: Collection[HitKind | str] | None = None,
        node_types: Collection[NodeType | str] | None = None,
    ) -> SearchResults:
        return await self._search.search(
            tenant_id,
            query_text,
            k,
            min_similarity=min_similarity,
            kinds=kinds,
            node_types=node_types,
        )

    async def reembed_tenant(
        self,
        tenant_id: str,
        *,
        force: bool = False,
        cancel: CancellationToken | None = None,
    ) -> ReembedReport:
        return await self._search.reembed_tenant(tenant_id, force=force, cancel=cancel)

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    async def create_snapshot(
        self, tenant_id: str, label: str | None = None, *, actor: Actor | None = None
    ) -> SnapshotInfo:
        return await self._snapshots.create_snapshot(tenant_id, label, actor=actor)

    async def get_snapshot(self, tenant_id: str, snapshot_id: str) -> SnapshotInfo:
        return await self._snapshots.get_snapshot(tenant_id, snapshot_id)

    async def list_snapshots(
        self, tenant_id: str, *, limit: int | None = None, offset: int = 0
    ) -> list[SnapshotInfo]:
        return await self._snapshots.list_snapshots(tenant_id, limit=limit, offset=offset)

    async def load_snapshot_graph(self, tenant_id: str, snapshot_id: str) -> SnapshotGraph:
        return await self._snapshots.load_snapshot_graph(tenant_id, snapshot_id)

    async def diff_snapshots(
        self, tenant_id: str, snapshot_a: str, snapshot_b: str
    ) -> SnapshotDiff:
        return await self._snapshots.diff(tenant_id, snapshot_a, snapshot_b)

    async def delete_snapshot(
        self, tenant_id: str, snapshot_id: str, *, actor: Actor | None = None
    ) -> bool:
        return await self._snapshots.delete_snapshot(tenant_id, snapshot_id, actor=actor)

    async def prune_snapshots(
        self, tenant_id: str, keep_last: int, *, actor: Actor | None = None
    ) -> list[str]:
        return await self._snapshots.prune_snapshots(tenant_id, keep_last, actor=actor)

    # ------------------------------------------------------------------
    # Audit
    # ------------------------------------------------------------------

    async def list_audit_entries(
        self,
        tenant_id: str,
        *,
        event_type: AuditEventType | None = None,
        target_id: str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[AuditRecord]:
        return await self._audit.list_entries(
            tenant_id, event_type=event_type, target_id=target_id, limit=limit, offset=offset
        )

    async def verify_audit_chain(self, tenant_id: str) -> int:
        return await self._audit.verify_chain(tenant_id)

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def config(self) -> GraphConfig:
        return self._config

    @property
    def db(self) -> Database:
        return self._db

    @property
    def events(self) -> EventBus:
        return self._event_bus

    @property
    def store(self) -> GraphStore:
        return self._store

    @property
    def schemas(self) -> PropertySchemaRegistry:
        return self._schemas

    @property
    def traversal(self) -> TraversalEngine:
        return self._traversal

    @property
    def analytics(self) -> AnalyticsEngine:
        return self._analytics

    @property
    def search(self) -> SemanticSearch:
        return self._search

    @property
    def snapshots(self) -> SnapshotManager:
        return self._snapshots

    @property
    def audit(self) -> AuditLog:
        return self._audit
