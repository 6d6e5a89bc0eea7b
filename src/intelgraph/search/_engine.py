"""SemanticSearch — embeddings for nodes/edges and cosine-ranked lookup.

Embedding rows in the database are the source of truth; the
:class:`LocalVectorStore` mirrors them per tenant for candidate retrieval
and is rebuilt from the tables by :meth:`SemanticSearch.load`.

The embedding collaborator never fails a caller: a failed or slow call
marks the existing embedding stale (indexing) or returns a degraded, empty
result (querying).
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any

import numpy as np
from sqlmodel import col, select

from intelgraph.cancellation import CancellationToken, check
from intelgraph.collaborators import call_collaborator
from intelgraph.events import GraphEvent
from intelgraph.exceptions import CollaboratorError, InvalidArgumentError
from intelgraph.models import EdgeEmbedding, IntelligenceEdge, IntelligenceNode, NodeEmbedding
from intelgraph.search.extractors import content_hash, edge_text, node_text
from intelgraph.search.stores.local import LocalVectorStore
from intelgraph.search.types import (
    HitKind,
    IndexOutcome,
    ReembedReport,
    SearchHit,
    SearchResults,
    VectorEntry,
)
from intelgraph.store._rows import edge_from_row, node_from_row
from intelgraph.store.graph_store import coerce_enum
from intelgraph.types import NodeType
from intelgraph.utils import ensure_utc, utcnow

if TYPE_CHECKING:
    from collections.abc import Collection

    from sqlalchemy.ext.asyncio import AsyncSession

    from intelgraph.config import GraphConfig
    from intelgraph.search.protocols import EmbeddingProvider
    from intelgraph.store._uow import Database
    from intelgraph.types import Edge, Node

logger = logging.getLogger(__name__)


def _vector_id(kind: HitKind, entity_id: str) -> str:
    return f"{kind.value}:{entity_id}"


def _valid_vector(value: Any) -> list[float] | None:
    """Return *value* as a list of finite floats, or None if unusable."""
    try:
        arr = np.asarray(value, dtype=np.float64)
    except (TypeError, ValueError):
        return None
    if arr.ndim != 1 or arr.size == 0 or not np.all(np.isfinite(arr)):
        return None
    if not np.any(arr):
        return None
    return arr.tolist()


def _cosine(query: np.ndarray, vector: np.ndarray) -> float:
    denom = float(np.linalg.norm(query) * np.linalg.norm(vector))
    if denom == 0.0 or query.shape != vector.shape:
        return 0.0
    return float(np.dot(query, vector) / denom)


class SemanticSearch:
    """Embeds graph entities and answers similarity queries per tenant."""

    def __init__(
        self,
        db: Database,
        config: GraphConfig,
        provider: EmbeddingProvider | None = None,
        store: LocalVectorStore | None = None,
    ) -> None:
        self._db = db
        self._config = config
        self._provider = provider
        self._store = store or LocalVectorStore()

    @property
    def enabled(self) -> bool:
        return self._provider is not None

    @property
    def store(self) -> LocalVectorStore:
        return self._store

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def load(self) -> int:
        """Rebuild the vector store from the embedding tables.

        Returns the number of vectors loaded.
        """
        count = 0
        async with self._db.read_session() as session:
            for model, kind in ((NodeEmbedding, HitKind.NODE), (EdgeEmbedding, HitKind.EDGE)):
                rows = (await session.execute(select(model))).scalars().all()
                for row in rows:
                    entity_id = row.node_id if kind is HitKind.NODE else row.edge_id
                    await self._store.upsert(
                        [VectorEntry(_vector_id(kind, entity_id), json.loads(row.vector_json))],
                        namespace=row.tenant_id,
                    )
                    count += 1
        logger.info("Loaded %d embeddings into the vector store", count)
        return count

    # ------------------------------------------------------------------
    # Indexing
    # ------------------------------------------------------------------

    async def _embed(
        self, provider: EmbeddingProvider, text: str
    ) -> tuple[list[float] | None, str | None]:
        outcome = await call_collaborator(
            provider.embed,
            text,
            timeout=self._config.collaborator_timeout,
            name="embedding provider",
        )
        if not outcome.ok:
            return None, outcome.error_code
        vector = _valid_vector(outcome.value)
        if vector is None:
            logger.warning("Embedding provider returned an unusable vector")
            return None, CollaboratorError.code
        return vector, None

    async def _mark_stale(
        self, model: type[NodeEmbedding] | type[EdgeEmbedding], row_id: str
    ) -> None:
        async with self._db.derived_session() as session:
            row = await session.get(model, row_id)
            if row is not None and not row.is_stale:
                row.is_stale = True
                session.add(row)

    async def _index(
        self,
        provider: EmbeddingProvider,
        kind: HitKind,
        tenant_id: str,
        entity_id: str,
        text: str,
        existing: NodeEmbedding | EdgeEmbedding | None,
        force: bool,
    ) -> IndexOutcome:
        digest = content_hash(text)
        model_name = provider.model_name
        if (
            not force
            and existing is not None
            and existing.content_hash == digest
            and existing.embedding_provider == model_name
            and not existing.is_stale
        ):
            return IndexOutcome.UNCHANGED

        vector, _error = await self._embed(provider, text)
        model: type[NodeEmbedding] | type[EdgeEmbedding] = (
            NodeEmbedding if kind is HitKind.NODE else EdgeEmbedding
        )
        if vector is None:
            if existing is not None:
                await self._mark_stale(model, existing.id)
            return IndexOutcome.FAILED

        entity_model = IntelligenceNode if kind is HitKind.NODE else IntelligenceEdge
        async with self._db.derived_session() as session:
            if await session.get(entity_model, entity_id) is None:
                return IndexOutcome.MISSING
            row = await self._embedding_row(session, kind, entity_id)
            if row is None:
                if kind is HitKind.NODE:
                    row = NodeEmbedding(tenant_id=tenant_id, node_id=entity_id)
                else:
                    row = EdgeEmbedding(tenant_id=tenant_id, edge_id=entity_id)
            row.vector_json = json.dumps(vector)
            row.dimensions = len(vector)
            row.embedding_provider = model_name
            row.content_hash = digest
            row.is_stale = False
            row.generated_at = utcnow()
            session.add(row)

        await self._store.upsert(
            [VectorEntry(_vector_id(kind, entity_id), vector)], namespace=tenant_id
        )
        return IndexOutcome.EMBEDDED

    @staticmethod
    async def _embedding_row(
        session: AsyncSession, kind: HitKind, entity_id: str
    ) -> NodeEmbedding | EdgeEmbedding | None:
        if kind is HitKind.NODE:
            stmt = select(NodeEmbedding).where(NodeEmbedding.node_id == entity_id)
        else:
            stmt = select(EdgeEmbedding).where(EdgeEmbedding.edge_id == entity_id)
        return (await session.execute(stmt)).scalar_one_or_none()

    async def index_node(
        self, tenant_id: str, node_id: str, *, force: bool = False
    ) -> IndexOutcome:
        """(Re-)embed one node if its canonical text changed."""
        provider = self._provider
        if provider is None:
            return IndexOutcome.DISABLED
        async with self._db.read_session() as session:
            row = await session.get(IntelligenceNode, node_id)
            if row is None or row.tenant_id != tenant_id:
                return IndexOutcome.MISSING
            node = node_from_row(row)
            existing = await self._embedding_row(session, HitKind.NODE, node_id)
        return await self._index(
            provider, HitKind.NODE, tenant_id, node_id, node_text(node), existing, force
        )

    async def index_edge(
        self, tenant_id: str, edge_id: str, *, force: bool = False
    ) -> IndexOutcome:
        """(Re-)embed one edge if its canonical text changed."""
        provider = self._provider
        if provider is None:
            return IndexOutcome.DISABLED
        async with self._db.read_session() as session:
            row = await session.get(IntelligenceEdge, edge_id)
            if row is None or row.tenant_id != tenant_id:
                return IndexOutcome.MISSING
            edge = edge_from_row(row)
            source = await session.get(IntelligenceNode, edge.source_node_id)
            target = await session.get(IntelligenceNode, edge.target_node_id)
            if source is None or target is None:
                return IndexOutcome.MISSING
            text = edge_text(edge, source.label, target.label)
            existing = await self._embedding_row(session, HitKind.EDGE, edge_id)
        return await self._index(
            provider, HitKind.EDGE, tenant_id, edge_id, text, existing, force
        )

    async def remove(self, tenant_id: str, kind: HitKind, entity_id: str) -> None:
        """Drop the vector for a deleted entity (rows go with the cascade)."""
        await self._store.delete([_vector_id(kind, entity_id)], namespace=tenant_id)

    async def reembed_tenant(
        self,
        tenant_id: str,
        *,
        force: bool = False,
        cancel: CancellationToken | None = None,
    ) -> ReembedReport:
        """Re-embed every node and edge of the tenant whose text changed.

        With *force*, every entity is embedded again.  The token is checked
        before each entity.
        """
        async with self._db.read_session() as session:
            node_ids = (
                await session.execute(
                    select(IntelligenceNode.id)
                    .where(IntelligenceNode.tenant_id == tenant_id)
                    .order_by(col(IntelligenceNode.seq))
                )
            ).scalars().all()
            edge_ids = (
                await session.execute(
                    select(IntelligenceEdge.id)
                    .where(IntelligenceEdge.tenant_id == tenant_id)
                    .order_by(col(IntelligenceEdge.seq))
                )
            ).scalars().all()

        counts = {IndexOutcome.EMBEDDED: 0, IndexOutcome.UNCHANGED: 0, IndexOutcome.FAILED: 0}
        failed: list[str] = []
        work = [(HitKind.NODE, i) for i in node_ids] + [(HitKind.EDGE, i) for i in edge_ids]
        for kind, entity_id in work:
            check(cancel)
            if kind is HitKind.NODE:
                outcome = await self.index_node(tenant_id, entity_id, force=force)
            else:
                outcome = await self.index_edge(tenant_id, entity_id, force=force)
            if outcome in counts:
                counts[outcome] += 1
            if outcome is IndexOutcome.FAILED:
                failed.append(entity_id)
        logger.info(
            "Re-embedded tenant %s: %d embedded, %d unchanged, %d failed",
            tenant_id,
            counts[IndexOutcome.EMBEDDED],
            counts[IndexOutcome.UNCHANGED],
            counts[IndexOutcome.FAILED],
        )
        return ReembedReport(
            embedded=counts[IndexOutcome.EMBEDDED],
            unchanged=counts[IndexOutcome.UNCHANGED],
            failed=counts[IndexOutcome.FAILED],
            failed_ids=tuple(failed),
        )

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    async def on_node_written(self, event: GraphEvent) -> None:
        if not event.text_changed:
            return
        await self.index_node(event.tenant_id, event.entity_id)

    async def on_node_deleted(self, event: GraphEvent) -> None:
        await self.remove(event.tenant_id, HitKind.NODE, event.entity_id)

    async def on_edge_written(self, event: GraphEvent) -> None:
        if not event.text_changed:
            return
        await self.index_edge(event.tenant_id, event.entity_id)

    async def on_edge_deleted(self, event: GraphEvent) -> None:
        await self.remove(event.tenant_id, HitKind.EDGE, event.entity_id)

    # ------------------------------------------------------------------
    # Query
    # ------------------------------------------------------------------

    def _is_stale(self, row: NodeEmbedding | EdgeEmbedding, now: datetime) -> bool:
        return row.is_stale or now - ensure_utc(row.generated_at) > self._config.embedding_staleness

    async def search(
        self,
        tenant_id: str,
        query_text: str,
        k: int = 10,
        *,
        min_similarity: float = 0.0,
        kinds: Collection[HitKind | str] | None = None,
        node_types: Collection[NodeType | str] | None = None,
    ) -> SearchResults:
        """Rank the tenant's nodes and edges by cosine similarity to *query_text*.

        ANN candidates are re-scored with exact cosine against the stored
        vectors.  Ties go to the more recently updated entity.  Passing
        *node_types* restricts hits to nodes of those types.
        """
        if k < 1:
            msg = f"k must be >= 1, got {k}"
            raise InvalidArgumentError(msg)
        k = min(k, self._config.max_list_limit)
        wanted = {coerce_enum(HitKind, x, "hit kind") for x in kinds} if kinds else set(HitKind)
        type_filter = (
            {coerce_enum(NodeType, t, "node type") for t in node_types} if node_types else None
        )
        if type_filter is not None:
            wanted.discard(HitKind.EDGE)

        provider = self._provider
        if provider is None:
            return SearchResults(degraded=True, error_code="collaborator_unavailable")
        vector, error = await self._embed(provider, query_text)
        if vector is None:
            return SearchResults(degraded=True, error_code=error)

        candidates = await self._store.search(
            vector, k=k * self._config.search_overfetch, namespace=tenant_id
        )
        node_ids = [c.id.split(":", 1)[1] for c in candidates if c.id.startswith("node:")]
        edge_ids = [c.id.split(":", 1)[1] for c in candidates if c.id.startswith("edge:")]

        query = np.asarray(vector, dtype=np.float64)
        now = utcnow()
        scored: list[tuple[float, datetime, SearchHit]] = []
        async with self._db.read_session() as session:
            if HitKind.NODE in wanted and node_ids:
                for entity, emb in await self._load_nodes(session, tenant_id, node_ids):
                    if type_filter is not None and entity.node_type not in type_filter:
                        continue
                    score = _cosine(query, np.asarray(json.loads(emb.vector_json)))
                    hit = SearchHit(HitKind.NODE, score, self._is_stale(emb, now), node=entity)
                    scored.append((score, entity.updated_at, hit))
            if HitKind.EDGE in wanted and edge_ids:
                for entity, emb in await self._load_edges(session, tenant_id, edge_ids):
                    score = _cosine(query, np.asarray(json.loads(emb.vector_json)))
                    hit = SearchHit(HitKind.EDGE, score, self._is_stale(emb, now), edge=entity)
                    scored.append((score, entity.updated_at, hit))

        ranked = [s for s in scored if s[0] >= min_similarity]
        ranked.sort(key=lambda s: (s[0], s[1]), reverse=True)
        return SearchResults(hits=tuple(hit for _, _, hit in ranked[:k]))

    @staticmethod
    async def _load_nodes(
        session: AsyncSession, tenant_id: str, node_ids: list[str]
    ) -> list[tuple[Node, NodeEmbedding]]:
        result = await session.execute(
            select(IntelligenceNode, NodeEmbedding)
            .join(NodeEmbedding, col(NodeEmbedding.node_id) == col(IntelligenceNode.id))
            .where(
                IntelligenceNode.tenant_id == tenant_id,
                col(IntelligenceNode.id).in_(node_ids),
            )
        )
        return [(node_from_row(n), e) for n, e in result.all()]

    @staticmethod
    async def _load_edges(
        session: AsyncSession, tenant_id: str, edge_ids: list[str]
    ) -> list[tuple[Edge, EdgeEmbedding]]:
        result = await session.execute(
            select(IntelligenceEdge, EdgeEmbedding)
            .join(EdgeEmbedding, col(EdgeEmbedding.edge_id) == col(IntelligenceEdge.id))
            .where(
                IntelligenceEdge.tenant_id == tenant_id,
                col(IntelligenceEdge.id).in_(edge_ids),
            )
        )
        return [(edge_from_row(e), emb) for e, emb in result.all()]
