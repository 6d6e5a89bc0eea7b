"""AnalyticsEngine — degree centrality, simplified PageRank, connected components.

Results are full replacements computed from one consistent view and
written back in a single transaction.  Nodes deleted after the view was
taken are skipped; the last writer of a node's derived fields wins.

Clusters are connected components of the undirected projection.  This is
not modularity-based community detection; a Louvain implementation can
replace :func:`connected_components` without changing :class:`Cluster`.
"""

from __future__ import annotations

import logging
import uuid
from collections import Counter
from types import MappingProxyType
from typing import TYPE_CHECKING

from sqlalchemy import bindparam, update

from intelgraph.graph.types import Cluster, GraphMetrics, NodeCentrality
from intelgraph.models import IntelligenceNode
from intelgraph.types import AuditEventType

if TYPE_CHECKING:
    from intelgraph.audit.log import AuditLog
    from intelgraph.config import GraphConfig
    from intelgraph.graph._rustworkx import GraphViews, TenantGraph
    from intelgraph.store._uow import Database

logger = logging.getLogger(__name__)

_CLUSTER_NAMESPACE = uuid.UUID("8d5c5f0e-2b7a-4c1e-9f4e-3a1f6a0c9b21")


# ------------------------------------------------------------------
# Pure algorithms over a view
# ------------------------------------------------------------------


def degree_centrality(view: TenantGraph) -> dict[str, float]:
    """``(in + out) / max_degree`` per node; all zeros when there are no edges."""
    degrees = {n.id: view.degree(n.id) for n in view.nodes()}
    top = max(degrees.values(), default=0)
    if top == 0:
        return dict.fromkeys(degrees, 0.0)
    return {node_id: d / top for node_id, d in degrees.items()}


def pagerank(view: TenantGraph, *, iterations: int, damping: float) -> dict[str, float]:
    """Fixed-iteration PageRank-style scores.

    ``score(n) = (1 - d) + d * sum(score(m) / out_degree(m))`` over incoming
    edges ``m -> n``, starting from 1.0 and updating all nodes together.
    The bounded iteration count is the termination contract; convergence
    is not checked.
    """
    node_ids = [n.id for n in view.nodes()]
    out_degree = {node_id: view.out_degree(node_id) for node_id in node_ids}
    scores = dict.fromkeys(node_ids, 1.0)
    for _ in range(iterations):
        nxt: dict[str, float] = {}
        for node_id in node_ids:
            inflow = 0.0
            for source_id, _edge in view.predecessors(node_id):
                inflow += scores[source_id] / out_degree[source_id]
            nxt[node_id] = (1.0 - damping) + damping * inflow
        scores = nxt
    return scores


def connected_components(view: TenantGraph) -> list[Cluster]:
    """Weakly connected components via iterative union-find.

    Cluster ids are stable for a given tenant and earliest member.  Clusters
    are ordered by size (descending), then by their earliest member.
    """
    nodes = view.nodes()
    parent = {n.id: n.id for n in nodes}
    size = dict.fromkeys(parent, 1)

    def find(x: str) -> str:
        while parent[x] != x:
            parent[x] = parent[parent[x]]
            x = parent[x]
        return x

    for edge in view.edges():
        a = find(edge.source_node_id)
        b = find(edge.target_node_id)
        if a == b:
            continue
        if size[a] < size[b]:
            a, b = b, a
        parent[b] = a
        size[a] += size[b]

    groups: dict[str, list[str]] = {}
    for node in nodes:
        groups.setdefault(find(node.id), []).append(node.id)

    position = {n.id: i for i, n in enumerate(nodes)}
    clusters: list[Cluster] = []
    for members in groups.values():
        central = max(members, key=lambda m: (view.degree(m), -position[m]))
        types = Counter(view.node(m).node_type.value for m in members)
        clusters.append(
            Cluster(
                id=str(uuid.uuid5(_CLUSTER_NAMESPACE, f"{view.tenant_id}:{members[0]}")),
                member_ids=tuple(members),
                central_node_id=central,
                node_types=MappingProxyType(dict(sorted(types.items()))),
            )
        )
    clusters.sort(key=lambda c: (-c.size, position[c.member_ids[0]]))
    return clusters


# ------------------------------------------------------------------
# Engine
# ------------------------------------------------------------------


class AnalyticsEngine:
    """Computes derived node fields and tenant metrics.

    The only writer of ``centrality_score``, ``pagerank_score`` and
    ``cluster_id``.  Writing them does not touch ``updated_at``.
    """

    def __init__(
        self, views: GraphViews, db: Database, audit: AuditLog, config: GraphConfig
    ) -> None:
        self._views = views
        self._db = db
        self._audit = audit
        self._config = config

    async def _write_back(
        self, tenant_id: str, rows: list[dict[str, object]], operation: str, version: int
    ) -> None:
        table = IntelligenceNode.__table__  # type: ignore[attr-defined]
        columns = [k[2:] for k in rows[0] if k != "b_id"] if rows else []
        async with self._db.unit_of_work(tenant_id) as uow:
            if rows:
                stmt = (
                    update(table)
                    .where(table.c.id == bindparam("b_id"), table.c.tenant_id == tenant_id)
                    .values({c: bindparam(f"b_{c}") for c in columns})
                )
                await uow.session.execute(stmt, rows)
            await self._audit.record_system(
                uow,
                AuditEventType.UPDATED,
                metadata={"operation": operation, "node_count": len(rows), "view_version": version},
            )

    async def compute_centrality(
        self, tenant_id: str, *, persist: bool = True
    ) -> dict[str, NodeCentrality]:
        """Degree centrality and PageRank for every node of the tenant."""
        view = await self._views.load(tenant_id)
        degree = degree_centrality(view)
        rank = pagerank(
            view,
            iterations=self._config.pagerank_iterations,
            damping=self._config.pagerank_damping,
        )
        result = {nid: NodeCentrality(degree=degree[nid], pagerank=rank[nid]) for nid in degree}
        if persist:
            await self._write_back(
                tenant_id,
                [
                    {"b_id": nid, "b_centrality_score": c.degree, "b_pagerank_score": c.pagerank}
                    for nid, c in result.items()
                ],
                "compute_centrality",
                view.version,
            )
        logger.info("Computed centrality for %d nodes in tenant %s", len(result), tenant_id)
        return result

    async def detect_clusters(self, tenant_id: str, *, persist: bool = True) -> list[Cluster]:
        """Connected components of the tenant graph, assigned as ``cluster_id``."""
        view = await self._views.load(tenant_id)
        clusters = connected_components(view)
        if persist:
            await self._write_back(
                tenant_id,
                [
                    {"b_id": member, "b_cluster_id": cluster.id}
                    for cluster in clusters
                    for member in cluster.member_ids
                ],
                "detect_clusters",
                view.version,
            )
        logger.info("Detected %d clusters in tenant %s", len(clusters), tenant_id)
        return clusters

    async def compute_metrics(self, tenant_id: str, *, top_n: int = 10) -> GraphMetrics:
        """Counts, histograms, density, cluster count and top-ranked nodes."""
        view = await self._views.load(tenant_id)
        stats = view.stats()
        degree = degree_centrality(view)
        rank = pagerank(
            view,
            iterations=self._config.pagerank_iterations,
            damping=self._config.pagerank_damping,
        )
        order = {n.id: i for i, n in enumerate(view.nodes())}

        def top(scores: dict[str, float]) -> tuple[tuple[str, float], ...]:
            ranked = sorted(scores.items(), key=lambda kv: (-kv[1], order[kv[0]]))
            return tuple(ranked[:top_n])

        return GraphMetrics(
            node_count=stats["node_count"],
            edge_count=stats["edge_count"],
            nodes_by_type=MappingProxyType(stats["nodes_by_type"]),
            edges_by_type=MappingProxyType(stats["edges_by_type"]),
            density=stats["density"],
            average_degree=stats["average_degree"],
            cluster_count=len(connected_components(view)),
            top_by_degree=top(degree),
            top_by_pagerank=top(rank),
        )
