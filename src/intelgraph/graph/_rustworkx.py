"""TenantGraph — immutable rustworkx projection of one tenant's graph.

Nodes and edges are held by id in an arena (``PyDiGraph`` indices plus
id↔index maps); relationships are always resolved by lookup.  A view is
built from one consistent read and tagged with the graph version it
observed, so it can be shared by concurrent readers until the next commit.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import TYPE_CHECKING, Any

import rustworkx
from sqlmodel import col, select

from intelgraph.exceptions import NotFoundError
from intelgraph.models import IntelligenceEdge, IntelligenceNode
from intelgraph.store._rows import edge_from_row, node_from_row
from intelgraph.types import Direction, Edge, EdgeType, Node

if TYPE_CHECKING:
    from collections.abc import Collection

    from sqlalchemy.ext.asyncio import AsyncSession

    from intelgraph.store._uow import Database

logger = logging.getLogger(__name__)


class TenantGraph:
    """Read-only directed multigraph over one tenant's nodes and edges.

    Incident edge lists are kept in insertion (``seq``) order, which is the
    order traversal follows within one depth.
    """

    def __init__(
        self,
        tenant_id: str,
        version: int,
        nodes: list[Node],
        edges: list[Edge],
    ) -> None:
        self.tenant_id = tenant_id
        self.version = version
        self._graph: rustworkx.PyDiGraph = rustworkx.PyDiGraph(multigraph=True)
        self._id_to_idx: dict[str, int] = {}
        self._idx_to_id: dict[int, str] = {}
        self._nodes: dict[str, Node] = {}
        self._edges: dict[str, Edge] = {}
        self._out: dict[str, list[Edge]] = {}
        self._in: dict[str, list[Edge]] = {}

        for node in sorted(nodes, key=lambda n: n.seq):
            idx = self._graph.add_node(node.id)
            self._id_to_idx[node.id] = idx
            self._idx_to_id[idx] = node.id
            self._nodes[node.id] = node
            self._out[node.id] = []
            self._in[node.id] = []

        for edge in sorted(edges, key=lambda e: e.seq):
            src = self._id_to_idx.get(edge.source_node_id)
            tgt = self._id_to_idx.get(edge.target_node_id)
            if src is None or tgt is None:
                logger.warning("Skipping dangling edge %s in tenant %s", edge.id, tenant_id)
                continue
            self._graph.add_edge(src, tgt, edge.id)
            self._edges[edge.id] = edge
            self._out[edge.source_node_id].append(edge)
            self._in[edge.target_node_id].append(edge)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def _require_node(self, node_id: str) -> int:
        idx = self._id_to_idx.get(node_id)
        if idx is None:
            msg = f"Node not found: {node_id!r}"
            raise NotFoundError(msg)
        return idx

    def has_node(self, node_id: str) -> bool:
        return node_id in self._id_to_idx

    def node(self, node_id: str) -> Node:
        """Return the node.  Raises ``NotFoundError`` if it is not in the view."""
        self._require_node(node_id)
        return self._nodes[node_id]

    def edge(self, edge_id: str) -> Edge:
        try:
            return self._edges[edge_id]
        except KeyError:
            msg = f"Edge not found: {edge_id!r}"
            raise NotFoundError(msg) from None

    def nodes(self) -> list[Node]:
        """All nodes in insertion order."""
        return list(self._nodes.values())

    def edges(self) -> list[Edge]:
        """All edges in insertion order."""
        return list(self._edges.values())

    @property
    def node_count(self) -> int:
        return self._graph.num_nodes()

    @property
    def edge_count(self) -> int:
        return self._graph.num_edges()

    # ------------------------------------------------------------------
    # Adjacency
    # ------------------------------------------------------------------

    def incident(
        self,
        node_id: str,
        direction: Direction,
        edge_types: Collection[EdgeType] | None = None,
    ) -> list[tuple[Edge, str]]:
        """``(edge, neighbor_id)`` pairs for *node_id* in insertion order.

        With ``Direction.BOTH`` outgoing and incoming edges are interleaved
        by ``seq``; a self-loop appears once.
        """
        self._require_node(node_id)
        if direction is Direction.OUTBOUND:
            edges = self._out[node_id]
        elif direction is Direction.INBOUND:
            edges = self._in[node_id]
        else:
            seen: dict[str, Edge] = {e.id: e for e in self._out[node_id]}
            seen.update((e.id, e) for e in self._in[node_id])
            edges = sorted(seen.values(), key=lambda e: e.seq)
        pairs: list[tuple[Edge, str]] = []
        for edge in edges:
            if edge_types is not None and edge.edge_type not in edge_types:
                continue
            if direction is Direction.INBOUND:
                neighbor = edge.source_node_id
            elif direction is Direction.OUTBOUND:
                neighbor = edge.target_node_id
            else:
                neighbor = edge.other_end(node_id)
            pairs.append((edge, neighbor))
        return pairs

    def in_degree(self, node_id: str) -> int:
        return self._graph.in_degree(self._require_node(node_id))

    def out_degree(self, node_id: str) -> int:
        return self._graph.out_degree(self._require_node(node_id))

    def degree(self, node_id: str) -> int:
        idx = self._require_node(node_id)
        return self._graph.in_degree(idx) + self._graph.out_degree(idx)

    def predecessors(self, node_id: str) -> list[tuple[str, Edge]]:
        """``(source_id, edge)`` for each incoming edge, one entry per edge."""
        return [(e.source_node_id, e) for e in self._in[node_id]]

    # ------------------------------------------------------------------
    # Summary
    # ------------------------------------------------------------------

    def stats(self) -> dict[str, Any]:
        """Counts, per-type histograms, density and average degree."""
        n = self.node_count
        e = self.edge_count
        node_types = Counter(x.node_type.value for x in self._nodes.values())
        edge_types = Counter(x.edge_type.value for x in self._edges.values())
        return {
            "node_count": n,
            "edge_count": e,
            "nodes_by_type": dict(sorted(node_types.items())),
            "edges_by_type": dict(sorted(edge_types.items())),
            "density": e / (n * (n - 1)) if n > 1 else 0.0,
            "average_degree": (2 * e) / n if n else 0.0,
        }


# ------------------------------------------------------------------
# Loading
# ------------------------------------------------------------------


async def _fetch_tenant(session: AsyncSession, tenant_id: str) -> tuple[list[Node], list[Edge]]:
    node_rows = await session.execute(
        select(IntelligenceNode)
        .where(IntelligenceNode.tenant_id == tenant_id)
        .order_by(col(IntelligenceNode.seq))
    )
    edge_rows = await session.execute(
        select(IntelligenceEdge)
        .where(IntelligenceEdge.tenant_id == tenant_id)
        .order_by(col(IntelligenceEdge.seq))
    )
    return (
        [node_from_row(r) for r in node_rows.scalars().all()],
        [edge_from_row(r) for r in edge_rows.scalars().all()],
    )


class GraphViews:
    """Builds and caches one :class:`TenantGraph` per tenant.

    A cached view is reused while the tenant's graph version has not moved,
    i.e. until the next graph-writing unit of work for that tenant.
    """

    def __init__(self, db: Database) -> None:
        self._db = db
        self._cache: dict[str, TenantGraph] = {}

    async def load(self, tenant_id: str) -> TenantGraph:
        """Return a consistent view of *tenant_id* as of now."""
        async with self._db.consistent_read(tenant_id) as version:
            cached = self._cache.get(tenant_id)
            if cached is not None and cached.version == version:
                logger.debug("Graph view cache hit for tenant %s", tenant_id)
                return cached
            async with self._db.read_session() as session:
                nodes, edges = await _fetch_tenant(session, tenant_id)

        view = TenantGraph(tenant_id, version, nodes, edges)
        self._cache[tenant_id] = view
        logger.debug(
            "Loaded graph view for tenant %s: %d nodes, %d edges",
            tenant_id, view.node_count, view.edge_count,
        )
        return view

    def invalidate(self, tenant_id: str | None = None) -> None:
        if tenant_id is None:
            self._cache.clear()
        else:
            self._cache.pop(tenant_id, None)
