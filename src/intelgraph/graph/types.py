"""Graph result types — immutable data containers."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from intelgraph.types import Edge, Node


@dataclass(frozen=True, slots=True)
class TraversalHit:
    """One node reached by a traversal.

    ``path`` holds node ids from the start node to ``node`` inclusive;
    ``edge_path`` the edge ids walked, so ``len(edge_path) == depth``.
    """

    node: Node
    depth: int
    path: tuple[str, ...]
    edge_path: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class GraphPath:
    """A shortest hop-count path and its accumulated weight.

    ``total_weight`` is the sum of edge weights along *this* path.  It is
    not the minimum-weight path between the endpoints.
    """

    nodes: tuple[Node, ...]
    edges: tuple[Edge, ...]
    total_weight: float

    @property
    def node_ids(self) -> tuple[str, ...]:
        return tuple(n.id for n in self.nodes)

    @property
    def hops(self) -> int:
        return len(self.edges)

    def triples(self) -> list[tuple[str, str, str]]:
        """``(source label, edge type, target label)`` per step, in walk order."""
        out: list[tuple[str, str, str]] = []
        for i, edge in enumerate(self.edges):
            out.append((self.nodes[i].label, edge.edge_type.value, self.nodes[i + 1].label))
        return out


@dataclass(frozen=True, slots=True)
class PathExplanation:
    """A path plus a best-effort narrative.

    ``explanation`` is ``None`` when the narrative collaborator failed or
    timed out; ``error_code`` then says why.
    """

    path: GraphPath
    explanation: str | None = None
    error_code: str | None = None


@dataclass(frozen=True, slots=True)
class NodeCentrality:
    """Derived importance scores for one node."""

    degree: float
    pagerank: float


@dataclass(frozen=True, slots=True)
class Cluster:
    """A connected component of the undirected projection.

    ``member_ids`` are in insertion order; ``central_node_id`` is the member
    with the highest raw degree (earliest inserted on ties).
    """

    id: str
    member_ids: tuple[str, ...]
    central_node_id: str
    node_types: MappingProxyType[str, int] = field(default_factory=lambda: MappingProxyType({}))

    @property
    def size(self) -> int:
        return len(self.member_ids)


@dataclass(frozen=True, slots=True)
class GraphMetrics:
    """Tenant-level summary statistics."""

    node_count: int
    edge_count: int
    nodes_by_type: MappingProxyType[str, int]
    edges_by_type: MappingProxyType[str, int]
    density: float
    average_degree: float
    cluster_count: int
    top_by_degree: tuple[tuple[str, float], ...]
    top_by_pagerank: tuple[tuple[str, float], ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "node_count": self.node_count,
            "edge_count": self.edge_count,
            "nodes_by_type": dict(self.nodes_by_type),
            "edges_by_type": dict(self.edges_by_type),
            "density": self.density,
            "average_degree": self.average_degree,
            "cluster_count": self.cluster_count,
            "top_by_degree": [list(p) for p in self.top_by_degree],
            "top_by_pagerank": [list(p) for p in self.top_by_pagerank],
        }
