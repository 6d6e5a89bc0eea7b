"""Read-side graph engines — rustworkx views, traversal, analytics."""

from intelgraph.graph._rustworkx import GraphViews, TenantGraph
from intelgraph.graph.analytics import (
    AnalyticsEngine,
    connected_components,
    degree_centrality,
    pagerank,
)
from intelgraph.graph.traversal import TraversalEngine
from intelgraph.graph.types import (
    Cluster,
    GraphMetrics,
    GraphPath,
    NodeCentrality,
    PathExplanation,
    TraversalHit,
)

__all__ = [
    "AnalyticsEngine",
    "Cluster",
    "GraphMetrics",
    "GraphPath",
    "GraphViews",
    "NodeCentrality",
    "PathExplanation",
    "TenantGraph",
    "TraversalEngine",
    "TraversalHit",
    "connected_components",
    "degree_centrality",
    "pagerank",
]
