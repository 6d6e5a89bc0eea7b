"""SQLModel database models for the intelligence graph."""

from intelgraph.models.audit import AuditLogEntry
from intelgraph.models.edges import IntelligenceEdge
from intelgraph.models.embeddings import EdgeEmbedding, EmbeddingBase, NodeEmbedding
from intelgraph.models.nodes import IntelligenceNode
from intelgraph.models.snapshots import GraphSnapshot

__all__ = [
    "AuditLogEntry",
    "EdgeEmbedding",
    "EmbeddingBase",
    "GraphSnapshot",
    "IntelligenceEdge",
    "IntelligenceNode",
    "NodeEmbedding",
]
