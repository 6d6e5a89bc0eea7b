"""Semantic search layer — engine, vector store, text extraction, providers."""

from intelgraph.search._engine import SemanticSearch
from intelgraph.search.extractors import content_hash, edge_text, node_text
from intelgraph.search.protocols import EmbeddingProvider
from intelgraph.search.stores.local import LocalVectorStore
from intelgraph.search.types import (
    HitKind,
    IndexOutcome,
    ReembedReport,
    SearchHit,
    SearchResults,
)

__all__ = [
    "EmbeddingProvider",
    "HitKind",
    "IndexOutcome",
    "LocalVectorStore",
    "ReembedReport",
    "SearchHit",
    "SearchResults",
    "SemanticSearch",
    "content_hash",
    "edge_text",
    "node_text",
]
