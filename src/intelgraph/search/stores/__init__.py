"""Vector stores — in-process ANN candidate retrieval."""

from intelgraph.search.stores.local import LocalVectorStore

__all__ = [
    "LocalVectorStore",
]
