"""Graph store — transactional node/edge CRUD, upsert and merge."""

from intelgraph.store._uow import Database, UnitOfWork
from intelgraph.store.graph_store import GraphStore
from intelgraph.store.locks import KeyedLocks, TenantGate
from intelgraph.store.schema import PropertySchemaRegistry
from intelgraph.store.types import (
    EdgeOrder,
    EdgePatch,
    EdgeWithNodes,
    MergePreview,
    MergeResult,
    NodeOrder,
    NodePatch,
    NodeWithConnections,
)

__all__ = [
    "Database",
    "EdgeOrder",
    "EdgePatch",
    "EdgeWithNodes",
    "GraphStore",
    "KeyedLocks",
    "MergePreview",
    "MergeResult",
    "NodeOrder",
    "NodePatch",
    "NodeWithConnections",
    "PropertySchemaRegistry",
    "TenantGate",
    "UnitOfWork",
]
