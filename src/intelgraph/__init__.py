"""IntelGraph: a multi-tenant intelligence graph.

Typed nodes and edges with traversal, analytics, semantic search,
snapshots and a tamper-evident audit trail.
"""

__version__ = "0.1.0"

from intelgraph._intelgraph import IntelGraph
from intelgraph._intelgraph_async import IntelGraphAsync
from intelgraph.audit import AuditRecord
from intelgraph.cancellation import CancellationToken
from intelgraph.collaborators import CollaboratorResult, NarrativeProvider, call_collaborator
from intelgraph.config import GraphConfig
from intelgraph.events import EventBus, EventType, GraphEvent
from intelgraph.exceptions import (
    AuditIntegrityError,
    CollaboratorError,
    CollaboratorTimeoutError,
    CrossTenantError,
    DuplicateExternalSourceError,
    IntelGraphError,
    InvalidArgumentError,
    InvalidSelfLoopError,
    MergeConflictError,
    NotFoundError,
    OperationCancelledError,
    PropertySchemaError,
    StorageUnavailableError,
)
from intelgraph.graph import (
    Cluster,
    GraphMetrics,
    GraphPath,
    NodeCentrality,
    PathExplanation,
    TraversalHit,
)
from intelgraph.search import (
    EmbeddingProvider,
    HitKind,
    IndexOutcome,
    ReembedReport,
    SearchHit,
    SearchResults,
)
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
    PropertySchemaRegistry,
)
from intelgraph.types import (
    SYSTEM_ACTOR,
    Actor,
    ActorType,
    AuditEventType,
    Direction,
    Edge,
    EdgeType,
    EntityKind,
    Node,
    NodeType,
)

__all__ = [
    "SYSTEM_ACTOR",
    "Actor",
    "ActorType",
    "AuditEventType",
    "AuditIntegrityError",
    "AuditRecord",
    "CancellationToken",
    "Cluster",
    "CollaboratorError",
    "CollaboratorResult",
    "CollaboratorTimeoutError",
    "CrossTenantError",
    "Direction",
    "DuplicateExternalSourceError",
    "Edge",
    "EdgeOrder",
    "EdgePatch",
    "EdgeType",
    "EdgeWithNodes",
    "EmbeddingProvider",
    "EntityKind",
    "EventBus",
    "EventType",
    "GraphConfig",
    "GraphEvent",
    "GraphMetrics",
    "GraphPath",
    "HitKind",
    "IndexOutcome",
    "IntelGraph",
    "IntelGraphAsync",
    "IntelGraphError",
    "InvalidArgumentError",
    "InvalidSelfLoopError",
    "MergeConflictError",
    "MergePreview",
    "MergeResult",
    "NarrativeProvider",
    "Node",
    "NodeCentrality",
    "NodeOrder",
    "NodePatch",
    "NodeType",
    "NodeWithConnections",
    "NotFoundError",
    "OperationCancelledError",
    "PathExplanation",
    "PropertySchemaError",
    "PropertySchemaRegistry",
    "ReembedReport",
    "SearchHit",
    "SearchResults",
    "SnapshotDiff",
    "SnapshotGraph",
    "SnapshotInfo",
    "StorageUnavailableError",
    "TraversalHit",
    "__version__",
    "call_collaborator",
]
