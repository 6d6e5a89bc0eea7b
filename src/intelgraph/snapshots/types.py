"""Snapshot result types."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from intelgraph.utils import ensure_utc

if TYPE_CHECKING:
    from datetime import datetime

    from intelgraph.types import Edge, Node


@dataclass(frozen=True, slots=True)
class SnapshotInfo:
    """Metadata and summary statistics of one snapshot (no payload)."""

    id: str
    tenant_id: str
    label: str | None
    node_count: int
    edge_count: int
    created_at: datetime
    stats: MappingProxyType[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "label": self.label,
            "node_count": self.node_count,
            "edge_count": self.edge_count,
            "created_at": ensure_utc(self.created_at).isoformat(),
            "stats": dict(self.stats),
        }


@dataclass(frozen=True, slots=True)
class SnapshotGraph:
    """The nodes and edges captured by a snapshot, in insertion order."""

    info: SnapshotInfo
    nodes: tuple[Node, ...]
    edges: tuple[Edge, ...]


@dataclass(frozen=True, slots=True)
class SnapshotDiff:
    """Structural difference from snapshot ``a`` to snapshot ``b``.

    Each field holds entity ids.  *added* are in ``b`` only, *removed* in
    ``a`` only, *modified* in both with differing content.
    """

    added_nodes: tuple[str, ...] = ()
    removed_nodes: tuple[str, ...] = ()
    modified_nodes: tuple[str, ...] = ()
    added_edges: tuple[str, ...] = ()
    removed_edges: tuple[str, ...] = ()
    modified_edges: tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not (
            self.added_nodes
            or self.removed_nodes
            or self.modified_nodes
            or self.added_edges
            or self.removed_edges
            or self.modified_edges
        )

    def to_dict(self) -> dict[str, list[str]]:
        return {
            "added_nodes": list(self.added_nodes),
            "removed_nodes": list(self.removed_nodes),
            "modified_nodes": list(self.modified_nodes),
            "added_edges": list(self.added_edges),
            "removed_edges": list(self.removed_edges),
            "modified_edges": list(self.modified_edges),
        }
