"""Point-in-time graph snapshots and structural diffs."""

from intelgraph.snapshots.manager import SnapshotManager
from intelgraph.snapshots.types import SnapshotDiff, SnapshotGraph, SnapshotInfo

__all__ = ["SnapshotDiff", "SnapshotGraph", "SnapshotInfo", "SnapshotManager"]
