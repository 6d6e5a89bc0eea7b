"""SnapshotManager — point-in-time captures of a tenant graph and their diffs.

A snapshot is serialized from a consistent :class:`TenantGraph` view, so
it never holds a half-applied mutation, and capturing one does not block
concurrent writers.  Snapshot rows are immutable; retention may delete
them.
"""

from __future__ import annotations

import json
import logging
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete as sa_delete
from sqlmodel import col, select

from intelgraph.exceptions import InvalidArgumentError, NotFoundError
from intelgraph.graph.analytics import connected_components
from intelgraph.models import GraphSnapshot
from intelgraph.snapshots.types import SnapshotDiff, SnapshotGraph, SnapshotInfo
from intelgraph.types import SYSTEM_ACTOR, Actor, AuditEventType, Edge, EntityKind, Node
from intelgraph.utils import ensure_utc, utcnow

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from intelgraph.audit import AuditLog
    from intelgraph.config import GraphConfig
    from intelgraph.graph._rustworkx import GraphViews
    from intelgraph.store._uow import Database, UnitOfWork

logger = logging.getLogger(__name__)

_NODE_FIELDS = ("properties", "updated_at")
_EDGE_FIELDS = ("properties", "weight", "source_node_id", "target_node_id", "updated_at")


def _info(row: GraphSnapshot) -> SnapshotInfo:
    return SnapshotInfo(
        id=row.id,
        tenant_id=row.tenant_id,
        label=row.label,
        node_count=row.node_count,
        edge_count=row.edge_count,
        created_at=ensure_utc(row.created_at),
        stats=MappingProxyType(json.loads(row.stats_json)),
    )


def _diff_ids(
    before: dict[str, dict[str, Any]],
    after: dict[str, dict[str, Any]],
    fields: tuple[str, ...],
) -> tuple[tuple[str, ...], tuple[str, ...], tuple[str, ...]]:
    """``(added, removed, modified)`` ids between two id-keyed payloads."""
    added = tuple(i for i in after if i not in before)
    removed = tuple(i for i in before if i not in after)
    modified = tuple(
        i
        for i in after
        if i in before and any(before[i].get(f) != after[i].get(f) for f in fields)
    )
    return added, removed, modified


class SnapshotManager:
    """Creates, lists, diffs and prunes graph snapshots."""

    def __init__(
        self, views: GraphViews, db: Database, audit: AuditLog, config: GraphConfig
    ) -> None:
        self._views = views
        self._db = db
        self._audit = audit
        self._config = config

    # ------------------------------------------------------------------
    # Capture
    # ------------------------------------------------------------------

    async def create_snapshot(
        self, tenant_id: str, label: str | None = None, *, actor: Actor | None = None
    ) -> SnapshotInfo:
        """Capture every node and edge of the tenant as of now.

        An empty tenant yields an empty snapshot.
        """
        view = await self._views.load(tenant_id)
        stats = view.stats()
        stats["cluster_count"] = len(connected_components(view))
        stats["view_version"] = view.version

        row = GraphSnapshot(
            tenant_id=tenant_id,
            label=label,
            node_count=view.node_count,
            edge_count=view.edge_count,
            stats_json=json.dumps(stats, sort_keys=True),
            nodes_json=json.dumps([n.to_dict() for n in view.nodes()], sort_keys=True),
            edges_json=json.dumps([e.to_dict() for e in view.edges()], sort_keys=True),
            created_at=utcnow(),
        )
        async with self._db.unit_of_work(tenant_id, graph_write=False) as uow:
            uow.session.add(row)
            await uow.session.flush()
            await self._audit.record(
                uow,
                AuditEventType.SNAPSHOTTED,
                target_id=row.id,
                target_kind=EntityKind.SNAPSHOT,
                actor=actor,
                new_state={
                    "label": label,
                    "node_count": row.node_count,
                    "edge_count": row.edge_count,
                },
            )
        logger.info(
            "Snapshot %s of tenant %s: %d nodes, %d edges",
            row.id, tenant_id, row.node_count, row.edge_count,
        )
        return _info(row)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @staticmethod
    async def _row(session: AsyncSession, tenant_id: str, snapshot_id: str) -> GraphSnapshot:
        row = await session.get(GraphSnapshot, snapshot_id)
        if row is None or row.tenant_id != tenant_id:
            msg = f"Snapshot not found: {snapshot_id!r}"
            raise NotFoundError(msg)
        return row

    async def get_snapshot(self, tenant_id: str, snapshot_id: str) -> SnapshotInfo:
        async with self._db.read_session() as session:
            return _info(await self._row(session, tenant_id, snapshot_id))

    async def list_snapshots(
        self, tenant_id: str, *, limit: int | None = None, offset: int = 0
    ) -> list[SnapshotInfo]:
        """Snapshots of the tenant, newest first."""
        stmt = (
            select(GraphSnapshot)
            .where(GraphSnapshot.tenant_id == tenant_id)
            .order_by(col(GraphSnapshot.seq).desc())
            .offset(offset)
            .limit(self._config.clamp_limit(limit))
        )
        async with self._db.read_session() as session:
            rows = (await session.execute(stmt)).scalars().all()
        return [_info(r) for r in rows]

    async def load_snapshot_graph(self, tenant_id: str, snapshot_id: str) -> SnapshotGraph:
        """Deserialize the captured nodes and edges."""
        async with self._db.read_session() as session:
            row = await self._row(session, tenant_id, snapshot_id)
        return SnapshotGraph(
            info=_info(row),
            nodes=tuple(Node.from_dict(d) for d in json.loads(row.nodes_json)),
            edges=tuple(Edge.from_dict(d) for d in json.loads(row.edges_json)),
        )

    async def diff(self, tenant_id: str, snapshot_a: str, snapshot_b: str) -> SnapshotDiff:
        """What changed from *snapshot_a* to *snapshot_b*.

        Nodes count as modified when ``properties`` or ``updated_at``
        differ; edges when ``properties``, ``weight``, an endpoint or
        ``updated_at`` differ.  Derived analytics fields are ignored.
        """
        async with self._db.read_session() as session:
            row_a = await self._row(session, tenant_id, snapshot_a)
            row_b = await self._row(session, tenant_id, snapshot_b)

        def by_id(payload: str) -> dict[str, dict[str, Any]]:
            return {d["id"]: d for d in json.loads(payload)}

        added_n, removed_n, modified_n = _diff_ids(
            by_id(row_a.nodes_json), by_id(row_b.nodes_json), _NODE_FIELDS
        )
        added_e, removed_e, modified_e = _diff_ids(
            by_id(row_a.edges_json), by_id(row_b.edges_json), _EDGE_FIELDS
        )
        return SnapshotDiff(
            added_nodes=added_n,
            removed_nodes=removed_n,
            modified_nodes=modified_n,
            added_edges=added_e,
            removed_edges=removed_e,
            modified_edges=modified_e,
        )

    # ------------------------------------------------------------------
    # Retention
    # ------------------------------------------------------------------

    async def _delete_row(
        self,
        uow: UnitOfWork,
        row: GraphSnapshot,
        actor: Actor | None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        await uow.session.execute(sa_delete(GraphSnapshot).where(col(GraphSnapshot.id) == row.id))
        await self._audit.record(
            uow,
            AuditEventType.DELETED,
            target_id=row.id,
            target_kind=EntityKind.SNAPSHOT,
            actor=actor,
            previous_state=_info(row).to_dict(),
            metadata=metadata,
        )

    async def delete_snapshot(
        self, tenant_id: str, snapshot_id: str, *, actor: Actor | None = None
    ) -> bool:
        """Delete one snapshot.  Returns False if it did not exist."""
        async with self._db.unit_of_work(tenant_id, graph_write=False) as uow:
            row = await uow.session.get(GraphSnapshot, snapshot_id)
            if row is None or row.tenant_id != tenant_id:
                return False
            await self._delete_row(uow, row, actor)
        logger.info("Deleted snapshot %s of tenant %s", snapshot_id, tenant_id)
        return True

    async def prune_snapshots(
        self, tenant_id: str, keep_last: int, *, actor: Actor | None = None
    ) -> list[str]:
        """Delete all but the *keep_last* newest snapshots; return deleted ids."""
        if keep_last < 0:
            msg = f"keep_last must be >= 0, got {keep_last}"
            raise InvalidArgumentError(msg)
        async with self._db.unit_of_work(tenant_id, graph_write=False) as uow:
            rows = (
                await uow.session.execute(
                    select(GraphSnapshot)
                    .where(GraphSnapshot.tenant_id == tenant_id)
                    .order_by(col(GraphSnapshot.seq).desc())
                    .offset(keep_last)
                )
            ).scalars().all()
            for row in rows:
                await self._delete_row(
                    uow,
                    row,
                    actor or SYSTEM_ACTOR,
                    {"operation": "prune_snapshots", "keep_last": keep_last},
                )
        deleted = [r.id for r in rows]
        if deleted:
            logger.info("Pruned %d snapshots of tenant %s", len(deleted), tenant_id)
        return deleted
