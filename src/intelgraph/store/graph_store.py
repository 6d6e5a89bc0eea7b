"""GraphStore — tenant-scoped CRUD, upserts, cascade delete, and merge.

Every mutation:

1. takes per-entity locks (sorted order) so concurrent writers to the same
   node or edge serialize,
2. runs in one :class:`UnitOfWork` that also writes the audit entry,
3. emits :class:`GraphEvent` objects only after the commit succeeded.
"""

from __future__ import annotations

import logging
import math
from contextlib import asynccontextmanager
from enum import StrEnum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, TypeVar

from sqlalchemy import delete as sa_delete
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlmodel import col, select

from intelgraph.events import EventBus, EventType, GraphEvent
from intelgraph.exceptions import (
    CrossTenantError,
    DuplicateExternalSourceError,
    IntelGraphError,
    InvalidArgumentError,
    InvalidSelfLoopError,
    MergeConflictError,
    NotFoundError,
)
from intelgraph.models import EdgeEmbedding, IntelligenceEdge, IntelligenceNode, NodeEmbedding
from intelgraph.store._rows import dump_properties, edge_from_row, node_from_row
from intelgraph.store.locks import KeyedLocks
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
from intelgraph.types import (
    SELF_LOOP_EDGE_TYPES,
    Actor,
    AuditEventType,
    Direction,
    Edge,
    EdgeType,
    EntityKind,
    Node,
    NodeType,
)
from intelgraph.utils import utcnow

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterable, Sequence

    from sqlalchemy.ext.asyncio import AsyncSession

    from intelgraph.audit.log import AuditLog
    from intelgraph.config import GraphConfig
    from intelgraph.store._uow import Database, UnitOfWork

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=StrEnum)


def coerce_enum(enum_cls: type[E], value: E | str, what: str) -> E:
    """Convert *value* to *enum_cls*, raising ``InvalidArgumentError``."""
    try:
        return enum_cls(value)
    except ValueError as exc:
        msg = f"Unknown {what}: {value!r}"
        raise InvalidArgumentError(msg) from exc


def _check_weight(weight: float) -> float:
    weight = float(weight)
    if not math.isfinite(weight) or weight < 0:
        msg = f"Edge weight must be a finite non-negative number, got {weight!r}"
        raise InvalidArgumentError(msg)
    return weight


def _node_ext_key(tenant_id: str, node_type: NodeType, external_source_id: str) -> str:
    return f"ext:node:{tenant_id}:{node_type.value}:{external_source_id}"


def _edge_ext_key(tenant_id: str, edge_type: EdgeType, external_source_id: str) -> str:
    return f"ext:edge:{tenant_id}:{edge_type.value}:{external_source_id}"


def _node_ordering(order_by: NodeOrder) -> list[Any]:
    seq = col(IntelligenceNode.seq)
    if order_by is NodeOrder.UPDATED_AT:
        return [col(IntelligenceNode.updated_at).desc(), seq]
    if order_by is NodeOrder.LABEL:
        return [col(IntelligenceNode.label), seq]
    if order_by is NodeOrder.DEGREE_CENTRALITY:
        return [col(IntelligenceNode.centrality_score).desc().nulls_last(), seq]
    if order_by is NodeOrder.PAGERANK_SCORE:
        return [col(IntelligenceNode.pagerank_score).desc().nulls_last(), seq]
    return [seq]


def _merged_properties(primary: Node, duplicates: Sequence[Node]) -> dict[str, Any]:
    """Union of properties; the primary wins, then earlier duplicates win."""
    merged = dict(primary.properties)
    for dup in duplicates:
        for key, value in dup.properties.items():
            merged.setdefault(key, value)
    return merged


class GraphStore:
    """Durable, tenant-scoped storage of nodes and edges.

    All methods take ``tenant_id`` first.  An id that exists only in another
    tenant is reported as ``NotFoundError`` on direct access; linking
    entities across tenants raises ``CrossTenantError``.
    """

    def __init__(
        self,
        db: Database,
        audit: AuditLog,
        events: EventBus,
        config: GraphConfig,
        schemas: PropertySchemaRegistry | None = None,
    ) -> None:
        self._db = db
        self._audit = audit
        self._events = events
        self._config = config
        self._schemas = schemas or PropertySchemaRegistry()
        self._locks = KeyedLocks()

    @property
    def schemas(self) -> PropertySchemaRegistry:
        return self._schemas

    @asynccontextmanager
    async def _write(
        self, tenant_id: str, keys: Iterable[str] = (), *, graph_write: bool = True
    ) -> AsyncIterator[UnitOfWork]:
        """Lock *keys*, open a unit of work, emit its events after commit."""
        async with self._locks.hold(keys):
            async with self._db.unit_of_work(tenant_id, graph_write=graph_write) as uow:
                yield uow
        await self._events.emit_all(uow.events)

    # ------------------------------------------------------------------
    # Row lookups
    # ------------------------------------------------------------------

    @staticmethod
    async def _node_row(session: AsyncSession, tenant_id: str, node_id: str) -> IntelligenceNode:
        row = await session.get(IntelligenceNode, node_id)
        if row is None or row.tenant_id != tenant_id:
            msg = f"Node not found: {node_id!r}"
            raise NotFoundError(msg)
        return row

    @staticmethod
    async def _edge_row(session: AsyncSession, tenant_id: str, edge_id: str) -> IntelligenceEdge:
        row = await session.get(IntelligenceEdge, edge_id)
        if row is None or row.tenant_id != tenant_id:
            msg = f"Edge not found: {edge_id!r}"
            raise NotFoundError(msg)
        return row

    @staticmethod
    async def _node_by_external(
        session: AsyncSession, tenant_id: str, node_type: NodeType, external_source_id: str
    ) -> IntelligenceNode | None:
        result = await session.execute(
            select(IntelligenceNode).where(
                IntelligenceNode.tenant_id == tenant_id,
                IntelligenceNode.node_type == node_type.value,
                IntelligenceNode.external_source_id == external_source_id,
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def _edge_by_external(
        session: AsyncSession, tenant_id: str, edge_type: EdgeType, external_source_id: str
    ) -> IntelligenceEdge | None:
        result = await session.execute(
            select(IntelligenceEdge).where(
                IntelligenceEdge.tenant_id == tenant_id,
                IntelligenceEdge.edge_type == edge_type.value,
                IntelligenceEdge.external_source_id == external_source_id,
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def _incident_edge_rows(
        session: AsyncSession, tenant_id: str, node_ids: Sequence[str]
    ) -> list[IntelligenceEdge]:
        result = await session.execute(
            select(IntelligenceEdge)
            .where(
                IntelligenceEdge.tenant_id == tenant_id,
                or_(
                    col(IntelligenceEdge.source_node_id).in_(node_ids),
                    col(IntelligenceEdge.target_node_id).in_(node_ids),
                ),
            )
            .order_by(col(IntelligenceEdge.seq))
        )
        return list(result.scalars().all())

    @staticmethod
    async def _delete_edge_rows(session: AsyncSession, edge_ids: Sequence[str]) -> None:
        if not edge_ids:
            return
        await session.execute(
            sa_delete(EdgeEmbedding).where(col(EdgeEmbedding.edge_id).in_(edge_ids))
        )
        await session.execute(
            sa_delete(IntelligenceEdge).where(col(IntelligenceEdge.id).in_(edge_ids))
        )

    @staticmethod
    async def _delete_node_rows(session: AsyncSession, node_ids: Sequence[str]) -> None:
        await session.execute(
            sa_delete(NodeEmbedding).where(col(NodeEmbedding.node_id).in_(node_ids))
        )
        await session.execute(
            sa_delete(IntelligenceNode).where(col(IntelligenceNode.id).in_(node_ids))
        )

    async def _peek_node_by_external(
        self, tenant_id: str, node_type: NodeType, external_source_id: str
    ) -> str | None:
        async with self._db.read_session() as session:
            row = await self._node_by_external(session, tenant_id, node_type, external_source_id)
            return row.id if row is not None else None

    async def _peek_edge_by_external(
        self, tenant_id: str, edge_type: EdgeType, external_source_id: str
    ) -> str | None:
        async with self._db.read_session() as session:
            row = await self._edge_by_external(session, tenant_id, edge_type, external_source_id)
            return row.id if row is not None else None

    # ------------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------------

    async def _insert_node(
        self,
        uow: UnitOfWork,
        node_type: NodeType,
        label: str,
        properties: dict[str, Any],
        external_source_id: str | None,
        actor: Actor | None,
    ) -> Node:
        session = uow.session
        if external_source_id is not None:
            existing = await self._node_by_external(
                session, uow.tenant_id, node_type, external_source_id
            )
            if existing is not None:
                msg = (
                    f"Node {node_type.value!r} with external source "
                    f"{external_source_id!r} already exists"
                )
                raise DuplicateExternalSourceError(msg)

        row = IntelligenceNode(
            tenant_id=uow.tenant_id,
            node_type=node_type.value,
            label=label,
            properties_json=dump_properties(properties),
            external_source_id=external_source_id,
        )
        session.add(row)
        try:
            await session.flush()
        except IntegrityError as exc:
            msg = (
                f"Node {node_type.value!r} with external source "
                f"{external_source_id!r} already exists"
            )
            raise DuplicateExternalSourceError(msg) from exc

        node = node_from_row(row)
        await self._audit.record(
            uow, AuditEventType.CREATED, target_id=node.id, actor=actor, new_state=node.to_dict()
        )
        uow.events.append(GraphEvent(EventType.NODE_WRITTEN, uow.tenant_id, node.id))
        return node

    async def _patch_node(
        self,
        uow: UnitOfWork,
        row: IntelligenceNode,
        label: str | None,
        properties: dict[str, Any] | None,
        actor: Actor | None,
    ) -> Node:
        before = node_from_row(row)
        changed = False
        if label is not None and label != row.label:
            row.label = label
            changed = True
        if properties is not None:
            encoded = dump_properties(properties)
            if encoded != row.properties_json:
                row.properties_json = encoded
                changed = True
        if not changed:
            return before

        row.updated_at = utcnow()
        uow.session.add(row)
        await uow.session.flush()
        after = node_from_row(row)
        await self._audit.record(
            uow,
            AuditEventType.UPDATED,
            target_id=row.id,
            actor=actor,
            previous_state=before.to_dict(),
            new_state=after.to_dict(),
        )
        uow.events.append(GraphEvent(EventType.NODE_WRITTEN, uow.tenant_id, row.id))
        return after

    async def create_node(
        self,
        tenant_id: str,
        node_type: NodeType | str,
        label: str,
        properties: dict[str, Any] | None = None,
        *,
        external_source_id: str | None = None,
        actor: Actor | None = None,
    ) -> Node:
        """Create a node.

        Raises ``DuplicateExternalSourceError`` if *external_source_id* is
        already used by a node of the same type in this tenant.
        """
        ntype = coerce_enum(NodeType, node_type, "node type")
        props = self._schemas.validate_node(ntype, properties)
        keys = [_node_ext_key(tenant_id, ntype, external_source_id)] if external_source_id else []
        async with self._write(tenant_id, keys) as uow:
            node = await self._insert_node(uow, ntype, label, props, external_source_id, actor)
        logger.debug("Created node %s (%s) for tenant %s", node.id, ntype.value, tenant_id)
        return node

    async def upsert_node(
        self,
        tenant_id: str,
        node_type: NodeType | str,
        external_source_id: str,
        label: str,
        properties: dict[str, Any] | None = None,
        *,
        actor: Actor | None = None,
    ) -> Node:
        """Create or update the node identified by its upstream record.

        An existing node gets *label* and *properties* (replacing the map).
        Re-sending identical data is a no-op and writes no audit entry.
        """
        ntype = coerce_enum(NodeType, node_type, "node type")
        props = self._schemas.validate_node(ntype, properties)
        async with self._locks.hold([_node_ext_key(tenant_id, ntype, external_source_id)]):
            existing_id = await self._peek_node_by_external(tenant_id, ntype, external_source_id)
            keys = [existing_id] if existing_id else []
            async with self._write(tenant_id, keys) as uow:
                row = await self._node_by_external(
                    uow.session, tenant_id, ntype, external_source_id
                )
                if row is None:
                    node = await self._insert_node(
                        uow, ntype, label, props, external_source_id, actor
                    )
                else:
                    node = await self._patch_node(uow, row, label, props, actor)
        return node

    async def get_node(self, tenant_id: str, node_id: str) -> Node:
        """Return the node.  Raises ``NotFoundError``."""
        async with self._db.read_session() as session:
            return node_from_row(await self._node_row(session, tenant_id, node_id))

    async def get_nodes(self, tenant_id: str, node_ids: Sequence[str]) -> dict[str, Node]:
        """Return the subset of *node_ids* that exist in this tenant."""
        if not node_ids:
            return {}
        async with self._db.read_session() as session:
            result = await session.execute(
                select(IntelligenceNode).where(
                    IntelligenceNode.tenant_id == tenant_id,
                    col(IntelligenceNode.id).in_(list(node_ids)),
                )
            )
            return {row.id: node_from_row(row) for row in result.scalars().all()}

    async def list_nodes(
        self,
        tenant_id: str,
        *,
        node_types: Sequence[NodeType | str] | None = None,
        cluster_id: str | None = None,
        search: str | None = None,
        limit: int | None = None,
        offset: int = 0,
        order_by: NodeOrder | str = NodeOrder.CREATED_AT,
    ) -> list[Node]:
        """List nodes, optionally filtered.

        *search* is a case-insensitive substring match on the label.
        *order_by* defaults to insertion order; ``updated_at`` and the
        analytics scores sort newest/highest first, with unscored nodes last.
        """
        ordering = _node_ordering(coerce_enum(NodeOrder, order_by, "node ordering"))
        stmt = select(IntelligenceNode).where(IntelligenceNode.tenant_id == tenant_id)
        if node_types:
            values = [coerce_enum(NodeType, t, "node type").value for t in node_types]
            stmt = stmt.where(col(IntelligenceNode.node_type).in_(values))
        if cluster_id is not None:
            stmt = stmt.where(IntelligenceNode.cluster_id == cluster_id)
        if search:
            stmt = stmt.where(col(IntelligenceNode.label).ilike(f"%{search}%"))
        stmt = (
            stmt.order_by(*ordering)
            .offset(offset)
            .limit(self._config.clamp_limit(limit))
        )
        async with self._db.read_session() as session:
            result = await session.execute(stmt)
            return [node_from_row(row) for row in result.scalars().all()]

    async def get_node_with_connections(self, tenant_id: str, node_id: str) -> NodeWithConnections:
        """Return *node_id* with its incident edges and neighbor nodes."""
        async with self._db.read_session() as session:
            node = node_from_row(await self._node_row(session, tenant_id, node_id))
            edges = [
                edge_from_row(r)
                for r in await self._incident_edge_rows(session, tenant_id, [node_id])
            ]
            neighbor_ids = {e.other_end(node_id) for e in edges} - {node_id}
            has_loop = any(e.is_self_loop for e in edges)
            neighbors: dict[str, Node] = {node_id: node} if has_loop else {}
            if neighbor_ids:
                result = await session.execute(
                    select(IntelligenceNode).where(
                        IntelligenceNode.tenant_id == tenant_id,
                        col(IntelligenceNode.id).in_(neighbor_ids),
                    )
                )
                neighbors.update({r.id: node_from_row(r) for r in result.scalars().all()})

        return NodeWithConnections(
            node=node,
            outgoing=tuple(e for e in edges if e.source_node_id == node_id),
            incoming=tuple(e for e in edges if e.target_node_id == node_id),
            neighbors=MappingProxyType(neighbors),
        )

    async def update_node(
        self,
        tenant_id: str,
        node_id: str,
        patch: NodePatch,
        *,
        actor: Actor | None = None,
    ) -> Node:
        """Apply *patch* to the node.  Raises ``NotFoundError``."""
        async with self._write(tenant_id, [node_id]) as uow:
            row = await self._node_row(uow.session, tenant_id, node_id)
            props = None
            if patch.properties is not None:
                props = self._schemas.validate_node(NodeType(row.node_type), patch.properties)
            node = await self._patch_node(uow, row, patch.label, props, actor)
        return node

    async def delete_node(
        self, tenant_id: str, node_id: str, *, actor: Actor | None = None
    ) -> bool:
        """Delete a node, its incident edges, and their embeddings.

        Returns ``False`` (and audits nothing) when the node does not exist.
        """
        async with self._write(tenant_id, [node_id]) as uow:
            session = uow.session
            row = await session.get(IntelligenceNode, node_id)
            if row is None or row.tenant_id != tenant_id:
                return False
            node = node_from_row(row)
            rows = await self._incident_edge_rows(session, tenant_id, [node_id])
            edges = [edge_from_row(r) for r in rows]
            edge_ids = [e.id for e in edges]
            await self._delete_edge_rows(session, edge_ids)
            await self._delete_node_rows(session, [node_id])
            await self._audit.record(
                uow,
                AuditEventType.DELETED,
                target_id=node_id,
                actor=actor,
                previous_state={"node": node.to_dict(), "edges": [e.to_dict() for e in edges]},
                metadata={"cascaded_edge_ids": edge_ids},
            )
            uow.events.append(GraphEvent(EventType.NODE_DELETED, tenant_id, node_id))
            uow.events.extend(
                GraphEvent(EventType.EDGE_DELETED, tenant_id, eid) for eid in edge_ids
            )
        logger.info(
            "Deleted node %s for tenant %s (%d incident edges)", node_id, tenant_id, len(edge_ids)
        )
        return True

    # ------------------------------------------------------------------
    # Edges
    # ------------------------------------------------------------------

    async def _resolve_endpoints(
        self, session: AsyncSession, tenant_id: str, source_id: str, target_id: str
    ) -> tuple[IntelligenceNode, IntelligenceNode]:
        source = await session.get(IntelligenceNode, source_id)
        target = await session.get(IntelligenceNode, target_id)
        if source is None or target is None:
            missing = source_id if source is None else target_id
            msg = f"Node not found: {missing!r}"
            raise NotFoundError(msg)
        if source.tenant_id != tenant_id or target.tenant_id != tenant_id:
            msg = "Edge endpoints must belong to the same tenant as the edge"
            raise CrossTenantError(msg)
        return source, target

    async def _insert_edge(
        self,
        uow: UnitOfWork,
        edge_type: EdgeType,
        source_id: str,
        target_id: str,
        weight: float,
        properties: dict[str, Any],
        external_source_id: str | None,
        actor: Actor | None,
    ) -> Edge:
        session = uow.session
        await self._resolve_endpoints(session, uow.tenant_id, source_id, target_id)
        if external_source_id is not None:
            existing = await self._edge_by_external(
                session, uow.tenant_id, edge_type, external_source_id
            )
            if existing is not None:
                msg = (
                    f"Edge {edge_type.value!r} with external source "
                    f"{external_source_id!r} already exists"
                )
                raise DuplicateExternalSourceError(msg)

        row = IntelligenceEdge(
            tenant_id=uow.tenant_id,
            edge_type=edge_type.value,
            source_node_id=source_id,
            target_node_id=target_id,
            weight=weight,
            properties_json=dump_properties(properties),
            external_source_id=external_source_id,
        )
        session.add(row)
        try:
            await session.flush()
        except IntegrityError as exc:
            msg = (
                f"Edge {edge_type.value!r} with external source "
                f"{external_source_id!r} already exists"
            )
            raise DuplicateExternalSourceError(msg) from exc

        edge = edge_from_row(row)
        await self._audit.record(
            uow,
            AuditEventType.CREATED,
            target_id=edge.id,
            target_kind=EntityKind.EDGE,
            actor=actor,
            new_state=edge.to_dict(),
        )
        uow.events.append(GraphEvent(EventType.EDGE_WRITTEN, uow.tenant_id, edge.id))
        return edge

    async def _patch_edge(
        self,
        uow: UnitOfWork,
        row: IntelligenceEdge,
        weight: float | None,
        properties: dict[str, Any] | None,
        actor: Actor | None,
    ) -> Edge:
        before = edge_from_row(row)
        changed = text_changed = False
        if weight is not None and weight != row.weight:
            row.weight = weight
            changed = True
        if properties is not None:
            encoded = dump_properties(properties)
            if encoded != row.properties_json:
                row.properties_json = encoded
                changed = text_changed = True
        if not changed:
            return before

        row.updated_at = utcnow()
        uow.session.add(row)
        await uow.session.flush()
        after = edge_from_row(row)
        await self._audit.record(
            uow,
            AuditEventType.UPDATED,
            target_id=row.id,
            target_kind=EntityKind.EDGE,
            actor=actor,
            previous_state=before.to_dict(),
            new_state=after.to_dict(),
        )
        uow.events.append(
            GraphEvent(EventType.EDGE_WRITTEN, uow.tenant_id, row.id, text_changed=text_changed)
        )
        return after

    def _validate_edge_args(
        self,
        edge_type: EdgeType | str,
        source_id: str,
        target_id: str,
        weight: float,
        properties: dict[str, Any] | None,
    ) -> tuple[EdgeType, float, dict[str, Any]]:
        etype = coerce_enum(EdgeType, edge_type, "edge type")
        if source_id == target_id and etype not in SELF_LOOP_EDGE_TYPES:
            msg = f"Self-loops are not allowed for edge type {etype.value!r}"
            raise InvalidSelfLoopError(msg)
        return etype, _check_weight(weight), self._schemas.validate_edge(etype, properties)

    async def create_edge(
        self,
        tenant_id: str,
        edge_type: EdgeType | str,
        source_id: str,
        target_id: str,
        *,
        weight: float = 1.0,
        properties: dict[str, Any] | None = None,
        external_source_id: str | None = None,
        actor: Actor | None = None,
    ) -> Edge:
        """Create a directed edge between two existing nodes of this tenant.

        Raises ``NotFoundError`` for a missing endpoint, ``CrossTenantError``
        when an endpoint belongs to another tenant, and
        ``InvalidSelfLoopError`` for a forbidden self-loop.
        """
        etype, weight, props = self._validate_edge_args(
            edge_type, source_id, target_id, weight, properties
        )
        keys = [source_id, target_id]
        if external_source_id:
            keys.append(_edge_ext_key(tenant_id, etype, external_source_id))
        async with self._write(tenant_id, keys) as uow:
            edge = await self._insert_edge(
                uow, etype, source_id, target_id, weight, props, external_source_id, actor
            )
        logger.debug(
            "Created edge %s %s -[%s]-> %s", edge.id, source_id, etype.value, target_id
        )
        return edge

    async def upsert_edge(
        self,
        tenant_id: str,
        edge_type: EdgeType | str,
        external_source_id: str,
        source_id: str,
        target_id: str,
        *,
        weight: float = 1.0,
        properties: dict[str, Any] | None = None,
        actor: Actor | None = None,
    ) -> Edge:
        """Create or update the edge identified by its upstream record.

        An existing edge keeps its endpoints; re-sending it with different
        endpoints raises ``InvalidArgumentError``.
        """
        etype, weight, props = self._validate_edge_args(
            edge_type, source_id, target_id, weight, properties
        )
        async with self._locks.hold([_edge_ext_key(tenant_id, etype, external_source_id)]):
            existing_id = await self._peek_edge_by_external(tenant_id, etype, external_source_id)
            keys = [source_id, target_id] + ([existing_id] if existing_id else [])
            async with self._write(tenant_id, keys) as uow:
                row = await self._edge_by_external(
                    uow.session, tenant_id, etype, external_source_id
                )
                if row is None:
                    edge = await self._insert_edge(
                        uow, etype, source_id, target_id, weight, props, external_source_id, actor
                    )
                else:
                    if (row.source_node_id, row.target_node_id) != (source_id, target_id):
                        msg = (
                            f"Edge for external source {external_source_id!r} already connects "
                            f"{row.source_node_id!r} -> {row.target_node_id!r}"
                        )
                        raise InvalidArgumentError(msg)
                    edge = await self._patch_edge(uow, row, weight, props, actor)
        return edge

    async def get_edge(self, tenant_id: str, edge_id: str) -> Edge:
        """Return the edge.  Raises ``NotFoundError``."""
        async with self._db.read_session() as session:
            return edge_from_row(await self._edge_row(session, tenant_id, edge_id))

    async def get_edge_with_nodes(self, tenant_id: str, edge_id: str) -> EdgeWithNodes:
        """Return the edge with its source and target nodes.  Raises ``NotFoundError``."""
        async with self._db.read_session() as session:
            edge = edge_from_row(await self._edge_row(session, tenant_id, edge_id))
            source = await self._node_row(session, tenant_id, edge.source_node_id)
            target = await self._node_row(session, tenant_id, edge.target_node_id)
            return EdgeWithNodes(
                edge=edge, source=node_from_row(source), target=node_from_row(target)
            )

    async def list_edges(
        self,
        tenant_id: str,
        *,
        edge_types: Sequence[EdgeType | str] | None = None,
        source_id: str | None = None,
        target_id: str | None = None,
        min_weight: float | None = None,
        max_weight: float | None = None,
        limit: int | None = None,
        offset: int = 0,
        order_by: EdgeOrder | str = EdgeOrder.CREATED_AT,
    ) -> list[Edge]:
        """List edges in insertion order (or heaviest first), optionally filtered."""
        order_by = coerce_enum(EdgeOrder, order_by, "edge ordering")
        stmt = select(IntelligenceEdge).where(IntelligenceEdge.tenant_id == tenant_id)
        if edge_types:
            values = [coerce_enum(EdgeType, t, "edge type").value for t in edge_types]
            stmt = stmt.where(col(IntelligenceEdge.edge_type).in_(values))
        if source_id is not None:
            stmt = stmt.where(IntelligenceEdge.source_node_id == source_id)
        if target_id is not None:
            stmt = stmt.where(IntelligenceEdge.target_node_id == target_id)
        if min_weight is not None:
            stmt = stmt.where(col(IntelligenceEdge.weight) >= min_weight)
        if max_weight is not None:
            stmt = stmt.where(col(IntelligenceEdge.weight) <= max_weight)
        if order_by is EdgeOrder.WEIGHT:
            stmt = stmt.order_by(col(IntelligenceEdge.weight).desc())
        stmt = (
            stmt.order_by(col(IntelligenceEdge.seq))
            .offset(offset)
            .limit(self._config.clamp_limit(limit))
        )
        async with self._db.read_session() as session:
            result = await session.execute(stmt)
            return [edge_from_row(row) for row in result.scalars().all()]

    async def find_edges_by_node(
        self,
        tenant_id: str,
        node_id: str,
        direction: Direction | str = Direction.BOTH,
    ) -> list[Edge]:
        """Edges incident to *node_id* in insertion order.  Empty if none exist."""
        direction = coerce_enum(Direction, direction, "direction")
        async with self._db.read_session() as session:
            rows = await self._incident_edge_rows(session, tenant_id, [node_id])
        edges = [edge_from_row(r) for r in rows]
        if direction is Direction.OUTBOUND:
            return [e for e in edges if e.source_node_id == node_id]
        if direction is Direction.INBOUND:
            return [e for e in edges if e.target_node_id == node_id]
        return edges

    async def update_edge(
        self,
        tenant_id: str,
        edge_id: str,
        patch: EdgePatch,
        *,
        actor: Actor | None = None,
    ) -> Edge:
        """Apply *patch* to the edge.  Raises ``NotFoundError``."""
        weight = _check_weight(patch.weight) if patch.weight is not None else None
        async with self._write(tenant_id, [edge_id]) as uow:
            row = await self._edge_row(uow.session, tenant_id, edge_id)
            props = None
            if patch.properties is not None:
                props = self._schemas.validate_edge(EdgeType(row.edge_type), patch.properties)
            edge = await self._patch_edge(uow, row, weight, props, actor)
        return edge

    async def delete_edge(
        self, tenant_id: str, edge_id: str, *, actor: Actor | None = None
    ) -> bool:
        """Delete an edge and its embedding.  ``False`` if it did not exist."""
        async with self._write(tenant_id, [edge_id]) as uow:
            row = await uow.session.get(IntelligenceEdge, edge_id)
            if row is None or row.tenant_id != tenant_id:
                return False
            edge = edge_from_row(row)
            await self._delete_edge_rows(uow.session, [edge_id])
            await self._audit.record(
                uow,
                AuditEventType.DELETED,
                target_id=edge_id,
                target_kind=EntityKind.EDGE,
                actor=actor,
                previous_state=edge.to_dict(),
            )
            uow.events.append(GraphEvent(EventType.EDGE_DELETED, tenant_id, edge_id))
        return True

    # ------------------------------------------------------------------
    # Merge
    # ------------------------------------------------------------------

    @staticmethod
    def _normalize_merge_ids(primary_id: str, duplicate_ids: Sequence[str]) -> list[str]:
        dups = list(dict.fromkeys(duplicate_ids))
        if not dups:
            msg = "merge requires at least one duplicate"
            raise InvalidArgumentError(msg)
        if primary_id in dups:
            msg = f"Node {primary_id!r} cannot be merged into itself"
            raise MergeConflictError(msg)
        return dups

    async def _load_merge_rows(
        self, session: AsyncSession, tenant_id: str, primary_id: str, dup_ids: Sequence[str]
    ) -> tuple[IntelligenceNode, list[IntelligenceNode], list[IntelligenceEdge]]:
        primary = await self._node_row(session, tenant_id, primary_id)
        dups: list[IntelligenceNode] = []
        for dup_id in dup_ids:
            row = await session.get(IntelligenceNode, dup_id)
            if row is None:
                msg = f"Node not found: {dup_id!r}"
                raise NotFoundError(msg)
            if row.tenant_id != tenant_id:
                msg = f"Node {dup_id!r} belongs to another tenant"
                raise CrossTenantError(msg)
            dups.append(row)
        edges = await self._incident_edge_rows(session, tenant_id, list(dup_ids))
        return primary, dups, edges

    @staticmethod
    def _plan_repoint(
        primary_id: str, dup_ids: Sequence[str], edges: Sequence[IntelligenceEdge]
    ) -> tuple[list[tuple[IntelligenceEdge, str, str]], list[IntelligenceEdge]]:
        """Split *edges* into ``(edge, new_source, new_target)`` moves and drops."""
        dup_set = set(dup_ids)
        moves: list[tuple[IntelligenceEdge, str, str]] = []
        drops: list[IntelligenceEdge] = []
        for edge in edges:
            src = primary_id if edge.source_node_id in dup_set else edge.source_node_id
            tgt = primary_id if edge.target_node_id in dup_set else edge.target_node_id
            if src == tgt and EdgeType(edge.edge_type) not in SELF_LOOP_EDGE_TYPES:
                drops.append(edge)
            else:
                moves.append((edge, src, tgt))
        return moves, drops

    async def preview_merge(
        self,
        tenant_id: str,
        primary_id: str,
        duplicate_ids: Sequence[str],
        *,
        actor: Actor | None = None,
    ) -> MergePreview:
        """Describe the effect of a merge without applying it (audited)."""
        dup_ids = self._normalize_merge_ids(primary_id, duplicate_ids)
        async with self._write(tenant_id, graph_write=False) as uow:
            primary_row, dup_rows, edges = await self._load_merge_rows(
                uow.session, tenant_id, primary_id, dup_ids
            )
            primary = node_from_row(primary_row)
            dups = tuple(node_from_row(r) for r in dup_rows)
            moves, drops = self._plan_repoint(primary_id, dup_ids, edges)
            await self._audit.record(
                uow,
                AuditEventType.TRAVERSED,
                target_id=primary_id,
                actor=actor,
                metadata={"operation": "merge_preview", "duplicate_ids": dup_ids},
            )
        return MergePreview(
            primary=primary,
            duplicates=dups,
            merged_properties=MappingProxyType(_merged_properties(primary, dups)),
            repointed_edge_ids=tuple(e.id for e, _, _ in moves),
            dropped_edge_ids=tuple(e.id for e in drops),
        )

    async def merge_nodes(
        self,
        tenant_id: str,
        primary_id: str,
        duplicate_ids: Sequence[str],
        *,
        actor: Actor | None = None,
    ) -> MergeResult:
        """Collapse *duplicate_ids* into *primary_id*, all or nothing.

        Edges incident to a duplicate are re-pointed to the primary; edges
        that would become forbidden self-loops are dropped.  Properties are
        unioned with the primary winning conflicts.  One ``merged`` audit
        entry per duplicate keeps its full pre-merge state.
        """
        dup_ids = self._normalize_merge_ids(primary_id, duplicate_ids)
        async with self._write(tenant_id, [primary_id, *dup_ids]) as uow:
            session = uow.session
            primary_row, dup_rows, edges = await self._load_merge_rows(
                session, tenant_id, primary_id, dup_ids
            )
            primary_before = node_from_row(primary_row)
            dups = [node_from_row(r) for r in dup_rows]
            edge_snapshots = {e.id: edge_from_row(e) for e in edges}
            moves, drops = self._plan_repoint(primary_id, dup_ids, edges)

            try:
                now = utcnow()
                for edge, src, tgt in moves:
                    edge.source_node_id = src
                    edge.target_node_id = tgt
                    edge.updated_at = now
                    session.add(edge)
                await session.flush()
                await self._delete_edge_rows(session, [e.id for e in drops])
                await self._delete_node_rows(session, dup_ids)

                primary_row.properties_json = dump_properties(
                    _merged_properties(primary_before, dups)
                )
                primary_row.updated_at = now
                session.add(primary_row)
                await session.flush()
                merged = node_from_row(primary_row)

                for dup in dups:
                    incident = [
                        s.to_dict()
                        for s in edge_snapshots.values()
                        if dup.id in (s.source_node_id, s.target_node_id)
                    ]
                    await self._audit.record(
                        uow,
                        AuditEventType.MERGED,
                        target_id=dup.id,
                        actor=actor,
                        previous_state={"node": dup.to_dict(), "edges": incident},
                        new_state={"merged_into": primary_id},
                        metadata={
                            "primary_id": primary_id,
                            "primary_before": primary_before.to_dict(),
                        },
                    )
            except IntelGraphError:
                raise
            except Exception as exc:
                logger.warning("Merge into %s rolled back", primary_id, exc_info=True)
                msg = f"Merge into {primary_id!r} failed and was rolled back"
                raise MergeConflictError(msg) from exc

            uow.events.append(GraphEvent(EventType.NODE_WRITTEN, tenant_id, primary_id))
            uow.events.extend(GraphEvent(EventType.NODE_DELETED, tenant_id, d) for d in dup_ids)
            uow.events.extend(
                GraphEvent(EventType.EDGE_WRITTEN, tenant_id, e.id) for e, _, _ in moves
            )
            uow.events.extend(GraphEvent(EventType.EDGE_DELETED, tenant_id, e.id) for e in drops)

        logger.info(
            "Merged %d node(s) into %s for tenant %s (%d edges re-pointed, %d dropped)",
            len(dup_ids), primary_id, tenant_id, len(moves), len(drops),
        )
        return MergeResult(
            node=merged,
            merged_node_ids=tuple(dup_ids),
            repointed_edge_ids=tuple(e.id for e, _, _ in moves),
            dropped_edge_ids=tuple(e.id for e in drops),
        )
