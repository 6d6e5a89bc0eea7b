"""AuditLog — transactional, hash-chained audit trail.

Entries are written through the caller's :class:`UnitOfWork`, inside the
same transaction as the mutation they describe.  If the audit insert
fails, the whole unit of work rolls back.  There is no
update or delete method on this class.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlmodel import select

from intelgraph.exceptions import AuditIntegrityError
from intelgraph.models.audit import AuditLogEntry
from intelgraph.types import SYSTEM_ACTOR, Actor, ActorType, AuditEventType, EntityKind
from intelgraph.utils import canonical_json, ensure_utc, next_seq, sha256_hex, utcnow

if TYPE_CHECKING:
    from intelgraph.config import GraphConfig
    from intelgraph.store._uow import Database, UnitOfWork

logger = logging.getLogger(__name__)

GENESIS_HASH = "0" * 64


@dataclass(frozen=True, slots=True)
class AuditRecord:
    """Read-only view of one audit entry."""

    id: str
    tenant_id: str
    seq: int
    event_type: AuditEventType
    actor_type: ActorType
    actor_id: str | None
    target_id: str | None
    target_kind: EntityKind
    previous_state: Any
    new_state: Any
    metadata: dict[str, Any]
    created_at: datetime
    entry_hash: str


def _entry_hash(entry: AuditLogEntry) -> str:
    payload = canonical_json(
        {
            "tenant_id": entry.tenant_id,
            "seq": entry.seq,
            "event_type": entry.event_type,
            "actor_type": entry.actor_type,
            "actor_id": entry.actor_id,
            "target_id": entry.target_id,
            "target_kind": entry.target_kind,
            "previous_state": entry.previous_state_json,
            "new_state": entry.new_state_json,
            "metadata": entry.metadata_json,
            "created_at": ensure_utc(entry.created_at).isoformat(),
        }
    )
    return sha256_hex(entry.prev_hash + payload)


def _to_record(row: AuditLogEntry) -> AuditRecord:
    return AuditRecord(
        id=row.id,
        tenant_id=row.tenant_id,
        seq=row.seq,
        event_type=AuditEventType(row.event_type),
        actor_type=ActorType(row.actor_type),
        actor_id=row.actor_id,
        target_id=row.target_id,
        target_kind=EntityKind(row.target_kind),
        previous_state=json.loads(row.previous_state_json) if row.previous_state_json else None,
        new_state=json.loads(row.new_state_json) if row.new_state_json else None,
        metadata=json.loads(row.metadata_json),
        created_at=ensure_utc(row.created_at),
        entry_hash=row.entry_hash,
    )


class AuditLog:
    """Append-only audit store for every tenant."""

    def __init__(self, db: Database, config: GraphConfig) -> None:
        self._db = db
        self._config = config

    async def record(
        self,
        uow: UnitOfWork,
        event_type: AuditEventType,
        *,
        target_id: str | None,
        target_kind: EntityKind = EntityKind.NODE,
        actor: Actor | None = None,
        previous_state: Any = None,
        new_state: Any = None,
        metadata: dict[str, Any] | None = None,
    ) -> AuditLogEntry:
        """Append one entry inside *uow*.  Durable when *uow* commits."""
        actor = actor or Actor()
        await uow.hold_audit_chain()
        session = uow.session

        result = await session.execute(
            select(AuditLogEntry.entry_hash)
            .where(AuditLogEntry.tenant_id == uow.tenant_id)
            .order_by(AuditLogEntry.seq.desc())  # type: ignore[union-attr]
            .limit(1)
        )
        prev_hash = result.scalar_one_or_none() or GENESIS_HASH

        entry = AuditLogEntry(
            tenant_id=uow.tenant_id,
            seq=next_seq(),
            event_type=event_type.value,
            actor_type=actor.actor_type.value,
            actor_id=actor.actor_id,
            target_id=target_id,
            target_kind=target_kind.value,
            previous_state_json=(
                canonical_json(previous_state) if previous_state is not None else None
            ),
            new_state_json=canonical_json(new_state) if new_state is not None else None,
            metadata_json=canonical_json(metadata or {}),
            prev_hash=prev_hash,
            created_at=utcnow(),
        )
        entry.entry_hash = _entry_hash(entry)
        session.add(entry)
        await session.flush()
        return entry

    async def record_system(
        self,
        uow: UnitOfWork,
        event_type: AuditEventType,
        *,
        metadata: dict[str, Any] | None = None,
    ) -> AuditLogEntry:
        """Tenant-wide entry attributed to the system actor."""
        return await self.record(
            uow,
            event_type,
            target_id=uow.tenant_id,
            target_kind=EntityKind.TENANT,
            actor=SYSTEM_ACTOR,
            metadata=metadata,
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list_entries(
        self,
        tenant_id: str,
        *,
        event_type: AuditEventType | None = None,
        target_id: str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[AuditRecord]:
        """Return the tenant's entries, newest first."""
        stmt = select(AuditLogEntry).where(AuditLogEntry.tenant_id == tenant_id)
        if event_type is not None:
            stmt = stmt.where(AuditLogEntry.event_type == event_type.value)
        if target_id is not None:
            stmt = stmt.where(AuditLogEntry.target_id == target_id)
        stmt = (
            stmt.order_by(AuditLogEntry.seq.desc())  # type: ignore[union-attr]
            .offset(offset)
            .limit(self._config.clamp_limit(limit))
        )
        async with self._db.read_session() as session:
            rows = (await session.execute(stmt)).scalars().all()
        return [_to_record(row) for row in rows]

    async def verify_chain(self, tenant_id: str) -> int:
        """Recompute the tenant's hash chain.

        Returns the number of entries verified.  Raises
        ``AuditIntegrityError`` at the first entry that does not match.
        """
        async with self._db.read_session() as session:
            rows = (
                (
                    await session.execute(
                        select(AuditLogEntry)
                        .where(AuditLogEntry.tenant_id == tenant_id)
                        .order_by(AuditLogEntry.seq)  # type: ignore[arg-type]
                    )
                )
                .scalars()
                .all()
            )

        expected_prev = GENESIS_HASH
        for row in rows:
            if row.prev_hash != expected_prev or _entry_hash(row) != row.entry_hash:
                logger.error("Audit chain broken for tenant %s at entry %s", tenant_id, row.id)
                msg = f"Audit chain broken at entry {row.id} (seq {row.seq})"
                raise AuditIntegrityError(msg)
            expected_prev = row.entry_hash
        return len(rows)
