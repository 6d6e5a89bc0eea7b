"""AuditLogEntry model — append-only, hash-chained per tenant."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import BigInteger, DateTime, Text
from sqlmodel import Field, SQLModel


class AuditLogEntry(SQLModel, table=True):
    """One audited mutation or privileged read.

    ``entry_hash`` is ``sha256(prev_hash + canonical entry)``, so editing or
    removing a row breaks every later hash of the tenant's chain.
    """

    __tablename__ = "intelligence_graph_audit_log"

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    tenant_id: str = Field(index=True)
    seq: int = Field(sa_type=BigInteger, index=True)
    event_type: str = Field(index=True)
    actor_type: str = Field(default="user")
    actor_id: str | None = Field(default=None)
    target_id: str | None = Field(default=None, index=True)
    target_kind: str = Field(default="node")
    previous_state_json: str | None = Field(default=None, sa_type=Text)
    new_state_json: str | None = Field(default=None, sa_type=Text)
    metadata_json: str = Field(default="{}", sa_type=Text)
    prev_hash: str = Field(default="")
    entry_hash: str = Field(default="")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),
    )
