"""IntelligenceEdge model — single table for all graph edges."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import BigInteger, DateTime, Text, UniqueConstraint
from sqlmodel import Field, SQLModel

from intelgraph.utils import next_seq


class IntelligenceEdge(SQLModel, table=True):
    """A directed, typed edge between two nodes of the same tenant.

    ``seq`` records insertion order and survives re-pointing during a
    merge, so traversal order stays insertion-stable.
    """

    __tablename__ = "intelligence_edges"
    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "edge_type", "external_source_id", name="uq_edge_external_source"
        ),
    )

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    tenant_id: str = Field(index=True)
    edge_type: str = Field(index=True)
    source_node_id: str = Field(index=True)
    target_node_id: str = Field(index=True)
    weight: float = Field(default=1.0)
    properties_json: str = Field(default="{}", sa_type=Text)
    external_source_id: str | None = Field(default=None)
    seq: int = Field(default_factory=next_seq, sa_type=BigInteger, index=True)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),
    )
