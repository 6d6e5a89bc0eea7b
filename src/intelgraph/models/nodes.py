"""IntelligenceNode model — one row per graph entity."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import BigInteger, DateTime, Text, UniqueConstraint
from sqlmodel import Field, SQLModel

from intelgraph.utils import next_seq


class IntelligenceNode(SQLModel, table=True):
    """A tenant-scoped entity in the intelligence graph.

    ``properties_json`` holds the open property map as JSON text.
    ``centrality_score``, ``pagerank_score`` and ``cluster_id`` are written
    only by the analytics engine.
    """

    __tablename__ = "intelligence_nodes"
    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "node_type", "external_source_id", name="uq_node_external_source"
        ),
    )

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    tenant_id: str = Field(index=True)
    node_type: str = Field(index=True)
    label: str = Field(default="")
    properties_json: str = Field(default="{}", sa_type=Text)
    external_source_id: str | None = Field(default=None)
    centrality_score: float | None = Field(default=None)
    pagerank_score: float | None = Field(default=None)
    cluster_id: str | None = Field(default=None, index=True)
    seq: int = Field(default_factory=next_seq, sa_type=BigInteger, index=True)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),
    )
