"""GraphSnapshot model — immutable point-in-time capture of a tenant graph."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import BigInteger, DateTime, Text
from sqlmodel import Field, SQLModel

from intelgraph.utils import next_seq


class GraphSnapshot(SQLModel, table=True):
    """Serialized nodes and edges plus summary statistics.

    Rows are inserted once and never updated; retention may delete them.
    """

    __tablename__ = "intelligence_graph_snapshots"

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    tenant_id: str = Field(index=True)
    label: str | None = Field(default=None)
    node_count: int = Field(default=0)
    edge_count: int = Field(default=0)
    stats_json: str = Field(default="{}", sa_type=Text)
    nodes_json: str = Field(default="[]", sa_type=Text)
    edges_json: str = Field(default="[]", sa_type=Text)
    seq: int = Field(default_factory=next_seq, sa_type=BigInteger, index=True)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),
    )
