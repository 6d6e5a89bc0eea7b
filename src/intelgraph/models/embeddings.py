"""Embedding models — latest-wins vectors for nodes and edges.

The vector is stored as JSON text so the table stays portable; the
in-process HNSW index is rebuilt from these rows on open.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import DateTime, Text
from sqlmodel import Field, SQLModel


class EmbeddingBase(SQLModel):
    """Shared columns for node and edge embeddings."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    tenant_id: str = Field(index=True)
    vector_json: str = Field(default="[]", sa_type=Text)
    dimensions: int = Field(default=0)
    embedding_provider: str = Field(default="")
    content_hash: str = Field(default="")
    is_stale: bool = Field(default=False)
    generated_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),
    )


class NodeEmbedding(EmbeddingBase, table=True):
    __tablename__ = "intelligence_node_embeddings"

    node_id: str = Field(index=True, unique=True)


class EdgeEmbedding(EmbeddingBase, table=True):
    __tablename__ = "intelligence_edge_embeddings"

    edge_id: str = Field(index=True, unique=True)
