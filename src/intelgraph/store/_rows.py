"""Conversions between ORM rows and the public immutable records."""

from __future__ import annotations

import json
from types import MappingProxyType

from intelgraph.models import IntelligenceEdge, IntelligenceNode
from intelgraph.types import Edge, EdgeType, Node, NodeType
from intelgraph.utils import ensure_utc


def node_from_row(row: IntelligenceNode) -> Node:
    return Node(
        id=row.id,
        tenant_id=row.tenant_id,
        node_type=NodeType(row.node_type),
        label=row.label,
        properties=MappingProxyType(json.loads(row.properties_json)),
        external_source_id=row.external_source_id,
        centrality_score=row.centrality_score,
        pagerank_score=row.pagerank_score,
        cluster_id=row.cluster_id,
        created_at=ensure_utc(row.created_at),
        updated_at=ensure_utc(row.updated_at),
        seq=row.seq,
    )


def edge_from_row(row: IntelligenceEdge) -> Edge:
    return Edge(
        id=row.id,
        tenant_id=row.tenant_id,
        edge_type=EdgeType(row.edge_type),
        source_node_id=row.source_node_id,
        target_node_id=row.target_node_id,
        weight=row.weight,
        properties=MappingProxyType(json.loads(row.properties_json)),
        external_source_id=row.external_source_id,
        created_at=ensure_utc(row.created_at),
        updated_at=ensure_utc(row.updated_at),
        seq=row.seq,
    )


def dump_properties(properties: dict) -> str:
    return json.dumps(properties, sort_keys=True)
