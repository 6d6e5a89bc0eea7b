"""Core value types — enumerations and immutable node/edge records."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from types import MappingProxyType
from typing import Any

from intelgraph.utils import ensure_utc

# ------------------------------------------------------------------
# Enumerations
# ------------------------------------------------------------------


class NodeType(StrEnum):
    """Kinds of entity a node can represent, grouped by producing subsystem."""

    # Core
    ORGANIZATION = "organization"
    USER = "user"
    TEAM = "team"
    PERSON = "person"

    # Media & PR
    PRESS_RELEASE = "press_release"
    MEDIA_COVERAGE = "media_coverage"
    JOURNALIST = "journalist"
    PUBLICATION = "publication"
    MEDIA_LIST = "media_list"
    PITCH = "pitch"
    OUTREACH_CAMPAIGN = "outreach_campaign"

    # Monitoring & alerts
    MEDIA_MENTION = "media_mention"
    MEDIA_ALERT = "media_alert"
    SENTIMENT_SIGNAL = "sentiment_signal"

    # Performance
    PERFORMANCE_METRIC = "performance_metric"
    KPI_INDICATOR = "kpi_indicator"
    TREND_SIGNAL = "trend_signal"

    # Competitive intelligence
    COMPETITOR = "competitor"
    COMPETITIVE_INSIGHT = "competitive_insight"
    MARKET_TREND = "market_trend"

    # Crisis & risk
    CRISIS_EVENT = "crisis_event"
    CRISIS_RESPONSE = "crisis_response"
    RISK_FACTOR = "risk_factor"
    RISK_ASSESSMENT = "risk_assessment"
    ESCALATION = "escalation"

    # Brand
    BRAND_SIGNAL = "brand_signal"
    BRAND_MENTION = "brand_mention"
    REPUTATION_SCORE = "reputation_score"

    # Governance
    COMPLIANCE_ITEM = "compliance_item"
    GOVERNANCE_POLICY = "governance_policy"
    AUDIT_FINDING = "audit_finding"

    # Executive reporting
    EXECUTIVE_DIGEST = "executive_digest"
    BOARD_REPORT = "board_report"
    INVESTOR_UPDATE = "investor_update"
    COMMAND_CENTER_ALERT = "command_center_alert"

    # Strategic intelligence
    STRATEGIC_REPORT = "strategic_report"
    STRATEGIC_INSIGHT = "strategic_insight"
    STRATEGIC_RECOMMENDATION = "strategic_recommendation"

    # Audience & personas
    AUDIENCE_PERSONA = "audience_persona"
    AUDIENCE_SEGMENT = "audience_segment"

    # Content
    CONTENT_BRIEF = "content_brief"
    CONTENT_PIECE = "content_piece"
    ARTICLE = "article"
    NARRATIVE = "narrative"

    # SEO
    KEYWORD = "keyword"
    KEYWORD_CLUSTER = "keyword_cluster"

    # Graph-specific
    CLUSTER = "cluster"
    TOPIC = "topic"
    THEME = "theme"
    EVENT = "event"
    CUSTOM = "custom"


class EdgeType(StrEnum):
    """Kinds of directed relationship between two nodes."""

    # Hierarchical
    PARENT_OF = "parent_of"
    CHILD_OF = "child_of"
    BELONGS_TO = "belongs_to"
    CONTAINS = "contains"

    # Causal
    CAUSED_BY = "caused_by"
    LEADS_TO = "leads_to"
    TRIGGERS = "triggers"
    MITIGATES = "mitigates"
    ESCALATES_TO = "escalates_to"

    # Temporal
    PRECEDES = "precedes"
    FOLLOWS = "follows"
    CONCURRENT_WITH = "concurrent_with"
    DURING = "during"
    SUPERSEDES = "supersedes"

    # Similarity
    SIMILAR_TO = "similar_to"
    RELATED_TO = "related_to"
    CONTRASTS_WITH = "contrasts_with"
    COMPLEMENTS = "complements"

    # Attribution
    AUTHORED = "authored"
    AUTHORED_BY = "authored_by"
    MENTIONS = "mentions"
    REFERENCES = "references"
    CITES = "cites"
    COVERS = "covers"
    DERIVES_FROM = "derives_from"

    # Influence
    INFLUENCES = "influences"
    IMPACTS = "impacts"
    CONTRIBUTES_TO = "contributes_to"

    # Association
    ASSOCIATED_WITH = "associated_with"
    LINKED_TO = "linked_to"
    CORRELATES_WITH = "correlates_with"

    # Sentiment
    POSITIVE_SENTIMENT_TOWARD = "positive_sentiment_toward"
    NEGATIVE_SENTIMENT_TOWARD = "negative_sentiment_toward"
    NEUTRAL_SENTIMENT_TOWARD = "neutral_sentiment_toward"

    # Strategic
    SUPPORTS_STRATEGY = "supports_strategy"
    THREATENS_STRATEGY = "threatens_strategy"
    OPPORTUNITY_FOR = "opportunity_for"
    RISK_TO = "risk_to"

    CUSTOM = "custom"


SELF_LOOP_EDGE_TYPES: frozenset[EdgeType] = frozenset({EdgeType.SUPERSEDES})
"""Edge types that may connect a node to itself."""


class Direction(StrEnum):
    """Which incident edges a traversal follows."""

    OUTBOUND = "outbound"
    INBOUND = "inbound"
    BOTH = "both"


class AuditEventType(StrEnum):
    CREATED = "created"
    UPDATED = "updated"
    MERGED = "merged"
    DELETED = "deleted"
    TRAVERSED = "traversed"
    SNAPSHOTTED = "snapshotted"


class ActorType(StrEnum):
    USER = "user"
    SYSTEM = "system"
    AI = "ai"


class EntityKind(StrEnum):
    NODE = "node"
    EDGE = "edge"
    SNAPSHOT = "snapshot"
    TENANT = "tenant"


# ------------------------------------------------------------------
# Records
# ------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Actor:
    """Who performed an operation, as recorded in the audit log."""

    actor_type: ActorType = ActorType.USER
    actor_id: str | None = None


SYSTEM_ACTOR = Actor(ActorType.SYSTEM)


def _frozen(props: dict[str, Any] | None) -> MappingProxyType[str, Any]:
    return MappingProxyType(dict(props or {}))


@dataclass(frozen=True, slots=True)
class Node:
    """Read-only view of an intelligence node.

    ``centrality_score``, ``pagerank_score`` and ``cluster_id`` are derived
    by the analytics engine and are never accepted from writers.
    """

    id: str
    tenant_id: str
    node_type: NodeType
    label: str
    created_at: datetime
    updated_at: datetime
    properties: MappingProxyType[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    external_source_id: str | None = None
    centrality_score: float | None = None
    pagerank_score: float | None = None
    cluster_id: str | None = None
    seq: int = 0

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready representation (timestamps as ISO-8601 strings)."""
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "node_type": str(self.node_type),
            "label": self.label,
            "properties": dict(self.properties),
            "external_source_id": self.external_source_id,
            "centrality_score": self.centrality_score,
            "pagerank_score": self.pagerank_score,
            "cluster_id": self.cluster_id,
            "created_at": ensure_utc(self.created_at).isoformat(),
            "updated_at": ensure_utc(self.updated_at).isoformat(),
            "seq": self.seq,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Node:
        return cls(
            id=data["id"],
            tenant_id=data["tenant_id"],
            node_type=NodeType(data["node_type"]),
            label=data["label"],
            properties=_frozen(data.get("properties")),
            external_source_id=data.get("external_source_id"),
            centrality_score=data.get("centrality_score"),
            pagerank_score=data.get("pagerank_score"),
            cluster_id=data.get("cluster_id"),
            created_at=datetime.fromisoformat(data["created_at"]),
            updated_at=datetime.fromisoformat(data["updated_at"]),
            seq=data.get("seq", 0),
        )


@dataclass(frozen=True, slots=True)
class Edge:
    """Read-only view of a directed, typed relationship."""

    id: str
    tenant_id: str
    edge_type: EdgeType
    source_node_id: str
    target_node_id: str
    created_at: datetime
    updated_at: datetime
    weight: float = 1.0
    properties: MappingProxyType[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    external_source_id: str | None = None
    seq: int = 0

    @property
    def is_self_loop(self) -> bool:
        return self.source_node_id == self.target_node_id

    def other_end(self, node_id: str) -> str:
        """Return the endpoint opposite *node_id*."""
        return self.target_node_id if node_id == self.source_node_id else self.source_node_id

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "edge_type": str(self.edge_type),
            "source_node_id": self.source_node_id,
            "target_node_id": self.target_node_id,
            "weight": self.weight,
            "properties": dict(self.properties),
            "external_source_id": self.external_source_id,
            "created_at": ensure_utc(self.created_at).isoformat(),
            "updated_at": ensure_utc(self.updated_at).isoformat(),
            "seq": self.seq,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Edge:
        return cls(
            id=data["id"],
            tenant_id=data["tenant_id"],
            edge_type=EdgeType(data["edge_type"]),
            source_node_id=data["source_node_id"],
            target_node_id=data["target_node_id"],
            weight=data.get("weight", 1.0),
            properties=_frozen(data.get("properties")),
            external_source_id=data.get("external_source_id"),
            created_at=datetime.fromisoformat(data["created_at"]),
            updated_at=datetime.fromisoformat(data["updated_at"]),
            seq=data.get("seq", 0),
        )
