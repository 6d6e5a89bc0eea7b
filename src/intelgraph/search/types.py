"""Search layer data types — vectors, store results, and ranked hits."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from intelgraph.exceptions import InvalidArgumentError

if TYPE_CHECKING:
    from collections.abc import Iterator

    from intelgraph.types import Edge, Node


# ------------------------------------------------------------------
# Vector data
# ------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class VectorEntry:
    """A vector with its ID and metadata, ready for storage.

    Attributes:
        id: ``"node:<id>"`` or ``"edge:<id>"``.
        vector: Embedding vector.
        metadata: Arbitrary key-value metadata stored alongside the vector.
    """

    id: str
    vector: list[float]
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class VectorSearchResult:
    """A single approximate-nearest-neighbor candidate.

    Attributes:
        id: Identifier of the matched entry.
        score: Cosine similarity reported by the index (higher is closer).
        metadata: Metadata stored with the vector.
    """

    id: str
    score: float
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class UpsertResult:
    upserted_count: int


@dataclass(frozen=True, slots=True)
class DeleteResult:
    deleted_count: int


# ------------------------------------------------------------------
# Semantic search results
# ------------------------------------------------------------------


class HitKind(StrEnum):
    NODE = "node"
    EDGE = "edge"


class IndexOutcome(StrEnum):
    """What happened when an entity was (re-)embedded."""

    EMBEDDED = "embedded"
    UNCHANGED = "unchanged"
    FAILED = "failed"
    MISSING = "missing"
    DISABLED = "disabled"


@dataclass(frozen=True, slots=True)
class SearchHit:
    """One ranked match.  Exactly one of ``node`` / ``edge`` is set.

    ``stale`` is true when the embedding is flagged stale or older than the
    configured staleness window; the hit is still a valid match.
    """

    kind: HitKind
    score: float
    stale: bool
    node: Node | None = None
    edge: Edge | None = None

    def __post_init__(self) -> None:
        if (self.node is None) == (self.edge is None):
            msg = "SearchHit needs exactly one of node or edge"
            raise InvalidArgumentError(msg)

    @property
    def entity_id(self) -> str:
        if self.node is not None:
            return self.node.id
        if self.edge is not None:
            return self.edge.id
        msg = "SearchHit has neither node nor edge"
        raise InvalidArgumentError(msg)


@dataclass(frozen=True, slots=True)
class SearchResults:
    """Ranked hits for one query.

    ``degraded`` is true when the query could not be embedded; ``hits`` is
    then empty and ``error_code`` names the collaborator failure.
    """

    hits: tuple[SearchHit, ...] = ()
    degraded: bool = False
    error_code: str | None = None

    def __iter__(self) -> Iterator[SearchHit]:
        return iter(self.hits)

    def __len__(self) -> int:
        return len(self.hits)


@dataclass(frozen=True, slots=True)
class ReembedReport:
    """Per-outcome counts for a full-tenant re-embedding run."""

    embedded: int = 0
    unchanged: int = 0
    failed: int = 0
    failed_ids: tuple[str, ...] = ()
