"""Graph store value types — patches, list orderings and merge results."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from intelgraph.types import Edge, Node


class NodeOrder(StrEnum):
    """Sort keys for ``list_nodes``.  Ties fall back to insertion order."""

    CREATED_AT = "created_at"
    UPDATED_AT = "updated_at"
    LABEL = "label"
    DEGREE_CENTRALITY = "degree_centrality"
    PAGERANK_SCORE = "pagerank_score"


class EdgeOrder(StrEnum):
    """Sort keys for ``list_edges``."""

    CREATED_AT = "created_at"
    WEIGHT = "weight"


@dataclass(frozen=True, slots=True)
class NodePatch:
    """Partial node update.  ``None`` fields are left untouched.

    A provided ``properties`` map replaces the stored map wholesale.
    """

    label: str | None = None
    properties: dict[str, Any] | None = None

    @property
    def is_empty(self) -> bool:
        return self.label is None and self.properties is None


@dataclass(frozen=True, slots=True)
class EdgePatch:
    """Partial edge update.  ``None`` fields are left untouched."""

    weight: float | None = None
    properties: dict[str, Any] | None = None

    @property
    def is_empty(self) -> bool:
        return self.weight is None and self.properties is None


@dataclass(frozen=True, slots=True)
class NodeWithConnections:
    """A node with its incident edges and the nodes on their other ends."""

    node: Node
    outgoing: tuple[Edge, ...]
    incoming: tuple[Edge, ...]
    neighbors: MappingProxyType[str, Node] = field(default_factory=lambda: MappingProxyType({}))


@dataclass(frozen=True, slots=True)
class EdgeWithNodes:
    """An edge with both of its endpoint nodes."""

    edge: Edge
    source: Node
    target: Node


@dataclass(frozen=True, slots=True)
class MergePreview:
    """What :meth:`GraphStore.merge_nodes` would do, without doing it.

    Attributes:
        primary: The surviving node as it is now.
        merged_properties: Properties the primary would end up with.
        repointed_edge_ids: Edges that would be moved onto the primary.
        dropped_edge_ids: Edges that would become forbidden self-loops.
    """

    primary: Node
    duplicates: tuple[Node, ...]
    merged_properties: MappingProxyType[str, Any]
    repointed_edge_ids: tuple[str, ...]
    dropped_edge_ids: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class MergeResult:
    """Outcome of a committed merge."""

    node: Node
    merged_node_ids: tuple[str, ...]
    repointed_edge_ids: tuple[str, ...]
    dropped_edge_ids: tuple[str, ...]
