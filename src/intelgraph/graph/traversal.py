"""TraversalEngine — bounded BFS traversal, hop-count paths, path narratives.

Ordering is insertion-stable, not globally stable across re-runs after
mutation: within one depth, neighbors are visited in edge ``seq`` order of
the view the call observed.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import TYPE_CHECKING

from intelgraph.cancellation import CancellationToken, check
from intelgraph.collaborators import call_collaborator
from intelgraph.exceptions import InvalidArgumentError
from intelgraph.graph.types import GraphPath, PathExplanation, TraversalHit
from intelgraph.store.graph_store import coerce_enum
from intelgraph.types import Actor, AuditEventType, Direction, Edge, EdgeType, NodeType

if TYPE_CHECKING:
    from collections.abc import Collection

    from intelgraph.audit.log import AuditLog
    from intelgraph.collaborators import NarrativeProvider
    from intelgraph.config import GraphConfig
    from intelgraph.graph._rustworkx import GraphViews, TenantGraph
    from intelgraph.store._uow import Database

logger = logging.getLogger(__name__)


class TraversalEngine:
    """Read-only traversal over consistent tenant views."""

    def __init__(
        self,
        views: GraphViews,
        db: Database,
        audit: AuditLog,
        config: GraphConfig,
        narrator: NarrativeProvider | None = None,
    ) -> None:
        self._views = views
        self._db = db
        self._audit = audit
        self._config = config
        self._narrator = narrator

    def _check_depth(self, max_depth: int) -> None:
        limit = self._config.max_traversal_depth
        if not isinstance(max_depth, int) or isinstance(max_depth, bool):
            msg = f"max_depth must be an integer, got {max_depth!r}"
            raise InvalidArgumentError(msg)
        if not 0 <= max_depth <= limit:
            msg = f"max_depth must be between 0 and {limit}, got {max_depth}"
            raise InvalidArgumentError(msg)

    @staticmethod
    def _edge_filter(edge_types: Collection[EdgeType | str] | None) -> frozenset[EdgeType] | None:
        if edge_types is None:
            return None
        return frozenset(coerce_enum(EdgeType, t, "edge type") for t in edge_types)

    async def traverse(
        self,
        tenant_id: str,
        start_id: str,
        direction: Direction | str,
        max_depth: int,
        *,
        edge_types: Collection[EdgeType | str] | None = None,
        node_types: Collection[NodeType | str] | None = None,
        limit: int | None = None,
        cancel: CancellationToken | None = None,
    ) -> list[TraversalHit]:
        """Breadth-first expansion from *start_id*.

        The start node is always the first hit, at depth 0.  Every other
        reachable node appears exactly once, at its minimum depth, in
        non-decreasing depth order.  Raises ``NotFoundError`` if the start
        node does not exist.

        With *node_types*, neighbors of other types are neither returned nor
        expanded (the start node is exempt).  *limit* caps the number of
        hits, start node included.
        """
        self._check_depth(max_depth)
        direction = coerce_enum(Direction, direction, "direction")
        types = self._edge_filter(edge_types)
        kinds = (
            frozenset(coerce_enum(NodeType, t, "node type") for t in node_types)
            if node_types
            else None
        )
        if limit is not None and limit < 1:
            msg = f"limit must be >= 1, got {limit}"
            raise InvalidArgumentError(msg)
        check(cancel)

        view = await self._views.load(tenant_id)
        start = view.node(start_id)
        first = TraversalHit(node=start, depth=0, path=(start_id,))
        hits = [first]
        visited = {start_id}
        frontier: deque[TraversalHit] = deque([first])

        while frontier and (limit is None or len(hits) < limit):
            check(cancel)
            current = frontier.popleft()
            if current.depth >= max_depth:
                continue
            for edge, neighbor in view.incident(current.node.id, direction, types):
                if neighbor in visited:
                    continue
                node = view.node(neighbor)
                if kinds is not None and node.node_type not in kinds:
                    continue
                visited.add(neighbor)
                hit = TraversalHit(
                    node=node,
                    depth=current.depth + 1,
                    path=(*current.path, neighbor),
                    edge_path=(*current.edge_path, edge.id),
                )
                hits.append(hit)
                frontier.append(hit)
                if limit is not None and len(hits) >= limit:
                    break
        return hits

    def _bfs_path(
        self,
        view: TenantGraph,
        from_id: str,
        to_id: str,
        direction: Direction,
        max_depth: int,
        types: frozenset[EdgeType] | None,
        cancel: CancellationToken | None,
    ) -> GraphPath | None:
        start = view.node(from_id)
        view.node(to_id)
        if from_id == to_id:
            return GraphPath(nodes=(start,), edges=(), total_weight=0.0)

        parents: dict[str, tuple[str, Edge]] = {}
        visited = {from_id}
        frontier: deque[tuple[str, int]] = deque([(from_id, 0)])
        while frontier:
            check(cancel)
            node_id, depth = frontier.popleft()
            if depth >= max_depth:
                continue
            for edge, neighbor in view.incident(node_id, direction, types):
                if neighbor in visited:
                    continue
                visited.add(neighbor)
                parents[neighbor] = (node_id, edge)
                if neighbor == to_id:
                    return self._unwind(view, parents, from_id, to_id)
                frontier.append((neighbor, depth + 1))
        return None

    @staticmethod
    def _unwind(
        view: TenantGraph, parents: dict[str, tuple[str, Edge]], from_id: str, to_id: str
    ) -> GraphPath:
        node_ids = [to_id]
        edges: list[Edge] = []
        current = to_id
        while current != from_id:
            prev, edge = parents[current]
            edges.append(edge)
            node_ids.append(prev)
            current = prev
        node_ids.reverse()
        edges.reverse()
        return GraphPath(
            nodes=tuple(view.node(n) for n in node_ids),
            edges=tuple(edges),
            total_weight=sum(e.weight for e in edges),
        )

    async def find_path(
        self,
        tenant_id: str,
        from_id: str,
        to_id: str,
        max_depth: int,
        *,
        direction: Direction | str = Direction.BOTH,
        edge_types: Collection[EdgeType | str] | None = None,
        cancel: CancellationToken | None = None,
    ) -> GraphPath | None:
        """Shortest hop-count path from *from_id* to *to_id*, or ``None``.

        Ties between equally short paths go to the first one found in edge
        insertion order.  ``total_weight`` is that path's weight sum, which
        is not necessarily the lightest path.
        """
        self._check_depth(max_depth)
        direction = coerce_enum(Direction, direction, "direction")
        types = self._edge_filter(edge_types)
        view = await self._views.load(tenant_id)
        return self._bfs_path(view, from_id, to_id, direction, max_depth, types, cancel)

    async def explain_path(
        self,
        tenant_id: str,
        from_id: str,
        to_id: str,
        max_depth: int,
        *,
        direction: Direction | str = Direction.BOTH,
        edge_types: Collection[EdgeType | str] | None = None,
        actor: Actor | None = None,
        cancel: CancellationToken | None = None,
    ) -> PathExplanation | None:
        """Find a path and ask the narrative collaborator to describe it.

        Returns ``None`` when no path exists.  A failed or slow narrator
        leaves ``explanation`` as ``None``; the path is still returned.
        """
        path = await self.find_path(
            tenant_id,
            from_id,
            to_id,
            max_depth,
            direction=direction,
            edge_types=edge_types,
            cancel=cancel,
        )

        result: PathExplanation | None = None
        if path is not None:
            triples = path.triples()
            if not triples:
                result = PathExplanation(path=path)
            elif self._narrator is None:
                logger.debug("No narrative provider configured; returning bare path")
                result = PathExplanation(path=path, error_code="collaborator_unavailable")
            else:
                outcome = await call_collaborator(
                    self._narrator.explain,
                    triples,
                    timeout=self._config.collaborator_timeout,
                    name="narrative provider",
                )
                result = PathExplanation(
                    path=path,
                    explanation=outcome.value if outcome.ok else None,
                    error_code=outcome.error_code,
                )

        async with self._db.unit_of_work(tenant_id, graph_write=False) as uow:
            await self._audit.record(
                uow,
                AuditEventType.TRAVERSED,
                target_id=from_id,
                actor=actor,
                metadata={
                    "operation": "explain_path",
                    "to_id": to_id,
                    "max_depth": max_depth,
                    "found": path is not None,
                    "hops": path.hops if path is not None else None,
                    "explained": result is not None and result.explanation is not None,
                    "error_code": result.error_code if result is not None else None,
                },
            )
        return result
