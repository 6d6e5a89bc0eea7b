"""GraphConfig — tunables for traversal, analytics, search, and collaborators."""

from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from datetime import timedelta
from typing import Any

from intelgraph.exceptions import InvalidArgumentError

_ENV_PREFIX = "INTELGRAPH_"


@dataclass(frozen=True, slots=True)
class GraphConfig:
    """Immutable engine configuration.

    Attributes:
        max_traversal_depth: Upper bound accepted for ``max_depth`` arguments.
        pagerank_iterations: Fixed iteration count for the PageRank pass.
        pagerank_damping: Damping factor ``d`` for the PageRank pass.
        embedding_staleness: Age after which a stored embedding is flagged stale.
        collaborator_timeout: Seconds allowed for one embedding/narrative call.
        search_overfetch: ANN candidates fetched per requested result.
        default_list_limit: Page size when ``limit`` is not given.
        max_list_limit: Largest page size accepted.
    """

    max_traversal_depth: int = 10
    pagerank_iterations: int = 20
    pagerank_damping: float = 0.85
    embedding_staleness: timedelta = timedelta(days=30)
    collaborator_timeout: float = 10.0
    search_overfetch: int = 4
    default_list_limit: int = 20
    max_list_limit: int = 500

    def __post_init__(self) -> None:
        if self.max_traversal_depth < 0:
            msg = "max_traversal_depth must be >= 0"
            raise InvalidArgumentError(msg)
        if self.pagerank_iterations < 1:
            msg = "pagerank_iterations must be >= 1"
            raise InvalidArgumentError(msg)
        if not 0.0 < self.pagerank_damping < 1.0:
            msg = "pagerank_damping must be in (0, 1)"
            raise InvalidArgumentError(msg)
        if self.collaborator_timeout <= 0:
            msg = "collaborator_timeout must be positive"
            raise InvalidArgumentError(msg)
        if self.search_overfetch < 1:
            msg = "search_overfetch must be >= 1"
            raise InvalidArgumentError(msg)
        if not 1 <= self.default_list_limit <= self.max_list_limit:
            msg = "default_list_limit must be between 1 and max_list_limit"
            raise InvalidArgumentError(msg)

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None, **overrides: Any) -> GraphConfig:
        """Build a config from ``INTELGRAPH_*`` environment variables.

        ``INTELGRAPH_EMBEDDING_STALENESS`` is given in seconds.  Explicit
        keyword *overrides* win over the environment.
        """
        env = os.environ if environ is None else environ
        values: dict[str, Any] = {}
        for f in fields(cls):
            raw = env.get(_ENV_PREFIX + f.name.upper())
            if raw is None:
                continue
            try:
                if f.name == "embedding_staleness":
                    values[f.name] = timedelta(seconds=float(raw))
                elif f.type in ("int", int):
                    values[f.name] = int(raw)
                else:
                    values[f.name] = float(raw)
            except ValueError as exc:
                msg = f"Invalid value for {_ENV_PREFIX}{f.name.upper()}: {raw!r}"
                raise InvalidArgumentError(msg) from exc
        values.update(overrides)
        return cls(**values)

    def with_overrides(self, **changes: Any) -> GraphConfig:
        """Return a copy with *changes* applied."""
        return replace(self, **changes)

    def clamp_limit(self, limit: int | None) -> int:
        """Resolve a page size against the configured default and maximum."""
        if limit is None:
            return self.default_list_limit
        if limit < 1:
            msg = f"limit must be >= 1, got {limit}"
            raise InvalidArgumentError(msg)
        return min(limit, self.max_list_limit)
