"""Tests for GraphConfig."""

from __future__ import annotations

from datetime import timedelta

import pytest

from intelgraph import GraphConfig
from intelgraph.exceptions import InvalidArgumentError


class TestDefaults:
    def test_defaults(self):
        config = GraphConfig()
        assert config.max_traversal_depth == 10
        assert config.pagerank_iterations == 20
        assert config.pagerank_damping == 0.85
        assert config.embedding_staleness == timedelta(days=30)
        assert config.collaborator_timeout == 10.0
        assert config.default_list_limit == 20
        assert config.max_list_limit == 500

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"max_traversal_depth": -1},
            {"pagerank_iterations": 0},
            {"pagerank_damping": 1.0},
            {"pagerank_damping": 0.0},
            {"collaborator_timeout": 0},
            {"search_overfetch": 0},
            {"default_list_limit": 1000},
        ],
    )
    def test_invalid_values(self, kwargs):
        with pytest.raises(InvalidArgumentError):
            GraphConfig(**kwargs)

    def test_with_overrides(self):
        base = GraphConfig()
        changed = base.with_overrides(max_traversal_depth=3)
        assert changed.max_traversal_depth == 3
        assert base.max_traversal_depth == 10


class TestFromEnv:
    def test_reads_prefixed_variables(self):
        config = GraphConfig.from_env(
            {
                "INTELGRAPH_MAX_TRAVERSAL_DEPTH": "4",
                "INTELGRAPH_PAGERANK_DAMPING": "0.5",
                "INTELGRAPH_EMBEDDING_STALENESS": "3600",
                "UNRELATED": "x",
            }
        )
        assert config.max_traversal_depth == 4
        assert config.pagerank_damping == 0.5
        assert config.embedding_staleness == timedelta(hours=1)

    def test_overrides_win(self):
        config = GraphConfig.from_env(
            {"INTELGRAPH_MAX_TRAVERSAL_DEPTH": "4"}, max_traversal_depth=7
        )
        assert config.max_traversal_depth == 7

    def test_bad_value(self):
        with pytest.raises(InvalidArgumentError, match="INTELGRAPH_PAGERANK_ITERATIONS"):
            GraphConfig.from_env({"INTELGRAPH_PAGERANK_ITERATIONS": "lots"})

    def test_empty_environment(self):
        assert GraphConfig.from_env({}) == GraphConfig()


class TestClampLimit:
    def test_default(self):
        assert GraphConfig().clamp_limit(None) == 20

    def test_capped(self):
        assert GraphConfig().clamp_limit(10_000) == 500

    def test_passthrough(self):
        assert GraphConfig().clamp_limit(7) == 7

    def test_rejects_zero(self):
        with pytest.raises(InvalidArgumentError):
            GraphConfig().clamp_limit(0)
