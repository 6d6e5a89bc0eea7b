"""Shared fixtures for intelligence graph tests."""

from __future__ import annotations

import asyncio
import hashlib
import math
import re
from typing import TYPE_CHECKING

import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from intelgraph import GraphConfig, IntelGraphAsync
from intelgraph.audit import AuditLog
from intelgraph.events import EventBus
from intelgraph.graph import GraphViews
from intelgraph.store import Database, GraphStore

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy.ext.asyncio import AsyncEngine


# ------------------------------------------------------------------
# Fake collaborators (deterministic, fast)
# ------------------------------------------------------------------

FAKE_DIM = 64

_WORD = re.compile(r"[a-z0-9]+")


def keyword_vector(text: str, dim: int = FAKE_DIM) -> list[float]:
    """Bag-of-words vector: each word bumps one hashed bucket, then L2-normalised."""
    vec = [0.0] * dim
    for word in _WORD.findall(text.lower()):
        bucket = int(hashlib.sha256(word.encode()).hexdigest(), 16) % dim
        vec[bucket] += 1.0
    norm = math.sqrt(sum(x * x for x in vec))
    return [x / norm for x in vec] if norm else vec


class FakeProvider:
    """Keyword-bucket embedding provider; texts sharing words score high."""

    def __init__(self, model: str = "fake-keywords") -> None:
        self._model = model
        self.calls: list[str] = []

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        return keyword_vector(text)

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        return [await self.embed(t) for t in texts]

    @property
    def dimensions(self) -> int:
        return FAKE_DIM

    @property
    def model_name(self) -> str:
        return self._model


class FailingProvider(FakeProvider):
    """Provider whose calls can be switched to fail."""

    def __init__(self) -> None:
        super().__init__()
        self.fail = False

    async def embed(self, text: str) -> list[float]:
        if self.fail:
            raise RuntimeError("embedding backend down")
        return await super().embed(text)


class HangingProvider(FakeProvider):
    async def embed(self, text: str) -> list[float]:
        await asyncio.sleep(30)
        return keyword_vector(text)


class FakeNarrator:
    def __init__(self) -> None:
        self.calls: list[list[tuple[str, str, str]]] = []

    async def explain(self, triples):
        self.calls.append(list(triples))
        return " then ".join(f"{s} {e} {t}" for s, e, t in triples)


class FailingNarrator:
    async def explain(self, triples):
        raise RuntimeError("model overloaded")


# ------------------------------------------------------------------
# Engines and low-level components
# ------------------------------------------------------------------


def memory_engine() -> AsyncEngine:
    return create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )


@pytest.fixture
def config() -> GraphConfig:
    return GraphConfig(collaborator_timeout=0.5)


@pytest.fixture
async def async_engine() -> AsyncIterator[AsyncEngine]:
    """Async in-memory SQLite engine shared by every session of one test."""
    eng = memory_engine()
    yield eng
    await eng.dispose()


@pytest.fixture
async def db(async_engine: AsyncEngine, config: GraphConfig) -> Database:
    database = Database(async_engine, config)
    await database.create_tables()
    return database


@pytest.fixture
def audit(db: Database, config: GraphConfig) -> AuditLog:
    return AuditLog(db, config)


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def store(db: Database, audit: AuditLog, bus: EventBus, config: GraphConfig) -> GraphStore:
    return GraphStore(db, audit, bus, config)


@pytest.fixture
def views(db: Database) -> GraphViews:
    return GraphViews(db)


# ------------------------------------------------------------------
# Facades
# ------------------------------------------------------------------


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
async def graph(provider: FakeProvider, config: GraphConfig) -> AsyncIterator[IntelGraphAsync]:
    g = IntelGraphAsync(config=config, embedding_provider=provider, narrator=FakeNarrator())
    await g.open()
    yield g
    await g.close()


@pytest.fixture
async def graph_no_search(config: GraphConfig) -> AsyncIterator[IntelGraphAsync]:
    g = IntelGraphAsync(config=config)
    await g.open()
    yield g
    await g.close()
