"""Database — session factory, units of work, and consistent tenant reads.

Every mutation runs inside one :class:`UnitOfWork`: the entity rows and
the audit entry share a transaction, so either both land or neither does.

Graph writes and consistent graph reads meet at a per-tenant
:class:`TenantGate`.  A graph-writing unit of work holds the gate alone
from its first statement to its commit; a consistent read shares it, so
it always observes whole commits.  Units of work that only append audit
entries or touch snapshot rows leave the gate alone.

An engine on a ``StaticPool`` (one shared connection, e.g. in-memory
SQLite) cannot carry interleaved transactions, so sessions on such an
engine take turns on the connection.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager, nullcontext
from typing import TYPE_CHECKING

from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from intelgraph.exceptions import StorageUnavailableError
from intelgraph.models import (
    AuditLogEntry,
    EdgeEmbedding,
    GraphSnapshot,
    IntelligenceEdge,
    IntelligenceNode,
    NodeEmbedding,
)
from intelgraph.store.locks import KeyedLocks, TenantGate

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy.ext.asyncio import AsyncEngine

    from intelgraph.config import GraphConfig
    from intelgraph.events import GraphEvent

logger = logging.getLogger(__name__)

_TABLES = (
    IntelligenceNode,
    IntelligenceEdge,
    NodeEmbedding,
    EdgeEmbedding,
    GraphSnapshot,
    AuditLogEntry,
)


class UnitOfWork:
    """An open transaction for one tenant.

    Attributes:
        session: The ``AsyncSession`` carrying the transaction.
        tenant_id: Tenant every statement in this unit is scoped to.
        events: Events to emit once the transaction has committed.
    """

    def __init__(self, session: AsyncSession, tenant_id: str, chain_locks: KeyedLocks) -> None:
        self.session = session
        self.tenant_id = tenant_id
        self.events: list[GraphEvent] = []
        self._chain_locks = chain_locks
        self._chain_held = False

    async def hold_audit_chain(self) -> None:
        """Serialize audit appends for this tenant until the transaction ends."""
        if not self._chain_held:
            await self._chain_locks.acquire(self.tenant_id)
            self._chain_held = True

    def _release(self) -> None:
        if self._chain_held:
            self._chain_locks.release(self.tenant_id)
            self._chain_held = False


class Database:
    """Owns the engine-bound session factory and per-tenant gates.

    On a ``StaticPool`` engine, sessions opened through one ``Database``
    take turns on the connection; facades sharing such an engine
    concurrently should share one ``Database`` as well.
    """

    def __init__(self, engine: AsyncEngine, config: GraphConfig) -> None:
        self._engine = engine
        self._config = config
        self._session_factory = async_sessionmaker(
            engine, class_=AsyncSession, expire_on_commit=False
        )
        self._gates: dict[str, TenantGate] = {}
        self._chain_locks = KeyedLocks()
        self._single_connection = isinstance(engine.sync_engine.pool, StaticPool)
        self._connection_turn = asyncio.Lock() if self._single_connection else nullcontext()

    @property
    def dialect(self) -> str:
        return self._engine.dialect.name

    @property
    def single_connection(self) -> bool:
        return self._single_connection

    async def create_tables(self) -> None:
        """Create every intelligence-graph table that does not exist yet."""
        tables = [model.__table__ for model in _TABLES]  # type: ignore[attr-defined]
        async with self._connection_turn, self._engine.begin() as conn:
            await conn.run_sync(
                lambda c: SQLModel.metadata.create_all(c, tables=tables, checkfirst=True)
            )

    def gate(self, tenant_id: str) -> TenantGate:
        gate = self._gates.get(tenant_id)
        if gate is None:
            gate = TenantGate()
            self._gates[tenant_id] = gate
        return gate

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def unit_of_work(
        self, tenant_id: str, *, graph_write: bool = True
    ) -> AsyncIterator[UnitOfWork]:
        """Yield a :class:`UnitOfWork`; commit on success, roll back on error.

        With ``graph_write=False`` the unit is still transactional but does
        not take the tenant gate; use it for audit-only and snapshot rows,
        which graph views never read.
        """
        exclusive = self.gate(tenant_id).write() if graph_write else nullcontext()
        async with exclusive, self._connection_turn:
            session = self._session_factory()
            uow = UnitOfWork(session, tenant_id, self._chain_locks)
            try:
                yield uow
                await session.commit()
            except DBAPIError as exc:
                await session.rollback()
                logger.error("Transaction for tenant %s failed", tenant_id, exc_info=True)
                raise StorageUnavailableError from exc
            except BaseException:
                await session.rollback()
                raise
            finally:
                uow._release()
                await session.close()

    @asynccontextmanager
    async def derived_session(self) -> AsyncIterator[AsyncSession]:
        """Commit-on-success session for derived rows (embeddings).

        Leaves the tenant gate alone: embeddings are not part of graph views.
        """
        async with self._connection_turn:
            session = self._session_factory()
            try:
                yield session
                await session.commit()
            except DBAPIError as exc:
                await session.rollback()
                logger.error("Derived write failed", exc_info=True)
                raise StorageUnavailableError from exc
            except BaseException:
                await session.rollback()
                raise
            finally:
                await session.close()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def read_session(self) -> AsyncIterator[AsyncSession]:
        """Yield a short-lived session for reads; maps driver errors."""
        async with self._connection_turn:
            session = self._session_factory()
            try:
                if self.dialect == "postgresql":
                    await session.connection(
                        execution_options={"isolation_level": "REPEATABLE READ"}
                    )
                yield session
            except DBAPIError as exc:
                await session.rollback()
                logger.error("Read failed", exc_info=True)
                raise StorageUnavailableError from exc
            finally:
                await session.close()

    @asynccontextmanager
    async def consistent_read(self, tenant_id: str) -> AsyncIterator[int]:
        """Hold off graph writers of *tenant_id* for the block.

        Yields the tenant's graph version: equal versions mean an identical
        tenant graph.  Open :meth:`read_session` inside the block to query.
        """
        async with self.gate(tenant_id).read() as version:
            yield version
