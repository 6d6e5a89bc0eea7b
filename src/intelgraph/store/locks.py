"""KeyedLocks — lazily created asyncio locks keyed by entity id."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterable


class KeyedLocks:
    """A pool of ``asyncio.Lock`` objects, one per key, reference counted.

    Multi-key acquisition always happens in sorted key order so two
    operations touching overlapping entity sets cannot deadlock.  Locks are
    dropped from the pool once no task holds or awaits them.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._refs: dict[str, int] = {}

    async def acquire(self, key: str) -> None:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        self._refs[key] = self._refs.get(key, 0) + 1
        try:
            await lock.acquire()
        except BaseException:
            self._unref(key)
            raise

    def release(self, key: str) -> None:
        self._locks[key].release()
        self._unref(key)

    @asynccontextmanager
    async def hold(self, keys: Iterable[str]) -> AsyncIterator[None]:
        """Acquire every key in *keys* (deduplicated, sorted) for the block."""
        ordered = sorted(set(keys))
        acquired: list[str] = []
        try:
            for key in ordered:
                await self.acquire(key)
                acquired.append(key)
            yield
        finally:
            for key in reversed(acquired):
                self.release(key)

    def locked(self, key: str) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)

    def _unref(self, key: str) -> None:
        remaining = self._refs[key] - 1
        if remaining:
            self._refs[key] = remaining
        else:
            del self._refs[key]
            del self._locks[key]


class TenantGate:
    """Fair reader/writer gate over one tenant's graph.

    Readers share the gate; a writer holds it alone for its whole unit of
    work.  Everyone queues on one FIFO turnstile, so a stream of writers
    cannot starve readers and a stream of readers cannot starve writers.
    ``version`` counts writers admitted so far; while a reader holds the
    gate it names the committed state the reader sees.
    """

    __slots__ = ("_idle", "_readers", "_turnstile", "version")

    def __init__(self) -> None:
        self._turnstile = asyncio.Lock()
        self._idle = asyncio.Event()
        self._idle.set()
        self._readers = 0
        self.version = 0

    @property
    def readers(self) -> int:
        return self._readers

    @asynccontextmanager
    async def read(self) -> AsyncIterator[int]:
        """Share the gate; yields the current ``version``."""
        async with self._turnstile:
            self._readers += 1
            self._idle.clear()
        try:
            yield self.version
        finally:
            self._readers -= 1
            if not self._readers:
                self._idle.set()

    @asynccontextmanager
    async def write(self) -> AsyncIterator[None]:
        """Hold the gate alone once in-flight readers have left."""
        async with self._turnstile:
            await self._idle.wait()
            self.version += 1
            yield
