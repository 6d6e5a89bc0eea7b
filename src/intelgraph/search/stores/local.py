"""LocalVectorStore — in-process usearch HNSW index, one partition per tenant."""

from __future__ import annotations

import threading
from typing import Any

import numpy as np
from usearch.index import Index

from intelgraph.search.types import DeleteResult, UpsertResult, VectorEntry, VectorSearchResult


class _Partition:
    """One HNSW index plus its key bookkeeping."""

    __slots__ = ("id_to_key", "index", "key_to_meta", "next_key")

    def __init__(self, dimension: int) -> None:
        self.index = Index(ndim=dimension, metric="cos", dtype="f32")
        self.key_to_meta: dict[int, dict[str, Any]] = {}
        self.id_to_key: dict[str, int] = {}
        self.next_key = 0


class LocalVectorStore:
    """In-process approximate-nearest-neighbor store backed by usearch.

    Vectors are partitioned by ``namespace`` (the tenant id), so a query can
    only ever return candidates from its own tenant.  A partition's
    dimensionality is fixed by the first vector written to it.

    Thread-safe via :class:`threading.Lock`.
    """

    def __init__(self) -> None:
        self._partitions: dict[str, _Partition] = {}
        self._lock = threading.Lock()

    def _partition(self, namespace: str) -> _Partition | None:
        return self._partitions.get(namespace)

    def _partition_for(self, namespace: str, dimension: int) -> _Partition:
        part = self._partitions.get(namespace)
        if part is None:
            part = _Partition(dimension)
            self._partitions[namespace] = part
        return part

    async def upsert(self, entries: list[VectorEntry], *, namespace: str) -> UpsertResult:
        """Insert or replace vector entries in *namespace*."""
        count = 0
        with self._lock:
            for entry in entries:
                vector = np.asarray(entry.vector, dtype=np.float32)
                part = self._partition_for(namespace, len(vector))
                if part.index.ndim != len(vector):
                    msg = (
                        f"Vector for {entry.id!r} has {len(vector)} dimensions, "
                        f"partition {namespace!r} expects {part.index.ndim}"
                    )
                    raise ValueError(msg)
                self._remove(part, entry.id)
                key = part.next_key
                part.next_key += 1
                part.index.add(key, vector)
                part.key_to_meta[key] = {"id": entry.id, **entry.metadata}
                part.id_to_key[entry.id] = key
                count += 1
        return UpsertResult(upserted_count=count)

    async def search(
        self,
        vector: list[float],
        *,
        k: int = 10,
        namespace: str,
    ) -> list[VectorSearchResult]:
        """Return up to *k* nearest entries of *namespace*, best first."""
        with self._lock:
            part = self._partition(namespace)
            if part is None or not part.id_to_key:
                return []
            query = np.asarray(vector, dtype=np.float32)
            if len(query) != part.index.ndim:
                return []
            matches = part.index.search(query, min(k, len(part.id_to_key)))
            results: list[VectorSearchResult] = []
            for match_key, distance in zip(
                matches.keys.tolist(), matches.distances.tolist(), strict=True
            ):
                meta = part.key_to_meta.get(int(match_key))
                if meta is None:
                    continue
                results.append(
                    VectorSearchResult(
                        id=meta["id"],
                        score=1.0 - float(distance),
                        metadata={mk: mv for mk, mv in meta.items() if mk != "id"},
                    )
                )
        results.sort(key=lambda r: r.score, reverse=True)
        return results

    async def delete(self, ids: list[str], *, namespace: str) -> DeleteResult:
        """Delete vectors by their IDs."""
        count = 0
        with self._lock:
            part = self._partition(namespace)
            if part is not None:
                for entry_id in ids:
                    if self._remove(part, entry_id):
                        count += 1
        return DeleteResult(deleted_count=count)

    def has(self, entry_id: str, *, namespace: str) -> bool:
        part = self._partitions.get(namespace)
        return part is not None and entry_id in part.id_to_key

    def count(self, namespace: str) -> int:
        part = self._partitions.get(namespace)
        return len(part.id_to_key) if part is not None else 0

    def drop_namespace(self, namespace: str) -> None:
        with self._lock:
            self._partitions.pop(namespace, None)

    def __len__(self) -> int:
        return sum(len(p.id_to_key) for p in self._partitions.values())

    @staticmethod
    def _remove(part: _Partition, entry_id: str) -> bool:
        key = part.id_to_key.pop(entry_id, None)
        if key is None:
            return False
        part.key_to_meta.pop(key, None)
        part.index.remove(key)
        return True
