"""Search layer protocols — the embedding collaborator."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Turns canonical node/edge text and queries into vectors.

    Every vector a provider returns has ``dimensions`` floats.  Sync
    implementations work too: the search engine runs them in an executor
    under the collaborator timeout.
    """

    async def embed(self, text: str) -> list[float]:
        """Vector for one text."""
        ...

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Vectors for *texts*, in input order."""
        ...

    @property
    def dimensions(self) -> int: ...

    @property
    def model_name(self) -> str:
        """Recorded on each embedding row as ``embedding_provider``."""
        ...
