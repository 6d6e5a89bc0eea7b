"""OpenAI-backed collaborators: text embeddings and path narratives."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING, Any

from openai import AsyncOpenAI

if TYPE_CHECKING:
    from collections.abc import Sequence

    from intelgraph.collaborators import PathTriple

_EMBEDDING_DIMENSIONS: dict[str, int] = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
}

_NARRATIVE_SYSTEM_PROMPT = (
    "You explain how two entities in an intelligence graph are connected. "
    "Given a chain of relationships, write two or three plain sentences that "
    "describe the chain in order. Do not invent facts that are not in the chain."
)


def format_triples(triples: Sequence[PathTriple]) -> str:
    """One ``source --[type]--> target`` line per hop."""
    return "\n".join(f"{src} --[{etype}]--> {dst}" for src, etype, dst in triples)


class _OpenAICollaborator:
    """Shared client handling: explicit *client*, else key from arg or env."""

    def __init__(
        self,
        model: str,
        *,
        api_key: str | None,
        max_retries: int,
        timeout: float,
        client: AsyncOpenAI | None,
    ) -> None:
        self._model = model
        if client is None:
            key = api_key or os.environ.get("OPENAI_API_KEY")
            if not key:
                msg = (
                    "No OpenAI API key provided. Pass api_key= or set the "
                    "OPENAI_API_KEY environment variable."
                )
                raise ValueError(msg)
            client = AsyncOpenAI(api_key=key, max_retries=max_retries, timeout=timeout)
        self._client = client

    @property
    def model_name(self) -> str:
        return self._model

    async def close(self) -> None:
        await self._client.close()


class OpenAIEmbedding(_OpenAICollaborator):
    """:class:`EmbeddingProvider` over the OpenAI Embeddings API.

    A tenant re-embed can push thousands of texts through ``embed_batch``;
    they are sent *batch_size* at a time.
    """

    def __init__(
        self,
        *,
        model: str = "text-embedding-3-small",
        dimensions: int | None = None,
        api_key: str | None = None,
        max_retries: int = 2,
        timeout: float = 60.0,
        batch_size: int = 512,
        client: AsyncOpenAI | None = None,
    ) -> None:
        super().__init__(
            model, api_key=api_key, max_retries=max_retries, timeout=timeout, client=client
        )
        self._dimensions = dimensions
        self._batch_size = batch_size

    @property
    def dimensions(self) -> int:
        if self._dimensions is not None:
            return self._dimensions
        try:
            return _EMBEDDING_DIMENSIONS[self._model]
        except KeyError:
            msg = (
                f"Unknown default dimensions for model {self._model!r}. "
                "Pass dimensions= explicitly."
            )
            raise ValueError(msg) from None

    async def embed(self, text: str) -> list[float]:
        (vector,) = await self._request([text])
        return vector

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        vectors: list[list[float]] = []
        for start in range(0, len(texts), self._batch_size):
            vectors.extend(await self._request(texts[start : start + self._batch_size]))
        return vectors

    async def _request(self, texts: list[str]) -> list[list[float]]:
        params: dict[str, Any] = {"model": self._model, "input": texts}
        if self._dimensions is not None:
            params["dimensions"] = self._dimensions
        response = await self._client.embeddings.create(**params)
        # The API may return items out of input order
        return [item.embedding for item in sorted(response.data, key=lambda d: d.index)]


class OpenAINarrator(_OpenAICollaborator):
    """:class:`NarrativeProvider` that asks a chat model to explain a path."""

    def __init__(
        self,
        *,
        model: str = "gpt-4o",
        api_key: str | None = None,
        max_retries: int = 2,
        timeout: float = 60.0,
        max_tokens: int = 300,
        client: AsyncOpenAI | None = None,
    ) -> None:
        super().__init__(
            model, api_key=api_key, max_retries=max_retries, timeout=timeout, client=client
        )
        self._max_tokens = max_tokens

    async def explain(self, triples: Sequence[PathTriple]) -> str:
        response = await self._client.chat.completions.create(
            model=self._model,
            max_tokens=self._max_tokens,
            messages=[
                {"role": "system", "content": _NARRATIVE_SYSTEM_PROMPT},
                {"role": "user", "content": format_triples(triples)},
            ],
        )
        return (response.choices[0].message.content or "").strip()
