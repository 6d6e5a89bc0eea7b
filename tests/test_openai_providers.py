"""Tests for the OpenAI embedding and narrative providers."""

from __future__ import annotations

import os
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from intelgraph.collaborators import NarrativeProvider
from intelgraph.search.protocols import EmbeddingProvider
from intelgraph.search.providers.openai import OpenAIEmbedding, OpenAINarrator, format_triples

# ==================================================================
# Embeddings
# ==================================================================


class TestOpenAIEmbedding:
    def _make_provider(self, **kwargs):
        return OpenAIEmbedding(api_key="sk-test-key", **kwargs)

    def _mock_response(self, vectors: list[list[float]]):
        """Build a mock CreateEmbeddingResponse."""
        mock_resp = MagicMock()
        mock_data = []
        for i, vec in enumerate(vectors):
            item = MagicMock()
            item.embedding = vec
            item.index = i
            mock_data.append(item)
        mock_resp.data = mock_data
        return mock_resp

    @pytest.mark.asyncio
    async def test_embed_single_text(self):
        provider = self._make_provider()
        expected = [0.1, 0.2, 0.3]
        provider._client.embeddings.create = AsyncMock(
            return_value=self._mock_response([expected])
        )

        result = await provider.embed("hello")

        assert result == expected
        call_kwargs = provider._client.embeddings.create.call_args[1]
        assert call_kwargs["input"] == ["hello"]
        assert call_kwargs["model"] == "text-embedding-3-small"
        assert "dimensions" not in call_kwargs

    @pytest.mark.asyncio
    async def test_injected_client(self):
        client = MagicMock()
        client.embeddings.create = AsyncMock(return_value=self._mock_response([[1.0, 0.0]]))
        provider = OpenAIEmbedding(client=client, dimensions=2)

        assert await provider.embed("x") == [1.0, 0.0]
        assert client.embeddings.create.call_args[1]["dimensions"] == 2

    @pytest.mark.asyncio
    async def test_batch_chunking(self):
        provider = self._make_provider(batch_size=2)
        calls: list[list[str]] = []

        async def mock_create(**kwargs):
            calls.append(kwargs["input"])
            return self._mock_response([[float(len(calls))] for _ in kwargs["input"]])

        provider._client.embeddings.create = mock_create

        result = await provider.embed_batch(["a", "b", "c", "d", "e"])

        assert calls == [["a", "b"], ["c", "d"], ["e"]]
        assert result == [[1.0], [1.0], [2.0], [2.0], [3.0]]

    @pytest.mark.asyncio
    async def test_embed_batch_empty(self):
        provider = self._make_provider()
        assert await provider.embed_batch([]) == []

    @pytest.mark.asyncio
    async def test_response_sorted_by_index(self):
        provider = self._make_provider()
        mock_resp = MagicMock()
        item0 = MagicMock()
        item0.embedding = [0.0]
        item0.index = 1
        item1 = MagicMock()
        item1.embedding = [1.0]
        item1.index = 0
        mock_resp.data = [item0, item1]
        provider._client.embeddings.create = AsyncMock(return_value=mock_resp)

        assert await provider.embed_batch(["first", "second"]) == [[1.0], [0.0]]

    def test_dimensions(self):
        assert self._make_provider(dimensions=256).dimensions == 256
        assert self._make_provider().dimensions == 1536
        assert self._make_provider(model="text-embedding-3-large").dimensions == 3072

    def test_dimensions_unknown_model_raises(self):
        provider = self._make_provider(model="custom-model")
        with pytest.raises(ValueError, match="Unknown default dimensions"):
            _ = provider.dimensions

    def test_api_key_required(self):
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ValueError, match="No OpenAI API key"):
                OpenAIEmbedding()

    def test_api_key_from_env(self):
        with patch.dict(os.environ, {"OPENAI_API_KEY": "sk-from-env"}):
            provider = OpenAIEmbedding()
            assert provider.model_name == "text-embedding-3-small"

    def test_isinstance_embedding_provider(self):
        assert isinstance(self._make_provider(), EmbeddingProvider)

    @pytest.mark.asyncio
    async def test_close(self):
        provider = self._make_provider()
        provider._client.close = AsyncMock()
        await provider.close()
        provider._client.close.assert_called_once()


# ==================================================================
# Narratives
# ==================================================================


def _chat_response(content: str | None):
    message = MagicMock()
    message.content = content
    choice = MagicMock()
    choice.message = message
    response = MagicMock()
    response.choices = [choice]
    return response


class TestOpenAINarrator:
    def test_format_triples(self):
        text = format_triples([("Ada", "authored", "Notes"), ("Notes", "covers", "Engines")])
        assert text == "Ada --[authored]--> Notes\nNotes --[covers]--> Engines"

    @pytest.mark.asyncio
    async def test_explain(self):
        client = MagicMock()
        client.chat.completions.create = AsyncMock(
            return_value=_chat_response("  Ada wrote the notes.  ")
        )
        narrator = OpenAINarrator(client=client, model="gpt-4o-mini", max_tokens=50)

        result = await narrator.explain([("Ada", "authored", "Notes")])

        assert result == "Ada wrote the notes."
        kwargs = client.chat.completions.create.call_args[1]
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["max_tokens"] == 50
        assert kwargs["messages"][0]["role"] == "system"
        assert kwargs["messages"][1]["content"] == "Ada --[authored]--> Notes"

    @pytest.mark.asyncio
    async def test_empty_content(self):
        client = MagicMock()
        client.chat.completions.create = AsyncMock(return_value=_chat_response(None))
        narrator = OpenAINarrator(client=client)
        assert await narrator.explain([("A", "leads_to", "B")]) == ""

    def test_isinstance_narrative_provider(self):
        assert isinstance(OpenAINarrator(api_key="sk-test"), NarrativeProvider)

    def test_api_key_required(self):
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ValueError, match="No OpenAI API key"):
                OpenAINarrator()
