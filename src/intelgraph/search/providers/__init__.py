"""Model providers — OpenAI-backed embeddings and path narratives."""

from intelgraph.search.protocols import EmbeddingProvider
from intelgraph.search.providers.openai import OpenAIEmbedding, OpenAINarrator

__all__ = [
    "EmbeddingProvider",
    "OpenAIEmbedding",
    "OpenAINarrator",
]
