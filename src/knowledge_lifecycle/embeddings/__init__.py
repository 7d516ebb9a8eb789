"""Embedding provider module."""

from knowledge_lifecycle.embeddings.ollama import OllamaEmbeddingClient
from knowledge_lifecycle.embeddings.provider import EmbeddingKind, EmbeddingProvider
from knowledge_lifecycle.embeddings.voyage import VoyageEmbeddingClient

__all__ = ["EmbeddingKind", "EmbeddingProvider", "OllamaEmbeddingClient", "VoyageEmbeddingClient"]
