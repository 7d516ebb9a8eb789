"""Shared test fixtures."""

import hashlib
from datetime import UTC, datetime

import pytest_asyncio

from knowledge_lifecycle.db.connection import create_connection
from knowledge_lifecycle.dedup.detector import DuplicateDetector
from knowledge_lifecycle.embeddings.provider import EmbeddingKind
from knowledge_lifecycle.errors import ProviderError
from knowledge_lifecycle.lifecycle.archival import ArchivalPolicyEngine
from knowledge_lifecycle.search.vector import VectorSearchService
from knowledge_lifecycle.store.knowledge_store import KnowledgeStore

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=UTC)


@pytest_asyncio.fixture
async def db():
    """In-memory database with full schema."""
    conn = await create_connection(":memory:")
    yield conn
    await conn.close()


@pytest_asyncio.fixture
async def store(db):
    """Knowledge store backed by in-memory DB."""
    return KnowledgeStore(db)


class FakeEmbedder:
    """Deterministic fake embedder for testing.

    Texts registered in ``vectors`` get that exact vector; anything else gets a
    vector derived from a hash of the text, so identical texts always get
    identical vectors.
    """

    def __init__(self, dim: int = 8, vectors: dict[str, list[float]] | None = None):
        self.dim = dim
        self.vectors = dict(vectors or {})
        self.fail = False
        self.calls: list[tuple[str, EmbeddingKind]] = []
        self.closed = False

    async def embed(self, text: str, kind: EmbeddingKind = EmbeddingKind.DOCUMENT) -> list[float]:
        self.calls.append((text, kind))
        if self.fail:
            raise ProviderError("fake embedder is down")
        if text in self.vectors:
            return list(self.vectors[text])
        digest = hashlib.sha256(text.encode()).digest()
        vec = [digest[i] / 255.0 * 2 - 1 for i in range(self.dim)]
        norm = sum(v * v for v in vec) ** 0.5 or 1.0
        return [v / norm for v in vec]

    async def close(self) -> None:
        self.closed = True


@pytest_asyncio.fixture
async def fake_embedder():
    """Fake embedding client for tests."""
    return FakeEmbedder()


@pytest_asyncio.fixture
async def search(store, fake_embedder):
    """Vector search service over the in-memory store."""
    return VectorSearchService(store, fake_embedder)


@pytest_asyncio.fixture
async def detector(store, search):
    """Duplicate detector over the in-memory store."""
    return DuplicateDetector(store, search)


@pytest_asyncio.fixture
async def archival(store):
    """Archival policy engine over the in-memory store."""
    return ArchivalPolicyEngine(store)
