"""Vector similarity search over a project's knowledge."""

import logging

from pydantic import ValidationError

from knowledge_lifecycle.config import get_search_limit, get_search_threshold
from knowledge_lifecycle.embeddings.provider import EmbeddingKind, EmbeddingProvider
from knowledge_lifecycle.errors import InputError, ProviderError, StoreError
from knowledge_lifecycle.models.knowledge import Knowledge
from knowledge_lifecycle.models.search import SearchQuery, SearchResult
from knowledge_lifecycle.search.similarity import cosine_similarity
from knowledge_lifecycle.store.port import KnowledgeFilter, SearchStore, Store

logger = logging.getLogger(__name__)


class BruteForceSearchStore:
    """SearchStore that scores every candidate with cosine similarity.

    Candidates are the project's knowledge with a non-null embedding, optionally
    narrowed by category. Ties are broken by knowledge ID so rankings are stable.
    """

    def __init__(self, store: Store):
        """Initialize with the knowledge store to scan."""
        self.store = store

    async def nearest(
        self,
        project_id: str,
        embedding: list[float],
        *,
        limit: int,
        threshold: float,
        category: str | None = None,
        include_archived: bool = False,
        include_duplicates: bool = False,
    ) -> list[tuple[Knowledge, float]]:
        """(knowledge, similarity) pairs at or above threshold, best first."""
        candidates = await self.store.query_by_project(
            project_id,
            KnowledgeFilter(
                category=category,
                has_embedding=True,
                archived=None if include_archived else False,
            ),
        )

        scored: list[tuple[Knowledge, float]] = []
        for knowledge in candidates:
            if knowledge.embedding is None:
                continue
            if not include_duplicates and knowledge.is_grouped_duplicate:
                continue
            similarity = cosine_similarity(embedding, knowledge.embedding)
            if similarity >= threshold:
                scored.append((knowledge, similarity))

        scored.sort(key=lambda pair: (-pair[1], pair[0].id))
        return scored[:limit]


class VectorSearchService:
    """Ranks knowledge by similarity to a query text or embedding."""

    def __init__(
        self,
        store: Store,
        embedder: EmbeddingProvider | None,
        search_store: SearchStore | None = None,
    ):
        """Initialize with a store, an embedding provider and an optional search backend."""
        self.store = store
        self.embedder = embedder
        self.search_store = search_store or BruteForceSearchStore(store)

    async def search(
        self,
        project_id: str,
        *,
        query_text: str | None = None,
        query_embedding: list[float] | None = None,
        limit: int | None = None,
        threshold: float | None = None,
        category: str | None = None,
        include_archived: bool = False,
        include_duplicates: bool = False,
    ) -> list[SearchResult]:
        """Validate parameters and run a search. See search_similar_knowledge."""
        try:
            query = SearchQuery(
                project_id=project_id,
                query_text=query_text,
                query_embedding=query_embedding,
                limit=get_search_limit() if limit is None else limit,
                threshold=get_search_threshold() if threshold is None else threshold,
                category=category,
                include_archived=include_archived,
                include_duplicates=include_duplicates,
            )
        except ValidationError as e:
            raise InputError(f"Invalid search parameters: {e}") from e
        return await self.search_similar_knowledge(query)

    async def search_similar_knowledge(self, query: SearchQuery) -> list[SearchResult]:
        """Return knowledge at or above ``query.threshold``, most similar first.

        A query embedding wins over query text. Text (even empty text) is
        embedded as a query. Provider and store failures propagate; no matches
        is an empty list.
        """
        embedding = query.query_embedding
        if embedding is None:
            embedding = await self._embed_query(query.query_text or "")

        logger.debug(
            "Vector search in %s: dim=%d limit=%d threshold=%.2f category=%s",
            query.project_id,
            len(embedding),
            query.limit,
            query.threshold,
            query.category,
        )

        try:
            matches = await self.search_store.nearest(
                query.project_id,
                embedding,
                limit=query.limit,
                threshold=query.threshold,
                category=query.category,
                include_archived=query.include_archived,
                include_duplicates=query.include_duplicates,
            )
        except StoreError as e:
            raise StoreError(f"Vector search failed in project {query.project_id}: {e}") from e

        results = [
            SearchResult(
                knowledge_id=knowledge.id,
                similarity=similarity,
                distance=1.0 - similarity,
                knowledge=knowledge,
            )
            for knowledge, similarity in matches
        ]
        logger.info(
            "Vector search in %s returned %d results above %.2f",
            query.project_id,
            len(results),
            query.threshold,
        )
        return results

    async def _embed_query(self, text: str) -> list[float]:
        if self.embedder is None:
            raise ProviderError("Vector search failed: no embedding provider configured")
        try:
            return await self.embedder.embed(text, EmbeddingKind.QUERY)
        except ProviderError as e:
            raise ProviderError(f"Vector search failed: {e}") from e
