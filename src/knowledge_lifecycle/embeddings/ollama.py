"""Ollama embedding client."""

import logging

import httpx

from knowledge_lifecycle.config import get_embedding_model, get_embedding_timeout, get_ollama_url
from knowledge_lifecycle.embeddings.provider import EmbeddingKind
from knowledge_lifecycle.errors import ProviderError

logger = logging.getLogger(__name__)


class OllamaEmbeddingClient:
    """Generates embeddings via Ollama's /api/embed endpoint.

    Ollama has no query/document distinction, so ``kind`` is accepted and ignored.
    """

    def __init__(self, http_client: httpx.AsyncClient | None = None) -> None:
        """Initialize with an optional HTTP client."""
        self._http = http_client

    async def embed(self, text: str, kind: EmbeddingKind = EmbeddingKind.DOCUMENT) -> list[float]:
        """Generate an embedding vector for the given text."""
        try:
            client = self._get_client()
            resp = await client.post(
                f"{get_ollama_url()}/api/embed",
                json={"model": get_embedding_model(), "input": text},
                timeout=get_embedding_timeout(),
            )
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Ollama embedding request failed", exc_info=True)
            raise ProviderError(f"Ollama embedding failed: {e}") from e

        # Ollama /api/embed returns {"embeddings": [[...]]}
        try:
            result: list[float] = [float(v) for v in data["embeddings"][0]]
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise ProviderError("Ollama returned a malformed embedding payload") from e
        if not result:
            raise ProviderError("Ollama returned an empty embedding")
        return result

    def _get_client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient()
        return self._http

    async def close(self) -> None:
        """Close the HTTP client if open."""
        if self._http is not None:
            await self._http.aclose()
            self._http = None
