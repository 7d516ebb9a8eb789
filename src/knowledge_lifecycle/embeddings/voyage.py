"""Voyage AI embedding client."""

import logging

import httpx

from knowledge_lifecycle.config import (
    get_embedding_timeout,
    get_voyage_api_key,
    get_voyage_model,
    get_voyage_url,
)
from knowledge_lifecycle.embeddings.provider import EmbeddingKind
from knowledge_lifecycle.errors import ProviderError

logger = logging.getLogger(__name__)


class VoyageEmbeddingClient:
    """Generates embeddings via the Voyage AI embeddings API.

    ``kind`` maps onto Voyage's ``input_type`` ("document" or "query").
    """

    def __init__(
        self, http_client: httpx.AsyncClient | None = None, api_key: str | None = None
    ) -> None:
        """Initialize with an optional HTTP client and API key (default KL_VOYAGE_API_KEY)."""
        self._http = http_client
        self._api_key = api_key

    async def embed(self, text: str, kind: EmbeddingKind = EmbeddingKind.DOCUMENT) -> list[float]:
        """Generate an embedding vector for the given text."""
        api_key = self._api_key or get_voyage_api_key()
        if not api_key:
            raise ProviderError("KL_VOYAGE_API_KEY is not configured")

        try:
            client = self._get_client()
            resp = await client.post(
                get_voyage_url(),
                headers={"Authorization": f"Bearer {api_key}"},
                json={"input": [text], "model": get_voyage_model(), "input_type": kind.value},
                timeout=get_embedding_timeout(),
            )
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPStatusError as e:
            logger.warning("Voyage AI returned HTTP %d", e.response.status_code)
            raise ProviderError(
                f"Voyage AI API error ({e.response.status_code}): {e.response.text}"
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Voyage AI embedding request failed", exc_info=True)
            raise ProviderError(f"Voyage AI embedding failed: {e}") from e

        # {"data": [{"embedding": [...], "index": 0}], ...}
        try:
            result: list[float] = [float(v) for v in data["data"][0]["embedding"]]
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise ProviderError("Voyage AI returned a malformed embedding payload") from e
        if not result:
            raise ProviderError("Voyage AI returned an empty embedding")
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
