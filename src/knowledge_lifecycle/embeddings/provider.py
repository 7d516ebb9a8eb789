"""Embedding provider protocol for pluggable embedding backends."""

from enum import StrEnum
from typing import Protocol, runtime_checkable


class EmbeddingKind(StrEnum):
    """What the text is used for. Some providers embed queries differently."""

    DOCUMENT = "document"
    QUERY = "query"


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Produces embedding vectors. Failures raise ProviderError, never return empty."""

    async def embed(self, text: str, kind: EmbeddingKind = EmbeddingKind.DOCUMENT) -> list[float]:
        """Return the embedding vector for ``text``."""
        ...

    async def close(self) -> None:
        """Release resources."""
        ...
