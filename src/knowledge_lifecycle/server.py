"""FastMCP server with lifespan management and tool registration."""

import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastmcp import FastMCP

from knowledge_lifecycle.config import (
    get_db_path,
    get_embedding_provider,
    get_log_level,
    is_manager_mode,
)
from knowledge_lifecycle.db.connection import create_connection
from knowledge_lifecycle.dedup.detector import DuplicateDetector
from knowledge_lifecycle.embeddings import OllamaEmbeddingClient, VoyageEmbeddingClient
from knowledge_lifecycle.embeddings.provider import EmbeddingProvider
from knowledge_lifecycle.lifecycle.archival import ArchivalPolicyEngine
from knowledge_lifecycle.search.vector import VectorSearchService
from knowledge_lifecycle.store.knowledge_store import KnowledgeStore
from knowledge_lifecycle.tools.kl_archive import register_kl_archive, register_kl_archive_stats
from knowledge_lifecycle.tools.kl_duplicates import register_kl_duplicates
from knowledge_lifecycle.tools.kl_search import register_kl_search


def _create_embedder(provider: str) -> EmbeddingProvider | None:
    """Create an embedding client for the given provider name."""
    if provider == "ollama":
        return OllamaEmbeddingClient()
    if provider == "voyage":
        return VoyageEmbeddingClient()
    return None


@asynccontextmanager
async def lifespan(server: FastMCP) -> AsyncIterator[dict[str, Any]]:
    """Manage database connection, embedding client and service lifecycle."""
    # Configure logging to stderr (stdout is MCP stdio transport)
    logging.basicConfig(
        level=getattr(logging, get_log_level().upper(), logging.WARNING),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
        stream=sys.stderr,
    )
    logger = logging.getLogger(__name__)

    db_path = get_db_path()
    logger.info("Opening database at %s", db_path)
    db = await create_connection(db_path)

    store = KnowledgeStore(db)

    provider = get_embedding_provider()
    embedder = _create_embedder(provider)
    if embedder is not None:
        logger.info("Embedding provider: %s", provider)
    else:
        logger.warning("Unknown embedding provider %r, text queries disabled", provider)

    search = VectorSearchService(store, embedder)
    detector = DuplicateDetector(store, search)
    archival = ArchivalPolicyEngine(store)

    try:
        yield {
            "db": db,
            "store": store,
            "embedder": embedder,
            "search": search,
            "detector": detector,
            "archival": archival,
        }
    finally:
        if embedder is not None:
            await embedder.close()
        await db.close()
        logger.info("Database connection closed")


_INSTRUCTIONS = """\
This server manages the lifecycle of a project's knowledge base: finding \
similar knowledge, collapsing duplicates, and archiving knowledge nobody uses.

SEARCHING:
- kl_search: Vector similarity search within one project. Only active \
knowledge is returned, and each duplicate group is represented by one item.

DUPLICATES:
- kl_detect_duplicates: Run exact, semantic (cosine >= 0.95) and fuzzy \
(edit similarity >= 0.85) detection and group the matches.
- kl_remove_duplicate: Detach an item that was grouped by mistake.
- kl_duplicate_stats: Group counts by detection method.

ARCHIVAL:
- kl_archive_stats: Active vs. archived counts and the archive audit log.
- kl_archive_scan / kl_archive / kl_unarchive (manager mode): archive \
knowledge idle for 90 days, archive or restore a single item.
"""


def create_server() -> FastMCP:
    """Create and configure the MCP server with all tools."""
    mcp = FastMCP(
        "knowledge-lifecycle",
        instructions=_INSTRUCTIONS,
        lifespan=lifespan,
    )

    register_kl_search(mcp)
    register_kl_duplicates(mcp)
    register_kl_archive_stats(mcp)

    if is_manager_mode():
        register_kl_archive(mcp)

    return mcp
