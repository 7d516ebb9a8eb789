"""kl_search MCP tool: vector similarity search over a project."""

import logging
from typing import Annotated

from fastmcp import FastMCP
from fastmcp.server.context import Context
from pydantic import Field

from knowledge_lifecycle.errors import LifecycleError
from knowledge_lifecycle.models.search import SearchResult
from knowledge_lifecycle.search.vector import VectorSearchService
from knowledge_lifecycle.tools.formatters import format_result_list, format_search_result

logger = logging.getLogger(__name__)


def format_search_results(results: list[SearchResult], threshold: float) -> str:
    """Format ranked results as compact entries."""
    entries = [format_search_result(r) for r in results]
    return format_result_list(entries, note=f"similarity >= {threshold:.2f}")


async def run_search(
    search: VectorSearchService,
    project_id: str,
    query: str,
    limit: int,
    threshold: float,
    category: str | None = None,
    include_archived: bool = False,
) -> str:
    """Run a search and format it, turning lifecycle errors into text."""
    try:
        results = await search.search(
            project_id,
            query_text=query,
            limit=limit,
            threshold=threshold,
            category=category,
            include_archived=include_archived,
        )
    except LifecycleError as e:
        logger.warning("kl_search failed for project %s: %s", project_id, e)
        return f"Error: {e}"
    return format_search_results(results, threshold)


def register_kl_search(mcp: FastMCP) -> None:
    """Register the kl_search tool with the MCP server."""

    @mcp.tool()
    async def kl_search(
        query: Annotated[str, Field(description="Natural-language search query")],
        project_id: Annotated[str, Field(description="Project whose knowledge to search")],
        limit: Annotated[
            int, Field(description="Maximum results to return (1-100)", ge=1, le=100)
        ] = 10,
        threshold: Annotated[
            float,
            Field(description="Minimum cosine similarity (-1 to 1)", ge=-1.0, le=1.0),
        ] = 0.7,
        category: Annotated[
            str | None, Field(description="Filter to a knowledge category")
        ] = None,
        include_archived: Annotated[
            bool, Field(description="Also search archived knowledge")
        ] = False,
        ctx: Context | None = None,
    ) -> str:
        """Find knowledge semantically similar to a query within one project.

        The query is embedded and compared against every stored embedding in the
        project by cosine similarity. Results below the threshold are dropped.
        Non-representative duplicates are hidden; their representative is shown.
        """
        if ctx is None:
            raise RuntimeError("Context not injected")
        search: VectorSearchService = ctx.lifespan_context["search"]
        return await run_search(
            search, project_id, query, limit, threshold, category, include_archived
        )
