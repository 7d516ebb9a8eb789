"""Duplicate-detection MCP tools."""

from typing import Annotated

from fastmcp import FastMCP
from fastmcp.server.context import Context
from pydantic import Field

from knowledge_lifecycle.dedup.detector import DuplicateDetector
from knowledge_lifecycle.errors import LifecycleError
from knowledge_lifecycle.store.knowledge_store import KnowledgeStore
from knowledge_lifecycle.store.port import KnowledgeFilter
from knowledge_lifecycle.tools.formatters import format_duplicate_stats


async def _action_detect(
    detector: DuplicateDetector,
    store: KnowledgeStore,
    project_id: str,
    knowledge_ids: list[str] | None,
) -> str:
    """Detect duplicates for the given IDs, or the whole active project."""
    try:
        if not knowledge_ids:
            active = await store.query_by_project(project_id, KnowledgeFilter(archived=False))
            knowledge_ids = [k.id for k in active]
        if not knowledge_ids:
            return f"No active knowledge in project {project_id}."
        found = await detector.detect_duplicates(project_id, knowledge_ids)
    except LifecycleError as e:
        return f"Error: {e}"
    return f"Checked {len(knowledge_ids)} item(s) in {project_id}: {found} duplicate(s) found."


async def _action_remove(detector: DuplicateDetector, knowledge_id: str) -> str:
    try:
        await detector.remove_duplicate_from_group(knowledge_id)
    except LifecycleError as e:
        return f"Error: {e}"
    return f"Detached {knowledge_id} from its duplicate group (if any)."


async def _action_stats(detector: DuplicateDetector, project_id: str) -> str:
    try:
        stats = await detector.get_duplicate_stats(project_id)
    except LifecycleError as e:
        return f"Error: {e}"
    return format_duplicate_stats(project_id, stats)


def register_kl_duplicates(mcp: FastMCP) -> None:
    """Register the duplicate tools with the MCP server."""

    @mcp.tool()
    async def kl_detect_duplicates(
        project_id: Annotated[str, Field(description="Project to scan")],
        knowledge_ids: Annotated[
            list[str] | None,
            Field(description="Knowledge IDs to check (default: all active in project)"),
        ] = None,
        ctx: Context | None = None,
    ) -> str:
        """Run exact, semantic and fuzzy duplicate detection and group the matches.

        Each duplicate group keeps one representative (highest reliability, then
        usage). The other members are hidden from search but kept.
        """
        if ctx is None:
            raise RuntimeError("Context not injected")
        lifespan = ctx.lifespan_context
        return await _action_detect(
            lifespan["detector"], lifespan["store"], project_id, knowledge_ids
        )

    @mcp.tool()
    async def kl_remove_duplicate(
        knowledge_id: Annotated[str, Field(description="Knowledge ID to detach")],
        ctx: Context | None = None,
    ) -> str:
        """Detach a knowledge item from its duplicate group."""
        if ctx is None:
            raise RuntimeError("Context not injected")
        return await _action_remove(ctx.lifespan_context["detector"], knowledge_id)

    @mcp.tool()
    async def kl_duplicate_stats(
        project_id: Annotated[str, Field(description="Project to report on")],
        ctx: Context | None = None,
    ) -> str:
        """Duplicate group counts for a project, by detection method."""
        if ctx is None:
            raise RuntimeError("Context not injected")
        return await _action_stats(ctx.lifespan_context["detector"], project_id)
