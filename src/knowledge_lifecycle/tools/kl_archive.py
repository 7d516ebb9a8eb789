"""Archive MCP tools: idle-knowledge archival, manual archive and restore."""

import logging
from typing import Annotated

from fastmcp import FastMCP
from fastmcp.server.context import Context
from pydantic import Field

from knowledge_lifecycle.errors import LifecycleError
from knowledge_lifecycle.lifecycle.archival import ArchivalPolicyEngine
from knowledge_lifecycle.models.knowledge import ArchiveReason
from knowledge_lifecycle.tools.formatters import (
    format_archive_log_entry,
    format_archive_run,
    format_archive_stats,
)

logger = logging.getLogger(__name__)

_LOG_LIMIT = 50


async def _action_scan(archival: ArchivalPolicyEngine, dry_run: bool) -> str:
    """Run the 90-day idle scan."""
    try:
        result = await archival.archive_old_knowledge(dry_run=dry_run)
    except LifecycleError as e:
        logger.warning("Archive scan failed: %s", e)
        return f"Error: {e}"
    return format_archive_run(result)


async def _action_archive(
    archival: ArchivalPolicyEngine, knowledge_id: str, reason: ArchiveReason
) -> str:
    try:
        archived = await archival.archive_knowledge(knowledge_id, reason)
    except LifecycleError as e:
        return f"Error: {e}"
    if not archived:
        return f"Knowledge {knowledge_id} is already archived."
    return f"Archived {knowledge_id} ({reason})."


async def _action_unarchive(archival: ArchivalPolicyEngine, knowledge_id: str) -> str:
    try:
        await archival.unarchive_knowledge(knowledge_id)
    except LifecycleError as e:
        return f"Error: {e}"
    return f"Unarchived {knowledge_id}."


async def _action_stats(
    archival: ArchivalPolicyEngine,
    project_id: str | None,
    knowledge_id: str | None = None,
) -> str:
    """Archive counts plus the most recent log entries."""
    try:
        stats = await archival.get_archive_statistics(project_id)
        entries = await archival.get_archive_log(knowledge_id=knowledge_id, project_id=project_id)
    except LifecycleError as e:
        return f"Error: {e}"

    text = format_archive_stats(stats)
    if entries:
        recent = entries[-_LOG_LIMIT:]
        text += "\n\nRecent archive log:\n" + "\n".join(
            f"  {format_archive_log_entry(e)}" for e in recent
        )
    return text


def register_kl_archive_stats(mcp: FastMCP) -> None:
    """Register the read-only archive statistics tool."""

    @mcp.tool()
    async def kl_archive_stats(
        project_id: Annotated[
            str | None, Field(description="Limit to one project (default: all)")
        ] = None,
        knowledge_id: Annotated[
            str | None, Field(description="Show the archive log of one knowledge item")
        ] = None,
        ctx: Context | None = None,
    ) -> str:
        """Active vs. archived knowledge counts and the archive audit log."""
        if ctx is None:
            raise RuntimeError("Context not injected")
        return await _action_stats(ctx.lifespan_context["archival"], project_id, knowledge_id)


def register_kl_archive(mcp: FastMCP) -> None:
    """Register the archive-mutating tools. Manager mode only."""

    @mcp.tool()
    async def kl_archive_scan(
        dry_run: Annotated[
            bool, Field(description="Count eligible knowledge without archiving it")
        ] = True,
        ctx: Context | None = None,
    ) -> str:
        """Archive all knowledge unused for 90 days or never used.

        Requires KL_MANAGER=TRUE. Defaults to a dry run; pass dry_run=False to
        write. Each archived item gets an audit log entry.
        """
        if ctx is None:
            raise RuntimeError("Context not injected")
        return await _action_scan(ctx.lifespan_context["archival"], dry_run)

    @mcp.tool()
    async def kl_archive(
        knowledge_id: Annotated[str, Field(description="Knowledge ID to archive")],
        reason: Annotated[
            ArchiveReason,
            Field(description="manual, duplicate, low_quality or unused_90_days"),
        ] = ArchiveReason.MANUAL,
        ctx: Context | None = None,
    ) -> str:
        """Archive one knowledge item. Requires KL_MANAGER=TRUE."""
        if ctx is None:
            raise RuntimeError("Context not injected")
        return await _action_archive(ctx.lifespan_context["archival"], knowledge_id, reason)

    @mcp.tool()
    async def kl_unarchive(
        knowledge_id: Annotated[str, Field(description="Knowledge ID to restore")],
        ctx: Context | None = None,
    ) -> str:
        """Restore an archived knowledge item. Requires KL_MANAGER=TRUE."""
        if ctx is None:
            raise RuntimeError("Context not injected")
        return await _action_unarchive(ctx.lifespan_context["archival"], knowledge_id)
