"""Compact output formatters for MCP tool responses."""

from knowledge_lifecycle.models.knowledge import ArchiveLogEntry, Knowledge
from knowledge_lifecycle.models.search import SearchResult
from knowledge_lifecycle.models.stats import ArchiveRunResult, ArchiveStatistics, DuplicateStats

_PREVIEW_CHARS = 120


def content_preview(content: str, max_chars: int = _PREVIEW_CHARS) -> str:
    """Single-line preview, truncated with an ellipsis."""
    flat = " ".join(content.split())
    if len(flat) <= max_chars:
        return flat
    return flat[: max_chars - 1].rstrip() + "…"


def format_knowledge_header(knowledge: Knowledge) -> str:
    """Format: [kn-00001] category | reliability 80 | used 3x."""
    parts = [knowledge.category] if knowledge.category else []
    parts.append(f"reliability {knowledge.reliability}")
    parts.append(f"used {knowledge.usage_count}x")
    line = f"[{knowledge.id}] " + " | ".join(parts)
    if knowledge.archived:
        line += "  [ARCHIVED]"
    elif knowledge.is_grouped_duplicate:
        line += f"  [DUPLICATE of group {knowledge.duplicate_group_id}]"
    return line


def format_search_result(result: SearchResult) -> str:
    """Header with similarity + content preview."""
    header = format_knowledge_header(result.knowledge)
    return f"{header} ({result.similarity:.0%})\n  {content_preview(result.knowledge.content)}"


def format_result_list(
    formatted_entries: list[str],
    header: str | None = None,
    note: str | None = None,
) -> str:
    """Count + note + entries joined by blank lines."""
    if not formatted_entries:
        return "No results found."

    lines: list[str] = []
    if header:
        lines.append(header)
    lines.append(f"{len(formatted_entries)} result(s)")
    if note:
        lines.append(f"Note: {note}")
    lines.append("")
    lines.append("\n\n".join(formatted_entries))
    return "\n".join(lines)


def format_duplicate_stats(project_id: str, stats: DuplicateStats) -> str:
    lines = [f"Duplicate Statistics for {project_id}\n"]
    lines.append(
        f"Knowledge: {stats.total_knowledge} total ({stats.unique_knowledge} unique,"
        f" {stats.total_duplicates} duplicates, {stats.duplicate_ratio:.1%})"
    )
    lines.append(f"Groups: {stats.duplicate_groups}")
    lines.append(f"  exact: {stats.exact_matches}")
    lines.append(f"  semantic: {stats.semantic_matches}")
    lines.append(f"  fuzzy: {stats.fuzzy_matches}")
    return "\n".join(lines)


def format_archive_run(result: ArchiveRunResult) -> str:
    verb = "Would archive" if result.dry_run else "Archived"
    lines = [
        f"Archive job {result.job_id}{' (dry run)' if result.dry_run else ''}",
        f"Scanned: {result.scanned}",
        f"{verb}: {result.archived}",
        f"Duration: {result.duration:.2f}s",
    ]
    if result.archived_ids:
        shown = result.archived_ids[:20]
        more = len(result.archived_ids) - len(shown)
        lines.append("IDs: " + ", ".join(shown) + (f" (+{more} more)" if more else ""))
    return "\n".join(lines)


def format_archive_stats(stats: ArchiveStatistics) -> str:
    lines = ["Archive Statistics\n"]
    lines.append(
        f"Knowledge: {stats.total_knowledge} total"
        f" ({stats.active_knowledge} active, {stats.archived_knowledge} archived,"
        f" {stats.archive_ratio:.1%})"
    )
    if stats.by_reason:
        lines.append("\nArchived by reason:")
        for reason, count in sorted(stats.by_reason.items()):
            lines.append(f"  {reason}: {count}")
    lines.append(f"\nArchive log entries: {stats.archive_log_entries}")
    return "\n".join(lines)


def format_archive_log_entry(entry: ArchiveLogEntry) -> str:
    """Format: 2025-01-01 kn-00001 unused_90_days (job archive-abc)."""
    line = f"{entry.archived_at:%Y-%m-%d} {entry.knowledge_id} {entry.reason}"
    if entry.archived_by_job_id:
        line += f" (job {entry.archived_by_job_id})"
    return line
