"""Result and statistics models for lifecycle operations."""

from pydantic import BaseModel, Field


class ArchiveRunResult(BaseModel):
    """Outcome of one archival scan."""

    scanned: int
    archived: int
    duration: float  # seconds
    dry_run: bool = False
    job_id: str | None = None
    archived_ids: list[str] = Field(default_factory=list)


class ArchiveStatistics(BaseModel):
    """Active vs. archived knowledge counts."""

    total_knowledge: int
    archived_knowledge: int
    active_knowledge: int
    archive_ratio: float
    by_reason: dict[str, int] = Field(default_factory=dict)
    archive_log_entries: int = 0


class DuplicateStats(BaseModel):
    """Duplicate group counts for a project."""

    total_knowledge: int
    unique_knowledge: int
    duplicate_groups: int
    total_duplicates: int
    exact_matches: int
    semantic_matches: int
    fuzzy_matches: int
    duplicate_ratio: float
