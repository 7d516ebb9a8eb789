"""Knowledge, duplicate group and archive log models."""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field


class DetectionMethod(StrEnum):
    """Detection pass that grouped a duplicate."""

    EXACT = "exact"
    SEMANTIC = "semantic"
    FUZZY = "fuzzy"

    @property
    def priority(self) -> int:
        """Higher wins when several passes fire: exact > semantic > fuzzy."""
        return _METHOD_PRIORITY[self]


_METHOD_PRIORITY: dict[DetectionMethod, int] = {
    DetectionMethod.EXACT: 3,
    DetectionMethod.SEMANTIC: 2,
    DetectionMethod.FUZZY: 1,
}


class ArchiveReason(StrEnum):
    """Why a knowledge item was archived."""

    UNUSED_90_DAYS = "unused_90_days"
    MANUAL = "manual"
    DUPLICATE = "duplicate"
    LOW_QUALITY = "low_quality"


class Knowledge(BaseModel):
    """A retrievable unit of domain text with an optional embedding."""

    id: str
    project_id: str
    content: str
    embedding: list[float] | None = None
    category: str | None = None
    reliability: int = Field(default=50, ge=0, le=100)
    usage_count: int = Field(default=0, ge=0)
    last_used: datetime | None = None
    archived: bool = False
    archived_at: datetime | None = None
    archived_reason: ArchiveReason | None = None
    archived_by_job_id: str | None = None
    unarchived_at: datetime | None = None
    duplicate_group_id: str | None = None
    is_representative: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def has_embedding(self) -> bool:
        """True when a non-empty embedding vector is present."""
        return bool(self.embedding)

    @property
    def is_grouped_duplicate(self) -> bool:
        """True for group members other than the representative."""
        return self.duplicate_group_id is not None and not self.is_representative


class KnowledgeGroup(BaseModel):
    """A cluster of redundant knowledge with one representative."""

    id: str
    project_id: str
    representative_knowledge_id: str
    duplicate_knowledge_ids: list[str] = Field(default_factory=list)
    similarity_scores: dict[str, float] = Field(default_factory=dict)
    detection_method: DetectionMethod
    created_at: datetime | None = None
    updated_at: datetime | None = None
    version: int = 0

    @property
    def member_ids(self) -> list[str]:
        """Representative first, then duplicates."""
        return [self.representative_knowledge_id, *self.duplicate_knowledge_ids]


class ArchiveSnapshot(BaseModel):
    """Usage state captured at archive time."""

    last_used: datetime | None = None
    usage_count: int = 0
    reliability: int = 0


class ArchiveLogEntry(BaseModel):
    """Append-only audit record of one archive transition."""

    id: str
    knowledge_id: str
    project_id: str
    reason: ArchiveReason
    archived_at: datetime
    archived_by_job_id: str | None = None
    snapshot: ArchiveSnapshot = Field(default_factory=ArchiveSnapshot)
