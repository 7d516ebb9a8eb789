"""Row conversion and encoding helpers for the lifecycle tables."""

import json
import struct
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from knowledge_lifecycle.db.backend import Database, Row
from knowledge_lifecycle.models.knowledge import (
    ArchiveLogEntry,
    ArchiveReason,
    ArchiveSnapshot,
    DetectionMethod,
    Knowledge,
    KnowledgeGroup,
)

# Columns that UpdateKnowledge mutations may touch
UPDATABLE_COLUMNS = frozenset(
    {
        "content",
        "embedding",
        "category",
        "reliability",
        "usage_count",
        "last_used",
        "archived",
        "archived_at",
        "archived_reason",
        "archived_by_job_id",
        "unarchived_at",
        "duplicate_group_id",
        "is_representative",
    }
)


async def next_knowledge_id(db: Database) -> str:
    """Get and increment the next knowledge ID."""
    cursor = await db.execute("SELECT next_id FROM knowledge_id_seq")
    row = await cursor.fetchone()
    if row is None:
        raise RuntimeError("knowledge_id_seq table is empty")
    next_id = row[0]
    await db.execute("UPDATE knowledge_id_seq SET next_id = ?", (next_id + 1,))
    return f"kn-{next_id:05d}"


def as_utc(dt: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def to_iso(dt: datetime | None) -> str | None:
    """Fixed-width UTC ISO string so lexical order matches time order."""
    if dt is None:
        return None
    return as_utc(dt).isoformat(timespec="microseconds")


def from_iso(raw: str | None) -> datetime | None:
    """Parse a stored ISO timestamp."""
    return datetime.fromisoformat(raw) if raw else None


def serialize_embedding(vec: list[float] | None) -> bytes | None:
    """Serialize a list of floats to a compact float32 blob."""
    if vec is None:
        return None
    return struct.pack(f"{len(vec)}f", *vec)


def deserialize_embedding(blob: bytes | None) -> list[float] | None:
    """Inverse of serialize_embedding."""
    if blob is None:
        return None
    count = len(blob) // 4
    return list(struct.unpack(f"{count}f", blob))


def encode_column(column: str, value: Any) -> Any:
    """Convert a model value to its storage representation."""
    if column == "embedding":
        return serialize_embedding(value)
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, datetime):
        return to_iso(value)
    if isinstance(value, Enum):
        return value.value
    return value


def row_to_knowledge(row: Row) -> Knowledge:
    """Convert a database row to a Knowledge record."""
    reason = row["archived_reason"]
    return Knowledge(
        id=row["id"],
        project_id=row["project_id"],
        content=row["content"],
        embedding=deserialize_embedding(row["embedding"]),
        category=row["category"],
        reliability=row["reliability"],
        usage_count=row["usage_count"],
        last_used=from_iso(row["last_used"]),
        archived=bool(row["archived"]),
        archived_at=from_iso(row["archived_at"]),
        archived_reason=ArchiveReason(reason) if reason else None,
        archived_by_job_id=row["archived_by_job_id"],
        unarchived_at=from_iso(row["unarchived_at"]),
        duplicate_group_id=row["duplicate_group_id"],
        is_representative=bool(row["is_representative"]),
        created_at=from_iso(row["created_at"]),
        updated_at=from_iso(row["updated_at"]),
    )


def row_to_group(row: Row) -> KnowledgeGroup:
    """Convert a database row to a KnowledgeGroup."""
    return KnowledgeGroup(
        id=row["id"],
        project_id=row["project_id"],
        representative_knowledge_id=row["representative_knowledge_id"],
        duplicate_knowledge_ids=json.loads(row["duplicate_knowledge_ids"]),
        similarity_scores=json.loads(row["similarity_scores"]),
        detection_method=DetectionMethod(row["detection_method"]),
        created_at=from_iso(row["created_at"]),
        updated_at=from_iso(row["updated_at"]),
        version=row["version"],
    )


def row_to_log(row: Row) -> ArchiveLogEntry:
    """Convert a database row to an ArchiveLogEntry."""
    archived_at = from_iso(row["archived_at"])
    if archived_at is None:
        raise RuntimeError(f"archive log {row['id']} has no archived_at")
    return ArchiveLogEntry(
        id=row["id"],
        knowledge_id=row["knowledge_id"],
        project_id=row["project_id"],
        reason=ArchiveReason(row["reason"]),
        archived_at=archived_at,
        archived_by_job_id=row["archived_by_job_id"],
        snapshot=ArchiveSnapshot(
            last_used=from_iso(row["last_used"]),
            usage_count=row["usage_count"],
            reliability=row["reliability"],
        ),
    )


async def insert_knowledge(db: Database, knowledge: Knowledge) -> None:
    """Insert a knowledge row. The caller commits."""
    now = _now_iso()
    await db.execute(
        """INSERT INTO knowledge
        (id, project_id, content, embedding, category, reliability, usage_count,
         last_used, archived, archived_at, archived_reason, archived_by_job_id,
         unarchived_at, duplicate_group_id, is_representative, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
        (
            knowledge.id,
            knowledge.project_id,
            knowledge.content,
            serialize_embedding(knowledge.embedding),
            knowledge.category,
            knowledge.reliability,
            knowledge.usage_count,
            to_iso(knowledge.last_used),
            int(knowledge.archived),
            to_iso(knowledge.archived_at),
            knowledge.archived_reason.value if knowledge.archived_reason else None,
            knowledge.archived_by_job_id,
            to_iso(knowledge.unarchived_at),
            knowledge.duplicate_group_id,
            int(knowledge.is_representative),
            to_iso(knowledge.created_at) or now,
            to_iso(knowledge.updated_at) or now,
        ),
    )


async def get_knowledge(db: Database, knowledge_id: str) -> Knowledge | None:
    """Get a single knowledge record by ID."""
    cursor = await db.execute("SELECT * FROM knowledge WHERE id = ?", (knowledge_id,))
    row = await cursor.fetchone()
    return row_to_knowledge(row) if row else None


def _now_iso() -> str:
    return to_iso(datetime.now(UTC)) or ""
