"""SQLite-backed document store for knowledge, duplicate groups and archive logs."""

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Iterator, Sequence
from contextlib import asynccontextmanager, contextmanager
from datetime import UTC, datetime
from typing import Any

import aiosqlite

from knowledge_lifecycle.db.backend import Database
from knowledge_lifecycle.db.queries import (
    UPDATABLE_COLUMNS,
    encode_column,
    get_knowledge,
    insert_knowledge,
    next_knowledge_id,
    row_to_group,
    row_to_knowledge,
    row_to_log,
    to_iso,
)
from knowledge_lifecycle.errors import InputError, NotFound, StoreError
from knowledge_lifecycle.models.knowledge import ArchiveLogEntry, Knowledge, KnowledgeGroup
from knowledge_lifecycle.store.mutations import (
    MAX_BATCH_MUTATIONS,
    AppendArchiveLog,
    DeleteGroup,
    Mutation,
    PutGroup,
    UpdateKnowledge,
)
from knowledge_lifecycle.store.port import KnowledgeFilter

logger = logging.getLogger(__name__)


@contextmanager
def _store_errors(action: str) -> Iterator[None]:
    """Translate driver errors into StoreError."""
    try:
        yield
    except aiosqlite.Error as e:
        raise StoreError(f"Failed to {action}: {e}") from e


def _filter_clause(filters: KnowledgeFilter) -> tuple[str, list[Any]]:
    """Build a WHERE clause and its parameters from a KnowledgeFilter."""
    clauses = ["1 = 1"]
    params: list[Any] = []

    if filters.project_id is not None:
        clauses.append("project_id = ?")
        params.append(filters.project_id)
    if filters.category is not None:
        clauses.append("category = ?")
        params.append(filters.category)
    if filters.archived is not None:
        clauses.append("archived = ?")
        params.append(int(filters.archived))
    if filters.has_embedding is True:
        clauses.append("embedding IS NOT NULL AND length(embedding) > 0")
    elif filters.has_embedding is False:
        clauses.append("(embedding IS NULL OR length(embedding) = 0)")
    if filters.never_used is True:
        clauses.append("last_used IS NULL")
    elif filters.never_used is False:
        clauses.append("last_used IS NOT NULL")
    if filters.last_used_before is not None:
        clauses.append("last_used IS NOT NULL AND last_used < ?")
        params.append(to_iso(filters.last_used_before))

    return " AND ".join(clauses), params


class KnowledgeStore:
    """Store implementation over a single async database connection.

    Writes go through ``batch_write`` so every multi-document change is one
    transaction. The connection is shared, so one lock serialises transactions
    and reads alike.
    """

    def __init__(self, db: Database):
        """Initialize with a database connection."""
        self.db = db
        self._write_lock = asyncio.Lock()

    @asynccontextmanager
    async def _reading(self, action: str) -> AsyncIterator[None]:
        # The connection is shared, so a read must not run inside another
        # task's open transaction and see rows that may still roll back
        async with self._write_lock:
            with _store_errors(action):
                yield

    # -- Ingestion helpers --

    async def create_knowledge(
        self,
        project_id: str,
        content: str,
        *,
        knowledge_id: str | None = None,
        embedding: list[float] | None = None,
        category: str | None = None,
        reliability: int = 50,
        usage_count: int = 0,
        last_used: datetime | None = None,
        created_at: datetime | None = None,
    ) -> Knowledge:
        """Create a new, active, ungrouped knowledge record."""
        if not 0 <= reliability <= 100:
            raise InputError(f"reliability must be between 0 and 100, got {reliability}")
        if usage_count < 0:
            raise InputError(f"usage_count must not be negative, got {usage_count}")

        async with self._write_lock:
            with _store_errors("create knowledge"):
                async with self.db.transaction():
                    new_id = knowledge_id or await next_knowledge_id(self.db)
                    now = created_at or datetime.now(UTC)
                    knowledge = Knowledge(
                        id=new_id,
                        project_id=project_id,
                        content=content,
                        embedding=embedding,
                        category=category,
                        reliability=reliability,
                        usage_count=usage_count,
                        last_used=last_used,
                        created_at=now,
                        updated_at=now,
                    )
                    await insert_knowledge(self.db, knowledge)

        logger.info("Created knowledge %s in project %s", knowledge.id, project_id)
        return knowledge

    async def record_usage(self, knowledge_ids: Sequence[str], now: datetime | None = None) -> None:
        """Bump usage_count and last_used for knowledge served to a caller."""
        if not knowledge_ids:
            return
        used_at = to_iso(now or datetime.now(UTC))
        placeholders = ",".join("?" for _ in knowledge_ids)
        async with self._write_lock:
            with _store_errors("record usage"):
                async with self.db.transaction():
                    await self.db.execute(
                        "UPDATE knowledge SET usage_count = usage_count + 1,"  # noqa: S608
                        " last_used = ?, updated_at = ? WHERE id IN (" + placeholders + ")",
                        [used_at, used_at, *knowledge_ids],
                    )

    # -- Knowledge reads --

    async def get_by_id(self, knowledge_id: str) -> Knowledge | None:
        """Get one knowledge record, or None."""
        async with self._reading(f"read knowledge {knowledge_id}"):
            return await get_knowledge(self.db, knowledge_id)

    async def get_many(self, knowledge_ids: Sequence[str]) -> list[Knowledge]:
        """Get the records that exist among the given IDs, in request order."""
        if not knowledge_ids:
            return []
        placeholders = ",".join("?" for _ in knowledge_ids)
        async with self._reading("read knowledge"):
            cursor = await self.db.execute(
                "SELECT * FROM knowledge WHERE id IN (" + placeholders + ")",  # noqa: S608
                list(knowledge_ids),
            )
            rows = await cursor.fetchall()
        by_id = {row["id"]: row_to_knowledge(row) for row in rows}
        return [by_id[kid] for kid in dict.fromkeys(knowledge_ids) if kid in by_id]

    async def query(self, filters: KnowledgeFilter) -> list[Knowledge]:
        """All knowledge matching the filters, oldest first."""
        where, params = _filter_clause(filters)
        async with self._reading("query knowledge"):
            cursor = await self.db.execute(
                "SELECT * FROM knowledge WHERE " + where + " ORDER BY created_at, id",  # noqa: S608
                params,
            )
            rows = await cursor.fetchall()
        return [row_to_knowledge(row) for row in rows]

    async def count_knowledge(self, filters: KnowledgeFilter | None = None) -> int:
        """Number of knowledge records matching the filters."""
        where, params = _filter_clause(filters or KnowledgeFilter())
        async with self._reading("count knowledge"):
            cursor = await self.db.execute(
                "SELECT COUNT(*) FROM knowledge WHERE " + where,  # noqa: S608
                params,
            )
            row = await cursor.fetchone()
        return row[0] if row else 0

    async def query_by_project(
        self, project_id: str, filters: KnowledgeFilter | None = None
    ) -> list[Knowledge]:
        """All knowledge of one project matching the filters."""
        base = filters or KnowledgeFilter()
        return await self.query(
            KnowledgeFilter(
                project_id=project_id,
                category=base.category,
                archived=base.archived,
                has_embedding=base.has_embedding,
                never_used=base.never_used,
                last_used_before=base.last_used_before,
            )
        )

    # -- Group reads --

    async def get_group(self, group_id: str) -> KnowledgeGroup | None:
        """Get one duplicate group, or None."""
        async with self._reading(f"read group {group_id}"):
            cursor = await self.db.execute(
                "SELECT * FROM knowledge_groups WHERE id = ?", (group_id,)
            )
            row = await cursor.fetchone()
        return row_to_group(row) if row else None

    async def find_groups_for_members(self, knowledge_ids: Sequence[str]) -> list[KnowledgeGroup]:
        """Groups whose representative or duplicates include any of the IDs, oldest first."""
        if not knowledge_ids:
            return []
        ids = list(dict.fromkeys(knowledge_ids))
        placeholders = ",".join("?" for _ in ids)
        sql = (
            "SELECT * FROM knowledge_groups g"  # noqa: S608
            " WHERE g.representative_knowledge_id IN (" + placeholders + ")"
            " OR EXISTS (SELECT 1 FROM json_each(g.duplicate_knowledge_ids) j"
            " WHERE j.value IN (" + placeholders + "))"
            " ORDER BY g.created_at, g.id"
        )
        async with self._reading("find groups"):
            cursor = await self.db.execute(sql, [*ids, *ids])
            rows = await cursor.fetchall()
        return [row_to_group(row) for row in rows]

    async def list_groups(self, project_id: str) -> list[KnowledgeGroup]:
        """All duplicate groups of one project, oldest first."""
        async with self._reading("list groups"):
            cursor = await self.db.execute(
                "SELECT * FROM knowledge_groups WHERE project_id = ? ORDER BY created_at, id",
                (project_id,),
            )
            rows = await cursor.fetchall()
        return [row_to_group(row) for row in rows]

    # -- Archive log --

    async def append_log(self, entry: ArchiveLogEntry) -> None:
        """Append one archive log entry."""
        await self.batch_write([AppendArchiveLog(entry)])

    async def list_logs(
        self, *, knowledge_id: str | None = None, project_id: str | None = None
    ) -> list[ArchiveLogEntry]:
        """Archive log entries, oldest first."""
        sql = "SELECT * FROM archive_logs WHERE 1 = 1"
        params: list[str] = []
        if knowledge_id is not None:
            sql += " AND knowledge_id = ?"
            params.append(knowledge_id)
        if project_id is not None:
            sql += " AND project_id = ?"
            params.append(project_id)
        sql += " ORDER BY archived_at, id"
        async with self._reading("list archive logs"):
            cursor = await self.db.execute(sql, params)
            rows = await cursor.fetchall()
        return [row_to_log(row) for row in rows]

    # -- Atomic batches --

    async def batch_write(self, mutations: Sequence[Mutation]) -> None:
        """Apply mutations in one transaction: all commit or none do."""
        if len(mutations) > MAX_BATCH_MUTATIONS:
            raise InputError(
                f"Batch of {len(mutations)} mutations exceeds limit of {MAX_BATCH_MUTATIONS}"
            )
        if not mutations:
            return

        async with self._write_lock:
            with _store_errors("write batch"):
                async with self.db.transaction():
                    for mutation in mutations:
                        await self._apply(mutation)

        logger.debug("Committed batch of %d mutations", len(mutations))

    async def _apply(self, mutation: Mutation) -> None:
        if isinstance(mutation, UpdateKnowledge):
            await self._update_knowledge(mutation)
        elif isinstance(mutation, PutGroup):
            await self._put_group(mutation)
        elif isinstance(mutation, DeleteGroup):
            await self._delete_group(mutation)
        elif isinstance(mutation, AppendArchiveLog):
            await self._insert_log(mutation.entry)
        else:
            raise InputError(f"Unsupported mutation: {mutation!r}")

    async def _update_knowledge(self, mutation: UpdateKnowledge) -> None:
        unknown = set(mutation.changes) - UPDATABLE_COLUMNS
        if unknown:
            raise InputError(f"Cannot update knowledge fields: {', '.join(sorted(unknown))}")
        if not mutation.changes:
            return

        columns = list(mutation.changes)
        assignments = ", ".join(f"{col} = ?" for col in columns)
        params = [encode_column(col, mutation.changes[col]) for col in columns]
        cursor = await self.db.execute(
            "UPDATE knowledge SET " + assignments + ", updated_at = ? WHERE id = ?",  # noqa: S608
            [*params, to_iso(datetime.now(UTC)), mutation.knowledge_id],
        )
        if cursor.rowcount == 0:
            raise NotFound(f"Knowledge {mutation.knowledge_id} not found")

    async def _put_group(self, mutation: PutGroup) -> None:
        group = mutation.group
        now = to_iso(datetime.now(UTC))
        members = json.dumps(group.duplicate_knowledge_ids)
        scores = json.dumps(group.similarity_scores)

        if mutation.expected_version is None:
            await self.db.execute(
                """INSERT INTO knowledge_groups
                (id, project_id, representative_knowledge_id, duplicate_knowledge_ids,
                 similarity_scores, detection_method, created_at, updated_at, version)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, 1)""",
                (
                    group.id,
                    group.project_id,
                    group.representative_knowledge_id,
                    members,
                    scores,
                    group.detection_method.value,
                    to_iso(group.created_at) or now,
                    now,
                ),
            )
            return

        cursor = await self.db.execute(
            """UPDATE knowledge_groups SET
            representative_knowledge_id = ?, duplicate_knowledge_ids = ?,
            similarity_scores = ?, detection_method = ?, updated_at = ?,
            version = version + 1
            WHERE id = ? AND version = ?""",
            (
                group.representative_knowledge_id,
                members,
                scores,
                group.detection_method.value,
                now,
                group.id,
                mutation.expected_version,
            ),
        )
        if cursor.rowcount == 0:
            raise StoreError(
                f"Group {group.id} was modified concurrently"
                f" (expected version {mutation.expected_version})"
            )

    async def _delete_group(self, mutation: DeleteGroup) -> None:
        if mutation.expected_version is None:
            await self.db.execute("DELETE FROM knowledge_groups WHERE id = ?", (mutation.group_id,))
            return
        cursor = await self.db.execute(
            "DELETE FROM knowledge_groups WHERE id = ? AND version = ?",
            (mutation.group_id, mutation.expected_version),
        )
        if cursor.rowcount == 0:
            raise StoreError(
                f"Group {mutation.group_id} was modified concurrently"
                f" (expected version {mutation.expected_version})"
            )

    async def _insert_log(self, entry: ArchiveLogEntry) -> None:
        await self.db.execute(
            """INSERT INTO archive_logs
            (id, knowledge_id, project_id, reason, archived_at, archived_by_job_id,
             last_used, usage_count, reliability)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                entry.id,
                entry.knowledge_id,
                entry.project_id,
                entry.reason.value,
                to_iso(entry.archived_at),
                entry.archived_by_job_id,
                to_iso(entry.snapshot.last_used),
                entry.snapshot.usage_count,
                entry.snapshot.reliability,
            ),
        )
