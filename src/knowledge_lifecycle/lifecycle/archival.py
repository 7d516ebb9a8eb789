"""Archival policy: retire knowledge that has gone unused for 90 days."""

import logging
import time
import uuid
from collections import Counter
from datetime import UTC, datetime, timedelta

from knowledge_lifecycle.db.queries import as_utc
from knowledge_lifecycle.errors import NotFound, StoreError
from knowledge_lifecycle.models.knowledge import (
    ArchiveLogEntry,
    ArchiveReason,
    ArchiveSnapshot,
    Knowledge,
)
from knowledge_lifecycle.models.stats import ArchiveRunResult, ArchiveStatistics
from knowledge_lifecycle.store.mutations import AppendArchiveLog, Mutation, UpdateKnowledge
from knowledge_lifecycle.store.port import KnowledgeFilter, Store

logger = logging.getLogger(__name__)

ARCHIVE_THRESHOLD_DAYS = 90

# Each archived item costs two mutations (update + log), so 250 items fill a
# 500-mutation batch.
ARCHIVE_BATCH_SIZE = 250


def archive_cutoff(now: datetime) -> datetime:
    """Items last used before this instant are idle."""
    return as_utc(now) - timedelta(days=ARCHIVE_THRESHOLD_DAYS)


def is_eligible(knowledge: Knowledge, now: datetime | None = None) -> bool:
    """True when the item is active and never used or idle past the threshold."""
    if knowledge.archived:
        return False
    if knowledge.last_used is None:
        return True
    return as_utc(knowledge.last_used) < archive_cutoff(now or datetime.now(UTC))


def _archive_mutations(
    knowledge: Knowledge,
    reason: ArchiveReason,
    job_id: str | None,
    now: datetime,
) -> list[Mutation]:
    entry = ArchiveLogEntry(
        id=uuid.uuid4().hex,
        knowledge_id=knowledge.id,
        project_id=knowledge.project_id,
        reason=reason,
        archived_at=now,
        archived_by_job_id=job_id,
        snapshot=ArchiveSnapshot(
            last_used=knowledge.last_used,
            usage_count=knowledge.usage_count,
            reliability=knowledge.reliability,
        ),
    )
    return [
        UpdateKnowledge(
            knowledge.id,
            {
                "archived": True,
                "archived_at": now,
                "archived_reason": reason,
                "archived_by_job_id": job_id,
            },
        ),
        AppendArchiveLog(entry),
    ]


class ArchivalPolicyEngine:
    """Archives idle knowledge and restores it on request.

    Archival only flips flags and appends to the audit log; records are never
    deleted. Duplicate-group membership is left untouched in both directions.
    """

    def __init__(self, store: Store):
        """Initialize with a knowledge store."""
        self.store = store

    async def find_eligible(self, now: datetime | None = None) -> list[Knowledge]:
        """Active knowledge that was never used or is idle past the threshold."""
        now = as_utc(now or datetime.now(UTC))
        never_used = await self.store.query(KnowledgeFilter(archived=False, never_used=True))
        idle = await self.store.query(
            KnowledgeFilter(archived=False, last_used_before=archive_cutoff(now))
        )
        unique = {k.id: k for k in [*never_used, *idle]}
        return [k for k in unique.values() if is_eligible(k, now)]

    async def scan_and_archive(
        self,
        *,
        dry_run: bool = False,
        job_id: str | None = None,
        now: datetime | None = None,
    ) -> ArchiveRunResult:
        """Archive every eligible item in batches.

        A dry run counts what would be archived and writes nothing. Batches
        already committed stay committed if a later batch fails; re-running
        picks up where the failure left off.
        """
        started = time.monotonic()
        now = as_utc(now or datetime.now(UTC))
        job_id = job_id or f"archive-{uuid.uuid4().hex[:12]}"

        eligible = await self.find_eligible(now)
        logger.info(
            "Archive scan %s: %d eligible items (dry_run=%s)", job_id, len(eligible), dry_run
        )

        archived_ids: list[str] = []
        for start in range(0, len(eligible), ARCHIVE_BATCH_SIZE):
            batch = eligible[start : start + ARCHIVE_BATCH_SIZE]
            if not dry_run:
                mutations: list[Mutation] = []
                for knowledge in batch:
                    mutations.extend(
                        _archive_mutations(knowledge, ArchiveReason.UNUSED_90_DAYS, job_id, now)
                    )
                try:
                    await self.store.batch_write(mutations)
                except StoreError as e:
                    raise StoreError(
                        f"Archive job {job_id} failed after {len(archived_ids)} items: {e}"
                    ) from e
                logger.debug("Archive job %s committed batch of %d", job_id, len(batch))
            archived_ids.extend(k.id for k in batch)

        duration = time.monotonic() - started
        logger.info(
            "Archive scan %s finished: scanned=%d archived=%d in %.2fs%s",
            job_id,
            len(eligible),
            len(archived_ids),
            duration,
            " (dry run)" if dry_run else "",
        )
        return ArchiveRunResult(
            scanned=len(eligible),
            archived=len(archived_ids),
            duration=duration,
            dry_run=dry_run,
            job_id=job_id,
            archived_ids=archived_ids,
        )

    async def archive_old_knowledge(self, dry_run: bool = False) -> ArchiveRunResult:
        """Run the 90-day idle archive over all projects."""
        return await self.scan_and_archive(dry_run=dry_run)

    async def archive_knowledge(
        self,
        knowledge_id: str,
        reason: ArchiveReason = ArchiveReason.MANUAL,
        job_id: str | None = None,
        now: datetime | None = None,
    ) -> bool:
        """Archive one item. Returns False if it was already archived."""
        knowledge = await self.store.get_by_id(knowledge_id)
        if knowledge is None:
            raise NotFound(f"Cannot archive: knowledge {knowledge_id} not found")
        if knowledge.archived:
            return False

        now = as_utc(now or datetime.now(UTC))
        await self.store.batch_write(_archive_mutations(knowledge, reason, job_id, now))
        logger.info("Archived %s (%s)", knowledge_id, reason)
        return True

    async def unarchive(self, knowledge_id: str, now: datetime | None = None) -> Knowledge:
        """Restore an archived item to active. Returns the updated record."""
        knowledge = await self.store.get_by_id(knowledge_id)
        if knowledge is None:
            raise NotFound(f"Cannot unarchive: knowledge {knowledge_id} not found")
        if not knowledge.archived:
            logger.debug("Knowledge %s is already active", knowledge_id)
            return knowledge

        unarchived_at = as_utc(now or datetime.now(UTC))
        await self.store.batch_write(
            [
                UpdateKnowledge(
                    knowledge_id,
                    {
                        "archived": False,
                        "archived_at": None,
                        "archived_reason": None,
                        "archived_by_job_id": None,
                        "unarchived_at": unarchived_at,
                    },
                )
            ]
        )
        logger.info("Unarchived %s", knowledge_id)
        return knowledge.model_copy(
            update={
                "archived": False,
                "archived_at": None,
                "archived_reason": None,
                "archived_by_job_id": None,
                "unarchived_at": unarchived_at,
            }
        )

    async def unarchive_knowledge(self, knowledge_id: str) -> None:
        """Restore an archived item to active."""
        await self.unarchive(knowledge_id)

    async def get_archive_statistics(self, project_id: str | None = None) -> ArchiveStatistics:
        """Active vs. archived counts, optionally for one project.

        Reads every archived record and log entry per call, so cost grows with
        the collection.
        """
        total = await self.store.count_knowledge(KnowledgeFilter(project_id=project_id))
        archived = await self.store.query(KnowledgeFilter(project_id=project_id, archived=True))
        logs = await self.store.list_logs(project_id=project_id)

        by_reason = Counter(str(k.archived_reason) for k in archived if k.archived_reason)
        return ArchiveStatistics(
            total_knowledge=total,
            archived_knowledge=len(archived),
            active_knowledge=total - len(archived),
            archive_ratio=len(archived) / total if total else 0.0,
            by_reason=dict(by_reason),
            archive_log_entries=len(logs),
        )

    async def get_archive_log(
        self,
        knowledge_id: str | None = None,
        project_id: str | None = None,
    ) -> list[ArchiveLogEntry]:
        """Archive audit trail, oldest first."""
        return await self.store.list_logs(knowledge_id=knowledge_id, project_id=project_id)
