"""Three-pass duplicate detection and duplicate-group maintenance."""

import logging
from collections.abc import Sequence
from datetime import datetime

from knowledge_lifecycle.dedup.groups import (
    DuplicateMatch,
    plan_group_merge,
    plan_group_removal,
)
from knowledge_lifecycle.errors import LifecycleError
from knowledge_lifecycle.models.knowledge import DetectionMethod, Knowledge
from knowledge_lifecycle.models.stats import DuplicateStats
from knowledge_lifecycle.search.similarity import fuzzy_score, normalize_content
from knowledge_lifecycle.search.vector import VectorSearchService
from knowledge_lifecycle.store.mutations import Mutation, split_batches
from knowledge_lifecycle.store.port import KnowledgeFilter, Store

logger = logging.getLogger(__name__)

EXACT_THRESHOLD = 1.0
SEMANTIC_THRESHOLD = 0.95
FUZZY_THRESHOLD = 0.85


class DuplicateDetector:
    """Finds duplicates by exact, semantic and fuzzy passes and groups them.

    Passes run in priority order; an item found by an earlier pass is not
    re-tagged by a later one. Every pass is restricted to the candidate's
    project and skips archived knowledge.
    """

    def __init__(self, store: Store, search: VectorSearchService):
        """Initialize with a knowledge store and the vector search service."""
        self.store = store
        self.search = search

    async def detect(self, knowledge: Knowledge) -> dict[str, DuplicateMatch]:
        """Return duplicates of ``knowledge`` keyed by knowledge ID."""
        peers = [
            peer
            for peer in await self.store.query_by_project(
                knowledge.project_id, KnowledgeFilter(archived=False)
            )
            if peer.id != knowledge.id
        ]
        matches: dict[str, DuplicateMatch] = {}

        normalized = normalize_content(knowledge.content)
        for peer in peers:
            if normalize_content(peer.content) == normalized:
                matches[peer.id] = DuplicateMatch(peer.id, DetectionMethod.EXACT, EXACT_THRESHOLD)

        if knowledge.has_embedding and knowledge.embedding is not None:
            # Every active peer may be a neighbour, so the limit covers them all
            neighbours = await self.search.search_store.nearest(
                knowledge.project_id,
                knowledge.embedding,
                limit=len(peers) + 1,
                threshold=SEMANTIC_THRESHOLD,
                include_duplicates=True,
            )
            for peer, similarity in neighbours:
                if peer.id == knowledge.id or peer.id in matches:
                    continue
                matches[peer.id] = DuplicateMatch(peer.id, DetectionMethod.SEMANTIC, similarity)

        for peer in peers:
            if peer.id in matches:
                continue
            score = fuzzy_score(knowledge.content, peer.content)
            if score >= FUZZY_THRESHOLD:
                matches[peer.id] = DuplicateMatch(peer.id, DetectionMethod.FUZZY, score)

        if matches:
            logger.debug(
                "Detected %d duplicates of %s: %s",
                len(matches),
                knowledge.id,
                ", ".join(f"{m.knowledge_id}={m.method}" for m in matches.values()),
            )
        return matches

    async def detect_duplicates(
        self,
        project_id: str,
        knowledge_ids: Sequence[str],
        now: datetime | None = None,
    ) -> int:
        """Detect and group duplicates for each ID, tolerating per-item failures.

        Returns the number of distinct items that ended up as non-representative
        duplicates in the groups touched by successful items.
        """
        duplicates: set[str] = set()
        failed = 0

        for knowledge_id in dict.fromkeys(knowledge_ids):
            try:
                knowledge = await self.store.get_by_id(knowledge_id)
                if knowledge is None or knowledge.project_id != project_id:
                    logger.warning(
                        "Skipping duplicate detection for %s: not found in project %s",
                        knowledge_id,
                        project_id,
                    )
                    continue
                if knowledge.archived:
                    logger.debug("Skipping archived knowledge %s", knowledge_id)
                    continue
                duplicates.update(await self._detect_and_group(knowledge, now))
            except LifecycleError:
                failed += 1
                logger.warning("Duplicate detection failed for %s", knowledge_id, exc_info=True)

        logger.info(
            "Duplicate detection in %s: %d ids, %d duplicates, %d failed",
            project_id,
            len(knowledge_ids),
            len(duplicates),
            failed,
        )
        return len(duplicates)

    async def _detect_and_group(self, knowledge: Knowledge, now: datetime | None) -> set[str]:
        matches = await self.detect(knowledge)
        if not matches:
            return set()

        member_ids = {knowledge.id, *matches}
        groups = await self.store.find_groups_for_members(sorted(member_ids))
        all_ids = set(member_ids)
        for group in groups:
            all_ids.update(group.member_ids)
        records = {k.id: k for k in await self.store.get_many(sorted(all_ids))}
        if knowledge.id not in records:
            return set()

        plan = plan_group_merge(knowledge, list(matches.values()), records, groups, now)
        await self._write_plan(plan.mutations)

        if len(groups) > 1:
            logger.info("Merged %d groups into %s", len(groups), plan.group.id)
        logger.debug(
            "Group %s: representative %s, %d duplicates (%s)",
            plan.group.id,
            plan.representative_id,
            len(plan.group.duplicate_knowledge_ids),
            plan.group.detection_method,
        )
        return (member_ids & set(records)) - {plan.representative_id}

    async def _write_plan(self, mutations: list[Mutation]) -> None:
        """Commit a plan in bounded batches, group documents first.

        Large clusters need several batches. If a later batch fails the group
        is already stored, and the next run re-issues only the membership
        updates still missing.
        """
        batches = split_batches(mutations)
        if len(batches) > 1:
            logger.debug("Writing %d mutations in %d batches", len(mutations), len(batches))
        for batch in batches:
            await self.store.batch_write(batch)

    async def remove_duplicate_from_group(self, knowledge_id: str) -> None:
        """Detach one item from its duplicate group. No-op when it is not grouped."""
        knowledge = await self.store.get_by_id(knowledge_id)
        if knowledge is None or knowledge.duplicate_group_id is None:
            logger.debug("Knowledge %s is not in a duplicate group", knowledge_id)
            return

        group = await self.store.get_group(knowledge.duplicate_group_id)
        records: dict[str, Knowledge] = {}
        if group is not None:
            records = {k.id: k for k in await self.store.get_many(group.member_ids)}

        await self._write_plan(plan_group_removal(knowledge, group, records))
        logger.info(
            "Removed %s from duplicate group %s", knowledge_id, knowledge.duplicate_group_id
        )

    async def get_duplicate_stats(self, project_id: str) -> DuplicateStats:
        """Aggregate group counts for a project.

        Scans every group of the project on each call; fine for modest projects,
        large ones would need counters maintained on write.
        """
        total = await self.store.count_knowledge(KnowledgeFilter(project_id=project_id))
        groups = await self.store.list_groups(project_id)

        by_method = {method: 0 for method in DetectionMethod}
        for group in groups:
            by_method[group.detection_method] += len(group.duplicate_knowledge_ids)
        total_duplicates = sum(by_method.values())

        return DuplicateStats(
            total_knowledge=total,
            unique_knowledge=total - total_duplicates,
            duplicate_groups=len(groups),
            total_duplicates=total_duplicates,
            exact_matches=by_method[DetectionMethod.EXACT],
            semantic_matches=by_method[DetectionMethod.SEMANTIC],
            fuzzy_matches=by_method[DetectionMethod.FUZZY],
            duplicate_ratio=total_duplicates / total if total else 0.0,
        )
