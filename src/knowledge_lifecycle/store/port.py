"""Ports the lifecycle services depend on.

Services receive a ``Store`` (and the vector search service a ``SearchStore``)
through their constructors; nothing reaches for a module-level database handle.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol, runtime_checkable

from knowledge_lifecycle.models.knowledge import ArchiveLogEntry, Knowledge, KnowledgeGroup
from knowledge_lifecycle.store.mutations import Mutation


@dataclass(frozen=True)
class KnowledgeFilter:
    """Field filters for knowledge queries. ``None`` means "any"."""

    project_id: str | None = None
    category: str | None = None
    archived: bool | None = None
    has_embedding: bool | None = None
    never_used: bool | None = None
    last_used_before: datetime | None = None


@runtime_checkable
class Store(Protocol):
    """Document store holding knowledge, duplicate groups and archive logs."""

    async def get_by_id(self, knowledge_id: str) -> Knowledge | None:
        """Get one knowledge record, or None."""
        ...

    async def get_many(self, knowledge_ids: Sequence[str]) -> list[Knowledge]:
        """Get the records that exist among the given IDs."""
        ...

    async def query(self, filters: KnowledgeFilter) -> list[Knowledge]:
        """All knowledge matching the filters."""
        ...

    async def query_by_project(
        self, project_id: str, filters: KnowledgeFilter | None = None
    ) -> list[Knowledge]:
        """All knowledge of one project matching the filters."""
        ...

    async def count_knowledge(self, filters: KnowledgeFilter | None = None) -> int:
        """Number of knowledge records matching the filters."""
        ...

    async def get_group(self, group_id: str) -> KnowledgeGroup | None:
        """Get one duplicate group, or None."""
        ...

    async def find_groups_for_members(self, knowledge_ids: Sequence[str]) -> list[KnowledgeGroup]:
        """Groups whose representative or duplicates include any of the IDs."""
        ...

    async def list_groups(self, project_id: str) -> list[KnowledgeGroup]:
        """All duplicate groups of one project."""
        ...

    async def batch_write(self, mutations: Sequence[Mutation]) -> None:
        """Apply up to MAX_BATCH_MUTATIONS mutations atomically."""
        ...

    async def append_log(self, entry: ArchiveLogEntry) -> None:
        """Append one archive log entry."""
        ...

    async def list_logs(
        self, *, knowledge_id: str | None = None, project_id: str | None = None
    ) -> list[ArchiveLogEntry]:
        """Archive log entries, oldest first."""
        ...


@runtime_checkable
class SearchStore(Protocol):
    """Nearest-neighbour lookup over knowledge embeddings."""

    async def nearest(
        self,
        project_id: str,
        embedding: list[float],
        *,
        limit: int,
        threshold: float,
        category: str | None = None,
        include_archived: bool = False,
        include_duplicates: bool = False,
    ) -> list[tuple[Knowledge, float]]:
        """(knowledge, similarity) pairs at or above threshold, best first."""
        ...
