"""Mutations accepted by Store.batch_write."""

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from knowledge_lifecycle.models.knowledge import ArchiveLogEntry, KnowledgeGroup

# A batch commits fully or not at all and never exceeds this many mutations
MAX_BATCH_MUTATIONS = 500


@dataclass(frozen=True)
class UpdateKnowledge:
    """Set fields on an existing knowledge record."""

    knowledge_id: str
    changes: dict[str, Any]


@dataclass(frozen=True)
class PutGroup:
    """Create a group, or update it if ``expected_version`` still matches."""

    group: KnowledgeGroup
    expected_version: int | None = None  # None = create


@dataclass(frozen=True)
class DeleteGroup:
    """Delete a group, optionally guarded by its version."""

    group_id: str
    expected_version: int | None = None


@dataclass(frozen=True)
class AppendArchiveLog:
    """Append one archive log entry."""

    entry: ArchiveLogEntry


Mutation = UpdateKnowledge | PutGroup | DeleteGroup | AppendArchiveLog



def split_batches(
    mutations: Sequence[Mutation], size: int = MAX_BATCH_MUTATIONS
) -> list[list[Mutation]]:
    """Split mutations into consecutive batches of at most ``size``, keeping order."""
    return [list(mutations[i : i + size]) for i in range(0, len(mutations), size)]
