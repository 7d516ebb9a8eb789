"""Representative election and duplicate-group mutation planning.

Pure functions: they read knowledge records and existing groups and return the
mutations that bring the store to the merged (or detached) state. The detector
commits each plan in bounded batches, group documents first.
"""

import uuid
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime

from knowledge_lifecycle.models.knowledge import DetectionMethod, Knowledge, KnowledgeGroup
from knowledge_lifecycle.store.mutations import DeleteGroup, Mutation, PutGroup, UpdateKnowledge


@dataclass(frozen=True)
class DuplicateMatch:
    """One knowledge item found to duplicate a candidate."""

    knowledge_id: str
    method: DetectionMethod
    score: float


@dataclass
class GroupPlan:
    """Target group state plus the mutations that write it."""

    group: KnowledgeGroup
    mutations: list[Mutation] = field(default_factory=list)

    @property
    def representative_id(self) -> str:
        return self.group.representative_knowledge_id


def representative_rank(knowledge: Knowledge) -> tuple[int, int]:
    """Sort key for representative election: reliability, then usage."""
    return (knowledge.reliability, knowledge.usage_count)


def elect_representative(incumbent: Knowledge, members: Iterable[Knowledge]) -> Knowledge:
    """Pick the representative among members.

    The incumbent keeps the role unless a member strictly outranks it.
    Challengers are visited in ID order, so equal challengers resolve to the
    smallest ID.
    """
    best = incumbent
    for member in sorted(members, key=lambda k: k.id):
        if representative_rank(member) > representative_rank(best):
            best = member
    return best


def strongest_method(methods: Iterable[DetectionMethod]) -> DetectionMethod:
    """Highest-priority method: exact > semantic > fuzzy."""
    return max(methods, key=lambda m: m.priority)


def new_group_id() -> str:
    return f"grp-{uuid.uuid4().hex[:12]}"


def _membership_changes(
    records: Mapping[str, Knowledge], group_id: str, member_ids: Sequence[str], rep_id: str
) -> list[Mutation]:
    mutations: list[Mutation] = []
    for kid in member_ids:
        record = records[kid]
        is_rep = kid == rep_id
        if record.duplicate_group_id == group_id and record.is_representative == is_rep:
            continue
        mutations.append(
            UpdateKnowledge(kid, {"duplicate_group_id": group_id, "is_representative": is_rep})
        )
    return mutations


def _same_state(a: KnowledgeGroup, b: KnowledgeGroup) -> bool:
    return (
        a.representative_knowledge_id == b.representative_knowledge_id
        and a.duplicate_knowledge_ids == b.duplicate_knowledge_ids
        and a.similarity_scores == b.similarity_scores
        and a.detection_method == b.detection_method
    )


def plan_group_merge(
    candidate: Knowledge,
    matches: Sequence[DuplicateMatch],
    records: Mapping[str, Knowledge],
    existing_groups: Sequence[KnowledgeGroup],
    now: datetime | None = None,
) -> GroupPlan:
    """Plan merging a candidate and its matches into one duplicate group.

    ``existing_groups`` are the groups touching the candidate or any match,
    oldest first. The oldest absorbs the rest (set union) and the others are
    deleted. With no existing group a new one is created with the candidate as
    incumbent representative. ``records`` must hold every member that still
    exists; members missing from it are dropped.
    """
    if not matches:
        raise ValueError("plan_group_merge needs at least one match")

    now = now or datetime.now(UTC)
    target = existing_groups[0] if existing_groups else None
    folded = list(existing_groups[1:])

    methods = [m.method for m in matches]
    methods.extend(g.detection_method for g in existing_groups)
    method = strongest_method(methods)

    scores: dict[str, float] = {}
    for group in existing_groups:
        for kid, score in group.similarity_scores.items():
            scores[kid] = max(score, scores.get(kid, score))
    for match in matches:
        scores[match.knowledge_id] = max(match.score, scores.get(match.knowledge_id, match.score))
    if candidate.id not in scores:
        scores[candidate.id] = max(m.score for m in matches)

    ordered: list[str] = []
    for group in existing_groups:
        ordered.extend(group.member_ids)
    ordered.append(candidate.id)
    ordered.extend(sorted(m.knowledge_id for m in matches))
    member_ids = [kid for kid in dict.fromkeys(ordered) if kid in records]

    incumbent_id = target.representative_knowledge_id if target else candidate.id
    incumbent = records.get(incumbent_id, records[candidate.id])
    rep = elect_representative(incumbent, (records[kid] for kid in member_ids))
    duplicate_ids = [kid for kid in member_ids if kid != rep.id]

    group = KnowledgeGroup(
        id=target.id if target else new_group_id(),
        project_id=candidate.project_id,
        representative_knowledge_id=rep.id,
        duplicate_knowledge_ids=duplicate_ids,
        similarity_scores={kid: scores[kid] for kid in duplicate_ids if kid in scores},
        detection_method=method,
        created_at=target.created_at if target else now,
        updated_at=now,
        version=target.version if target else 0,
    )

    mutations: list[Mutation] = []
    if target is None:
        mutations.append(PutGroup(group))
    elif folded or not _same_state(group, target):
        mutations.append(PutGroup(group, expected_version=target.version))
    mutations.extend(DeleteGroup(g.id, expected_version=g.version) for g in folded)
    mutations.extend(_membership_changes(records, group.id, member_ids, rep.id))
    return GroupPlan(group=group, mutations=mutations)


def plan_group_removal(
    knowledge: Knowledge,
    group: KnowledgeGroup | None,
    records: Mapping[str, Knowledge],
    now: datetime | None = None,
) -> list[Mutation]:
    """Plan detaching one knowledge item from its duplicate group.

    A group left without duplicates is deleted and its representative's group
    fields are cleared. Removing the representative promotes the best remaining
    member. The detached item's own fields are always cleared.
    """
    mutations: list[Mutation] = [
        UpdateKnowledge(knowledge.id, {"duplicate_group_id": None, "is_representative": False})
    ]
    if group is None:
        return mutations

    remaining = [kid for kid in group.member_ids if kid != knowledge.id and kid in records]
    if knowledge.id == group.representative_knowledge_id and remaining:
        first, *rest = sorted((records[kid] for kid in remaining), key=lambda k: k.id)
        rep = elect_representative(first, rest)
    else:
        rep = records.get(group.representative_knowledge_id)

    if rep is None or len(remaining) <= 1:
        mutations.append(DeleteGroup(group.id, expected_version=group.version))
        mutations.extend(
            UpdateKnowledge(kid, {"duplicate_group_id": None, "is_representative": False})
            for kid in remaining
        )
        return mutations

    duplicate_ids = [kid for kid in remaining if kid != rep.id]
    updated = group.model_copy(
        update={
            "representative_knowledge_id": rep.id,
            "duplicate_knowledge_ids": duplicate_ids,
            "similarity_scores": {
                kid: score for kid, score in group.similarity_scores.items() if kid in duplicate_ids
            },
            "updated_at": now or datetime.now(UTC),
        }
    )
    mutations.append(PutGroup(updated, expected_version=group.version))
    mutations.extend(_membership_changes(records, group.id, remaining, rep.id))
    return mutations
