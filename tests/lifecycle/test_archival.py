"""Tests for the archival policy engine."""

from datetime import timedelta

import pytest

from knowledge_lifecycle.errors import NotFound, StoreError
from knowledge_lifecycle.lifecycle.archival import (
    ARCHIVE_BATCH_SIZE,
    ARCHIVE_THRESHOLD_DAYS,
    is_eligible,
)
from knowledge_lifecycle.models.knowledge import ArchiveReason, Knowledge
from knowledge_lifecycle.store.mutations import MAX_BATCH_MUTATIONS, UpdateKnowledge
from tests.conftest import NOW


def _k(**kwargs) -> Knowledge:
    return Knowledge(id="kn-1", project_id="proj", content="x", **kwargs)


# --- Eligibility ---


def test_threshold_is_ninety_days():
    assert ARCHIVE_THRESHOLD_DAYS == 90
    assert ARCHIVE_BATCH_SIZE * 2 <= MAX_BATCH_MUTATIONS


def test_idle_91_days_is_eligible():
    assert is_eligible(_k(last_used=NOW - timedelta(days=91)), NOW)


def test_idle_89_days_is_not_eligible():
    assert not is_eligible(_k(last_used=NOW - timedelta(days=89)), NOW)


def test_never_used_is_eligible():
    assert is_eligible(_k(last_used=None), NOW)


def test_archived_is_never_eligible():
    assert not is_eligible(_k(archived=True), NOW)
    assert not is_eligible(_k(archived=True, last_used=NOW - timedelta(days=400)), NOW)


def test_naive_timestamps_treated_as_utc():
    naive_now = NOW.replace(tzinfo=None)
    assert is_eligible(_k(last_used=naive_now - timedelta(days=91)), NOW)
    assert not is_eligible(_k(last_used=NOW - timedelta(days=1)), naive_now)


# --- scan_and_archive ---


async def _three_items(store):
    never = await store.create_knowledge("proj", "never used")
    idle = await store.create_knowledge(
        "proj", "idle", usage_count=4, reliability=70, last_used=NOW - timedelta(days=100)
    )
    fresh = await store.create_knowledge("proj", "fresh", last_used=NOW - timedelta(days=1))
    return never, idle, fresh


@pytest.mark.asyncio
async def test_scan_archives_never_used_and_idle(store, archival):
    never, idle, fresh = await _three_items(store)

    result = await archival.scan_and_archive(now=NOW, job_id="job-1")

    assert result.scanned == 2
    assert result.archived == 2
    assert result.duration >= 0
    assert result.dry_run is False
    assert set(result.archived_ids) == {never.id, idle.id}

    for kid in (never.id, idle.id):
        record = await store.get_by_id(kid)
        assert record.archived is True
        assert record.archived_at == NOW
        assert record.archived_reason == ArchiveReason.UNUSED_90_DAYS
        assert record.archived_by_job_id == "job-1"
    assert (await store.get_by_id(fresh.id)).archived is False

    logs = await store.list_logs()
    assert len(logs) == 2
    idle_log = next(entry for entry in logs if entry.knowledge_id == idle.id)
    assert idle_log.reason == ArchiveReason.UNUSED_90_DAYS
    assert idle_log.archived_by_job_id == "job-1"
    assert idle_log.snapshot.usage_count == 4
    assert idle_log.snapshot.reliability == 70
    assert idle_log.snapshot.last_used == NOW - timedelta(days=100)


@pytest.mark.asyncio
async def test_scan_is_idempotent(store, archival):
    await _three_items(store)

    await archival.scan_and_archive(now=NOW)
    second = await archival.scan_and_archive(now=NOW)

    assert second.archived == 0
    assert len(await store.list_logs()) == 2


@pytest.mark.asyncio
async def test_dry_run_writes_nothing(store, archival):
    never, idle, _fresh = await _three_items(store)

    first = await archival.scan_and_archive(dry_run=True, now=NOW)
    second = await archival.scan_and_archive(dry_run=True, now=NOW)

    assert first.dry_run is True
    assert (first.scanned, first.archived) == (second.scanned, second.archived) == (2, 2)
    assert set(first.archived_ids) == {never.id, idle.id}
    assert await store.list_logs() == []
    assert (await store.get_by_id(never.id)).archived is False


@pytest.mark.asyncio
async def test_scan_generates_job_id(store, archival):
    await store.create_knowledge("proj", "never used")
    result = await archival.scan_and_archive(now=NOW)
    assert result.job_id


@pytest.mark.asyncio
async def test_scan_batches_writes(store, archival, monkeypatch):
    for i in range(ARCHIVE_BATCH_SIZE + 10):
        await store.create_knowledge("proj", f"item {i}")

    sizes: list[int] = []
    original = store.batch_write

    async def spy(mutations):
        sizes.append(len(mutations))
        await original(mutations)

    monkeypatch.setattr(store, "batch_write", spy)

    result = await archival.scan_and_archive(now=NOW)

    assert result.archived == ARCHIVE_BATCH_SIZE + 10
    assert sizes == [ARCHIVE_BATCH_SIZE * 2, 20]
    assert all(size <= MAX_BATCH_MUTATIONS for size in sizes)


@pytest.mark.asyncio
async def test_failed_batch_keeps_earlier_batches(store, archival, monkeypatch):
    for i in range(ARCHIVE_BATCH_SIZE + 5):
        await store.create_knowledge("proj", f"item {i}")

    original = store.batch_write
    calls = 0

    async def flaky(mutations):
        nonlocal calls
        calls += 1
        if calls == 2:
            raise StoreError("disk full")
        await original(mutations)

    monkeypatch.setattr(store, "batch_write", flaky)

    with pytest.raises(StoreError, match="failed after 250 items"):
        await archival.scan_and_archive(now=NOW)
    assert len(await store.list_logs()) == ARCHIVE_BATCH_SIZE

    monkeypatch.setattr(store, "batch_write", original)
    rerun = await archival.scan_and_archive(now=NOW)
    assert rerun.archived == 5
    assert len(await store.list_logs()) == ARCHIVE_BATCH_SIZE + 5


@pytest.mark.asyncio
async def test_archive_old_knowledge_alias(store, archival):
    await store.create_knowledge("proj", "never used")
    result = await archival.archive_old_knowledge(dry_run=True)
    assert result.dry_run is True
    assert result.archived == 1


# --- Manual archive ---


@pytest.mark.asyncio
async def test_archive_knowledge_manual(store, archival):
    item = await store.create_knowledge("proj", "recent", last_used=NOW)

    assert await archival.archive_knowledge(item.id, ArchiveReason.LOW_QUALITY, now=NOW) is True

    record = await store.get_by_id(item.id)
    assert record.archived is True
    assert record.archived_reason == ArchiveReason.LOW_QUALITY
    logs = await archival.get_archive_log(knowledge_id=item.id)
    assert [entry.reason for entry in logs] == [ArchiveReason.LOW_QUALITY]


@pytest.mark.asyncio
async def test_archive_knowledge_already_archived(store, archival):
    item = await store.create_knowledge("proj", "x")
    await archival.archive_knowledge(item.id)

    assert await archival.archive_knowledge(item.id) is False
    assert len(await store.list_logs(knowledge_id=item.id)) == 1


@pytest.mark.asyncio
async def test_archive_knowledge_not_found(archival):
    with pytest.raises(NotFound):
        await archival.archive_knowledge("kn-99999")


# --- Unarchive ---


@pytest.mark.asyncio
async def test_unarchive_restores_item(store, archival):
    item = await store.create_knowledge("proj", "never used")
    await archival.scan_and_archive(now=NOW, job_id="job-1")

    restored = await archival.unarchive(item.id, now=NOW + timedelta(days=1))

    assert restored.archived is False
    record = await store.get_by_id(item.id)
    assert record.archived is False
    assert record.archived_at is None
    assert record.archived_reason is None
    assert record.archived_by_job_id is None
    assert record.unarchived_at == NOW + timedelta(days=1)
    # The audit trail is append-only
    assert len(await store.list_logs(knowledge_id=item.id)) == 1


@pytest.mark.asyncio
async def test_unarchive_not_found(archival):
    with pytest.raises(NotFound):
        await archival.unarchive("kn-99999")
    with pytest.raises(NotFound):
        await archival.unarchive_knowledge("kn-99999")


@pytest.mark.asyncio
async def test_unarchive_leaves_group_membership(store, archival):
    item = await store.create_knowledge("proj", "grouped")
    await store.batch_write(
        [UpdateKnowledge(item.id, {"duplicate_group_id": "grp-1", "is_representative": False})]
    )
    await archival.archive_knowledge(item.id)

    await archival.unarchive_knowledge(item.id)

    record = await store.get_by_id(item.id)
    assert record.duplicate_group_id == "grp-1"
    assert record.is_representative is False


@pytest.mark.asyncio
async def test_unarchive_active_item_is_noop(store, archival):
    item = await store.create_knowledge("proj", "active")

    restored = await archival.unarchive(item.id)

    assert restored.unarchived_at is None
    assert (await store.get_by_id(item.id)).unarchived_at is None


# --- Statistics ---


@pytest.mark.asyncio
async def test_archive_statistics(store, archival):
    await _three_items(store)
    manual = await store.create_knowledge("other", "manual", last_used=NOW)
    await archival.scan_and_archive(now=NOW)
    await archival.archive_knowledge(manual.id, ArchiveReason.DUPLICATE)

    stats = await archival.get_archive_statistics()

    assert stats.total_knowledge == 4
    assert stats.archived_knowledge == 3
    assert stats.active_knowledge == 1
    assert stats.archive_ratio == pytest.approx(0.75)
    assert stats.by_reason == {"unused_90_days": 2, "duplicate": 1}
    assert stats.archive_log_entries == 3

    per_project = await archival.get_archive_statistics("proj")
    assert per_project.total_knowledge == 3
    assert per_project.archived_knowledge == 2


@pytest.mark.asyncio
async def test_archive_statistics_empty(archival):
    stats = await archival.get_archive_statistics()
    assert stats.total_knowledge == 0
    assert stats.archive_ratio == 0.0
