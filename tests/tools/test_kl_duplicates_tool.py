"""Tests for the duplicate MCP tools."""

import pytest

from knowledge_lifecycle.store.mutations import UpdateKnowledge
from knowledge_lifecycle.tools.kl_duplicates import _action_detect, _action_remove, _action_stats


@pytest.mark.asyncio
async def test_detect_whole_project(store, detector):
    await store.create_knowledge("proj", "統合報告書の作成について")
    await store.create_knowledge("proj", "統合報告書の  作成について。。。")
    await store.create_knowledge("proj", "Something else")

    text = await _action_detect(detector, store, "proj", None)

    assert text == "Checked 3 item(s) in proj: 1 duplicate(s) found."
    assert len(await store.list_groups("proj")) == 1


@pytest.mark.asyncio
async def test_detect_skips_archived_when_scanning_project(store, detector):
    a = await store.create_knowledge("proj", "same text")
    await store.create_knowledge("proj", "Same text.")
    await store.batch_write([UpdateKnowledge(a.id, {"archived": True})])

    text = await _action_detect(detector, store, "proj", None)

    assert "Checked 1 item(s)" in text
    assert "0 duplicate(s)" in text


@pytest.mark.asyncio
async def test_detect_empty_project(store, detector):
    assert await _action_detect(detector, store, "nothing", None) == (
        "No active knowledge in project nothing."
    )


@pytest.mark.asyncio
async def test_detect_given_ids(store, detector):
    a = await store.create_knowledge("proj", "same text")
    await store.create_knowledge("proj", "Same text.")

    text = await _action_detect(detector, store, "proj", [a.id])

    assert "Checked 1 item(s)" in text
    assert "1 duplicate(s)" in text


@pytest.mark.asyncio
async def test_remove_and_stats(store, detector):
    a = await store.create_knowledge("proj", "same text")
    b = await store.create_knowledge("proj", "Same text.")
    await _action_detect(detector, store, "proj", [a.id])

    stats = await _action_stats(detector, "proj")
    assert "Groups: 1" in stats
    assert "exact: 1" in stats

    text = await _action_remove(detector, b.id)
    assert b.id in text
    assert await store.list_groups("proj") == []
