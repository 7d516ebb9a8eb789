"""Tests for database connection and schema initialization."""

import pytest

from knowledge_lifecycle.db.connection import create_connection
from knowledge_lifecycle.db.schema import SCHEMA_VERSION, apply_schema


@pytest.mark.asyncio
async def test_create_in_memory_connection():
    db = await create_connection(":memory:")
    try:
        cursor = await db.execute("SELECT name FROM sqlite_master WHERE type='table' ORDER BY name")
        tables = {row[0] for row in await cursor.fetchall()}
        assert {
            "knowledge",
            "knowledge_groups",
            "archive_logs",
            "knowledge_id_seq",
            "schema_version",
        } <= tables
    finally:
        await db.close()


@pytest.mark.asyncio
async def test_schema_is_idempotent():
    db = await create_connection(":memory:")
    try:
        await apply_schema(db)
        cursor = await db.execute("SELECT version FROM schema_version")
        rows = await cursor.fetchall()
        assert [row[0] for row in rows] == [SCHEMA_VERSION]
        cursor = await db.execute("SELECT COUNT(*) FROM knowledge_id_seq")
        assert (await cursor.fetchone())[0] == 1
    finally:
        await db.close()


@pytest.mark.asyncio
async def test_file_database_creates_parent_dir(tmp_path):
    path = tmp_path / "nested" / "kl.db"
    db = await create_connection(path)
    try:
        assert path.parent.is_dir()
    finally:
        await db.close()


@pytest.mark.asyncio
async def test_db_path_from_env(tmp_path, monkeypatch):
    path = tmp_path / "env.db"
    monkeypatch.setenv("KL_DB_PATH", str(path))
    db = await create_connection()
    try:
        assert path.exists()
    finally:
        await db.close()


@pytest.mark.asyncio
async def test_transaction_rolls_back_on_error():
    db = await create_connection(":memory:")
    try:
        with pytest.raises(RuntimeError):
            async with db.transaction():
                await db.execute(
                    "INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION + 1,)
                )
                raise RuntimeError("boom")
        cursor = await db.execute("SELECT version FROM schema_version")
        assert [row[0] for row in await cursor.fetchall()] == [SCHEMA_VERSION]
    finally:
        await db.close()


@pytest.mark.asyncio
async def test_transaction_commits_on_exit():
    db = await create_connection(":memory:")
    try:
        async with db.transaction():
            await db.execute(
                "INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION + 1,)
            )
        await db.rollback()
        cursor = await db.execute("SELECT version FROM schema_version ORDER BY version")
        assert [row[0] for row in await cursor.fetchall()] == [SCHEMA_VERSION, SCHEMA_VERSION + 1]
    finally:
        await db.close()
