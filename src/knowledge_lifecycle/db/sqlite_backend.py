"""aiosqlite implementation of the Database protocol.

Python's sqlite3 module opens a transaction implicitly before the first
write, so everything executed inside ``transaction()`` commits or rolls
back together.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    import aiosqlite

    from knowledge_lifecycle.db.backend import Cursor, Row

logger = logging.getLogger(__name__)


class SQLiteCursor:
    """Adapts aiosqlite.Cursor to the Cursor protocol."""

    def __init__(self, cursor: aiosqlite.Cursor) -> None:
        self._cursor = cursor

    @property
    def rowcount(self) -> int:
        count = self._cursor.rowcount
        return -1 if count is None else count

    async def fetchone(self) -> Row | None:
        return await self._cursor.fetchone()

    async def fetchall(self) -> list[Row]:
        return list(await self._cursor.fetchall())


class SQLiteBackend:
    """Knowledge database on one aiosqlite connection.

    The connection is shared by every service in the process; callers
    serialise write transactions themselves (see KnowledgeStore).
    """

    def __init__(self, conn: aiosqlite.Connection) -> None:
        """Wrap an open aiosqlite connection."""
        self._conn = conn

    async def execute(self, sql: str, params: tuple[Any, ...] | list[Any] = ()) -> Cursor:
        return SQLiteCursor(await self._conn.execute(sql, params))

    async def executescript(self, sql: str) -> None:
        await self._conn.executescript(sql)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """Commit the enclosed writes on exit, roll them all back on error."""
        try:
            yield
        except BaseException:
            await self._conn.rollback()
            logger.debug("Transaction rolled back")
            raise
        await self._conn.commit()

    async def commit(self) -> None:
        await self._conn.commit()

    async def rollback(self) -> None:
        await self._conn.rollback()

    async def close(self) -> None:
        await self._conn.close()

    async def apply_schema(self) -> None:
        """Create the knowledge, group and archive-log tables."""
        from knowledge_lifecycle.db.schema import apply_schema

        await apply_schema(self)
        logger.debug("Schema applied")
