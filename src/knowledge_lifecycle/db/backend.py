"""Async database protocols the knowledge store is written against.

Statements use ``?`` placeholders and SQLite syntax. A backend hands out
rows that allow access by column name, and groups writes with
``transaction()`` so a duplicate-group merge or an archive batch lands
as one unit.
"""

from __future__ import annotations

from contextlib import AbstractAsyncContextManager
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Row(Protocol):
    """A result row addressable by column name or index."""

    def __getitem__(self, key: str | int) -> Any: ...

    def keys(self) -> Any: ...


@runtime_checkable
class Cursor(Protocol):
    """Result of ``Database.execute``."""

    @property
    def rowcount(self) -> int:
        """Rows touched by the statement, -1 when the driver cannot tell."""
        ...

    async def fetchone(self) -> Row | None: ...

    async def fetchall(self) -> list[Row]: ...


@runtime_checkable
class Database(Protocol):
    """Single async connection with explicit transaction control."""

    async def execute(self, sql: str, params: tuple[Any, ...] | list[Any] = ()) -> Cursor:
        """Run one statement."""
        ...

    async def executescript(self, sql: str) -> None:
        """Run a multi-statement script such as the schema DDL."""
        ...

    def transaction(self) -> AbstractAsyncContextManager[None]:
        """Commit the enclosed writes on exit, roll them all back on error."""
        ...

    async def commit(self) -> None: ...

    async def rollback(self) -> None: ...

    async def close(self) -> None: ...
