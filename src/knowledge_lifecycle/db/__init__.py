"""Database connection and schema management."""

from knowledge_lifecycle.db.backend import Cursor, Database, Row
from knowledge_lifecycle.db.sqlite_backend import SQLiteBackend

__all__ = ["Cursor", "Database", "Row", "SQLiteBackend"]
