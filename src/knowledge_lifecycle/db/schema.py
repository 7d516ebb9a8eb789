"""DDL and migrations for the lifecycle database."""

from knowledge_lifecycle.db.backend import Database

SCHEMA_VERSION = 1

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS knowledge (
    id TEXT PRIMARY KEY,
    project_id TEXT NOT NULL,
    content TEXT NOT NULL,
    embedding BLOB,
    category TEXT,
    reliability INTEGER NOT NULL DEFAULT 50,
    usage_count INTEGER NOT NULL DEFAULT 0,
    last_used TEXT,
    archived INTEGER NOT NULL DEFAULT 0,
    archived_at TEXT,
    archived_reason TEXT,
    archived_by_job_id TEXT,
    unarchived_at TEXT,
    duplicate_group_id TEXT,
    is_representative INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_knowledge_project ON knowledge(project_id);
CREATE INDEX IF NOT EXISTS idx_knowledge_archived ON knowledge(archived, last_used);
CREATE INDEX IF NOT EXISTS idx_knowledge_group ON knowledge(duplicate_group_id);

CREATE TABLE IF NOT EXISTS knowledge_groups (
    id TEXT PRIMARY KEY,
    project_id TEXT NOT NULL,
    representative_knowledge_id TEXT NOT NULL,
    duplicate_knowledge_ids TEXT NOT NULL DEFAULT '[]',
    similarity_scores TEXT NOT NULL DEFAULT '{}',
    detection_method TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    version INTEGER NOT NULL DEFAULT 1
);

CREATE INDEX IF NOT EXISTS idx_groups_project ON knowledge_groups(project_id);
CREATE INDEX IF NOT EXISTS idx_groups_representative
    ON knowledge_groups(representative_knowledge_id);

CREATE TABLE IF NOT EXISTS archive_logs (
    id TEXT PRIMARY KEY,
    knowledge_id TEXT NOT NULL,
    project_id TEXT NOT NULL,
    reason TEXT NOT NULL,
    archived_at TEXT NOT NULL,
    archived_by_job_id TEXT,
    last_used TEXT,
    usage_count INTEGER NOT NULL DEFAULT 0,
    reliability INTEGER NOT NULL DEFAULT 0
);

CREATE INDEX IF NOT EXISTS idx_logs_knowledge ON archive_logs(knowledge_id);
CREATE INDEX IF NOT EXISTS idx_logs_project ON archive_logs(project_id);

CREATE TABLE IF NOT EXISTS knowledge_id_seq (
    next_id INTEGER NOT NULL DEFAULT 1
);
"""

INIT_SEQ_SQL = """
INSERT INTO knowledge_id_seq (next_id)
SELECT 1 WHERE NOT EXISTS (SELECT 1 FROM knowledge_id_seq);
"""


async def apply_schema(db: Database) -> None:
    """Apply the database schema."""
    await db.executescript(SCHEMA_SQL)
    await db.execute(INIT_SEQ_SQL)

    cursor = await db.execute("SELECT version FROM schema_version")
    row = await cursor.fetchone()
    if row is None:
        await db.execute("INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))

    await db.commit()
