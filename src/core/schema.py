"""SQLite schema management (code-first approach)."""

import logging

from src.core import db_client


logger = logging.getLogger(__name__)


# Central list of all collections in the schema, in dependency order
COLLECTIONS = [
    "routines",
    "checklist_items",
    "executions",
    "checklist_completions",
    "attachments",
]


_TABLES: dict[str, str] = {
    "routines": """
        CREATE TABLE IF NOT EXISTS routines (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            title TEXT NOT NULL,
            description TEXT,
            kind TEXT NOT NULL CHECK (kind IN ('normal', 'avulsa')),
            recurrence TEXT NOT NULL,
            weekday INTEGER CHECK (weekday BETWEEN 0 AND 6),
            start_date TEXT NOT NULL,
            start_time TEXT,
            duration_minutes INTEGER NOT NULL CHECK (duration_minutes > 0),
            priority TEXT NOT NULL CHECK (priority IN ('alta', 'media', 'baixa')),
            checklist_enabled INTEGER NOT NULL DEFAULT 0,
            attachment_required INTEGER NOT NULL DEFAULT 0,
            creator_id TEXT NOT NULL,
            responsible_id TEXT NOT NULL,
            department_id TEXT,
            sector_id TEXT,
            region_id TEXT,
            created TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
        )
    """,
    "checklist_items": """
        CREATE TABLE IF NOT EXISTS checklist_items (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            routine_id INTEGER NOT NULL REFERENCES routines (id),
            position INTEGER NOT NULL CHECK (position >= 1),
            text TEXT NOT NULL,
            UNIQUE (routine_id, position)
        )
    """,
    "executions": """
        CREATE TABLE IF NOT EXISTS executions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            routine_id INTEGER NOT NULL REFERENCES routines (id),
            executor_id TEXT NOT NULL,
            started_at TEXT NOT NULL,
            paused_at TEXT,
            finished_at TEXT,
            total_duration_seconds INTEGER,
            notes TEXT
        )
    """,
    "checklist_completions": """
        CREATE TABLE IF NOT EXISTS checklist_completions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            execution_id INTEGER NOT NULL REFERENCES executions (id),
            item_id INTEGER NOT NULL REFERENCES checklist_items (id),
            done INTEGER NOT NULL DEFAULT 0,
            UNIQUE (execution_id, item_id)
        )
    """,
    "attachments": """
        CREATE TABLE IF NOT EXISTS attachments (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            execution_id INTEGER NOT NULL REFERENCES executions (id),
            url TEXT NOT NULL,
            filename TEXT NOT NULL,
            created_at TEXT NOT NULL
        )
    """,
}


INDEXES = [
    # At most one non-terminal execution per routine and executor
    """
    CREATE UNIQUE INDEX IF NOT EXISTS idx_executions_one_open
        ON executions (routine_id, executor_id) WHERE finished_at IS NULL
    """,
    "CREATE INDEX IF NOT EXISTS idx_routines_responsible ON routines (responsible_id, recurrence)",
    "CREATE INDEX IF NOT EXISTS idx_executions_routine ON executions (routine_id, started_at)",
    "CREATE INDEX IF NOT EXISTS idx_attachments_execution ON attachments (execution_id, created_at)",
]


async def init_db(*, db_path: str | None = None) -> None:
    """Create all tables and indexes if they do not already exist."""
    conn = await db_client.get_connection(db_path=db_path)

    for collection in COLLECTIONS:
        await conn.execute(_TABLES[collection])
    for index in INDEXES:
        await conn.execute(index)
    await conn.commit()

    logger.info("Database schema initialized", extra={"collections": COLLECTIONS})
