"""SQLite schema for the assistant's state database.

Tables:
- predictions: one row per classified email (the learning baseline)
- labels: label registry (provider-native and llm-created labels)
- agent_state: key-value state (last scan time, legacy import source)

The schema version is kept in SQLite's user_version pragma.

Usage:
    from email_assistant.db.models import init_database

    await init_database(config.database_path)
"""

import stat
from pathlib import Path

import aiosqlite

from email_assistant.core.errors import DatabaseError
from email_assistant.core.logging import get_logger

logger = get_logger(__name__)

SCHEMA_VERSION = 1

OWNER_ONLY = stat.S_IRUSR | stat.S_IWUSR

TABLES_SQL = """
CREATE TABLE IF NOT EXISTS predictions (
    email_id TEXT PRIMARY KEY,
    sender TEXT NOT NULL DEFAULT '',
    subject TEXT NOT NULL DEFAULT '',
    is_spam INTEGER NOT NULL DEFAULT 0,
    theme_json TEXT NOT NULL DEFAULT '[]',
    action_json TEXT NOT NULL DEFAULT '[]',
    confidence REAL NOT NULL DEFAULT 0.0,
    created_at DATETIME NOT NULL,
    seq INTEGER NOT NULL DEFAULT 0          -- insertion order of the store
);

CREATE INDEX IF NOT EXISTS idx_predictions_created_at ON predictions(created_at);

CREATE TABLE IF NOT EXISTS labels (
    name TEXT PRIMARY KEY,
    source TEXT NOT NULL CHECK (source IN ('provider', 'llm')),
    email_count INTEGER NOT NULL DEFAULT 0,
    seq INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS agent_state (
    key TEXT PRIMARY KEY,
    value TEXT,
    updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
);
"""


def _restrict_to_owner(db_path: Path) -> None:
    # Senders and subjects live here; WAL sidecars get the same mode
    for path in (db_path, Path(f"{db_path}-wal"), Path(f"{db_path}-shm")):
        if path.exists():
            path.chmod(OWNER_ONLY)


async def init_database(db_path: str | Path) -> None:
    """Create or upgrade the database file in WAL mode.

    Safe to call on every start; existing rows are untouched.

    Raises:
        DatabaseError: If SQLite refuses to open or create the schema
    """
    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)

    try:
        async with aiosqlite.connect(db_path) as db:
            cursor = await db.execute("PRAGMA journal_mode=WAL")
            (journal_mode,) = await cursor.fetchone()
            if journal_mode.lower() != "wal":
                logger.warning("sqlite_wal_unavailable", journal_mode=journal_mode, path=str(db_path))

            cursor = await db.execute("PRAGMA user_version")
            (found_version,) = await cursor.fetchone()
            if found_version > SCHEMA_VERSION:
                raise DatabaseError(
                    f"{db_path} was written by a newer email-assistant "
                    f"(schema {found_version}, supported {SCHEMA_VERSION})"
                )

            await db.executescript(TABLES_SQL)
            await db.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
            await db.commit()
    except aiosqlite.Error as e:
        logger.error("sqlite_init_failed", path=str(db_path), error=str(e))
        raise DatabaseError(f"Cannot initialise database {db_path}: {e}") from e

    _restrict_to_owner(db_path)
    logger.debug("sqlite_ready", path=str(db_path), schema_version=SCHEMA_VERSION)
