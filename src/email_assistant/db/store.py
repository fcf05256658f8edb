"""Database store for predictions, the label registry and agent state.

The learning loop works on whole in-memory collections: they are loaded
once per command and written back once at the end, each in a single
transaction.

Usage:
    from email_assistant.db.store import DatabaseStore

    store = DatabaseStore(config.database_path)
    await store.initialize()

    predictions = await store.load_predictions()
    ...
    await store.save_predictions(predictions)
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from pathlib import Path

import aiosqlite

from email_assistant.core.errors import DatabaseError
from email_assistant.core.logging import get_logger
from email_assistant.db.models import init_database
from email_assistant.labels.registry import LabelEntry
from email_assistant.learning.predictions import Prediction, PredictionStore

logger = get_logger(__name__)

# agent_state keys
LAST_SCAN_KEY = "last_scan_at"
LEGACY_IMPORT_KEY = "legacy_imported_from"


class DatabaseStore:
    """Async SQLite persistence for the assistant's state.

    Attributes:
        db_path: Path to the SQLite database file
    """

    def __init__(self, db_path: str | Path):
        self.db_path = Path(db_path)
        self._initialized = False

    async def initialize(self) -> None:
        """Create tables if needed. Must be called before any other operation."""
        await init_database(self.db_path)
        self._initialized = True

    @asynccontextmanager
    async def _db(self) -> AsyncIterator[aiosqlite.Connection]:
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute("PRAGMA busy_timeout = 10000")
            await db.execute("PRAGMA synchronous = NORMAL")
            db.row_factory = aiosqlite.Row
            yield db

    # =========================================================================
    # Predictions
    # =========================================================================

    async def load_predictions(self) -> PredictionStore:
        """Load all predictions in store order.

        Raises:
            DatabaseError: If the query fails
        """
        try:
            async with self._db() as db:
                cursor = await db.execute("SELECT * FROM predictions ORDER BY seq, created_at")
                rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            raise DatabaseError(f"Failed to load predictions: {e}") from e

        return PredictionStore([self._row_to_prediction(row) for row in rows])

    async def save_predictions(self, predictions: PredictionStore) -> int:
        """Replace the stored predictions with `predictions`.

        Returns:
            Number of predictions written

        Raises:
            DatabaseError: If the transaction fails (nothing is changed)
        """
        rows = [
            (
                p.email_id,
                p.sender,
                p.subject,
                1 if p.is_spam else 0,
                json.dumps(p.theme),
                json.dumps(p.action),
                p.confidence,
                p.timestamp.isoformat(),
                seq,
            )
            for seq, p in enumerate(predictions)
        ]
        try:
            async with self._db() as db:
                await db.execute("BEGIN")
                await db.execute("DELETE FROM predictions")
                await db.executemany(
                    """
                    INSERT INTO predictions (
                        email_id, sender, subject, is_spam, theme_json,
                        action_json, confidence, created_at, seq
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    rows,
                )
                await db.commit()
        except aiosqlite.Error as e:
            logger.error("predictions_save_failed", count=len(rows), error=str(e))
            raise DatabaseError(f"Failed to save {len(rows)} predictions: {e}") from e

        logger.debug("predictions_saved", count=len(rows))
        return len(rows)

    def _row_to_prediction(self, row: aiosqlite.Row) -> Prediction:
        created_at = datetime.fromisoformat(row["created_at"])
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=UTC)
        return Prediction(
            email_id=row["email_id"],
            sender=row["sender"],
            subject=row["subject"],
            is_spam=bool(row["is_spam"]),
            theme=json.loads(row["theme_json"]),
            action=json.loads(row["action_json"]),
            confidence=row["confidence"],
            timestamp=created_at,
        )

    # =========================================================================
    # Label registry
    # =========================================================================

    async def load_labels(self) -> list[LabelEntry]:
        try:
            async with self._db() as db:
                cursor = await db.execute("SELECT * FROM labels ORDER BY seq, name")
                rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            raise DatabaseError(f"Failed to load label registry: {e}") from e

        return [
            LabelEntry(name=row["name"], source=row["source"], email_count=row["email_count"])
            for row in rows
        ]

    async def save_labels(self, entries: list[LabelEntry]) -> int:
        """Replace the stored label registry with `entries`.

        Raises:
            DatabaseError: If the transaction fails (nothing is changed)
        """
        rows = [(e.name, e.source, e.email_count, seq) for seq, e in enumerate(entries)]
        try:
            async with self._db() as db:
                await db.execute("BEGIN")
                await db.execute("DELETE FROM labels")
                await db.executemany(
                    "INSERT INTO labels (name, source, email_count, seq) VALUES (?, ?, ?, ?)",
                    rows,
                )
                await db.commit()
        except aiosqlite.Error as e:
            logger.error("labels_save_failed", count=len(rows), error=str(e))
            raise DatabaseError(f"Failed to save label registry: {e}") from e

        logger.debug("labels_saved", count=len(rows))
        return len(rows)

    # =========================================================================
    # Agent state
    # =========================================================================

    async def get_state(self, key: str) -> str | None:
        try:
            async with self._db() as db:
                cursor = await db.execute("SELECT value FROM agent_state WHERE key = ?", (key,))
                row = await cursor.fetchone()
        except aiosqlite.Error as e:
            raise DatabaseError(f"Failed to read state '{key}': {e}") from e
        return row["value"] if row else None

    async def set_state(self, key: str, value: str) -> None:
        try:
            async with self._db() as db:
                await db.execute(
                    """
                    INSERT INTO agent_state (key, value, updated_at)
                    VALUES (?, ?, CURRENT_TIMESTAMP)
                    ON CONFLICT(key) DO UPDATE SET
                        value = excluded.value,
                        updated_at = excluded.updated_at
                    """,
                    (key, value),
                )
                await db.commit()
        except aiosqlite.Error as e:
            raise DatabaseError(f"Failed to write state '{key}': {e}") from e
