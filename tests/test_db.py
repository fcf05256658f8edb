"""Tests for the database layer and legacy JSON import.

Tests the three tables:
- predictions
- labels
- agent_state
"""

import json
import stat
from datetime import UTC, datetime
from pathlib import Path

import aiosqlite
import pytest

from email_assistant.core.errors import PersistenceError
from email_assistant.db import (
    DatabaseStore,
    init_database,
    read_legacy_labels,
    read_legacy_predictions,
)
from email_assistant.labels.registry import LabelEntry
from email_assistant.learning.predictions import Prediction, PredictionStore


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    """Create a test database path."""
    return tmp_path / "data" / "test.db"


class TestDatabaseInitialization:
    """Tests for database initialization."""

    async def test_init_database_creates_tables(self, db_path: Path) -> None:
        """Test that all tables are created."""
        await init_database(db_path)

        async with aiosqlite.connect(db_path) as db:
            cursor = await db.execute("SELECT name FROM sqlite_master WHERE type='table'")
            tables = {row[0] for row in await cursor.fetchall()}

        assert {"predictions", "labels", "agent_state"}.issubset(tables)

    async def test_init_database_enables_wal_mode(self, db_path: Path) -> None:
        """Test that WAL mode is enabled."""
        await init_database(db_path)

        async with aiosqlite.connect(db_path) as db:
            cursor = await db.execute("PRAGMA journal_mode")
            row = await cursor.fetchone()
            assert row[0].lower() == "wal"

    async def test_init_database_restricts_permissions(self, db_path: Path) -> None:
        """Test that the database file is owner-only."""
        await init_database(db_path)
        assert stat.S_IMODE(db_path.stat().st_mode) == 0o600

    async def test_init_database_is_idempotent(self, db_path: Path) -> None:
        """Test that a second init keeps existing rows."""
        store = DatabaseStore(db_path)
        await store.initialize()
        await store.set_state("last_scan", "x")

        await store.initialize()

        assert await store.get_state("last_scan") == "x"

    async def test_init_database_refuses_newer_schema(self, db_path: Path) -> None:
        """Test that a database from a newer release is not touched."""
        db_path.parent.mkdir(parents=True)
        async with aiosqlite.connect(db_path) as db:
            await db.execute("PRAGMA user_version = 99")
            await db.commit()

        with pytest.raises(PersistenceError, match="newer"):
            await init_database(db_path)


class TestPredictionPersistence:
    """Tests for loading and saving predictions."""

    async def test_save_and_load_preserves_order_and_fields(self, db_path: Path) -> None:
        """Test that predictions come back identical and in store order."""
        store = DatabaseStore(db_path)
        await store.initialize()
        stamp = datetime(2026, 1, 5, 9, 30, tzinfo=UTC)
        predictions = PredictionStore(
            [
                Prediction(
                    email_id="z",
                    sender="a@x.com",
                    subject="Invoice",
                    theme=["Finance"],
                    action=["Important"],
                    confidence=0.75,
                    timestamp=stamp,
                ),
                Prediction(email_id="a", is_spam=True, timestamp=stamp),
            ]
        )

        assert await store.save_predictions(predictions) == 2
        loaded = await store.load_predictions()

        assert [p.email_id for p in loaded] == ["z", "a"]
        assert loaded.get("z") == predictions.get("z")
        assert loaded.get("a").is_spam is True

    async def test_save_replaces_previous_rows(self, db_path: Path) -> None:
        """Test that removed predictions disappear from the database."""
        store = DatabaseStore(db_path)
        await store.initialize()
        await store.save_predictions(
            PredictionStore([Prediction(email_id="a"), Prediction(email_id="b")])
        )

        await store.save_predictions(PredictionStore([Prediction(email_id="b")]))

        assert [p.email_id for p in await store.load_predictions()] == ["b"]


class TestLabelPersistence:
    """Tests for the label registry table."""

    async def test_save_and_load_labels(self, db_path: Path) -> None:
        """Test label entries round-trip in order."""
        store = DatabaseStore(db_path)
        await store.initialize()
        entries = [
            LabelEntry(name="Work", source="provider"),
            LabelEntry(name="Newsletters", source="llm", email_count=7),
        ]

        await store.save_labels(entries)

        assert await store.load_labels() == entries


class TestAgentState:
    """Tests for agent_state key/value storage."""

    async def test_missing_key(self, db_path: Path) -> None:
        """Test that an unknown key returns None."""
        store = DatabaseStore(db_path)
        await store.initialize()
        assert await store.get_state("nope") is None

    async def test_upsert(self, db_path: Path) -> None:
        """Test that set_state overwrites."""
        store = DatabaseStore(db_path)
        await store.initialize()
        await store.set_state("k", "1")
        await store.set_state("k", "2")
        assert await store.get_state("k") == "2"


class TestLegacyImport:
    """Tests for reading the older JSON state files."""

    def test_read_legacy_predictions(self, tmp_path: Path) -> None:
        """Test both the flat-labels and the theme/action layouts."""
        path = tmp_path / "predictions.json"
        path.write_text(
            json.dumps(
                {
                    "predictions": {
                        "m1": {
                            "from": "a@x.com",
                            "subject": "Old",
                            "is_spam": False,
                            "labels": ["Work"],
                            "confidence": 0.5,
                            "timestamp": "2025-10-01T10:00:00Z",
                        },
                        "m2": {
                            "from": "b@y.com",
                            "subject": "New",
                            "is_spam": True,
                            "theme": ["Promotions"],
                            "action": [],
                            "timestamp": "2025-10-02T10:00:00+00:00",
                        },
                    }
                }
            )
        )

        predictions = read_legacy_predictions(path)

        assert [p.email_id for p in predictions] == ["m1", "m2"]
        assert predictions[0].action == ["Work"]
        assert predictions[0].sender == "a@x.com"
        assert predictions[1].theme == ["Promotions"]
        assert predictions[1].is_spam is True

    def test_missing_legacy_files(self, tmp_path: Path) -> None:
        """Test that absent files import nothing."""
        assert read_legacy_predictions(tmp_path / "predictions.json") == []
        assert read_legacy_labels(tmp_path / "labels.json") == []

    def test_read_legacy_labels(self, tmp_path: Path) -> None:
        """Test the labels.json layout."""
        path = tmp_path / "labels.json"
        path.write_text(
            json.dumps(
                {
                    "labels": {
                        "Work": {"name": "Work", "source": "provider", "email_count": 0},
                        "Receipts": {"name": "Receipts", "source": "llm", "email_count": 3},
                    }
                }
            )
        )

        assert read_legacy_labels(path) == [
            LabelEntry(name="Work", source="provider"),
            LabelEntry(name="Receipts", source="llm", email_count=3),
        ]

    def test_corrupt_legacy_file(self, tmp_path: Path) -> None:
        """Test that unreadable JSON is a persistence error."""
        path = tmp_path / "predictions.json"
        path.write_text("{oops")
        with pytest.raises(PersistenceError):
            read_legacy_predictions(path)

    def test_unknown_label_source(self, tmp_path: Path) -> None:
        """Test that an unexpected source is rejected."""
        path = tmp_path / "labels.json"
        path.write_text(json.dumps({"labels": {"X": {"source": "user"}}}))
        with pytest.raises(PersistenceError):
            read_legacy_labels(path)
