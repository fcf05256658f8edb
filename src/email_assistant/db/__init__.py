"""Database layer for predictions, the label registry and agent state."""

from email_assistant.db.legacy import (
    LEGACY_LABELS_FILE,
    LEGACY_PREDICTIONS_FILE,
    read_legacy_labels,
    read_legacy_predictions,
)
from email_assistant.db.models import SCHEMA_VERSION, init_database
from email_assistant.db.store import LAST_SCAN_KEY, LEGACY_IMPORT_KEY, DatabaseStore

__all__ = [
    "LAST_SCAN_KEY",
    "LEGACY_IMPORT_KEY",
    "LEGACY_LABELS_FILE",
    "LEGACY_PREDICTIONS_FILE",
    "SCHEMA_VERSION",
    "DatabaseStore",
    "init_database",
    "read_legacy_labels",
    "read_legacy_predictions",
]
