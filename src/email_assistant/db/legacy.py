"""Import of the older JSON state files.

Older installs kept state in two JSON files:
- predictions.json: {"predictions": {"<email_id>": {...}}}
- labels.json: {"labels": {"<name>": {"name", "source", "email_count"}}}

Predictions written before theme/action existed carry a flat `labels`
list; Prediction.from_dict moves those into `action`.

Usage:
    predictions = read_legacy_predictions(Path("~/.config/email-assistant/predictions.json"))
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from email_assistant.core.errors import PersistenceError
from email_assistant.core.logging import get_logger
from email_assistant.labels.registry import LabelEntry
from email_assistant.learning.predictions import Prediction

logger = get_logger(__name__)

LEGACY_PREDICTIONS_FILE = "predictions.json"
LEGACY_LABELS_FILE = "labels.json"


def _read_json(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return {}
    except (OSError, ValueError) as e:
        raise PersistenceError(f"Cannot read legacy file {path}: {e}") from e
    if not isinstance(data, dict):
        raise PersistenceError(f"Legacy file {path} does not hold a JSON object")
    return data


def read_legacy_predictions(path: Path) -> list[Prediction]:
    """Parse predictions.json; a missing file yields no predictions.

    Raises:
        PersistenceError: If the file is unreadable or an entry is malformed
    """
    entries = _read_json(path).get("predictions", {})
    predictions = []
    for email_id, entry in entries.items():
        try:
            predictions.append(Prediction.from_dict({"email_id": email_id, **entry}))
        except (KeyError, TypeError, ValueError) as e:
            raise PersistenceError(f"Malformed legacy prediction '{email_id}' in {path}: {e}") from e
    logger.debug("legacy_predictions_read", path=str(path), count=len(predictions))
    return predictions


def read_legacy_labels(path: Path) -> list[LabelEntry]:
    """Parse labels.json; a missing file yields no labels.

    Raises:
        PersistenceError: If the file is unreadable or an entry is malformed
    """
    entries = _read_json(path).get("labels", {})
    labels = []
    for name, entry in entries.items():
        source = entry.get("source", "llm")
        if source not in ("provider", "llm"):
            raise PersistenceError(f"Legacy label '{name}' has unknown source '{source}'")
        labels.append(
            LabelEntry(
                name=entry.get("name", name),
                source=source,
                email_count=int(entry.get("email_count", 0)),
            )
        )
    logger.debug("legacy_labels_read", path=str(path), count=len(labels))
    return labels
