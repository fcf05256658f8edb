"""Read-only reports over stored predictions.

- needs_reply(): predictions whose action includes Needs-Reply, newest first
- build_digest(): what was classified in the last N hours

Both work purely on the prediction store; nothing is fetched from the
provider.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from email_assistant.learning.predictions import Prediction, PredictionStore


@dataclass
class DigestResult:
    since: datetime
    total: int = 0
    spam: int = 0
    label_counts: dict[str, int] = field(default_factory=dict)
    important: list[Prediction] = field(default_factory=list)
    needs_reply: list[Prediction] = field(default_factory=list)


def _newest_first(predictions: list[Prediction]) -> list[Prediction]:
    return sorted(predictions, key=lambda p: p.timestamp, reverse=True)


def needs_reply(predictions: PredictionStore) -> list[Prediction]:
    return _newest_first([p for p in predictions if p.needs_reply()])


def build_digest(
    predictions: PredictionStore,
    since_hours: int = 24,
    now: datetime | None = None,
) -> DigestResult:
    """Aggregate predictions created within the last `since_hours`."""
    since = (now or datetime.now(UTC)) - timedelta(hours=since_hours)
    window = [p for p in predictions if p.timestamp >= since]

    counts: Counter[str] = Counter()
    for prediction in window:
        if not prediction.is_spam:
            counts.update(prediction.all_labels())

    return DigestResult(
        since=since,
        total=len(window),
        spam=sum(1 for p in window if p.is_spam),
        label_counts=dict(counts.most_common()),
        important=_newest_first([p for p in window if p.is_important() and not p.is_spam]),
        needs_reply=_newest_first([p for p in window if p.needs_reply() and not p.is_spam]),
    )
