"""Predictions recorded at classification time.

One Prediction per email id (last write wins). The learning loop compares
these snapshots against the provider's current state to find corrections.

Usage:
    store = PredictionStore()
    store.record(email.id, email.sender, email.subject, classification)
    for prediction in store:
        ...
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from email_assistant.classifier.classifier import Classification

IMPORTANT_ACTIONS = frozenset({"Important", "Urgent"})
NEEDS_REPLY_ACTION = "Needs-Reply"


@dataclass
class Prediction:
    """Classification snapshot for one email.

    `sender` is persisted under the key "from".
    """

    email_id: str
    sender: str = ""
    subject: str = ""
    is_spam: bool = False
    theme: list[str] = field(default_factory=list)
    action: list[str] = field(default_factory=list)
    confidence: float = 0.0
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def all_labels(self) -> list[str]:
        """Theme labels followed by action labels."""
        return [*self.theme, *self.action]

    def is_important(self) -> bool:
        return any(a in IMPORTANT_ACTIONS for a in self.action)

    def needs_reply(self) -> bool:
        return NEEDS_REPLY_ACTION in self.action

    def to_dict(self) -> dict[str, Any]:
        return {
            "email_id": self.email_id,
            "from": self.sender,
            "subject": self.subject,
            "is_spam": self.is_spam,
            "theme": list(self.theme),
            "action": list(self.action),
            "confidence": self.confidence,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Prediction:
        """Build a Prediction from its stored (or legacy JSON) form.

        Legacy records carry a flat `labels` list instead of theme/action;
        when both are empty those labels become the action set.
        """
        theme = list(data.get("theme") or [])
        action = list(data.get("action") or [])
        if not theme and not action:
            action = list(data.get("labels") or [])

        raw_timestamp = data.get("timestamp")
        if isinstance(raw_timestamp, datetime):
            timestamp = raw_timestamp
        elif raw_timestamp:
            timestamp = datetime.fromisoformat(str(raw_timestamp).replace("Z", "+00:00"))
        else:
            timestamp = datetime.now(UTC)
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=UTC)

        return cls(
            email_id=data["email_id"],
            sender=data.get("from") or "",
            subject=data.get("subject") or "",
            is_spam=bool(data.get("is_spam", False)),
            theme=theme,
            action=action,
            confidence=float(data.get("confidence", 0.0)),
            timestamp=timestamp,
        )


class PredictionStore:
    """In-memory prediction map; persisted by DatabaseStore."""

    def __init__(self, predictions: list[Prediction] | None = None):
        self._predictions: dict[str, Prediction] = {}
        for prediction in predictions or []:
            self.put(prediction)

    def __iter__(self) -> Iterator[Prediction]:
        return iter(list(self._predictions.values()))

    def __len__(self) -> int:
        return len(self._predictions)

    def __contains__(self, email_id: object) -> bool:
        return email_id in self._predictions

    def get(self, email_id: str) -> Prediction | None:
        return self._predictions.get(email_id)

    def put(self, prediction: Prediction) -> None:
        self._predictions[prediction.email_id] = prediction

    def record(
        self,
        email_id: str,
        sender: str,
        subject: str,
        classification: Classification,
    ) -> Prediction:
        """Store the prediction for a freshly classified email."""
        prediction = Prediction(
            email_id=email_id,
            sender=sender,
            subject=subject,
            is_spam=classification.is_spam,
            theme=list(classification.theme),
            action=list(classification.action),
            confidence=classification.confidence,
        )
        self.put(prediction)
        return prediction

    def remove(self, email_id: str) -> bool:
        return self._predictions.pop(email_id, None) is not None

    def remove_many(self, email_ids: list[str]) -> int:
        return sum(1 for email_id in email_ids if self.remove(email_id))
