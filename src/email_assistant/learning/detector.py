"""Correction detection: compare stored predictions with the mailbox.

For every stored prediction the email is re-fetched and its current labels
are compared with what was predicted. Differences in spam status or in the
(non-system) label set become Corrections. Emails that can no longer be
fetched because the provider says they no longer exist are reported as
deleted. Any other fetch failure skips the email for this pass and keeps
its prediction.

Usage:
    detector = CorrectionDetector(provider, predictions)
    result = await detector.detect_corrections()
    for correction in result.corrections:
        print(correction.sender, correction.added_labels)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from email_assistant.core.errors import MessageNotFoundError, ProviderError
from email_assistant.core.logging import get_logger
from email_assistant.providers.base import (
    DEFAULT_CLASSIFIED_LABEL,
    SPAM_LABEL,
    is_system_label,
)

if TYPE_CHECKING:
    from email_assistant.learning.predictions import PredictionStore
    from email_assistant.providers.base import EmailProvider

logger = get_logger(__name__)


@dataclass(frozen=True)
class Correction:
    """A divergence between a prediction and the email's current state."""

    email_id: str
    sender: str
    subject: str
    predicted_labels: list[str]
    actual_labels: list[str]
    predicted_spam: bool
    actual_spam: bool

    @property
    def spam_mismatch(self) -> bool:
        return self.predicted_spam != self.actual_spam

    @property
    def removed_labels(self) -> list[str]:
        """Predicted labels the user took off (case-insensitive)."""
        actual = {label.casefold() for label in self.actual_labels}
        return [label for label in self.predicted_labels if label.casefold() not in actual]

    @property
    def added_labels(self) -> list[str]:
        """Labels the user put on that were not predicted (case-insensitive)."""
        predicted = {label.casefold() for label in self.predicted_labels}
        return [label for label in self.actual_labels if label.casefold() not in predicted]


@dataclass
class LearningResult:
    corrections: list[Correction] = field(default_factory=list)
    deleted_ids: list[str] = field(default_factory=list)
    skipped_ids: list[str] = field(default_factory=list)


class CorrectionDetector:
    """Re-fetches every predicted email and reports divergences."""

    def __init__(
        self,
        provider: EmailProvider,
        predictions: PredictionStore,
        classified_label: str = DEFAULT_CLASSIFIED_LABEL,
    ):
        self.provider = provider
        self.predictions = predictions
        self.classified_label = classified_label

    async def detect_corrections(self) -> LearningResult:
        """Walk the prediction store in order.

        Only a not-found fetch marks the email as deleted; any other provider
        failure leaves the prediction for the next pass. Neither aborts the walk.
        """
        result = LearningResult()

        for prediction in self.predictions:
            try:
                email = await self.provider.get_message(prediction.email_id)
            except MessageNotFoundError:
                logger.debug("predicted_email_gone", email_id=prediction.email_id)
                result.deleted_ids.append(prediction.email_id)
                continue
            except ProviderError as e:
                logger.warning(
                    "predicted_email_unreachable",
                    email_id=prediction.email_id,
                    error=str(e),
                )
                result.skipped_ids.append(prediction.email_id)
                continue

            actual_spam = SPAM_LABEL in email.labels
            actual_labels = [
                label
                for label in email.labels
                if not is_system_label(label, self.classified_label)
            ]
            correction = Correction(
                email_id=prediction.email_id,
                sender=prediction.sender,
                subject=prediction.subject,
                predicted_labels=prediction.all_labels(),
                actual_labels=actual_labels,
                predicted_spam=prediction.is_spam,
                actual_spam=actual_spam,
            )

            # Removal is checked against all current labels, system ones included
            current = {label.casefold() for label in email.labels}
            removed = [
                label for label in correction.predicted_labels if label.casefold() not in current
            ]
            if correction.spam_mismatch or removed or correction.added_labels:
                result.corrections.append(correction)

        logger.info(
            "corrections_detected",
            checked=len(self.predictions),
            corrections=len(result.corrections),
            deleted=len(result.deleted_ids),
            skipped=len(result.skipped_ids),
        )
        return result
