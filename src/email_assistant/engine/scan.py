"""Scan pipeline: learn from corrections, then classify new mail.

Steps per run:
1. Detect corrections against stored predictions, report them, rewrite the
   profile from them, and drop predictions for emails that are gone
2. List up to `max_emails` messages from the scan folder that do not yet
   carry the classified marker; skip ids that already have a prediction
3. Classify each email and apply the rule overlay
4. Apply the verdict at the provider (spam / labels / trash / archive /
   classified marker)
5. Store the prediction
6. Persist profile, predictions and label registry once

A failure to classify or act on one email is logged and counted; it never
stops the run. With dry_run, steps 1-3 still run and are reported but
nothing is changed at the provider or on disk.

Usage:
    engine = ScanEngine(provider, generator, state, config, rules)
    result = await engine.run(max_emails=20, dry_run=True)
"""

from __future__ import annotations

import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from email_assistant.classifier.classifier import EmailClassifier
from email_assistant.classifier.rules import apply_rules
from email_assistant.core.errors import ClassificationError, ProviderError
from email_assistant.core.logging import get_correlation_id, get_logger, set_correlation_id
from email_assistant.db.store import LAST_SCAN_KEY
from email_assistant.learning.applier import CorrectionApplier
from email_assistant.learning.detector import CorrectionDetector, LearningResult

if TYPE_CHECKING:
    from email_assistant.classifier.classifier import Classification
    from email_assistant.classifier.rules import Rule
    from email_assistant.config_schema import AppConfig
    from email_assistant.engine.state import AssistantState
    from email_assistant.generation.base import TextGenerator
    from email_assistant.learning.detector import Correction
    from email_assistant.providers.base import Email, EmailProvider

logger = get_logger(__name__)

CorrectionsReporter = Callable[["list[Correction]"], None]


def applied_classification(classification: Classification) -> Classification:
    """The part of a verdict that actually lands on the mailbox.

    Spam is moved without topic or action labels, so its prediction carries none.
    """
    if classification.is_spam:
        return classification.model_copy(update={"theme": [], "action": []})
    return classification


# ---------------------------------------------------------------------------
# Result dataclasses
# ---------------------------------------------------------------------------


@dataclass
class ScanItem:
    """One classified email, for reporting."""

    email: Email
    classification: Classification
    rules: list[str] = field(default_factory=list)


@dataclass
class ScanResult:
    run_id: str
    dry_run: bool = False
    duration_ms: int = 0
    fetched: int = 0
    classified: int = 0
    skipped: int = 0
    failed: int = 0
    spam: int = 0
    archived: int = 0
    deleted: int = 0
    corrections: int = 0
    deleted_predictions: int = 0
    unreachable_predictions: int = 0
    profile_updated: bool = False
    previous_scan_at: str | None = None
    items: list[ScanItem] = field(default_factory=list)


class ScanEngine:
    """Runs one scan over the configured folder."""

    def __init__(
        self,
        provider: EmailProvider,
        generator: TextGenerator,
        state: AssistantState,
        config: AppConfig,
        rules: list[Rule] | None = None,
    ):
        self._provider = provider
        self._state = state
        self._config = config
        self._rules = rules or []
        self._classifier = EmailClassifier(generator, state.profile, config)
        self._applier = CorrectionApplier(
            state.profile,
            generator,
            state.predictions,
            learning=config.learning,
            generation=config.generation,
        )
        self._classified_label = config.scan.classified_label

    async def learn(
        self,
        result: ScanResult,
        report: CorrectionsReporter | None = None,
    ) -> LearningResult:
        """Detect and apply corrections (apply is skipped on dry runs)."""
        detector = CorrectionDetector(
            self._provider, self._state.predictions, self._classified_label
        )
        learning = await detector.detect_corrections()
        result.corrections = len(learning.corrections)
        result.deleted_predictions = len(learning.deleted_ids)
        result.unreachable_predictions = len(learning.skipped_ids)

        if report and learning.corrections:
            report(learning.corrections)

        if result.dry_run:
            return learning

        result.profile_updated = await self._applier.apply_corrections(learning.corrections)
        self._state.predictions.remove_many(learning.deleted_ids)
        return learning

    async def run(
        self,
        max_emails: int | None = None,
        dry_run: bool = False,
        report: CorrectionsReporter | None = None,
    ) -> ScanResult:
        """Execute one scan.

        Returns:
            ScanResult with counts and the classified items
        """
        owns_run_id = get_correlation_id() is None
        run_id = get_correlation_id() or str(uuid.uuid4())
        set_correlation_id(run_id)
        start_time = time.monotonic()
        result = ScanResult(run_id=run_id, dry_run=dry_run)
        limit = max_emails or self._config.scan.max_emails

        logger.info("scan_start", provider=self._provider.name, max_emails=limit, dry_run=dry_run)

        try:
            result.previous_scan_at = await self._state.store.get_state(LAST_SCAN_KEY)

            if self._config.learning.enabled:
                await self.learn(result, report)

            if not dry_run:
                self._state.registry.sync_provider_labels(
                    await self._provider.list_labels(), self._classified_label
                )

            emails = await self._provider.list_messages(
                limit,
                self._config.scan.folder,
                query=f"-label:{self._classified_label}",
            )
            result.fetched = len(emails)

            for email in emails:
                if email.id in self._state.predictions:
                    result.skipped += 1
                    continue
                await self._process_email(email, result)

            if not dry_run:
                await self._state.save()
                await self._state.store.set_state(
                    LAST_SCAN_KEY, datetime.now(UTC).isoformat(timespec="seconds")
                )
        finally:
            result.duration_ms = int((time.monotonic() - start_time) * 1000)
            logger.info(
                "scan_complete",
                duration_ms=result.duration_ms,
                fetched=result.fetched,
                classified=result.classified,
                skipped=result.skipped,
                failed=result.failed,
                spam=result.spam,
                archived=result.archived,
                deleted=result.deleted,
                corrections=result.corrections,
                deleted_predictions=result.deleted_predictions,
                unreachable_predictions=result.unreachable_predictions,
                dry_run=dry_run,
            )
            if owns_run_id:
                set_correlation_id(None)

        return result

    async def _process_email(self, email: Email, result: ScanResult) -> None:
        try:
            classification = await self._classifier.classify(email)
        except ClassificationError as e:
            logger.warning("scan_email_failed", email_id=email.id, error=str(e))
            result.failed += 1
            return

        matched = apply_rules(email, classification, self._rules)
        result.items.append(ScanItem(email=email, classification=classification, rules=matched))
        result.classified += 1

        if result.dry_run:
            return

        if not self._config.scan.apply_actions:
            # Predictions mirror what was applied at the provider; here nothing was
            logger.debug("scan_prediction_not_recorded", email_id=email.id)
            return

        try:
            await self._apply(email, classification, result)
        except ProviderError as e:
            logger.warning("scan_action_failed", email_id=email.id, error=str(e))
            result.failed += 1
            return

        self._state.predictions.record(
            email.id, email.sender, email.subject, applied_classification(classification)
        )

    async def _apply(self, email: Email, classification: Classification, result: ScanResult) -> None:
        if classification.is_spam:
            await self._provider.mark_spam(email.id)
            result.spam += 1
        else:
            for label in classification.labels():
                await self._provider.add_label(email.id, label)
                self._state.registry.record(label, source="llm")
            if classification.delete:
                await self._provider.trash(email.id)
                result.deleted += 1
            elif classification.archive:
                await self._provider.archive(email.id)
                result.archived += 1

        await self._provider.add_label(email.id, self._classified_label)
