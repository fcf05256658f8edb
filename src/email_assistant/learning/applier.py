"""Turn corrections and single user actions into profile updates.

apply_corrections():
1. Log one dated line per correction under "## Learned Corrections"
2. Split corrections into batches (learning.batch_size, default 25)
3. Ask the generator to rewrite the profile once per batch; a usable
   response replaces the profile and is the baseline for the next batch
4. A failed batch is logged and skipped

learn_from_action() handles one explicit user action (spam, unspam,
label:<name>) and returns the rewritten profile, if any. Failures of that
call propagate to the caller.

Persisting the profile is always the caller's job.
"""

from __future__ import annotations

from datetime import UTC, date, datetime
from typing import TYPE_CHECKING

from email_assistant.core.errors import GenerationError
from email_assistant.core.logging import get_logger
from email_assistant.generation.base import PURPOSE_ACTION_LEARNING, PURPOSE_PROFILE_UPDATE
from email_assistant.learning.extraction import parse_profile_response
from email_assistant.learning.prompts import (
    build_action_prompt,
    build_profile_update_prompt,
    format_labels,
)

if TYPE_CHECKING:
    from email_assistant.config_schema import GenerationConfig, LearningConfig
    from email_assistant.generation.base import TextGenerator
    from email_assistant.learning.detector import Correction
    from email_assistant.learning.predictions import PredictionStore
    from email_assistant.learning.profile import Profile
    from email_assistant.providers.base import Email

logger = get_logger(__name__)

DEFAULT_BATCH_SIZE = 25
DEFAULT_PROFILE_UPDATE_TIMEOUT = 90.0
DEFAULT_ACTION_LEARNING_TIMEOUT = 60.0


def describe_correction(correction: Correction, day: date) -> str:
    """One-line, dated description recorded in the profile log."""
    stamp = day.strftime("%Y-%m-%d")
    if correction.spam_mismatch:
        if correction.actual_spam:
            return (
                f"{stamp}: User marked email as spam "
                f"(from: {correction.sender}, subject: {correction.subject})"
            )
        return (
            f"{stamp}: User unmarked spam "
            f"(false positive, from: {correction.sender}, subject: {correction.subject})"
        )
    return (
        f"{stamp}: User relabeled email (from: {correction.sender}, "
        f"predicted: {format_labels(correction.predicted_labels)}, "
        f"actual: {format_labels(correction.actual_labels)})"
    )


def chunked(items: list[Correction], size: int) -> list[list[Correction]]:
    return [items[i : i + size] for i in range(0, len(items), size)]


class CorrectionApplier:
    """Applies corrections to a Profile through a TextGenerator.

    Attributes:
        profile: The in-memory profile that is mutated
        generator: Text generator used for rewrites
        predictions: Prediction store (context for single-action learning)
    """

    def __init__(
        self,
        profile: Profile,
        generator: TextGenerator,
        predictions: PredictionStore,
        learning: LearningConfig | None = None,
        generation: GenerationConfig | None = None,
    ):
        self.profile = profile
        self.generator = generator
        self.predictions = predictions
        self.batch_size = learning.batch_size if learning else DEFAULT_BATCH_SIZE
        self.body_preview_chars = learning.body_preview_chars if learning else 500
        self.profile_update_timeout = (
            generation.profile_update_timeout_seconds
            if generation
            else DEFAULT_PROFILE_UPDATE_TIMEOUT
        )
        self.action_learning_timeout = (
            generation.action_learning_timeout_seconds
            if generation
            else DEFAULT_ACTION_LEARNING_TIMEOUT
        )

    async def apply_corrections(
        self,
        corrections: list[Correction],
        today: date | None = None,
    ) -> bool:
        """Record corrections and run batched profile rewrites.

        Returns:
            True if at least one batch replaced the profile
        """
        if not corrections:
            return False

        day = today or datetime.now(UTC).date()
        for correction in corrections:
            self.profile.append_correction(describe_correction(correction, day))

        batches = chunked(corrections, self.batch_size)
        updated = False
        for index, batch in enumerate(batches, start=1):
            prompt = build_profile_update_prompt(batch, self.profile.content)
            try:
                response = await self.generator.generate(
                    prompt,
                    purpose=PURPOSE_PROFILE_UPDATE,
                    timeout=self.profile_update_timeout,
                )
            except GenerationError as e:
                logger.warning(
                    "profile_update_batch_failed",
                    batch=index,
                    batches=len(batches),
                    size=len(batch),
                    error=str(e),
                )
                continue

            new_profile = parse_profile_response(response)
            if new_profile is None:
                logger.info("profile_update_batch_no_change", batch=index, batches=len(batches))
                continue

            self.profile.update(new_profile)
            updated = True
            logger.info(
                "profile_update_batch_applied",
                batch=index,
                batches=len(batches),
                size=len(batch),
                chars=len(new_profile),
            )

        return updated

    async def learn_from_action(self, email_id: str, action: str, email: Email) -> str | None:
        """Ask for a profile rewrite after an explicit user action.

        Args:
            email_id: Provider message id
            action: "spam", "unspam" or "label:<name>"
            email: The email as currently seen at the provider

        Returns:
            The full replacement profile, or None if no update was produced

        Raises:
            GenerationTimeoutError: If the call exceeds the action-learning budget
            GenerationError: If the call fails
        """
        prompt = build_action_prompt(
            action,
            email,
            self.predictions.get(email_id),
            self.profile.content,
            body_preview_chars=self.body_preview_chars,
        )
        response = await self.generator.generate(
            prompt,
            purpose=PURPOSE_ACTION_LEARNING,
            timeout=self.action_learning_timeout,
        )
        update = parse_profile_response(response)
        logger.info(
            "action_learning_complete",
            email_id=email_id,
            action=action,
            updated=update is not None,
        )
        return update
