"""Single-email commands: spam, unspam, label, unlabel, archive, delete.

spam / unspam / label run the provider action, re-fetch the email and ask
for a profile rewrite from that one action. A returned rewrite replaces the
profile, which is saved immediately. Generation failures propagate: the
provider action has already happened, but the command fails.

unlabel, archive and delete only run the provider action. A removed label
that was predicted is picked up as a correction by the next learn pass.

Usage:
    runner = ActionRunner(provider, generator, state, config)
    outcome = await runner.spam("18c2f...")
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from email_assistant.core.logging import get_logger
from email_assistant.learning.applier import CorrectionApplier

if TYPE_CHECKING:
    from email_assistant.config_schema import AppConfig
    from email_assistant.engine.state import AssistantState
    from email_assistant.generation.base import TextGenerator
    from email_assistant.providers.base import Email, EmailProvider

logger = get_logger(__name__)


@dataclass
class ActionOutcome:
    email: Email
    action: str
    profile_update: str | None = None


class ActionRunner:
    """Executes user actions and learns from them."""

    def __init__(
        self,
        provider: EmailProvider,
        generator: TextGenerator,
        state: AssistantState,
        config: AppConfig,
    ):
        self._provider = provider
        self._state = state
        self._applier = CorrectionApplier(
            state.profile,
            generator,
            state.predictions,
            learning=config.learning,
            generation=config.generation,
        )

    async def _learn(self, email_id: str, action: str) -> ActionOutcome:
        email = await self._provider.get_message(email_id)
        update = await self._applier.learn_from_action(email_id, action, email)
        if update is not None:
            self._state.profile.update(update)
            self._state.save_profile()
        return ActionOutcome(email=email, action=action, profile_update=update)

    async def spam(self, email_id: str) -> ActionOutcome:
        await self._provider.mark_spam(email_id)
        logger.info("action_spam", email_id=email_id)
        return await self._learn(email_id, "spam")

    async def unspam(self, email_id: str) -> ActionOutcome:
        await self._provider.unspam(email_id)
        logger.info("action_unspam", email_id=email_id)
        return await self._learn(email_id, "unspam")

    async def label(self, email_id: str, label: str) -> ActionOutcome:
        await self._provider.add_label(email_id, label)
        logger.info("action_label", email_id=email_id, label=label)
        return await self._learn(email_id, f"label:{label}")

    async def unlabel(self, email_id: str, label: str) -> ActionOutcome:
        await self._provider.remove_label(email_id, label)
        logger.info("action_unlabel", email_id=email_id, label=label)
        return ActionOutcome(
            email=await self._provider.get_message(email_id), action=f"unlabel:{label}"
        )

    async def archive(self, email_id: str) -> ActionOutcome:
        await self._provider.archive(email_id)
        logger.info("action_archive", email_id=email_id)
        return ActionOutcome(email=await self._provider.get_message(email_id), action="archive")

    async def delete(self, email_id: str) -> ActionOutcome:
        await self._provider.trash(email_id)
        logger.info("action_delete", email_id=email_id)
        return ActionOutcome(email=await self._provider.get_message(email_id), action="delete")
