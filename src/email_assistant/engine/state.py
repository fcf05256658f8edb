"""Per-command assistant state: profile, predictions and label registry.

Loaded once at the start of a command, mutated in memory, written back
once at the end of a successful run.

Usage:
    state = await AssistantState.load(config, store)
    ...
    await state.save()
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from email_assistant.core.logging import get_logger
from email_assistant.labels.registry import LabelRegistry
from email_assistant.learning.profile import Profile

if TYPE_CHECKING:
    from pathlib import Path

    from email_assistant.config_schema import AppConfig
    from email_assistant.db.store import DatabaseStore
    from email_assistant.learning.predictions import PredictionStore

logger = get_logger(__name__)


@dataclass
class AssistantState:
    profile: Profile
    predictions: PredictionStore
    registry: LabelRegistry
    store: DatabaseStore
    profile_path: Path

    @classmethod
    async def load(cls, config: AppConfig, store: DatabaseStore) -> AssistantState:
        """Initialize the database and load all state.

        Raises:
            PersistenceError: If any part of the state cannot be read
        """
        await store.initialize()
        state = cls(
            profile=Profile.load(config.profile_path),
            predictions=await store.load_predictions(),
            registry=LabelRegistry(await store.load_labels()),
            store=store,
            profile_path=config.profile_path,
        )
        logger.debug(
            "state_loaded",
            predictions=len(state.predictions),
            labels=len(state.registry),
        )
        return state

    async def save(self) -> None:
        """Persist profile, predictions and registry.

        Raises:
            PersistenceError: If any part cannot be written
        """
        self.profile.save(self.profile_path)
        await self.store.save_predictions(self.predictions)
        await self.store.save_labels(self.registry.entries())

    def save_profile(self) -> None:
        self.profile.save(self.profile_path)
