"""Text-generation capability used for profile rewrites and classification.

A TextGenerator takes a prompt and returns the model's text. Each call has a
purpose (for logs and errors) and its own time budget.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

PURPOSE_PROFILE_UPDATE = "profile_update"
PURPOSE_ACTION_LEARNING = "action_learning"
PURPOSE_CLASSIFICATION = "classification"


class TextGenerator(ABC):
    """Capability interface for the external model call."""

    name: str = "generator"

    @abstractmethod
    async def generate(self, prompt: str, purpose: str, timeout: float) -> str:
        """Return the model's text response for `prompt`.

        Args:
            prompt: Full prompt text
            purpose: One of the PURPOSE_* constants
            timeout: Seconds before the call is abandoned

        Raises:
            GenerationTimeoutError: If the call exceeds `timeout`
            GenerationError: For any other failure of the call
        """
