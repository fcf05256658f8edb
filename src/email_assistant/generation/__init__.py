"""Text-generation backends (Claude CLI subprocess or Anthropic API)."""

from __future__ import annotations

from typing import TYPE_CHECKING

from email_assistant.generation.base import (
    PURPOSE_ACTION_LEARNING,
    PURPOSE_CLASSIFICATION,
    PURPOSE_PROFILE_UPDATE,
    TextGenerator,
)

if TYPE_CHECKING:
    from email_assistant.config_schema import GenerationConfig


def create_generator(config: GenerationConfig) -> TextGenerator:
    """Build the generator selected by generation.backend."""
    if config.backend == "anthropic":
        import anthropic

        from email_assistant.generation.anthropic_backend import AnthropicGenerator

        # Reads ANTHROPIC_API_KEY from the environment
        return AnthropicGenerator(
            anthropic.AsyncAnthropic(max_retries=3),
            model=config.anthropic_model,
            max_tokens=config.max_tokens,
        )

    from email_assistant.generation.claude_cli import ClaudeCLIGenerator

    return ClaudeCLIGenerator(cli_path=config.cli_path, model=config.model)


__all__ = [
    "PURPOSE_ACTION_LEARNING",
    "PURPOSE_CLASSIFICATION",
    "PURPOSE_PROFILE_UPDATE",
    "TextGenerator",
    "create_generator",
]
