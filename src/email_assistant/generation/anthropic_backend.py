"""TextGenerator backed by the Anthropic Messages API.

Transient errors (429, 5xx, network) are retried by the SDK itself
(max_retries). Whatever is left after that surfaces as a GenerationError.

Usage:
    generator = AnthropicGenerator(anthropic.AsyncAnthropic(), model="claude-haiku-4-5-20251001")
    text = await generator.generate(prompt, PURPOSE_CLASSIFICATION, timeout=60)
"""

from __future__ import annotations

import asyncio
import time

import anthropic

from email_assistant.core.errors import (
    GenerationError,
    GenerationProcessError,
    GenerationTimeoutError,
)
from email_assistant.core.logging import get_logger
from email_assistant.generation.base import TextGenerator

logger = get_logger(__name__)


class AnthropicGenerator(TextGenerator):
    """Calls client.messages.create with a single user turn."""

    name = "anthropic"

    def __init__(self, client: anthropic.AsyncAnthropic, model: str, max_tokens: int = 4096):
        self._client = client
        self.model = model
        self.max_tokens = max_tokens

    def _timed_out(self, purpose: str, timeout: float) -> GenerationTimeoutError:
        logger.warning("generation_timed_out", backend=self.name, purpose=purpose, timeout=timeout)
        return GenerationTimeoutError(
            f"{purpose} call to Anthropic API timed out after {timeout:.0f}s",
            purpose=purpose,
            timeout=timeout,
        )

    async def generate(self, prompt: str, purpose: str, timeout: float) -> str:
        start_time = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self._client.messages.create(
                    model=self.model,
                    max_tokens=self.max_tokens,
                    messages=[{"role": "user", "content": prompt}],
                ),
                timeout=timeout,
            )
        except TimeoutError:
            raise self._timed_out(purpose, timeout) from None
        except anthropic.APITimeoutError as e:
            raise self._timed_out(purpose, timeout) from e
        except anthropic.APIConnectionError as e:
            logger.error("generation_connection_error", backend=self.name, purpose=purpose, error=str(e))
            raise GenerationError(
                f"Anthropic API connection error during {purpose}: {e}", purpose=purpose
            ) from e
        except anthropic.APIStatusError as e:
            logger.error(
                "generation_api_error",
                backend=self.name,
                purpose=purpose,
                status_code=e.status_code,
                error=str(e),
            )
            raise GenerationProcessError(
                f"Anthropic API error {e.status_code} during {purpose}: {e.message}",
                purpose=purpose,
                exit_code=e.status_code,
                stderr=str(e),
            ) from e

        text = "".join(block.text for block in response.content if block.type == "text")
        logger.debug(
            "generation_complete",
            backend=self.name,
            purpose=purpose,
            duration_ms=int((time.monotonic() - start_time) * 1000),
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )
        return text
