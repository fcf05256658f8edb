"""TextGenerator that shells out to the `claude` CLI.

The prompt is written to stdin (`-p -`) so long profiles never hit argv
limits. Tools, MCP servers and session persistence are disabled: the CLI is
used as a plain completion endpoint.

Usage:
    generator = ClaudeCLIGenerator(cli_path="claude", model="haiku")
    text = await generator.generate(prompt, PURPOSE_PROFILE_UPDATE, timeout=90)
"""

from __future__ import annotations

import asyncio
import json
import time

from email_assistant.core.errors import (
    GenerationError,
    GenerationProcessError,
    GenerationTimeoutError,
)
from email_assistant.core.logging import get_logger
from email_assistant.generation.base import TextGenerator

logger = get_logger(__name__)


def unwrap_cli_output(stdout: str) -> str:
    """Return the `result` field of `--output-format json` output.

    Falls back to the raw text when stdout is not the JSON wrapper.
    """
    stripped = stdout.strip()
    try:
        wrapper = json.loads(stripped)
    except ValueError:
        return stripped
    if isinstance(wrapper, dict) and isinstance(wrapper.get("result"), str):
        return wrapper["result"]
    return stripped


class ClaudeCLIGenerator(TextGenerator):
    """Runs `claude -p -` as a subprocess per call."""

    name = "claude_cli"

    def __init__(self, cli_path: str = "claude", model: str = "haiku"):
        self.cli_path = cli_path
        self.model = model

    def build_args(self) -> list[str]:
        return [
            "-p",
            "-",
            "--model",
            self.model,
            "--output-format",
            "json",
            "--tools",
            "",
            "--mcp-config",
            "",
            "--no-session-persistence",
        ]

    async def generate(self, prompt: str, purpose: str, timeout: float) -> str:
        start_time = time.monotonic()
        try:
            process = await asyncio.create_subprocess_exec(
                self.cli_path,
                *self.build_args(),
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise GenerationError(
                f"Cannot start '{self.cli_path}' for {purpose}: {e}. "
                "Install the Claude CLI or set generation.backend to 'anthropic'.",
                purpose=purpose,
            ) from e

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(prompt.encode("utf-8")), timeout=timeout
            )
        except TimeoutError:
            process.kill()
            await process.wait()
            logger.warning("generation_timed_out", backend=self.name, purpose=purpose, timeout=timeout)
            raise GenerationTimeoutError(
                f"{purpose} call to claude CLI timed out after {timeout:.0f}s",
                purpose=purpose,
                timeout=timeout,
            ) from None

        duration_ms = int((time.monotonic() - start_time) * 1000)
        stderr_text = stderr.decode("utf-8", errors="replace").strip()
        if process.returncode != 0:
            logger.error(
                "generation_process_failed",
                backend=self.name,
                purpose=purpose,
                exit_code=process.returncode,
                stderr=stderr_text[:500],
            )
            raise GenerationProcessError(
                f"claude CLI exited with status {process.returncode} during {purpose}: "
                f"{stderr_text[:200] or 'no stderr output'}",
                purpose=purpose,
                exit_code=process.returncode,
                stderr=stderr_text,
            )

        text = unwrap_cli_output(stdout.decode("utf-8", errors="replace"))
        logger.debug(
            "generation_complete",
            backend=self.name,
            purpose=purpose,
            duration_ms=duration_ms,
            chars=len(text),
        )
        return text
