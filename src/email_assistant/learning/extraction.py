"""Pull a replacement profile out of a free-text model response."""

from __future__ import annotations

from email_assistant.learning.profile import PROFILE_TITLE
from email_assistant.learning.prompts import NO_UPDATE_SENTINEL

FENCE = "```"
MARKDOWN_FENCE = "```markdown"


def extract_profile_update(response: str) -> str | None:
    """Return the trimmed profile text from `response`, or None.

    Tried in order:
    1. a fenced block tagged `markdown`
    2. any fenced block (the language-tag line is skipped)
    3. the raw response, if it starts with the profile title
    """
    start = response.find(MARKDOWN_FENCE)
    if start != -1:
        content_start = start + len(MARKDOWN_FENCE)
        end = response.find(FENCE, content_start)
        if end != -1:
            return response[content_start:end].strip()

    start = response.find(FENCE)
    if start != -1:
        content_start = start + len(FENCE)
        newline = response.find("\n", content_start)
        if newline != -1:
            content_start = newline + 1
        end = response.find(FENCE, content_start)
        if end != -1:
            return response[content_start:end].strip()

    trimmed = response.strip()
    if trimmed.startswith(PROFILE_TITLE):
        return trimmed
    return None


def parse_profile_response(response: str) -> str | None:
    """None for the NO_UPDATE_NEEDED sentinel or an unusable response."""
    if NO_UPDATE_SENTINEL in response:
        return None
    return extract_profile_update(response)
