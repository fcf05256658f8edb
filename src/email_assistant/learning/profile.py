"""The classification profile: one markdown document fed into every prompt.

Recognized structure:
- `## <Title>` top-level sections (e.g. "## Learned Corrections")
- `### <label>` per-label rule notes

Section boundaries are parsed into character spans on every mutation, so
edits touch exactly one span and leave the rest of the text byte-identical.

Usage:
    profile = Profile.load(config.profile_path)
    profile.append_correction("2026-01-05: User marked email as spam (...)")
    profile.remove_label_rules("Newsletters")
    profile.save(config.profile_path)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

import regex

from email_assistant.core.errors import PersistenceError
from email_assistant.core.logging import get_logger

logger = get_logger(__name__)

PROFILE_TITLE = "# Email Classification Profile"
LEARNED_CORRECTIONS = "Learned Corrections"

DEFAULT_PROFILE = """# Email Classification Profile

## Spam Patterns
- (Add patterns as you mark emails as spam)

## Important Signals
- Emails mentioning my name directly in body are important
- Replies to emails I sent are important

## Label Rules

## Learned Corrections
"""

HEADER_PATTERN = regex.compile(r"^(#{1,6})[ \t]+(.+?)[ \t]*$", regex.MULTILINE)


@dataclass(frozen=True)
class Section:
    """A header and the text it owns, as offsets into the document.

    `end` is the start of the next header at the same or a higher level,
    or the end of the document.
    """

    level: int
    title: str
    start: int
    end: int


class Profile:
    """Mutable profile text with section-aware edits."""

    def __init__(self, content: str = DEFAULT_PROFILE):
        self.content = content

    @classmethod
    def load(cls, path: str | Path) -> Profile:
        """Load the profile, or the default profile if the file does not exist.

        Raises:
            PersistenceError: If the file exists but cannot be read
        """
        path = Path(path)
        try:
            return cls(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            logger.debug("profile_not_found_using_default", path=str(path))
            return cls()
        except (OSError, UnicodeDecodeError) as e:
            raise PersistenceError(f"Cannot read profile {path}: {e}") from e

    def save(self, path: str | Path) -> None:
        """Write the profile atomically.

        Raises:
            PersistenceError: If the file cannot be written
        """
        path = Path(path)
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(self.content, encoding="utf-8")
            os.replace(tmp_path, path)
        except OSError as e:
            raise PersistenceError(f"Cannot write profile {path}: {e}") from e
        logger.debug("profile_saved", path=str(path), chars=len(self.content))

    def update(self, new_content: str) -> None:
        """Replace the whole document (used for model rewrites)."""
        self.content = new_content

    # ------------------------------------------------------------------
    # Section parsing
    # ------------------------------------------------------------------

    def sections(self) -> list[Section]:
        headers = [
            (len(m.group(1)), m.group(2), m.start()) for m in HEADER_PATTERN.finditer(self.content)
        ]
        result = []
        for i, (level, title, start) in enumerate(headers):
            end = len(self.content)
            for next_level, _, next_start in headers[i + 1 :]:
                if next_level <= level:
                    end = next_start
                    break
            result.append(Section(level=level, title=title, start=start, end=end))
        return result

    def find_section(self, title: str, level: int) -> Section | None:
        wanted = title.strip().casefold()
        for section in self.sections():
            if section.level == level and section.title.casefold() == wanted:
                return section
        return None

    def label_sections(self) -> list[str]:
        """Titles of all `### <label>` rule sections."""
        return [s.title for s in self.sections() if s.level == 3]

    # ------------------------------------------------------------------
    # Structural edits
    # ------------------------------------------------------------------

    def append_correction(self, line: str) -> None:
        """Append `- <line>` as the last entry of "## Learned Corrections".

        The section is created at the end of the document if missing.
        """
        entry = f"- {line}"
        section = self.find_section(LEARNED_CORRECTIONS, level=2)
        if section is None:
            if self.content and not self.content.endswith("\n"):
                self.content += "\n"
            self.content += f"\n## {LEARNED_CORRECTIONS}\n{entry}\n"
            return

        body = self.content[section.start : section.end]
        last_text_end = len(body.rstrip())
        newline = body.find("\n", last_text_end)
        if newline == -1:
            insert_at, text = section.end, f"\n{entry}\n"
        else:
            insert_at, text = section.start + newline, f"\n{entry}"
        self.content = self.content[:insert_at] + text + self.content[insert_at:]

    def remove_label_rules(self, label: str) -> bool:
        """Delete the `### <label>` section up to the next `##`/`###` header.

        Returns:
            True if a section was removed
        """
        section = self.find_section(label, level=3)
        if section is None:
            return False
        self.content = self.content[: section.start] + self.content[section.end :]
        logger.debug("profile_label_rules_removed", label=label)
        return True
