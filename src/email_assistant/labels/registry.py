"""Registry of labels the assistant knows about, and orphan cleanup.

Labels come from two sources:
- provider: labels that already existed in the mailbox
- llm: labels the classifier invented and the assistant created

Only llm labels are ever cleaned up. A label is an orphan when the provider
lists no email carrying it, or cannot list it at all (label deleted).

Usage:
    registry = LabelRegistry(await store.load_labels())
    removed = await registry.cleanup(provider, profile)
    await store.save_labels(registry.entries())
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

from email_assistant.core.errors import ProviderError
from email_assistant.core.logging import get_logger
from email_assistant.providers.base import DEFAULT_CLASSIFIED_LABEL, is_system_label

if TYPE_CHECKING:
    from email_assistant.learning.profile import Profile
    from email_assistant.providers.base import EmailProvider, Label

logger = get_logger(__name__)

LabelSource = Literal["provider", "llm"]


@dataclass
class LabelEntry:
    name: str
    source: LabelSource
    email_count: int = 0


class LabelRegistry:
    """Name-keyed label registry."""

    def __init__(self, entries: list[LabelEntry] | None = None):
        self._labels: dict[str, LabelEntry] = {}
        for entry in entries or []:
            self._labels[entry.name] = entry

    def __contains__(self, name: object) -> bool:
        return name in self._labels

    def __len__(self) -> int:
        return len(self._labels)

    def get(self, name: str) -> LabelEntry | None:
        return self._labels.get(name)

    def entries(self) -> list[LabelEntry]:
        return list(self._labels.values())

    def llm_labels(self) -> list[str]:
        return [e.name for e in self._labels.values() if e.source == "llm"]

    def record(self, name: str, source: LabelSource = "llm") -> LabelEntry:
        """Register a label (or count another use of a known one).

        An existing entry keeps its original source.
        """
        entry = self._labels.get(name)
        if entry is None:
            entry = LabelEntry(name=name, source=source)
            self._labels[name] = entry
            logger.debug("label_registered", label=name, source=source)
        entry.email_count += 1
        return entry

    def add(self, entry: LabelEntry) -> bool:
        """Insert an entry as-is; an existing name is left untouched."""
        if entry.name in self._labels:
            return False
        self._labels[entry.name] = entry
        return True

    def remove(self, name: str) -> bool:
        return self._labels.pop(name, None) is not None

    def sync_provider_labels(
        self,
        labels: list[Label],
        classified_label: str = DEFAULT_CLASSIFIED_LABEL,
    ) -> int:
        """Register the provider's own user labels; returns how many were new."""
        added = 0
        for label in labels:
            if is_system_label(label.name, classified_label) or label.name in self._labels:
                continue
            self._labels[label.name] = LabelEntry(name=label.name, source="provider")
            added += 1
        return added

    async def find_orphans(self, provider: EmailProvider) -> list[str]:
        """llm labels for which the provider lists no email (or no label)."""
        orphans: list[str] = []
        candidates = self.llm_labels()
        for name in candidates:
            try:
                emails = await provider.list_messages(1, name)
            except ProviderError as e:
                logger.info("label_missing_at_provider", label=name, error=str(e))
                emails = []
            if not emails:
                orphans.append(name)

        logger.debug("label_orphans_found", checked=len(candidates), orphans=len(orphans))
        return orphans

    async def cleanup(self, provider: EmailProvider, profile: Profile) -> list[str]:
        """Drop llm labels that no longer label any email.

        Each orphan is removed from the registry and its `### <label>`
        section is removed from the profile. Provider-side labels are left
        alone.

        Returns:
            Names of removed labels, in registry order
        """
        removed = await self.find_orphans(provider)
        for name in removed:
            self.remove(name)
            profile.remove_label_rules(name)

        logger.info("label_cleanup_complete", removed=len(removed))
        return removed
