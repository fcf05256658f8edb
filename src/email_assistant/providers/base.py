"""Mail provider capability interface.

Every backend (Gmail, Outlook) implements EmailProvider. The learning core,
the label registry and the scan engine depend only on this interface.

Label conventions shared by all providers:
- Labels are plain display names (Gmail label names, Outlook categories).
- Provider state that is not a user label is surfaced as a pseudo-label
  using Gmail's system names (INBOX, UNREAD, SPAM, ...), so spam status is
  always "SPAM in labels".
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

SPAM_LABEL = "SPAM"
INBOX_LABEL = "INBOX"
UNREAD_LABEL = "UNREAD"

SYSTEM_LABELS = frozenset(
    {
        "INBOX",
        "SENT",
        "DRAFT",
        "TRASH",
        "SPAM",
        "STARRED",
        "IMPORTANT",
        "UNREAD",
        "CATEGORY_PERSONAL",
        "CATEGORY_SOCIAL",
        "CATEGORY_PROMOTIONS",
        "CATEGORY_UPDATES",
        "CATEGORY_FORUMS",
    }
)

DEFAULT_CLASSIFIED_LABEL = "Classified"


def is_system_label(label: str, classified_label: str = DEFAULT_CLASSIFIED_LABEL) -> bool:
    """Return True for provider built-ins and the internal classified marker.

    Built-in names match exactly (providers report them upper-case); the
    classified marker matches case-insensitively.
    """
    if label in SYSTEM_LABELS:
        return True
    return label.casefold() == classified_label.casefold()


@dataclass
class Email:
    """A message as seen through the provider capability."""

    id: str
    sender: str = ""
    to: str = ""
    subject: str = ""
    body: str = ""
    date: str = ""
    labels: list[str] = field(default_factory=list)

    @property
    def is_spam(self) -> bool:
        return SPAM_LABEL in self.labels


@dataclass(frozen=True)
class Label:
    """A provider label (or Outlook category)."""

    id: str
    name: str


class EmailProvider(ABC):
    """Capability interface implemented by each mail backend.

    All methods are coroutines; backends built on blocking HTTP clients
    run their calls in a worker thread.
    """

    name: str = "provider"

    @abstractmethod
    async def list_messages(
        self,
        max_results: int,
        label: str,
        query: str | None = None,
    ) -> list[Email]:
        """List up to max_results messages carrying `label`.

        Raises:
            ProviderError: If the label does not exist or the call fails
        """

    @abstractmethod
    async def get_message(self, message_id: str) -> Email:
        """Fetch one message.

        Raises:
            MessageNotFoundError: If the message no longer exists
            ProviderError: For any other failure
        """

    @abstractmethod
    async def list_labels(self) -> list[Label]:
        """List all labels known to the provider."""

    @abstractmethod
    async def add_label(self, message_id: str, label: str) -> None:
        """Add a label, creating it at the provider if needed."""

    @abstractmethod
    async def remove_label(self, message_id: str, label: str) -> None:
        """Remove a label from a message."""

    @abstractmethod
    async def mark_spam(self, message_id: str) -> None:
        """Move a message to spam/junk."""

    @abstractmethod
    async def unspam(self, message_id: str) -> None:
        """Move a message out of spam/junk back to the inbox."""

    @abstractmethod
    async def archive(self, message_id: str) -> None:
        """Remove a message from the inbox without deleting it."""

    @abstractmethod
    async def trash(self, message_id: str) -> None:
        """Move a message to trash."""
