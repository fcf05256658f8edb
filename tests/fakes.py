"""In-memory test doubles shared by the test modules.

FakeProvider keeps messages in a dict and records every mutating call;
StubGenerator replays scripted model responses.
"""

from typing import Any

from email_assistant.core.errors import MessageNotFoundError, ProviderError
from email_assistant.generation.base import TextGenerator
from email_assistant.learning.predictions import Prediction
from email_assistant.providers.base import (
    INBOX_LABEL,
    SPAM_LABEL,
    Email,
    EmailProvider,
    Label,
)


class FakeProvider(EmailProvider):
    """EmailProvider holding messages in a dict.

    Every mutating call is appended to `calls` as a tuple, so tests can
    assert on what the assistant did at the provider.
    """

    name = "fake"

    def __init__(self, emails: list[Email] | None = None, labels: list[str] | None = None):
        self.emails: dict[str, Email] = {e.id: e for e in emails or []}
        self.extra_labels: set[str] = set(labels or [])
        self.unreachable: set[str] = set()
        self.errors: dict[str, ProviderError] = {}
        self.calls: list[tuple[Any, ...]] = []

    def known_labels(self) -> set[str]:
        names = set(self.extra_labels) | {INBOX_LABEL, SPAM_LABEL}
        for email in self.emails.values():
            names.update(email.labels)
        return names

    def _email(self, message_id: str) -> Email:
        if message_id in self.errors:
            raise self.errors[message_id]
        if message_id in self.unreachable:
            raise ProviderError(f"fake: cannot reach {message_id}", status_code=500)
        if message_id not in self.emails:
            raise MessageNotFoundError(f"fake: {message_id} not found", message_id=message_id)
        return self.emails[message_id]

    async def list_messages(
        self,
        max_results: int,
        label: str,
        query: str | None = None,
    ) -> list[Email]:
        if label and label not in self.known_labels():
            raise ProviderError(f"fake: label '{label}' does not exist", status_code=404)
        excluded = query[len("-label:") :] if query and query.startswith("-label:") else None
        matches = [
            e
            for e in self.emails.values()
            if (not label or label in e.labels) and (excluded is None or excluded not in e.labels)
        ]
        return matches[:max_results]

    async def get_message(self, message_id: str) -> Email:
        email = self._email(message_id)
        return Email(**{**email.__dict__, "labels": list(email.labels)})

    async def list_labels(self) -> list[Label]:
        return [Label(id=name, name=name) for name in sorted(self.known_labels())]

    async def add_label(self, message_id: str, label: str) -> None:
        self.calls.append(("add_label", message_id, label))
        email = self._email(message_id)
        if label not in email.labels:
            email.labels.append(label)

    async def remove_label(self, message_id: str, label: str) -> None:
        self.calls.append(("remove_label", message_id, label))
        email = self._email(message_id)
        if label in email.labels:
            email.labels.remove(label)

    async def mark_spam(self, message_id: str) -> None:
        self.calls.append(("mark_spam", message_id))
        email = self._email(message_id)
        email.labels = [label for label in email.labels if label != INBOX_LABEL] + [SPAM_LABEL]

    async def unspam(self, message_id: str) -> None:
        self.calls.append(("unspam", message_id))
        email = self._email(message_id)
        email.labels = [label for label in email.labels if label != SPAM_LABEL] + [INBOX_LABEL]

    async def archive(self, message_id: str) -> None:
        self.calls.append(("archive", message_id))
        email = self._email(message_id)
        email.labels = [label for label in email.labels if label != INBOX_LABEL]

    async def trash(self, message_id: str) -> None:
        self.calls.append(("trash", message_id))
        email = self._email(message_id)
        email.labels = [label for label in email.labels if label != INBOX_LABEL] + ["TRASH"]


class StubGenerator(TextGenerator):
    """TextGenerator returning scripted responses in order.

    A scripted Exception instance is raised instead of returned. Once the
    script runs out, `default` is returned.
    """

    name = "stub"

    def __init__(self, responses: list[Any] | None = None, default: str = "NO_UPDATE_NEEDED"):
        self.responses = list(responses or [])
        self.default = default
        self.calls: list[dict[str, Any]] = []

    async def generate(self, prompt: str, purpose: str, timeout: float) -> str:
        self.calls.append({"prompt": prompt, "purpose": purpose, "timeout": timeout})
        if not self.responses:
            return self.default
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def make_email(email_id: str, labels: list[str] | None = None, **kwargs: Any) -> Email:
    """Build an Email with sensible defaults."""
    defaults = {
        "sender": "Alice <alice@example.com>",
        "to": "me@example.com",
        "subject": f"Subject {email_id}",
        "body": "Hello there",
        "date": "Mon, 5 Jan 2026 10:00:00 +0000",
    }
    defaults.update(kwargs)
    return Email(id=email_id, labels=list(labels if labels is not None else [INBOX_LABEL]), **defaults)


def make_prediction(email_id: str, **kwargs: Any) -> Prediction:
    """Build a Prediction with sensible defaults."""
    kwargs.setdefault("sender", "Alice <alice@example.com>")
    kwargs.setdefault("subject", f"Subject {email_id}")
    return Prediction(email_id=email_id, **kwargs)
