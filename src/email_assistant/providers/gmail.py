"""Gmail provider backed by the Gmail REST API (v1).

Label IDs are translated to display names in both directions, so the rest
of the assistant only ever sees names (system labels such as INBOX and SPAM
use their ID as their name).

Usage:
    provider = GmailProvider(ApiClient(GMAIL_BASE_URL, tokens, "Gmail"))
    emails = await provider.list_messages(10, "INBOX", query="-label:Classified")
"""

from __future__ import annotations

import asyncio
import base64
from typing import Any

from email_assistant.core.errors import MessageNotFoundError, ProviderError
from email_assistant.core.http import ApiClient
from email_assistant.core.logging import get_logger
from email_assistant.providers.base import (
    INBOX_LABEL,
    SPAM_LABEL,
    Email,
    EmailProvider,
    Label,
)

logger = get_logger(__name__)

GMAIL_BASE_URL = "https://gmail.googleapis.com/gmail/v1"

# Gmail caps maxResults at 500 per page
GMAIL_MAX_PAGE_SIZE = 500


def _decode_body(data: str) -> str:
    padded = data + "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8", errors="replace")


def _find_plain_text(payload: dict[str, Any]) -> str | None:
    data = payload.get("body", {}).get("data")
    if payload.get("mimeType") == "text/plain" and data:
        return _decode_body(data)
    for part in payload.get("parts", []) or []:
        text = _find_plain_text(part)
        if text is not None:
            return text
    return None


def extract_text_body(payload: dict[str, Any]) -> str:
    """Return the first text/plain part of a message payload (depth-first).

    Falls back to the top-level body when no text/plain part exists.
    """
    text = _find_plain_text(payload)
    if text is not None:
        return text
    data = payload.get("body", {}).get("data")
    return _decode_body(data) if data else ""


def get_header(payload: dict[str, Any], name: str) -> str | None:
    lowered = name.lower()
    for header in payload.get("headers", []):
        if header.get("name", "").lower() == lowered:
            return header.get("value", "")
    return None


class GmailProvider(EmailProvider):
    """EmailProvider implementation for Gmail."""

    name = "gmail"

    def __init__(self, client: ApiClient):
        self.client = client
        self._labels_by_id: dict[str, str] | None = None

    # ------------------------------------------------------------------
    # Label id/name mapping
    # ------------------------------------------------------------------

    def _label_map(self, refresh: bool = False) -> dict[str, str]:
        if self._labels_by_id is None or refresh:
            response = self.client.get("/users/me/labels")
            self._labels_by_id = {
                item["id"]: item.get("name", item["id"]) for item in response.get("labels", [])
            }
        return self._labels_by_id

    def _label_id(self, name: str) -> str | None:
        for label_id, label_name in self._label_map().items():
            if label_name == name or label_id == name:
                return label_id
        lowered = name.casefold()
        for label_id, label_name in self._label_map().items():
            if label_name.casefold() == lowered:
                return label_id
        return None

    def _ensure_label_id(self, name: str) -> str:
        label_id = self._label_id(name)
        if label_id:
            return label_id
        created = self.client.post(
            "/users/me/labels",
            json={
                "name": name,
                "labelListVisibility": "labelShow",
                "messageListVisibility": "show",
            },
        )
        self._label_map()[created["id"]] = created.get("name", name)
        logger.info("gmail_label_created", label=name)
        return created["id"]

    def _to_email(self, message: dict[str, Any]) -> Email:
        payload = message.get("payload", {})
        label_map = self._label_map()
        return Email(
            id=message["id"],
            sender=get_header(payload, "From") or "",
            to=get_header(payload, "To") or "",
            subject=get_header(payload, "Subject") or "(no subject)",
            body=extract_text_body(payload) or message.get("snippet", ""),
            date=get_header(payload, "Date") or "",
            labels=[label_map.get(i, i) for i in message.get("labelIds", [])],
        )

    def _modify(self, message_id: str, add: list[str], remove: list[str]) -> None:
        self.client.post(
            f"/users/me/messages/{message_id}/modify",
            json={"addLabelIds": add, "removeLabelIds": remove},
        )

    # ------------------------------------------------------------------
    # Blocking implementations
    # ------------------------------------------------------------------

    def _list_messages_sync(
        self, max_results: int, label: str, query: str | None
    ) -> list[Email]:
        params: dict[str, Any] = {"maxResults": min(max_results, GMAIL_MAX_PAGE_SIZE)}
        if label:
            label_id = self._label_id(label)
            if label_id is None:
                raise ProviderError(f"Gmail label '{label}' does not exist", status_code=404)
            params["labelIds"] = label_id
        if query:
            params["q"] = query

        refs: list[dict[str, Any]] = []
        while len(refs) < max_results:
            response = self.client.get("/users/me/messages", params=params)
            refs.extend(response.get("messages", []))
            page_token = response.get("nextPageToken")
            if not page_token:
                break
            params["pageToken"] = page_token

        emails: list[Email] = []
        for ref in refs[:max_results]:
            try:
                emails.append(self._get_message_sync(ref["id"]))
            except MessageNotFoundError:
                logger.debug("gmail_message_vanished_during_list", message_id=ref["id"])
        return emails

    def _get_message_sync(self, message_id: str) -> Email:
        try:
            message = self.client.get(
                f"/users/me/messages/{message_id}", params={"format": "full"}
            )
        except MessageNotFoundError as e:
            raise MessageNotFoundError(str(e), message_id=message_id) from e
        return self._to_email(message)

    # ------------------------------------------------------------------
    # EmailProvider
    # ------------------------------------------------------------------

    async def list_messages(
        self,
        max_results: int,
        label: str,
        query: str | None = None,
    ) -> list[Email]:
        return await asyncio.to_thread(self._list_messages_sync, max_results, label, query)

    async def get_message(self, message_id: str) -> Email:
        return await asyncio.to_thread(self._get_message_sync, message_id)

    async def list_labels(self) -> list[Label]:
        label_map = await asyncio.to_thread(self._label_map, True)
        return [Label(id=label_id, name=name) for label_id, name in label_map.items()]

    async def add_label(self, message_id: str, label: str) -> None:
        label_id = await asyncio.to_thread(self._ensure_label_id, label)
        await asyncio.to_thread(self._modify, message_id, [label_id], [])

    async def remove_label(self, message_id: str, label: str) -> None:
        label_id = await asyncio.to_thread(self._label_id, label)
        if label_id is None:
            return
        await asyncio.to_thread(self._modify, message_id, [], [label_id])

    async def mark_spam(self, message_id: str) -> None:
        await asyncio.to_thread(self._modify, message_id, [SPAM_LABEL], [INBOX_LABEL])

    async def unspam(self, message_id: str) -> None:
        await asyncio.to_thread(self._modify, message_id, [INBOX_LABEL], [SPAM_LABEL])

    async def archive(self, message_id: str) -> None:
        await asyncio.to_thread(self._modify, message_id, [], [INBOX_LABEL])

    async def trash(self, message_id: str) -> None:
        await asyncio.to_thread(self.client.post, f"/users/me/messages/{message_id}/trash")
