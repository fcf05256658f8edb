"""Outlook provider backed by Microsoft Graph.

Outlook has folders and categories rather than labels. Categories are
exposed as labels; folder membership and read state are exposed as the
pseudo-labels INBOX, SPAM (Junk Email) and UNREAD so that callers can treat
both backends the same way.

Usage:
    provider = OutlookProvider(GraphClient(GraphAuth(...)))
    emails = await provider.list_messages(20, "INBOX", query="-label:Classified")
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

import regex

from email_assistant.core.errors import ProviderError
from email_assistant.core.logging import get_logger
from email_assistant.providers.base import (
    INBOX_LABEL,
    SPAM_LABEL,
    UNREAD_LABEL,
    Email,
    EmailProvider,
    Label,
)

if TYPE_CHECKING:
    from email_assistant.graph.client import GraphClient

logger = get_logger(__name__)

MESSAGE_FIELDS = (
    "id,subject,from,toRecipients,receivedDateTime,body,bodyPreview,"
    "parentFolderId,categories,isRead"
)

# Pseudo-label -> Graph well-known folder name
FOLDER_LABELS = {
    INBOX_LABEL: "inbox",
    SPAM_LABEL: "junkemail",
}

# Only label terms are understood in queries ("label:X", "-label:X")
QUERY_TERM_PATTERN = regex.compile(r'(-?)label:(?:"([^"]+)"|(\S+))')


def _odata_quote(value: str) -> str:
    return value.replace("'", "''")


def query_to_filter(query: str) -> str | None:
    """Translate a Gmail-style label query into an OData category filter.

    Raises:
        ProviderError: If the query contains anything other than label terms
    """
    clauses: list[str] = []
    consumed = 0
    for match in QUERY_TERM_PATTERN.finditer(query):
        if query[consumed : match.start()].strip():
            break
        negate, quoted, bare = match.groups()
        name = _odata_quote(quoted or bare)
        clause = f"categories/any(c:c eq '{name}')"
        clauses.append(f"not({clause})" if negate else clause)
        consumed = match.end()

    if query[consumed:].strip():
        raise ProviderError(f"Unsupported Outlook query: '{query}' (only label:/-label: terms)")
    return " and ".join(clauses) or None


def _format_address(entry: dict[str, Any] | None) -> str:
    address = (entry or {}).get("emailAddress", {})
    name = address.get("name") or ""
    email = address.get("address") or ""
    if name and email and name != email:
        return f"{name} <{email}>"
    return email or name


class OutlookProvider(EmailProvider):
    """EmailProvider implementation for Outlook / Microsoft 365."""

    name = "outlook"

    def __init__(self, client: GraphClient):
        self.client = client
        self._folder_ids: dict[str, str] = {}

    def _folder_id(self, well_known: str) -> str:
        if well_known not in self._folder_ids:
            folder = self.client.get(f"/me/mailFolders/{well_known}", params={"$select": "id"})
            self._folder_ids[well_known] = folder["id"]
        return self._folder_ids[well_known]

    def _to_email(self, message: dict[str, Any]) -> Email:
        labels = list(message.get("categories") or [])
        parent = message.get("parentFolderId")
        for pseudo, well_known in FOLDER_LABELS.items():
            if parent and parent == self._folder_id(well_known):
                labels.append(pseudo)
        if message.get("isRead") is False:
            labels.append(UNREAD_LABEL)

        body = (message.get("body") or {}).get("content") or message.get("bodyPreview", "")
        return Email(
            id=message["id"],
            sender=_format_address(message.get("from")),
            to=", ".join(_format_address(r) for r in message.get("toRecipients") or []),
            subject=message.get("subject") or "(no subject)",
            body=body,
            date=message.get("receivedDateTime") or "",
            labels=labels,
        )

    def _list_messages_sync(
        self, max_results: int, label: str, query: str | None
    ) -> list[Email]:
        params: dict[str, Any] = {
            "$select": MESSAGE_FIELDS,
            "$orderby": "receivedDateTime desc",
        }
        filters: list[str] = []
        if label in FOLDER_LABELS:
            endpoint = f"/me/mailFolders/{FOLDER_LABELS[label]}/messages"
        elif label == UNREAD_LABEL:
            endpoint = "/me/messages"
            filters.append("isRead eq false")
        elif label:
            endpoint = "/me/messages"
            filters.append(f"categories/any(c:c eq '{_odata_quote(label)}')")
        else:
            endpoint = "/me/messages"

        if query:
            translated = query_to_filter(query)
            if translated:
                filters.append(translated)
        if filters:
            params["$filter"] = " and ".join(filters)
            # Graph rejects $orderby on properties absent from a complex $filter
            params.pop("$orderby")

        messages = self.client.paginate(endpoint, params=params, max_items=max_results)
        return [self._to_email(m) for m in messages]

    def _get_message_sync(self, message_id: str) -> Email:
        message = self.client.get(f"/me/messages/{message_id}", params={"$select": MESSAGE_FIELDS})
        return self._to_email(message)

    def _list_labels_sync(self) -> list[Label]:
        response = self.client.get("/me/outlook/masterCategories")
        return [
            Label(id=item.get("id", item["displayName"]), name=item["displayName"])
            for item in response.get("value", [])
        ]

    def _set_categories(self, message_id: str, add: str | None, remove: str | None) -> None:
        message = self.client.get(f"/me/messages/{message_id}", params={"$select": "categories"})
        categories = list(message.get("categories") or [])
        if add and add not in categories:
            categories.append(add)
        elif remove and remove in categories:
            categories.remove(remove)
        else:
            return
        self.client.patch(f"/me/messages/{message_id}", json={"categories": categories})

    def _move(self, message_id: str, well_known: str) -> None:
        self.client.post(f"/me/messages/{message_id}/move", json={"destinationId": well_known})
        logger.debug("outlook_message_moved", message_id=message_id[:20], folder=well_known)

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
        return await asyncio.to_thread(self._list_labels_sync)

    async def add_label(self, message_id: str, label: str) -> None:
        await asyncio.to_thread(self._set_categories, message_id, label, None)

    async def remove_label(self, message_id: str, label: str) -> None:
        await asyncio.to_thread(self._set_categories, message_id, None, label)

    async def mark_spam(self, message_id: str) -> None:
        await asyncio.to_thread(self._move, message_id, "junkemail")

    async def unspam(self, message_id: str) -> None:
        await asyncio.to_thread(self._move, message_id, "inbox")

    async def archive(self, message_id: str) -> None:
        await asyncio.to_thread(self._move, message_id, "archive")

    async def trash(self, message_id: str) -> None:
        await asyncio.to_thread(self._move, message_id, "deleteditems")
