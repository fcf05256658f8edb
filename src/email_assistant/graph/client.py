"""Microsoft Graph API client.

Thin specialisation of the shared ApiClient: Graph base URL, immutable
message IDs, and @odata.nextLink pagination.

Usage:
    from email_assistant.auth.msal_auth import GraphAuth
    from email_assistant.graph.client import GraphClient

    client = GraphClient(GraphAuth(...))
    inbox = client.paginate("/me/mailFolders/inbox/messages", max_items=20)
"""

from __future__ import annotations

from typing import Any

import requests

from email_assistant.core.http import ApiClient, TokenSource
from email_assistant.core.logging import get_logger

logger = get_logger(__name__)

GRAPH_BASE_URL = "https://graph.microsoft.com/v1.0"

# Graph caps $top at 50 for most message collections
GRAPH_MAX_PAGE_SIZE = 50


class GraphClient(ApiClient):
    """Microsoft Graph API client with retry logic and pagination."""

    def __init__(
        self,
        auth: TokenSource,
        base_url: str = GRAPH_BASE_URL,
        session: requests.Session | None = None,
        **kwargs: Any,
    ):
        super().__init__(base_url, auth, "Microsoft Graph", session=session, **kwargs)

    def extra_headers(self) -> dict[str, str]:
        # Immutable IDs survive folder moves, so stored predictions keep resolving
        return {"Prefer": 'IdType="ImmutableId", outlook.body-content-type="text"'}

    def paginate(
        self,
        endpoint: str,
        params: dict[str, Any] | None = None,
        page_size: int = GRAPH_MAX_PAGE_SIZE,
        max_items: int | None = None,
    ) -> list[dict[str, Any]]:
        """Collect items across @odata.nextLink pages.

        Args:
            endpoint: API endpoint path
            params: Query parameters for the first page
            page_size: Items per page (capped at 50)
            max_items: Stop once this many items were collected

        Returns:
            Items from the "value" arrays, trimmed to max_items
        """
        params = dict(params) if params else {}
        params.setdefault("$top", min(page_size, GRAPH_MAX_PAGE_SIZE))

        items: list[dict[str, Any]] = []
        response = self.get(endpoint, params=params)
        pages = 1

        while True:
            items.extend(response.get("value", []))
            next_url = response.get("@odata.nextLink")
            if not next_url or (max_items is not None and len(items) >= max_items):
                break
            response = self.get(next_url)
            pages += 1

        logger.debug("graph_pagination_complete", endpoint=endpoint, pages=pages, items=len(items))
        return items[:max_items] if max_items is not None else items
