"""Mail provider backends and the factory that picks one from config."""

from __future__ import annotations

from typing import TYPE_CHECKING

from email_assistant.providers.base import (
    SPAM_LABEL,
    SYSTEM_LABELS,
    Email,
    EmailProvider,
    Label,
    is_system_label,
)

if TYPE_CHECKING:
    from email_assistant.config_schema import AppConfig


def create_provider(config: AppConfig) -> EmailProvider:
    """Build the provider selected by config.provider.

    Raises:
        AuthenticationError: If the selected provider has no credentials configured
    """
    if config.provider == "outlook":
        from email_assistant.auth.msal_auth import GraphAuth
        from email_assistant.graph.client import GraphClient
        from email_assistant.providers.outlook import OutlookProvider

        auth = GraphAuth(
            client_id=config.outlook.client_id,
            tenant_id=config.outlook.tenant_id,
            scopes=config.outlook.scopes,
            token_cache_path=config.resolve_state_file(config.outlook.token_cache_path),
        )
        return OutlookProvider(GraphClient(auth))

    from email_assistant.auth.google_oauth import GoogleTokenManager
    from email_assistant.core.http import ApiClient
    from email_assistant.providers.gmail import GMAIL_BASE_URL, GmailProvider

    tokens = GoogleTokenManager(
        client_id=config.gmail.client_id,
        client_secret=config.gmail.client_secret,
        token_path=config.resolve_state_file(config.gmail.token_path),
    )
    return GmailProvider(ApiClient(GMAIL_BASE_URL, tokens, "Gmail"))


__all__ = [
    "SPAM_LABEL",
    "SYSTEM_LABELS",
    "Email",
    "EmailProvider",
    "Label",
    "create_provider",
    "is_system_label",
]
