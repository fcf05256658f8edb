"""Microsoft Graph API client module."""

from email_assistant.graph.client import GraphClient

__all__ = ["GraphClient"]
