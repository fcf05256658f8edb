"""Token sources for the provider backends.

Both expose get_valid_token(), which is all the HTTP clients need.
"""

from email_assistant.auth.google_oauth import GoogleTokenManager
from email_assistant.auth.msal_auth import GraphAuth

__all__ = ["GoogleTokenManager", "GraphAuth"]
