"""Google OAuth token handling for the Gmail provider.

Tokens live in a JSON file ({"access_token", "refresh_token", "expires_at"})
under the state directory. Obtaining the first refresh token is outside the
assistant; this module only keeps an existing grant fresh.

Usage:
    tokens = GoogleTokenManager(client_id, client_secret, token_path)
    bearer = tokens.get_valid_token()
"""

from __future__ import annotations

import json
import time
from pathlib import Path
from typing import Any

import requests

from email_assistant.core.errors import AuthenticationError
from email_assistant.core.files import write_private_text
from email_assistant.core.logging import get_logger

logger = get_logger(__name__)

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"

# Refresh this many seconds before the recorded expiry
EXPIRY_MARGIN_SECONDS = 60


class GoogleTokenManager:
    """Refresh-token based access token source for Gmail."""

    def __init__(
        self,
        client_id: str | None,
        client_secret: str | None,
        token_path: str | Path,
        session: requests.Session | None = None,
    ):
        if not client_id or not client_secret:
            raise AuthenticationError(
                "Gmail is not configured: gmail.client_id and gmail.client_secret "
                "must be set in config.yaml."
            )
        self.client_id = client_id
        self.client_secret = client_secret
        self.token_path = Path(token_path)
        self.session = session or requests.Session()
        self._tokens: dict[str, Any] | None = None

    def _load(self) -> dict[str, Any]:
        if self._tokens is None:
            try:
                self._tokens = json.loads(self.token_path.read_text(encoding="utf-8"))
            except FileNotFoundError:
                raise AuthenticationError(
                    f"Gmail tokens not found at {self.token_path}. "
                    "Authorize the OAuth client once and save the resulting "
                    "refresh_token there as JSON."
                ) from None
            except (OSError, ValueError) as e:
                raise AuthenticationError(
                    f"Gmail token file {self.token_path} is unreadable: {e}"
                ) from e
        return self._tokens

    def get_valid_token(self) -> str:
        """Return a non-expired access token, refreshing when needed.

        Raises:
            AuthenticationError: If there is no refresh token or refresh fails
        """
        tokens = self._load()
        access_token = tokens.get("access_token")
        expires_at = float(tokens.get("expires_at") or 0)
        if access_token and time.time() < expires_at - EXPIRY_MARGIN_SECONDS:
            return access_token
        return self.refresh()

    def refresh(self) -> str:
        tokens = self._load()
        refresh_token = tokens.get("refresh_token")
        if not refresh_token:
            raise AuthenticationError(
                f"No refresh_token in {self.token_path}. Re-authorize the Gmail client."
            )

        try:
            response = self.session.post(
                GOOGLE_TOKEN_URL,
                data={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "refresh_token": refresh_token,
                    "grant_type": "refresh_token",
                },
                timeout=30,
            )
        except requests.exceptions.RequestException as e:
            raise AuthenticationError(f"Gmail token refresh failed: {e}") from e

        if response.status_code != 200:
            try:
                detail = response.json().get("error_description") or response.text
            except ValueError:
                detail = response.text
            raise AuthenticationError(
                f"Gmail token refresh rejected ({response.status_code}): {detail}. "
                "The grant may have been revoked; re-authorize the Gmail client."
            )

        payload = response.json()
        tokens["access_token"] = payload["access_token"]
        tokens["expires_at"] = time.time() + float(payload.get("expires_in", 3600))
        if payload.get("refresh_token"):
            tokens["refresh_token"] = payload["refresh_token"]
        self._save(tokens)
        logger.debug("gmail_token_refreshed")
        return tokens["access_token"]

    def _save(self, tokens: dict[str, Any]) -> None:
        try:
            write_private_text(self.token_path, json.dumps(tokens, indent=2))
        except OSError as e:
            logger.error("gmail_token_save_failed", path=str(self.token_path), error=str(e))
