"""Microsoft sign-in for the Outlook provider.

Tokens come from MSAL's cache when possible; otherwise the user completes a
device-code sign-in in a browser. The cache is a JSON file under the state
directory, readable only by the owner.

Usage:
    auth = GraphAuth(client_id, "common", scopes, state_dir / "msal_cache.json")
    bearer = auth.get_valid_token()
"""

import random
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

import msal
import requests
from rich.console import Console
from rich.panel import Panel

from email_assistant.core.errors import AuthenticationError
from email_assistant.core.files import write_private_text
from email_assistant.core.logging import get_logger

logger = get_logger(__name__)
console = Console(stderr=True)

T = TypeVar("T")

NETWORK_RETRY_DELAYS = [1.0, 2.0, 4.0]

AUTHORITY_URL = "https://login.microsoftonline.com/{tenant}"

_DEVICE_FLOW_ERRORS = {
    "authorization_declined": "Sign-in was declined. Run the command again and accept the consent prompt.",
    "expired_token": "The device code expired before sign-in finished. Run the command again.",
    "authorization_pending": "Sign-in was not completed in time. Run the command again.",
}


def call_with_network_retry(label: str, call: Callable[[], T]) -> T:
    """Run an MSAL call, retrying requests-level network failures.

    Raises:
        AuthenticationError: When every attempt failed
    """
    attempts = len(NETWORK_RETRY_DELAYS) + 1
    last_error: Exception | None = None
    for attempt in range(attempts):
        try:
            return call()
        except requests.exceptions.RequestException as e:
            last_error = e
            if attempt < len(NETWORK_RETRY_DELAYS):
                wait = NETWORK_RETRY_DELAYS[attempt] * random.uniform(0.8, 1.2)
                logger.warning(
                    "msal_network_retry", call=label, attempt=attempt + 1, wait=round(wait, 2)
                )
                time.sleep(wait)
    raise AuthenticationError(
        f"{label} failed after {attempts} attempts: {last_error}. Check the network connection."
    ) from last_error


class TokenCacheFile:
    """msal.SerializableTokenCache persisted to a 0600 file."""

    def __init__(self, path: Path):
        self.path = path
        self.cache = msal.SerializableTokenCache()
        if path.exists():
            try:
                self.cache.deserialize(path.read_text(encoding="utf-8"))
            except (OSError, ValueError) as e:
                logger.warning("msal_cache_ignored", path=str(path), error=str(e))

    def flush(self) -> None:
        if not self.cache.has_state_changed:
            return
        try:
            write_private_text(self.path, self.cache.serialize())
        except OSError as e:
            # Next run signs in again
            logger.error("msal_cache_write_failed", path=str(self.path), error=str(e))


class GraphAuth:
    """Token source for Microsoft Graph."""

    def __init__(
        self,
        client_id: str | None,
        tenant_id: str,
        scopes: list[str],
        token_cache_path: str | Path,
        app: Any = None,
    ):
        if not (client_id or "").strip():
            raise AuthenticationError(
                "Outlook is not configured: set outlook.client_id in config.yaml to the "
                "Application (client) ID of an Entra ID app registration."
            )
        self.scopes = scopes
        self.cache_file = TokenCacheFile(Path(token_cache_path))
        self.app = app or msal.PublicClientApplication(
            client_id=client_id,
            authority=AUTHORITY_URL.format(tenant=tenant_id),
            token_cache=self.cache_file.cache,
        )

    def get_valid_token(self) -> str:
        """Return a bearer token, signing in interactively if the cache can't help.

        Raises:
            AuthenticationError: If sign-in fails
        """
        result = self._from_cache()
        if result is None:
            result = self._sign_in()
        self.cache_file.flush()
        return result["access_token"]

    def _from_cache(self) -> dict[str, Any] | None:
        accounts = self.app.get_accounts()
        if not accounts:
            return None
        try:
            result = call_with_network_retry(
                "Silent token refresh",
                lambda: self.app.acquire_token_silent(self.scopes, account=accounts[0]),
            )
        except AuthenticationError as e:
            logger.warning("msal_silent_refresh_unavailable", error=str(e))
            return None
        if result and "access_token" in result:
            return result
        logger.debug("msal_cache_miss", error=(result or {}).get("error"))
        return None

    def _sign_in(self) -> dict[str, Any]:
        flow = call_with_network_retry(
            "Device code request", lambda: self.app.initiate_device_flow(scopes=self.scopes)
        )
        if "user_code" not in flow:
            raise AuthenticationError(
                "Could not start device-code sign-in: "
                f"{flow.get('error_description', 'no user code returned')}. "
                "Enable 'Allow public client flows' on the app registration."
            )

        console.print(
            Panel(
                f"Open [bold blue]{flow['verification_uri']}[/bold blue] and enter "
                f"[bold green]{flow['user_code']}[/bold green]",
                title="Outlook sign-in",
                border_style="bright_blue",
            )
        )
        logger.info("msal_device_flow_waiting")

        result = call_with_network_retry(
            "Device code sign-in", lambda: self.app.acquire_token_by_device_flow(flow)
        )
        if "access_token" not in result:
            error = result.get("error", "unknown_error")
            raise AuthenticationError(
                _DEVICE_FLOW_ERRORS.get(
                    error, f"Sign-in failed: {result.get('error_description', error)}"
                )
            )

        account = result.get("id_token_claims", {}).get("preferred_username", "unknown")
        logger.info("outlook_signed_in", account=account)
        return result
