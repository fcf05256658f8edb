"""Blocking REST client with retry logic shared by the provider backends.

Provides:
- Bearer-token headers from a token source (MSAL or Google OAuth)
- Retry with exponential backoff and jitter for 5xx, 429 and network errors
- Retry-After support for 429 responses
- Mapping of error responses onto ProviderError / MessageNotFoundError

Usage:
    client = ApiClient("https://gmail.googleapis.com/gmail/v1", token_source, "gmail")
    profile = client.get("/users/me/profile")
"""

from __future__ import annotations

import random
import time
from typing import Any, Protocol

import requests

from email_assistant.core.errors import (
    AuthenticationError,
    MessageNotFoundError,
    ProviderError,
    RateLimitExceeded,
)
from email_assistant.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_DELAYS = [1.0, 2.0, 4.0]


class TokenSource(Protocol):
    """Anything that can hand out a currently valid bearer token."""

    def get_valid_token(self) -> str: ...


def _jittered(delay: float) -> float:
    """Apply +/-20% jitter to a delay."""
    return delay + delay * 0.2 * (2 * random.random() - 1)


class ApiClient:
    """JSON-over-HTTPS client with retries.

    Attributes:
        base_url: Service base URL
        service: Short service name used in log events and error messages
        max_retries: Maximum number of retry attempts
        retry_delays: Backoff delays in seconds, one per attempt
    """

    def __init__(
        self,
        base_url: str,
        token_source: TokenSource,
        service: str,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delays: list[float] | None = None,
        session: requests.Session | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token_source = token_source
        self.service = service
        self.max_retries = max_retries
        self.retry_delays = retry_delays or DEFAULT_RETRY_DELAYS
        self.session = session or requests.Session()

    def _get_headers(self) -> dict[str, str]:
        try:
            token = self.token_source.get_valid_token()
        except AuthenticationError:
            raise
        except Exception as e:
            logger.error("access_token_failed", service=self.service, error=str(e))
            raise AuthenticationError(
                f"Cannot authenticate with {self.service}: {e}. "
                "Run 'email-assistant validate-config' and check your credentials."
            ) from e

        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        headers.update(self.extra_headers())
        return headers

    def extra_headers(self) -> dict[str, str]:
        """Service-specific headers added to every request."""
        return {}

    def _make_url(self, endpoint: str) -> str:
        if endpoint.startswith("http"):
            return endpoint
        if not endpoint.startswith("/"):
            endpoint = "/" + endpoint
        return self.base_url + endpoint

    def _retry_delay(self, response: requests.Response | None, attempt: int) -> float:
        if response is not None and response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            if retry_after:
                try:
                    return _jittered(float(retry_after))
                except ValueError:
                    pass
        base_delay = self.retry_delays[min(attempt, len(self.retry_delays) - 1)]
        return _jittered(base_delay)

    def _raise_for_response(self, response: requests.Response, method: str, endpoint: str) -> None:
        try:
            error_info = response.json().get("error", {})
            if isinstance(error_info, str):
                error_code, error_message = error_info, response.text
            else:
                error_code = str(error_info.get("status") or error_info.get("code") or "unknown")
                error_message = error_info.get("message") or response.text
        except ValueError:
            error_code = "unknown"
            error_message = response.text or f"HTTP {response.status_code}"

        logger.debug(
            "api_error_response",
            service=self.service,
            method=method,
            endpoint=endpoint,
            status_code=response.status_code,
            error_code=error_code,
            error_message=error_message[:200],
        )

        status = response.status_code
        if status == 404:
            raise MessageNotFoundError(
                f"{self.service}: resource not found (404) at '{endpoint}': {error_message}"
            )
        if status == 401:
            raise ProviderError(
                f"{self.service}: authentication failed (401): {error_message}. "
                "Your token may have expired; remove the token file and sign in again.",
                status_code=401,
                error_code=error_code,
            )
        if status == 403:
            raise ProviderError(
                f"{self.service}: permission denied (403): {error_message}. "
                "Check that the required API scopes were granted.",
                status_code=403,
                error_code=error_code,
            )
        if status == 429:
            raise RateLimitExceeded(
                f"{self.service}: rate limit exceeded (429) after {self.max_retries} retries",
                retry_after=response.headers.get("Retry-After"),
            )
        raise ProviderError(
            f"{self.service} API error ({status}): {error_message}",
            status_code=status,
            error_code=error_code,
        )

    def request(
        self,
        method: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        timeout: float = 30.0,
    ) -> dict[str, Any]:
        """Make an HTTP request with retry logic.

        Returns:
            Parsed JSON response ({} for empty bodies)

        Raises:
            MessageNotFoundError: For 404 responses
            RateLimitExceeded: When 429s persist after retries
            ProviderError: For other API or network failures
            AuthenticationError: When no token can be obtained
        """
        url = self._make_url(endpoint)

        for attempt in range(self.max_retries + 1):
            headers = self._get_headers()
            try:
                response = self.session.request(
                    method=method,
                    url=url,
                    headers=headers,
                    params=params,
                    json=json,
                    timeout=timeout,
                )
            except (requests.exceptions.Timeout, requests.exceptions.ConnectionError) as e:
                if attempt < self.max_retries:
                    delay = self._retry_delay(None, attempt)
                    logger.warning(
                        "api_network_error_retrying",
                        service=self.service,
                        method=method,
                        endpoint=endpoint,
                        attempt=attempt + 1,
                        delay=round(delay, 2),
                        error=str(e),
                    )
                    time.sleep(delay)
                    continue
                raise ProviderError(
                    f"{self.service}: {method} {endpoint} failed after "
                    f"{self.max_retries} retries: {e}. Check your internet connection."
                ) from e

            if response.status_code < 400:
                if response.status_code == 204 or not response.content:
                    return {}
                return response.json()

            retryable = response.status_code == 429 or 500 <= response.status_code < 600
            if retryable and attempt < self.max_retries:
                delay = self._retry_delay(response, attempt)
                logger.warning(
                    "api_request_retrying",
                    service=self.service,
                    method=method,
                    endpoint=endpoint,
                    status_code=response.status_code,
                    attempt=attempt + 1,
                    delay=round(delay, 2),
                )
                time.sleep(delay)
                continue

            self._raise_for_response(response, method, endpoint)

        raise ProviderError(f"{self.service}: {method} {endpoint} failed after retries")

    def get(
        self,
        endpoint: str,
        params: dict[str, Any] | None = None,
        timeout: float = 30.0,
    ) -> dict[str, Any]:
        return self.request("GET", endpoint, params=params, timeout=timeout)

    def post(
        self,
        endpoint: str,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        timeout: float = 30.0,
    ) -> dict[str, Any]:
        return self.request("POST", endpoint, params=params, json=json, timeout=timeout)

    def patch(
        self,
        endpoint: str,
        json: dict[str, Any] | None = None,
        timeout: float = 30.0,
    ) -> dict[str, Any]:
        return self.request("PATCH", endpoint, json=json, timeout=timeout)
