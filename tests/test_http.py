"""Tests for the shared REST client's retry and error mapping."""

from typing import Any
from unittest.mock import MagicMock

import pytest
import requests

from email_assistant.core.errors import (
    AuthenticationError,
    MessageNotFoundError,
    ProviderError,
    RateLimitExceeded,
)
from email_assistant.core.http import ApiClient
from email_assistant.graph.client import GraphClient


def response(status: int, body: dict[str, Any] | None = None, headers: dict[str, str] | None = None):
    resp = MagicMock()
    resp.status_code = status
    resp.headers = headers or {}
    resp.content = b"{}" if body is not None else b""
    resp.json.return_value = body or {}
    resp.text = str(body or "")
    return resp


def make_client(*responses: Any) -> tuple[ApiClient, MagicMock]:
    session = MagicMock()
    session.request.side_effect = list(responses)
    tokens = MagicMock()
    tokens.get_valid_token.return_value = "tok"
    client = ApiClient(
        "https://api.example.com/v1/",
        tokens,
        "Example",
        retry_delays=[0.0],
        session=session,
    )
    return client, session


class TestApiClient:
    """Tests for ApiClient.request()."""

    def test_success_sends_bearer_token(self) -> None:
        """Test the URL and authorization header."""
        client, session = make_client(response(200, {"ok": True}))

        assert client.get("/things", params={"a": 1}) == {"ok": True}

        kwargs = session.request.call_args.kwargs
        assert kwargs["url"] == "https://api.example.com/v1/things"
        assert kwargs["headers"]["Authorization"] == "Bearer tok"
        assert kwargs["params"] == {"a": 1}

    def test_retries_server_errors(self) -> None:
        """Test that a 503 is retried and the later success returned."""
        client, session = make_client(response(503, {"error": "busy"}), response(200, {"n": 1}))

        assert client.get("/things") == {"n": 1}
        assert session.request.call_count == 2

    def test_retries_network_errors(self) -> None:
        """Test that connection errors are retried."""
        client, session = make_client(requests.exceptions.ConnectionError("reset"), response(204))

        assert client.post("/things", json={}) == {}
        assert session.request.call_count == 2

    def test_network_errors_exhausted(self) -> None:
        """Test that persistent connection errors become ProviderError."""
        errors = [requests.exceptions.Timeout("slow")] * 4
        client, _ = make_client(*errors)

        with pytest.raises(ProviderError, match="failed after"):
            client.get("/things")

    def test_not_found(self) -> None:
        """Test that 404 maps to MessageNotFoundError without retry."""
        client, session = make_client(
            response(404, {"error": {"code": 404, "message": "Requested entity was not found."}})
        )

        with pytest.raises(MessageNotFoundError):
            client.get("/users/me/messages/x")
        assert session.request.call_count == 1

    def test_rate_limit_exhausted(self) -> None:
        """Test that 429s after all retries raise RateLimitExceeded."""
        limited = [response(429, {"error": "slow down"}, {"Retry-After": "0"}) for _ in range(4)]
        client, _ = make_client(*limited)

        with pytest.raises(RateLimitExceeded):
            client.get("/things")

    def test_forbidden_keeps_status(self) -> None:
        """Test that other client errors carry their status code."""
        client, _ = make_client(response(403, {"error": {"status": "PERMISSION_DENIED"}}))

        with pytest.raises(ProviderError) as exc_info:
            client.get("/things")
        assert exc_info.value.status_code == 403
        assert exc_info.value.error_code == "PERMISSION_DENIED"

    def test_token_failure(self) -> None:
        """Test that a token source failure is an AuthenticationError."""
        client, session = make_client()
        client.token_source.get_valid_token.side_effect = RuntimeError("no refresh token")

        with pytest.raises(AuthenticationError):
            client.get("/things")
        session.request.assert_not_called()


class TestGraphClient:
    """Tests for GraphClient specifics."""

    def test_prefer_header_and_pagination(self) -> None:
        """Test immutable-id header and nextLink following up to max_items."""
        session = MagicMock()
        session.request.side_effect = [
            response(200, {"value": [{"id": 1}, {"id": 2}], "@odata.nextLink": "https://next/1"}),
            response(200, {"value": [{"id": 3}], "@odata.nextLink": "https://next/2"}),
        ]
        tokens = MagicMock()
        tokens.get_valid_token.return_value = "tok"
        client = GraphClient(tokens, session=session)

        items = client.paginate("/me/messages", max_items=3)

        assert [i["id"] for i in items] == [1, 2, 3]
        assert session.request.call_count == 2
        first = session.request.call_args_list[0].kwargs
        assert 'IdType="ImmutableId"' in first["headers"]["Prefer"]
        assert first["params"]["$top"] == 50
        assert session.request.call_args_list[1].kwargs["url"] == "https://next/1"
