"""Tests for the OpenAI Chat Completions integration."""

import asyncio
import time
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from sprint_engine.core.config import get_settings
from sprint_engine.core.errors import (
    ConfigurationError,
    UpstreamAuthError,
    UpstreamFailureError,
    UpstreamQuotaError,
    UpstreamTimeoutError,
)
from sprint_engine.integrations.openai_client import OpenAIService

MESSAGES = [{"role": "system", "content": "sys"}, {"role": "user", "content": "hi"}]


def make_response(status_code: int, json_data=None, text: str = "") -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    if isinstance(json_data, Exception):
        response.json.side_effect = json_data
    else:
        response.json.return_value = json_data
    return response


@pytest.fixture
def mock_http():
    """Patch the async HTTP client used by the service."""
    with patch("sprint_engine.integrations.openai_client.httpx.AsyncClient") as mock:
        mock_instance = AsyncMock()
        mock.return_value.__aenter__.return_value = mock_instance
        mock.return_value.__aexit__.return_value = None
        yield mock_instance


@pytest.fixture
def service() -> OpenAIService:
    return OpenAIService()


class TestRequestShape:

    def test_headers_carry_idempotency_key(self, service):
        headers = service.build_headers("key-123")
        assert headers["Authorization"] == "Bearer sk-test"
        assert headers["Idempotency-Key"] == "key-123"

    def test_payload_requests_json_object(self, service):
        payload = service.build_payload("gpt-4o-mini", MESSAGES)
        assert payload["response_format"] == {"type": "json_object"}
        assert payload["messages"] == MESSAGES


class TestCreateChatCompletion:
    """Tests for create_chat_completion outcome mapping."""

    async def test_success(self, service, mock_http):
        mock_http.post.return_value = make_response(200, {
            "id": "chatcmpl-1",
            "model": "gpt-4o-mini-2024-07-18",
            "choices": [{"message": {"content": "{\"title\": \"X\"}"}, "finish_reason": "stop"}],
            "usage": {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15},
        })

        completion = await service.create_chat_completion("gpt-4o-mini", MESSAGES, "key-1")

        assert completion.content == "{\"title\": \"X\"}"
        assert completion.provider_response_id == "chatcmpl-1"
        assert completion.usage.total_tokens == 15
        _, kwargs = mock_http.post.call_args
        assert kwargs["headers"]["Idempotency-Key"] == "key-1"
        assert kwargs["json"]["model"] == "gpt-4o-mini"

    @pytest.mark.parametrize("status,error", [
        (401, UpstreamAuthError),
        (403, UpstreamAuthError),
        (429, UpstreamQuotaError),
        (500, UpstreamFailureError),
        (503, UpstreamFailureError),
    ])
    async def test_status_mapping(self, service, mock_http, status, error):
        mock_http.post.return_value = make_response(status, text="provider said no")

        with pytest.raises(error) as exc_info:
            await service.create_chat_completion("gpt-4o-mini", MESSAGES)

        assert exc_info.value.details["status"] == status

    async def test_timeout(self, service, mock_http):
        mock_http.post.side_effect = httpx.ReadTimeout("slow")

        with pytest.raises(UpstreamTimeoutError) as exc_info:
            await service.create_chat_completion("gpt-4o-mini", MESSAGES)
        assert exc_info.value.status_code == 504

    async def test_transport_error(self, service, mock_http):
        mock_http.post.side_effect = httpx.ConnectError("refused")

        with pytest.raises(UpstreamFailureError):
            await service.create_chat_completion("gpt-4o-mini", MESSAGES)

    async def test_unreadable_envelope(self, service, mock_http):
        mock_http.post.return_value = make_response(200, ValueError("no json"), text="<html>")

        with pytest.raises(UpstreamFailureError):
            await service.create_chat_completion("gpt-4o-mini", MESSAGES)

    async def test_missing_key(self, service, mock_http):
        service._settings = MagicMock(OPENAI_API_KEY="")

        with pytest.raises(ConfigurationError):
            await service.create_chat_completion("gpt-4o-mini", MESSAGES)
        mock_http.post.assert_not_called()


class TestParseCompletion:

    def test_empty_envelope(self):
        completion = OpenAIService.parse_completion({}, "gpt-4o")
        assert completion.content == ""
        assert completion.model == "gpt-4o"
        assert completion.usage.total_tokens is None


class TestWallClockBudget:
    """The timeout bounds the whole call, not each read."""

    async def test_trickling_response_times_out(self, service):
        body = b'{"choices": [{"message": {"content": "{}"}}]}'

        async def trickle():
            for byte in body:
                await asyncio.sleep(0.05)
                yield bytes([byte])

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=trickle())

        real_client = httpx.AsyncClient

        def client_factory(**kwargs):
            return real_client(transport=httpx.MockTransport(handler), **kwargs)

        service._settings = get_settings().model_copy(update={"OPENAI_TIMEOUT_SECONDS": 0.3})
        started = time.monotonic()

        with patch("sprint_engine.integrations.openai_client.httpx.AsyncClient", side_effect=client_factory):
            with pytest.raises(UpstreamTimeoutError) as exc_info:
                await service.create_chat_completion("gpt-4o-mini", MESSAGES)

        assert time.monotonic() - started < 1.5
        assert exc_info.value.details == {"timeout_seconds": 0.3}
