"""
Tests for the OpenRouter Client

Request shape, retry behaviour and cost estimation, against an
httpx.MockTransport.
"""
import json
from unittest.mock import AsyncMock

import httpx
import pytest

from src.homematch.utils.exceptions import GenerationError
from src.homematch.vibes.openrouter_client import OpenRouterClient, calculate_usage

COMPLETION = {
    "choices": [{"message": {"content": "{\"ok\": true}"}}],
    "usage": {"prompt_tokens": 1000, "completion_tokens": 500, "total_tokens": 1500},
}


def make_client(handler, **kwargs):
    sleep = AsyncMock()
    client = OpenRouterClient(
        api_key="test-key",
        transport=httpx.MockTransport(handler),
        sleep=sleep,
        **kwargs,
    )
    return client, sleep


class Responses:
    """Handler replaying a list of responses and recording requests."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class TestChatCompletion:
    """Tests for chat_completion."""

    async def test_success(self):
        """A completion returns the JSON body and usage."""
        handler = Responses(httpx.Response(200, json=COMPLETION))
        client, sleep = make_client(handler)

        response, usage = await client.chat_completion(
            [{"role": "user", "content": "hi"}],
            response_format={"type": "json_object"},
        )

        assert response["choices"][0]["message"]["content"] == "{\"ok\": true}"
        assert usage.total_tokens == 1500
        sleep.assert_not_awaited()

        request = handler.requests[0]
        assert request.url == "https://openrouter.ai/api/v1/chat/completions"
        assert request.headers["Authorization"] == "Bearer test-key"
        assert request.headers["X-Title"] == "HomeMatch Property Vibes"
        payload = json.loads(request.content)
        assert payload["model"] == "qwen/qwen3-vl-8b-instruct"
        assert payload["temperature"] == 0.7
        assert payload["max_tokens"] == 2000
        assert payload["response_format"] == {"type": "json_object"}

    async def test_rate_limit_honours_retry_after(self):
        """A 429 waits for Retry-After and retries."""
        handler = Responses(
            httpx.Response(429, headers={"Retry-After": "2"}),
            httpx.Response(200, json=COMPLETION),
        )
        client, sleep = make_client(handler)

        await client.chat_completion([{"role": "user", "content": "hi"}])

        sleep.assert_awaited_once_with(2.0)
        assert len(handler.requests) == 2

    async def test_rate_limit_default_wait(self):
        """Without Retry-After the client waits five seconds."""
        handler = Responses(httpx.Response(429), httpx.Response(200, json=COMPLETION))
        client, sleep = make_client(handler)

        await client.chat_completion([{"role": "user", "content": "hi"}])

        sleep.assert_awaited_once_with(5)

    async def test_server_errors_back_off_then_fail(self):
        """5xx responses back off exponentially and give up after max_retries."""
        handler = Responses(*[httpx.Response(502, text="bad gateway") for _ in range(3)])
        client, sleep = make_client(handler, max_retries=3)

        with pytest.raises(GenerationError) as excinfo:
            await client.chat_completion([{"role": "user", "content": "hi"}])

        assert excinfo.value.status == 502
        assert [call.args[0] for call in sleep.await_args_list] == [2, 4]
        assert len(handler.requests) == 3

    async def test_client_errors_fail_immediately(self):
        """4xx other than 429 are not retried."""
        handler = Responses(httpx.Response(401, text="unauthorized"))
        client, sleep = make_client(handler)

        with pytest.raises(GenerationError) as excinfo:
            await client.chat_completion([{"role": "user", "content": "hi"}])

        assert excinfo.value.status == 401
        assert len(handler.requests) == 1
        sleep.assert_not_awaited()

    async def test_network_error_is_retried(self):
        """Connection errors are retried with backoff."""
        handler = Responses(
            httpx.ConnectError("connection refused"),
            httpx.Response(200, json=COMPLETION),
        )
        client, sleep = make_client(handler)

        await client.chat_completion([{"role": "user", "content": "hi"}])

        sleep.assert_awaited_once_with(2)

    async def test_timeout(self):
        """Timeouts surface as a 408 generation error."""
        handler = Responses(httpx.ReadTimeout("timed out"))
        client, _ = make_client(handler)

        with pytest.raises(GenerationError) as excinfo:
            await client.chat_completion([{"role": "user", "content": "hi"}])

        assert excinfo.value.status == 408


class TestUsage:
    """Tests for cost estimation and message building."""

    def test_known_model_pricing(self):
        """Costs use the model's per-million token prices."""
        usage = calculate_usage(
            {"prompt_tokens": 1_000_000, "completion_tokens": 1_000_000}, "qwen/qwen3-vl-8b-instruct"
        )

        assert usage.estimated_cost_usd == pytest.approx(0.464)
        assert usage.total_tokens == 2_000_000

    def test_unknown_model_uses_fallback_pricing(self):
        """Unknown models are priced like gpt-4o-mini."""
        usage = calculate_usage({"prompt_tokens": 1_000_000}, "someone/new-model")

        assert usage.estimated_cost_usd == pytest.approx(0.15)

    def test_missing_usage(self):
        """No usage block means zero cost."""
        assert calculate_usage(None, "openai/gpt-4o").estimated_cost_usd == 0

    def test_vision_message(self):
        """Prompt text comes first, then one image part per URL."""
        message = OpenRouterClient.create_vision_message("Describe", ["https://a/1.jpg", "https://a/2.jpg"])

        assert message["role"] == "user"
        assert message["content"][0] == {"type": "text", "text": "Describe"}
        assert message["content"][2] == {
            "type": "image_url",
            "image_url": {"url": "https://a/2.jpg", "detail": "low"},
        }
