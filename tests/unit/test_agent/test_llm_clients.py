"""Tests for the HTTP LLM clients."""

import json

import httpx
import pytest

from sentry.agent.llm import (
    GeminiClient,
    LLMConfigurationError,
    LLMEmptyResponseError,
    LLMError,
    LLMProvider,
    LLMRateLimitError,
    LLMResponseError,
    LLMTimeoutError,
    LLMTruncatedResponseError,
    OpenAIClient,
)


def _completion(content: str, finish_reason: str = "stop") -> dict:
    return {
        "model": "gpt-4o-2024",
        "choices": [{"message": {"role": "assistant", "content": content}, "finish_reason": finish_reason}],
        "usage": {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15},
    }


class Recorder:
    """MockTransport handler that records requests and returns a fixed response."""

    def __init__(self, response: httpx.Response | Exception):
        self.response = response
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if isinstance(self.response, Exception):
            raise self.response
        return self.response

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    def body(self, index: int = 0) -> dict:
        return json.loads(self.requests[index].content)


class TestOpenAIClient:
    """Tests for OpenAIClient."""

    @pytest.mark.asyncio
    async def test_successful_completion(self) -> None:
        recorder = Recorder(httpx.Response(200, json=_completion('{"hypotheses": []}')))
        client = OpenAIClient(model="gpt-4o", api_key="sk-test", transport=recorder.transport)

        async with client:
            response = await client.complete_with_context("system", "user", json_mode=True)

        assert response.content == '{"hypotheses": []}'
        assert response.model == "gpt-4o-2024"
        assert response.provider == LLMProvider.OPENAI
        assert response.usage.total_tokens == 15
        assert client.get_total_usage().total_tokens == 15

        request = recorder.requests[0]
        assert str(request.url) == "https://api.openai.com/v1/chat/completions"
        assert request.headers["Authorization"] == "Bearer sk-test"
        body = recorder.body()
        assert body["model"] == "gpt-4o"
        assert body["response_format"] == {"type": "json_object"}
        assert [m["role"] for m in body["messages"]] == ["system", "user"]

    @pytest.mark.asyncio
    async def test_anonymous_openrouter_omits_authorization(self) -> None:
        recorder = Recorder(httpx.Response(200, json=_completion("ok")))
        client = OpenAIClient(
            model="moonshotai/kimi-k2",
            base_url="https://openrouter.ai/api/v1/",
            provider=LLMProvider.OPENROUTER,
            require_api_key=False,
            extra_headers={"X-Title": "SENTRY"},
            transport=recorder.transport,
        )

        response = await client.complete_with_context("system", "hello")
        await client.close()

        request = recorder.requests[0]
        assert str(request.url) == "https://openrouter.ai/api/v1/chat/completions"
        assert "Authorization" not in request.headers
        assert request.headers["X-Title"] == "SENTRY"
        assert "response_format" not in recorder.body()
        assert response.provider == LLMProvider.OPENROUTER

    @pytest.mark.asyncio
    async def test_missing_required_key(self) -> None:
        client = OpenAIClient(model="gpt-4o", api_key=None)

        assert client.is_available is False
        with pytest.raises(LLMConfigurationError):
            await client.complete_with_context("system", "hello")

    @pytest.mark.asyncio
    async def test_rate_limited(self) -> None:
        recorder = Recorder(httpx.Response(429, headers={"retry-after": "7"}))
        client = OpenAIClient(api_key="sk", transport=recorder.transport)

        with pytest.raises(LLMRateLimitError) as exc_info:
            await client.complete_with_context("system", "hello")

        assert exc_info.value.retry_after == 7

    @pytest.mark.asyncio
    async def test_http_error_status(self) -> None:
        recorder = Recorder(httpx.Response(500, text="upstream exploded"))
        client = OpenAIClient(api_key="sk", transport=recorder.transport)

        with pytest.raises(LLMError, match="status 500") as exc_info:
            await client.complete_with_context("system", "hello")

        assert exc_info.value.is_retryable is True

    @pytest.mark.asyncio
    async def test_non_json_body(self) -> None:
        recorder = Recorder(httpx.Response(200, text="<html>gateway</html>"))
        client = OpenAIClient(api_key="sk", transport=recorder.transport)

        with pytest.raises(LLMResponseError):
            await client.complete_with_context("system", "hello")

    @pytest.mark.asyncio
    async def test_empty_content(self) -> None:
        recorder = Recorder(httpx.Response(200, json=_completion("   ")))
        client = OpenAIClient(api_key="sk", transport=recorder.transport)

        with pytest.raises(LLMEmptyResponseError):
            await client.complete_with_context("system", "hello")

    @pytest.mark.asyncio
    async def test_truncated(self) -> None:
        recorder = Recorder(httpx.Response(200, json=_completion('{"hypo', finish_reason="length")))
        client = OpenAIClient(api_key="sk", transport=recorder.transport)

        with pytest.raises(LLMTruncatedResponseError):
            await client.complete_with_context("system", "hello")

    @pytest.mark.asyncio
    async def test_no_choices(self) -> None:
        recorder = Recorder(httpx.Response(200, json={"choices": []}))
        client = OpenAIClient(api_key="sk", transport=recorder.transport)

        with pytest.raises(LLMResponseError, match="No choices"):
            await client.complete_with_context("system", "hello")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [
            [{"choices": []}],
            {"choices": ["not-a-dict"]},
            {"choices": [{"message": {"content": [{"type": "text", "text": "hi"}]}}]},
        ],
    )
    async def test_unexpected_shape(self, payload) -> None:
        recorder = Recorder(httpx.Response(200, json=payload))
        client = OpenAIClient(api_key="sk", transport=recorder.transport)

        with pytest.raises(LLMResponseError):
            await client.complete_with_context("system", "hello")

    @pytest.mark.asyncio
    async def test_timeout(self) -> None:
        recorder = Recorder(httpx.ReadTimeout("slow"))
        client = OpenAIClient(api_key="sk", timeout=1.0, transport=recorder.transport)

        with pytest.raises(LLMTimeoutError):
            await client.complete_with_context("system", "hello")

        assert len(recorder.requests) == 1

    @pytest.mark.asyncio
    async def test_connection_error(self) -> None:
        recorder = Recorder(httpx.ConnectError("refused"))
        client = OpenAIClient(api_key="sk", transport=recorder.transport)

        with pytest.raises(LLMError, match="Request failed"):
            await client.complete_with_context("system", "hello")


class TestGeminiClient:
    """Tests for GeminiClient."""

    @staticmethod
    def _payload(text: str, finish_reason: str = "STOP") -> dict:
        return {
            "candidates": [{"content": {"parts": [{"text": text}]}, "finishReason": finish_reason}],
            "usageMetadata": {"promptTokenCount": 3, "candidatesTokenCount": 4, "totalTokenCount": 7},
        }

    @pytest.mark.asyncio
    async def test_successful_completion(self) -> None:
        recorder = Recorder(httpx.Response(200, json=self._payload('{"hypotheses": []}')))
        client = GeminiClient(model="gemini-1.5-flash", api_key="g-key", transport=recorder.transport)

        response = await client.complete_with_context("be strict", "audit this", json_mode=True)

        request = recorder.requests[0]
        assert request.url.path.endswith("/models/gemini-1.5-flash:generateContent")
        assert request.url.params["key"] == "g-key"
        body = recorder.body()
        assert body["generationConfig"]["responseMimeType"] == "application/json"
        assert body["contents"] == [
            {"role": "user", "parts": [{"text": "be strict\n\naudit this"}]}
        ]
        assert response.content == '{"hypotheses": []}'
        assert response.usage.total_tokens == 7
        assert response.provider == LLMProvider.GEMINI

    @pytest.mark.asyncio
    async def test_requires_key(self) -> None:
        with pytest.raises(LLMConfigurationError):
            await GeminiClient(api_key=None).complete_with_context("system", "hello")

    @pytest.mark.asyncio
    async def test_blocked_prompt(self) -> None:
        recorder = Recorder(httpx.Response(200, json={"promptFeedback": {"blockReason": "SAFETY"}}))
        client = GeminiClient(api_key="g", transport=recorder.transport)

        with pytest.raises(LLMResponseError, match="SAFETY"):
            await client.complete_with_context("system", "hello")

    @pytest.mark.asyncio
    async def test_truncated(self) -> None:
        recorder = Recorder(httpx.Response(200, json=self._payload("{", finish_reason="MAX_TOKENS")))
        client = GeminiClient(api_key="g", transport=recorder.transport)

        with pytest.raises(LLMTruncatedResponseError):
            await client.complete_with_context("system", "hello")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [
            [{"candidates": []}],
            {"candidates": ["not-a-dict"]},
            {"candidates": {"first": {}}},
            {"candidates": [{"content": {"parts": [{"text": 42}]}}]},
        ],
    )
    async def test_unexpected_shape(self, payload) -> None:
        recorder = Recorder(httpx.Response(200, json=payload))
        client = GeminiClient(api_key="g", transport=recorder.transport)

        with pytest.raises(LLMResponseError):
            await client.complete_with_context("system", "hello")

    def test_assistant_turns_map_to_model_role(self) -> None:
        contents = GeminiClient._to_contents([
            {"role": "user", "content": "a"},
            {"role": "assistant", "content": "b"},
        ])

        assert [c["role"] for c in contents] == ["user", "model"]
