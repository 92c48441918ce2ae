"""
Gemini Client - LLM client for the Google Generative Language REST API.

Gemini has no system role in the ``generateContent`` call used here, so
system messages are folded into the first user turn.
"""

import asyncio
import time
from typing import Any

import httpx

from sentry.agent.llm.client import (
    LLMClient,
    LLMConfigurationError,
    LLMEmptyResponseError,
    LLMError,
    LLMProvider,
    LLMRateLimitError,
    LLMResponse,
    LLMResponseError,
    LLMTimeoutError,
    LLMTruncatedResponseError,
    TokenUsage,
)


class GeminiClient(LLMClient):
    """Client for ``models/<model>:generateContent``."""

    def __init__(
        self,
        model: str = "gemini-1.5-flash",
        api_key: str | None = None,
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        max_tokens: int = 1024,
        temperature: float = 0.1,
        timeout: float = 30.0,
        max_retries: int = 1,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(
            model=model,
            max_tokens=max_tokens,
            temperature=temperature,
            timeout=timeout,
            max_retries=max_retries,
        )
        self.api_key = api_key or None
        self.base_url = base_url.rstrip("/")
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def provider(self) -> LLMProvider:
        return LLMProvider.GEMINI

    @property
    def is_available(self) -> bool:
        return bool(self.api_key)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    @staticmethod
    def _to_contents(messages: list[dict[str, str]]) -> list[dict[str, Any]]:
        system = "\n\n".join(m["content"] for m in messages if m["role"] == "system")
        contents: list[dict[str, Any]] = []

        for message in messages:
            if message["role"] == "system":
                continue
            text = message["content"]
            if system and not contents:
                text = f"{system}\n\n{text}"
            role = "model" if message["role"] == "assistant" else "user"
            contents.append({"role": role, "parts": [{"text": text}]})

        if not contents and system:
            contents.append({"role": "user", "parts": [{"text": system}]})
        return contents

    async def complete_with_messages(
        self,
        messages: list[dict[str, str]],
        **options,
    ) -> LLMResponse:
        """
        Generate a completion.

        Raises:
            LLMConfigurationError: If GEMINI_API_KEY is missing.
            LLMError: If the request fails.
        """
        if not self.is_available:
            raise LLMConfigurationError(
                "Gemini API key not configured. Set GEMINI_API_KEY.",
                context={"model": self.model},
            )

        body: dict[str, Any] = {
            "contents": self._to_contents(messages),
            "generationConfig": {
                "temperature": self.temperature,
                "maxOutputTokens": self.max_tokens,
            },
        }
        if options.get("json_mode"):
            body["generationConfig"]["responseMimeType"] = "application/json"

        url = f"{self.base_url}/models/{self.model}:generateContent"
        error_context = {"provider": self.provider.value, "model": self.model}
        client = self._get_client()
        last_error: LLMError | None = None

        for attempt in range(self.max_retries):
            try:
                start_time = time.time()
                response = await client.post(url, params={"key": self.api_key}, json=body)
                latency = time.time() - start_time

                if response.status_code == 429:
                    last_error = LLMRateLimitError("Rate limit exceeded", context=error_context)
                    if attempt < self.max_retries - 1:
                        await asyncio.sleep(2 ** attempt)
                        continue
                    raise last_error

                if response.status_code != 200:
                    raise LLMError(
                        f"Gemini API error (status {response.status_code}): {response.text[:1000]}",
                        is_retryable=response.status_code >= 500,
                        context={**error_context, "status_code": response.status_code},
                    )

                try:
                    data = response.json()
                except ValueError as e:
                    raise LLMResponseError(
                        f"Response body is not JSON: {e}",
                        raw_response=response.text,
                        context=error_context,
                    ) from e

                return self._parse_response(data, latency)

            except httpx.TimeoutException as e:
                last_error = LLMTimeoutError(
                    f"Request timed out after {self.timeout}s: {e}",
                    timeout=self.timeout,
                    context=error_context,
                )
            except httpx.RequestError as e:
                last_error = LLMError(
                    f"Request failed: {e}",
                    is_retryable=True,
                    context={**error_context, "error_type": type(e).__name__},
                )

            if attempt < self.max_retries - 1:
                await asyncio.sleep(2 ** attempt)

        raise last_error or LLMError("Max retries exceeded", context=error_context)

    def _parse_response(self, data: Any, latency: float) -> LLMResponse:
        try:
            candidates = data.get("candidates") or []
            if not candidates:
                feedback = data.get("promptFeedback") or {}
                raise LLMResponseError(
                    f"No candidates in response (block reason: {feedback.get('blockReason', 'none')})",
                    raw_response=str(data),
                    context={"model": self.model},
                )

            candidate = candidates[0]
            parts = (candidate.get("content") or {}).get("parts") or []
            content = "".join(
                part.get("text") or "" for part in parts if isinstance(part, dict)
            )
            finish_reason = candidate.get("finishReason")

            usage_data = data.get("usageMetadata") or {}
            usage = TokenUsage(
                prompt_tokens=usage_data.get("promptTokenCount", 0),
                completion_tokens=usage_data.get("candidatesTokenCount", 0),
                total_tokens=usage_data.get("totalTokenCount", 0),
            )
        except (AttributeError, TypeError, KeyError, IndexError) as e:
            raise LLMResponseError(
                f"Failed to parse response: {e}",
                raw_response=str(data),
                context={"model": self.model},
            ) from e

        if not content.strip():
            raise LLMEmptyResponseError(
                "Empty response from Gemini API",
                context={"model": self.model, "finish_reason": finish_reason},
            )
        if finish_reason == "MAX_TOKENS":
            raise LLMTruncatedResponseError(
                finish_reason=finish_reason,
                context={"model": self.model, "max_tokens": self.max_tokens},
            )

        self._update_usage(usage)

        return LLMResponse(
            content=content,
            model=data.get("modelVersion", self.model),
            provider=self.provider,
            usage=usage,
            finish_reason=finish_reason,
            raw_response=data,
            latency_seconds=latency,
        )
