"""
OpenAI Client - LLM client for OpenAI-compatible chat completion APIs.

Supports:
- OpenAI API (GPT-4o and friends)
- OpenRouter, which speaks the same protocol and allows anonymous access
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


class OpenAIClient(LLMClient):
    """
    Chat completions client for OpenAI-compatible endpoints.

    Pass ``json_mode=True`` to a completion call to request
    ``response_format={"type": "json_object"}``.
    """

    def __init__(
        self,
        model: str = "gpt-4o",
        api_key: str | None = None,
        base_url: str = "https://api.openai.com/v1",
        provider: LLMProvider = LLMProvider.OPENAI,
        require_api_key: bool = True,
        extra_headers: dict[str, str] | None = None,
        max_tokens: int = 1024,
        temperature: float = 0.1,
        timeout: float = 30.0,
        max_retries: int = 1,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize the client.

        Args:
            model: Model identifier.
            api_key: Bearer token; omitted from requests when empty.
            base_url: API base URL (without ``/chat/completions``).
            provider: Provider reported in responses.
            require_api_key: Refuse to send requests without a key.
            extra_headers: Additional headers (OpenRouter attribution).
            max_tokens: Maximum tokens in response.
            temperature: Sampling temperature.
            timeout: Request timeout in seconds.
            max_retries: Attempts per request.
            transport: Optional httpx transport, mainly for tests.
        """
        super().__init__(
            model=model,
            max_tokens=max_tokens,
            temperature=temperature,
            timeout=timeout,
            max_retries=max_retries,
        )
        self.api_key = api_key or None
        self.base_url = base_url.rstrip("/")
        self._provider = provider
        self.require_api_key = require_api_key
        self.extra_headers = extra_headers or {}
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def provider(self) -> LLMProvider:
        return self._provider

    @property
    def is_available(self) -> bool:
        return bool(self.api_key) or not self.require_api_key

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            headers = {"Content-Type": "application/json", **self.extra_headers}
            if self.api_key:
                headers["Authorization"] = f"Bearer {self.api_key}"

            self._client = httpx.AsyncClient(
                headers=headers,
                timeout=self.timeout,
                transport=self._transport,
            )

        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def complete_with_messages(
        self,
        messages: list[dict[str, str]],
        **options,
    ) -> LLMResponse:
        """
        Generate a completion using chat message format.

        Raises:
            LLMConfigurationError: If a required API key is missing.
            LLMError: If the request fails.
        """
        if not self.is_available:
            raise LLMConfigurationError(
                f"{self.provider.value} API key not configured",
                context={"model": self.model},
            )

        client = self._get_client()

        body: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
        }
        if options.get("json_mode"):
            body["response_format"] = {"type": "json_object"}

        error_context = {
            "provider": self.provider.value,
            "model": self.model,
            "base_url": self.base_url,
        }

        last_error: LLMError | None = None

        for attempt in range(self.max_retries):
            try:
                start_time = time.time()
                response = await client.post(f"{self.base_url}/chat/completions", json=body)
                latency = time.time() - start_time

                if response.status_code == 429:
                    retry_after = response.headers.get("retry-after")
                    retry_seconds = int(retry_after) if retry_after and retry_after.isdigit() else 60
                    last_error = LLMRateLimitError(
                        "Rate limit exceeded",
                        retry_after=retry_seconds,
                        context=error_context,
                    )
                    if attempt < self.max_retries - 1:
                        await asyncio.sleep(min(retry_seconds, 30))
                        continue
                    raise last_error

                if response.status_code != 200:
                    raise LLMError(
                        f"{self.provider.value} API error (status {response.status_code}): "
                        f"{response.text[:1000]}",
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
                    suggestion="Check network connectivity and the API base URL.",
                )

            if attempt < self.max_retries - 1:
                await asyncio.sleep(2 ** attempt)

        raise last_error or LLMError("Max retries exceeded", context=error_context)

    def _parse_response(self, data: Any, latency: float) -> LLMResponse:
        """Parse a chat completions payload.

        Raises:
            LLMResponseError: If the payload has no choices or an unexpected shape.
            LLMEmptyResponseError: If the model returned empty content.
            LLMTruncatedResponseError: If the output hit max_tokens.
        """
        try:
            choices = data.get("choices") or []
            if not choices:
                raise LLMResponseError(
                    "No choices in response",
                    raw_response=str(data),
                    context={"model": self.model},
                )

            choice = choices[0]
            content = (choice.get("message") or {}).get("content") or ""
            finish_reason = choice.get("finish_reason")
            if not isinstance(content, str):
                raise LLMResponseError(
                    f"Unexpected content type: {type(content).__name__}",
                    raw_response=str(data),
                    context={"model": self.model},
                )

            usage_data = data.get("usage") or {}
            usage = TokenUsage(
                prompt_tokens=usage_data.get("prompt_tokens", 0),
                completion_tokens=usage_data.get("completion_tokens", 0),
                total_tokens=usage_data.get("total_tokens", 0),
            )
        except (AttributeError, TypeError, KeyError, IndexError) as e:
            raise LLMResponseError(
                f"Failed to parse response: {e}",
                raw_response=str(data),
                context={"model": self.model},
            ) from e

        if not content.strip():
            raise LLMEmptyResponseError(
                context={"model": self.model, "finish_reason": finish_reason},
            )

        if finish_reason == "length":
            raise LLMTruncatedResponseError(
                finish_reason=finish_reason,
                context={"model": self.model, "max_tokens": self.max_tokens},
            )

        self._update_usage(usage)

        return LLMResponse(
            content=content,
            model=data.get("model", self.model),
            provider=self.provider,
            usage=usage,
            finish_reason=finish_reason,
            raw_response=data,
            latency_seconds=latency,
        )
