"""
OpenAI-compatible LLM client implementation.

Works against any gateway that speaks the chat completions protocol
(OpenAI itself, CometAPI, Moonshot, ...), selected through ``base_url``.
"""

import logging
import time

from openai import AsyncOpenAI

from visa_interview.llm.base_client import BaseLLMClient, LLMResponse
from visa_interview.llm.exceptions import LLMProviderError

logger = logging.getLogger(__name__)


class OpenAICompatibleClient(BaseLLMClient):
    """LLM client for OpenAI-compatible chat completion APIs."""

    provider_name = "openai_compatible"

    def __init__(
        self,
        api_key: str,
        model: str,
        temperature: float,
        max_tokens: int,
        timeout: int,
        base_url: str = "https://api.cometapi.com/v1",
    ):
        """
        Initialize OpenAI-compatible client.

        Args:
            api_key: Gateway API key
            model: Model identifier (e.g., "claude-haiku-4-5-20251001")
            temperature: Sampling temperature
            max_tokens: Maximum tokens to generate
            timeout: Request timeout in seconds
            base_url: Gateway base URL
        """
        super().__init__(api_key, model, temperature, max_tokens, timeout)
        self.base_url = base_url
        self.client = AsyncOpenAI(api_key=api_key, base_url=base_url, max_retries=0)

    async def generate_completion(
        self,
        messages: list[dict[str, str]],
        json_mode: bool = True,
    ) -> LLMResponse:
        """
        Generate completion from the chat completions endpoint.

        Args:
            messages: Chat messages in OpenAI format
            json_mode: Request ``response_format={"type": "json_object"}``

        Returns:
            LLMResponse: Response with content and metadata

        Raises:
            LLMProviderError: Gateway API error
        """
        start_time = time.time()

        kwargs = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "timeout": self.timeout,
        }

        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        try:
            response = await self.client.chat.completions.create(**kwargs)
        except Exception as e:
            raise LLMProviderError(f"OpenAI-compatible API error: {e}") from e

        latency_ms = int((time.time() - start_time) * 1000)

        if not response.choices:
            raise LLMProviderError("OpenAI-compatible API returned no choices")

        content = response.choices[0].message.content or ""
        tokens_used = response.usage.total_tokens if response.usage else 0

        logger.debug(f"{self.model} replied with {len(content)} chars")

        return LLMResponse(
            content=content,
            tokens_used=tokens_used,
            latency_ms=latency_ms,
            model_used=self.model,
        )
