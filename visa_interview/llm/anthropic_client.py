"""
Anthropic (Claude) client for the messages API.
"""

import logging
import time

from anthropic import AsyncAnthropic

from visa_interview.llm.base_client import BaseLLMClient, LLMResponse
from visa_interview.llm.exceptions import LLMProviderError

logger = logging.getLogger(__name__)

JSON_REMINDER = "Respond with a single JSON object and nothing else."


def to_anthropic_messages(
    messages: list[dict[str, str]], json_mode: bool
) -> tuple[str | None, list[dict[str, str]]]:
    """
    Split chat-format messages into Anthropic's system text and turns.

    Anthropic has no JSON response mode, so ``json_mode`` appends a
    reminder to the system text instead.

    Returns:
        Tuple of (system text or None, user/assistant turns)
    """
    system_parts = [m["content"] for m in messages if m["role"] == "system"]
    turns = [{"role": m["role"], "content": m["content"]} for m in messages if m["role"] != "system"]

    if json_mode:
        system_parts.append(JSON_REMINDER)

    system = "\n\n".join(system_parts) if system_parts else None
    return system, turns


class AnthropicClient(BaseLLMClient):
    """Client for the Anthropic messages API."""

    provider_name = "anthropic"

    def __init__(
        self,
        api_key: str,
        model: str,
        temperature: float,
        max_tokens: int,
        timeout: int,
    ):
        super().__init__(api_key, model, temperature, max_tokens, timeout)
        self.client = AsyncAnthropic(api_key=api_key, max_retries=0)

    async def generate_completion(
        self,
        messages: list[dict[str, str]],
        json_mode: bool = True,
    ) -> LLMResponse:
        """
        Send one messages request.

        Args:
            messages: Chat messages; system entries become the system parameter
            json_mode: Ask for a JSON object reply

        Returns:
            LLMResponse with the concatenated text blocks

        Raises:
            LLMProviderError: Anthropic API error
        """
        system, turns = to_anthropic_messages(messages, json_mode)
        request = {
            "model": self.model,
            "messages": turns,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "timeout": self.timeout,
        }
        if system:
            request["system"] = system

        started = time.time()
        try:
            response = await self.client.messages.create(**request)
        except Exception as e:
            raise LLMProviderError(f"Anthropic API error: {e}") from e

        text = "".join(block.text for block in response.content if block.type == "text")
        logger.debug(f"{self.model} stop_reason={response.stop_reason} chars={len(text)}")

        return LLMResponse(
            content=text,
            tokens_used=response.usage.input_tokens + response.usage.output_tokens,
            latency_ms=int((time.time() - started) * 1000),
            model_used=self.model,
        )
