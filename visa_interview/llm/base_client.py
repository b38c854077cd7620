"""
Base LLM client with async interface and a single bounded call.

Each call is made once. Callers handle failures with their local fallbacks.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

from visa_interview.llm.exceptions import LLMError, LLMProviderError, LLMTimeoutError
from visa_interview.llm.response_parsing import parse_json_object

logger = logging.getLogger(__name__)


@dataclass
class LLMResponse:
    """Response from LLM API."""

    content: str
    tokens_used: int = 0
    latency_ms: int = 0
    model_used: str = ""


class BaseLLMClient(ABC):
    """Abstract base class for LLM clients."""

    provider_name = "base"

    def __init__(
        self,
        api_key: str,
        model: str,
        temperature: float,
        max_tokens: int,
        timeout: int,
    ):
        """
        Initialize LLM client.

        Args:
            api_key: API key for the provider
            model: Model identifier
            temperature: Sampling temperature (0.0-2.0)
            max_tokens: Maximum tokens to generate
            timeout: Request timeout in seconds
        """
        self.api_key = api_key
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout

    @abstractmethod
    async def generate_completion(
        self,
        messages: list[dict[str, str]],
        json_mode: bool = True,
    ) -> LLMResponse:
        """
        Generate completion from LLM.

        Args:
            messages: Chat messages in OpenAI format
            json_mode: Ask the provider for a JSON object response

        Returns:
            LLMResponse: Response with content and metadata

        Raises:
            LLMProviderError: Provider API error
        """
        pass

    async def complete_json(
        self,
        system_prompt: str,
        user_prompt: str,
        timeout: float | None = None,
    ) -> dict:
        """
        Make one provider call and parse the reply as a JSON object.

        Args:
            system_prompt: System instructions
            user_prompt: User message
            timeout: Upper bound in seconds (defaults to the client timeout)

        Returns:
            Parsed JSON object

        Raises:
            LLMTimeoutError: Call exceeded the timeout
            LLMProviderError: Provider API error
            LLMValidationError: Reply was not a JSON object
        """
        wait_for = timeout if timeout is not None else self.timeout
        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]

        try:
            response = await asyncio.wait_for(
                self.generate_completion(messages, json_mode=True), timeout=wait_for
            )
        except asyncio.TimeoutError as e:
            raise LLMTimeoutError(f"{self.provider_name} call exceeded {wait_for}s") from e
        except LLMError:
            raise
        except Exception as e:
            raise LLMProviderError(f"{self.provider_name} call failed: {e}") from e

        logger.info(
            f"LLM call succeeded in {response.latency_ms}ms, "
            f"{response.tokens_used} tokens ({response.model_used})"
        )

        return parse_json_object(response.content)
