"""LLM provider clients for the visa interview engine."""

from visa_interview.llm.base_client import BaseLLMClient, LLMResponse
from visa_interview.llm.client_factory import LLMClientFactory
from visa_interview.llm.exceptions import (
    LLMConfigError,
    LLMError,
    LLMProviderError,
    LLMTimeoutError,
    LLMValidationError,
)

__all__ = [
    "BaseLLMClient",
    "LLMResponse",
    "LLMClientFactory",
    "LLMError",
    "LLMProviderError",
    "LLMTimeoutError",
    "LLMValidationError",
    "LLMConfigError",
]
