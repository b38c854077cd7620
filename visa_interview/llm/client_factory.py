"""
Factory for creating LLM clients based on use case.
"""

import logging
import os
from pathlib import Path
from typing import Literal

from visa_interview.llm.anthropic_client import AnthropicClient
from visa_interview.llm.base_client import BaseLLMClient
from visa_interview.llm.config import load_model_config
from visa_interview.llm.exceptions import LLMConfigError
from visa_interview.llm.openai_client import OpenAICompatibleClient

logger = logging.getLogger(__name__)

UseCase = Literal["question_selection", "answer_scoring", "final_evaluation"]

SUPPORTED_PROVIDERS = ("openai_compatible", "anthropic")


class LLMClientFactory:
    """Factory for creating the LLM client configured for a use case."""

    @staticmethod
    def create_client(
        use_case: UseCase,
        config_path: str | Path | None = None,
    ) -> BaseLLMClient:
        """
        Create LLM client for specified use case.

        Args:
            use_case: Which engine step the client serves
            config_path: Path to model configuration file

        Returns:
            BaseLLMClient: Configured client for the use case

        Raises:
            LLMConfigError: Invalid configuration or missing API key
        """
        config = load_model_config(config_path)

        if use_case not in config.models:
            raise LLMConfigError(f"Use case '{use_case}' not found in model configuration")

        model_config = config.models[use_case]

        api_key = os.getenv(model_config.api_key_env)
        if not api_key:
            raise LLMConfigError(
                f"API key not found: {model_config.api_key_env}. "
                f"Set environment variable for {use_case}."
            )

        provider_settings = config.provider_settings.get(model_config.provider)

        if model_config.provider == "openai_compatible":
            kwargs = {}
            if provider_settings and provider_settings.base_url:
                kwargs["base_url"] = provider_settings.base_url
            client = OpenAICompatibleClient(
                api_key=api_key,
                model=model_config.model,
                temperature=model_config.temperature,
                max_tokens=model_config.max_tokens,
                timeout=model_config.timeout_seconds,
                **kwargs,
            )

        elif model_config.provider == "anthropic":
            client = AnthropicClient(
                api_key=api_key,
                model=model_config.model,
                temperature=model_config.temperature,
                max_tokens=model_config.max_tokens,
                timeout=model_config.timeout_seconds,
            )

        else:
            raise LLMConfigError(
                f"Unsupported provider: {model_config.provider}. "
                f"Supported providers: {', '.join(SUPPORTED_PROVIDERS)}"
            )

        logger.info(
            f"Created {model_config.provider} client for {use_case}: {model_config.model} "
            f"(temp={model_config.temperature}, max_tokens={model_config.max_tokens}, "
            f"timeout={model_config.timeout_seconds}s)"
        )

        return client

    @staticmethod
    def create_optional_client(
        use_case: UseCase,
        config_path: str | Path | None = None,
    ) -> BaseLLMClient | None:
        """
        Create a client, or return None when the API key is not set.

        Without a key every LLM step uses its local fallback, so a missing key
        is a warning rather than an error. Broken configuration still raises.

        Args:
            use_case: Which engine step the client serves
            config_path: Path to model configuration file

        Returns:
            Configured client, or None when no API key is available

        Raises:
            LLMConfigError: Invalid configuration
        """
        config = load_model_config(config_path)
        model_config = config.models.get(use_case)

        if model_config is not None and not os.getenv(model_config.api_key_env):
            logger.warning(
                f"{model_config.api_key_env} not set - {use_case} will use local fallbacks"
            )
            return None

        return LLMClientFactory.create_client(use_case, config_path)
