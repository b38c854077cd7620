"""
Model configuration for the engine's three LLM use cases.

``configs/model_config.yaml`` maps each use case (question_selection,
answer_scoring, final_evaluation) to a provider, model and limits. API keys
are never stored in the file, only the name of the environment variable
that holds them.
"""

import logging
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError

from visa_interview.llm.exceptions import LLMConfigError

logger = logging.getLogger(__name__)

DEFAULT_MODEL_CONFIG_PATH = Path(__file__).resolve().parent.parent / "configs" / "model_config.yaml"


class ModelConfig(BaseModel):
    """Provider, model and limits for one use case."""

    provider: str
    model: str
    api_key_env: str = Field(description="Environment variable holding the API key")
    temperature: float = Field(ge=0.0, le=2.0)
    max_tokens: int = Field(gt=0)
    timeout_seconds: float = Field(gt=0, description="Upper bound for one call")


class ProviderSettings(BaseModel):
    base_url: str | None = None


class LLMConfig(BaseModel):
    """Parsed model_config.yaml."""

    models: dict[str, ModelConfig]
    provider_settings: dict[str, ProviderSettings] = Field(default_factory=dict)


def load_model_config(config_path: str | Path | None = None) -> LLMConfig:
    """
    Read and validate the model configuration.

    Args:
        config_path: YAML file (defaults to the packaged model_config.yaml)

    Returns:
        LLMConfig

    Raises:
        LLMConfigError: File missing, unparseable or failing validation
    """
    path = Path(config_path) if config_path else DEFAULT_MODEL_CONFIG_PATH
    if not path.exists():
        raise LLMConfigError(f"Configuration file not found: {path}")

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise LLMConfigError(f"Failed to parse YAML in {path}: {e}") from e

    if not isinstance(raw, dict):
        raise LLMConfigError(f"Model configuration must be a mapping: {path}")

    try:
        config = LLMConfig.model_validate(raw)
    except ValidationError as e:
        raise LLMConfigError(f"Invalid model configuration in {path}: {e}") from e

    logger.debug(f"Model config {path.name}: use cases {sorted(config.models)}")
    return config
