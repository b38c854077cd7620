"""
Exceptions raised by LLM providers.

Callers in the interview engine catch ``LLMError`` and fall back to local
heuristics; none of these ever reach the candidate.
"""


class LLMError(Exception):
    """Base exception for LLM-related errors."""

    pass


class LLMProviderError(LLMError):
    """Provider API failed (transport error or non-2xx response)."""

    pass


class LLMTimeoutError(LLMError):
    """Provider did not answer within the bounded wait."""

    pass


class LLMValidationError(LLMError):
    """Provider answered, but the content is not a usable JSON object."""

    pass


class LLMConfigError(LLMError):
    """Model configuration is missing or invalid."""

    pass
