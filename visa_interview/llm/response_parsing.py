"""
Helpers for turning provider text into JSON objects.

Providers are asked for bare JSON, but routinely wrap it in markdown fences,
HTML tags, or a sentence of explanation. Everything here is strict about the
end result: the caller gets a dict or an ``LLMValidationError``.
"""

import json
import logging
import re

from visa_interview.llm.exceptions import LLMValidationError

logger = logging.getLogger(__name__)

_FENCE_OPEN = re.compile(r"^```(?:json)?\s*\n?", re.IGNORECASE)
_FENCE_CLOSE = re.compile(r"\n?```\s*$")
_HTML_WRAPPED = re.compile(r"<[^>]+>(\{.*\})</[^>]+>", re.DOTALL)
_OUTER_BRACES = re.compile(r"\{.*\}", re.DOTALL)


def strip_json_wrappers(content: str) -> str:
    """
    Remove markdown fences, HTML tags and surrounding prose from a JSON reply.

    Args:
        content: Raw text returned by the provider

    Returns:
        Text that should contain only the JSON document
    """
    text = _FENCE_CLOSE.sub("", _FENCE_OPEN.sub("", content.strip())).strip()

    html_match = _HTML_WRAPPED.search(text)
    if html_match:
        logger.debug("Extracted JSON from HTML tags")
        return html_match.group(1)

    brace_match = _OUTER_BRACES.search(text)
    if brace_match and brace_match.group(0) != text:
        logger.debug("Extracted JSON from explanatory text")
        return brace_match.group(0)

    return text


def parse_json_object(content: str) -> dict:
    """
    Parse provider content into a JSON object.

    Args:
        content: Raw text returned by the provider

    Returns:
        Parsed JSON object

    Raises:
        LLMValidationError: Content is empty, not JSON, or not an object
    """
    if not content or not content.strip():
        raise LLMValidationError("Empty response content")

    try:
        parsed = json.loads(strip_json_wrappers(content))
    except json.JSONDecodeError as e:
        raise LLMValidationError(f"Response is not valid JSON: {e}") from e

    if not isinstance(parsed, dict):
        raise LLMValidationError(f"Expected JSON object, got {type(parsed).__name__}")

    return parsed
