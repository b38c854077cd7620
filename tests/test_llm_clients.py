"""
Unit tests for LLM clients (mocked APIs).
"""

import asyncio
import json
from unittest.mock import AsyncMock

import httpx
import pytest
import respx
from anthropic.types import Message, TextBlock, Usage

from visa_interview.llm.anthropic_client import AnthropicClient, to_anthropic_messages
from visa_interview.llm.base_client import BaseLLMClient, LLMResponse
from visa_interview.llm.client_factory import LLMClientFactory
from visa_interview.llm.exceptions import (
    LLMConfigError,
    LLMProviderError,
    LLMTimeoutError,
    LLMValidationError,
)
from visa_interview.llm.openai_client import OpenAICompatibleClient
from visa_interview.llm.response_parsing import parse_json_object

COMETAPI_URL = "https://api.cometapi.com/v1/chat/completions"


def chat_completion(content: str) -> dict:
    """Chat completions payload with a single assistant message."""
    return {
        "id": "chatcmpl-123",
        "object": "chat.completion",
        "created": 1677652288,
        "model": "claude-haiku-4-5-20251001",
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": content},
                "finish_reason": "stop",
            }
        ],
        "usage": {"prompt_tokens": 100, "completion_tokens": 50, "total_tokens": 150},
    }


@pytest.fixture
def openai_client():
    return OpenAICompatibleClient(
        api_key="test-key",
        model="claude-haiku-4-5-20251001",
        temperature=0.3,
        max_tokens=500,
        timeout=10,
    )


class TestOpenAICompatibleClient:
    """Tests for OpenAICompatibleClient."""

    @pytest.mark.asyncio
    async def test_generate_completion_success(self, openai_client):
        with respx.mock:
            route = respx.post(COMETAPI_URL).mock(
                return_value=httpx.Response(200, json=chat_completion('{"questionId": "A1"}'))
            )

            response = await openai_client.generate_completion(
                [{"role": "user", "content": "Pick a question"}]
            )

            assert isinstance(response, LLMResponse)
            assert response.content == '{"questionId": "A1"}'
            assert response.tokens_used == 150
            assert response.model_used == "claude-haiku-4-5-20251001"

            request_body = json.loads(route.calls.last.request.content)
            assert request_body["response_format"] == {"type": "json_object"}

    @pytest.mark.asyncio
    async def test_complete_json_strips_fences(self, openai_client):
        content = '```json\n{"questionId": "USA_FIN_001", "reasoning": "Finance next"}\n```'
        with respx.mock:
            respx.post(COMETAPI_URL).mock(
                return_value=httpx.Response(200, json=chat_completion(content))
            )

            result = await openai_client.complete_json("system", "user")

        assert result == {"questionId": "USA_FIN_001", "reasoning": "Finance next"}

    @pytest.mark.asyncio
    async def test_server_error_is_not_retried(self, openai_client):
        with respx.mock:
            route = respx.post(COMETAPI_URL).mock(
                return_value=httpx.Response(
                    500, json={"error": {"message": "Internal server error"}}
                )
            )

            with pytest.raises(LLMProviderError):
                await openai_client.complete_json("system", "user")

            assert route.call_count == 1

    @pytest.mark.asyncio
    async def test_non_json_reply(self, openai_client):
        with respx.mock:
            respx.post(COMETAPI_URL).mock(
                return_value=httpx.Response(200, json=chat_completion("I would pick A1."))
            )

            with pytest.raises(LLMValidationError):
                await openai_client.complete_json("system", "user")


class TestAnthropicClient:
    """Tests for AnthropicClient."""

    @pytest.fixture
    def anthropic_client(self):
        client = AnthropicClient(
            api_key="test-key",
            model="claude-haiku-4-5",
            temperature=0.3,
            max_tokens=1500,
            timeout=30,
        )
        client.client.messages.create = AsyncMock(
            return_value=Message(
                id="msg_1",
                type="message",
                role="assistant",
                model="claude-haiku-4-5",
                content=[TextBlock(type="text", text='{"contentScore": 70}')],
                stop_reason="end_turn",
                stop_sequence=None,
                usage=Usage(input_tokens=120, output_tokens=30),
            )
        )
        return client

    @pytest.mark.asyncio
    async def test_system_prompt_moved_to_parameter(self, anthropic_client):
        result = await anthropic_client.complete_json("Score this answer.", "Answer text")

        kwargs = anthropic_client.client.messages.create.call_args.kwargs
        assert result == {"contentScore": 70}
        assert kwargs["system"].startswith("Score this answer.")
        assert "JSON object" in kwargs["system"]
        assert kwargs["messages"] == [{"role": "user", "content": "Answer text"}]

    @pytest.mark.asyncio
    async def test_token_usage(self, anthropic_client):
        response = await anthropic_client.generate_completion(
            [{"role": "user", "content": "hi"}]
        )

        assert response.tokens_used == 150

    @pytest.mark.asyncio
    async def test_api_error(self, anthropic_client):
        anthropic_client.client.messages.create.side_effect = RuntimeError("overloaded")

        with pytest.raises(LLMProviderError, match="overloaded"):
            await anthropic_client.complete_json("system", "user")


def test_to_anthropic_messages_without_system():
    system, turns = to_anthropic_messages([{"role": "user", "content": "hi"}], json_mode=False)

    assert system is None
    assert turns == [{"role": "user", "content": "hi"}]


class SlowClient(BaseLLMClient):
    provider_name = "slow"

    async def generate_completion(self, messages, json_mode=True):
        await asyncio.sleep(1)
        return LLMResponse(content="{}")


class TestCompleteJson:
    @pytest.mark.asyncio
    async def test_timeout(self):
        client = SlowClient("key", "model", 0.3, 100, 10)

        with pytest.raises(LLMTimeoutError, match="slow"):
            await client.complete_json("system", "user", timeout=0.01)


class TestResponseParsing:
    @pytest.mark.parametrize(
        "content",
        [
            '{"a": 1}',
            '```\n{"a": 1}\n```',
            '<json>{"a": 1}</json>',
            'Here is my answer: {"a": 1} Hope that helps.',
        ],
    )
    def test_wrapped_objects(self, content):
        assert parse_json_object(content) == {"a": 1}

    @pytest.mark.parametrize("content", ["", "   ", "[1, 2]", "not json"])
    def test_invalid_content(self, content):
        with pytest.raises(LLMValidationError):
            parse_json_object(content)


class TestLLMClientFactory:
    def test_creates_openai_compatible_client(self, monkeypatch):
        monkeypatch.setenv("COMETAPI_API_KEY", "test-key")

        client = LLMClientFactory.create_client("answer_scoring")

        assert isinstance(client, OpenAICompatibleClient)
        assert client.base_url == "https://api.cometapi.com/v1"
        assert client.max_tokens == 1500

    def test_missing_api_key(self, monkeypatch):
        monkeypatch.delenv("COMETAPI_API_KEY", raising=False)

        with pytest.raises(LLMConfigError, match="COMETAPI_API_KEY"):
            LLMClientFactory.create_client("question_selection")

    def test_optional_client_without_key(self, monkeypatch):
        monkeypatch.delenv("COMETAPI_API_KEY", raising=False)

        assert LLMClientFactory.create_optional_client("final_evaluation") is None

    def test_anthropic_provider(self, monkeypatch, tmp_path):
        config = tmp_path / "models.yaml"
        config.write_text(
            "models:\n"
            "  answer_scoring:\n"
            "    provider: anthropic\n"
            "    model: claude-haiku-4-5\n"
            "    api_key_env: ANTHROPIC_API_KEY\n"
            "    temperature: 0.3\n"
            "    max_tokens: 1500\n"
            "    timeout_seconds: 30\n"
        )
        monkeypatch.setenv("ANTHROPIC_API_KEY", "test-key")

        client = LLMClientFactory.create_client("answer_scoring", config)

        assert isinstance(client, AnthropicClient)

    def test_unsupported_provider(self, monkeypatch, tmp_path):
        config = tmp_path / "models.yaml"
        config.write_text(
            "models:\n"
            "  answer_scoring:\n"
            "    provider: carrier_pigeon\n"
            "    model: coo\n"
            "    api_key_env: PIGEON_KEY\n"
            "    temperature: 0.3\n"
            "    max_tokens: 10\n"
            "    timeout_seconds: 30\n"
        )
        monkeypatch.setenv("PIGEON_KEY", "seed")

        with pytest.raises(LLMConfigError, match="Unsupported provider"):
            LLMClientFactory.create_client("answer_scoring", config)

    def test_unknown_use_case(self, monkeypatch):
        monkeypatch.setenv("COMETAPI_API_KEY", "test-key")

        with pytest.raises(LLMConfigError, match="not found"):
            LLMClientFactory.create_client("summarization")

    def test_invalid_config(self, tmp_path):
        config = tmp_path / "models.yaml"
        config.write_text("models:\n  answer_scoring:\n    provider: anthropic\n")

        with pytest.raises(LLMConfigError, match="Invalid model configuration"):
            LLMClientFactory.create_client("answer_scoring", config)
