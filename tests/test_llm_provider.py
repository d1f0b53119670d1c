"""
Completion backend tests. No network: the ChatOpenAI client is patched.

Run with:
    pytest tests/test_llm_provider.py -v
"""

import json
from unittest.mock import MagicMock, patch

import pytest

from convolib.config import LLMSettings
from convolib.exceptions import InvalidProviderError, LLMExecutionError, MissingAPIKeyError
from convolib.llm_provider import (
    ChatOpenAIProvider,
    LLMProviderFactory,
    MockLLMProvider,
    build_provider,
    estimate_tokens,
    provider_config_from_settings,
)
from convolib.types import LLMProviderConfig, LLMRequest, OutputFormat


class TestMockProvider:

    @pytest.mark.asyncio
    async def test_picks_template_by_keyword(self):
        provider = MockLLMProvider()

        response = await provider.complete(LLMRequest(prompt="Act as a strategist", output_format=OutputFormat.JSON))

        assert json.loads(response.content)["valueProposition"]
        assert response.metadata.provider == "mock"
        assert response.usage.total_tokens == response.usage.prompt_tokens + response.usage.completion_tokens
        assert provider.requests[0].prompt == "Act as a strategist"

    @pytest.mark.asyncio
    async def test_text_format_strips_markdown(self):
        response = await MockLLMProvider().complete(LLMRequest(prompt="Design the UX", output_format=OutputFormat.TEXT))

        assert "#" not in response.content
        assert "**" not in response.content
        assert "UI/UX Design Strategy" in response.content

    @pytest.mark.asyncio
    async def test_json_format_wraps_plain_content(self):
        response = await MockLLMProvider().complete(LLMRequest(prompt="hello", output_format=OutputFormat.JSON))

        assert "AI Agent Response" in json.loads(response.content)["content"]

    @pytest.mark.asyncio
    async def test_custom_templates(self):
        provider = MockLLMProvider()
        provider.set_response_template("default", "# Custom\n\nfixed answer")

        response = await provider.complete(LLMRequest(prompt="zzz", output_format=OutputFormat.MARKDOWN))

        assert response.content == "# Custom\n\nfixed answer"
        assert "default" in provider.get_available_templates()

    @pytest.mark.asyncio
    async def test_health_and_cost(self):
        provider = MockLLMProvider()

        assert await provider.is_available()
        estimate = await provider.estimate_cost(LLMRequest(prompt="abcd", max_tokens=10))
        assert estimate.estimated_tokens == 11

    def test_update_config_returns_copies(self):
        provider = MockLLMProvider()
        provider.update_config(model="mock-v2")

        config = provider.get_config()
        config.model = "changed"
        assert provider.get_config().model == "mock-v2"


class TestChatOpenAIProvider:

    def test_requires_api_key_for_hosted_providers(self):
        with pytest.raises(MissingAPIKeyError):
            ChatOpenAIProvider(LLMProviderConfig(provider="openai", model="gpt-4o-mini"))

    def test_ollama_needs_no_key(self):
        provider = ChatOpenAIProvider(LLMProviderConfig(provider="ollama", model="llama3.1:8b",
                                                        base_url="http://localhost:11434/v1"))
        assert provider.get_config().provider == "ollama"

    @pytest.mark.asyncio
    async def test_complete_maps_langchain_response(self):
        provider = ChatOpenAIProvider(LLMProviderConfig(provider="openai", model="gpt-4o-mini", api_key="sk-test"))
        message = MagicMock()
        message.content = "Generated answer"
        message.usage_metadata = {"input_tokens": 12, "output_tokens": 4, "total_tokens": 16}
        message.response_metadata = {"model_name": "gpt-4o-mini-2024"}
        client = MagicMock()
        client.invoke.return_value = message

        with patch.object(ChatOpenAIProvider, "_build_client", return_value=client):
            response = await provider.complete(LLMRequest(prompt="hi", system_prompt="be nice"))

        sent = client.invoke.call_args[0][0]
        assert [m.content for m in sent] == ["be nice", "hi"]
        assert response.content == "Generated answer"
        assert response.usage.total_tokens == 16
        assert response.metadata.model == "gpt-4o-mini-2024"
        assert response.metadata.provider == "openai"

    @pytest.mark.asyncio
    async def test_client_errors_are_wrapped(self):
        provider = ChatOpenAIProvider(LLMProviderConfig(provider="openai", model="gpt-4o-mini", api_key="sk-test"))
        client = MagicMock()
        client.invoke.side_effect = ConnectionError("refused")

        with patch.object(ChatOpenAIProvider, "_build_client", return_value=client):
            with pytest.raises(LLMExecutionError, match="refused"):
                await provider.complete(LLMRequest(prompt="hi"))

    def test_client_uses_request_parameters(self):
        provider = ChatOpenAIProvider(LLMProviderConfig(provider="openai", model="gpt-4o-mini", api_key="sk-test"))

        with patch("langchain_openai.ChatOpenAI") as chat_cls:
            provider._build_client(LLMRequest(prompt="hi", max_tokens=321, temperature=0.2))

        kwargs = chat_cls.call_args.kwargs
        assert kwargs["max_tokens"] == 321
        assert kwargs["temperature"] == 0.2
        assert kwargs["max_retries"] == 0


class TestFactory:

    def test_registered_providers(self):
        assert {"mock", "openai", "openrouter", "ollama"} <= set(LLMProviderFactory.get_available_providers())

    def test_unknown_provider(self):
        with pytest.raises(InvalidProviderError):
            LLMProviderFactory.create("nope", LLMProviderConfig(provider="nope", model="x"))

    def test_settings_default_to_mock(self):
        llm = LLMSettings(use_mock=True, use_openrouter=False, use_ollama=False, use_openai=False)

        assert isinstance(build_provider(llm, timeout=5), MockLLMProvider)
        assert provider_config_from_settings(llm, timeout=5).timeout == 5

    def test_openrouter_settings(self):
        llm = LLMSettings(use_openrouter=True, openrouter_api_key="or-key", openrouter_model="some/model")

        config = provider_config_from_settings(llm)

        assert config.provider == "openrouter"
        assert config.api_key == "or-key"
        assert config.base_url == llm.openrouter_base_url
        assert isinstance(build_provider(llm), ChatOpenAIProvider)


def test_estimate_tokens():
    assert estimate_tokens("abcdefgh") == 2
