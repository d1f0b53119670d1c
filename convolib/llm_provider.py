"""
ConvoFlow Completion Backends

The orchestrator talks to a text-completion backend through a single
capability::

    response = await provider.complete(LLMRequest(...))

Providers:
    ChatOpenAIProvider -- LangChain ``ChatOpenAI`` against any
                          OpenAI-compatible endpoint (OpenAI, OpenRouter, Ollama)
    MockLLMProvider    -- deterministic canned responses, no network

Providers raise ``LLMExecutionError`` on failure and never hang on their own;
the conversation controller still races every call against its own timeout.
"""

import asyncio
import json
import logging
import math
import re
import time
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Type

from convolib.config import LLMSettings
from convolib.exceptions import InvalidProviderError, LLMExecutionError, MissingAPIKeyError
from convolib.types import (
    CostEstimate,
    LLMProviderConfig,
    LLMRequest,
    LLMResponse,
    LLMResponseMetadata,
    LLMUsage,
    OutputFormat,
)
from convolib.utils import utc_now_iso

logger = logging.getLogger(__name__)

# Rough estimation: 4 characters per token
CHARS_PER_TOKEN = 4


def estimate_tokens(text: str) -> int:
    return math.ceil(len(text) / CHARS_PER_TOKEN)


class LLMProvider(ABC):
    """Capability interface consumed by the conversation controller."""

    @abstractmethod
    async def complete(self, request: LLMRequest) -> LLMResponse:
        ...

    @abstractmethod
    def get_config(self) -> LLMProviderConfig:
        ...

    @abstractmethod
    def update_config(self, **changes) -> None:
        ...

    @abstractmethod
    async def is_available(self) -> bool:
        ...

    @abstractmethod
    async def estimate_cost(self, request: LLMRequest) -> CostEstimate:
        ...


class BaseLLMProvider(LLMProvider):
    """Shared configuration handling, health check and response shaping."""

    def __init__(self, config: LLMProviderConfig):
        self.config = config

    def get_config(self) -> LLMProviderConfig:
        return self.config.model_copy()

    def update_config(self, **changes) -> None:
        self.config = self.config.model_copy(update=changes)

    async def is_available(self) -> bool:
        """Health check: try a minimal request."""
        probe = LLMRequest(prompt="Hello", max_tokens=10, temperature=0, output_format=OutputFormat.TEXT)
        try:
            await self.complete(probe)
            return True
        except Exception as e:
            logger.warning(f"Provider '{self.config.provider}' health check failed: {e}")
            return False

    async def estimate_cost(self, request: LLMRequest) -> CostEstimate:
        # Cost is provider specific; the base implementation only counts tokens
        return CostEstimate(estimated_tokens=estimate_tokens(request.prompt) + request.max_tokens)

    def create_response(
        self,
        content: str,
        usage: LLMUsage,
        duration_ms: float = 0.0,
        model: Optional[str] = None,
    ) -> LLMResponse:
        return LLMResponse(
            content=content,
            usage=usage,
            metadata=LLMResponseMetadata(
                model=model or self.config.model,
                provider=self.config.provider,
                timestamp=utc_now_iso(),
                duration=duration_ms,
            ),
        )


class ChatOpenAIProvider(BaseLLMProvider):
    """
    Completion backend built on LangChain's ``ChatOpenAI``.

    A client is built per request so ``max_tokens`` and ``temperature``
    follow the agent's task configuration. LangChain ``.invoke()`` is
    synchronous, so it runs in a worker thread.
    """

    def __init__(self, config: LLMProviderConfig):
        if config.provider in ("openai", "openrouter") and not config.api_key:
            raise MissingAPIKeyError(f"API key required for provider '{config.provider}'")
        super().__init__(config)

    def _build_client(self, request: LLMRequest):
        from langchain_openai import ChatOpenAI

        return ChatOpenAI(
            model=self.config.model,
            base_url=self.config.base_url,
            # Ollama ignores the key but the client requires one
            api_key=self.config.api_key or "ollama",
            temperature=request.temperature,
            max_tokens=request.max_tokens,
            timeout=self.config.timeout,
            max_retries=0,
        )

    async def complete(self, request: LLMRequest) -> LLMResponse:
        from langchain_core.messages import HumanMessage, SystemMessage

        messages = []
        if request.system_prompt:
            messages.append(SystemMessage(content=request.system_prompt))
        messages.append(HumanMessage(content=request.prompt))

        started = time.monotonic()
        try:
            llm = self._build_client(request)
            response = await asyncio.to_thread(llm.invoke, messages)
        except Exception as e:
            logger.error(f"{self.config.provider} completion failed: {e}")
            raise LLMExecutionError(f"{self.config.provider} completion failed: {e}") from e

        content = response.content if hasattr(response, "content") else str(response)
        if not isinstance(content, str):
            content = json.dumps(content)

        usage_meta = getattr(response, "usage_metadata", None) or {}
        prompt_tokens = usage_meta.get("input_tokens", estimate_tokens(request.prompt))
        completion_tokens = usage_meta.get("output_tokens", estimate_tokens(content))
        usage = LLMUsage(
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=usage_meta.get("total_tokens", prompt_tokens + completion_tokens),
        )

        model_name = (getattr(response, "response_metadata", None) or {}).get("model_name")
        duration_ms = (time.monotonic() - started) * 1000
        return self.create_response(content, usage, duration_ms, model=model_name)


# Canned responses keyed by role category
_MOCK_RESPONSES: Dict[str, str] = {
    "strategist": json.dumps({
        "marketAnalysis": {
            "targetAudience": "Tech-savvy professionals aged 25-40",
            "marketSize": "Estimated $2.5B addressable market",
            "competition": "Moderate competition with room for differentiation",
        },
        "valueProposition": "Streamlined workflow automation with AI-powered insights",
        "successMetrics": ["User adoption rate", "Time savings per user", "ROI improvement"],
        "risks": ["Market saturation", "Technical complexity", "User resistance to change"],
    }, indent=2),
    "researcher": (
        "# Market Research Summary\n\n"
        "## Key Findings\n"
        "- 78% of target users report workflow inefficiencies\n"
        "- 65% are open to AI-powered solutions\n\n"
        "## Recommendations\n"
        "1. Focus on intuitive user interface\n"
        "2. Emphasize time-saving benefits"
    ),
    "designer": (
        "# UI/UX Design Strategy\n\n"
        "## Design Principles\n"
        "- **Simplicity**: Clean, uncluttered interface\n"
        "- **Accessibility**: WCAG 2.1 AA compliance\n\n"
        "## Key Features\n"
        "1. **Dashboard**: Centralized view of all workflows\n"
        "2. **Progress Tracking**: Visual indicators of completion"
    ),
    "author": (
        "# Technical Specification Document\n\n"
        "## Executive Summary\n"
        "This document outlines the technical requirements for the requested product.\n\n"
        "## Key Features\n"
        "1. **Core Workflow**: The primary user journey\n"
        "2. **Integrations**: REST API for third-party access"
    ),
    "analyst": (
        "# Data Analysis Report\n\n"
        "## Performance Metrics\n"
        "- **Adoption Rate**: 23% in first month\n"
        "- **Retention**: 67% after 30 days\n\n"
        "## Recommendations\n"
        "1. **Simplify Onboarding**: Reduce setup steps by 50%"
    ),
    "architect": (
        "# System Architecture Design\n\n"
        "## Technology Stack\n"
        "- **Frontend**: Single-page application\n"
        "- **Backend**: Stateless API services\n"
        "- **Database**: PostgreSQL with Redis caching\n\n"
        "## Security Considerations\n"
        "- Data encryption at rest and in transit"
    ),
    "default": (
        "# AI Agent Response\n\n"
        "## Key Insights\n"
        "- The project shows strong potential\n"
        "- Technical feasibility is high\n\n"
        "## Next Steps\n"
        "- Develop an MVP with essential features"
    ),
}

# Checked in order; first keyword hit selects the template
_MOCK_KEYWORDS = [
    ("strategist", ("strategist", "strategy")),
    ("researcher", ("research", "market")),
    ("designer", ("design", "ui", "ux")),
    ("author", ("author", "document", "spec")),
    ("analyst", ("analyst", "data", "metrics")),
    ("architect", ("architect", "system", "technical")),
]


class MockLLMProvider(BaseLLMProvider):
    """
    Deterministic backend for development and tests.

    Picks a canned response by keywords in the prompt and shapes it to
    the requested output format. ``delay`` simulates backend latency.
    """

    def __init__(self, config: Optional[LLMProviderConfig] = None, delay: float = 0.0):
        super().__init__(config or LLMProviderConfig(provider="mock", model="mock-v1", timeout=1.0))
        self.delay = delay
        self._responses = dict(_MOCK_RESPONSES)
        self.requests: List[LLMRequest] = []

    async def complete(self, request: LLMRequest) -> LLMResponse:
        started = time.monotonic()
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)

        content = self._shape(self._responses[self._pick_template(request.prompt)], request.output_format)
        usage = LLMUsage(
            prompt_tokens=estimate_tokens(request.prompt),
            completion_tokens=estimate_tokens(content),
        )
        usage.total_tokens = usage.prompt_tokens + usage.completion_tokens
        return self.create_response(content, usage, (time.monotonic() - started) * 1000)

    async def estimate_cost(self, request: LLMRequest) -> CostEstimate:
        tokens = estimate_tokens(request.prompt) + request.max_tokens
        return CostEstimate(estimated_tokens=tokens, estimated_cost=tokens * 0.000001)

    def set_response_template(self, key: str, template: str) -> None:
        self._responses[key] = template

    def get_available_templates(self) -> List[str]:
        return list(self._responses.keys())

    def _pick_template(self, prompt: str) -> str:
        prompt_lower = prompt.lower()
        for key, keywords in _MOCK_KEYWORDS:
            if key not in self._responses:
                continue
            if any(re.search(rf"\b{re.escape(word)}", prompt_lower) for word in keywords):
                return key
        return "default"

    @staticmethod
    def _shape(response: str, output_format: OutputFormat) -> str:
        if output_format == OutputFormat.JSON:
            if not response.lstrip().startswith("{"):
                return json.dumps({"content": response}, indent=2)
            return response
        if output_format == OutputFormat.MARKDOWN:
            return response if "#" in response else f"# AI Response\n\n{response}"
        # Plain text: strip markdown headers and bold markers
        text = re.sub(r"^#+\s*", "", response, flags=re.MULTILINE)
        return re.sub(r"\*\*(.*?)\*\*", r"\1", text)


class LLMProviderFactory:
    """Registry of provider classes by name."""

    _providers: Dict[str, Type[BaseLLMProvider]] = {}

    @classmethod
    def register(cls, provider_name: str, provider_class: Type[BaseLLMProvider]) -> None:
        cls._providers[provider_name] = provider_class

    @classmethod
    def create(cls, provider_name: str, config: LLMProviderConfig) -> BaseLLMProvider:
        provider_class = cls._providers.get(provider_name)
        if provider_class is None:
            raise InvalidProviderError(f"Unknown LLM provider: {provider_name}")
        return provider_class(config)

    @classmethod
    def get_available_providers(cls) -> List[str]:
        return list(cls._providers.keys())


LLMProviderFactory.register("mock", MockLLMProvider)
LLMProviderFactory.register("openai", ChatOpenAIProvider)
LLMProviderFactory.register("openrouter", ChatOpenAIProvider)
LLMProviderFactory.register("ollama", ChatOpenAIProvider)


def provider_config_from_settings(llm: LLMSettings, timeout: float = 30.0) -> LLMProviderConfig:
    """Map the active provider in ``LLMSettings`` to a provider config."""
    name = llm.get_active_provider()
    if name == "openrouter":
        return LLMProviderConfig(
            provider=name, model=llm.openrouter_model,
            api_key=llm.openrouter_api_key, base_url=llm.openrouter_base_url, timeout=timeout,
        )
    if name == "ollama":
        return LLMProviderConfig(provider=name, model=llm.ollama_model, base_url=llm.ollama_base_url, timeout=timeout)
    if name == "openai":
        return LLMProviderConfig(provider=name, model=llm.openai_model, api_key=llm.openai_api_key, timeout=timeout)
    return LLMProviderConfig(provider="mock", model="mock-v1", timeout=timeout)


def build_provider(llm: LLMSettings, timeout: float = 30.0) -> BaseLLMProvider:
    config = provider_config_from_settings(llm, timeout)
    logger.info(f"Using completion provider '{config.provider}' (model={config.model})")
    return LLMProviderFactory.create(config.provider, config)
