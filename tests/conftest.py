"""Shared factories for the conversation test suite."""

import asyncio
from typing import List, Optional, Sequence

import pytest

from convolib.llm_provider import BaseLLMProvider
from convolib.types import (
    AgentConfiguration,
    AgentRole,
    ContextSource,
    ContextType,
    LLMProviderConfig,
    LLMRequest,
    LLMResponse,
    LLMUsage,
    OutputFormat,
    RoleCategory,
    TaskConfiguration,
)


class ScriptedProvider(BaseLLMProvider):
    """
    Completion backend for tests.

    Answers ``Response #<n>`` for the n-th call. Errors queued with
    ``fail_next`` are raised instead, in order. When ``gate`` is set the
    call waits for it, which lets a test act while a completion is in flight.
    """

    def __init__(self, delay: float = 0.0):
        super().__init__(LLMProviderConfig(provider="scripted", model="scripted-v1"))
        self.delay = delay
        self.requests: List[LLMRequest] = []
        self.gate: Optional[asyncio.Event] = None
        self._errors: List[Exception] = []

    def fail_next(self, error: Exception) -> None:
        self._errors.append(error)

    async def complete(self, request: LLMRequest) -> LLMResponse:
        self.requests.append(request)
        if self.gate is not None:
            await self.gate.wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        if self._errors:
            raise self._errors.pop(0)
        usage = LLMUsage(prompt_tokens=10, completion_tokens=5, total_tokens=15)
        return self.create_response(f"Response #{len(self.requests)}", usage)


def make_agent(
    agent_id: int,
    name: Optional[str] = None,
    category: RoleCategory = RoleCategory.STRATEGIST,
    upstream: Sequence[int] = (),
    template: Optional[str] = None,
    output_format: OutputFormat = OutputFormat.TEXT,
    instructions: Optional[List[str]] = None,
    max_tokens: int = 500,
    temperature: float = 0.7,
) -> AgentConfiguration:
    """Build an agent that reads the user input plus the listed upstream agents."""
    name = name or f"Agent {agent_id}"
    sources = [ContextSource(id="user_input", label="User Input", type=ContextType.USER_INPUT)]
    for up in upstream:
        sources.append(ContextSource(
            id=f"agent_{up}_output",
            label=f"Agent {up} Output",
            type=ContextType.AGENT_OUTPUT,
            agent_id=up,
        ))
    if template is None:
        template = "Idea: {USER_INPUT}" + "".join(f"\nBuild on: {{AGENT_{up}_RESPONSE}}" for up in upstream)
    return AgentConfiguration(
        id=agent_id,
        name=name,
        role=AgentRole(title=f"{name} Lead", category=category, description=f"{name} does its part."),
        context_sources=sources,
        task=TaskConfiguration(
            prompt_template=template,
            output_format=output_format,
            max_tokens=max_tokens,
            temperature=temperature,
            instructions=instructions or [],
        ),
    )


def make_chain(count: int) -> List[AgentConfiguration]:
    """``count`` agents where each one builds on its predecessor."""
    return [make_agent(i, upstream=(i - 1,) if i > 1 else ()) for i in range(1, count + 1)]


@pytest.fixture
def provider() -> ScriptedProvider:
    return ScriptedProvider()


@pytest.fixture
def agents() -> List[AgentConfiguration]:
    return make_chain(3)
