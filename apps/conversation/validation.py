"""
Agent configuration validation.

Runs before a conversation starts so that a broken pipeline is rejected
up front instead of failing halfway through a run.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Sequence

from convolib.types import AgentConfiguration, ContextType

from .prompt_builder import AGENT_PLACEHOLDER_RE, PLACEHOLDER_RE, validate_prompt_template

logger = logging.getLogger(__name__)

MIN_TEMPERATURE = 0.0
MAX_TEMPERATURE = 2.0


@dataclass
class AgentValidationResult:
    valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self):
        return {"valid": self.valid, "errors": self.errors, "warnings": self.warnings}


def validate_agent_configuration(
    agent: AgentConfiguration,
    all_agents: Sequence[AgentConfiguration],
) -> AgentValidationResult:
    """
    Validate one agent against the pipeline it belongs to.

    Args:
        agent: Agent to check.
        all_agents: Every agent of the pipeline, ``agent`` included.

    Returns:
        AgentValidationResult with structural errors and soft warnings.
    """
    errors: List[str] = []
    warnings: List[str] = []
    known_ids = {a.id for a in all_agents}

    if any(a.id == agent.id and a is not agent for a in all_agents):
        errors.append(f"Agent ID {agent.id} is already used by another agent")

    for index, source in enumerate(agent.context_sources, start=1):
        if source.type != ContextType.AGENT_OUTPUT:
            continue
        if source.agent_id is None:
            errors.append(f"Context source {index} is agent_output type but missing agentId")
        elif source.agent_id not in known_ids:
            errors.append(f"Context source {index} references non-existent agent {source.agent_id}")
        elif source.agent_id >= agent.id:
            errors.append(
                f"Context source {index} references agent {source.agent_id}, "
                f"which does not run before agent {agent.id}"
            )

    if agent.task.max_tokens <= 0:
        errors.append("Task maxTokens must be greater than 0")

    if not MIN_TEMPERATURE <= agent.task.temperature <= MAX_TEMPERATURE:
        errors.append(f"Task temperature must be between {MIN_TEMPERATURE:g} and {MAX_TEMPERATURE:g}")

    if not agent.task.prompt_template.strip():
        errors.append("Task promptTemplate cannot be empty")

    if not agent.selected_sources():
        warnings.append("Agent has no selected context sources")

    # Template references to agents the context does not select still render,
    # but only if the referenced agent ran earlier
    selected_upstream = set(agent.upstream_agent_ids())
    for match in PLACEHOLDER_RE.finditer(agent.task.prompt_template):
        agent_match = AGENT_PLACEHOLDER_RE.match(match.group(1))
        if not agent_match or not agent_match.group(1).isdigit():
            continue
        referenced = int(agent_match.group(1))
        if referenced >= agent.id:
            errors.append(f"Template placeholder {match.group(0)} references a later agent")
        elif referenced not in selected_upstream:
            warnings.append(f"Template placeholder {match.group(0)} is not a selected context source")

    return AgentValidationResult(valid=not errors, errors=errors, warnings=warnings)


def validate_pipeline(agents: Sequence[AgentConfiguration]) -> AgentValidationResult:
    """
    Validate every agent of a pipeline, including its prompt template.

    Problems are prefixed with the agent's name so the caller can show one
    flat list.
    """
    if not agents:
        return AgentValidationResult(valid=False, errors=["Pipeline has no agents"])

    errors: List[str] = []
    warnings: List[str] = []
    for agent in agents:
        result = validate_agent_configuration(agent, agents)
        template = validate_prompt_template(agent.task.prompt_template)
        errors.extend(f"{agent.name}: {e}" for e in result.errors + template.errors)
        warnings.extend(f"{agent.name}: {w}" for w in result.warnings)

    if warnings:
        logger.info(f"Pipeline validation warnings: {warnings}")
    return AgentValidationResult(valid=not errors, errors=errors, warnings=warnings)
