"""
Context assembly for a single agent step.

Gathers everything the prompt builder is allowed to see: the raw user
input, final responses of agents that reached ``Complete``, the finalized
history and run metadata. Drafts never leak into this context.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from convolib.types import AgentConfiguration

from .state import AgentState, ConversationState, HistoryEntry, HistoryStatus

logger = logging.getLogger(__name__)

# History statuses whose content is final and may be shown to later agents
_VISIBLE_HISTORY = (HistoryStatus.COMPLETED, HistoryStatus.REVIEWED)


@dataclass
class PromptMetadata:
    session_id: str
    current_agent_id: Optional[int]
    total_agents: int
    step_number: int


@dataclass
class PromptContext:
    user_input: str
    agent_responses: Dict[int, str] = field(default_factory=dict)
    agent_names: Dict[int, str] = field(default_factory=dict)
    conversation_history: List[HistoryEntry] = field(default_factory=list)
    metadata: PromptMetadata = field(default_factory=lambda: PromptMetadata("", None, 0, 0))

    def response_for(self, agent_id: int) -> Optional[str]:
        return self.agent_responses.get(agent_id)

    def name_for(self, agent_id: int) -> str:
        return self.agent_names.get(agent_id) or f"Agent {agent_id}"


def assemble_context(state: ConversationState, agents: Sequence[AgentConfiguration]) -> PromptContext:
    """
    Build the prompt context for the current agent.

    Args:
        state: Current run state.
        agents: Ordered agent list of the run.

    Returns:
        PromptContext restricted to ``Complete`` agents' final responses.
    """
    responses: Dict[int, str] = {}
    for agent in agents:
        info = state.agent_states.get(agent.id)
        if info is None or info.state != AgentState.COMPLETE:
            continue
        if info.current_response:
            responses[agent.id] = info.current_response

    history = [e for e in state.conversation_history if e.status in _VISIBLE_HISTORY]

    context = PromptContext(
        user_input=state.user_input,
        agent_responses=responses,
        agent_names={a.id: a.name for a in agents},
        conversation_history=history,
        metadata=PromptMetadata(
            session_id=state.session_id,
            current_agent_id=state.current_agent_id,
            total_agents=len(agents),
            step_number=state.current_step,
        ),
    )
    logger.debug(
        f"Assembled context for agent {state.current_agent_id}: "
        f"{len(responses)} upstream responses, {len(history)} history entries"
    )
    return context
