"""
Conversation API request schemas.

Request bodies only check shape. Business rules (empty input, unknown
agent, wrong sub-step) are enforced by the controller and surface as 409.
"""

from typing import List, Optional

from pydantic import BaseModel, Field

from convolib.types import AgentConfiguration

from .state import ConversationMode


class StartConversationRequest(BaseModel):
    user_input: str
    agents: List[AgentConfiguration] = Field(default_factory=list)


class AgentActionRequest(BaseModel):
    agent_id: int


class RejectResponseRequest(BaseModel):
    agent_id: int
    reason: Optional[str] = None


class EditRequest(BaseModel):
    """Replacement prompt or response text for one agent."""
    agent_id: int
    text: str


class SetModeRequest(BaseModel):
    mode: ConversationMode


class ValidateTemplateRequest(BaseModel):
    template: str
