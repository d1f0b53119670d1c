from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# ==================== AGENT DESCRIPTOR TYPES ====================


class RoleCategory(str, Enum):
    DESIGNER = "designer"
    RESEARCHER = "researcher"
    AUTHOR = "author"
    ANALYST = "analyst"
    STRATEGIST = "strategist"
    ARCHITECT = "architect"


class ContextType(str, Enum):
    USER_INPUT = "user_input"
    AGENT_OUTPUT = "agent_output"


class OutputFormat(str, Enum):
    JSON = "json"
    MARKDOWN = "markdown"
    TEXT = "text"


class _DescriptorModel(BaseModel):
    """Accepts both snake_case and the camelCase keys of stored configurations."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AgentRole(_DescriptorModel):
    title: str
    category: RoleCategory
    description: str = ""
    icon: str = ""


class ContextSource(_DescriptorModel):
    """
    One context input an agent may consume.

    ``id`` is ``"user_input"`` for the raw user input, or
    ``"agent_<id>_output"`` for the output of an upstream agent.
    """
    id: str
    label: str = ""
    type: ContextType
    agent_id: Optional[int] = None
    selected: bool = True


class TaskConfiguration(_DescriptorModel):
    prompt_template: str
    output_format: OutputFormat = OutputFormat.TEXT
    max_tokens: int = 2000
    temperature: float = 0.7
    instructions: List[str] = Field(default_factory=list)


class AgentConfiguration(_DescriptorModel):
    """
    Read-only agent descriptor supplied by configuration management.

    Agents form a pre-ordered pipeline: an agent may only select the output
    of agents with a strictly lower id.
    """
    id: int
    name: str
    role: AgentRole
    context_sources: List[ContextSource] = Field(default_factory=list)
    task: TaskConfiguration

    schema_version: str = "0.7.0"
    version: str = "0.7.0"
    created: Optional[str] = None
    modified: Optional[str] = None

    def selected_sources(self) -> List[ContextSource]:
        return [s for s in self.context_sources if s.selected]

    def uses_user_input(self) -> bool:
        return any(
            s.type == ContextType.USER_INPUT or s.id == "user_input"
            for s in self.selected_sources()
        )

    def upstream_agent_ids(self) -> List[int]:
        """Selected upstream agent ids in ascending order."""
        return sorted(
            s.agent_id for s in self.selected_sources()
            if s.type == ContextType.AGENT_OUTPUT and s.agent_id is not None
        )


# ==================== COMPLETION BACKEND TYPES ====================


class LLMRequest(BaseModel):
    prompt: str
    max_tokens: int = Field(default=2000, gt=0)
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    output_format: OutputFormat = OutputFormat.TEXT
    instructions: List[str] = Field(default_factory=list)
    system_prompt: Optional[str] = None


class LLMUsage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class LLMResponseMetadata(BaseModel):
    model: str = ""
    provider: str = ""
    timestamp: str = ""
    duration: float = 0.0  # milliseconds


class LLMResponse(BaseModel):
    content: str
    usage: LLMUsage = Field(default_factory=LLMUsage)
    metadata: LLMResponseMetadata = Field(default_factory=LLMResponseMetadata)


class LLMProviderConfig(BaseModel):
    provider: str
    model: str
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    timeout: float = 30.0  # seconds


class CostEstimate(BaseModel):
    estimated_tokens: int
    estimated_cost: float = 0.0
    currency: str = "USD"
