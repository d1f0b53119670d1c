"""
Conversation run state.

The controller owns exactly one ``ConversationState``. Everything a caller
or UI may observe lives here; per-agent sub-step bookkeeping lives in
``AgentStepState`` next to it and is exposed through the snapshot as well.

State transitions for an agent (coarse, externally visible):

    Idle -> Prompt_Draft -> Prompt_OK -> Generating -> Response_Draft
         -> Response_OK -> Complete
    (any active state) -> Failed      on backend error / timeout
"""
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from convolib.config import ConversationSettings
from convolib.exceptions import ConfigError
from convolib.utils import utc_now_iso


class RunStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    ERROR = "error"


class ConversationMode(str, Enum):
    AUTO = "auto"
    MANUAL = "manual"


class AgentState(str, Enum):
    IDLE = "Idle"
    PROMPT_DRAFT = "Prompt_Draft"
    PROMPT_OK = "Prompt_OK"
    GENERATING = "Generating"
    RESPONSE_DRAFT = "Response_Draft"
    RESPONSE_OK = "Response_OK"
    COMPLETE = "Complete"
    FAILED = "Failed"


class HistoryStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REVIEWED = "reviewed"


class SubStep(str, Enum):
    """Ordered sub-steps of one agent pass."""
    PROMPT_DRAFT = "prompt_draft"
    PROMPT_OK = "prompt_ok"
    GENERATING = "generating"
    RESPONSE_DRAFT = "response_draft"
    RESPONSE_OK = "response_ok"


SUB_STEP_ORDER: List[SubStep] = list(SubStep)


class AgentStateInfo(BaseModel):
    """Coarse runtime state of one agent."""
    state: AgentState = AgentState.IDLE
    last_updated: str = Field(default_factory=utc_now_iso)
    current_prompt: Optional[str] = None
    current_response: Optional[str] = None
    prompt_approved: Optional[bool] = None
    response_approved: Optional[bool] = None
    tokens_used: int = 0
    error: Optional[str] = None


class AgentStepState(BaseModel):
    """
    Fine-grained sub-step flags for one agent.

    Each sub-step carries an ``enabled`` and a ``complete`` flag; see
    ``step_machine`` for the ordering rules that govern them.
    """
    enabled: bool = False
    complete: bool = False

    prompt_draft_enabled: bool = False
    prompt_draft_complete: bool = False
    prompt_ok_enabled: bool = False
    prompt_ok_complete: bool = False
    generating_enabled: bool = False
    generating_complete: bool = False
    response_draft_enabled: bool = False
    response_draft_complete: bool = False
    response_ok_enabled: bool = False
    response_ok_complete: bool = False

    def is_enabled(self, step: SubStep) -> bool:
        return getattr(self, f"{step.value}_enabled")

    def is_complete(self, step: SubStep) -> bool:
        return getattr(self, f"{step.value}_complete")

    @property
    def current_sub_step(self) -> str:
        """First sub-step not yet complete, or ``"complete"``."""
        if self.complete:
            return "complete"
        for step in SUB_STEP_ORDER:
            if not self.is_complete(step):
                return step.value
        return "complete"


class HistoryEntry(BaseModel):
    agent_id: int
    agent_name: str
    prompt: str = ""
    response: str = ""
    timestamp: str = Field(default_factory=utc_now_iso)
    status: HistoryStatus = HistoryStatus.PENDING


class ConversationState(BaseModel):
    """Snapshot of the single active run."""
    is_active: bool = False
    current_agent_id: Optional[int] = None
    current_step: int = 0
    total_steps: int = 0
    user_input: str = ""
    agent_states: Dict[int, AgentStateInfo] = Field(default_factory=dict)
    step_states: Dict[int, AgentStepState] = Field(default_factory=dict)
    conversation_history: List[HistoryEntry] = Field(default_factory=list)
    session_id: str = ""
    status: RunStatus = RunStatus.IDLE
    error: Optional[str] = None
    mode: ConversationMode = ConversationMode.AUTO


class ConversationOptions(BaseModel):
    mode: ConversationMode = ConversationMode.AUTO
    max_retries: int = Field(default=3, ge=0)
    timeout_seconds: float = Field(default=30.0, gt=0)

    @property
    def auto_proceed(self) -> bool:
        return self.mode == ConversationMode.AUTO

    @classmethod
    def from_settings(cls, conversation: ConversationSettings) -> "ConversationOptions":
        try:
            mode = ConversationMode(conversation.mode)
        except ValueError:
            raise ConfigError(f"CONVO_MODE must be 'auto' or 'manual', got '{conversation.mode}'") from None
        return cls(
            mode=mode,
            max_retries=conversation.max_retries,
            timeout_seconds=conversation.timeout_seconds,
        )


class ActionResult(BaseModel):
    """Outcome of a controller action. Rejections never raise."""
    accepted: bool
    message: Optional[str] = None
    state: ConversationState
