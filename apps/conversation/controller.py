"""
Conversation Pipeline Controller

Drives an ordered list of agents through the sub-step pipeline:

    prompt_draft -> prompt_ok -> generating -> response_draft -> response_ok -> complete

Modes:
- auto:   approval gates complete on their own and the controller moves to
          the next agent as soon as one completes
- manual: the run waits at prompt_ok for approve_prompt(), at response_ok for
          approve_response(), and between agents for proceed_to_next_agent()
          followed by process_current_agent()

Processing is an explicit loop (``_run_pipeline``) that advances the current
agent one sub-step at a time until it reaches a gate the mode does not allow
to pass, the run is paused or stopped, or the pipeline finishes.

Every public action returns an ``ActionResult``. Invalid actions are
rejected with a message and leave the state untouched; backend failures
become state (``status = error``) rather than exceptions.

Concurrency:
- one run at a time; starting a new run stops the previous one
- a generation counter identifies the run; a completion that returns after
  the run was stopped or restarted is discarded
- a second processing trigger while one is in flight is a no-op
"""

import asyncio
import logging
import time
import uuid
from typing import Any, Dict, List, Optional, Sequence, Union

from convolib.exceptions import TemplateValidationError
from convolib.llm_provider import LLMProvider
from convolib.types import AgentConfiguration, LLMRequest
from convolib.utils import utc_now_iso

from .audit import AuditSink, InMemoryAuditSink
from .context_assembler import assemble_context
from .events import ConversationEvent, ConversationEventPublisher, ConversationEventType
from .prompt_builder import PromptBuilder
from .retry import RetryHandler
from .state import (
    ActionResult,
    AgentState,
    AgentStateInfo,
    AgentStepState,
    ConversationMode,
    ConversationOptions,
    ConversationState,
    HistoryEntry,
    HistoryStatus,
    RunStatus,
    SubStep,
)
from .step_machine import complete_step, mark_agent_complete, pending_step, reset_steps, start_agent
from .validation import validate_pipeline

logger = logging.getLogger(__name__)

# Agent states between "prompt drafted" and "complete"
IN_PROGRESS_STATES = (
    AgentState.PROMPT_DRAFT,
    AgentState.PROMPT_OK,
    AgentState.GENERATING,
    AgentState.RESPONSE_DRAFT,
    AgentState.RESPONSE_OK,
)


def new_session_id() -> str:
    return f"session_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


class ConversationController:
    """
    Owns the single conversation run.

    Args:
        provider: Completion backend.
        options: Mode, retry budget and timeout. Defaults to auto mode.
        prompt_builder: Renders agent prompts.
        audit_sink: Receives every finalized history entry.
        events: Publisher notified after every transition.
        background: Schedule processing as an asyncio task instead of
            awaiting it inside the action (used by the HTTP surface).
    """

    def __init__(
        self,
        provider: LLMProvider,
        options: Optional[ConversationOptions] = None,
        prompt_builder: Optional[PromptBuilder] = None,
        audit_sink: Optional[AuditSink] = None,
        events: Optional[ConversationEventPublisher] = None,
        background: bool = False,
    ):
        self.provider = provider
        self.options = options or ConversationOptions()
        self.prompt_builder = prompt_builder or PromptBuilder()
        self.audit_sink = audit_sink or InMemoryAuditSink()
        self.events = events or ConversationEventPublisher()
        self.background = background
        self.retry = RetryHandler(self.options.max_retries, self.options.timeout_seconds)

        self._state = ConversationState(mode=self.options.mode)
        self._agents: List[AgentConfiguration] = []
        self._requests: Dict[int, LLMRequest] = {}
        self._generation = 0
        self._processing_generation: Optional[int] = None
        self._task: Optional[asyncio.Task] = None

    # ==================== QUERIES ====================

    @property
    def state(self) -> ConversationState:
        """Detached snapshot of the run state."""
        return self._state.model_copy(deep=True)

    @property
    def agents(self) -> List[AgentConfiguration]:
        return list(self._agents)

    @property
    def is_processing(self) -> bool:
        return self._processing_generation == self._generation

    def get_current_agent(self) -> Optional[AgentConfiguration]:
        if self._state.current_agent_id is None:
            return None
        return self._find_agent(self._state.current_agent_id)

    def get_progress(self) -> float:
        """Percentage of agents whose step state is complete."""
        if self._state.total_steps == 0:
            return 0.0
        completed = sum(1 for s in self._state.step_states.values() if s.complete)
        return completed / self._state.total_steps * 100

    def get_conversation_summary(self) -> Dict[str, Any]:
        return {
            "total": self._state.total_steps,
            "completed": sum(1 for s in self._state.step_states.values() if s.complete),
            "failed": sum(1 for e in self._state.conversation_history if e.status == HistoryStatus.FAILED),
            "pending": sum(1 for i in self._state.agent_states.values() if i.state in IN_PROGRESS_STATES),
            "progress": self.get_progress(),
            "status": self._state.status.value,
            "mode": self._state.mode.value,
            "session_id": self._state.session_id,
        }

    async def wait_until_settled(self) -> None:
        """Wait for background processing scheduled by the last action."""
        task = self._task
        if task is not None and not task.done():
            await task

    # ==================== RUN LIFECYCLE ====================

    async def start_conversation(self, user_input: str, agents: Sequence[AgentConfiguration]) -> ActionResult:
        """
        Start a new run over ``agents``.

        Empty input, an empty agent list or an invalid pipeline are rejected
        without touching the current state. An active run is stopped first.
        """
        if not user_input or not user_input.strip():
            return self._reject("Cannot start conversation: user input is empty")
        if not agents:
            return self._reject("Cannot start conversation: no agents configured")

        validation = validate_pipeline(agents)
        if not validation.valid:
            return self._reject(f"Cannot start conversation: {'; '.join(validation.errors)}")

        if self._state.is_active:
            logger.info(f"Stopping active session {self._state.session_id} before starting a new one")
            self.stop_conversation()

        self._generation += 1
        self._agents = sorted(agents, key=lambda a: a.id)
        self._requests.clear()
        self.retry.reset()

        first = self._agents[0]
        self._state = ConversationState(
            is_active=True,
            current_agent_id=first.id,
            current_step=1,
            total_steps=len(self._agents),
            user_input=user_input,
            agent_states={a.id: AgentStateInfo() for a in self._agents},
            step_states={a.id: AgentStepState() for a in self._agents},
            session_id=new_session_id(),
            status=RunStatus.RUNNING,
            mode=self.options.mode,
        )
        logger.info(
            f"Started conversation {self._state.session_id} with {len(self._agents)} agents "
            f"in {self.options.mode.value} mode"
        )
        self._publish_state()

        await self._continue(start_idle=True)
        return self._accept("Conversation started")

    def pause_conversation(self) -> ActionResult:
        if not self._state.is_active or self._state.status != RunStatus.RUNNING:
            return self._reject("Cannot pause: conversation is not running")
        self._state.status = RunStatus.PAUSED
        logger.info("Conversation paused")
        self._publish_state()
        return self._accept("Conversation paused")

    async def resume_conversation(self) -> ActionResult:
        if not self._state.is_active or self._state.status != RunStatus.PAUSED:
            return self._reject("Cannot resume: conversation is not paused")
        self._state.status = RunStatus.RUNNING
        logger.info("Conversation resumed")
        self._publish_state()

        await self._continue(start_idle=self.options.auto_proceed)
        return self._accept("Conversation resumed")

    def stop_conversation(self) -> ActionResult:
        """Stop unconditionally. History is kept; in-flight results are discarded."""
        self._generation += 1
        self._state.is_active = False
        self._state.status = RunStatus.IDLE
        self._state.current_agent_id = None
        self._state.current_step = 0
        logger.info(f"Conversation {self._state.session_id or '-'} stopped")
        self._publish_state()
        return self._accept("Conversation stopped")

    def acknowledge_completion(self) -> ActionResult:
        if self._state.status != RunStatus.COMPLETED:
            return self._reject("Cannot acknowledge: conversation is not completed")
        self._state.status = RunStatus.IDLE
        self._state.current_agent_id = None
        self._state.current_step = 0
        self._publish_state()
        return self._accept("Conversation acknowledged")

    async def proceed_to_next_agent(self) -> ActionResult:
        agent = self.get_current_agent()
        if agent is None or not self._state.is_active:
            return self._reject("Cannot proceed: no active conversation")
        if self._state.status != RunStatus.RUNNING:
            return self._reject(f"Cannot proceed: conversation is {self._state.status.value}")
        if not self._state.step_states[agent.id].complete:
            return self._reject(f"Cannot proceed: agent {agent.name} is not complete")

        self._advance_cursor()
        await self._continue(start_idle=False)
        return self._accept()

    async def process_current_agent(self) -> ActionResult:
        """Start an idle current agent, or continue it through any gate the mode allows."""
        agent = self.get_current_agent()
        if agent is None or not self._state.is_active:
            return self._reject("Cannot process: no active conversation")
        if self._state.status != RunStatus.RUNNING:
            return self._reject(f"Cannot process: conversation is {self._state.status.value}")
        if self.is_processing:
            return self._reject("Cannot process: agent is already being processed")
        info = self._state.agent_states[agent.id]
        if info.state == AgentState.FAILED:
            return self._reject(f"Cannot process: agent {agent.name} failed, retry it instead")
        if self._state.step_states[agent.id].complete:
            return self._reject(f"Agent {agent.name} is already complete")

        await self._continue(start_idle=True)
        return self._accept()

    async def retry_current_agent(self) -> ActionResult:
        """
        Restart the current agent from prompt_draft.

        Each agent may be retried ``max_retries`` times per run; once the
        budget is spent the run goes to ``error`` until restarted.
        """
        agent = self.get_current_agent()
        if agent is None or not self._state.is_active:
            return self._reject("Cannot retry: no current agent")
        if self.is_processing:
            return self._reject("Cannot retry: agent is already being processed")
        if self._state.step_states[agent.id].complete:
            return self._reject(f"Cannot retry: agent {agent.name} is already complete")

        if not self.retry.can_retry(agent.id):
            message = self.retry.exhausted_message(agent.id)
            logger.error(message)
            self._state.status = RunStatus.ERROR
            self._state.error = message
            self._publish_state()
            return self._reject(message)

        self.retry.record_retry(agent.id)
        self._reset_agent(agent.id)
        # Drop the failed attempt so the next one appends exactly one entry
        self._state.conversation_history = [
            e for e in self._state.conversation_history
            if not (e.agent_id == agent.id and e.status in (HistoryStatus.PENDING, HistoryStatus.FAILED))
        ]
        self._state.error = None
        self._state.status = RunStatus.RUNNING
        self._publish_state()

        await self._continue(start_idle=True)
        return self._accept(f"Retrying agent {agent.name}")

    # ==================== MODE ====================

    def toggle_mode(self) -> ActionResult:
        mode = ConversationMode.MANUAL if self.options.mode == ConversationMode.AUTO else ConversationMode.AUTO
        return self.set_mode(mode)

    def set_mode(self, mode: Union[ConversationMode, str]) -> ActionResult:
        try:
            mode = ConversationMode(mode)
        except ValueError:
            return self._reject(f"Unknown mode: {mode}")
        self.options = self.options.model_copy(update={"mode": mode})
        self._state.mode = mode
        logger.info(f"Conversation mode set to {mode.value}")
        self._publish_state()
        return self._accept(f"Mode set to {mode.value}")

    # ==================== REVIEW ACTIONS ====================

    async def approve_prompt(self, agent_id: int) -> ActionResult:
        agent, error = self._review_target(agent_id)
        if error:
            return self._reject(error)
        steps = self._state.step_states[agent_id]
        if pending_step(steps) != SubStep.PROMPT_OK:
            return self._reject(f"Cannot approve prompt: agent {agent.name} is not waiting for prompt approval")

        self._approve_prompt(agent)
        if self._state.status == RunStatus.RUNNING:
            await self._continue(start_idle=False)
        return self._accept("Prompt approved")

    async def approve_response(self, agent_id: int) -> ActionResult:
        agent, error = self._review_target(agent_id)
        if error:
            return self._reject(error)
        steps = self._state.step_states[agent_id]
        if pending_step(steps) != SubStep.RESPONSE_OK:
            return self._reject(f"Cannot approve response: agent {agent.name} has no response awaiting approval")

        self._complete_agent(agent)
        if self._state.status == RunStatus.RUNNING:
            await self._continue(start_idle=False)
        return self._accept("Response approved")

    def reject_response(self, agent_id: int, reason: str = "") -> ActionResult:
        """
        Throw away the current attempt of an agent.

        The agent returns to Idle and its working history entry is finalized
        as failed. ``process_current_agent`` or ``retry_current_agent``
        regenerates it.
        """
        agent, error = self._review_target(agent_id)
        if error:
            return self._reject(error)
        if self.is_processing and self._state.agent_states[agent_id].state == AgentState.GENERATING:
            return self._reject(f"Cannot reject: agent {agent.name} is generating")

        reason = reason or "No reason given"
        entry = self._working_entry(agent_id)
        if entry is not None:
            entry.response = f"Rejected: {reason}"
            entry.status = HistoryStatus.FAILED
            self._commit(entry)

        self._reset_agent(agent_id)
        logger.info(f"Response of agent {agent.name} rejected: {reason}")
        self._publish_state()
        return self._accept(f"Response rejected: {reason}")

    def edit_prompt(self, agent_id: int, text: str) -> ActionResult:
        agent = self._find_agent(agent_id)
        if agent is None:
            return self._reject(f"Unknown agent {agent_id}")
        if not text or not text.strip():
            return self._reject("Cannot edit prompt: text is empty")
        info = self._state.agent_states.get(agent_id)
        steps = self._state.step_states.get(agent_id)
        if info is None or info.current_prompt is None:
            return self._reject(f"Cannot edit prompt: agent {agent.name} has no prompt")
        if info.state == AgentState.GENERATING:
            return self._reject(f"Cannot edit prompt: agent {agent.name} is generating")

        entry = self._working_entry(agent_id)
        if not steps.complete and entry is None:
            return self._reject(f"Cannot edit prompt: agent {agent.name} has no attempt in progress")

        info.current_prompt = text
        info.last_updated = utc_now_iso()
        if steps.complete:
            self._append_reviewed(agent_id, prompt=text)
        elif not steps.generating_complete:
            # Not sent yet, so the working entry follows the edit
            entry.prompt = text
        # Otherwise the working entry keeps the sent prompt; _complete_agent
        # appends the reviewed copy once the entry is final

        self._publish_state()
        return self._accept("Prompt updated")

    def edit_response(self, agent_id: int, text: str) -> ActionResult:
        agent = self._find_agent(agent_id)
        if agent is None:
            return self._reject(f"Unknown agent {agent_id}")
        if not text or not text.strip():
            return self._reject("Cannot edit response: text is empty")
        info = self._state.agent_states.get(agent_id)
        steps = self._state.step_states.get(agent_id)
        if info is None or info.current_response is None:
            return self._reject(f"Cannot edit response: agent {agent.name} has no response")

        info.current_response = text
        info.last_updated = utc_now_iso()
        if not steps.response_ok_complete:
            entry = self._working_entry(agent_id)
            if entry is not None:
                entry.response = text
        else:
            self._append_reviewed(agent_id, response=text)
            consumers = self._completed_consumers(agent_id)
            if consumers:
                logger.warning(
                    f"Response of agent {agent.name} edited after completion; "
                    f"already completed agents {consumers} used the previous version"
                )

        self._publish_state()
        return self._accept("Response updated")

    # ==================== PROCESSING LOOP ====================

    async def _continue(self, start_idle: bool) -> None:
        if self.background:
            self._task = asyncio.create_task(self._run_pipeline(start_idle))
        else:
            await self._run_pipeline(start_idle)

    async def _run_pipeline(self, start_idle: bool) -> None:
        if self.is_processing:
            logger.debug("Processing already in flight; ignoring trigger")
            return
        generation = self._generation
        self._processing_generation = generation
        try:
            while (
                generation == self._generation
                and self._state.is_active
                and self._state.status == RunStatus.RUNNING
            ):
                if not await self._advance(generation, start_idle):
                    break
        except Exception as e:
            # Step ordering violations are programming errors; keep them visible as run state
            logger.exception(f"Conversation processing failed: {e}")
            if generation == self._generation:
                self._state.status = RunStatus.ERROR
                self._state.error = str(e)
                self._publish_state()
        finally:
            if self._processing_generation == generation:
                self._processing_generation = None

    async def _advance(self, generation: int, start_idle: bool) -> bool:
        """Move the current agent one sub-step. Returns False when the loop must stop."""
        agent = self.get_current_agent()
        if agent is None:
            return False
        info = self._state.agent_states[agent.id]
        steps = self._state.step_states[agent.id]

        if steps.complete:
            if not self.options.auto_proceed:
                return False
            self._advance_cursor()
            return True

        if info.state == AgentState.FAILED:
            return False

        if not steps.enabled:
            if not (self.options.auto_proceed or start_idle):
                return False
            return self._draft_prompt(agent)

        step = pending_step(steps)
        if step == SubStep.PROMPT_OK:
            if not self.options.auto_proceed:
                return False
            self._approve_prompt(agent)
            return True
        if step == SubStep.GENERATING:
            return await self._generate(agent, generation)
        if step == SubStep.RESPONSE_OK:
            if not self.options.auto_proceed:
                return False
            self._complete_agent(agent)
            return True
        return False

    def _draft_prompt(self, agent: AgentConfiguration) -> bool:
        steps = self._state.step_states[agent.id]
        start_agent(steps)
        context = assemble_context(self._state, self._agents)
        try:
            request = self.prompt_builder.build_prompt(agent, context)
        except TemplateValidationError as e:
            self._fail_agent(agent, str(e))
            return False

        complete_step(steps, SubStep.PROMPT_DRAFT)
        self._requests[agent.id] = request
        self._set_agent_state(
            agent.id, AgentState.PROMPT_DRAFT,
            current_prompt=request.prompt, current_response=None,
            prompt_approved=None, response_approved=None, error=None,
        )
        self._state.conversation_history.append(
            HistoryEntry(agent_id=agent.id, agent_name=agent.name, prompt=request.prompt)
        )
        logger.info(f"Prompt drafted for agent {agent.name} (step {self._state.current_step}/{self._state.total_steps})")
        self._publish_state()
        return True

    def _approve_prompt(self, agent: AgentConfiguration) -> None:
        complete_step(self._state.step_states[agent.id], SubStep.PROMPT_OK)
        self._set_agent_state(agent.id, AgentState.PROMPT_OK, prompt_approved=True)
        self._publish_state()

    async def _generate(self, agent: AgentConfiguration, generation: int) -> bool:
        info = self._state.agent_states[agent.id]
        request = self._requests[agent.id]
        if info.current_prompt and info.current_prompt != request.prompt:
            request = request.model_copy(update={"prompt": info.current_prompt})
        entry = self._working_entry(agent.id)
        if entry is not None:
            entry.prompt = request.prompt

        self._set_agent_state(agent.id, AgentState.GENERATING)
        self._publish_state()
        logger.info(f"Generating response for agent {agent.name}")

        try:
            response = await self.retry.call_with_timeout(self.provider.complete(request))
        except Exception as e:
            if generation != self._generation:
                logger.info(f"Ignoring failure of agent {agent.name} from a stopped run: {e}")
                return False
            logger.error(f"Agent {agent.name} failed: {e}")
            self._fail_agent(agent, str(e))
            return False

        if generation != self._generation:
            logger.info(f"Discarding response of agent {agent.name} from a stopped run")
            return False

        steps = self._state.step_states[agent.id]
        complete_step(steps, SubStep.GENERATING)
        self._set_agent_state(
            agent.id, AgentState.RESPONSE_DRAFT,
            current_response=response.content, tokens_used=response.usage.total_tokens,
        )
        entry = self._working_entry(agent.id)
        if entry is not None:
            entry.response = response.content
        complete_step(steps, SubStep.RESPONSE_DRAFT)
        logger.info(
            f"Agent {agent.name} responded ({response.usage.total_tokens} tokens, "
            f"{response.metadata.duration:.0f}ms)"
        )
        self._publish_state()
        return True

    def _complete_agent(self, agent: AgentConfiguration) -> None:
        steps = self._state.step_states[agent.id]
        complete_step(steps, SubStep.RESPONSE_OK)
        self._set_agent_state(agent.id, AgentState.RESPONSE_OK, response_approved=True)
        self._publish_state()

        mark_agent_complete(steps)
        self._set_agent_state(agent.id, AgentState.COMPLETE)
        entry = self._working_entry(agent.id)
        if entry is not None:
            entry.response = self._state.agent_states[agent.id].current_response or ""
            entry.status = HistoryStatus.COMPLETED
            self._commit(entry)
            edited_prompt = self._state.agent_states[agent.id].current_prompt
            if edited_prompt and edited_prompt != entry.prompt:
                self._append_reviewed(agent.id, prompt=edited_prompt)
        logger.info(f"Agent {agent.name} complete")
        self._publish_state()

    def _fail_agent(self, agent: AgentConfiguration, message: str) -> None:
        self._set_agent_state(agent.id, AgentState.FAILED, error=message)
        entry = self._working_entry(agent.id)
        if entry is not None:
            entry.status = HistoryStatus.FAILED
            self._commit(entry)
        self._state.status = RunStatus.ERROR
        self._state.error = f"Agent {agent.name} failed: {message}"
        self._publish_state()

    def _advance_cursor(self) -> None:
        index = self._agent_index(self._state.current_agent_id)
        if index + 1 >= len(self._agents):
            self._state.status = RunStatus.COMPLETED
            self._state.is_active = False
            logger.info(f"Conversation {self._state.session_id} completed")
        else:
            following = self._agents[index + 1]
            self._state.current_agent_id = following.id
            self._state.current_step = index + 2
            logger.info(f"Moving to agent {following.name} (step {self._state.current_step}/{self._state.total_steps})")
        self._publish_state()

    # ==================== HELPERS ====================

    def _find_agent(self, agent_id: int) -> Optional[AgentConfiguration]:
        return next((a for a in self._agents if a.id == agent_id), None)

    def _agent_index(self, agent_id: Optional[int]) -> int:
        return next(i for i, a in enumerate(self._agents) if a.id == agent_id)

    def _review_target(self, agent_id: int):
        """Resolve an agent for approve/reject; only the current, unfinished agent qualifies."""
        agent = self._find_agent(agent_id)
        if agent is None:
            return None, f"Unknown agent {agent_id}"
        if not self._state.is_active or self._state.current_agent_id != agent_id:
            return agent, f"Agent {agent.name} is not the current agent"
        if self._state.step_states[agent_id].complete:
            return agent, f"Agent {agent.name} is already complete"
        return agent, None

    def _working_entry(self, agent_id: int) -> Optional[HistoryEntry]:
        for entry in reversed(self._state.conversation_history):
            if entry.agent_id == agent_id and entry.status == HistoryStatus.PENDING:
                return entry
        return None

    def _append_reviewed(self, agent_id: int, **changes) -> None:
        """Append a reviewed copy of the agent's latest finalized entry."""
        latest = next(
            (
                e for e in reversed(self._state.conversation_history)
                if e.agent_id == agent_id and e.status in (HistoryStatus.COMPLETED, HistoryStatus.REVIEWED)
            ),
            None,
        )
        if latest is None:
            return
        changes.update(status=HistoryStatus.REVIEWED, timestamp=utc_now_iso())
        reviewed = latest.model_copy(update=changes)
        self._state.conversation_history.append(reviewed)
        self._commit(reviewed)

    def _completed_consumers(self, agent_id: int) -> List[int]:
        return [
            a.id for a in self._agents
            if agent_id in a.upstream_agent_ids() and self._state.step_states[a.id].complete
        ]

    def _reset_agent(self, agent_id: int) -> None:
        self._state.agent_states[agent_id] = AgentStateInfo()
        self._state.step_states[agent_id] = reset_steps()
        self._requests.pop(agent_id, None)

    def _set_agent_state(self, agent_id: int, state: AgentState, **fields) -> None:
        info = self._state.agent_states[agent_id]
        info.state = state
        info.last_updated = utc_now_iso()
        for key, value in fields.items():
            setattr(info, key, value)

    def _commit(self, entry: HistoryEntry) -> None:
        try:
            self.audit_sink.record(self._state.session_id, entry)
        except Exception as e:
            logger.error(f"Failed to write audit entry for agent {entry.agent_name}: {e}")
        self.events.publish(ConversationEvent(
            event_type=ConversationEventType.HISTORY_COMMITTED,
            session_id=self._state.session_id,
            payload=entry.model_dump(mode="json"),
        ))

    def _publish_state(self) -> None:
        if not self.events.subscriber_count:
            return
        self.events.publish(ConversationEvent(
            event_type=ConversationEventType.STATE_CHANGED,
            session_id=self._state.session_id,
            payload=self._state.model_dump(mode="json"),
        ))

    def _accept(self, message: Optional[str] = None) -> ActionResult:
        return ActionResult(accepted=True, message=message, state=self.state)

    def _reject(self, message: str) -> ActionResult:
        logger.warning(message)
        return ActionResult(accepted=False, message=message, state=self.state)
