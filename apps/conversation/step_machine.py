"""
Agent sub-step ordering rules.

    prompt_draft -> prompt_ok -> generating -> response_draft -> response_ok -> complete

A sub-step may be enabled only once its predecessor completed, and may be
completed only once enabled. Completing a sub-step enables its successor.
The agent's overall ``complete`` flag may be set only after ``response_ok``.
"""
import logging
from typing import Optional

from convolib.exceptions import StepTransitionError

from .state import SUB_STEP_ORDER, AgentStepState, SubStep

logger = logging.getLogger(__name__)

# Sub-steps that wait for a user action in manual mode
APPROVAL_GATES = (SubStep.PROMPT_OK, SubStep.RESPONSE_OK)


def _predecessor(step: SubStep) -> Optional[SubStep]:
    index = SUB_STEP_ORDER.index(step)
    return SUB_STEP_ORDER[index - 1] if index > 0 else None


def _successor(step: SubStep) -> Optional[SubStep]:
    index = SUB_STEP_ORDER.index(step)
    return SUB_STEP_ORDER[index + 1] if index + 1 < len(SUB_STEP_ORDER) else None


def start_agent(steps: AgentStepState) -> None:
    """Enable the agent and its first sub-step."""
    if steps.enabled:
        raise StepTransitionError("Agent is already enabled")
    steps.enabled = True
    steps.prompt_draft_enabled = True


def enable_step(steps: AgentStepState, step: SubStep) -> None:
    if not steps.enabled:
        raise StepTransitionError(f"Cannot enable {step.value}: agent is not enabled")
    previous = _predecessor(step)
    if previous is not None and not steps.is_complete(previous):
        raise StepTransitionError(f"Cannot enable {step.value} before {previous.value} is complete")
    setattr(steps, f"{step.value}_enabled", True)


def complete_step(steps: AgentStepState, step: SubStep) -> None:
    """
    Mark ``step`` complete and enable the next sub-step.

    Raises:
        StepTransitionError: If ``step`` was not enabled or is already complete.
    """
    if not steps.is_enabled(step):
        raise StepTransitionError(f"Cannot complete {step.value}: step is not enabled")
    if steps.is_complete(step):
        raise StepTransitionError(f"Step {step.value} is already complete")
    setattr(steps, f"{step.value}_complete", True)

    following = _successor(step)
    if following is not None:
        enable_step(steps, following)


def mark_agent_complete(steps: AgentStepState) -> None:
    if not steps.response_ok_complete:
        raise StepTransitionError("Cannot complete agent before response_ok is complete")
    steps.complete = True


def pending_step(steps: AgentStepState) -> Optional[SubStep]:
    """The enabled but not yet complete sub-step, if any."""
    for step in SUB_STEP_ORDER:
        if steps.is_enabled(step) and not steps.is_complete(step):
            return step
    return None


def is_waiting_for_approval(steps: AgentStepState) -> bool:
    return pending_step(steps) in APPROVAL_GATES


def reset_steps() -> AgentStepState:
    return AgentStepState()
