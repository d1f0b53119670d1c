import asyncio
import json
import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import StreamingResponse

from convolib.di import container
from convolib.exceptions import TemplateValidationError
from convolib.observability import get_memory_handler

from .context_assembler import assemble_context
from .controller import ConversationController
from .events import ConversationEventPublisher
from .prompt_builder import estimate_token_count, validate_prompt_template
from .schemas import (
    AgentActionRequest,
    EditRequest,
    RejectResponseRequest,
    SetModeRequest,
    StartConversationRequest,
    ValidateTemplateRequest,
)
from .state import ActionResult

logger = logging.getLogger(__name__)

router = APIRouter(prefix='/conversation', tags=['ConversationApi'])


def svc() -> ConversationController:
    return container.resolve('conversation.controller')


def events() -> ConversationEventPublisher:
    return container.resolve('conversation.events')


def _respond(result: ActionResult):
    """Rejected actions map to 409 with the controller's message."""
    if not result.accepted:
        raise HTTPException(status_code=409, detail=result.message)
    return result.model_dump(mode="json")


# ==================== RUN LIFECYCLE ====================

@router.post('/start')
async def start_conversation(request: StartConversationRequest):
    """
    Start a new run. Any active run is stopped first.

    Request:
    {
      "user_input": "A habit tracking app for remote teams",
      "agents": [{"id": 1, "name": "Strategist", "role": {...}, "contextSources": [...], "task": {...}}]
    }

    Response:
    {
      "accepted": true,
      "message": "Conversation started",
      "state": {"session_id": "session_...", "status": "running", ...}
    }
    """
    return _respond(await svc().start_conversation(request.user_input, request.agents))


@router.post('/pause')
async def pause_conversation():
    return _respond(svc().pause_conversation())


@router.post('/resume')
async def resume_conversation():
    return _respond(await svc().resume_conversation())


@router.post('/stop')
async def stop_conversation():
    return _respond(svc().stop_conversation())


@router.post('/acknowledge')
async def acknowledge_completion():
    return _respond(svc().acknowledge_completion())


@router.post('/proceed')
async def proceed_to_next_agent():
    return _respond(await svc().proceed_to_next_agent())


@router.post('/process')
async def process_current_agent():
    return _respond(await svc().process_current_agent())


@router.post('/retry')
async def retry_current_agent():
    return _respond(await svc().retry_current_agent())


# ==================== MODE ====================

@router.post('/mode/toggle')
async def toggle_mode():
    return _respond(svc().toggle_mode())


@router.post('/mode')
async def set_mode(request: SetModeRequest):
    return _respond(svc().set_mode(request.mode))


# ==================== REVIEW ====================

@router.post('/prompt/approve')
async def approve_prompt(request: AgentActionRequest):
    return _respond(await svc().approve_prompt(request.agent_id))


@router.post('/prompt/edit')
async def edit_prompt(request: EditRequest):
    return _respond(svc().edit_prompt(request.agent_id, request.text))


@router.post('/response/approve')
async def approve_response(request: AgentActionRequest):
    return _respond(await svc().approve_response(request.agent_id))


@router.post('/response/reject')
async def reject_response(request: RejectResponseRequest):
    """
    Reject the current agent's draft. The agent returns to Idle.

    Request:
    {
      "agent_id": 2,
      "reason": "Too generic"
    }
    """
    return _respond(svc().reject_response(request.agent_id, request.reason or ""))


@router.post('/response/edit')
async def edit_response(request: EditRequest):
    return _respond(svc().edit_response(request.agent_id, request.text))


# ==================== QUERIES ====================

@router.get('/state')
async def get_state():
    return svc().state.model_dump(mode="json")


@router.get('/summary')
async def get_summary():
    controller = svc()
    current = controller.get_current_agent()
    summary = controller.get_conversation_summary()
    summary["current_agent"] = {"id": current.id, "name": current.name} if current else None
    return summary


@router.get('/history')
async def get_history():
    return [e.model_dump(mode="json") for e in svc().state.conversation_history]


@router.get('/options')
async def get_options():
    return svc().options.model_dump(mode="json")


@router.get('/logs')
async def get_logs(
    level: Optional[str] = Query(None, description="Minimum level, e.g. WARNING"),
    component: Optional[str] = Query(None, description="Logger name prefix"),
):
    handler = get_memory_handler()
    if handler is None:
        return {"logs": []}
    return {"logs": handler.get_logs(level=level, component=component)}


# ==================== PROMPTS ====================

@router.post('/prompt/validate')
async def validate_template(request: ValidateTemplateRequest):
    """
    Validate a prompt template without running it.

    Response:
    {
      "valid": false,
      "errors": ["Template must include {USER_INPUT} placeholder"],
      "estimated_tokens": 12
    }
    """
    result = validate_prompt_template(request.template)
    return {
        "valid": result.valid,
        "errors": result.errors,
        "estimated_tokens": estimate_token_count(request.template),
    }


@router.get('/prompt/summary/{agent_id}')
async def get_prompt_summary(agent_id: int):
    """Summary of the prompt ``agent_id`` would receive with the current context."""
    controller = svc()
    agent = next((a for a in controller.agents if a.id == agent_id), None)
    if agent is None:
        raise HTTPException(status_code=404, detail=f"Agent {agent_id} not found")
    try:
        context = assemble_context(controller.state, controller.agents)
        return controller.prompt_builder.create_prompt_summary(agent, context)
    except TemplateValidationError as e:
        raise HTTPException(status_code=400, detail=e.errors)


# ==================== STREAMING ====================

@router.get('/events')
async def stream_events():
    """
    Server-Sent Events stream of conversation events.

    Each ``data:`` line holds one event: ``state_changed`` with the full
    state snapshot, or ``history_committed`` with a finalized entry.
    """
    publisher = events()
    queue: asyncio.Queue = asyncio.Queue(maxsize=500)
    publisher.subscribe_queue(queue)

    async def sse_generator():
        try:
            while True:
                item = await queue.get()
                yield f"data: {json.dumps(item, separators=(',', ':'))}\n\n"
        finally:
            publisher.unsubscribe_queue(queue)

    return StreamingResponse(
        sse_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
        },
    )
