"""
Pipeline controller tests in auto mode.

Run with:
    pytest tests/test_controller_auto.py -v
"""

import asyncio

import pytest

from conftest import ScriptedProvider, make_agent, make_chain
from convolib.exceptions import LLMExecutionError

from apps.conversation.audit import InMemoryAuditSink
from apps.conversation.controller import ConversationController
from apps.conversation.events import ConversationEventType
from apps.conversation.state import (
    AgentState,
    ConversationMode,
    ConversationOptions,
    HistoryStatus,
    RunStatus,
)


async def _until(predicate, attempts: int = 500):
    """Yield to the event loop until ``predicate()`` holds."""
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0.001)
    raise AssertionError("condition not reached")


def _agent_payload(payload, agent_id):
    # JSON-mode dumps may stringify integer dict keys
    agent_states = payload["agent_states"]
    return agent_states.get(str(agent_id), agent_states.get(agent_id))


class TestAutoRun:

    @pytest.mark.asyncio
    async def test_three_agents_complete_in_order(self, provider, agents):
        controller = ConversationController(provider)

        result = await controller.start_conversation("build a todo app", agents)

        state = result.state
        assert result.accepted
        assert state.status == RunStatus.COMPLETED
        assert state.is_active is False
        assert [(e.agent_id, e.status) for e in state.conversation_history] == [
            (1, HistoryStatus.COMPLETED),
            (2, HistoryStatus.COMPLETED),
            (3, HistoryStatus.COMPLETED),
        ]
        assert all(info.state == AgentState.COMPLETE for info in state.agent_states.values())
        assert all(steps.complete for steps in state.step_states.values())
        assert len(provider.requests) == 3
        assert state.session_id.startswith("session_")

    @pytest.mark.asyncio
    async def test_downstream_prompts_see_upstream_responses(self, provider, agents):
        controller = ConversationController(provider)
        await controller.start_conversation("build a todo app", agents)

        first, second, third = (r.prompt for r in provider.requests)
        assert "build a todo app" in first
        assert "Response #" not in first
        assert "Build on: Response #1" in second
        assert "Build on: Response #2" in third
        assert "[No response available" not in second + third

    @pytest.mark.asyncio
    async def test_history_records_prompt_and_response(self, provider, agents):
        controller = ConversationController(provider)
        state = (await controller.start_conversation("build a todo app", agents)).state

        entry = state.conversation_history[1]
        assert entry.agent_name == "Agent 2"
        assert entry.prompt == provider.requests[1].prompt
        assert entry.response == "Response #2"
        assert state.agent_states[2].tokens_used == 15

    @pytest.mark.asyncio
    async def test_progress_and_summary(self, provider, agents):
        controller = ConversationController(provider)
        assert controller.get_progress() == 0.0

        await controller.start_conversation("build a todo app", agents)

        summary = controller.get_conversation_summary()
        assert controller.get_progress() == 100.0
        assert summary["total"] == 3
        assert summary["completed"] == 3
        assert summary["failed"] == 0
        assert summary["pending"] == 0
        assert summary["status"] == "completed"

    @pytest.mark.asyncio
    async def test_agents_are_run_in_id_order(self, provider):
        controller = ConversationController(provider)
        shuffled = list(reversed(make_chain(3)))

        state = (await controller.start_conversation("build a todo app", shuffled)).state

        assert [e.agent_id for e in state.conversation_history] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_acknowledge_completion(self, provider, agents):
        controller = ConversationController(provider)
        assert not controller.acknowledge_completion().accepted

        await controller.start_conversation("build a todo app", agents)
        result = controller.acknowledge_completion()

        assert result.accepted
        assert result.state.status == RunStatus.IDLE
        assert result.state.current_agent_id is None
        assert len(result.state.conversation_history) == 3


class TestStartRejections:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("user_input", ["", "   "])
    async def test_empty_input(self, provider, agents, user_input):
        controller = ConversationController(provider)

        result = await controller.start_conversation(user_input, agents)

        assert not result.accepted
        assert "user input is empty" in result.message
        assert result.state.status == RunStatus.IDLE
        assert result.state.session_id == ""
        assert provider.requests == []

    @pytest.mark.asyncio
    async def test_no_agents(self, provider):
        result = await ConversationController(provider).start_conversation("build a todo app", [])

        assert not result.accepted
        assert "no agents" in result.message

    @pytest.mark.asyncio
    async def test_forward_reference_is_rejected(self, provider):
        agents = [make_agent(1, upstream=(2,)), make_agent(2)]

        result = await ConversationController(provider).start_conversation("build a todo app", agents)

        assert not result.accepted
        assert "does not run before agent 1" in result.message
        assert provider.requests == []

    @pytest.mark.asyncio
    async def test_invalid_template_is_rejected(self, provider):
        agents = [make_agent(1, template="no input placeholder")]

        result = await ConversationController(provider).start_conversation("build a todo app", agents)

        assert not result.accepted
        assert "Template must include {USER_INPUT} placeholder" in result.message

    @pytest.mark.asyncio
    async def test_rejected_start_keeps_running_state(self, provider):
        controller = ConversationController(provider, ConversationOptions(mode=ConversationMode.MANUAL))
        await controller.start_conversation("build a todo app", make_chain(2))
        session_id = controller.state.session_id

        result = await controller.start_conversation("", make_chain(2))

        assert not result.accepted
        assert result.state.session_id == session_id
        assert result.state.status == RunStatus.RUNNING


class TestBackendFailures:

    @pytest.mark.asyncio
    async def test_backend_error_becomes_run_error(self, provider, agents):
        provider.fail_next(LLMExecutionError("upstream 502"))
        controller = ConversationController(provider)

        state = (await controller.start_conversation("build a todo app", agents)).state

        assert state.status == RunStatus.ERROR
        assert state.is_active
        assert state.error == "Agent Agent 1 failed: upstream 502"
        assert state.agent_states[1].state == AgentState.FAILED
        assert state.agent_states[1].error == "upstream 502"
        assert state.agent_states[2].state == AgentState.IDLE
        assert [e.status for e in state.conversation_history] == [HistoryStatus.FAILED]
        assert len(provider.requests) == 1

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_caught(self, provider, agents):
        provider.fail_next(RuntimeError("socket closed"))
        controller = ConversationController(provider)

        result = await controller.start_conversation("build a todo app", agents)

        assert result.accepted
        assert result.state.status == RunStatus.ERROR
        assert "socket closed" in result.state.error

    @pytest.mark.asyncio
    async def test_timeout_fails_the_agent(self, agents):
        provider = ScriptedProvider()
        provider.gate = asyncio.Event()  # never released
        controller = ConversationController(provider, ConversationOptions(timeout_seconds=0.05))

        state = (await controller.start_conversation("build a todo app", agents)).state

        assert state.status == RunStatus.ERROR
        assert state.agent_states[1].state == AgentState.FAILED
        assert "timeout after 0.05s" in state.error

    @pytest.mark.asyncio
    async def test_failed_entry_reaches_audit_sink(self, provider, agents):
        provider.fail_next(LLMExecutionError("boom"))
        sink = InMemoryAuditSink()
        controller = ConversationController(provider, audit_sink=sink)

        state = (await controller.start_conversation("build a todo app", agents)).state

        entries = sink.get_entries(state.session_id)
        assert [e.status for e in entries] == [HistoryStatus.FAILED]


class TestConcurrency:

    @pytest.mark.asyncio
    async def test_stop_discards_in_flight_response(self, agents):
        provider = ScriptedProvider()
        provider.gate = asyncio.Event()
        controller = ConversationController(provider, background=True)

        await controller.start_conversation("build a todo app", agents)
        await _until(lambda: provider.requests)
        controller.stop_conversation()
        provider.gate.set()
        await controller.wait_until_settled()

        state = controller.state
        assert state.status == RunStatus.IDLE
        assert state.current_agent_id is None
        assert state.agent_states[1].current_response is None
        assert state.conversation_history[0].status == HistoryStatus.PENDING
        assert state.conversation_history[0].response == ""

    @pytest.mark.asyncio
    async def test_restart_discards_previous_run_result(self, agents):
        provider = ScriptedProvider()
        provider.gate = asyncio.Event()
        controller = ConversationController(provider, background=True)

        await controller.start_conversation("first idea", agents)
        await _until(lambda: len(provider.requests) == 1)
        first_task = controller._task
        stale_gate = provider.gate
        provider.gate = None  # the new run answers immediately

        await controller.start_conversation("second idea", agents)
        await controller.wait_until_settled()
        assert controller.state.status == RunStatus.COMPLETED
        before = controller.state

        # Let the stale call finish; it must not touch the new run
        stale_gate.set()
        await first_task

        state = controller.state
        assert "first idea" in provider.requests[0].prompt
        assert state == before
        assert all("second idea" in e.prompt for e in state.conversation_history)
        assert len(state.conversation_history) == 3

    @pytest.mark.asyncio
    async def test_second_trigger_while_processing_is_rejected(self, agents):
        provider = ScriptedProvider()
        provider.gate = asyncio.Event()
        controller = ConversationController(provider, background=True)

        await controller.start_conversation("build a todo app", agents)
        await _until(lambda: provider.requests)

        result = await controller.process_current_agent()
        assert not result.accepted
        assert "already being processed" in result.message

        provider.gate.set()
        await controller.wait_until_settled()
        assert len(provider.requests) == 3
        assert controller.state.status == RunStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_pause_freezes_and_resume_continues(self, agents):
        provider = ScriptedProvider()
        provider.gate = asyncio.Event()
        controller = ConversationController(provider, background=True)

        await controller.start_conversation("build a todo app", agents)
        await _until(lambda: provider.requests)
        assert controller.pause_conversation().accepted
        provider.gate.set()
        await controller.wait_until_settled()

        state = controller.state
        assert state.status == RunStatus.PAUSED
        assert state.agent_states[1].state == AgentState.RESPONSE_DRAFT
        assert state.agent_states[2].state == AgentState.IDLE
        assert len(provider.requests) == 1

        assert (await controller.resume_conversation()).accepted
        await controller.wait_until_settled()
        assert controller.state.status == RunStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_pause_and_resume_require_matching_status(self, provider, agents):
        controller = ConversationController(provider)

        assert not controller.pause_conversation().accepted
        assert not (await controller.resume_conversation()).accepted


class TestEvents:

    @pytest.mark.asyncio
    async def test_snapshot_after_every_transition(self, provider, agents):
        controller = ConversationController(provider)
        received = []
        controller.events.subscribe(received.append)

        await controller.start_conversation("build a todo app", agents)

        snapshots = [e for e in received if e.event_type == ConversationEventType.STATE_CHANGED]
        committed = [e for e in received if e.event_type == ConversationEventType.HISTORY_COMMITTED]
        assert [e.payload["agent_id"] for e in committed] == [1, 2, 3]
        assert snapshots[-1].payload["status"] == "completed"
        seen_states = [_agent_payload(s.payload, 1)["state"] for s in snapshots if s.payload["agent_states"]]
        for expected in ("Prompt_Draft", "Prompt_OK", "Generating", "Response_Draft", "Response_OK", "Complete"):
            assert expected in seen_states

    @pytest.mark.asyncio
    async def test_failing_subscriber_does_not_break_run(self, provider, agents):
        controller = ConversationController(provider)

        def broken(_event):
            raise ValueError("subscriber bug")

        controller.events.subscribe(broken)
        state = (await controller.start_conversation("build a todo app", agents)).state

        assert state.status == RunStatus.COMPLETED


class TestMode:

    def test_toggle_and_set_mode(self, provider):
        controller = ConversationController(provider)

        assert controller.toggle_mode().state.mode == ConversationMode.MANUAL
        assert controller.toggle_mode().state.mode == ConversationMode.AUTO
        assert controller.set_mode("manual").state.mode == ConversationMode.MANUAL
        assert controller.options.mode == ConversationMode.MANUAL
        assert not controller.set_mode("turbo").accepted
