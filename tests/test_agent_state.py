"""Tests for the per-agent state machine."""

from __future__ import annotations

import threading

import pytest

from agentgate.agent_state import AgentStateMachine, validate_tool_call_transition
from agentgate.errors import InvalidTransitionError, ValidationError
from agentgate.models import (
    Agent,
    AgentConfig,
    AgentStatus,
    AgentStep,
    StepType,
    ToolCallRecord,
    ToolCallStatus,
)


def _machine() -> AgentStateMachine:
    return AgentStateMachine(Agent(config=AgentConfig(name="Test", instructions="Do it")))


def _tool_step(name: str = "write_file", status: ToolCallStatus = ToolCallStatus.PENDING) -> AgentStep:
    return AgentStep(
        type=StepType.TOOL_CALL,
        tool_call=ToolCallRecord(name=name, server="filesystem", status=status),
    )


def assert_pending_consistent(machine: AgentStateMachine) -> None:
    agent = machine.snapshot()
    pending = {
        s.id
        for s in agent.steps
        if s.tool_call is not None and s.tool_call.status == ToolCallStatus.PENDING
    }
    assert set(agent.pending_approvals) == pending
    assert len(agent.pending_approvals) == len(pending)
    if pending:
        assert agent.pending_tool_call is not None
        assert agent.pending_tool_call.step_id in pending
    else:
        assert agent.pending_tool_call is None


def test_status_lifecycle_timestamps():
    m = _machine()
    assert m.status == AgentStatus.CREATED
    agent = m.update_status(AgentStatus.RUNNING)
    assert agent.started_at is not None
    started = agent.started_at
    m.update_status(AgentStatus.WAITING)
    agent = m.update_status(AgentStatus.RUNNING)
    assert agent.started_at == started
    agent = m.update_status(AgentStatus.COMPLETED)
    assert agent.completed_at is not None


def test_invalid_status_transition():
    m = _machine()
    with pytest.raises(InvalidTransitionError, match="created -> completed"):
        m.update_status(AgentStatus.COMPLETED)
    assert m.status == AgentStatus.CREATED


def test_same_status_update_allowed():
    m = _machine()
    m.update_status(AgentStatus.RUNNING)
    m.update_status(AgentStatus.RUNNING)
    assert m.status == AgentStatus.RUNNING


def test_failed_records_error():
    m = _machine()
    agent = m.update_status(AgentStatus.FAILED, "boom")
    assert agent.error == "boom"
    assert agent.completed_at is not None


def test_append_pending_step_tracked():
    m = _machine()
    step = m.append_step(_tool_step())
    agent = m.snapshot()
    assert agent.pending_approvals == [step.id]
    assert agent.pending_tool_call.step_id == step.id
    assert agent.pending_tool_call.tool == "write_file"
    assert_pending_consistent(m)


def test_step_ids_assigned_on_append():
    m = _machine()
    original = AgentStep(type=StepType.MESSAGE, content="hi")
    a = m.append_step(original)
    b = m.append_step(original)
    assert a.id != original.id
    assert a.id != b.id


def test_second_pending_call_queues():
    m = _machine()
    first = m.append_step(_tool_step("write_file"))
    second = m.append_step(_tool_step("move_file"))
    agent = m.snapshot()
    assert agent.pending_tool_call.step_id == first.id
    assert agent.pending_approvals == [first.id, second.id]

    m.update_step(first.id, tool_call={"status": ToolCallStatus.DENIED})
    agent = m.snapshot()
    assert agent.pending_approvals == [second.id]
    assert agent.pending_tool_call.step_id == second.id
    assert_pending_consistent(m)


def test_update_step_leaving_pending():
    m = _machine()
    step = m.append_step(_tool_step())
    updated = m.update_step(step.id, tool_call={"status": "approved"})
    assert updated.tool_call.status == ToolCallStatus.APPROVED
    assert not m.has_pending()
    assert_pending_consistent(m)
    done = m.update_step(step.id, tool_call={"status": ToolCallStatus.COMPLETED, "result": "ok"})
    assert done.tool_call.result == "ok"


def test_tool_call_transitions_only_forward():
    m = _machine()
    step = m.append_step(_tool_step())
    with pytest.raises(InvalidTransitionError):
        m.update_step(step.id, tool_call={"status": ToolCallStatus.COMPLETED})
    m.update_step(step.id, tool_call={"status": ToolCallStatus.DENIED})
    with pytest.raises(InvalidTransitionError):
        m.update_step(step.id, tool_call={"status": ToolCallStatus.APPROVED})
    with pytest.raises(InvalidTransitionError):
        validate_tool_call_transition(ToolCallStatus.COMPLETED, ToolCallStatus.PENDING)


def test_update_missing_step_returns_none():
    m = _machine()
    assert m.update_step("nope", content="x") is None


@pytest.mark.parametrize(
    "updates",
    [
        {"id": "renamed"},
        {"type": StepType.ERROR},
        {"timestamp": None},
        {"tool_call": {"name": "delete_file"}},
        {"tool_call": {"args": {"path": "/"}}},
    ],
)
def test_update_step_rejects_fixed_fields(updates):
    m = _machine()
    step = m.append_step(_tool_step())
    with pytest.raises(ValidationError, match="cannot be updated"):
        m.update_step(step.id, **updates)
    agent = m.snapshot()
    assert [s.id for s in agent.steps] == [step.id]
    assert agent.steps[0].tool_call.name == "write_file"
    assert agent.pending_approvals == [step.id]
    assert_pending_consistent(m)


def test_update_step_content():
    m = _machine()
    step = m.append_step(AgentStep(type=StepType.THINKING, content="draft"))
    assert m.update_step(step.id, content="final").content == "final"


def test_edit_message():
    m = _machine()
    msg = m.append_message("assistant", "")
    assert m.edit_message(msg.id, "partial") is True
    assert m.edit_message("missing", "x") is False
    agent = m.snapshot()
    assert agent.messages[0].content == "partial"
    assert agent.steps_completed == 1


def test_timestamps_monotonic():
    m = _machine()
    for i in range(50):
        m.append_step(AgentStep(type=StepType.MESSAGE, content=str(i)))
        m.append_message("user", str(i))
    agent = m.snapshot()
    assert all(a.timestamp <= b.timestamp for a, b in zip(agent.steps, agent.steps[1:]))
    assert all(a.timestamp <= b.timestamp for a, b in zip(agent.messages, agent.messages[1:]))


def test_on_step_listener():
    seen = []
    m = AgentStateMachine(
        Agent(config=AgentConfig(name="Test", instructions="Do it")),
        on_step=lambda agent_id, step: seen.append((agent_id, step.type)),
    )
    step = m.append_step(_tool_step())
    m.update_step(step.id, tool_call={"status": ToolCallStatus.DENIED})
    assert seen == [(m.id, StepType.TOOL_CALL), (m.id, StepType.TOOL_CALL)]


def test_concurrent_mutations_keep_invariant():
    m = _machine()

    def worker():
        for _ in range(50):
            step = m.append_step(_tool_step())
            m.append_step(AgentStep(type=StepType.THINKING, content="..."))
            m.update_step(step.id, tool_call={"status": ToolCallStatus.APPROVED})
            m.append_step(_tool_step())

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    agent = m.snapshot()
    assert len(agent.steps) == 4 * 50 * 3
    assert len(agent.pending_approvals) == 4 * 50
    assert_pending_consistent(m)
