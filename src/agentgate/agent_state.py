"""Per-agent state machine.

Agent status:

    CREATED ──> RUNNING ──┬──> COMPLETED ──┐
       │          ▲       │                │
       │          │       ├──> WAITING ────┤ (approval resolved -> RUNNING)
       │          │       │                │
       └──────────┴───────┴──> FAILED ─────┘ (follow-up message -> RUNNING)

Tool-call status only moves forward:

    PENDING ──> APPROVED ──> COMPLETED | FAILED
       └──────> DENIED

Every mutation of one agent runs under that agent's lock, so callers on the
engine loop and on API threads observe each transition atomically.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable

from .errors import InvalidTransitionError, ValidationError
from .history import trim_history
from .models import (
    Agent,
    AgentMessage,
    AgentStatus,
    AgentStep,
    PendingCall,
    StepType,
    ToolCallStatus,
    new_id,
    utcnow,
)

logger = logging.getLogger(__name__)

AGENT_TRANSITIONS: dict[AgentStatus, set[AgentStatus]] = {
    AgentStatus.CREATED: {AgentStatus.RUNNING, AgentStatus.FAILED},
    AgentStatus.RUNNING: {AgentStatus.WAITING, AgentStatus.COMPLETED, AgentStatus.FAILED},
    AgentStatus.WAITING: {AgentStatus.RUNNING, AgentStatus.FAILED},
    AgentStatus.COMPLETED: {AgentStatus.RUNNING},
    AgentStatus.FAILED: {AgentStatus.RUNNING},
}

TOOL_CALL_TRANSITIONS: dict[ToolCallStatus, set[ToolCallStatus]] = {
    ToolCallStatus.PENDING: {ToolCallStatus.APPROVED, ToolCallStatus.DENIED},
    ToolCallStatus.APPROVED: {ToolCallStatus.COMPLETED, ToolCallStatus.FAILED},
    ToolCallStatus.DENIED: set(),
    ToolCallStatus.COMPLETED: set(),
    ToolCallStatus.FAILED: set(),
}

TERMINAL_STATUSES = {AgentStatus.COMPLETED, AgentStatus.FAILED}

# Step identity, type and timestamp are fixed once appended; so is what a call asked for.
STEP_UPDATE_FIELDS = {"content", "tool_call"}
TOOL_CALL_UPDATE_FIELDS = {"status", "result", "error"}


def validate_status_transition(current: AgentStatus, target: AgentStatus) -> None:
    if current == target:
        return
    allowed = AGENT_TRANSITIONS.get(current, set())
    if target not in allowed:
        raise InvalidTransitionError(
            "agent status", current.value, target.value, {s.value for s in allowed}
        )


def validate_tool_call_transition(current: ToolCallStatus, target: ToolCallStatus) -> None:
    if current == target:
        return
    allowed = TOOL_CALL_TRANSITIONS.get(current, set())
    if target not in allowed:
        raise InvalidTransitionError(
            "tool call", current.value, target.value, {s.value for s in allowed}
        )


def _check_step_updates(updates: dict[str, Any]) -> None:
    unknown = set(updates) - STEP_UPDATE_FIELDS
    tool_updates = updates.get("tool_call") or {}
    unknown |= {f"tool_call.{k}" for k in set(tool_updates) - TOOL_CALL_UPDATE_FIELDS}
    if unknown:
        raise ValidationError(f"Step fields cannot be updated: {', '.join(sorted(unknown))}")


class AgentStateMachine:
    """Owns one Agent; the only writer of its state."""

    def __init__(self, agent: Agent, on_step: Callable[[str, AgentStep], None] | None = None):
        self._agent = agent
        self._on_step = on_step
        self._lock = threading.RLock()
        self.in_flight = 0
        self.turn_active = False
        self.turns = 0
        self.removed = False

    @property
    def id(self) -> str:
        return self._agent.id

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    def snapshot(self) -> Agent:
        with self._lock:
            return self._agent.model_copy(deep=True)

    @property
    def status(self) -> AgentStatus:
        with self._lock:
            return self._agent.status

    # --- Status ---

    def update_status(self, status: AgentStatus, error: str | None = None) -> Agent:
        with self._lock:
            agent = self._agent
            validate_status_transition(agent.status, status)
            previous = agent.status
            agent.status = status
            agent.error = error
            if status == AgentStatus.RUNNING and agent.started_at is None:
                agent.started_at = utcnow()
            if status in TERMINAL_STATUSES:
                agent.completed_at = utcnow()
            if previous != status:
                logger.info("Agent %s: %s -> %s", agent.id, previous.value, status.value)
            return agent.model_copy(deep=True)

    # --- Messages ---

    def append_message(self, role: str, content: str) -> AgentMessage:
        with self._lock:
            agent = self._agent
            message = AgentMessage(
                id=new_id("msg"),
                role=role,
                content=content,
                timestamp=self._next_timestamp(agent.messages),
            )
            agent.messages.append(message)
            if role == "assistant":
                agent.steps_completed += 1
            return message.model_copy()

    def edit_message(self, message_id: str, content: str) -> bool:
        """Replace a message's content; False when the id is unknown."""
        with self._lock:
            for message in self._agent.messages:
                if message.id == message_id:
                    message.content = content
                    return True
            return False

    # --- Steps ---

    def append_step(self, step: AgentStep) -> AgentStep:
        """Append with a fresh id; a pending tool call is tracked in the same operation."""
        with self._lock:
            agent = self._agent
            step = step.model_copy(
                update={"id": new_id("step"), "timestamp": self._next_timestamp(agent.steps)},
                deep=True,
            )
            agent.steps.append(step)
            if self._is_pending(step):
                agent.pending_approvals.append(step.id)
                if agent.pending_tool_call is None:
                    agent.pending_tool_call = self._pending_call(step)
            self._notify(step)
            return step.model_copy(deep=True)

    def update_step(self, step_id: str, **updates: Any) -> AgentStep | None:
        """Merge ``updates`` into a step.

        ``tool_call`` may be a dict of partial ToolCallRecord fields. Leaving
        pending removes the step from the pending set in the same operation.
        Returns None when the step no longer exists.
        """
        _check_step_updates(updates)
        with self._lock:
            agent = self._agent
            step = agent.find_step(step_id)
            if step is None:
                return None
            tool_updates = updates.pop("tool_call", None)
            if tool_updates and step.tool_call is not None:
                tool_updates = dict(tool_updates)
                if tool_updates.get("status") is not None:
                    new_status = ToolCallStatus(tool_updates["status"])
                    validate_tool_call_transition(step.tool_call.status, new_status)
                    tool_updates["status"] = new_status
                step.tool_call = step.tool_call.model_copy(update=tool_updates)
            if "content" in updates:
                step.content = updates["content"]
            if not self._is_pending(step) and step_id in agent.pending_approvals:
                agent.pending_approvals.remove(step_id)
                if agent.pending_tool_call and agent.pending_tool_call.step_id == step_id:
                    agent.pending_tool_call = self._next_pending_call()
            self._notify(step)
            return step.model_copy(deep=True)

    def get_step(self, step_id: str) -> AgentStep | None:
        with self._lock:
            step = self._agent.find_step(step_id)
            return step.model_copy(deep=True) if step else None

    def pending_steps(self) -> list[AgentStep]:
        with self._lock:
            pending = set(self._agent.pending_approvals)
            return [s.model_copy(deep=True) for s in self._agent.steps if s.id in pending]

    def has_pending(self) -> bool:
        with self._lock:
            return bool(self._agent.pending_approvals)

    def trim(self, max_steps: int, max_messages: int) -> tuple[int, int]:
        with self._lock:
            return trim_history(self._agent, max_steps, max_messages)

    # --- Helpers ---

    def _notify(self, step: AgentStep) -> None:
        if self._on_step is not None:
            self._on_step(self._agent.id, step)

    @staticmethod
    def _is_pending(step: AgentStep) -> bool:
        return (
            step.type == StepType.TOOL_CALL
            and step.tool_call is not None
            and step.tool_call.status == ToolCallStatus.PENDING
        )

    def _pending_call(self, step: AgentStep) -> PendingCall:
        call = step.tool_call
        return PendingCall(
            agent_id=self._agent.id,
            step_id=step.id,
            server=call.server,
            tool=call.name,
            arguments=dict(call.args),
            risk=call.risk,
        )

    def _next_pending_call(self) -> PendingCall | None:
        for step_id in self._agent.pending_approvals:
            step = self._agent.find_step(step_id)
            if step is not None:
                return self._pending_call(step)
        return None

    @staticmethod
    def _next_timestamp(entries: list) -> Any:
        now = utcnow()
        if entries and entries[-1].timestamp > now:
            return entries[-1].timestamp
        return now
