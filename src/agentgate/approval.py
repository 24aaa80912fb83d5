"""Approval gate: holds parked tool calls until the user decides."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Coroutine

from .agent_state import AgentStateMachine
from .errors import NotPendingError, ValidationError
from .models import AgentStatus, AgentStep, PendingCall, StepType, ToolCallStatus, utcnow
from .router import CallOutcome, CallRouter

logger = logging.getLogger(__name__)

PERMISSION_DENIED = "Permission denied"


@dataclass
class Decision:
    agent_id: str
    step_id: str
    approved: bool
    reason: str | None = None
    decided_at: datetime = field(default_factory=utcnow)


class ApprovalGate:
    def __init__(
        self,
        router: CallRouter,
        lookup: Callable[[str], AgentStateMachine | None],
        schedule: Callable[[Coroutine[Any, Any, Any]], Any],
        on_resolved: Callable[[AgentStateMachine, CallOutcome | None], None],
        ensure_ready: Callable[[], None] | None = None,
    ):
        self.router = router
        self.lookup = lookup
        self.schedule = schedule
        self.on_resolved = on_resolved
        self.ensure_ready = ensure_ready
        self.decisions: list[Decision] = []
        self._lock = threading.Lock()
        self._parked: dict[str, dict[str, PendingCall]] = {}
        router.gate = self

    def park(self, machine: AgentStateMachine, call: PendingCall) -> None:
        with self._lock:
            self._parked.setdefault(call.agent_id, {})[call.step_id] = call
        with machine.lock:
            if machine.status == AgentStatus.RUNNING:
                machine.update_status(AgentStatus.WAITING)

    def pending(self, agent_id: str | None = None) -> list[PendingCall]:
        with self._lock:
            if agent_id is not None:
                return list(self._parked.get(agent_id, {}).values())
            return [c for calls in self._parked.values() for c in calls.values()]

    def discard_agent(self, agent_id: str) -> None:
        with self._lock:
            self._parked.pop(agent_id, None)

    def _unpark(self, agent_id: str, step_id: str) -> None:
        with self._lock:
            calls = self._parked.get(agent_id)
            if calls is not None:
                calls.pop(step_id, None)
                if not calls:
                    del self._parked[agent_id]

    def _check_ready(self) -> None:
        # Checked before claiming: a claimed step cannot return to pending.
        if self.ensure_ready is not None:
            self.ensure_ready()

    def _machine(self, agent_id: str) -> AgentStateMachine:
        machine = self.lookup(agent_id)
        if machine is None:
            raise ValidationError(f"Agent {agent_id} not found")
        return machine

    def _claim(
        self, machine: AgentStateMachine, step_id: str, status: ToolCallStatus, error: str | None
    ) -> AgentStep:
        """Move a pending step to ``status``; caller holds the agent lock."""
        step = machine.get_step(step_id)
        if step is None or step.tool_call is None:
            raise ValidationError(f"Step {step_id} not found for agent {machine.id}")
        if step.tool_call.status != ToolCallStatus.PENDING:
            raise NotPendingError(machine.id, step_id, step.tool_call.status.value)
        updates: dict[str, Any] = {"status": status}
        if error is not None:
            updates["error"] = error
        return machine.update_step(step_id, tool_call=updates)

    def approve(self, agent_id: str, step_id: str) -> AgentStep:
        machine = self._machine(agent_id)
        self._check_ready()
        with machine.lock:
            step = self._claim(machine, step_id, ToolCallStatus.APPROVED, None)
        self._unpark(agent_id, step_id)
        self.decisions.append(Decision(agent_id, step_id, approved=True))
        logger.info("Agent %s: approved %s (%s)", agent_id, step.tool_call.name, step_id)
        self.schedule(self._run_approved(machine, step_id))
        return step

    async def _run_approved(self, machine: AgentStateMachine, step_id: str) -> None:
        outcome = await self.router.execute(machine, step_id)
        self.on_resolved(machine, outcome)

    def deny(self, agent_id: str, step_id: str, reason: str | None = None) -> AgentStep:
        machine = self._machine(agent_id)
        self._check_ready()
        error = f"{PERMISSION_DENIED}: {reason}" if reason else PERMISSION_DENIED
        with machine.lock:
            step = self._claim(machine, step_id, ToolCallStatus.DENIED, error)
            tool = step.tool_call.name
            # The model sees a denied call exactly like a tool that failed.
            machine.append_step(AgentStep(type=StepType.TOOL_RESULT, content=f"Error: {error}"))
            machine.append_message("user", f"Tool `{tool}` failed: {error}")
        self._unpark(agent_id, step_id)
        self.decisions.append(Decision(agent_id, step_id, approved=False, reason=reason))
        logger.info("Agent %s: denied %s (%s): %s", agent_id, tool, step_id, reason or "-")
        self.on_resolved(
            machine, CallOutcome(step_id=step_id, status=ToolCallStatus.DENIED, error=error)
        )
        return step
