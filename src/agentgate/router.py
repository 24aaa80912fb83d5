"""Call router: risk policy and dispatch of tool invocations."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .agent_state import AgentStateMachine
from .errors import (
    AgentGateError,
    PolicyViolation,
    StorageError,
    ToolExecutionError,
    ToolServerUnavailable,
)
from .models import (
    AgentStep,
    PendingCall,
    RiskLevel,
    StepType,
    ToolCallRecord,
    ToolCallStatus,
    ToolInvocation,
    ToolPermission,
)
from .registry import ToolServerRegistry
from .supervisor import ProcessSupervisor

if TYPE_CHECKING:
    from .approval import ApprovalGate

logger = logging.getLogger(__name__)

# Risk tiers that pause for approval under each permission tier.
APPROVAL_REQUIRED: dict[ToolPermission, frozenset[RiskLevel]] = {
    ToolPermission.RESTRICTED: frozenset(
        {RiskLevel.SAFE, RiskLevel.MODERATE, RiskLevel.DANGEROUS}
    ),
    ToolPermission.STANDARD: frozenset({RiskLevel.MODERATE, RiskLevel.DANGEROUS}),
    ToolPermission.AUTONOMOUS: frozenset({RiskLevel.DANGEROUS}),
}


def requires_approval(risk: RiskLevel, permission: ToolPermission) -> bool:
    if risk == RiskLevel.DANGEROUS:
        return True
    required = APPROVAL_REQUIRED.get(permission, APPROVAL_REQUIRED[ToolPermission.STANDARD])
    return risk in required


def format_result(result: Any) -> str:
    if isinstance(result, str):
        return result
    try:
        return json.dumps(result, indent=2, default=str)
    except (TypeError, ValueError):
        return str(result)


@dataclass
class CallOutcome:
    step_id: str
    status: ToolCallStatus
    result: Any = None
    error: str | None = None
    # Infrastructure failures that should fail the owning agent.
    fatal: bool = False


class CallRouter:
    def __init__(self, registry: ToolServerRegistry, supervisor: ProcessSupervisor):
        self.registry = registry
        self.supervisor = supervisor
        self.gate: ApprovalGate | None = None

    def resolve_server(self, invocation: ToolInvocation) -> str | None:
        return invocation.server or self.registry.server_for_tool(invocation.tool)

    def classify(self, server: str | None, tool: str) -> RiskLevel:
        return self.registry.risk_level(server, tool)

    async def route(
        self,
        machine: AgentStateMachine,
        invocation: ToolInvocation,
        permission: ToolPermission,
    ) -> CallOutcome | None:
        """Park the call for approval, or run it now. None means parked."""
        server = self.resolve_server(invocation)
        risk = self.classify(server, invocation.tool)
        needs_approval = requires_approval(risk, permission)
        record = ToolCallRecord(
            name=invocation.tool,
            server=server,
            args=dict(invocation.arguments),
            risk=risk,
            status=ToolCallStatus.PENDING if needs_approval else ToolCallStatus.APPROVED,
        )
        step = machine.append_step(
            AgentStep(
                type=StepType.TOOL_CALL,
                content=f"{invocation.tool} ({risk.value})",
                tool_call=record,
            )
        )
        if needs_approval:
            logger.info(
                "Agent %s: %s/%s (%s) awaiting approval",
                machine.id, server, invocation.tool, risk.value,
            )
            if self.gate is None:
                raise AgentGateError("Call router has no approval gate")
            self.gate.park(
                machine,
                PendingCall(
                    agent_id=machine.id,
                    step_id=step.id,
                    server=server,
                    tool=invocation.tool,
                    arguments=dict(invocation.arguments),
                    risk=risk,
                ),
            )
            return None
        return await self.execute(machine, step.id)

    async def execute(self, machine: AgentStateMachine, step_id: str) -> CallOutcome | None:
        """Run an approved tool_call step and record its result."""
        step = machine.get_step(step_id)
        if step is None or step.tool_call is None:
            logger.warning("Agent %s: step %s vanished before dispatch", machine.id, step_id)
            return None
        call = step.tool_call
        if call.status != ToolCallStatus.APPROVED:
            raise PolicyViolation(call.server or "?", call.name, call.risk.value)

        with machine.lock:
            machine.in_flight += 1
        fatal = False
        try:
            if call.server is None:
                raise ToolExecutionError("?", call.name, "no enabled tool server provides this tool")
            result = await self.supervisor.call(call.server, call.name, call.args)
        except ToolExecutionError as e:
            error = e.message
        except (ToolServerUnavailable, StorageError) as e:
            error = str(e)
            fatal = True
        except Exception as e:
            logger.exception("Agent %s: unexpected error dispatching %s", machine.id, call.name)
            error = f"{type(e).__name__}: {e}"
            fatal = True
        else:
            error = None
        finally:
            with machine.lock:
                machine.in_flight -= 1

        if machine.removed:
            logger.info("Agent %s removed; discarding result of %s", machine.id, call.name)
            return None
        if error is None:
            return self.record_result(machine, step_id, call.name, result)
        return self.record_failure(machine, step_id, call.name, error, fatal=fatal)

    def record_result(
        self, machine: AgentStateMachine, step_id: str, tool: str, result: Any
    ) -> CallOutcome:
        text = format_result(result)
        with machine.lock:
            machine.update_step(
                step_id, tool_call={"status": ToolCallStatus.COMPLETED, "result": result}
            )
            machine.append_step(AgentStep(type=StepType.TOOL_RESULT, content=text))
            machine.append_message("user", f"Tool `{tool}` returned:\n{text}")
        return CallOutcome(step_id=step_id, status=ToolCallStatus.COMPLETED, result=result)

    def record_failure(
        self,
        machine: AgentStateMachine,
        step_id: str,
        tool: str,
        error: str,
        fatal: bool = False,
    ) -> CallOutcome:
        logger.warning("Agent %s: %s failed: %s", machine.id, tool, error)
        with machine.lock:
            machine.update_step(step_id, tool_call={"status": ToolCallStatus.FAILED, "error": error})
            if fatal:
                machine.append_step(AgentStep(type=StepType.ERROR, content=error))
            else:
                machine.append_step(AgentStep(type=StepType.TOOL_RESULT, content=f"Error: {error}"))
                machine.append_message("user", f"Tool `{tool}` failed: {error}")
        return CallOutcome(
            step_id=step_id, status=ToolCallStatus.FAILED, error=error, fatal=fatal
        )
