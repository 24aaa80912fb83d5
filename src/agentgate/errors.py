"""Exception hierarchy for the orchestration engine.

Every failure mode the engine can surface has its own class so callers
can decide between retrying, failing a step, or failing an agent.
"""

from __future__ import annotations


class AgentGateError(Exception):
    """Base exception for all engine errors."""


class ValidationError(AgentGateError):
    """Bad input to a public operation."""


class InvalidTransitionError(ValidationError):
    """A status change not allowed by the transition table."""

    def __init__(self, kind: str, current: str, target: str, allowed: set[str]):
        self.kind = kind
        self.current = current
        self.target = target
        allowed_str = ", ".join(sorted(allowed)) or "none (terminal)"
        super().__init__(
            f"Invalid {kind} transition: {current} -> {target}. "
            f"Allowed from {current}: {allowed_str}"
        )


class NotPendingError(AgentGateError):
    """An approve/deny decision for a call that already left pending."""

    def __init__(self, agent_id: str, step_id: str, status: str | None = None):
        self.agent_id = agent_id
        self.step_id = step_id
        self.status = status
        detail = f" (status={status})" if status else ""
        super().__init__(f"Step {step_id} of agent {agent_id} is not pending{detail}")


class PolicyViolation(AgentGateError):
    """A tool call tried to bypass the approval gate."""

    def __init__(self, server: str, tool: str, risk: str):
        self.server = server
        self.tool = tool
        self.risk = risk
        super().__init__(
            f"Tool '{tool}' on server '{server}' (risk={risk}) requires approval"
        )


class ToolExecutionError(AgentGateError):
    """The tool server reported a failure."""

    def __init__(self, server: str, tool: str, message: str):
        self.server = server
        self.tool = tool
        self.message = message
        super().__init__(f"{server}/{tool} failed: {message}")


class ToolTimeoutError(ToolExecutionError):
    """A single tool call exceeded its time budget."""

    def __init__(self, server: str, tool: str, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(server, tool, f"timed out after {timeout_seconds}s")


class ToolServerUnavailable(AgentGateError):
    """The server is disabled, unknown, or exhausted its restart budget."""

    def __init__(self, server: str, reason: str = "restart budget exhausted"):
        self.server = server
        self.reason = reason
        super().__init__(f"Tool server '{server}' unavailable: {reason}")


class StorageError(AgentGateError):
    """Credential store unreachable or secure storage unsupported."""
