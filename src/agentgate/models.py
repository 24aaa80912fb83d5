"""Data models for the agent orchestration engine."""

from __future__ import annotations

import itertools
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal
from uuid import uuid4

from pydantic import BaseModel, Field

_COUNTER = itertools.count(1)
_PROCESS_TAG = uuid4().hex[:8]


def new_id(prefix: str) -> str:
    """Process-unique id: prefix, monotonic counter, per-process tag."""
    return f"{prefix}-{next(_COUNTER)}-{_PROCESS_TAG}"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AgentStatus(str, Enum):
    CREATED = "created"
    RUNNING = "running"
    WAITING = "waiting"
    COMPLETED = "completed"
    FAILED = "failed"


class StepType(str, Enum):
    THINKING = "thinking"
    TOOL_CALL = "tool_call"
    TOOL_RESULT = "tool_result"
    MESSAGE = "message"
    ERROR = "error"


class ToolCallStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"
    COMPLETED = "completed"
    FAILED = "failed"


class RiskLevel(str, Enum):
    SAFE = "safe"
    MODERATE = "moderate"
    DANGEROUS = "dangerous"


class ToolPermission(str, Enum):
    RESTRICTED = "restricted"
    STANDARD = "standard"
    AUTONOMOUS = "autonomous"


class SessionStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    CRASHED = "crashed"


# --- Agents ---


class AgentMessage(BaseModel):
    id: str = Field(default_factory=lambda: new_id("msg"))
    role: Literal["user", "assistant"]
    content: str
    timestamp: datetime = Field(default_factory=utcnow)


class ToolCallRecord(BaseModel):
    name: str
    server: str | None = None
    args: dict[str, Any] = Field(default_factory=dict)
    risk: RiskLevel = RiskLevel.MODERATE
    status: ToolCallStatus = ToolCallStatus.PENDING
    result: Any = None
    error: str | None = None


class AgentStep(BaseModel):
    id: str = Field(default_factory=lambda: new_id("step"))
    type: StepType
    content: str = ""
    timestamp: datetime = Field(default_factory=utcnow)
    tool_call: ToolCallRecord | None = None


class PendingCall(BaseModel):
    agent_id: str
    step_id: str
    server: str | None
    tool: str
    arguments: dict[str, Any] = Field(default_factory=dict)
    risk: RiskLevel = RiskLevel.MODERATE


class ContextConfig(BaseModel):
    include_current_message: bool = True
    include_parent_context: bool = True
    parent_context_depth: int = 3
    include_full_conversation: bool = False
    include_persona: bool = True
    seed_messages: list[AgentMessage] = Field(default_factory=list)
    working_directory: str = ""


class AgentConfig(BaseModel):
    name: str
    instructions: str
    context: ContextConfig = Field(default_factory=ContextConfig)
    tool_permission: ToolPermission = ToolPermission.STANDARD
    model: str = "gemini-2.5-flash"
    persona_id: str | None = None
    persona_content: str | None = None
    max_turns: int = 50


class Agent(BaseModel):
    id: str = Field(default_factory=lambda: new_id("agent"))
    config: AgentConfig
    status: AgentStatus = AgentStatus.CREATED
    messages: list[AgentMessage] = Field(default_factory=list)
    steps: list[AgentStep] = Field(default_factory=list)
    system_prompt: str = ""
    pending_approvals: list[str] = Field(default_factory=list)
    pending_tool_call: PendingCall | None = None
    created_at: datetime = Field(default_factory=utcnow)
    started_at: datetime | None = None
    completed_at: datetime | None = None
    error: str | None = None
    steps_completed: int = 0
    source_conversation_id: str | None = None
    source_message_id: str | None = None

    def find_step(self, step_id: str) -> AgentStep | None:
        for step in self.steps:
            if step.id == step_id:
                return step
        return None


class CreateAgentOptions(BaseModel):
    instructions: str = Field(min_length=1)
    name: str | None = None
    model: str = "gemini-2.5-flash"
    tool_permission: ToolPermission = ToolPermission.STANDARD
    persona_id: str | None = None
    persona_content: str | None = None
    include_persona: bool = True
    include_current_message: bool = True
    source_message_content: str | None = None
    include_parent_context: bool = True
    parent_context_depth: int = Field(default=3, ge=1)
    include_full_conversation: bool = False
    conversation_messages: list[AgentMessage] = Field(default_factory=list)
    working_directory: str = ""
    conversation_id: str | None = None
    source_message_id: str | None = None
    max_turns: int | None = Field(default=None, ge=1)


class AgentSummary(BaseModel):
    id: str
    name: str
    status: AgentStatus
    steps_completed: int
    pending_approvals: int
    has_error: bool


class AgentTemplate(BaseModel):
    id: str
    name: str
    description: str = ""
    category: str = "custom"
    instructions: str
    tool_permission: ToolPermission = ToolPermission.STANDARD
    tags: list[str] = Field(default_factory=list)
    is_built_in: bool = True
    requires_directory: bool = False


# --- Model turns ---


class ToolInvocation(BaseModel):
    tool: str
    server: str | None = None
    arguments: dict[str, Any] = Field(default_factory=dict)


class ModelTurn(BaseModel):
    content: str = ""
    thinking: str | None = None
    tool_calls: list[ToolInvocation] = Field(default_factory=list)


# --- Tool servers ---


class ToolInfo(BaseModel):
    category: str
    risk: RiskLevel


class ToolServerConfig(BaseModel):
    name: str
    command: str
    args: list[str] = Field(default_factory=list)
    env: dict[str, str] = Field(default_factory=dict)
    secrets: dict[str, str] = Field(default_factory=dict)
    enabled: bool = False
    tools: dict[str, ToolInfo] = Field(default_factory=dict)
    category_descriptions: dict[str, str] = Field(default_factory=dict)


class ToolSpec(BaseModel):
    server: str
    name: str
    category: str | None
    risk: RiskLevel


# --- Resumption ---


class ResumptionContext(BaseModel):
    original_prompt: str
    work_summary: str = ""
    key_decisions: list[str] = Field(default_factory=list)
    current_state: str = ""
    files_modified: list[str] = Field(default_factory=list)
    pending_actions: list[str] = Field(default_factory=list)
    error_history: list[str] = Field(default_factory=list)
    suggested_next_steps: list[str] = Field(default_factory=list)
    token_count: int = 0


class ResumedSession(BaseModel):
    id: str = Field(default_factory=lambda: new_id("session"))
    conversation_id: str = ""
    original_prompt: str
    status: SessionStatus = SessionStatus.PAUSED
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    completed_at: datetime | None = None
    token_estimate: int = 0
    entry_count: int = 0
