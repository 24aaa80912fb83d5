"""Resumption builder: seed a new agent from a prior session's summary."""

from __future__ import annotations

import math
from typing import Callable

from .models import (
    Agent,
    AgentStatus,
    CreateAgentOptions,
    ResumedSession,
    ResumptionContext,
    StepType,
    ToolCallStatus,
    ToolPermission,
)

_WRITE_CATEGORIES = {"write", "management", "files"}
_PATH_KEYS = ("path", "destination", "source", "file", "filename")
_SUMMARY_CHARS = 1000


def estimate_tokens(text: str) -> int:
    """Rough token count (four characters per token)."""
    return math.ceil(len(text) / 4)


def _bullets(title: str, items: list[str]) -> str:
    if not items:
        return ""
    lines = "\n".join(f"- {item}" for item in items)
    return f"**{title}:**\n{lines}"


def build_resumption_prompt(context: ResumptionContext) -> str:
    sections = [
        "## Resuming Previous Work Session",
        "You are resuming an interrupted work session. Here is the context:",
        f"**Original Task:**\n{context.original_prompt}",
        f"**Work Summary:**\n{context.work_summary or '(none recorded)'}",
    ]
    if context.current_state:
        sections.append(f"**Current State:**\n{context.current_state}")
    sections += [
        _bullets("Key Decisions Made", context.key_decisions),
        _bullets("Files Modified", context.files_modified),
        _bullets("Pending Actions", context.pending_actions),
        _bullets("Previous Errors (avoid repeating)", context.error_history),
        _bullets("Suggested Next Steps", context.suggested_next_steps),
        "Please continue from where the previous session left off. Acknowledge the "
        "resumption briefly, then proceed with the remaining work.",
    ]
    return "\n\n".join(s for s in sections if s)


def resumption_options(
    session: ResumedSession,
    context: ResumptionContext,
    conversation_id: str | None = None,
    overrides: dict | None = None,
) -> CreateAgentOptions:
    """Options for the resumed agent. The prior conversation is never replayed."""
    title = session.original_prompt[:25]
    fields = {
        "conversation_id": conversation_id or session.conversation_id or None,
        "name": f"Resumed: {title}..." if len(session.original_prompt) > 25 else f"Resumed: {title}",
        "tool_permission": ToolPermission.STANDARD,
        **(overrides or {}),
    }
    fields.update(
        instructions=build_resumption_prompt(context),
        include_current_message=False,
        include_parent_context=False,
        include_full_conversation=False,
        conversation_messages=[],
    )
    return CreateAgentOptions(**fields)


def _touched_path(args: dict) -> str | None:
    for key in _PATH_KEYS:
        value = args.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def capture_resumption_context(
    agent: Agent,
    category_of: Callable[[str | None, str], str | None] | None = None,
) -> ResumptionContext:
    """Summarize a live agent's progress.

    ``category_of(server, tool)`` names a tool's category; completed calls in
    a write category contribute to ``files_modified``.
    """
    files: list[str] = []
    errors: list[str] = []
    pending: list[str] = []

    for step in agent.steps:
        if step.type == StepType.ERROR:
            errors.append(step.content)
        call = step.tool_call
        if call is None:
            continue
        if call.status == ToolCallStatus.FAILED and call.error:
            errors.append(f"{call.name}: {call.error}")
        elif call.status == ToolCallStatus.PENDING:
            pending.append(f"{call.name} {call.args}")
        elif call.status == ToolCallStatus.COMPLETED and category_of is not None:
            if category_of(call.server, call.name) not in _WRITE_CATEGORIES:
                continue
            path = _touched_path(call.args)
            if path and path not in files:
                files.append(path)

    last_reply = next(
        (m.content for m in reversed(agent.messages) if m.role == "assistant" and m.content),
        "",
    )
    next_steps = [f"Re-request approval for {p}" for p in pending]
    if agent.status == AgentStatus.FAILED and agent.error:
        next_steps.append(f"Recover from: {agent.error}")

    context = ResumptionContext(
        original_prompt=agent.config.instructions,
        work_summary=last_reply[:_SUMMARY_CHARS],
        current_state=f"Agent was {agent.status.value} after {len(agent.steps)} recorded steps",
        files_modified=files,
        pending_actions=pending,
        error_history=errors,
        suggested_next_steps=next_steps,
    )
    context.token_count = estimate_tokens(build_resumption_prompt(context))
    return context
