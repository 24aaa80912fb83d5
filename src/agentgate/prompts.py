"""Instruction text for agents and the tool catalog."""

from __future__ import annotations

from itertools import groupby

from .models import AgentTemplate, ToolPermission, ToolSpec

BASE_AGENT_PROMPT = """\
You are an autonomous coding agent. Your task is to complete the user's request \
step by step.

IMPORTANT GUIDELINES:
1. Work methodically - break complex tasks into smaller steps
2. Use tools to read files, write code, and execute commands
3. Always verify your work by reading files after writing them
4. If you encounter an error, analyze it and try a different approach
5. Explain what you're doing at each step
6. When you complete the task, clearly state "TASK COMPLETED" and summarize what you did

Some tools require the user's approval before they run. If a tool call is denied, \
do not retry it unchanged; choose another approach or explain what you need."""

_PERSONA_SEPARATOR = "\n\n---\n\n"


def compose_system_prompt(persona_content: str | None = None, include_persona: bool = True) -> str:
    """Base agent instructions, optionally prefixed by a persona."""
    if persona_content and include_persona:
        return f"{persona_content}{_PERSONA_SEPARATOR}{BASE_AGENT_PROMPT}"
    return BASE_AGENT_PROMPT


def generate_tool_list(catalog: list[ToolSpec]) -> str:
    lines = []
    for server, tools in groupby(sorted(catalog, key=lambda t: (t.server, t.name)), key=lambda t: t.server):
        lines.append(f"### {server}")
        for tool in tools:
            category = f" [{tool.category}]" if tool.category else ""
            lines.append(f"- `{tool.name}`{category} (risk: {tool.risk.value})")
    return "\n".join(lines)


def generate_tool_system_prompt(catalog: list[ToolSpec]) -> str:
    if not catalog:
        return "No tools are currently available. Answer using your own knowledge."
    return (
        "## Available Tools\n\n"
        "Request a tool by name with JSON arguments. Tools marked `moderate` or "
        "`dangerous` pause until the user approves them.\n\n"
        f"{generate_tool_list(catalog)}"
    )


AGENT_TEMPLATES: list[AgentTemplate] = [
    AgentTemplate(
        id="general-assistant",
        name="General Assistant",
        description="A versatile assistant for various coding tasks",
        instructions="You are a helpful coding assistant. Please help the user with their request.",
        tool_permission=ToolPermission.STANDARD,
        tags=["general", "helper"],
    ),
    AgentTemplate(
        id="code-refactor",
        name="Code Refactor",
        description="Improve code quality and maintainability",
        instructions=(
            "Analyze the provided code and suggest improvements for readability, "
            "performance, and structure. Apply best practices."
        ),
        tool_permission=ToolPermission.STANDARD,
        tags=["refactor", "cleanup"],
    ),
    AgentTemplate(
        id="bug-fixer",
        name="Bug Fixer",
        description="Identify and resolve code issues",
        instructions=(
            "Analyze the error or issue description. Locate the source of the bug "
            "and implement a fix. Verify the fix if possible."
        ),
        tool_permission=ToolPermission.STANDARD,
        tags=["debug", "fix"],
        requires_directory=True,
    ),
    AgentTemplate(
        id="documentation",
        name="Documentation",
        description="Generate or improve documentation",
        instructions=(
            "Review the code and generate comprehensive documentation, including "
            "comments, README updates, or API references."
        ),
        tool_permission=ToolPermission.STANDARD,
        tags=["docs", "writing"],
        requires_directory=True,
    ),
]


def get_template(template_id: str) -> AgentTemplate | None:
    for template in AGENT_TEMPLATES:
        if template.id == template_id:
            return template
    return None
