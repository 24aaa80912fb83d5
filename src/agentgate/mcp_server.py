"""FastMCP server exposing agent, approval and tool-server operations."""

from __future__ import annotations

from mcp.server.fastmcp import FastMCP

from .errors import AgentGateError
from .models import AgentStatus, ToolPermission
from .orchestrator import Orchestrator


def create_mcp_server(orchestrator: Orchestrator) -> FastMCP:
    mcp = FastMCP("agentgate")

    @mcp.tool()
    def list_agents() -> list[dict]:
        """List all live agents with their status and pending approvals."""
        return [s.model_dump(mode="json") for s in orchestrator.get_agent_summaries()]

    @mcp.tool()
    def get_agent(agent_id: str) -> dict:
        """Get an agent's configuration, messages and step timeline."""
        agent = orchestrator.get_agent(agent_id)
        if agent is None:
            return {"error": f"Agent {agent_id} not found"}
        return agent.model_dump(mode="json")

    @mcp.tool()
    def create_agent(
        instructions: str,
        name: str | None = None,
        tool_permission: str = "standard",
        working_directory: str = "",
        template_id: str | None = None,
    ) -> dict:
        """Create an agent from instructions, or from a built-in template."""
        try:
            if template_id:
                agent = orchestrator.create_agent_from_template(
                    template_id,
                    working_directory=working_directory,
                    tool_permission=ToolPermission(tool_permission),
                    **({"name": name} if name else {}),
                )
            else:
                agent = orchestrator.create_agent(
                    instructions=instructions,
                    name=name,
                    tool_permission=tool_permission,
                    working_directory=working_directory,
                )
        except (AgentGateError, ValueError) as e:
            return {"error": str(e)}
        return {"id": agent.id, "name": agent.config.name, "status": agent.status.value}

    @mcp.tool()
    def start_agent(agent_id: str, prompt: str | None = None) -> dict:
        """Start an agent's model turns. The instructions are the first message by default."""
        try:
            agent = orchestrator.start_agent(agent_id, prompt)
        except AgentGateError as e:
            return {"error": str(e)}
        return {"id": agent.id, "status": agent.status.value}

    @mcp.tool()
    def send_message(agent_id: str, text: str) -> dict:
        """Send a follow-up message to an agent."""
        try:
            agent = orchestrator.send_message(agent_id, text)
        except AgentGateError as e:
            return {"error": str(e)}
        return {"id": agent.id, "status": agent.status.value}

    @mcp.tool()
    def remove_agent(agent_id: str) -> dict:
        """Release an agent's resources and remove it."""
        if orchestrator.remove_agent(agent_id):
            return {"removed": True, "agent_id": agent_id}
        return {"error": f"Agent {agent_id} not found"}

    @mcp.tool()
    def pending_approvals() -> list[dict]:
        """List tool calls waiting for approval across all agents."""
        return [c.model_dump(mode="json") for c in orchestrator.get_pending_approvals()]

    @mcp.tool()
    def approve_call(agent_id: str, step_id: str) -> dict:
        """Approve a pending tool call; it runs in the background."""
        try:
            step = orchestrator.approve(agent_id, step_id)
        except AgentGateError as e:
            return {"error": str(e)}
        return {"step_id": step.id, "status": step.tool_call.status.value}

    @mcp.tool()
    def deny_call(agent_id: str, step_id: str, reason: str | None = None) -> dict:
        """Deny a pending tool call. The agent sees a permission-denied error."""
        try:
            step = orchestrator.deny(agent_id, step_id, reason)
        except AgentGateError as e:
            return {"error": str(e)}
        return {"step_id": step.id, "status": step.tool_call.status.value}

    @mcp.tool()
    def list_tool_servers() -> list[dict]:
        """List tool servers with their enabled flag and process state."""
        return orchestrator.list_servers()

    @mcp.tool()
    def set_allowed_directory(directory: str) -> dict:
        """Point the filesystem server at a directory and enable it."""
        try:
            config = orchestrator.configure_directory(directory)
        except AgentGateError as e:
            return {"error": str(e)}
        return {"server": config.name, "directory": directory, "enabled": config.enabled}

    @mcp.tool()
    async def set_secret(name: str, value: str, server: str | None = None) -> dict:
        """Store a credential such as github.token; ``server`` is relaunched to pick it up."""
        try:
            await orchestrator.run_on_engine(orchestrator.set_secret(name, value, server))
        except AgentGateError as e:
            return {"error": str(e)}
        return {"saved": name, "server": server}

    @mcp.tool()
    async def configure_ssh(
        host: str,
        username: str,
        auth_type: str = "key",
        port: int = 22,
        password: str | None = None,
        key_path: str | None = None,
    ) -> dict:
        """Save SSH connection details and enable the ssh server."""
        try:
            config = await orchestrator.run_on_engine(
                orchestrator.configure_ssh(host, username, auth_type, port, password, key_path)
            )
        except AgentGateError as e:
            return {"error": str(e)}
        return {"server": config.name, "enabled": config.enabled, "host": host}

    @mcp.tool()
    def trim_history(agent_id: str, max_steps: int | None = None, max_messages: int | None = None) -> dict:
        """Trim an agent's step and message logs, keeping pending steps."""
        steps, messages = orchestrator.trim_history(agent_id, max_steps, max_messages)
        return {"agent_id": agent_id, "removed_steps": steps, "removed_messages": messages}

    @mcp.tool()
    def list_sessions(conversation_id: str | None = None) -> list[dict]:
        """List saved sessions that can be resumed."""
        try:
            sessions = orchestrator.list_sessions(conversation_id)
        except AgentGateError as e:
            return [{"error": str(e)}]
        return [s.model_dump(mode="json") for s in sessions]

    @mcp.tool()
    def suspend_agent(agent_id: str) -> dict:
        """Save an agent's progress as a resumable session and remove it."""
        try:
            session = orchestrator.suspend_agent(agent_id)
        except AgentGateError as e:
            return {"error": str(e)}
        return {"session_id": session.id, "token_estimate": session.token_estimate}

    @mcp.tool()
    def resume_session(session_id: str) -> dict:
        """Create a new agent that continues a saved session."""
        try:
            agent = orchestrator.resume_session(session_id)
        except AgentGateError as e:
            return {"error": str(e)}
        return {"id": agent.id, "name": agent.config.name, "status": agent.status.value}

    @mcp.tool()
    def agent_logs(agent_id: str, lines: int = 100) -> str:
        """Get recent step log lines for an agent."""
        return orchestrator.get_logs(agent_id, lines=lines)

    @mcp.tool()
    def running_agents() -> list[dict]:
        """List agents that are running or waiting for approval."""
        return [
            {"id": a.id, "name": a.config.name, "status": a.status.value}
            for a in orchestrator.get_running_agents()
            if a.status in (AgentStatus.RUNNING, AgentStatus.WAITING)
        ]

    return mcp
