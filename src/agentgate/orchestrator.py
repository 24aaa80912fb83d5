"""Agent orchestrator. Owns the live agents and drives their model turns on an asyncio loop."""

from __future__ import annotations

import asyncio
import logging
import random
import threading
from pathlib import Path
from typing import Any, Callable, Coroutine

from pydantic import ValidationError as PydanticValidationError

from .agent_state import AgentStateMachine
from .approval import ApprovalGate
from .config import Config
from .credentials import CredentialStore, MemoryCredentialStore
from .db import Database
from .errors import StorageError, ValidationError
from .history import HistoryTrimmer
from .model_client import ModelClient
from .models import (
    Agent,
    AgentConfig,
    AgentMessage,
    AgentStatus,
    AgentStep,
    AgentSummary,
    ContextConfig,
    CreateAgentOptions,
    PendingCall,
    ResumedSession,
    ResumptionContext,
    SessionStatus,
    StepType,
    ToolServerConfig,
)
from .prompts import compose_system_prompt, generate_tool_system_prompt, get_template
from .registry import ToolServerRegistry
from .resources import CleanupGuard, ResourceGuard
from .resumption import capture_resumption_context, resumption_options
from .router import CallOutcome, CallRouter
from .servers.filesystem import FILESYSTEM_SERVER
from .servers.ssh import SSH_SERVER, ssh_secrets
from .supervisor import ProcessSupervisor

logger = logging.getLogger(__name__)

_ADJECTIVES = ["Swift", "Smart", "Diligent", "Clever", "Quick", "Focused", "Sharp", "Bright"]
_NOUNS = ["Coder", "Builder", "Worker", "Helper", "Agent", "Assistant"]

_ACTIVE_STATUSES = {AgentStatus.CREATED, AgentStatus.RUNNING, AgentStatus.WAITING}
_RUNNING_STATUSES = {AgentStatus.RUNNING, AgentStatus.WAITING}


def generate_agent_name() -> str:
    return f"{random.choice(_ADJECTIVES)} {random.choice(_NOUNS)}"


def _describe_validation(error: PydanticValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in err['loc']) or 'options'}: {err['msg']}"
        for err in error.errors()
    )


class Orchestrator:
    def __init__(
        self,
        config: Config,
        db: Database | None = None,
        credentials: CredentialStore | None = None,
        model_client: ModelClient | None = None,
        registry: ToolServerRegistry | None = None,
    ):
        self.config = config
        self.db = db
        self.log_dir: Path = config.log_dir
        self.credentials = credentials or MemoryCredentialStore()
        self.model_client = model_client
        self.registry = registry or ToolServerRegistry(db)
        self.supervisor = ProcessSupervisor(
            self.registry,
            self.credentials,
            call_timeout=config.call_timeout,
            max_restarts=config.max_restarts,
            restart_backoff=config.restart_backoff,
        )
        self.router = CallRouter(self.registry, self.supervisor)
        self.gate = ApprovalGate(
            self.router,
            lookup=self._get_machine,
            schedule=self._schedule,
            ensure_ready=self._require_started,
            on_resolved=self._on_call_resolved,
        )
        self.trimmer = HistoryTrimmer(
            self,
            interval=config.trim_interval,
            max_steps=config.max_steps,
            max_messages=config.max_messages,
        )

        self._lock = threading.Lock()
        self._machines: dict[str, AgentStateMachine] = {}
        self._guards: dict[str, list[ResourceGuard]] = {}
        self._active_agent_id: str | None = None
        self._tasks: set[asyncio.Task[Any]] = set()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._loop_thread: threading.Thread | None = None

    # --- Engine loop ---

    def start(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """Attach to ``loop``, or run a private event loop in a background thread."""
        if loop is None:
            self._loop = asyncio.new_event_loop()
            self._loop_thread = threading.Thread(
                target=self._loop.run_forever, daemon=True, name="agentgate-engine"
            )
            self._loop_thread.start()
        else:
            self._loop = loop
        if self._on_engine_loop():
            self.trimmer.start()
        else:
            self._loop.call_soon_threadsafe(self.trimmer.start)

    def shutdown(self, timeout: float = 10.0) -> None:
        loop = self._loop
        if loop is None:
            return
        if self._loop_thread is not None:
            asyncio.run_coroutine_threadsafe(self.aclose(), loop).result(timeout)
            loop.call_soon_threadsafe(loop.stop)
            self._loop_thread.join(timeout)
            self._loop_thread = None
        self._loop = None

    async def aclose(self) -> None:
        """Cancel outstanding work and stop every tool server."""
        current = asyncio.current_task()
        tasks = [t for t in self._tasks if t is not current]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        await self.trimmer.stop()
        await self.supervisor.stop_all()

    async def drain(self, timeout: float = 10.0) -> None:
        """Wait until no scheduled turn or approved call is left running."""
        current = asyncio.current_task()
        while True:
            tasks = [t for t in self._tasks if t is not current and not t.done()]
            if not tasks:
                return
            _, pending = await asyncio.wait(tasks, timeout=timeout)
            if pending:
                logger.warning("drain: %d tasks still running after %.1fs", len(pending), timeout)
                return

    def run_sync(self, coro: Coroutine[Any, Any, Any], timeout: float | None = None) -> Any:
        """Run ``coro`` on the engine loop from a thread outside it and wait for the result."""
        if self._loop is None or self._on_engine_loop():
            coro.close()
            raise ValidationError("run_sync needs a started engine loop on another thread")
        return asyncio.run_coroutine_threadsafe(coro, self._loop).result(timeout)

    async def run_on_engine(self, coro: Coroutine[Any, Any, Any]) -> Any:
        """Await ``coro`` on the engine loop from any event loop."""
        if self._on_engine_loop():
            return await coro
        if self._loop is None:
            coro.close()
            raise ValidationError("Orchestrator is not started")
        return await asyncio.wrap_future(asyncio.run_coroutine_threadsafe(coro, self._loop))

    def _require_started(self) -> None:
        if self._loop is None:
            raise ValidationError("Orchestrator is not started")

    def _schedule(self, coro: Coroutine[Any, Any, Any]) -> Any:
        loop = self._loop
        if loop is None:
            coro.close()
            raise ValidationError("Orchestrator is not started")
        if self._on_engine_loop():
            task = loop.create_task(self._tracked(coro))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            return task
        return asyncio.run_coroutine_threadsafe(self._tracked(coro), loop)

    def _on_engine_loop(self) -> bool:
        try:
            return asyncio.get_running_loop() is self._loop
        except RuntimeError:
            return False

    async def _tracked(self, coro: Coroutine[Any, Any, Any]) -> Any:
        task = asyncio.current_task()
        if task is not None:
            self._tasks.add(task)
        try:
            return await coro
        except Exception:
            logger.exception("Background task failed")
        finally:
            if task is not None:
                self._tasks.discard(task)

    # --- Agent CRUD ---

    def create_agent(
        self, options: CreateAgentOptions | dict[str, Any] | None = None, **overrides: Any
    ) -> Agent:
        opts = self._validate_options(options, overrides)
        context = ContextConfig(
            include_current_message=opts.include_current_message,
            include_parent_context=opts.include_parent_context,
            parent_context_depth=opts.parent_context_depth,
            include_full_conversation=opts.include_full_conversation,
            include_persona=opts.include_persona,
            seed_messages=self._seed_messages(opts),
            working_directory=opts.working_directory,
        )
        system_prompt = compose_system_prompt(opts.persona_content, opts.include_persona)
        if opts.working_directory:
            system_prompt += f"\n\nWorking directory: {opts.working_directory}"

        agent = Agent(
            config=AgentConfig(
                name=opts.name or generate_agent_name(),
                instructions=opts.instructions,
                context=context,
                tool_permission=opts.tool_permission,
                model=opts.model,
                persona_id=opts.persona_id,
                persona_content=opts.persona_content,
                max_turns=opts.max_turns or self.config.max_turns,
            ),
            system_prompt=system_prompt,
            source_conversation_id=opts.conversation_id,
            source_message_id=opts.source_message_id,
        )
        machine = AgentStateMachine(agent, on_step=self._write_log)
        with self._lock:
            self._machines[agent.id] = machine
            self._active_agent_id = agent.id
        logger.info(
            "Created agent %s (%s, %s)", agent.id, agent.config.name, agent.config.tool_permission.value
        )
        return machine.snapshot()

    def create_agent_from_template(
        self, template_id: str, working_directory: str = "", **overrides: Any
    ) -> Agent:
        template = get_template(template_id)
        if template is None:
            raise ValidationError(f"Unknown agent template: {template_id}")
        if template.requires_directory and not working_directory.strip():
            raise ValidationError(f"Template {template_id} requires a working directory")
        fields = {
            "instructions": template.instructions,
            "name": template.name,
            "tool_permission": template.tool_permission,
            "working_directory": working_directory.strip(),
            **overrides,
        }
        return self.create_agent(fields)

    @staticmethod
    def _validate_options(
        options: CreateAgentOptions | dict[str, Any] | None, overrides: dict[str, Any]
    ) -> CreateAgentOptions:
        if isinstance(options, CreateAgentOptions):
            fields = options.model_dump()
        else:
            fields = dict(options or {})
        fields.update(overrides)
        try:
            opts = CreateAgentOptions.model_validate(fields)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid agent options: {_describe_validation(e)}") from e
        if not opts.instructions.strip():
            raise ValidationError("Invalid agent options: instructions must not be blank")
        return opts

    @staticmethod
    def _seed_messages(opts: CreateAgentOptions) -> list[AgentMessage]:
        seed: list[AgentMessage] = []
        if opts.include_current_message and opts.source_message_content:
            seed.append(AgentMessage(role="assistant", content=opts.source_message_content))
        if opts.include_full_conversation:
            seed.extend(opts.conversation_messages)
        elif opts.include_parent_context:
            seed.extend(opts.conversation_messages[-opts.parent_context_depth * 2 :])
        return [m.model_copy() for m in seed]

    def remove_agent(self, agent_id: str) -> bool:
        """Release the agent's resources, then drop it from the live set.

        A failing release is logged and does not block removal.
        """
        with self._lock:
            machine = self._machines.get(agent_id)
            guards = self._guards.pop(agent_id, [])
        if machine is None:
            return False
        for guard in guards:
            try:
                guard.release()
            except Exception:
                logger.exception("Cleanup %r for agent %s failed", guard, agent_id)
        with self._lock:
            self._machines.pop(agent_id, None)
            if self._active_agent_id == agent_id:
                self._active_agent_id = None
        with machine.lock:
            machine.removed = True
        self.gate.discard_agent(agent_id)
        logger.info("Removed agent %s", agent_id)
        return True

    def clear_all_agents(self) -> int:
        removed = 0
        for agent_id in self.agent_ids():
            if self.remove_agent(agent_id):
                removed += 1
        return removed

    def attach_resource(self, agent_id: str, guard: ResourceGuard) -> ResourceGuard:
        with self._lock:
            if agent_id not in self._machines:
                raise ValidationError(f"Agent {agent_id} not found")
            self._guards.setdefault(agent_id, []).append(guard)
        return guard

    def register_cleanup(
        self, agent_id: str, cleanup: Callable[[], None], name: str = "cleanup"
    ) -> CleanupGuard:
        guard = CleanupGuard(cleanup, name)
        self.attach_resource(agent_id, guard)
        return guard

    # --- Queries ---

    def _get_machine(self, agent_id: str) -> AgentStateMachine | None:
        with self._lock:
            return self._machines.get(agent_id)

    def _require(self, agent_id: str) -> AgentStateMachine:
        machine = self._get_machine(agent_id)
        if machine is None:
            raise ValidationError(f"Agent {agent_id} not found")
        return machine

    def _all_machines(self) -> list[AgentStateMachine]:
        with self._lock:
            return list(self._machines.values())

    def agent_ids(self) -> list[str]:
        with self._lock:
            return list(self._machines)

    def get_agent(self, agent_id: str) -> Agent | None:
        machine = self._get_machine(agent_id)
        return machine.snapshot() if machine else None

    def list_agents(self) -> list[Agent]:
        return [m.snapshot() for m in self._all_machines()]

    def get_agent_summaries(self) -> list[AgentSummary]:
        summaries = []
        for agent in self.list_agents():
            summaries.append(
                AgentSummary(
                    id=agent.id,
                    name=agent.config.name,
                    status=agent.status,
                    steps_completed=agent.steps_completed,
                    pending_approvals=len(agent.pending_approvals),
                    has_error=agent.error is not None,
                )
            )
        return summaries

    def get_pending_approvals(self) -> list[PendingCall]:
        pending: list[PendingCall] = []
        for machine in self._all_machines():
            for step in machine.pending_steps():
                call = step.tool_call
                pending.append(
                    PendingCall(
                        agent_id=machine.id,
                        step_id=step.id,
                        server=call.server,
                        tool=call.name,
                        arguments=dict(call.args),
                        risk=call.risk,
                    )
                )
        return pending

    def get_running_agents(self) -> list[Agent]:
        return [a for a in self.list_agents() if a.status in _RUNNING_STATUSES]

    def has_active_agents(self) -> bool:
        return any(m.status in _ACTIVE_STATUSES for m in self._all_machines())

    def set_active_agent(self, agent_id: str | None) -> None:
        with self._lock:
            if agent_id is not None and agent_id not in self._machines:
                raise ValidationError(f"Agent {agent_id} not found")
            self._active_agent_id = agent_id

    def get_active_agent(self) -> Agent | None:
        with self._lock:
            machine = self._machines.get(self._active_agent_id) if self._active_agent_id else None
        return machine.snapshot() if machine else None

    # --- State mutations ---

    def update_status(
        self, agent_id: str, status: AgentStatus, error: str | None = None
    ) -> Agent | None:
        """Unknown ids are ignored; the agent may have just been removed."""
        machine = self._get_machine(agent_id)
        if machine is None:
            logger.debug("update_status for unknown agent %s ignored", agent_id)
            return None
        return machine.update_status(AgentStatus(status), error)

    def add_message(self, agent_id: str, role: str, content: str) -> AgentMessage:
        return self._require(agent_id).append_message(role, content)

    def update_message(self, agent_id: str, message_id: str, content: str) -> bool:
        machine = self._get_machine(agent_id)
        return machine.edit_message(message_id, content) if machine else False

    def add_step(self, agent_id: str, step: AgentStep) -> AgentStep:
        return self._require(agent_id).append_step(step)

    def update_step(self, agent_id: str, step_id: str, **updates: Any) -> AgentStep | None:
        return self._require(agent_id).update_step(step_id, **updates)

    def trim_history(
        self, agent_id: str, max_steps: int | None = None, max_messages: int | None = None
    ) -> tuple[int, int]:
        machine = self._get_machine(agent_id)
        if machine is None:
            return 0, 0
        return machine.trim(
            self.config.max_steps if max_steps is None else max_steps,
            self.config.max_messages if max_messages is None else max_messages,
        )

    # --- Approvals ---

    def approve(self, agent_id: str, step_id: str) -> AgentStep:
        return self.gate.approve(agent_id, step_id)

    def deny(self, agent_id: str, step_id: str, reason: str | None = None) -> AgentStep:
        return self.gate.deny(agent_id, step_id, reason)

    # --- Running agents ---

    def start_agent(self, agent_id: str, prompt: str | None = None) -> Agent:
        """Send the first user message (the instructions by default) and begin turns."""
        self._require_model_client()
        self._require_started()
        machine = self._require(agent_id)
        with machine.lock:
            if machine.status not in (AgentStatus.CREATED, AgentStatus.COMPLETED, AgentStatus.FAILED):
                raise ValidationError(f"Agent {agent_id} is already {machine.status.value}")
            agent = machine.snapshot()
            machine.append_message("user", prompt or agent.config.instructions)
            machine.update_status(AgentStatus.RUNNING)
            machine.turns = 0
        self._schedule_turn(machine)
        return machine.snapshot()

    def send_message(self, agent_id: str, text: str) -> Agent:
        """Add a user message; a finished agent picks up work again."""
        if not text.strip():
            raise ValidationError("Message must not be empty")
        machine = self._require(agent_id)
        with machine.lock:
            if machine.status == AgentStatus.CREATED:
                return self.start_agent(agent_id, text)
            if machine.status in _RUNNING_STATUSES:
                machine.append_message("user", text)
                return machine.snapshot()
            self._require_model_client()
            self._require_started()
            machine.append_message("user", text)
            machine.update_status(AgentStatus.RUNNING)
            machine.turns = 0
        self._schedule_turn(machine)
        return machine.snapshot()

    def _require_model_client(self) -> ModelClient:
        if self.model_client is None:
            raise ValidationError("No model client configured")
        return self.model_client

    def _schedule_turn(self, machine: AgentStateMachine) -> None:
        with machine.lock:
            if machine.turn_active or machine.removed:
                return
            machine.turn_active = True
        try:
            self._schedule(self._run_turns(machine))
        except ValidationError:
            with machine.lock:
                machine.turn_active = False
            raise

    async def _run_turns(self, machine: AgentStateMachine) -> None:
        try:
            while True:
                with machine.lock:
                    if machine.removed or machine.status != AgentStatus.RUNNING:
                        return
                    agent = machine.snapshot()
                    if machine.turns >= agent.config.max_turns:
                        self._fail(machine, f"Exceeded max turns ({agent.config.max_turns})")
                        return
                    machine.turns += 1

                if not await self._take_turn(machine, agent):
                    return

                with machine.lock:
                    if machine.removed:
                        return
                    if machine.has_pending() or machine.in_flight:
                        # Resumed by _on_call_resolved once the last call settles.
                        return
                    if machine.status == AgentStatus.WAITING:
                        machine.update_status(AgentStatus.RUNNING)
        finally:
            with machine.lock:
                machine.turn_active = False

    async def _take_turn(self, machine: AgentStateMachine, agent: Agent) -> bool:
        """One model turn. False when the agent should stop taking turns."""
        client = self._require_model_client()
        history = [
            m for m in agent.config.context.seed_messages + agent.messages if m.content
        ]
        catalog = self.registry.tool_catalog()
        system_prompt = f"{agent.system_prompt}\n\n{generate_tool_system_prompt(catalog)}"
        placeholder = machine.append_message("assistant", "")

        def on_delta(text: str) -> None:
            machine.edit_message(placeholder.id, text)

        try:
            turn = await client.submit(agent.id, history, system_prompt, catalog, on_delta=on_delta)
        except Exception as e:
            logger.exception("Agent %s: model turn failed", agent.id)
            if not machine.removed:
                error = f"Model error: {e}"
                machine.append_step(AgentStep(type=StepType.ERROR, content=error))
                self._fail(machine, error)
            return False

        if machine.removed:
            logger.info("Agent %s removed during its turn; output discarded", agent.id)
            return False
        machine.edit_message(placeholder.id, turn.content)
        if turn.thinking:
            machine.append_step(AgentStep(type=StepType.THINKING, content=turn.thinking))
        if turn.content:
            machine.append_step(AgentStep(type=StepType.MESSAGE, content=turn.content))

        if not turn.tool_calls:
            with machine.lock:
                if machine.status == AgentStatus.RUNNING:
                    machine.update_status(AgentStatus.COMPLETED)
            return False

        for invocation in turn.tool_calls:
            outcome = await self.router.route(machine, invocation, agent.config.tool_permission)
            if machine.removed:
                return False
            if outcome is not None and outcome.fatal:
                self._fail(machine, outcome.error or "tool server failure")
                return False
        return True

    def _on_call_resolved(self, machine: AgentStateMachine, outcome: CallOutcome | None) -> None:
        if machine.removed:
            return
        if outcome is not None and outcome.fatal:
            self._fail(machine, outcome.error or "tool server failure")
            return
        with machine.lock:
            if machine.removed or machine.status != AgentStatus.WAITING:
                return
            if machine.has_pending() or machine.in_flight:
                return
            machine.update_status(AgentStatus.RUNNING)
        if self.model_client is None:
            logger.warning("Agent %s resumed but no model client is configured", machine.id)
            return
        self._schedule_turn(machine)

    def _fail(self, machine: AgentStateMachine, error: str) -> None:
        with machine.lock:
            if machine.removed or machine.status not in _ACTIVE_STATUSES:
                return
            machine.update_status(AgentStatus.FAILED, error)

    # --- Sessions ---

    def create_agent_with_resumption(
        self,
        session: ResumedSession,
        context: ResumptionContext,
        conversation_id: str | None = None,
        **overrides: Any,
    ) -> Agent:
        options = resumption_options(session, context, conversation_id, overrides)
        agent = self.create_agent(options)
        logger.info("Agent %s resumes session %s", agent.id, session.id)
        return agent

    def _require_db(self) -> Database:
        if self.db is None:
            raise StorageError("No database configured for session snapshots")
        return self.db

    def suspend_agent(self, agent_id: str, remove: bool = True) -> ResumedSession:
        """Persist a resumption snapshot of the agent, then (by default) remove it."""
        db = self._require_db()
        agent = self._require(agent_id).snapshot()
        context = capture_resumption_context(agent, self.registry.category)
        session = ResumedSession(
            conversation_id=agent.source_conversation_id or "",
            original_prompt=agent.config.instructions,
            status=SessionStatus.PAUSED,
            token_estimate=context.token_count,
            entry_count=len(agent.steps),
        )
        db.save_session(session, context)
        logger.info("Suspended agent %s as session %s", agent_id, session.id)
        if remove:
            self.remove_agent(agent_id)
        return session

    def resume_session(self, session_id: str, **overrides: Any) -> Agent:
        db = self._require_db()
        found = db.get_session(session_id)
        if found is None:
            raise ValidationError(f"Session {session_id} not found")
        session, context = found
        agent = self.create_agent_with_resumption(session, context, **overrides)
        db.update_session_status(session_id, SessionStatus.ACTIVE)
        return agent

    def list_sessions(self, conversation_id: str | None = None) -> list[ResumedSession]:
        return self._require_db().list_sessions(conversation_id)

    # --- Tool servers ---

    def list_servers(self) -> list[dict[str, Any]]:
        status = self.supervisor.status()
        servers = []
        for config in self.registry.list_servers():
            state = status.get(config.name, {})
            servers.append(
                {
                    "name": config.name,
                    "enabled": config.enabled,
                    "command": " ".join([config.command, *config.args]),
                    "tools": len(config.tools),
                    "state": state.get("state", "stopped"),
                    "restarts": state.get("restarts", 0),
                    "last_error": state.get("last_error"),
                }
            )
        return servers

    def configure_directory(self, directory: str) -> ToolServerConfig:
        """Point the filesystem server at ``directory`` and relaunch it if running."""
        config = self.registry.update_allowed_directory(directory)
        self._relaunch(config.name)
        return config

    def set_server_enabled(self, name: str, enabled: bool) -> ToolServerConfig:
        config = self.registry.set_enabled(name, enabled)
        if not enabled and self._loop is not None and self.supervisor.connection(name):
            self._schedule(self.supervisor.stop_server(name))
        return config

    def _relaunch(self, name: str) -> None:
        if self._loop is not None and self.supervisor.connection(name) is not None:
            self._schedule(self.supervisor.restart_server(name))

    async def set_secret(self, name: str, value: str, server: str | None = None) -> None:
        """Store a secret; ``server`` is relaunched so it sees the new value."""
        await self.set_secrets({name: value}, server)

    async def set_secrets(self, secrets: dict[str, str], server: str | None = None) -> None:
        if any(not name.strip() for name in secrets):
            raise ValidationError("Secret name is required")
        for name, value in secrets.items():
            await self.credentials.set_secret(name, value)
        if server is not None and self.supervisor.connection(server) is not None:
            await self.supervisor.restart_server(server)

    async def configure_ssh(
        self,
        host: str,
        username: str,
        auth_type: str = "key",
        port: int = 22,
        password: str | None = None,
        key_path: str | None = None,
    ) -> ToolServerConfig:
        secrets = ssh_secrets(host, username, auth_type, port, password, key_path)
        for name, value in secrets.items():
            await self.credentials.set_secret(name, value)
        config = self.registry.set_enabled(SSH_SERVER.name, True)
        await self.supervisor.restart_server(SSH_SERVER.name)
        logger.info("Configured ssh server for %s@%s", username, host)
        return config

    def filesystem_directory(self) -> str | None:
        config = self.registry.get(FILESYSTEM_SERVER.name)
        if config is None or not config.args:
            return None
        return config.args[-1]

    # --- Logs ---

    def _write_log(self, agent_id: str, step: AgentStep) -> None:
        log_path = self.log_dir / f"{agent_id}.log"
        status = f" [{step.tool_call.name}: {step.tool_call.status.value}]" if step.tool_call else ""
        content = step.content.replace("\n", " ")
        try:
            with open(log_path, "a") as f:
                f.write(f"{step.timestamp.isoformat()} {step.type.value}{status} {content}\n")
        except OSError as e:
            logger.warning("Cannot write log for agent %s: %s", agent_id, e)

    def get_logs(self, agent_id: str, lines: int = 100) -> str:
        log_path = self.log_dir / f"{agent_id}.log"
        if not log_path.exists():
            return ""
        all_lines = log_path.read_text().splitlines()
        return "\n".join(all_lines[-lines:])
