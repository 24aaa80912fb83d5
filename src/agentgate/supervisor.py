"""Process supervisor for tool servers.

Each enabled tool server runs as one child process speaking MCP over stdio.
An ``mcp`` client session owns the child's pipes and correlates requests
with responses, so concurrent calls to one server may complete in any
order. Around the session the supervisor keeps a restart budget: a child
that exits is relaunched with exponential backoff until the budget is
spent, after which the server is unavailable and calls fail fast.
"""

from __future__ import annotations

import asyncio
import logging
import os
from contextlib import AsyncExitStack
from datetime import timedelta
from enum import Enum
from typing import Any, Awaitable

import anyio
from mcp import ClientSession, StdioServerParameters
from mcp.client.stdio import stdio_client
from mcp.shared.exceptions import McpError
from mcp.types import CallToolResult, TextContent

from .credentials import CredentialStore
from .errors import (
    AgentGateError,
    StorageError,
    ToolExecutionError,
    ToolServerUnavailable,
    ToolTimeoutError,
)
from .models import ToolServerConfig
from .registry import ToolServerRegistry

logger = logging.getLogger(__name__)

# Error code the mcp session uses for a request that outlived its read timeout.
_REQUEST_TIMEOUT = 408
_TERMINATE_GRACE = 5.0


class ServerState(str, Enum):
    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    RESTARTING = "restarting"
    UNAVAILABLE = "unavailable"


class ServerConnection:
    """One supervised child process and the MCP session on its stdio."""

    def __init__(
        self,
        config: ToolServerConfig,
        credentials: CredentialStore | None = None,
        call_timeout: float = 60.0,
        max_restarts: int = 3,
        restart_backoff: float = 0.5,
    ):
        self.config = config
        self.name = config.name
        self.credentials = credentials
        self.call_timeout = call_timeout
        self.max_restarts = max_restarts
        self.restart_backoff = restart_backoff

        self.state = ServerState.STOPPED
        self.launch_count = 0
        self.restarts = 0
        self.last_error: str | None = None
        self._fatal: AgentGateError | None = None
        self._stopping = False

        self._session: ClientSession | None = None
        # Set when the current child's stdout closes, or on stop.
        self._exited = asyncio.Event()
        self._supervise_task: asyncio.Task[None] | None = None
        self._in_flight = 0
        self._changed = asyncio.Condition()

    @property
    def in_flight(self) -> int:
        return self._in_flight

    # --- Lifecycle ---

    async def start(self) -> None:
        """Begin supervising the process. Returns without waiting for readiness."""
        if self._supervise_task and not self._supervise_task.done():
            return
        self._stopping = False
        self._fatal = None
        self.restarts = 0
        self.state = ServerState.STARTING
        self._supervise_task = asyncio.get_running_loop().create_task(
            self._supervise(), name=f"tool-server:{self.name}"
        )

    async def stop(self) -> None:
        self._stopping = True
        self._exited.set()
        task = self._supervise_task
        if task and not task.done():
            try:
                await asyncio.wait_for(task, timeout=_TERMINATE_GRACE)
            except asyncio.TimeoutError:
                logger.warning("Supervisor for %s did not stop in time", self.name)
        self._session = None
        if self.state is not ServerState.UNAVAILABLE:
            await self._set_state(ServerState.STOPPED)
        logger.info("Tool server %s stopped", self.name)

    async def _supervise(self) -> None:
        try:
            env = await self._build_env()
        except StorageError as e:
            await self._mark_unavailable(e)
            return
        params = StdioServerParameters(
            command=self.config.command, args=list(self.config.args), env=env
        )

        while not self._stopping:
            self.launch_count += 1
            try:
                await self._run_session(params)
            except Exception as e:
                self.last_error = str(e)
                logger.warning("Tool server %s failed: %s", self.name, e)
            self._session = None
            if self._stopping:
                break

            if self.restarts >= self.max_restarts:
                logger.error(
                    "Tool server %s exited; restart budget of %d exhausted",
                    self.name, self.max_restarts,
                )
                await self._mark_unavailable(ToolServerUnavailable(self.name))
                return

            self.restarts += 1
            delay = self.restart_backoff * 2 ** (self.restarts - 1)
            logger.warning(
                "Tool server %s exited; restart %d/%d in %.2fs",
                self.name, self.restarts, self.max_restarts, delay,
            )
            await self._set_state(ServerState.RESTARTING)
            await asyncio.sleep(delay)

    async def _run_session(self, params: StdioServerParameters) -> None:
        """Launch the child, initialize the session and hold it until the child exits."""
        exited = self._exited = asyncio.Event()
        async with AsyncExitStack() as stack:
            server_read, write_stream = await stack.enter_async_context(stdio_client(params))
            sink, read_stream = anyio.create_memory_object_stream(0)
            relay = asyncio.get_running_loop().create_task(
                self._relay(server_read, sink, exited)
            )
            stack.push_async_callback(_cancel, relay)
            session = await stack.enter_async_context(
                ClientSession(
                    read_stream,
                    write_stream,
                    read_timeout_seconds=timedelta(seconds=self.call_timeout),
                )
            )
            await self._until_exit(session.initialize(), "initialize")
            self._session = session
            await self._set_state(ServerState.RUNNING)
            logger.info("Tool server %s running", self.name)
            await exited.wait()

    async def _relay(self, source, sink, exited: asyncio.Event) -> None:
        """Pass server messages to the session and note when the child's stdout closes."""
        try:
            async with sink:
                async for message in source:
                    await sink.send(message)
        except (anyio.ClosedResourceError, anyio.BrokenResourceError):
            # The session closed its end first; this launch is being torn down.
            pass
        finally:
            if not self._stopping and self.state is ServerState.RUNNING:
                # New calls wait for the relaunch instead of using the dead session.
                self.state = ServerState.RESTARTING
            exited.set()

    async def _build_env(self) -> dict[str, str]:
        env = {**os.environ, **self.config.env}
        if not self.config.secrets:
            return env
        if self.credentials is None:
            raise StorageError(f"No credential store available for {self.name}")
        for env_name, secret_name in self.config.secrets.items():
            value = await self.credentials.get_secret(secret_name)
            if not value:
                raise StorageError(
                    f"Secret '{secret_name}' required by {self.name} is not configured"
                )
            env[env_name] = value
        return env

    async def _set_state(self, state: ServerState) -> None:
        async with self._changed:
            self.state = state
            self._changed.notify_all()

    async def _mark_unavailable(self, error: AgentGateError) -> None:
        self._fatal = error
        self.last_error = str(error)
        await self._set_state(ServerState.UNAVAILABLE)

    async def _until_exit(self, request: Awaitable[Any], tool: str) -> Any:
        """Await ``request``, failing it if the child exits or is stopped first."""
        request_task = asyncio.ensure_future(request)
        exit_task = asyncio.ensure_future(self._exited.wait())
        try:
            done, _ = await asyncio.wait(
                {request_task, exit_task}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            exit_task.cancel()
            if not request_task.done():
                request_task.cancel()
        if request_task in done:
            # A request failing as the child exits reports the exit instead.
            if exit_task not in done or request_task.exception() is None:
                return request_task.result()
        if self._stopping:
            raise ToolExecutionError(self.name, tool, "tool server stopped")
        raise ToolExecutionError(self.name, tool, "tool server exited before responding")

    # --- Calls ---

    async def call(
        self, tool: str, arguments: dict[str, Any], timeout: float | None = None
    ) -> Any:
        timeout = timeout or self.call_timeout
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        await self._await_ready(tool, timeout)
        remaining = deadline - loop.time()
        session = self._session
        if remaining <= 0:
            raise ToolTimeoutError(self.name, tool, timeout)
        if session is None:
            raise ToolExecutionError(self.name, tool, "tool server is not running")

        self._in_flight += 1
        try:
            result = await self._until_exit(
                session.call_tool(
                    tool, arguments, read_timeout_seconds=timedelta(seconds=remaining)
                ),
                tool,
            )
        except McpError as e:
            if e.error.code == _REQUEST_TIMEOUT:
                raise ToolTimeoutError(self.name, tool, timeout) from None
            raise ToolExecutionError(self.name, tool, e.error.message) from e
        finally:
            self._in_flight -= 1
        self.restarts = 0
        return self._output(tool, result)

    def _output(self, tool: str, result: CallToolResult) -> Any:
        """Flatten a tool result to text where every content block is text."""
        texts = [c.text for c in result.content if isinstance(c, TextContent)]
        if result.isError:
            raise ToolExecutionError(self.name, tool, "\n".join(texts) or "tool reported an error")
        if len(texts) == len(result.content):
            return "\n".join(texts)
        return result.model_dump(mode="json", exclude_none=True)

    async def _await_ready(self, tool: str, timeout: float) -> None:
        if self.state is ServerState.UNAVAILABLE:
            raise self._fatal or ToolServerUnavailable(self.name)
        if self._supervise_task is None or self._supervise_task.done():
            await self.start()
        settled = (ServerState.RUNNING, ServerState.UNAVAILABLE, ServerState.STOPPED)
        async with self._changed:
            try:
                await asyncio.wait_for(
                    self._changed.wait_for(lambda: self.state in settled), timeout
                )
            except asyncio.TimeoutError:
                raise ToolTimeoutError(self.name, tool, timeout) from None
        if self.state is ServerState.UNAVAILABLE:
            raise self._fatal or ToolServerUnavailable(self.name)
        if self.state is ServerState.STOPPED:
            # A deliberate stop or restart; the next call uses the new launch.
            raise ToolExecutionError(self.name, tool, "tool server stopped")


async def _cancel(task: asyncio.Task[Any]) -> None:
    task.cancel()
    await asyncio.gather(task, return_exceptions=True)


class ProcessSupervisor:
    """Owns one ServerConnection per tool server, addressed by name."""

    def __init__(
        self,
        registry: ToolServerRegistry,
        credentials: CredentialStore | None = None,
        call_timeout: float = 60.0,
        max_restarts: int = 3,
        restart_backoff: float = 0.5,
    ):
        self.registry = registry
        self.credentials = credentials
        self.call_timeout = call_timeout
        self.max_restarts = max_restarts
        self.restart_backoff = restart_backoff
        self._connections: dict[str, ServerConnection] = {}

    def connection(self, name: str) -> ServerConnection | None:
        return self._connections.get(name)

    def _connection_for(self, config: ToolServerConfig) -> ServerConnection:
        conn = self._connections.get(config.name)
        if conn is None:
            conn = ServerConnection(
                config,
                credentials=self.credentials,
                call_timeout=self.call_timeout,
                max_restarts=self.max_restarts,
                restart_backoff=self.restart_backoff,
            )
            self._connections[config.name] = conn
        return conn

    def _enabled_config(self, name: str) -> ToolServerConfig:
        config = self.registry.get(name)
        if config is None:
            raise ToolServerUnavailable(name, "unknown server")
        if not config.enabled:
            raise ToolServerUnavailable(name, "server is disabled")
        return config

    async def start_server(self, name: str) -> ServerConnection:
        conn = self._connection_for(self._enabled_config(name))
        await conn.start()
        return conn

    async def stop_server(self, name: str) -> None:
        conn = self._connections.pop(name, None)
        if conn is not None:
            await conn.stop()

    async def restart_server(self, name: str) -> ServerConnection | None:
        """Relaunch with the current registry config and a fresh restart budget."""
        await self.stop_server(name)
        config = self.registry.get(name)
        if config is None or not config.enabled:
            return None
        return await self.start_server(name)

    async def stop_all(self) -> None:
        for name in list(self._connections):
            await self.stop_server(name)

    async def call(
        self,
        server: str,
        tool: str,
        arguments: dict[str, Any],
        timeout: float | None = None,
    ) -> Any:
        conn = self._connection_for(self._enabled_config(server))
        return await conn.call(tool, arguments, timeout)

    def status(self) -> dict[str, dict[str, Any]]:
        return {
            name: {
                "state": conn.state.value,
                "launch_count": conn.launch_count,
                "restarts": conn.restarts,
                "in_flight": conn.in_flight,
                "last_error": conn.last_error,
            }
            for name, conn in list(self._connections.items())
        }
