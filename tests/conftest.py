"""Shared test fixtures."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import pytest
import pytest_asyncio

from agentgate.config import Config
from agentgate.credentials import MemoryCredentialStore
from agentgate.db import Database
from agentgate.models import (
    ModelTurn,
    RiskLevel,
    ToolInfo,
    ToolInvocation,
    ToolServerConfig,
)
from agentgate.orchestrator import Orchestrator
from agentgate.registry import ToolServerRegistry
from agentgate.servers.builtin import ALL_SERVERS

FAKE_SERVER = Path(__file__).parent / "fake_tool_server.py"


@pytest.fixture()
def tmp_dir(tmp_path: Path) -> Path:
    return tmp_path


@pytest.fixture()
def config(tmp_dir: Path) -> Config:
    Config.reset()
    return Config(tmp_dir, call_timeout=5.0, restart_backoff=0.01, trim_interval=3600)


@pytest.fixture()
def db(config: Config) -> Database:
    d = Database(config.db_path)
    yield d
    d.close()


def fake_server_config(name: str = "fake", *extra_args: str, **overrides) -> ToolServerConfig:
    fields = dict(
        name=name,
        command=sys.executable,
        args=[str(FAKE_SERVER), *extra_args],
        enabled=True,
        tools={
            "echo": ToolInfo(category="read", risk=RiskLevel.SAFE),
            "sleep": ToolInfo(category="read", risk=RiskLevel.SAFE),
            "fail": ToolInfo(category="read", risk=RiskLevel.SAFE),
            "crash": ToolInfo(category="execution", risk=RiskLevel.DANGEROUS),
            "env": ToolInfo(category="read", risk=RiskLevel.SAFE),
            "image": ToolInfo(category="read", risk=RiskLevel.SAFE),
        },
    )
    fields.update(overrides)
    return ToolServerConfig(**fields)


@pytest.fixture()
def fake_server() -> ToolServerConfig:
    return fake_server_config()


@pytest.fixture()
def registry(fake_server: ToolServerConfig) -> ToolServerRegistry:
    reg = ToolServerRegistry(builtins=[*ALL_SERVERS, fake_server])
    reg.set_enabled("filesystem", True)
    return reg


class ScriptedModelClient:
    """Replays queued turns; finishes with a plain completion message."""

    def __init__(self, *turns: ModelTurn):
        self.turns = list(turns)
        self.calls: list[dict] = []
        self.on_submit = None

    def queue(self, *turns: ModelTurn) -> None:
        self.turns.extend(turns)

    async def submit(self, agent_id, messages, system_prompt, tools, on_delta=None) -> ModelTurn:
        self.calls.append(
            {"agent_id": agent_id, "messages": list(messages), "system_prompt": system_prompt, "tools": tools}
        )
        if self.on_submit is not None:
            self.on_submit(agent_id)
        turn = self.turns.pop(0) if self.turns else ModelTurn(content="TASK COMPLETED")
        if on_delta is not None and turn.content:
            on_delta(turn.content[: len(turn.content) // 2])
        await asyncio.sleep(0)
        return turn


def tool_turn(tool: str, server: str | None = None, **arguments) -> ModelTurn:
    return ModelTurn(
        content=f"Calling {tool}",
        tool_calls=[ToolInvocation(tool=tool, server=server, arguments=arguments)],
    )


@pytest.fixture()
def model_client() -> ScriptedModelClient:
    return ScriptedModelClient()


@pytest_asyncio.fixture()
async def orchestrator(config, registry, model_client):
    orch = Orchestrator(
        config,
        registry=registry,
        credentials=MemoryCredentialStore(),
        model_client=model_client,
    )
    orch.start(asyncio.get_running_loop())
    yield orch
    await orch.aclose()
