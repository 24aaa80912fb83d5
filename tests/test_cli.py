"""Tests for the command-line interface."""

from __future__ import annotations

import click
import pytest
from click.testing import CliRunner
from rich.console import Console

from agentgate.cli import _make_orchestrator, main
from agentgate.config import Config
from agentgate.db import Database
from agentgate.models import ResumedSession, ResumptionContext


@pytest.fixture()
def run(tmp_dir, monkeypatch):
    Config.reset()
    monkeypatch.setattr("agentgate.cli.console", Console(width=200))
    runner = CliRunner()

    def invoke(*args, env=None):
        return runner.invoke(main, ["--data-dir", str(tmp_dir), *args], env=env)

    yield invoke
    Config.reset()


def test_init(run, tmp_dir):
    result = run("init")
    assert result.exit_code == 0
    assert (tmp_dir / "agentgate.db").exists()


def test_servers_and_enable(run):
    result = run("servers")
    assert result.exit_code == 0
    assert "filesystem" in result.output
    assert "brave-search" in result.output

    result = run("enable", "memory")
    assert result.exit_code == 0
    assert "Enabled memory" in result.output

    result = run("enable", "nope")
    assert result.exit_code == 1
    assert "Unknown tool server" in result.output


def test_set_directory_persists(run, tmp_dir):
    project = tmp_dir / "project"
    project.mkdir()
    result = run("set-directory", str(project))
    assert result.exit_code == 0

    db = Database(tmp_dir / "agentgate.db")
    try:
        saved = db.get_tool_server("filesystem")
    finally:
        db.close()
    assert saved.enabled is True
    assert saved.args[-1] == str(project.resolve())


def test_templates(run):
    result = run("templates")
    assert result.exit_code == 0
    assert "bug-fixer" in result.output


def test_secret_reports_env_var(run):
    result = run("secret", "github.token", env={"AGENTGATE_SECRET_GITHUB_TOKEN": None})
    assert result.exit_code == 0
    assert "not set" in result.output
    assert "AGENTGATE_SECRET_GITHUB_TOKEN" in result.output

    result = run("secret", "github.token", env={"AGENTGATE_SECRET_GITHUB_TOKEN": "x"})
    assert "set" in result.output
    assert "export" not in result.output


def test_sessions(run, tmp_dir):
    result = run("sessions")
    assert result.exit_code == 0
    assert "No sessions" in result.output

    db = Database(tmp_dir / "agentgate.db")
    try:
        db.save_session(
            ResumedSession(conversation_id="conv-1", original_prompt="Ship the release"),
            ResumptionContext(original_prompt="Ship the release"),
        )
    finally:
        db.close()
    result = run("sessions", "--conversation", "conv-1")
    assert "Ship the release" in result.output


def test_logs_for_unknown_agent(run):
    result = run("logs", "agent-nope")
    assert result.exit_code == 0
    assert "No logs" in result.output


def test_bad_model_client(run):
    result = run("--model-client", "nope", "logs", "agent-x")
    assert result.exit_code == 1
    assert "Invalid model client path" in result.output


@pytest.mark.parametrize("read_only", [False, True])
def test_runtime_secrets_follow_flag(tmp_dir, read_only):
    Config.reset()
    obj = {"data_dir": str(tmp_dir), "model_client": None, "read_only_secrets": read_only}
    orch = _make_orchestrator(click.Context(main, obj=obj), start=False)
    try:
        assert orch.credentials.writable is not read_only
    finally:
        orch.db.close()
        Config.reset()
