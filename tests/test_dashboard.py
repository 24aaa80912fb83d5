"""Tests for the dashboard JSON API."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from agentgate.credentials import EnvCredentialStore, MemoryCredentialStore
from agentgate.dashboard.app import create_app
from agentgate.orchestrator import Orchestrator

from conftest import tool_turn


@pytest_asyncio.fixture()
async def client(orchestrator):
    app = create_app(orchestrator)
    app.config["TESTING"] = True
    return app.test_client()


@pytest.mark.asyncio
async def test_create_list_delete(client):
    resp = client.post("/api/agents", json={"instructions": "Review the PR", "name": "Reviewer"})
    assert resp.status_code == 201
    agent_id = resp.get_json()["id"]

    listed = client.get("/api/agents").get_json()
    assert [a["name"] for a in listed] == ["Reviewer"]
    detail = client.get(f"/api/agents/{agent_id}").get_json()
    assert detail["config"]["instructions"] == "Review the PR"
    assert client.get("/api/active-agent").get_json() == {"agent_id": agent_id}

    assert client.delete(f"/api/agents/{agent_id}").status_code == 200
    assert client.get(f"/api/agents/{agent_id}").status_code == 404
    assert client.delete(f"/api/agents/{agent_id}").status_code == 404


@pytest.mark.asyncio
async def test_create_validation(client):
    assert client.post("/api/agents", data="nope").status_code == 400
    resp = client.post("/api/agents", json={"instructions": "  "})
    assert resp.status_code == 400
    assert "blank" in resp.get_json()["error"]
    resp = client.post("/api/agents", json={"template_id": "documentation"})
    assert resp.status_code == 400
    resp = client.post("/api/agents", json={"template_id": "documentation", "working_directory": "/srv/docs"})
    assert resp.status_code == 201
    assert resp.get_json()["name"] == "Documentation"


@pytest.mark.asyncio
async def test_approval_flow(client, orchestrator, model_client):
    model_client.queue(tool_turn("write_file", path="a.txt"))
    agent_id = client.post("/api/agents", json={"instructions": "Write a file"}).get_json()["id"]
    resp = client.post(f"/api/agents/{agent_id}/start", json={})
    assert resp.get_json()["status"] == "running"
    await orchestrator.drain()

    approvals = client.get("/api/approvals").get_json()
    assert len(approvals) == 1
    assert approvals[0]["tool"] == "write_file"
    assert approvals[0]["risk"] == "moderate"
    step_id = approvals[0]["step_id"]

    resp = client.post(f"/api/agents/{agent_id}/steps/{step_id}/deny", json={"reason": "wrong file"})
    assert resp.get_json() == {"step_id": step_id, "status": "denied"}
    resp = client.post(f"/api/agents/{agent_id}/steps/{step_id}/approve")
    assert resp.status_code == 409
    resp = client.post(f"/api/agents/{agent_id}/steps/step-nope/approve")
    assert resp.status_code == 404
    await orchestrator.drain()
    assert client.get("/api/approvals").get_json() == []


@pytest.mark.asyncio
async def test_start_unknown_agent(client):
    resp = client.post("/api/agents/agent-nope/start")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_message_requires_text(client):
    agent_id = client.post("/api/agents", json={"instructions": "x"}).get_json()["id"]
    assert client.post(f"/api/agents/{agent_id}/messages", json={}).status_code == 400


@pytest.mark.asyncio
async def test_servers(client, tmp_dir):
    names = {s["name"] for s in client.get("/api/servers").get_json()}
    assert {"filesystem", "brave-search", "github", "ssh", "memory", "fake"} <= names

    resp = client.patch("/api/servers/github", json={"enabled": True})
    assert resp.get_json() == {"name": "github", "enabled": True}
    assert client.patch("/api/servers/github", json={}).status_code == 400
    assert client.patch("/api/servers/nope", json={"enabled": True}).status_code == 400

    resp = client.put("/api/servers/filesystem/directory", json={"directory": str(tmp_dir)})
    assert resp.get_json()["directory"] == str(tmp_dir)


@pytest.mark.asyncio
async def test_sessions(client, orchestrator, db):
    assert client.get("/api/sessions").status_code == 503

    orchestrator.db = db
    agent = orchestrator.create_agent(instructions="Port the scheduler")
    resp = client.post(f"/api/agents/{agent.id}/suspend")
    assert resp.status_code == 201
    session_id = resp.get_json()["id"]
    assert [s["id"] for s in client.get("/api/sessions").get_json()] == [session_id]

    resp = client.post(f"/api/sessions/{session_id}/resume")
    assert resp.status_code == 201
    assert resp.get_json()["name"] == "Resumed: Port the scheduler"
    assert client.post("/api/sessions/session-nope/resume").status_code == 404


@pytest.mark.asyncio
async def test_trim_and_logs(client, orchestrator):
    agent = orchestrator.create_agent(instructions="x")
    resp = client.post(f"/api/agents/{agent.id}/trim", json={"max_steps": 5})
    assert resp.get_json() == {"removed_steps": 0, "removed_messages": 0}
    resp = client.get(f"/api/agents/{agent.id}/logs?lines=5")
    assert resp.get_json() == {"agent_id": agent.id, "logs": ""}


@pytest.fixture()
def threaded(config, registry):
    """Dashboard over an engine running on its own thread, as the CLI serves it."""
    orch = Orchestrator(config, registry=registry, credentials=MemoryCredentialStore())
    orch.supervisor.restart_server = AsyncMock()
    orch.start()
    app = create_app(orch)
    app.config["TESTING"] = True
    yield app.test_client(), orch
    orch.shutdown()


def test_set_server_secrets(threaded):
    client, orch = threaded
    resp = client.put("/api/servers/github/secrets", json={"secrets": {"github.token": "ghp_x"}})
    assert resp.status_code == 200
    assert resp.get_json() == {"name": "github", "saved": ["github.token"]}
    assert orch.run_sync(orch.credentials.get_secret("github.token")) == "ghp_x"

    assert client.put("/api/servers/github/secrets", json={}).status_code == 400
    resp = client.put("/api/servers/nope/secrets", json={"secrets": {"x": "y"}})
    assert resp.status_code == 404


def test_secrets_without_secure_storage(threaded):
    client, orch = threaded
    orch.credentials = EnvCredentialStore()
    resp = client.put("/api/servers/github/secrets", json={"secrets": {"github.token": "ghp_x"}})
    assert resp.status_code == 503
    assert "not available" in resp.get_json()["error"]


def test_configure_ssh(threaded):
    client, orch = threaded
    resp = client.put(
        "/api/servers/ssh",
        json={"host": "build.example", "username": "deploy", "auth_type": "password", "password": "pw"},
    )
    assert resp.get_json() == {"name": "ssh", "enabled": True}
    assert orch.run_sync(orch.credentials.get_secret("ssh.credential")) == "pw"
    orch.supervisor.restart_server.assert_awaited_once_with("ssh")

    resp = client.put("/api/servers/ssh", json={"host": "build.example"})
    assert resp.status_code == 400
    assert "username" in resp.get_json()["error"]
