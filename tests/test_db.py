"""Tests for the database layer."""

from agentgate.db import Database
from agentgate.models import (
    ResumedSession,
    ResumptionContext,
    SessionStatus,
    ToolServerConfig,
)


def test_save_and_get_tool_server(db: Database):
    config = ToolServerConfig(name="custom", command="node", args=["server.js"], enabled=True)
    db.save_tool_server(config)
    result = db.get_tool_server("custom")
    assert result is not None
    assert result.command == "node"
    assert result.args == ["server.js"]
    assert result.enabled is True


def test_tool_server_upsert(db: Database):
    db.save_tool_server(ToolServerConfig(name="custom", command="node"))
    db.save_tool_server(ToolServerConfig(name="custom", command="python"))
    servers = db.list_tool_servers()
    assert len(servers) == 1
    assert servers[0].command == "python"


def test_delete_tool_server(db: Database):
    db.save_tool_server(ToolServerConfig(name="custom", command="node"))
    assert db.delete_tool_server("custom") is True
    assert db.get_tool_server("custom") is None
    assert db.delete_tool_server("custom") is False


def test_save_and_get_session(db: Database):
    session = ResumedSession(conversation_id="conv1", original_prompt="Refactor the parser")
    context = ResumptionContext(
        original_prompt="Refactor the parser",
        files_modified=["parser.py"],
        error_history=["write_file: denied"],
        token_count=42,
    )
    db.save_session(session, context)
    found = db.get_session(session.id)
    assert found is not None
    loaded, loaded_context = found
    assert loaded.id == session.id
    assert loaded.status == SessionStatus.PAUSED
    assert loaded.created_at == session.created_at
    assert loaded_context.files_modified == ["parser.py"]
    assert loaded_context.token_count == 42


def test_get_nonexistent_session(db: Database):
    assert db.get_session("nope") is None


def test_list_sessions_by_conversation(db: Database):
    ctx = ResumptionContext(original_prompt="x")
    db.save_session(ResumedSession(conversation_id="a", original_prompt="x"), ctx)
    db.save_session(ResumedSession(conversation_id="a", original_prompt="y"), ctx)
    db.save_session(ResumedSession(conversation_id="b", original_prompt="z"), ctx)
    assert len(db.list_sessions()) == 3
    assert {s.original_prompt for s in db.list_sessions("a")} == {"x", "y"}


def test_update_session_status(db: Database):
    session = ResumedSession(original_prompt="x")
    db.save_session(session, ResumptionContext(original_prompt="x"))
    assert db.update_session_status(session.id, SessionStatus.COMPLETED) is True
    loaded, _ = db.get_session(session.id)
    assert loaded.status == SessionStatus.COMPLETED
    assert loaded.completed_at is not None
    assert db.update_session_status("nope", SessionStatus.ACTIVE) is False


def test_delete_session(db: Database):
    session = ResumedSession(original_prompt="x")
    db.save_session(session, ResumptionContext(original_prompt="x"))
    assert db.delete_session(session.id) is True
    assert db.get_session(session.id) is None
