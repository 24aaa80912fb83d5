"""SQLite database with WAL mode for tool-server config and session snapshots."""

from __future__ import annotations

import sqlite3
from datetime import datetime
from pathlib import Path

from .models import (
    ResumedSession,
    ResumptionContext,
    SessionStatus,
    ToolServerConfig,
    utcnow,
)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS tool_servers (
    name TEXT PRIMARY KEY,
    config_json TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS sessions (
    id TEXT PRIMARY KEY,
    conversation_id TEXT NOT NULL DEFAULT '',
    original_prompt TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'paused',
    context_json TEXT NOT NULL,
    token_estimate INTEGER NOT NULL DEFAULT 0,
    entry_count INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    completed_at TEXT
);
"""


class Database:
    def __init__(self, db_path: Path):
        self.db_path = db_path
        self._conn = sqlite3.connect(str(db_path), check_same_thread=False)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA busy_timeout=5000")
        self._conn.row_factory = sqlite3.Row
        self._conn.executescript(_SCHEMA)
        self._conn.commit()

    def close(self) -> None:
        self._conn.close()

    # --- Tool servers ---

    def save_tool_server(self, config: ToolServerConfig) -> None:
        self._conn.execute(
            "INSERT OR REPLACE INTO tool_servers (name, config_json) VALUES (?, ?)",
            (config.name, config.model_dump_json()),
        )
        self._conn.commit()

    def get_tool_server(self, name: str) -> ToolServerConfig | None:
        row = self._conn.execute(
            "SELECT config_json FROM tool_servers WHERE name = ?", (name,)
        ).fetchone()
        if row is None:
            return None
        return ToolServerConfig.model_validate_json(row["config_json"])

    def list_tool_servers(self) -> list[ToolServerConfig]:
        rows = self._conn.execute(
            "SELECT config_json FROM tool_servers ORDER BY name"
        ).fetchall()
        return [ToolServerConfig.model_validate_json(r["config_json"]) for r in rows]

    def delete_tool_server(self, name: str) -> bool:
        cur = self._conn.execute("DELETE FROM tool_servers WHERE name = ?", (name,))
        self._conn.commit()
        return cur.rowcount > 0

    # --- Sessions ---

    def save_session(self, session: ResumedSession, context: ResumptionContext) -> None:
        self._conn.execute(
            """INSERT OR REPLACE INTO sessions
               (id, conversation_id, original_prompt, status, context_json,
                token_estimate, entry_count, created_at, updated_at, completed_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                session.id,
                session.conversation_id,
                session.original_prompt,
                session.status.value,
                context.model_dump_json(),
                session.token_estimate,
                session.entry_count,
                session.created_at.isoformat(),
                session.updated_at.isoformat(),
                session.completed_at.isoformat() if session.completed_at else None,
            ),
        )
        self._conn.commit()

    def get_session(
        self, session_id: str
    ) -> tuple[ResumedSession, ResumptionContext] | None:
        row = self._conn.execute(
            "SELECT * FROM sessions WHERE id = ?", (session_id,)
        ).fetchone()
        if row is None:
            return None
        return (
            self._row_to_session(row),
            ResumptionContext.model_validate_json(row["context_json"]),
        )

    def list_sessions(self, conversation_id: str | None = None) -> list[ResumedSession]:
        if conversation_id:
            rows = self._conn.execute(
                "SELECT * FROM sessions WHERE conversation_id = ? ORDER BY updated_at DESC",
                (conversation_id,),
            ).fetchall()
        else:
            rows = self._conn.execute(
                "SELECT * FROM sessions ORDER BY updated_at DESC"
            ).fetchall()
        return [self._row_to_session(r) for r in rows]

    def update_session_status(self, session_id: str, status: SessionStatus) -> bool:
        now = utcnow()
        completed_at = now.isoformat() if status == SessionStatus.COMPLETED else None
        cur = self._conn.execute(
            """UPDATE sessions SET status = ?, updated_at = ?,
               completed_at = COALESCE(?, completed_at) WHERE id = ?""",
            (status.value, now.isoformat(), completed_at, session_id),
        )
        self._conn.commit()
        return cur.rowcount > 0

    def delete_session(self, session_id: str) -> bool:
        cur = self._conn.execute("DELETE FROM sessions WHERE id = ?", (session_id,))
        self._conn.commit()
        return cur.rowcount > 0

    def _row_to_session(self, row: sqlite3.Row) -> ResumedSession:
        return ResumedSession(
            id=row["id"],
            conversation_id=row["conversation_id"],
            original_prompt=row["original_prompt"],
            status=SessionStatus(row["status"]),
            token_estimate=row["token_estimate"],
            entry_count=row["entry_count"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
            completed_at=(
                datetime.fromisoformat(row["completed_at"])
                if row["completed_at"]
                else None
            ),
        )
