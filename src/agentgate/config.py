"""Configuration singleton for the orchestration engine."""

from __future__ import annotations

from pathlib import Path

_DEFAULT_BASE = Path(__file__).resolve().parent.parent.parent / "data"


class Config:
    _instance: Config | None = None

    def __init__(
        self,
        base_dir: Path | None = None,
        *,
        max_steps: int = 100,
        max_messages: int = 50,
        trim_interval: float = 30.0,
        call_timeout: float = 60.0,
        max_restarts: int = 3,
        restart_backoff: float = 0.5,
        max_turns: int = 50,
    ):
        self.base_dir = base_dir or _DEFAULT_BASE
        self.base_dir.mkdir(parents=True, exist_ok=True)

        self.db_path = self.base_dir / "agentgate.db"
        self.log_dir = self.base_dir / "logs"
        self.log_dir.mkdir(parents=True, exist_ok=True)

        # History bounds
        self.max_steps = max_steps
        self.max_messages = max_messages
        self.trim_interval = trim_interval

        # Tool servers
        self.call_timeout = call_timeout
        self.max_restarts = max_restarts
        self.restart_backoff = restart_backoff

        self.max_turns = max_turns

    @classmethod
    def get(cls, base_dir: Path | None = None) -> Config:
        if cls._instance is None:
            cls._instance = cls(base_dir)
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        cls._instance = None
