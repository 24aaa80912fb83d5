"""Tool-server registry: launch descriptors and static risk tables."""

from __future__ import annotations

import logging
import threading

from .db import Database
from .errors import ValidationError
from .models import RiskLevel, ToolServerConfig, ToolSpec
from .servers.builtin import ALL_SERVERS
from .servers.filesystem import FILESYSTEM_SERVER, filesystem_args

logger = logging.getLogger(__name__)

# Unknown tools never classify as safe, whichever server owns them.
DEFAULT_RISK = RiskLevel.MODERATE


class ToolServerRegistry:
    """Catalog of tool servers, seeded from built-ins and overlaid from the DB."""

    def __init__(self, db: Database | None = None, builtins: list[ToolServerConfig] | None = None):
        self.db = db
        self._lock = threading.Lock()
        self._servers: dict[str, ToolServerConfig] = {}
        for config in ALL_SERVERS if builtins is None else builtins:
            self._servers[config.name] = config.model_copy(deep=True)
        if db is not None:
            for config in db.list_tool_servers():
                self._servers[config.name] = config

    # --- Lookup ---

    def get(self, name: str) -> ToolServerConfig | None:
        with self._lock:
            config = self._servers.get(name)
            return config.model_copy(deep=True) if config else None

    def list_servers(self) -> list[ToolServerConfig]:
        with self._lock:
            return [c.model_copy(deep=True) for c in self._servers.values()]

    def enabled_servers(self) -> list[ToolServerConfig]:
        return [c for c in self.list_servers() if c.enabled]

    # --- Risk policy tables ---

    def risk_level(self, server: str | None, tool: str) -> RiskLevel:
        with self._lock:
            config = self._servers.get(server) if server else None
            info = config.tools.get(tool) if config else None
        return info.risk if info else DEFAULT_RISK

    def category(self, server: str, tool: str) -> str | None:
        with self._lock:
            config = self._servers.get(server)
            info = config.tools.get(tool) if config else None
        return info.category if info else None

    def category_description(self, server: str, category: str) -> str:
        with self._lock:
            config = self._servers.get(server)
        if config is None:
            return category
        return config.category_descriptions.get(category, category)

    def server_for_tool(self, tool: str) -> str | None:
        """Name of the enabled server that declares ``tool``, if any."""
        for config in self.enabled_servers():
            if tool in config.tools:
                return config.name
        return None

    def tool_catalog(self) -> list[ToolSpec]:
        return [
            ToolSpec(
                server=config.name,
                name=name,
                category=self.category_description(config.name, info.category),
                risk=info.risk,
            )
            for config in self.enabled_servers()
            for name, info in config.tools.items()
        ]

    # --- Configuration actions ---

    def register(self, config: ToolServerConfig) -> ToolServerConfig:
        with self._lock:
            self._servers[config.name] = config.model_copy(deep=True)
        self._persist(config)
        logger.info("Registered tool server %s", config.name)
        return config

    def set_enabled(self, name: str, enabled: bool) -> ToolServerConfig:
        return self._update(name, enabled=enabled)

    def configure(
        self,
        name: str,
        *,
        command: str | None = None,
        args: list[str] | None = None,
        env: dict[str, str] | None = None,
    ) -> ToolServerConfig:
        updates: dict = {}
        if command is not None:
            updates["command"] = command
        if args is not None:
            updates["args"] = list(args)
        if env is not None:
            updates["env"] = dict(env)
        return self._update(name, **updates)

    def update_allowed_directory(self, directory: str, enable: bool = True) -> ToolServerConfig:
        """Point the filesystem server at ``directory``."""
        if not directory or not directory.strip():
            raise ValidationError("Directory is required")
        updates: dict = {"args": filesystem_args(directory.strip())}
        if enable:
            updates["enabled"] = True
        return self._update(FILESYSTEM_SERVER.name, **updates)

    def _update(self, name: str, **updates) -> ToolServerConfig:
        with self._lock:
            current = self._servers.get(name)
            if current is None:
                raise ValidationError(f"Unknown tool server: {name}")
            updated = current.model_copy(update=updates, deep=True)
            self._servers[name] = updated
        self._persist(updated)
        logger.info("Updated tool server %s: %s", name, sorted(updates))
        return updated.model_copy(deep=True)

    def _persist(self, config: ToolServerConfig) -> None:
        if self.db is not None:
            self.db.save_tool_server(config)
