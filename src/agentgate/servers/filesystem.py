"""Filesystem tool server: file access inside a configured directory."""

from __future__ import annotations

from pathlib import Path

from ..models import RiskLevel, ToolInfo, ToolServerConfig

FILESYSTEM_PACKAGE = "@modelcontextprotocol/server-filesystem"

DEFAULT_DIRECTORY = str(Path.home() / "Documents" / "agentgate")

FILESYSTEM_TOOLS: dict[str, ToolInfo] = {
    # read-only
    "read_file": ToolInfo(category="read", risk=RiskLevel.SAFE),
    "read_multiple_files": ToolInfo(category="read", risk=RiskLevel.SAFE),
    "get_file_info": ToolInfo(category="read", risk=RiskLevel.SAFE),
    "list_directory": ToolInfo(category="search", risk=RiskLevel.SAFE),
    "list_allowed_directories": ToolInfo(category="search", risk=RiskLevel.SAFE),
    "search_files": ToolInfo(category="search", risk=RiskLevel.SAFE),
    "directory_tree": ToolInfo(category="management", risk=RiskLevel.SAFE),
    # writes inside the allowed directory
    "write_file": ToolInfo(category="write", risk=RiskLevel.MODERATE),
    "edit_file": ToolInfo(category="write", risk=RiskLevel.MODERATE),
    "create_directory": ToolInfo(category="write", risk=RiskLevel.MODERATE),
    "move_file": ToolInfo(category="management", risk=RiskLevel.DANGEROUS),
}

FILESYSTEM_SERVER = ToolServerConfig(
    name="filesystem",
    command="npx",
    args=["-y", FILESYSTEM_PACKAGE, DEFAULT_DIRECTORY],
    enabled=False,
    tools=FILESYSTEM_TOOLS,
    category_descriptions={
        "read": "File Reading",
        "write": "File Writing",
        "search": "File Search & Discovery",
        "management": "File Management",
    },
)


def filesystem_args(directory: str) -> list[str]:
    """Launch arguments that restrict the server to ``directory``."""
    return ["-y", FILESYSTEM_PACKAGE, directory]
