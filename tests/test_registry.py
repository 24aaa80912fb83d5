"""Tests for the tool-server registry and risk tables."""

import pytest

from agentgate.db import Database
from agentgate.errors import ValidationError
from agentgate.models import RiskLevel, ToolServerConfig
from agentgate.registry import ToolServerRegistry
from agentgate.servers.ssh import ssh_secrets


def test_builtin_risk_tables():
    reg = ToolServerRegistry()
    assert reg.risk_level("filesystem", "read_file") == RiskLevel.SAFE
    assert reg.risk_level("filesystem", "write_file") == RiskLevel.MODERATE
    assert reg.risk_level("filesystem", "move_file") == RiskLevel.DANGEROUS
    assert reg.risk_level("brave-search", "brave_web_search") == RiskLevel.SAFE
    assert reg.risk_level("ssh", "ssh_execute") == RiskLevel.DANGEROUS
    assert reg.risk_level("github", "merge_pull_request") == RiskLevel.DANGEROUS


@pytest.mark.parametrize("server", ["filesystem", "brave-search", "github", "ssh", "memory", None, "nope"])
def test_unknown_tool_never_safe(server):
    reg = ToolServerRegistry()
    assert reg.risk_level(server, "totally_unknown_tool") == RiskLevel.MODERATE


def test_servers_disabled_by_default():
    reg = ToolServerRegistry()
    assert reg.enabled_servers() == []
    assert reg.tool_catalog() == []
    assert reg.server_for_tool("read_file") is None


def test_enable_exposes_catalog():
    reg = ToolServerRegistry()
    reg.set_enabled("memory", True)
    catalog = reg.tool_catalog()
    assert {t.server for t in catalog} == {"memory"}
    assert reg.server_for_tool("read_graph") == "memory"
    assert reg.category("memory", "delete_entities") == "delete"
    assert reg.category_description("memory", "delete") == "Memory Deletion"
    categories = {t.name: t.category for t in catalog}
    assert categories["delete_entities"] == "Memory Deletion"


def test_update_allowed_directory(tmp_path):
    reg = ToolServerRegistry()
    config = reg.update_allowed_directory(str(tmp_path))
    assert config.enabled is True
    assert config.args[-1] == str(tmp_path)
    with pytest.raises(ValidationError, match="Directory is required"):
        reg.update_allowed_directory("  ")


def test_unknown_server_update():
    reg = ToolServerRegistry()
    with pytest.raises(ValidationError, match="Unknown tool server"):
        reg.set_enabled("nope", True)


def test_returned_configs_are_copies():
    reg = ToolServerRegistry()
    config = reg.get("filesystem")
    config.enabled = True
    assert reg.get("filesystem").enabled is False


def test_changes_persist_across_registries(db: Database, tmp_path):
    reg = ToolServerRegistry(db)
    reg.update_allowed_directory(str(tmp_path))
    reg.register(ToolServerConfig(name="custom", command="node", args=["srv.js"]))

    reloaded = ToolServerRegistry(db)
    assert reloaded.get("filesystem").enabled is True
    assert reloaded.get("filesystem").args[-1] == str(tmp_path)
    assert reloaded.get("custom").command == "node"


def test_configure_command():
    reg = ToolServerRegistry()
    config = reg.configure("memory", command="memory-server", args=["--db", "x"], env={"A": "1"})
    assert config.command == "memory-server"
    assert config.args == ["--db", "x"]
    assert config.env == {"A": "1"}


def test_ssh_secrets_validation():
    secrets = ssh_secrets("host.example", "deploy", auth_type="key", key_path="~/.ssh/id_ed25519")
    assert secrets["ssh.host"] == "host.example"
    assert secrets["ssh.port"] == "22"
    assert secrets["ssh.credential"] == "~/.ssh/id_ed25519"
    with pytest.raises(ValidationError, match="Password is required"):
        ssh_secrets("host", "user", auth_type="password")
    with pytest.raises(ValidationError, match="host is required"):
        ssh_secrets(" ", "user", key_path="k")
