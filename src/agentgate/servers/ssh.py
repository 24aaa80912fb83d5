"""SSH tool server: command execution and file access on a remote host."""

from __future__ import annotations

from ..errors import ValidationError
from ..models import RiskLevel, ToolInfo, ToolServerConfig

SSH_SERVER = ToolServerConfig(
    name="ssh",
    command="npx",
    args=["-y", "ssh-mcp-server"],
    secrets={
        "SSH_HOST": "ssh.host",
        "SSH_PORT": "ssh.port",
        "SSH_USER": "ssh.username",
        "SSH_AUTH_TYPE": "ssh.auth_type",
        "SSH_CREDENTIAL": "ssh.credential",
    },
    enabled=False,
    tools={
        "ssh_execute": ToolInfo(category="execution", risk=RiskLevel.DANGEROUS),
        "ssh_write_file": ToolInfo(category="files", risk=RiskLevel.DANGEROUS),
        "ssh_read_file": ToolInfo(category="files", risk=RiskLevel.SAFE),
        "ssh_list_directory": ToolInfo(category="files", risk=RiskLevel.SAFE),
    },
    category_descriptions={
        "execution": "Remote Command Execution",
        "files": "Remote Files",
    },
)


def ssh_secrets(
    host: str,
    username: str,
    auth_type: str = "key",
    port: int = 22,
    password: str | None = None,
    key_path: str | None = None,
) -> dict[str, str]:
    """Validate connection details and map them to secret names."""
    if not host.strip():
        raise ValidationError("SSH host is required")
    if not username.strip():
        raise ValidationError("SSH username is required")
    if auth_type == "password":
        if not password:
            raise ValidationError("Password is required")
        credential = password
    elif auth_type == "key":
        if not key_path or not key_path.strip():
            raise ValidationError("SSH key path is required")
        credential = key_path.strip()
    else:
        raise ValidationError(f"Unknown SSH auth type: {auth_type!r}")
    return {
        "ssh.host": host.strip(),
        "ssh.port": str(port or 22),
        "ssh.username": username.strip(),
        "ssh.auth_type": auth_type,
        "ssh.credential": credential,
    }
