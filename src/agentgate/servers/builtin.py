"""Predefined tool-server configurations."""

from .brave_search import BRAVE_SEARCH_SERVER
from .filesystem import FILESYSTEM_SERVER
from .github import GITHUB_SERVER
from .memory import MEMORY_SERVER
from .ssh import SSH_SERVER

ALL_SERVERS = [
    FILESYSTEM_SERVER,
    BRAVE_SEARCH_SERVER,
    GITHUB_SERVER,
    SSH_SERVER,
    MEMORY_SERVER,
]
