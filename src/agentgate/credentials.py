"""Credential store boundary for provider keys and connection secrets.

Encryption at rest belongs to the host application. The engine only needs
the four async operations below, and both implementations here are meant
for hosts without a secure store of their own (tests, headless servers).
"""

from __future__ import annotations

import abc
import logging
import os

from .errors import StorageError

logger = logging.getLogger(__name__)


class CredentialStore(abc.ABC):
    @abc.abstractmethod
    async def get_secret(self, name: str) -> str | None:
        """Return the stored value, or None when not configured."""

    @abc.abstractmethod
    async def set_secret(self, name: str, value: str) -> None: ...

    @abc.abstractmethod
    async def delete_secret(self, name: str) -> None: ...

    async def has_secret(self, name: str) -> bool:
        value = await self.get_secret(name)
        return value is not None and len(value) > 0


class MemoryCredentialStore(CredentialStore):
    """Process-local store; secrets vanish on exit."""

    def __init__(self, initial: dict[str, str] | None = None):
        self._secrets: dict[str, str] = dict(initial or {})

    async def get_secret(self, name: str) -> str | None:
        return self._secrets.get(name)

    async def set_secret(self, name: str, value: str) -> None:
        self._secrets[name] = value
        logger.info("Secret %s saved", name)

    async def delete_secret(self, name: str) -> None:
        self._secrets.pop(name, None)
        logger.info("Secret %s deleted", name)


class EnvCredentialStore(CredentialStore):
    """Secrets exported as environment variables.

    ``github.token`` is read from ``AGENTGATE_SECRET_GITHUB_TOKEN``. A
    writable store keeps values set at runtime in memory, ahead of the
    environment, for the life of the process. A read-only store raises
    StorageError on writes.
    """

    def __init__(self, prefix: str = "AGENTGATE_SECRET_", writable: bool = False):
        self.prefix = prefix
        self.writable = writable
        # None marks a secret deleted at runtime.
        self._overrides: dict[str, str | None] = {}

    def env_name(self, name: str) -> str:
        normalized = "".join(c if c.isalnum() else "_" for c in name)
        return f"{self.prefix}{normalized.upper()}"

    async def get_secret(self, name: str) -> str | None:
        if name in self._overrides:
            return self._overrides[name]
        return os.environ.get(self.env_name(name))

    async def set_secret(self, name: str, value: str) -> None:
        self._check_writable()
        self._overrides[name] = value
        logger.info("Secret %s saved for this process", name)

    async def delete_secret(self, name: str) -> None:
        self._check_writable()
        self._overrides[name] = None
        logger.info("Secret %s deleted for this process", name)

    def _check_writable(self) -> None:
        if not self.writable:
            raise StorageError("Secure storage is not available on this system")
