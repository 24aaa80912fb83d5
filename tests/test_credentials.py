"""Tests for the credential stores."""

import pytest

from agentgate.credentials import EnvCredentialStore, MemoryCredentialStore
from agentgate.errors import StorageError


@pytest.mark.asyncio
async def test_memory_store():
    store = MemoryCredentialStore({"brave.api_key": "k1"})
    assert await store.get_secret("brave.api_key") == "k1"
    assert await store.has_secret("github.token") is False

    await store.set_secret("github.token", "ghp_x")
    assert await store.has_secret("github.token") is True

    await store.delete_secret("github.token")
    await store.delete_secret("github.token")
    assert await store.get_secret("github.token") is None


@pytest.mark.asyncio
async def test_empty_value_is_not_configured():
    store = MemoryCredentialStore({"ssh.password": ""})
    assert await store.has_secret("ssh.password") is False


@pytest.mark.asyncio
async def test_env_store(monkeypatch):
    store = EnvCredentialStore()
    assert store.env_name("github.token") == "AGENTGATE_SECRET_GITHUB_TOKEN"
    monkeypatch.setenv("AGENTGATE_SECRET_GITHUB_TOKEN", "from-env")
    assert await store.get_secret("github.token") == "from-env"
    assert await store.get_secret("brave.api_key") is None


@pytest.mark.asyncio
async def test_env_store_is_read_only():
    store = EnvCredentialStore()
    with pytest.raises(StorageError, match="not available"):
        await store.set_secret("github.token", "x")
    with pytest.raises(StorageError):
        await store.delete_secret("github.token")


@pytest.mark.asyncio
async def test_writable_env_store_overrides_environment(monkeypatch):
    monkeypatch.setenv("AGENTGATE_SECRET_GITHUB_TOKEN", "from-env")
    store = EnvCredentialStore(writable=True)
    await store.set_secret("github.token", "from-dashboard")
    assert await store.get_secret("github.token") == "from-dashboard"

    await store.delete_secret("github.token")
    assert await store.get_secret("github.token") is None
    assert await store.has_secret("github.token") is False
