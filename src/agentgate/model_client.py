"""Boundary to the model-inference collaborator."""

from __future__ import annotations

import importlib
import logging
from typing import Callable, Protocol, runtime_checkable

from .errors import ValidationError
from .models import AgentMessage, ModelTurn, ToolSpec

logger = logging.getLogger(__name__)


@runtime_checkable
class ModelClient(Protocol):
    """Any provider that can take one turn for an agent.

    ``on_delta`` receives the assistant text accumulated so far while the
    provider streams; the engine mirrors it into a placeholder message.
    """

    async def submit(
        self,
        agent_id: str,
        messages: list[AgentMessage],
        system_prompt: str,
        tools: list[ToolSpec],
        on_delta: Callable[[str], None] | None = None,
    ) -> ModelTurn: ...


def load_model_client(path: str) -> ModelClient:
    """Load ``module:attr``; a callable attribute is called with no arguments."""
    module_name, _, attr = path.partition(":")
    if not module_name or not attr:
        raise ValidationError(f"Invalid model client path {path!r}. Expected 'module:attr'")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ValidationError(f"Cannot import model client module {module_name!r}: {e}") from e
    target = getattr(module, attr, None)
    if target is None:
        raise ValidationError(f"Module {module_name!r} has no attribute {attr!r}")
    client = target
    if isinstance(target, type) or not isinstance(target, ModelClient):
        client = target() if callable(target) else None
    if client is None or not isinstance(client, ModelClient):
        raise ValidationError(f"{path} does not provide a model client")
    logger.info("Loaded model client %s", path)
    return client
