"""Bounding of per-agent step and message logs."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from .models import Agent

if TYPE_CHECKING:
    from .orchestrator import Orchestrator

logger = logging.getLogger(__name__)


def trim_history(agent: Agent, max_steps: int, max_messages: int) -> tuple[int, int]:
    """Trim ``agent`` in place; returns (steps removed, messages removed).

    Steps awaiting approval always survive. The remaining room under
    ``max_steps`` goes to the most recent non-pending steps, so the log never
    exceeds ``max(max_steps, pending count)``. Survivors keep their order.
    """
    removed_steps = removed_messages = 0

    if len(agent.steps) > max_steps:
        pending_ids = set(agent.pending_approvals)
        non_pending = [s for s in agent.steps if s.id not in pending_ids]
        room = max(max_steps - len(pending_ids), 0)
        recent = non_pending[-room:] if room else []
        keep_ids = pending_ids | {s.id for s in recent}
        survivors = sorted(
            (s for s in agent.steps if s.id in keep_ids), key=lambda s: s.timestamp
        )
        removed_steps = len(agent.steps) - len(survivors)
        agent.steps = survivors

    if len(agent.messages) > max_messages:
        removed_messages = len(agent.messages) - max_messages
        agent.messages = agent.messages[-max_messages:] if max_messages > 0 else []

    return removed_steps, removed_messages


class HistoryTrimmer:
    """Periodically trims every live agent on the engine loop."""

    def __init__(
        self,
        orchestrator: Orchestrator,
        interval: float = 30.0,
        max_steps: int = 100,
        max_messages: int = 50,
    ):
        self.orchestrator = orchestrator
        self.interval = interval
        self.max_steps = max_steps
        self.max_messages = max_messages
        self._task: asyncio.Task[None] | None = None

    def run_once(self) -> int:
        """Trim all agents now; returns the number of agents that shrank."""
        trimmed = 0
        for agent_id in self.orchestrator.agent_ids():
            removed = self.orchestrator.trim_history(agent_id, self.max_steps, self.max_messages)
            if removed != (0, 0):
                trimmed += 1
                logger.debug("Trimmed agent %s: %d steps, %d messages", agent_id, *removed)
        return trimmed

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            self.run_once()

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self._run(), name="history-trimmer")

    async def stop(self) -> None:
        if self._task and not self._task.done():
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)
        self._task = None
