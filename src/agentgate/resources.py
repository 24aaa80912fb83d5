"""Resource guards released when their agent is removed."""

from __future__ import annotations

import abc
import logging
import threading
from typing import Callable

logger = logging.getLogger(__name__)


class ResourceGuard(abc.ABC):
    """An external resource owned by one agent, released exactly once."""

    def __init__(self) -> None:
        self._released = False
        self._lock = threading.Lock()

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        with self._lock:
            if self._released:
                return
            self._released = True
        self._release()

    @abc.abstractmethod
    def _release(self) -> None: ...


class CleanupGuard(ResourceGuard):
    """Wraps a plain cleanup callable."""

    def __init__(self, cleanup: Callable[[], None], name: str = "cleanup"):
        super().__init__()
        self.cleanup = cleanup
        self.name = name

    def _release(self) -> None:
        self.cleanup()

    def __repr__(self) -> str:
        return f"CleanupGuard({self.name!r}, released={self.released})"
