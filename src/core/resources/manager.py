"""Worker budgeting shared by every counting run in a process."""
from __future__ import annotations

import os
import threading
from dataclasses import dataclass
from typing import Optional

from common.models import ResourceLimits


class ResourceLimitError(RuntimeError):
    """Raised when a reservation would exceed the configured worker budget."""


@dataclass(slots=True)
class ResourceLease:
    manager: "ResourceManager"
    workers: int = 0
    _released: bool = False

    def release(self) -> None:
        if self._released:
            return
        self.manager._release(self.workers)
        self._released = True

    def __enter__(self) -> "ResourceLease":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # pragma: no cover - trivial
        self.release()


class ResourceManager:
    """Tracks how many pool workers are in use against an optional cap."""

    def __init__(self, limits: Optional[ResourceLimits] = None) -> None:
        self.limits = limits or ResourceLimits()
        self._lock = threading.Lock()
        self._workers_in_use = 0

    def plan_workers(self, requested: Optional[int] = None) -> int:
        """Clamp a requested pool size; ``None`` means hardware concurrency."""

        if requested is None:
            requested = os.cpu_count() or 1
        requested = max(1, requested)
        limit = self.limits.max_workers
        if limit is None or limit <= 0:
            return requested
        return max(1, min(requested, limit))

    def reserve(self, *, workers: int = 0) -> ResourceLease:
        workers = max(0, int(workers))
        with self._lock:
            limit = self.limits.max_workers
            if limit is not None and self._workers_in_use + workers > limit:
                raise ResourceLimitError(
                    f"Worker budget exceeded: requested {workers}, "
                    f"available {self.available_workers()}"
                )
            self._workers_in_use += workers
        return ResourceLease(self, workers)

    def available_workers(self) -> Optional[int]:
        if self.limits.max_workers is None:
            return None
        return max(0, self.limits.max_workers - self._workers_in_use)

    def _release(self, workers: int) -> None:
        with self._lock:
            self._workers_in_use = max(0, self._workers_in_use - workers)
