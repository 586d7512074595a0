"""Retry operation domain models."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum


class OperationState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"
    STOPPED = "stopped"


@dataclass(frozen=True)
class AttemptTimeout:
    """Watchdog settings for a single attempt."""

    timeout: float
    callback: Callable[[int], object]

    @property
    def seconds(self) -> float:
        return self.timeout / 1000
