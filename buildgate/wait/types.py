from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from buildgate.probe.types import ProbeResult


@dataclass(frozen=True)
class WaitPolicy:
    timeout: float = 60.0
    interval: float = 1.0
    max_attempts: int | None = None
    backoff: float = 1.0
    max_interval: float | None = None
    # Failures inside this window don't count toward max_attempts.
    start_period: float = 0.0

    def __post_init__(self) -> None:
        if self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")
        if self.interval <= 0:
            raise ValueError(f"interval must be positive, got {self.interval}")
        if self.max_attempts is not None and self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")
        if self.backoff < 1.0:
            raise ValueError(f"backoff must be >= 1.0, got {self.backoff}")
        if self.max_interval is not None and self.max_interval < self.interval:
            raise ValueError("max_interval must be >= interval")
        if self.start_period < 0:
            raise ValueError("start_period can't be negative")

    def delays(self):
        delay = self.interval
        while True:
            yield delay
            delay = min(delay * self.backoff, self.max_interval or self.timeout)


class WaitStatus(Enum):
    READY = "ready"
    TIMED_OUT = "timed_out"
    FAILED = "failed"


@dataclass(frozen=True)
class WaitResult:
    status: WaitStatus
    attempts: int
    elapsed_s: float
    results: tuple[ProbeResult, ...]
    reason: str = ""

    @property
    def ready(self) -> bool:
        return self.status is WaitStatus.READY
