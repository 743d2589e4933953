from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from buildgate.service.types import DependencyHandle


class ProbeError(Exception):
    """One failed readiness check. Carried inside a ProbeResult, not raised."""

    def __init__(self, message: str, *, retryable: bool = True) -> None:
        super().__init__(message)
        self.retryable = retryable


@dataclass(frozen=True)
class ProbeResult:
    success: bool
    latency: float
    error: ProbeError | None = None

    @property
    def fatal(self) -> bool:
        return self.error is not None and not self.error.retryable


class ReadinessProbe(Protocol):
    def check(self, handle: DependencyHandle) -> ProbeResult: ...
