from __future__ import annotations

from enum import Enum
from typing import Protocol

from buildgate.build.types import BuildSpec, Outcome
from buildgate.service.types import DependencyHandle


class OrchestratorState(Enum):
    IDLE = "idle"
    DEPENDENCY_STARTING = "dependency_starting"
    DEPENDENCY_WAITING = "dependency_waiting"
    BUILDING = "building"
    CLEANUP = "cleanup"
    COMPLETE = "complete"


class DependencyService(Protocol):
    def start(self) -> DependencyHandle: ...

    def stop(self, handle: DependencyHandle | None) -> None: ...

    def mark_ready(self, handle: DependencyHandle) -> None: ...

    def mark_failed(self, handle: DependencyHandle) -> None: ...


class Runner(Protocol):
    def run(self, spec: BuildSpec) -> Outcome: ...
