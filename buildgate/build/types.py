from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Mapping

from buildgate.templating import render

if TYPE_CHECKING:
    from buildgate.service.types import DependencyHandle
    from buildgate.wait.types import WaitResult


@dataclass(frozen=True)
class BuildSpec:
    command: str | tuple[str, ...]
    env: Mapping[str, str] = field(default_factory=dict)
    working_dir: str | None = None
    timeout: float | None = None

    def __post_init__(self) -> None:
        if isinstance(self.command, list):
            object.__setattr__(self, "command", tuple(self.command))
        object.__setattr__(self, "env", MappingProxyType(dict(self.env)))

    def render(self, handle: DependencyHandle) -> BuildSpec:
        """Point `{host}`/`{port}`/`{address}` references at a live dependency."""
        values = handle.placeholders()
        if isinstance(self.command, str):
            command: str | tuple[str, ...] = render(self.command, values)
        else:
            command = tuple(render(arg, values) for arg in self.command)
        env = {key: render(value, values) for key, value in self.env.items()}
        return BuildSpec(command, env, self.working_dir, self.timeout)

    def display(self) -> str:
        if isinstance(self.command, str):
            return self.command
        return " ".join(self.command)


@dataclass(frozen=True)
class BuildResult:
    returncode: int
    stdout: str
    stderr: str
    duration_s: float


class OutcomeStatus(Enum):
    SUCCESS = "success"
    TIMEOUT = "timeout"
    BUILD_FAILED = "build_failed"
    DEPENDENCY_FAILED = "dependency_failed"


@dataclass(frozen=True)
class Outcome:
    status: OutcomeStatus
    logs: tuple[str, ...] = ()
    build: BuildResult | None = None
    wait: WaitResult | None = None
    stop_error: str | None = None
    trace: tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return self.status is OutcomeStatus.SUCCESS
