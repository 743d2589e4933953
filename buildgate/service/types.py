from __future__ import annotations

import subprocess
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import IO


class DependencyState(Enum):
    STARTING = "starting"
    READY = "ready"
    FAILED = "failed"
    STOPPED = "stopped"


@dataclass
class DependencyHandle:
    """Reference to one running (or borrowed) dependency instance.

    `bind` is where the process listens, `host` is what clients dial.
    They differ when the build reaches the dependency through a gateway.
    """

    host: str
    port: int
    bind: str = "127.0.0.1"
    state: DependencyState = DependencyState.STARTING
    pid: int | None = None
    data_dir: Path | None = None
    builds: int = 0
    _process: subprocess.Popen | None = field(default=None, repr=False)
    _sink: IO | None = field(default=None, repr=False)
    _owns_sink: bool = field(default=False, repr=False)
    _owns_data_dir: bool = field(default=False, repr=False)

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    def placeholders(self) -> dict[str, str]:
        return {
            "host": self.host,
            "bind": self.bind,
            "port": str(self.port),
            "address": self.address,
            "data_dir": str(self.data_dir) if self.data_dir else "",
        }

    def is_running(self) -> bool:
        if self._process is None:
            return self.state is not DependencyState.STOPPED
        return self._process.poll() is None

    def exit_code(self) -> int | None:
        if self._process is None:
            return None
        return self._process.poll()

    def claim_build(self) -> bool:
        # At most one build per dependency lifetime.
        if self.builds > 0:
            return False
        self.builds += 1
        return True


class ServiceError(Exception):
    def __init__(self, *args: object) -> None:
        super().__init__(*args)


class StartError(ServiceError):
    def __init__(self, *args: object) -> None:
        super().__init__(*args)


class StopError(ServiceError):
    def __init__(self, *args: object) -> None:
        super().__init__(*args)
