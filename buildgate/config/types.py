from dataclasses import dataclass, field

from buildgate.wait.types import WaitPolicy


@dataclass
class ServiceConfig:
    command: str | None
    port: int
    bind: str = "127.0.0.1"
    address: str = "loopback"
    external: bool = False
    data_dir: bool = False
    log_file: str | None = None
    stop_timeout: float = 10.0
    env: dict[str, str] = field(default_factory=dict)


@dataclass
class ProbeConfig:
    type: str
    command: str | None = None
    url: str | None = None
    send: str | None = None
    expect: str | None = None
    status: int = 200
    timeout: float = 5.0


@dataclass
class BuildConfig:
    command: str | None
    env: dict[str, str] = field(default_factory=dict)
    working_dir: str | None = None
    timeout: float | None = None


@dataclass
class GateConfig:
    service: ServiceConfig
    probe: ProbeConfig
    wait: WaitPolicy = field(default_factory=WaitPolicy)
    build: BuildConfig | None = None


class ConfigError(Exception):
    def __init__(self, *args: object) -> None:
        super().__init__(*args)


class UnsupportedConfigFormatError(ConfigError):
    def __init__(self, *args: object) -> None:
        super().__init__(*args)
