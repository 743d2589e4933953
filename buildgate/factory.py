from __future__ import annotations

from typing import Sequence

from buildgate.build.types import BuildSpec
from buildgate.config.types import BuildConfig, ConfigError, ProbeConfig, ServiceConfig
from buildgate.probe.probes import CommandProbe, HttpProbe, TcpProbe
from buildgate.probe.types import ReadinessProbe
from buildgate.service.ephemeral import EphemeralService, ExternalService


def make_probe(cfg: ProbeConfig) -> ReadinessProbe:
    match cfg.type:
        case "tcp":
            return TcpProbe(
                send=cfg.send.encode() if cfg.send else None,
                expect=cfg.expect.encode() if cfg.expect else None,
                timeout=cfg.timeout,
            )
        case "http":
            if cfg.url is None:
                raise ConfigError("probe: an http probe needs 'url'")
            return HttpProbe(cfg.url, status=cfg.status, expect=cfg.expect, timeout=cfg.timeout)
        case "command":
            if cfg.command is None:
                raise ConfigError("probe: a command probe needs 'command'")
            return CommandProbe(cfg.command, expect=cfg.expect, timeout=cfg.timeout)
        case _:
            raise ConfigError(f"Unknown probe type: {cfg.type}")


def make_service(cfg: ServiceConfig, *, log_file: str | None = None) -> EphemeralService:
    if cfg.command is None:
        raise ConfigError("service: no command to start (use --external)")
    return EphemeralService(
        cfg.command,
        port=cfg.port,
        bind=cfg.bind,
        address=cfg.address,
        data_dir=cfg.data_dir,
        log_sink=log_file or cfg.log_file,
        stop_timeout=cfg.stop_timeout,
        env=cfg.env,
    )


def make_external(cfg: ServiceConfig) -> ExternalService:
    return ExternalService(host=cfg.bind, port=cfg.port, address=cfg.address)


def make_build_spec(
    cfg: BuildConfig | None,
    *,
    argv: Sequence[str] = (),
    extra_env: dict[str, str] | None = None,
) -> BuildSpec:
    """Command from `argv` wins over the config file; `extra_env` wins over config env."""
    if len(argv) > 0:
        command: str | tuple[str, ...] = tuple(argv)
    elif cfg is not None and cfg.command is not None:
        command = cfg.command
    else:
        raise ConfigError("No build command: set build.command or pass one after '--'")

    env = dict(cfg.env) if cfg is not None else {}
    env.update(extra_env or {})

    return BuildSpec(
        command,
        env=env,
        working_dir=cfg.working_dir if cfg is not None else None,
        timeout=cfg.timeout if cfg is not None else None,
    )
