from __future__ import annotations

import pytest

from buildgate.config.types import BuildConfig, ConfigError, ProbeConfig, ServiceConfig
from buildgate.factory import make_build_spec, make_external, make_probe, make_service
from buildgate.probe.probes import CommandProbe, HttpProbe, TcpProbe


def test_make_probe_per_type() -> None:
    tcp = make_probe(ProbeConfig(type="tcp", send="PING\r\n", expect="+PONG", timeout=2.0))
    http = make_probe(ProbeConfig(type="http", url="http://{address}/", status=204))
    cmd = make_probe(ProbeConfig(type="command", command="mongosh --eval ping", expect="1"))

    assert isinstance(tcp, TcpProbe) and tcp.send == b"PING\r\n" and tcp.expect == b"+PONG"
    assert isinstance(http, HttpProbe) and http.status == 204
    assert isinstance(cmd, CommandProbe) and cmd.expect == "1"


def test_make_service_prefers_cli_log_file() -> None:
    cfg = ServiceConfig(command="mongod", port=27017, log_file="from-config.log")

    assert make_service(cfg).log_sink == "from-config.log"
    assert make_service(cfg, log_file="from-cli.log").log_sink == "from-cli.log"


def test_make_external_uses_bind_as_host() -> None:
    cfg = ServiceConfig(command=None, port=5432, bind="db.internal", address="bind", external=True)

    handle = make_external(cfg).start()

    assert handle.address == "db.internal:5432"


def test_build_spec_argv_overrides_config_command() -> None:
    cfg = BuildConfig(command="pnpm run build", env={"A": "1", "B": "2"}, working_dir="app")

    spec = make_build_spec(cfg, argv=["make", "all"], extra_env={"B": "override"})

    assert spec.command == ("make", "all")
    assert dict(spec.env) == {"A": "1", "B": "override"}
    assert spec.working_dir == "app"


def test_build_spec_from_config_only() -> None:
    spec = make_build_spec(BuildConfig(command="pnpm run build", timeout=60.0))

    assert spec.command == "pnpm run build"
    assert spec.timeout == 60.0


def test_build_spec_without_any_command_raises() -> None:
    with pytest.raises(ConfigError):
        make_build_spec(None)

    with pytest.raises(ConfigError):
        make_build_spec(BuildConfig(command=None))


@pytest.mark.parametrize("kind", ["http", "command"])
def test_readiness_check_without_target_raises_config_error(kind: str) -> None:
    with pytest.raises(ConfigError):
        make_probe(ProbeConfig(type=kind))


def test_make_service_without_command_raises_config_error() -> None:
    with pytest.raises(ConfigError, match="--external"):
        make_service(ServiceConfig(command=None, port=1))
