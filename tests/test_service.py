from __future__ import annotations

import socket
import sys
import time
from pathlib import Path

import pytest

from buildgate.service import (
    DependencyState,
    EphemeralService,
    ExternalService,
    StartError,
    resolve_host,
)


def _py(code: str) -> str:
    exe = str(Path(sys.executable))
    return f'"{exe}" -c "{code}"'


SLEEPER = _py("import time; time.sleep(60)")


# -------------------------
# Address resolution
# -------------------------


@pytest.mark.parametrize(
    "strategy, bind, expected",
    [
        ("loopback", "0.0.0.0", "127.0.0.1"),
        ("bind", "10.0.0.5", "10.0.0.5"),
        ("bind", "0.0.0.0", "127.0.0.1"),
        ("host-gateway", "127.0.0.1", "host.docker.internal"),
        ("mongodb", "127.0.0.1", "mongodb"),
    ],
)
def test_resolve_host(strategy: str, bind: str, expected: str) -> None:
    assert resolve_host(strategy, bind) == expected


@pytest.mark.parametrize(
    "strategy", ["", "   ", "two words", "http://x", "db..internal", "a" * 64 + ".internal"]
)
def test_resolve_host_rejects_malformed(strategy: str) -> None:
    with pytest.raises(ValueError):
        resolve_host(strategy, "127.0.0.1")


# -------------------------
# EphemeralService lifecycle
# -------------------------


def test_start_returns_starting_handle_and_stop_terminates() -> None:
    service = EphemeralService(SLEEPER, port=0, stop_timeout=5)

    handle = service.start()
    try:
        assert handle.state is DependencyState.STARTING
        assert handle.pid is not None
        assert handle.port > 0
        assert handle.host == "127.0.0.1"
        assert handle.is_running()
    finally:
        service.stop(handle)

    assert handle.state is DependencyState.STOPPED
    assert not handle.is_running()


def test_stop_is_idempotent() -> None:
    service = EphemeralService(SLEEPER, port=0, stop_timeout=5)
    handle = service.start()

    service.stop(handle)
    first = (handle.state, handle.exit_code(), handle.data_dir)
    service.stop(handle)
    second = (handle.state, handle.exit_code(), handle.data_dir)

    assert first == second
    assert handle.state is DependencyState.STOPPED


def test_stop_kills_grandchildren(tmp_path: Path) -> None:
    marker = tmp_path / "late"
    command = f"sh -c '(sleep 2; echo late > {marker}) & wait'"
    service = EphemeralService(command, port=0, stop_timeout=5)

    handle = service.start()
    time.sleep(0.3)
    service.stop(handle)
    time.sleep(2.5)

    assert handle.state is DependencyState.STOPPED
    assert not marker.exists()


def test_stop_without_handle_is_noop() -> None:
    EphemeralService(SLEEPER, port=0).stop(None)


def test_missing_binary_raises_start_error() -> None:
    service = EphemeralService("definitely-not-a-real-binary-xyz --port {port}", port=0)

    with pytest.raises(StartError, match="not found"):
        service.start()


def test_empty_command_raises_start_error() -> None:
    with pytest.raises(StartError):
        EphemeralService("   ", port=0).start()


def test_busy_port_raises_start_error() -> None:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        sock.listen()
        port = sock.getsockname()[1]

        with pytest.raises(StartError, match="unavailable"):
            EphemeralService(SLEEPER, port=port).start()


def test_command_placeholders_and_log_sink(tmp_path: Path) -> None:
    log = tmp_path / "service.log"
    code = "import sys; print(sys.argv[1:], flush=True)"
    service = EphemeralService(
        _py(code) + " {port} {data_dir}",
        port=0,
        data_dir=True,
        log_sink=log,
        stop_timeout=5,
    )

    handle = service.start()
    data_dir = handle.data_dir
    assert data_dir is not None and data_dir.is_dir()

    handle._process.wait(timeout=10)
    service.stop(handle)

    output = log.read_text(encoding="utf-8")
    assert str(handle.port) in output
    assert data_dir.name in output
    # Ephemeral data is discarded with the dependency.
    assert not data_dir.exists()


def test_service_env_is_passed(tmp_path: Path) -> None:
    log = tmp_path / "service.log"
    code = "import os; print(os.environ['SVC_FLAG'], flush=True)"
    service = EphemeralService(
        _py(code), port=0, log_sink=str(log), env={"SVC_FLAG": "on"}, stop_timeout=5
    )

    handle = service.start()
    handle._process.wait(timeout=10)
    service.stop(handle)

    assert log.read_text(encoding="utf-8").strip() == "on"


def test_address_strategy_sets_client_host() -> None:
    service = EphemeralService(SLEEPER, port=0, address="host-gateway", stop_timeout=5)

    handle = service.start()
    service.stop(handle)

    assert handle.host == "host.docker.internal"
    assert handle.bind == "127.0.0.1"


def test_mark_ready_and_failed() -> None:
    service = EphemeralService(SLEEPER, port=0, stop_timeout=5)
    handle = service.start()
    try:
        service.mark_ready(handle)
        assert handle.state is DependencyState.READY
        service.mark_failed(handle)
        assert handle.state is DependencyState.FAILED
    finally:
        service.stop(handle)


# -------------------------
# ExternalService
# -------------------------


def test_external_service_never_launches() -> None:
    service = ExternalService(host="db.internal", port=5432)

    handle = service.start()

    assert handle.pid is None
    assert handle.address == "db.internal:5432"
    assert handle.is_running()

    service.stop(handle)
    service.stop(handle)
    assert handle.state is DependencyState.STOPPED


def test_handle_serves_one_build() -> None:
    handle = ExternalService(host="db.internal", port=5432).start()

    assert handle.claim_build()
    assert not handle.claim_build()
