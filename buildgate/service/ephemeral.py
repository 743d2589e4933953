from __future__ import annotations

import logging
import os
import shlex
import shutil
import socket
import subprocess
import tempfile
from pathlib import Path
from typing import IO

from buildgate.process import terminate_group
from buildgate.templating import render

from .address import resolve_host
from .types import DependencyHandle, DependencyState, StartError, StopError

logger = logging.getLogger(__name__)


def _free_port(bind: str) -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind((bind, 0))
        return sock.getsockname()[1]


def _ensure_port_free(bind: str, port: int) -> None:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        try:
            sock.bind((bind, port))
        except OSError as exc:
            raise StartError(f"Port {bind}:{port} is unavailable: {exc}") from exc


class EphemeralService:
    """Owns a dependency process for the lifetime of one build."""

    def __init__(
        self,
        command: str,
        *,
        port: int,
        bind: str = "127.0.0.1",
        address: str = "loopback",
        data_dir: bool = False,
        log_sink: str | Path | IO | None = None,
        stop_timeout: float = 10.0,
        env: dict[str, str] | None = None,
    ):
        self.command = command
        self.port = port
        self.bind = bind
        self.address = address
        self.data_dir = data_dir
        self.log_sink = log_sink
        self.stop_timeout = stop_timeout
        self.env = dict(env or {})

    def start(self) -> DependencyHandle:
        try:
            host = resolve_host(self.address, self.bind)
        except ValueError as exc:
            raise StartError(str(exc)) from exc

        try:
            port = self.port if self.port != 0 else _free_port(self.bind)
        except OSError as exc:
            raise StartError(f"Cannot allocate a port on {self.bind}: {exc}") from exc
        _ensure_port_free(self.bind, port)

        handle = DependencyHandle(host=host, port=port, bind=self.bind)
        if self.data_dir:
            handle.data_dir = Path(tempfile.mkdtemp(prefix="buildgate-data-"))
            handle._owns_data_dir = True

        try:
            argv = shlex.split(render(self.command, handle.placeholders()))
        except ValueError as exc:
            self._release(handle)
            raise StartError(f"Malformed service command: {exc}") from exc
        if len(argv) < 1:
            self._release(handle)
            raise StartError("Service command is empty")

        if shutil.which(argv[0]) is None:
            self._release(handle)
            raise StartError(f"Service binary not found: {argv[0]}")

        try:
            sink = self._open_sink(handle)
            handle._process = subprocess.Popen(
                argv,
                stdin=subprocess.DEVNULL,
                stdout=sink,
                stderr=subprocess.STDOUT,
                env={**os.environ, **self.env},
                start_new_session=True,
            )
        except OSError as exc:
            self._release(handle)
            raise StartError(f"Failed to launch {argv[0]}: {exc}") from exc

        handle.pid = handle._process.pid
        logger.info("started %s (pid %s) on %s", argv[0], handle.pid, handle.address)
        return handle

    def stop(self, handle: DependencyHandle | None) -> None:
        if handle is None or handle.state is DependencyState.STOPPED:
            return

        proc = handle._process
        try:
            if proc is not None:
                # Signal the whole group even if the leader already exited.
                terminate_group(proc, self.stop_timeout)
        except (OSError, subprocess.TimeoutExpired) as exc:
            raise StopError(f"Failed to stop pid {handle.pid}: {exc}") from exc
        finally:
            self._release(handle)
            handle.state = DependencyState.STOPPED

        logger.info("stopped dependency on %s", handle.address)

    def mark_ready(self, handle: DependencyHandle) -> None:
        handle.state = DependencyState.READY

    def mark_failed(self, handle: DependencyHandle) -> None:
        handle.state = DependencyState.FAILED

    def _open_sink(self, handle: DependencyHandle) -> IO | int:
        match self.log_sink:
            case None:
                return subprocess.DEVNULL
            case str() | Path():
                handle._sink = open(self.log_sink, "ab")
                handle._owns_sink = True
                return handle._sink
            case _:
                return self.log_sink

    def _release(self, handle: DependencyHandle) -> None:
        if handle._sink is not None and handle._owns_sink:
            handle._sink.close()
            handle._sink = None
        if handle.data_dir is not None and handle._owns_data_dir:
            shutil.rmtree(handle.data_dir, ignore_errors=True)
            handle._owns_data_dir = False


class ExternalService:
    """Borrows a dependency somebody else started; never launches or kills anything."""

    def __init__(self, *, host: str, port: int, address: str = "bind"):
        self.host = host
        self.port = port
        self.address = address

    def start(self) -> DependencyHandle:
        try:
            host = resolve_host(self.address, self.host)
        except ValueError as exc:
            raise StartError(str(exc)) from exc
        return DependencyHandle(host=host, port=self.port, bind=self.host)

    def stop(self, handle: DependencyHandle | None) -> None:
        if handle is not None:
            handle.state = DependencyState.STOPPED

    def mark_ready(self, handle: DependencyHandle) -> None:
        handle.state = DependencyState.READY

    def mark_failed(self, handle: DependencyHandle) -> None:
        handle.state = DependencyState.FAILED
