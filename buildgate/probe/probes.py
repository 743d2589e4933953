from __future__ import annotations

import logging
import shlex
import socket
import subprocess
import time

import httpx

from buildgate.service.types import DependencyHandle
from buildgate.templating import render

from .types import ProbeError, ProbeResult

logger = logging.getLogger(__name__)


def _result(start: float, error: ProbeError | None = None) -> ProbeResult:
    latency = time.monotonic() - start
    if error is not None:
        logger.debug("probe failed after %.3fs: %s", latency, error)
    return ProbeResult(error is None, latency, error)


class TcpProbe:
    """Connects, optionally sends a request, and expects a reply fragment.

    Without `send`/`expect` this only proves the port accepts connections,
    so configure a real request/response pair where the protocol has one.
    """

    def __init__(
        self,
        *,
        send: bytes | None = None,
        expect: bytes | None = None,
        timeout: float = 5.0,
    ):
        self.send = send
        self.expect = expect
        self.timeout = timeout

    def check(self, handle: DependencyHandle) -> ProbeResult:
        start = time.monotonic()
        if not (0 < handle.port < 65536) or len(handle.host) < 1:
            return _result(
                start, ProbeError(f"Malformed address: {handle.address}", retryable=False)
            )

        try:
            with socket.create_connection(
                (handle.host, handle.port), timeout=self.timeout
            ) as sock:
                if self.send:
                    sock.sendall(self.send)
                if self.expect:
                    reply = self._read_until(sock, self.expect)
                    if self.expect not in reply:
                        return _result(
                            start,
                            ProbeError(f"Unexpected reply from {handle.address}: {reply!r}"),
                        )
        except OSError as exc:
            return _result(start, ProbeError(f"{handle.address}: {exc}"))
        except UnicodeError as exc:
            # IDNA rejects empty or oversized labels.
            return _result(
                start, ProbeError(f"Malformed host {handle.host!r}: {exc}", retryable=False)
            )

        return _result(start)

    def _read_until(self, sock: socket.socket, expect: bytes) -> bytes:
        buf = b""
        while expect not in buf and len(buf) < 65536:
            chunk = sock.recv(4096)
            if not chunk:
                break
            buf += chunk
        return buf


class HttpProbe:
    def __init__(
        self,
        url: str,
        *,
        status: int = 200,
        expect: str | None = None,
        timeout: float = 5.0,
        client: httpx.Client | None = None,
    ):
        self.url = url
        self.status = status
        self.expect = expect
        self.timeout = timeout
        self.client = client

    def check(self, handle: DependencyHandle) -> ProbeResult:
        start = time.monotonic()
        url = render(self.url, handle.placeholders())

        try:
            if self.client is not None:
                response = self.client.get(url, timeout=self.timeout)
            else:
                # Dial the dependency directly, never through an environment proxy.
                response = httpx.get(url, timeout=self.timeout, trust_env=False)
        except (httpx.InvalidURL, httpx.UnsupportedProtocol) as exc:
            return _result(start, ProbeError(f"Malformed URL {url}: {exc}", retryable=False))
        except httpx.HTTPError as exc:
            return _result(start, ProbeError(f"{url}: {exc}"))

        if response.status_code != self.status:
            return _result(
                start,
                ProbeError(f"{url}: status {response.status_code}, expected {self.status}"),
            )

        if self.expect is not None and self.expect not in response.text:
            return _result(start, ProbeError(f"{url}: body does not contain {self.expect!r}"))

        return _result(start)


class CommandProbe:
    """Runs a client command against the dependency, e.g. a database shell ping."""

    def __init__(self, command: str, *, expect: str | None = None, timeout: float = 10.0):
        self.command = command
        self.expect = expect
        self.timeout = timeout

    def check(self, handle: DependencyHandle) -> ProbeResult:
        start = time.monotonic()
        try:
            argv = shlex.split(render(self.command, handle.placeholders()))
        except ValueError as exc:
            return _result(start, ProbeError(f"Malformed probe command: {exc}", retryable=False))
        if len(argv) < 1:
            return _result(start, ProbeError("Probe command is empty", retryable=False))

        try:
            proc = subprocess.run(
                argv,
                capture_output=True,
                text=True,
                errors="replace",
                timeout=self.timeout,
                stdin=subprocess.DEVNULL,
            )
        except FileNotFoundError:
            return _result(
                start, ProbeError(f"Probe binary not found: {argv[0]}", retryable=False)
            )
        except subprocess.TimeoutExpired:
            return _result(start, ProbeError(f"Probe timed out after {self.timeout}s"))
        except OSError as exc:
            return _result(start, ProbeError(f"Probe failed to run: {exc}", retryable=False))

        if proc.returncode != 0:
            detail = proc.stderr.strip() or proc.stdout.strip()
            return _result(
                start, ProbeError(f"Probe exited with {proc.returncode}: {detail}")
            )

        if self.expect is not None and self.expect not in proc.stdout:
            return _result(
                start,
                ProbeError(f"Probe output {proc.stdout.strip()!r} lacks {self.expect!r}"),
            )

        return _result(start)
