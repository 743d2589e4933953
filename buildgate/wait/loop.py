from __future__ import annotations

import logging
import time
from typing import Callable

from buildgate.probe.types import ProbeResult, ReadinessProbe
from buildgate.service.types import DependencyHandle

from .types import WaitPolicy, WaitResult, WaitStatus

logger = logging.getLogger(__name__)


class WaitLoop:
    def __init__(
        self,
        probe: ReadinessProbe,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.probe = probe
        self.clock = clock
        self.sleep = sleep

    def wait(self, handle: DependencyHandle, policy: WaitPolicy) -> WaitResult:
        start = self.clock()
        deadline = start + policy.timeout
        results: list[ProbeResult] = []
        counted = 0

        def finish(status: WaitStatus, reason: str = "") -> WaitResult:
            return WaitResult(status, len(results), self.clock() - start, tuple(results), reason)

        for delay in policy.delays():
            result = self.probe.check(handle)
            results.append(result)

            if result.success:
                logger.info("%s ready after %d attempt(s)", handle.address, len(results))
                return finish(WaitStatus.READY)

            if result.fatal:
                return finish(WaitStatus.FAILED, str(result.error))

            if not handle.is_running():
                return finish(
                    WaitStatus.FAILED,
                    f"dependency process exited with code {handle.exit_code()}",
                )

            now = self.clock()
            if now - start >= policy.start_period:
                counted += 1
            if policy.max_attempts is not None and counted >= policy.max_attempts:
                return finish(
                    WaitStatus.TIMED_OUT, f"gave up after {policy.max_attempts} attempts"
                )

            remaining = deadline - now
            if remaining <= 0:
                return finish(WaitStatus.TIMED_OUT, f"not ready within {policy.timeout}s")

            logger.info(
                "%s not ready (attempt %d): %s", handle.address, len(results), result.error
            )
            self.sleep(min(delay, remaining))

            if self.clock() >= deadline:
                return finish(WaitStatus.TIMED_OUT, f"not ready within {policy.timeout}s")

        raise AssertionError("Unreachable")
