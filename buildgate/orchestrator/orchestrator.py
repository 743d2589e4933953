from __future__ import annotations

import logging

from buildgate.build.runner import BuildRunner
from buildgate.build.types import BuildResult, BuildSpec, Outcome, OutcomeStatus
from buildgate.probe.types import ReadinessProbe
from buildgate.service.types import DependencyHandle, DependencyState, StartError, StopError
from buildgate.wait.loop import WaitLoop
from buildgate.wait.types import WaitPolicy, WaitResult, WaitStatus

from .types import DependencyService, OrchestratorState, Runner

logger = logging.getLogger(__name__)


class Orchestrator:
    """Start dependency, wait for readiness, build once, stop dependency.

    Passing a handle to `run` borrows it: the start step is skipped and the
    handle is left running afterwards. Without one the orchestrator owns the
    dependency and always stops it, whatever happened in between.
    """

    def __init__(
        self,
        service: DependencyService,
        probe: ReadinessProbe,
        policy: WaitPolicy,
        *,
        runner: Runner | None = None,
        wait_loop: WaitLoop | None = None,
    ):
        self.service = service
        self.policy = policy
        self.runner = runner or BuildRunner()
        self.wait_loop = wait_loop or WaitLoop(probe)
        self.state = OrchestratorState.IDLE

        self._handle: DependencyHandle | None = None
        self._logs: list[str] = []
        self._trace: list[str] = []

    def run(self, spec: BuildSpec, handle: DependencyHandle | None = None) -> Outcome:
        self._handle = handle
        self._logs = []
        self._trace = []
        self.state = OrchestratorState.IDLE
        self._trace.append(self.state.value)

        owned = handle is None
        status = OutcomeStatus.DEPENDENCY_FAILED
        wait_result: WaitResult | None = None
        build: BuildResult | None = None

        try:
            status, wait_result, build = self._drive(spec, owned)
        finally:
            self._enter(OrchestratorState.CLEANUP)
            stop_error = self._cleanup(owned)

        self._enter(OrchestratorState.COMPLETE)
        return Outcome(
            status,
            logs=tuple(self._logs),
            build=build,
            wait=wait_result,
            stop_error=stop_error,
            trace=tuple(self._trace),
        )

    def _drive(
        self, spec: BuildSpec, owned: bool
    ) -> tuple[OutcomeStatus, WaitResult | None, BuildResult | None]:
        if owned:
            self._enter(OrchestratorState.DEPENDENCY_STARTING)
            try:
                self._handle = self.service.start()
            except StartError as exc:
                self._log(f"dependency failed to start: {exc}")
                return OutcomeStatus.DEPENDENCY_FAILED, None, None
            self._log(f"dependency starting on {self._handle.address}")

        handle = self._handle
        assert handle is not None
        wait_result = None

        if handle.state is not DependencyState.READY:
            self._enter(OrchestratorState.DEPENDENCY_WAITING)
            wait_result = self.wait_loop.wait(handle, self.policy)
            match wait_result.status:
                case WaitStatus.READY:
                    self._mark(handle, owned, ready=True)
                    self._log(
                        f"dependency ready after {wait_result.attempts} attempt(s), "
                        f"{wait_result.elapsed_s:.3f}s"
                    )
                case WaitStatus.TIMED_OUT:
                    self._mark(handle, owned, ready=False)
                    self._log(f"dependency not ready: {wait_result.reason}")
                    return OutcomeStatus.TIMEOUT, wait_result, None
                case WaitStatus.FAILED:
                    self._mark(handle, owned, ready=False)
                    self._log(f"dependency failed: {wait_result.reason}")
                    return OutcomeStatus.DEPENDENCY_FAILED, wait_result, None

        if handle.state is not DependencyState.READY:
            self._log(f"refusing to build against a {handle.state.value} dependency")
            return OutcomeStatus.DEPENDENCY_FAILED, wait_result, None

        if not handle.claim_build():
            self._log(f"dependency on {handle.address} already served a build")
            return OutcomeStatus.DEPENDENCY_FAILED, wait_result, None

        self._enter(OrchestratorState.BUILDING)
        outcome = self.runner.run(spec.render(handle))
        self._logs.extend(outcome.logs)
        self._log(f"build finished: {outcome.status.value}")
        return outcome.status, wait_result, outcome.build

    def _cleanup(self, owned: bool) -> str | None:
        if not owned:
            return None
        try:
            self.service.stop(self._handle)
        except StopError as exc:
            logger.warning("cleanup failed: %s", exc)
            self._logs.append(f"cleanup failed: {exc}")
            return str(exc)
        return None

    def _mark(self, handle: DependencyHandle, owned: bool, *, ready: bool) -> None:
        if not owned:
            handle.state = DependencyState.READY if ready else DependencyState.FAILED
        elif ready:
            self.service.mark_ready(handle)
        else:
            self.service.mark_failed(handle)

    def _enter(self, state: OrchestratorState) -> None:
        logger.debug("%s -> %s", self.state.value, state.value)
        self.state = state
        self._trace.append(state.value)

    def _log(self, line: str) -> None:
        logger.info(line)
        self._logs.append(line)
