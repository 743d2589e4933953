import logging
import os
import signal
import subprocess
import time

from buildgate.process import signal_group

from .types import BuildResult, BuildSpec, Outcome, OutcomeStatus

logger = logging.getLogger(__name__)


class BuildRunner:
    """Runs a build command exactly once. Failures are surfaced, never retried."""

    def run(self, spec: BuildSpec) -> Outcome:
        shell = isinstance(spec.command, str)
        command = spec.command if shell else list(spec.command)

        logger.info("running build: %s", spec.display())
        start = time.monotonic()
        try:
            proc = subprocess.Popen(
                command,
                shell=shell,
                cwd=spec.working_dir or None,
                env={**os.environ, **spec.env},
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                errors="replace",
                start_new_session=True,
            )
        except OSError as exc:
            duration = time.monotonic() - start
            return self._outcome(BuildResult(-1, "", f"cannot run build: {exc}", duration))

        try:
            stdout, stderr = proc.communicate(timeout=spec.timeout)
        except subprocess.TimeoutExpired:
            # The whole group goes, including anything the shell spawned.
            signal_group(proc, signal.SIGKILL)
            stdout, stderr = proc.communicate()
            duration = time.monotonic() - start
            result = BuildResult(
                -1, stdout, stderr + f"\nbuild timed out after {spec.timeout}s", duration
            )
            return self._outcome(result)
        except BaseException:
            signal_group(proc, signal.SIGKILL)
            proc.wait()
            raise
        finally:
            # Sweep descendants that detached from the pipes.
            signal_group(proc, signal.SIGKILL)

        duration = time.monotonic() - start
        return self._outcome(BuildResult(proc.returncode, stdout, stderr, duration))

    def _outcome(self, result: BuildResult) -> Outcome:
        if result.returncode == 0:
            status = OutcomeStatus.SUCCESS
        else:
            status = OutcomeStatus.BUILD_FAILED
            logger.info("build failed with exit code %d", result.returncode)

        logs = tuple(result.stdout.splitlines()) + tuple(result.stderr.splitlines())
        return Outcome(status, logs=logs, build=result)
