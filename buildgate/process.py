from __future__ import annotations

import logging
import os
import signal
import subprocess

logger = logging.getLogger(__name__)


def signal_group(proc: subprocess.Popen, sig: signal.Signals) -> bool:
    """Signal every process in `proc`'s session group; False once the group is empty.

    `proc` must have been started with `start_new_session=True`, so its pid is
    also the group id and descendants that outlive it are still reachable.
    """
    try:
        os.killpg(proc.pid, sig)
    except ProcessLookupError:
        return False
    return True


def terminate_group(proc: subprocess.Popen, timeout: float) -> None:
    """SIGTERM the group, SIGKILL it if the leader hangs on, then sweep leftovers."""
    signal_group(proc, signal.SIGTERM)
    try:
        proc.wait(timeout=timeout)
    except subprocess.TimeoutExpired:
        logger.warning("pid %s ignored SIGTERM, killing its group", proc.pid)
        signal_group(proc, signal.SIGKILL)
        proc.wait(timeout=timeout)
    signal_group(proc, signal.SIGKILL)
