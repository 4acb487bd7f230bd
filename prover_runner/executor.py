"""Bounded execution of the prover binary.

The prover is started in its own process group so that on timeout the whole
tree (the prover and anything it spawned) can be killed before the workspace
is harvested. Standard output and standard error are captured together.
"""

import os
import signal
import subprocess
import sys
import time
from pathlib import Path
from typing import Optional, Sequence, Union

from .logs import StructuredLogger
from .types import ExecutionOutcome
from .workspace import Workspace

IS_WINDOWS = sys.platform.startswith("win")

# Upper bound for collecting output once the process tree is dead
DRAIN_TIMEOUT_S = 2.0


def _popen_group_kwargs() -> dict:
    if IS_WINDOWS:
        return {"creationflags": subprocess.CREATE_NEW_PROCESS_GROUP}
    return {"start_new_session": True}


def terminate_process_tree(proc: subprocess.Popen, grace_seconds: float = 0.5) -> None:
    """Terminate *proc* and all of its descendants.

    POSIX: SIGTERM to the process group, then SIGKILL after *grace_seconds*.
    Windows: taskkill the tree.
    """
    if IS_WINDOWS:
        subprocess.run(
            ["taskkill", "/F", "/T", "/PID", str(proc.pid)],
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            check=False,
        )
        return

    # The prover leads its own session, so its pid is the group id
    try:
        os.killpg(proc.pid, signal.SIGTERM)
    except ProcessLookupError:
        return
    if grace_seconds > 0:
        deadline = time.monotonic() + grace_seconds
        while time.monotonic() < deadline and proc.poll() is None:
            time.sleep(0.02)
    # Descendants may outlive the leader, so always finish with SIGKILL
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except ProcessLookupError:
        pass


class BoundedExecutor:
    """Runs the prover against a workspace under a wall-clock deadline."""

    def __init__(self, kill_grace_seconds: float = 0.5):
        self.kill_grace_seconds = kill_grace_seconds

    def build_command(
        self,
        workspace: Workspace,
        binary_path: Union[str, Path],
        extra_args: Sequence[str] = (),
    ) -> list:
        return [str(binary_path), *extra_args, "--out", str(workspace.path)]

    def run(
        self,
        workspace: Workspace,
        binary_path: Union[str, Path],
        extra_args: Sequence[str] = (),
        timeout: float = 10,
    ) -> ExecutionOutcome:
        """Run the prover; never raises for launch, exit or timeout problems."""
        log = workspace.logger
        argv = self.build_command(workspace, binary_path, extra_args)
        started = time.monotonic()

        try:
            proc = subprocess.Popen(  # noqa: S603
                argv,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                **_popen_group_kwargs(),
            )
        except OSError as e:
            log.error("Failed to start prover", binary=str(binary_path), error=str(e))
            return ExecutionOutcome(start_error=str(e))

        log.info("Proving..", binary=str(binary_path), pid=proc.pid, timeout_s=timeout)

        timed_out = False
        try:
            output, _ = proc.communicate(timeout=timeout)
        except subprocess.TimeoutExpired:
            timed_out = True
            terminate_process_tree(proc, self.kill_grace_seconds)
            output = self._drain(proc, log)

        outcome = ExecutionOutcome(
            exited_normally=not timed_out,
            timed_out=timed_out,
            captured_output=(output or b"").decode("utf-8", errors="replace"),
            return_code=proc.returncode,
            duration_s=round(time.monotonic() - started, 3),
        )

        if outcome.timed_out:
            log.warning("Timeout", duration_s=outcome.duration_s)
        elif outcome.return_code != 0:
            log.error("Prover exited with error", return_code=outcome.return_code)
        else:
            log.info("Done", duration_s=outcome.duration_s)
        return outcome

    def _drain(self, proc: subprocess.Popen, log: StructuredLogger) -> Optional[bytes]:
        """Collect output buffered before the kill."""
        try:
            output, _ = proc.communicate(timeout=DRAIN_TIMEOUT_S)
            return output
        except subprocess.TimeoutExpired as e:
            # Something outside the process group still holds the pipe
            log.warning("Output pipe still open after kill", pid=proc.pid)
            proc.kill()
            if proc.stdout is not None:
                proc.stdout.close()
            proc.wait()
            return e.output
