"""Execution of shell commands on behalf of the runner."""

import asyncio
import logging
import os
import signal
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from acceptance_runner.models.result import ExecutionOutcome

log = logging.getLogger(__name__)

LAUNCH_FAILURE_EXIT_CODE = 127
TIMEOUT_EXIT_CODE = 124


class TaskExecutor(Protocol):
    """Runs a command and reports its output and exit status.

    Implementations must not raise for a non-zero exit, and must report a
    command that could not be started as a failed outcome.
    """

    async def execute(self, command: str) -> ExecutionOutcome: ...


@dataclass(frozen=True, kw_only=True)
class ShellExecutor:
    """Runs commands through the system shell as asyncio subprocesses."""

    env: Mapping[str, str] = field(default_factory=dict)
    cwd: Path | None = None
    timeout: float | None = None

    async def execute(self, command: str) -> ExecutionOutcome:
        """Run ``command`` to completion and capture its output."""
        try:
            process = await asyncio.create_subprocess_shell(
                command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=self.cwd,
                env={**os.environ, **self.env} if self.env else None,
                start_new_session=True,
            )
        except OSError as e:
            log.error("Failed to launch command %r: %s", command, e)
            return ExecutionOutcome(
                stdout="",
                stderr=f"Failed to launch '{command}': {e}",
                exit_code=LAUNCH_FAILURE_EXIT_CODE,
            )

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(), timeout=self.timeout
            )
        except TimeoutError:
            _kill_process_group(process)
            stdout, stderr = await process.communicate()
            log.warning("Command %r timed out after %ss", command, self.timeout)
            return ExecutionOutcome(
                stdout=stdout.decode(errors="replace"),
                stderr=stderr.decode(errors="replace")
                + f"\nTimed out after {self.timeout} seconds",
                exit_code=TIMEOUT_EXIT_CODE,
            )

        return ExecutionOutcome(
            stdout=stdout.decode(errors="replace"),
            stderr=stderr.decode(errors="replace"),
            exit_code=process.returncode if process.returncode is not None else 1,
        )


def _kill_process_group(process: asyncio.subprocess.Process) -> None:
    """Kill the shell and everything it spawned so the pipes close."""
    try:
        os.killpg(process.pid, signal.SIGKILL)
    except ProcessLookupError:
        pass
