"""Invocation of the Bolt task runner and other local tooling."""

import asyncio
import json
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from acceptance_runner.models.provision import TaskResult

log = logging.getLogger(__name__)


class TaskRunnerError(RuntimeError):
    """Raised when the task runner cannot be started or its output is unusable."""


@dataclass(frozen=True, kw_only=True)
class BoltTaskRunner:
    """Runs Bolt tasks, commands and uploads, returning per-target results.

    A non-zero Bolt exit status is not an error by itself: Bolt exits non-zero
    whenever any target fails, and those failures are reported per target.
    """

    executable: str = "bolt"
    modulepath: Path | None = None
    cwd: Path | None = None

    async def run_task(
        self,
        task: str,
        targets: str | Sequence[str],
        params: Mapping[str, Any] | None = None,
        *,
        inventory: Path | None = None,
    ) -> Sequence[TaskResult]:
        """Run a task such as ``provision::docker`` against targets."""
        args = ["task", "run", task, "--targets", _join_targets(targets)]
        if params:
            args += ["--params", json.dumps(dict(params))]
        if self.modulepath is not None:
            args += ["--modulepath", str(self.modulepath)]
        return await self._run(args, inventory)

    async def run_command(
        self,
        command: str,
        targets: str | Sequence[str],
        *,
        inventory: Path | None = None,
    ) -> Sequence[TaskResult]:
        """Run a shell command on targets."""
        args = ["command", "run", command, "--targets", _join_targets(targets)]
        return await self._run(args, inventory)

    async def upload_file(
        self,
        source: Path,
        destination: str,
        targets: str | Sequence[str],
        *,
        inventory: Path | None = None,
    ) -> Sequence[TaskResult]:
        """Copy a local file to ``destination`` on targets."""
        args = [
            "file", "upload", str(source), destination,
            "--targets", _join_targets(targets),
        ]
        return await self._run(args, inventory)

    async def _run(
        self, args: Sequence[str], inventory: Path | None
    ) -> Sequence[TaskResult]:
        command = [self.executable, *args, "--format", "json"]
        if inventory is not None:
            command += ["--inventoryfile", str(inventory)]

        log.debug("Running %s", " ".join(command))
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                cwd=self.cwd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise TaskRunnerError(f"Task runner '{self.executable}' not found") from e

        stdout, stderr = await process.communicate()
        return parse_results(
            stdout.decode(errors="replace"),
            stderr.decode(errors="replace"),
            process.returncode,
        )


def parse_results(stdout: str, stderr: str, returncode: int | None) -> Sequence[TaskResult]:
    """Parse Bolt's JSON output into task results."""
    try:
        data = json.loads(stdout)
    except json.JSONDecodeError as e:
        raise TaskRunnerError(
            f"Task runner exited with {returncode} without JSON output\n"
            f"stdout:{stdout}\nstderr:{stderr}"
        ) from e

    if isinstance(data, Mapping) and "_error" in data:
        error = data["_error"]
        message = error.get("msg", error) if isinstance(error, Mapping) else error
        raise TaskRunnerError(f"Task runner failed: {message}")

    items = data.get("items", []) if isinstance(data, Mapping) else data
    try:
        return [TaskResult.model_validate(item) for item in items]
    except (TypeError, ValidationError) as e:
        raise TaskRunnerError(f"Unexpected task runner output: {e}") from e


async def run_local_command(command: str, cwd: Path | None = None) -> str:
    """Run a local shell command and return its stdout.

    Raises:
        RuntimeError: If the command exits non-zero

    """
    log.info("Running %s", command)
    process = await asyncio.create_subprocess_shell(
        command,
        cwd=cwd,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    stdout, stderr = await process.communicate()
    out = stdout.decode(errors="replace")

    if process.returncode != 0:
        raise RuntimeError(
            f"Attempted to run\ncommand:'{command}'\n"
            f"stdout:{out}\nstderr:{stderr.decode(errors='replace')}"
        )
    return out


def _join_targets(targets: str | Sequence[str]) -> str:
    if isinstance(targets, str):
        return targets
    return ",".join(targets)
