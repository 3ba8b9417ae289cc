"""Parallel runner for executing the acceptance suite against many targets."""

import asyncio
import logging
import os
import shlex
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from acceptance_runner.executor import LAUNCH_FAILURE_EXIT_CODE, TaskExecutor
from acceptance_runner.models.result import (
    ExecutionOutcome,
    ExecutionResult,
    RunSummary,
    TargetDescriptor,
)
from acceptance_runner.progress import ProgressReporter

log = logging.getLogger(__name__)


def build_test_command(target: str, *, test_command: str, variable: str) -> str:
    """Export the variable selecting the target, then run the test command.

    Every command of a compound test command sees the exported variable.
    """
    return f"export {variable}={shlex.quote(target)}; {test_command}"


@dataclass(kw_only=True)
class ResultCollector:
    """Collects per-target results as they complete.

    Only the event loop thread appends, so entries are never lost or
    duplicated. Successes and failures keep completion order.
    """

    size: int
    successes: list[str] = field(default_factory=list)
    failures: list[str] = field(default_factory=list)
    _results: dict[int, ExecutionResult] = field(default_factory=dict, repr=False)

    def add(self, index: int, result: ExecutionResult) -> None:
        if index in self._results:
            raise ValueError(f"Result for target #{index} already collected")
        self._results[index] = result
        if result.succeeded:
            self.successes.append(result.title)
        else:
            self.failures.append(result.title)

    def summary(self) -> RunSummary:
        if len(self._results) != self.size:
            raise RuntimeError(
                f"Collected {len(self._results)} of {self.size} target results"
            )
        return RunSummary(
            results=[self._results[i] for i in range(self.size)],
            successes=list(self.successes),
            failures=list(self.failures),
        )


@dataclass(frozen=True, kw_only=True)
class ParallelRunner:
    """Runs one test command per target concurrently and partitions results."""

    executor: TaskExecutor
    reporter: ProgressReporter
    workers: int | None = None

    async def run(
        self,
        descriptors: Sequence[TargetDescriptor],
        command_for: Callable[[str], str],
    ) -> RunSummary:
        """Run the test command against every target and wait for all of them.

        Args:
            descriptors: Targets in launch order; repeated targets run twice
            command_for: Builds the shell command for a target name

        Returns:
            Summary with every target in exactly one of successes/failures

        """
        if not descriptors:
            log.info("Running against 0 targets.")
            return RunSummary(results=[], successes=[], failures=[])

        workers = self.workers or os.cpu_count() or 1
        log.info(
            "Running against %d targets with up to %d workers",
            len(descriptors),
            workers,
        )

        semaphore = asyncio.Semaphore(workers)
        collector = ResultCollector(size=len(descriptors))

        self.reporter.start(descriptors)
        try:
            await asyncio.gather(
                *(
                    self._run_target(
                        index, descriptor, command_for(descriptor.target),
                        semaphore, collector,
                    )
                    for index, descriptor in enumerate(descriptors)
                )
            )
        finally:
            self.reporter.stop()

        summary = collector.summary()
        log.info(
            "Run completed: %d succeeded, %d failed",
            len(summary.successes),
            len(summary.failures),
        )
        return summary

    async def _run_target(
        self,
        index: int,
        descriptor: TargetDescriptor,
        command: str,
        semaphore: asyncio.Semaphore,
        collector: ResultCollector,
    ) -> None:
        async with semaphore:
            log.debug("Starting %s: %s", descriptor.title, command)
            outcome = await self._execute(command)

        result = ExecutionResult(
            title=descriptor.title,
            stdout=outcome.stdout,
            stderr=outcome.stderr,
            exit_code=outcome.exit_code,
        )
        log.debug("Finished %s with exit code %d", descriptor.title, result.exit_code)
        collector.add(index, result)
        self.reporter.target_finished(index, result)

    async def _execute(self, command: str) -> ExecutionOutcome:
        """Execute a command, turning unexpected executor errors into failures."""
        try:
            return await self.executor.execute(command)
        except Exception as e:
            log.error("Command execution failed: %s", e, exc_info=e)
            return ExecutionOutcome(
                stdout="",
                stderr=f"{type(e).__name__}: {e}",
                exit_code=LAUNCH_FAILURE_EXIT_CODE,
            )
