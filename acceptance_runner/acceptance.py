"""Acceptance test runs against inventory targets."""

import asyncio
import json
import logging
import os
from functools import partial

from rich.console import Console

from acceptance_runner.config import RunnerConfig
from acceptance_runner.executor import ShellExecutor
from acceptance_runner.loader import load_inventory
from acceptance_runner.models.result import RunSummary
from acceptance_runner.progress import select_reporter
from acceptance_runner.runner import ParallelRunner, build_test_command

log = logging.getLogger(__name__)

SEPARATOR = "================"


def print_report(console: Console, summary: RunSummary) -> int:
    """Print every target's output followed by the summary lines.

    Returns:
        1 if any target failed, else 0

    """
    for result in summary.results:
        console.out(SEPARATOR)
        console.out(result.title)
        console.out(_as_lines(result.stdout), end="")
        console.out(_as_lines(result.stderr), end="")

    if summary.successes:
        console.out(
            f"Successful on {len(summary.successes)} nodes: "
            f"{json.dumps(list(summary.successes), ensure_ascii=False)}"
        )
    if summary.failures:
        console.out(
            f"Failed on {len(summary.failures)} nodes: "
            f"{json.dumps(list(summary.failures), ensure_ascii=False)}"
        )

    return 1 if summary.failed else 0


async def run_parallel(
    config: RunnerConfig,
    console: Console,
    quiet: bool | None = None,
) -> int:
    """Run the acceptance suite against every inventory target at once."""
    inventory = await load_inventory(config.inventory_path)
    descriptors = inventory.descriptors()

    reporter = select_reporter(config.ci if quiet is None else quiet, console)
    runner = ParallelRunner(
        executor=ShellExecutor(cwd=config.project_dir, timeout=config.timeout),
        reporter=reporter,
        workers=config.workers,
    )
    summary = await runner.run(
        descriptors,
        partial(
            build_test_command,
            test_command=config.test_command,
            variable=config.target_variable,
        ),
    )
    return print_report(console, summary)


async def run_single(config: RunnerConfig, target: str) -> int:
    """Run the acceptance suite against one target, streaming its output."""
    log.info("Running acceptance tests against %s", target)
    process = await asyncio.create_subprocess_shell(
        config.test_command,
        cwd=config.project_dir,
        env={**os.environ, config.target_variable: target},
    )
    return await process.wait()


def _as_lines(text: str) -> str:
    if text and not text.endswith("\n"):
        return text + "\n"
    return text
