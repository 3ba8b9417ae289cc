"""Live progress reporting for parallel acceptance runs."""

import threading
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field

from rich.console import Console
from rich.markup import escape
from rich.progress import Progress, SpinnerColumn, TaskID, TextColumn
from rich.status import Status

from acceptance_runner.models.result import ExecutionResult, TargetDescriptor

SUCCESS_MARK = "[green]✔[/green]"
FAILURE_MARK = "[red]✘[/red]"
KEEP_ALIVE_INTERVAL = 30.0


class ProgressReporter(ABC):
    """Shows progress while target commands run.

    ``target_finished`` receives the launch index of the target, so repeated
    target names are tracked independently.
    """

    @abstractmethod
    def start(self, descriptors: Sequence[TargetDescriptor]) -> None:
        """Begin reporting for the given targets."""

    @abstractmethod
    def target_finished(self, index: int, result: ExecutionResult) -> None:
        """Record completion of the target launched at ``index``."""

    @abstractmethod
    def stop(self) -> None:
        """Stop all live indicators."""


@dataclass(kw_only=True)
class QuietReporter(ProgressReporter):
    """Single indicator for the whole run, suited to CI logs.

    On a terminal this is a spinner. Elsewhere a ``.`` is written every
    ``interval`` seconds so the log keeps receiving output.
    """

    console: Console
    interval: float = KEEP_ALIVE_INTERVAL
    _status: Status | None = field(default=None, init=False, repr=False)
    _ticker: threading.Thread | None = field(default=None, init=False, repr=False)
    _done: threading.Event = field(
        default_factory=threading.Event, init=False, repr=False
    )
    _dots: int = field(default=0, init=False, repr=False)

    def start(self, descriptors: Sequence[TargetDescriptor]) -> None:
        self.console.print(f"Running against {len(descriptors)} targets.")
        if self.console.is_terminal:
            self._status = self.console.status("", spinner="simpleDots")
            self._status.start()
            return

        self._done.clear()
        self._dots = 0
        self._ticker = threading.Thread(
            target=self._keep_alive, name="quiet-progress", daemon=True
        )
        self._ticker.start()

    def target_finished(self, index: int, result: ExecutionResult) -> None:
        pass

    def stop(self) -> None:
        if self._status is not None:
            self._status.stop()
            self._status = None
        if self._ticker is not None:
            self._done.set()
            self._ticker.join()
            self._ticker = None
            if self._dots:
                self.console.out("")

    def _keep_alive(self) -> None:
        while not self._done.wait(self.interval):
            self.console.out(".", end="")
            self._dots += 1


@dataclass(kw_only=True)
class InteractiveReporter(ProgressReporter):
    """One live indicator per target, marked as soon as it completes."""

    console: Console
    _progress: Progress | None = field(default=None, init=False, repr=False)
    _task_ids: list[TaskID] = field(default_factory=list, init=False, repr=False)

    def start(self, descriptors: Sequence[TargetDescriptor]) -> None:
        self._progress = Progress(
            SpinnerColumn(finished_text=" "),
            TextColumn("{task.fields[mark]}"),
            TextColumn("{task.description}"),
            console=self.console,
        )
        self.console.print(f"Running against {len(descriptors)} targets.")
        self._task_ids = [
            self._progress.add_task(escape(descriptor.title), total=1, mark=" ")
            for descriptor in descriptors
        ]
        self._progress.start()

    def target_finished(self, index: int, result: ExecutionResult) -> None:
        if self._progress is None:
            return
        self._progress.update(
            self._task_ids[index],
            completed=1,
            mark=SUCCESS_MARK if result.succeeded else FAILURE_MARK,
        )

    def stop(self) -> None:
        if self._progress is not None:
            self._progress.stop()
            self._progress = None


def select_reporter(quiet: bool, console: Console) -> ProgressReporter:
    """Pick the reporter for the current environment."""
    if quiet:
        return QuietReporter(console=console)
    return InteractiveReporter(console=console)
