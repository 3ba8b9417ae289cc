"""Models for acceptance run results."""

from collections.abc import Sequence
from dataclasses import dataclass


@dataclass(frozen=True, kw_only=True)
class TargetDescriptor:
    """A target to test, with the platform label shown next to it."""

    target: str
    label: str = ""

    @property
    def title(self) -> str:
        """Display title, e.g. ``"host1, ubuntu-2204-x86_64"``."""
        if not self.label:
            return self.target
        return f"{self.target}, {self.label}"


@dataclass(frozen=True, kw_only=True)
class ExecutionOutcome:
    """Captured output and exit status of a single command."""

    stdout: str
    stderr: str
    exit_code: int


@dataclass(frozen=True, kw_only=True)
class ExecutionResult:
    """Result of running the test command against one target."""

    title: str
    stdout: str
    stderr: str
    exit_code: int

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0


@dataclass(frozen=True, kw_only=True)
class RunSummary:
    """Partitioned outcome of a parallel run.

    ``results`` keeps launch order, while ``successes`` and ``failures`` hold
    titles in the order targets completed.
    """

    results: Sequence[ExecutionResult]
    successes: Sequence[str]
    failures: Sequence[str]

    @property
    def failed(self) -> bool:
        return bool(self.failures)
