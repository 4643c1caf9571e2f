"""Domain models for capability scheduling and run outcomes."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from testfleet.scheduler.task import Task

EXIT_SUCCESS = 0
EXIT_FAILURE = 1


class TaskState(str, Enum):
    """Task lifecycle states within one round."""

    CREATED = "created"
    DISPATCHED = "dispatched"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class TaskOutcome(str, Enum):
    """Value a task's completion signal resolves to."""

    OK = "ok"
    ERROR = "error"


class TaskTimeoutError(TimeoutError):
    """Raised into a task when its runner exceeds the configured timeout."""


@dataclass(slots=True, frozen=True)
class Capability:
    """Execution profile with its own concurrency limit and spec files."""

    name: str
    concurrency: int = 1
    spec_files: tuple[Path, ...] = ()


@dataclass(slots=True)
class RegisteredTests:
    """Tasks produced by loading one spec file for one capability."""

    tasks: list[Task]
    has_only: bool = False
    only_suite_name: str | None = None


@dataclass(slots=True, frozen=True)
class SelectionState:
    """Run-wide "only" suite selection, fixed by the first file declaring one."""

    active: bool = False
    selected_suite_name: str | None = None


@dataclass(slots=True)
class TaskSet:
    """Global task list with the capabilities and selection that produced it."""

    capabilities: list[Capability]
    tasks: list[Task]
    selection: SelectionState = field(default_factory=SelectionState)


@dataclass(slots=True)
class RoundReport:
    """Outcome of one dispatch-and-await round."""

    total: int
    ok: int
    errored: list[Task]

    @property
    def succeeded(self) -> bool:
        return not self.errored


@dataclass(slots=True)
class RunOutcome:
    """Terminal state of a run."""

    exit_code: int
    rounds: int
    report: RoundReport
