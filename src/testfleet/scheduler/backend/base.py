"""Runner interface for task execution."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from testfleet.scheduler.models import Capability

if TYPE_CHECKING:
    from testfleet.scheduler.task import Task


@dataclass(slots=True, frozen=True)
class TaskContext:
    """What a test body sees about the attempt it runs in."""

    capability: Capability
    suite_name: str
    test_name: str
    attempt: int


class TaskRunner(Protocol):
    """Protocol implemented by task runners."""

    async def run(self, capability: Capability, task: Task) -> None:
        """Run one attempt; raising marks the task failed."""
