"""Runner that calls test bodies declared in spec files."""

from __future__ import annotations

import inspect

from testfleet.scheduler.backend.base import TaskContext
from testfleet.scheduler.models import Capability
from testfleet.scheduler.task import Task


class SpecTaskRunner:
    """Invoke the task's body with a context for the owning capability."""

    async def run(self, capability: Capability, task: Task) -> None:
        if task.body is None:
            raise RuntimeError(f"{task.full_name} has no test body.")
        context = TaskContext(
            capability=capability,
            suite_name=task.suite_name,
            test_name=task.test_name,
            attempt=task.attempts,
        )
        result = task.body(context)
        if inspect.isawaitable(result):
            await result
