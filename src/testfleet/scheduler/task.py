"""Task entity with a one-shot completion signal."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

from testfleet.scheduler.models import Capability, TaskOutcome, TaskState

TestBody = Callable[..., Awaitable[Any] | Any]


class Task:
    """One test case bound to a capability.

    A retry resets the same object instead of creating a new one, so reporting
    can follow a task across rounds. The completion future is created lazily on
    the running loop and replaced on every reset.
    """

    def __init__(
        self,
        *,
        capability: Capability,
        suite_name: str,
        test_name: str,
        body: TestBody | None = None,
        only: bool = False,
    ) -> None:
        self.capability = capability
        self.suite_name = suite_name
        self.test_name = test_name
        self.body = body
        self.only = only
        self.state = TaskState.CREATED
        self.error: BaseException | None = None
        self.attempts = 0
        self.dispatch_seq: int | None = None
        self._completion: asyncio.Future[TaskOutcome] | None = None

    def __repr__(self) -> str:
        return f"Task({self.full_name!r}, state={self.state.value})"

    @property
    def full_name(self) -> str:
        return f"[{self.capability.name}] {self.suite_name} > {self.test_name}"

    @property
    def completion(self) -> asyncio.Future[TaskOutcome]:
        if self._completion is None:
            self._completion = asyncio.get_running_loop().create_future()
        return self._completion

    def mark_dispatched(self, seq: int) -> None:
        if self.state is not TaskState.CREATED:
            raise RuntimeError(f"Cannot dispatch {self!r}: task is not in created state.")
        self.state = TaskState.DISPATCHED
        self.dispatch_seq = seq
        self.attempts += 1

    def mark_running(self) -> None:
        if self.state is not TaskState.DISPATCHED:
            raise RuntimeError(f"Cannot start {self!r}: task was not dispatched.")
        self.state = TaskState.RUNNING

    def complete(self, error: BaseException | None = None) -> TaskOutcome:
        """Record the result and resolve the completion signal exactly once."""

        if self.state is not TaskState.RUNNING:
            raise RuntimeError(f"Cannot complete {self!r}: task is not running.")
        self.error = error
        if error is None:
            self.state = TaskState.SUCCEEDED
            outcome = TaskOutcome.OK
        else:
            self.state = TaskState.FAILED
            outcome = TaskOutcome.ERROR
        self.completion.set_result(outcome)
        return outcome

    def reset(self) -> None:
        """Prepare the task for another round."""

        self.state = TaskState.CREATED
        self.error = None
        self.dispatch_seq = None
        self._completion = None
