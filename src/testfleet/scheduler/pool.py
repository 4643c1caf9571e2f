"""Bounded per-capability worker pools."""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections import deque
from collections.abc import Callable, Iterable, Sequence

from testfleet.scheduler.backend import TaskRunner
from testfleet.scheduler.models import Capability, TaskTimeoutError
from testfleet.scheduler.task import Task

logger = logging.getLogger(__name__)

CompletionHook = Callable[[Task], None]


class CapabilityPool:
    """Runs at most ``capacity`` tasks of one capability at a time, FIFO beyond that."""

    def __init__(
        self,
        capability: Capability,
        *,
        runner: TaskRunner,
        on_complete: CompletionHook | None = None,
        task_timeout_seconds: float | None = None,
    ) -> None:
        self.capability = capability
        self.capacity = capability.concurrency
        self.runner = runner
        self.on_complete = on_complete
        self.task_timeout_seconds = task_timeout_seconds
        self.active_count = 0
        self.peak_active_count = 0
        self._queue: deque[Task] = deque()
        self._in_flight: set[asyncio.Task[None]] = set()

    @property
    def queued_count(self) -> int:
        return len(self._queue)

    def submit(self, task: Task) -> None:
        if self.active_count < self.capacity:
            self._start(task)
        else:
            self._queue.append(task)

    def _start(self, task: Task) -> None:
        self.active_count += 1
        self.peak_active_count = max(self.peak_active_count, self.active_count)
        task.mark_running()
        handle = asyncio.get_running_loop().create_task(
            self._execute(task),
            name=f"testfleet:{task.full_name}",
        )
        self._in_flight.add(handle)
        handle.add_done_callback(self._in_flight.discard)

    async def _execute(self, task: Task) -> None:
        error: BaseException | None = None
        shutting_down = False
        try:
            async with asyncio.timeout(self.task_timeout_seconds) as deadline:
                await self.runner.run(self.capability, task)
        except asyncio.CancelledError as exc:
            # A runner awaiting a cancelled future is a task failure; only a
            # cancellation of this pool task itself propagates.
            current = asyncio.current_task()
            shutting_down = current is not None and current.cancelling() > 0
            error = exc
        except TimeoutError as exc:
            error = (
                TaskTimeoutError(
                    f"{task.full_name} exceeded {self.task_timeout_seconds}s timeout",
                )
                if deadline.expired()
                else exc
            )
        except Exception as exc:  # noqa: BLE001
            error = exc

        self.active_count -= 1
        task.complete(error)
        if self.on_complete is not None:
            self.on_complete(task)
        if shutting_down:
            raise error
        self._promote()

    def _promote(self) -> None:
        while self._queue and self.active_count < self.capacity:
            self._start(self._queue.popleft())


class CapabilityPoolManager:
    """Owns one pool per capability and routes tasks into them."""

    def __init__(
        self,
        *,
        runner: TaskRunner,
        on_complete: CompletionHook | None = None,
        task_timeout_seconds: float | None = None,
    ) -> None:
        self.runner = runner
        self.on_complete = on_complete
        self.task_timeout_seconds = task_timeout_seconds
        self.pools: dict[str, CapabilityPool] = {}
        self._dispatch_seq = itertools.count(1)

    def add_capabilities(self, capabilities: Iterable[Capability]) -> None:
        for capability in capabilities:
            if capability.name in self.pools:
                continue
            self.pools[capability.name] = CapabilityPool(
                capability,
                runner=self.runner,
                on_complete=self.on_complete,
                task_timeout_seconds=self.task_timeout_seconds,
            )
            logger.debug(
                "Pool for %s sized to %d instance(s)",
                capability.name,
                capability.concurrency,
            )

    def dispatch(self, task: Task) -> None:
        pool = self.pools.get(task.capability.name)
        if pool is None:
            raise KeyError(f"No pool registered for capability {task.capability.name!r}")
        task.mark_dispatched(next(self._dispatch_seq))
        pool.submit(task)

    async def run_round(self, tasks: Sequence[Task]) -> None:
        """Dispatch ``tasks`` and wait until every one of them has completed."""

        completions = [task.completion for task in tasks]
        for task in tasks:
            self.dispatch(task)
        await asyncio.gather(*completions)
