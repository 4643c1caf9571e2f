from __future__ import annotations

import asyncio

import allure
import pytest
from conftest import ScriptedRunner, make_task

from testfleet.scheduler.models import Capability, TaskOutcome, TaskState, TaskTimeoutError
from testfleet.scheduler.pool import CapabilityPoolManager

pytestmark = [
    allure.epic("Scheduling"),
    allure.feature("Capability Pools"),
]


def test_capacity_one_pool_runs_tasks_sequentially_in_submission_order() -> None:
    capability = Capability(name="otherEnv", concurrency=1)
    runner = ScriptedRunner()
    manager = CapabilityPoolManager(runner=runner)
    manager.add_capabilities([capability])
    tasks = [make_task(capability, name) for name in ("first", "second", "third")]

    async def scenario() -> None:
        await manager.run_round(tasks)

    asyncio.run(scenario())

    assert runner.started == ["first", "second", "third"]
    assert runner.peak["otherEnv"] == 1
    assert manager.pools["otherEnv"].peak_active_count == 1
    assert all(task.state is TaskState.SUCCEEDED for task in tasks)


def test_queued_tasks_wait_for_a_free_slot() -> None:
    capability = Capability(name="chromeLike", concurrency=2)
    manager = CapabilityPoolManager(runner=ScriptedRunner())
    manager.add_capabilities([capability])
    tasks = [make_task(capability, f"t{index}") for index in range(5)]

    async def scenario() -> None:
        for task in tasks:
            manager.dispatch(task)
        pool = manager.pools["chromeLike"]
        assert pool.active_count == 2
        assert pool.queued_count == 3
        assert [task.state for task in tasks] == [
            TaskState.RUNNING,
            TaskState.RUNNING,
            TaskState.DISPATCHED,
            TaskState.DISPATCHED,
            TaskState.DISPATCHED,
        ]
        await asyncio.gather(*(task.completion for task in tasks))
        assert pool.active_count == 0
        assert pool.queued_count == 0
        assert pool.peak_active_count == 2

    asyncio.run(scenario())


def test_pools_are_independent_per_capability() -> None:
    wide = Capability(name="chromeLike", concurrency=3)
    narrow = Capability(name="otherEnv", concurrency=1)
    runner = ScriptedRunner()
    manager = CapabilityPoolManager(runner=runner)
    manager.add_capabilities([wide, narrow])
    tasks = [make_task(wide, f"w{index}") for index in range(4)]
    tasks += [make_task(narrow, f"n{index}") for index in range(3)]

    asyncio.run(manager.run_round(tasks))

    assert runner.peak == {"chromeLike": 3, "otherEnv": 1}


def test_failure_is_isolated_from_sibling_tasks() -> None:
    capability = Capability(name="chromeLike", concurrency=2)
    completed: list[str] = []
    manager = CapabilityPoolManager(
        runner=ScriptedRunner({"broken": 1}),
        on_complete=lambda task: completed.append(task.test_name),
    )
    manager.add_capabilities([capability])
    tasks = [make_task(capability, name) for name in ("ok-1", "broken", "ok-2")]

    asyncio.run(manager.run_round(tasks))

    assert sorted(completed) == ["broken", "ok-1", "ok-2"]
    assert [task.state for task in tasks] == [
        TaskState.SUCCEEDED,
        TaskState.FAILED,
        TaskState.SUCCEEDED,
    ]
    assert isinstance(tasks[1].error, AssertionError)


def test_dispatch_assigns_increasing_sequence_numbers() -> None:
    capability = Capability(name="chromeLike", concurrency=1)
    manager = CapabilityPoolManager(runner=ScriptedRunner())
    manager.add_capabilities([capability])
    tasks = [make_task(capability, name) for name in ("a", "b")]

    asyncio.run(manager.run_round(tasks))

    assert [task.dispatch_seq for task in tasks] == [1, 2]
    assert [task.attempts for task in tasks] == [1, 1]


def test_dispatching_a_running_task_again_is_rejected() -> None:
    capability = Capability(name="chromeLike", concurrency=1)
    manager = CapabilityPoolManager(runner=ScriptedRunner())
    manager.add_capabilities([capability])
    task = make_task(capability, "once")

    async def scenario() -> None:
        manager.dispatch(task)
        with pytest.raises(RuntimeError, match="not in created state"):
            manager.dispatch(task)
        await task.completion

    asyncio.run(scenario())
    assert manager.pools["chromeLike"].peak_active_count == 1


def test_dispatch_to_unknown_capability_raises() -> None:
    manager = CapabilityPoolManager(runner=ScriptedRunner())
    task = make_task(Capability(name="ghost"), "t")

    with pytest.raises(KeyError, match="ghost"):
        manager.dispatch(task)


def test_task_timeout_turns_hang_into_task_error() -> None:
    class HangingRunner:
        async def run(self, capability, task) -> None:
            await asyncio.Event().wait()

    capability = Capability(name="chromeLike", concurrency=1)
    manager = CapabilityPoolManager(runner=HangingRunner(), task_timeout_seconds=0.01)
    manager.add_capabilities([capability])
    tasks = [make_task(capability, "stuck"), make_task(capability, "next")]

    asyncio.run(manager.run_round(tasks))

    assert all(isinstance(task.error, TaskTimeoutError) for task in tasks)
    assert manager.pools["chromeLike"].active_count == 0


def test_runner_raising_cancelled_error_fails_only_that_task() -> None:
    class CancelledFutureRunner:
        def __init__(self) -> None:
            self.started: list[str] = []

        async def run(self, capability, task) -> None:
            self.started.append(task.test_name)
            if task.test_name == "cancelled":
                future = asyncio.get_running_loop().create_future()
                future.cancel()
                await future

    capability = Capability(name="chromeLike", concurrency=1)
    runner = CancelledFutureRunner()
    completed: list[str] = []
    manager = CapabilityPoolManager(
        runner=runner,
        on_complete=lambda task: completed.append(task.test_name),
    )
    manager.add_capabilities([capability])
    tasks = [make_task(capability, "cancelled"), make_task(capability, "next")]

    asyncio.run(asyncio.wait_for(manager.run_round(tasks), timeout=5))

    assert runner.started == ["cancelled", "next"]
    assert completed == ["cancelled", "next"]
    assert tasks[0].state is TaskState.FAILED
    assert isinstance(tasks[0].error, asyncio.CancelledError)
    assert tasks[1].state is TaskState.SUCCEEDED
    assert manager.pools["chromeLike"].active_count == 0


def test_cancelling_pool_work_completes_task_and_propagates() -> None:
    class HangingRunner:
        async def run(self, capability, task) -> None:
            await asyncio.Event().wait()

    capability = Capability(name="chromeLike", concurrency=1)
    manager = CapabilityPoolManager(runner=HangingRunner())
    manager.add_capabilities([capability])
    task = make_task(capability, "stuck")

    async def scenario() -> None:
        manager.dispatch(task)
        (handle,) = manager.pools["chromeLike"]._in_flight
        await asyncio.sleep(0)
        handle.cancel()
        assert await task.completion is TaskOutcome.ERROR
        with pytest.raises(asyncio.CancelledError):
            await handle

    asyncio.run(scenario())
    assert manager.pools["chromeLike"].active_count == 0


def test_runner_timeout_error_keeps_its_own_cause() -> None:
    class SlowPageRunner:
        async def run(self, capability, task) -> None:
            raise TimeoutError("element never appeared")

    capability = Capability(name="chromeLike", concurrency=1)
    manager = CapabilityPoolManager(runner=SlowPageRunner(), task_timeout_seconds=30)
    manager.add_capabilities([capability])
    task = make_task(capability, "waits")

    asyncio.run(manager.run_round([task]))

    assert isinstance(task.error, TimeoutError)
    assert not isinstance(task.error, TaskTimeoutError)
    assert str(task.error) == "element never appeared"
