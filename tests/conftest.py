"""Shared test fixtures."""

from __future__ import annotations

import asyncio
import textwrap
from collections.abc import Callable
from pathlib import Path

import pytest

from testfleet.scheduler.models import Capability
from testfleet.scheduler.task import Task


class ScriptedRunner:
    """Runner whose tasks fail a scripted number of times, keyed by test name."""

    def __init__(self, failures: dict[str, int] | None = None, *, steps: int = 3) -> None:
        self.failures = dict(failures or {})
        self.steps = steps
        self.started: list[str] = []
        self.active: dict[str, int] = {}
        self.peak: dict[str, int] = {}

    async def run(self, capability: Capability, task: Task) -> None:
        name = capability.name
        self.started.append(task.test_name)
        self.active[name] = self.active.get(name, 0) + 1
        self.peak[name] = max(self.peak.get(name, 0), self.active[name])
        try:
            for _ in range(self.steps):
                await asyncio.sleep(0)
            remaining = self.failures.get(task.test_name, 0)
            if remaining:
                self.failures[task.test_name] = remaining - 1
                raise AssertionError(f"{task.test_name} failed")
        finally:
            self.active[name] -= 1


@pytest.fixture()
def write_spec(tmp_path: Path) -> Callable[[str, str], Path]:
    """Write a spec file under tmp_path and return its path."""

    def _write(name: str, source: str) -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(source), "utf-8")
        return path

    return _write


@pytest.fixture()
def spec_source() -> Callable[..., str]:
    """Render a spec file declaring one suite with the given tests."""

    def _render(suite: str, *tests: str, only: bool = False) -> str:
        describe = "describe.only" if only else "describe"
        lines = ["from testfleet.dsl import describe, it", "", f"with {describe}({suite!r}):"]
        for test in tests:
            lines.extend(
                [
                    "",
                    f"    @it({test!r})",
                    "    async def _(ctx):",
                    "        pass",
                ],
            )
        return "\n".join(lines) + "\n"

    return _render


def make_task(capability: Capability, test_name: str, suite_name: str = "suite") -> Task:
    return Task(capability=capability, suite_name=suite_name, test_name=test_name)
