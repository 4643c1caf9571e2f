"""Test-definition API used by spec files.

A spec file is a plain Python module::

    from testfleet.dsl import describe, it

    with describe("amp-img"):

        @it("loads the image")
        async def _(ctx):
            ...

    with describe.only("amp-carousel"):
        ...

Suites nest; a test is tagged with the space-joined names of its enclosing
suites. ``describe.only`` restricts the file to that suite. Test bodies receive
a :class:`testfleet.scheduler.backend.TaskContext`.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field

from testfleet.scheduler.task import TestBody


@dataclass(slots=True)
class CollectedTest:
    """Test declaration captured while executing a spec file."""

    suite_name: str
    test_name: str
    body: TestBody


@dataclass(slots=True)
class SpecCollector:
    """Accumulates declarations for one spec file execution."""

    tests: list[CollectedTest] = field(default_factory=list)
    only_suite_name: str | None = None
    _suite_stack: list[str] = field(default_factory=list)

    @contextmanager
    def suite(self, name: str, *, only: bool = False) -> Iterator[None]:
        self._suite_stack.append(name)
        if only and self.only_suite_name is None:
            self.only_suite_name = self.current_suite_name
        try:
            yield
        finally:
            self._suite_stack.pop()

    @property
    def current_suite_name(self) -> str:
        return " ".join(self._suite_stack)

    def add_test(self, name: str, body: TestBody) -> None:
        if not self._suite_stack:
            raise ValueError(f"Test {name!r} must be declared inside a describe() block.")
        self.tests.append(
            CollectedTest(suite_name=self.current_suite_name, test_name=name, body=body),
        )

    def selected_tests(self) -> list[CollectedTest]:
        """Tests left after applying this file's own only-suite marker."""

        if self.only_suite_name is None:
            return list(self.tests)
        prefix = f"{self.only_suite_name} "
        return [
            test
            for test in self.tests
            if test.suite_name == self.only_suite_name or test.suite_name.startswith(prefix)
        ]


_ACTIVE_COLLECTOR: ContextVar[SpecCollector | None] = ContextVar(
    "testfleet_active_collector",
    default=None,
)


@contextmanager
def collecting() -> Iterator[SpecCollector]:
    """Route describe()/it() calls to a fresh collector."""

    collector = SpecCollector()
    token = _ACTIVE_COLLECTOR.set(collector)
    try:
        yield collector
    finally:
        _ACTIVE_COLLECTOR.reset(token)


def _active_collector() -> SpecCollector:
    collector = _ACTIVE_COLLECTOR.get()
    if collector is None:
        raise RuntimeError("describe()/it() can only be used while a spec file is being loaded.")
    return collector


class _Describe:
    def __call__(self, name: str):
        return _active_collector().suite(name)

    def only(self, name: str):
        return _active_collector().suite(name, only=True)


describe = _Describe()


def it(name: str) -> Callable[[TestBody], TestBody]:
    """Register the decorated function as a test in the enclosing suite."""

    def _register(body: TestBody) -> TestBody:
        _active_collector().add_test(name, body)
        return body

    return _register
