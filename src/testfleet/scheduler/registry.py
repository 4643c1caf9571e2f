"""Spec file loading and run-wide "only" suite selection."""

from __future__ import annotations

import logging
import runpy
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path

from testfleet.config import CapabilitySettings, ConfigError
from testfleet.dsl import collecting
from testfleet.scheduler.models import Capability, RegisteredTests, SelectionState, TaskSet
from testfleet.scheduler.task import Task

logger = logging.getLogger(__name__)

SpecLoader = Callable[[Capability, Path], RegisteredTests]


def load_spec_file(capability: Capability, path: Path) -> RegisteredTests:
    """Execute a spec file and turn its declarations into tasks for one capability.

    The file is executed afresh for every capability so each capability owns
    its own task objects.
    """

    with collecting() as collector:
        try:
            runpy.run_path(str(path), run_name=f"testfleet_spec.{capability.name}")
        except Exception as error:  # noqa: BLE001
            raise ConfigError(f"Failed to load spec file {path}: {error}") from error

    only = collector.only_suite_name is not None
    tasks = [
        Task(
            capability=capability,
            suite_name=test.suite_name,
            test_name=test.test_name,
            body=test.body,
            only=only,
        )
        for test in collector.selected_tests()
    ]
    return RegisteredTests(
        tasks=tasks,
        has_only=only,
        only_suite_name=collector.only_suite_name,
    )


def merge_registered_tests(
    accumulated: list[Task],
    registered: RegisteredTests,
    selection: SelectionState,
) -> tuple[list[Task], SelectionState]:
    """Fold one (capability, file) load into the global task list.

    The first load reporting an only-suite wins: it replaces everything
    accumulated so far. Once a selection is active, a later load is kept only
    when it names the same only-suite; otherwise all of its tasks are dropped,
    including tasks that carry no only marker at all.
    """

    if selection.active:
        if registered.only_suite_name == selection.selected_suite_name:
            return [*accumulated, *registered.tasks], selection
        return accumulated, selection
    if registered.has_only:
        return (
            list(registered.tasks),
            SelectionState(active=True, selected_suite_name=registered.only_suite_name),
        )
    return [*accumulated, *registered.tasks], selection


class SuiteRegistry:
    """Builds the global task set from configured capabilities and spec files."""

    def __init__(
        self,
        capabilities: Mapping[str, CapabilitySettings],
        loader: SpecLoader = load_spec_file,
    ) -> None:
        self.capabilities = capabilities
        self.loader = loader

    def resolve_capability(self, name: str, spec_files: Sequence[Path]) -> Capability:
        settings = self.capabilities.get(name)
        if settings is None:
            raise ConfigError(f"Capability {name} is not registered in configuration.")
        return Capability(
            name=name,
            concurrency=settings.concurrency,
            spec_files=tuple(spec_files),
        )

    def load(self, capability: Capability, path: Path) -> RegisteredTests:
        if not path.is_file():
            raise ConfigError(f"File {path} does not exist.")
        registered = self.loader(capability, path)
        logger.debug(
            "Loaded %d task(s) from %s for %s (only=%s)",
            len(registered.tasks),
            path,
            capability.name,
            registered.only_suite_name,
        )
        return registered

    def build_task_set(
        self,
        capability_names: Sequence[str],
        spec_files: Sequence[Path],
    ) -> TaskSet:
        """Load every (capability, file) pair in capability-major order."""

        capabilities: list[Capability] = []
        tasks: list[Task] = []
        selection = SelectionState()
        for name in capability_names:
            capability = self.resolve_capability(name, spec_files)
            for path in spec_files:
                registered = self.load(capability, path)
                tasks, selection = merge_registered_tests(tasks, registered, selection)
            capabilities.append(capability)

        if selection.active:
            logger.info(">>> Only running suite: %s", selection.selected_suite_name)
        return TaskSet(capabilities=capabilities, tasks=tasks, selection=selection)
