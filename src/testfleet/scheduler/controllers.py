"""Controllers for run CLI commands."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from testfleet.config import ConfigError, Settings
from testfleet.scheduler.backend import SpecTaskRunner, TaskRunner
from testfleet.scheduler.engine import RunOrchestrator
from testfleet.scheduler.models import EXIT_FAILURE
from testfleet.scheduler.reaper import ProcessReaper

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RunCommand:
    """CLI input for a test run."""

    spec: str | None
    cap: str | None
    retries: int | None = None


@dataclass(slots=True)
class ListTasksCommand:
    """CLI input for listing the selected task set."""

    spec: str | None
    cap: str | None


class RunCliController:
    """Coordinates settings, orchestration and the terminal reaping step."""

    def __init__(
        self,
        *,
        runner_factory: Callable[[], TaskRunner] = SpecTaskRunner,
        reaper_factory: Callable[[bool], ProcessReaper] | None = None,
    ) -> None:
        self.runner_factory = runner_factory
        self.reaper_factory = reaper_factory or _default_reaper

    def run(self, command: RunCommand) -> None:
        """Execute a run and hand its status to the reaper, the single exit point."""

        reap_enabled = True
        try:
            settings = _load_settings(retries=command.retries)
            reap_enabled = settings.reap_enabled
            orchestrator = RunOrchestrator(settings=settings, runner=self.runner_factory())
            task_set = orchestrator.plan(
                _capability_names(command.cap, settings),
                _spec_files(command.spec, settings),
            )
            outcome = asyncio.run(orchestrator.execute(task_set))
            exit_code = outcome.exit_code
        except ConfigError as error:
            logger.error("Run aborted: %s", error)
            exit_code = EXIT_FAILURE
        except Exception:  # noqa: BLE001
            logger.exception("Run crashed")
            exit_code = EXIT_FAILURE

        self.reaper_factory(reap_enabled).reap_and_exit(exit_code)

    def list_tasks(self, command: ListTasksCommand) -> list[str]:
        settings = _load_settings()
        orchestrator = RunOrchestrator(settings=settings, runner=self.runner_factory())
        task_set = orchestrator.plan(
            _capability_names(command.cap, settings),
            _spec_files(command.spec, settings),
        )
        lines = [task.full_name for task in task_set.tasks]
        if task_set.selection.active:
            lines.append(f"Only suite: {task_set.selection.selected_suite_name}")
        lines.append(f"Tasks: {len(task_set.tasks)}")
        return lines

    def capabilities(self) -> list[str]:
        settings = _load_settings()
        lines = [
            f"{capability.name}: concurrency={capability.concurrency}"
            for capability in settings.capabilities.values()
        ]
        lines.append(f"Retries: {settings.retries}")
        return lines


def _load_settings(*, retries: int | None = None) -> Settings:
    settings = Settings.from_env()
    if retries is not None:
        settings.retries = retries
    settings.validate()
    return settings


def _capability_names(raw: str | None, settings: Settings) -> list[str]:
    if raw is None:
        return list(settings.capabilities)
    return _split_csv(raw)


def _spec_files(raw: str | None, settings: Settings) -> list[Path]:
    if raw is None:
        return sorted(path for path in Path().glob(settings.spec_glob) if path.is_file())
    return [Path(value) for value in _split_csv(raw)]


def _split_csv(raw: str) -> list[str]:
    return [part.strip() for part in raw.split(",") if part.strip()]


def _default_reaper(enabled: bool) -> ProcessReaper:
    return ProcessReaper(enabled=enabled)
