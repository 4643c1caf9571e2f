"""Round-based run orchestration: plan, dispatch, barrier, report, retry."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

from testfleet.config import Settings
from testfleet.scheduler.backend import TaskRunner
from testfleet.scheduler.models import EXIT_FAILURE, EXIT_SUCCESS, RunOutcome, TaskSet
from testfleet.scheduler.pool import CapabilityPoolManager
from testfleet.scheduler.registry import SpecLoader, SuiteRegistry, load_spec_file
from testfleet.scheduler.reporter import Reporter
from testfleet.scheduler.retry import RetryController

logger = logging.getLogger(__name__)


class RunOrchestrator:
    """Drives one run over the configured capabilities."""

    def __init__(
        self,
        *,
        settings: Settings,
        runner: TaskRunner,
        loader: SpecLoader = load_spec_file,
    ) -> None:
        self.settings = settings
        self.registry = SuiteRegistry(settings.capabilities, loader=loader)
        self.reporter = Reporter()
        self.pool_manager = CapabilityPoolManager(
            runner=runner,
            on_complete=self.reporter.record,
            task_timeout_seconds=settings.task_timeout_seconds,
        )
        self.retry_controller = RetryController(
            pool_manager=self.pool_manager,
            reporter=self.reporter,
            retries=settings.retries,
        )

    def plan(self, capability_names: Sequence[str], spec_files: Sequence[Path]) -> TaskSet:
        """Build the task set; raises ConfigError before anything is dispatched."""

        logger.info(">>> Selected capabilities: %s", ", ".join(capability_names))
        return self.registry.build_task_set(capability_names, spec_files)

    async def execute(self, task_set: TaskSet) -> RunOutcome:
        self.pool_manager.add_capabilities(task_set.capabilities)

        logger.info(">>> Running tests...")
        await self.pool_manager.run_round(task_set.tasks)
        report = self.reporter.final_report()
        rounds = 1

        if self.retry_controller.should_retry(report):
            report, retry_rounds = await self.retry_controller.run(task_set.tasks, report)
            rounds += retry_rounds

        exit_code = EXIT_SUCCESS if report.succeeded else EXIT_FAILURE
        return RunOutcome(exit_code=exit_code, rounds=rounds, report=report)

    async def run(
        self,
        capability_names: Sequence[str],
        spec_files: Sequence[Path],
    ) -> RunOutcome:
        return await self.execute(self.plan(capability_names, spec_files))
