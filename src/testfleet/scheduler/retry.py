"""Bounded retry rounds over failed tasks."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from testfleet.scheduler.models import RoundReport
from testfleet.scheduler.pool import CapabilityPoolManager
from testfleet.scheduler.reporter import Reporter
from testfleet.scheduler.task import Task

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RetrySession:
    """Retry budget and the tasks redispatched in the current round."""

    remaining: int
    tasks: list[Task] = field(default_factory=list)
    rounds: int = 0


class RetryController:
    """Redispatches errored tasks until they pass or retries run out."""

    def __init__(
        self,
        *,
        pool_manager: CapabilityPoolManager,
        reporter: Reporter,
        retries: int,
    ) -> None:
        self.pool_manager = pool_manager
        self.reporter = reporter
        self.retries = retries

    def should_retry(self, report: RoundReport) -> bool:
        return self.retries > 0 and not report.succeeded

    async def run(self, tasks: Sequence[Task], report: RoundReport) -> tuple[RoundReport, int]:
        """Return the last round's report and how many retry rounds ran."""

        session = RetrySession(remaining=self.retries)
        while session.remaining > 0:
            logger.warning(">>> Remaining retries: %d", session.remaining)
            # Reporter was reset, so the task flags are the only record of failures.
            session.tasks = [task for task in tasks if task.error is not None]
            for task in session.tasks:
                task.reset()
            self.reporter.reset()

            await self.pool_manager.run_round(session.tasks)
            session.rounds += 1
            report = self.reporter.final_report()
            if report.succeeded:
                return report, session.rounds
            session.remaining -= 1

        logger.error("Still errors after retries. Exiting...")
        return report, session.rounds
