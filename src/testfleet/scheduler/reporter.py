"""Per-round outcome aggregation."""

from __future__ import annotations

import logging

from testfleet.scheduler.models import RoundReport, TaskOutcome
from testfleet.scheduler.task import Task

logger = logging.getLogger(__name__)


class Reporter:
    """Collects task outcomes for the current round only."""

    def __init__(self) -> None:
        self._outcomes: dict[Task, TaskOutcome] = {}

    def record(self, task: Task) -> None:
        outcome = TaskOutcome.OK if task.error is None else TaskOutcome.ERROR
        self._outcomes[task] = outcome
        if outcome is TaskOutcome.OK:
            logger.info("PASS %s", task.full_name)
        else:
            logger.warning("FAIL %s: %s", task.full_name, task.error)

    def final_report(self) -> RoundReport:
        """Summarise the round; errored tasks come back in dispatch order."""

        errored = sorted(
            (task for task, outcome in self._outcomes.items() if outcome is TaskOutcome.ERROR),
            key=lambda task: task.dispatch_seq or 0,
        )
        report = RoundReport(
            total=len(self._outcomes),
            ok=len(self._outcomes) - len(errored),
            errored=errored,
        )
        logger.info(
            ">>> Report: total=%d passed=%d failed=%d",
            report.total,
            report.ok,
            len(report.errored),
        )
        for task in errored:
            logger.error("  %s: %r", task.full_name, task.error)
        return report

    def reset(self) -> None:
        self._outcomes.clear()
