"""Task runner implementations."""

from testfleet.scheduler.backend.base import TaskContext, TaskRunner
from testfleet.scheduler.backend.spec_runner import SpecTaskRunner

__all__ = [
    "SpecTaskRunner",
    "TaskContext",
    "TaskRunner",
]
