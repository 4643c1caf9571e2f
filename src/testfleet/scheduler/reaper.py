"""Terminal cleanup of the descendant process tree."""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Callable
from typing import Protocol

import psutil

logger = logging.getLogger(__name__)


class ReapError(RuntimeError):
    """A descendant process could not be listed or killed."""


class ProcessControl(Protocol):
    """OS operations the reaper relies on."""

    def descendants(self, pid: int) -> list[int]:
        """Return PIDs of every process descending from ``pid``."""

    def kill(self, pid: int) -> None:
        """Forcibly terminate ``pid``."""


class PsutilProcessControl:
    """Process control backed by psutil."""

    def descendants(self, pid: int) -> list[int]:
        try:
            children = psutil.Process(pid).children(recursive=True)
        except (psutil.NoSuchProcess, psutil.AccessDenied) as error:
            raise ReapError(f"Cannot list descendants of PID {pid}: {error}") from error
        return [child.pid for child in children]

    def kill(self, pid: int) -> None:
        try:
            psutil.Process(pid).kill()
        except psutil.NoSuchProcess:
            return
        except psutil.AccessDenied as error:
            raise ReapError(f"Cannot kill PID {pid}: {error}") from error


class ProcessReaper:
    """Kills every descendant of this process, then exits with the run status.

    Launcher processes are not trusted to shut down on request, and anything
    left behind would be adopted by init, so the whole tree is force-killed.
    """

    def __init__(
        self,
        process_control: ProcessControl | None = None,
        *,
        enabled: bool = True,
        pid: int | None = None,
        exit_process: Callable[[int], object] = sys.exit,
    ) -> None:
        self.process_control = process_control or PsutilProcessControl()
        self.enabled = enabled
        self.pid = pid if pid is not None else os.getpid()
        self.exit_process = exit_process
        self.reaped = False

    def reap(self) -> list[int]:
        """Kill descendants and return the PIDs that were signalled."""

        if not self.enabled:
            logger.debug("Process reaping disabled; leaving descendants of %d alone", self.pid)
            return []
        try:
            pids = self.process_control.descendants(self.pid)
        except ReapError as error:
            logger.warning("Could not enumerate descendant processes: %s", error)
            return []

        killed: list[int] = []
        for pid in pids:
            try:
                self.process_control.kill(pid)
            except ReapError as error:
                logger.warning("Could not kill process %d: %s", pid, error)
                continue
            killed.append(pid)
        if killed:
            logger.info("Killed %d descendant process(es): %s", len(killed), killed)
        return killed

    def reap_and_exit(self, exit_code: int) -> None:
        if self.reaped:
            raise RuntimeError("Process reaper already ran for this run.")
        self.reaped = True
        self.reap()
        self.exit_process(exit_code)
