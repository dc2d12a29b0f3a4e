"""Run registry — run records plus the single active driver per run.

A run gets exactly one driver, started once right after creation.  The
registry makes that explicit: ``start`` is a no-op for a run that already
has a live driver or has left QUEUED.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone

from dexpress.core.build_driver import BuildDriver
from dexpress.core.errors import InvalidTransitionError
from dexpress.core.log_stream import LogStream
from dexpress.core.run_machine import RunStateMachine
from dexpress.models.logs import LogLevel
from dexpress.models.projects import Project
from dexpress.models.runs import Run, RunStatus

logger = logging.getLogger(__name__)


class RunRegistry:
    """Maps run ids to run records and their (at most one) driver task.

    Parameters
    ----------
    machine:
        The run state machine.
    logs:
        The run log stream, used when reaping abandoned runs.
    driver:
        The build driver that tasks are spawned from.
    """

    def __init__(
        self, machine: RunStateMachine, logs: LogStream, driver: BuildDriver
    ) -> None:
        self._machine = machine
        self._logs = logs
        self._driver = driver
        self._tasks: dict[str, asyncio.Task[None]] = {}

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    def create(self, project_id: str) -> str:
        """Allocate a new QUEUED run and return its id."""
        return self._machine.create(project_id).id

    def get(self, run_id: str) -> Run | None:
        return self._machine.get(run_id)

    # ------------------------------------------------------------------
    # Drivers
    # ------------------------------------------------------------------

    async def start(self, run_id: str, project: Project) -> asyncio.Task[None] | None:
        """Start the driver for a QUEUED run, fire-and-forget.

        Returns the task, or ``None`` when the run already has a driver,
        is unknown, or is past QUEUED.  The run is read on a worker
        thread; the live-driver check is repeated once the read returns.
        """
        if self.is_active(run_id):
            logger.info("Run %s already has an active driver; start ignored", run_id)
            return None

        run = await asyncio.to_thread(self._machine.get, run_id)
        if run is None:
            logger.warning("Cannot start driver for unknown run %s", run_id)
            return None
        if run.status != RunStatus.QUEUED:
            logger.info(
                "Run %s is %s, not queued; start ignored", run_id, run.status.value
            )
            return None
        if self.is_active(run_id):
            logger.info("Run %s was started concurrently; start ignored", run_id)
            return None

        task = self._driver.start(run_id, project)
        self._tasks[run_id] = task
        task.add_done_callback(lambda t, rid=run_id: self._on_done(rid, t))
        return task

    def is_active(self, run_id: str) -> bool:
        task = self._tasks.get(run_id)
        return task is not None and not task.done()

    def active_run_ids(self) -> list[str]:
        return [rid for rid, task in self._tasks.items() if not task.done()]

    def cancel(self, run_id: str) -> bool:
        """Cancel a run's live driver.  The driver records the failure."""
        task = self._tasks.get(run_id)
        if task is None or task.done():
            return False
        return task.cancel()

    async def shutdown(self) -> None:
        """Cancel every live driver and wait for them to record the outcome."""
        tasks = [task for task in self._tasks.values() if not task.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def _on_done(self, run_id: str, task: asyncio.Task[None]) -> None:
        if self._tasks.get(run_id) is task:
            del self._tasks[run_id]
        if not task.cancelled() and task.exception() is not None:
            logger.error(
                "Driver for run %s escaped its failure boundary: %s",
                run_id,
                task.exception(),
            )

    # ------------------------------------------------------------------
    # Watchdog
    # ------------------------------------------------------------------

    def reap_stale(self, max_age_seconds: float) -> list[str]:
        """Fail runs stuck in a non-terminal state with no live driver.

        A run qualifies when it is QUEUED or RUNNING, nothing in this
        process is driving it, and it started more than
        ``max_age_seconds`` ago (e.g. its driver died with a previous
        process).  Returns the ids of the runs that were failed.
        """
        cutoff = datetime.now(timezone.utc) - timedelta(seconds=max_age_seconds)
        reaped: list[str] = []
        for status in (RunStatus.QUEUED, RunStatus.RUNNING):
            for run in self._machine.list_by_status(status):
                if self.is_active(run.id) or run.started_at > cutoff:
                    continue
                try:
                    if run.status == RunStatus.QUEUED:
                        self._machine.transition(run.id, RunStatus.RUNNING)
                    self._machine.transition(run.id, RunStatus.FAILED)
                except InvalidTransitionError:
                    logger.info("Run %s moved while being reaped; skipped", run.id)
                    continue
                self._logs.append(
                    run.id,
                    LogLevel.ERROR,
                    f"Build abandoned: no progress within {max_age_seconds:g}s",
                )
                logger.warning("Reaped stale run %s", run.id)
                reaped.append(run.id)
        return reaped
