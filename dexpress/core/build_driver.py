"""Detached build driver — walks one run through the stage script.

The driver is the only writer of a run once it has been created.  It runs
as an asyncio task that nobody awaits; its outcome is observable only
through the run record and the log stream.

Lifecycle:
1. QUEUED -> RUNNING, log "Build queued"
2. For each stage: log "<stage>...", then hand the stage to the executor
3. RUNNING -> SUCCESS with a build-time summary, log the result
4. Any exception, cancellation, or watchdog timeout: -> FAILED plus an
   ``error`` log line.  No retries.  A run that is already terminal
   keeps its status and gets no error line.
5. On success only, bump the project's visitor counter (best-effort)

Store calls are blocking, so they run through ``asyncio.to_thread``; the
only suspension points inside the script are stage boundaries.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable, Sequence
from typing import Protocol, runtime_checkable

from dexpress.core.errors import InvalidTransitionError
from dexpress.core.log_stream import LogStream
from dexpress.core.run_machine import RunStateMachine
from dexpress.core.store import DataStore
from dexpress.models.logs import LogLevel
from dexpress.models.projects import Project
from dexpress.models.runs import DEFAULT_BUILD_STAGES, BuildStage, RunStatus

logger = logging.getLogger(__name__)

Sleeper = Callable[[float], Awaitable[None]]


# ---------------------------------------------------------------------------
# Stage executors
# ---------------------------------------------------------------------------


@runtime_checkable
class StageExecutor(Protocol):
    """Protocol for whatever performs the work of a build stage.

    Any object with an async ``execute(stage, run_id, project)`` satisfies
    it.  Raising from ``execute`` fails the run.
    """

    async def execute(self, stage: BuildStage, run_id: str, project: Project) -> None:
        ...


class SimulatedStageExecutor:
    """Stands in for real work by suspending for a jittered delay.

    Each stage takes ``base_ms + randint(0, jitter_ms)`` milliseconds.

    Parameters
    ----------
    base_ms:
        Minimum delay per stage.
    jitter_ms:
        Upper bound of the random extra delay.
    rng:
        Random source, injectable for reproducible tests.
    sleep:
        Awaitable sleep, ``asyncio.sleep`` by default.
    """

    def __init__(
        self,
        base_ms: int = 700,
        jitter_ms: int = 1000,
        *,
        rng: random.Random | None = None,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        if base_ms < 0 or jitter_ms < 0:
            raise ValueError("stage delays must be non-negative")
        self.base_ms = base_ms
        self.jitter_ms = jitter_ms
        self._rng = rng or random.Random()
        self._sleep = sleep

    def next_delay(self) -> float:
        """Return the next stage delay in seconds."""
        return (self.base_ms + self._rng.randint(0, self.jitter_ms)) / 1000.0

    async def execute(self, stage: BuildStage, run_id: str, project: Project) -> None:
        await self._sleep(self.next_delay())


# ---------------------------------------------------------------------------
# Driver
# ---------------------------------------------------------------------------


class BuildDriver:
    """Advances runs through the build script.

    Parameters
    ----------
    machine:
        The run state machine.
    logs:
        The run log stream.
    store:
        The data store, used for the visitor counter procedure.
    executor:
        Performs each stage.  Defaults to ``SimulatedStageExecutor``.
    stages:
        The ordered stage script.
    timeout_seconds:
        Watchdog bound for a whole build; ``None`` disables it.
    rng:
        Random source for the build-time summary.
    """

    def __init__(
        self,
        machine: RunStateMachine,
        logs: LogStream,
        store: DataStore,
        *,
        executor: StageExecutor | None = None,
        stages: Sequence[BuildStage] = DEFAULT_BUILD_STAGES,
        timeout_seconds: float | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._machine = machine
        self._logs = logs
        self._store = store
        self._rng = rng or random.Random()
        self.executor: StageExecutor = executor or SimulatedStageExecutor(rng=self._rng)
        self.stages = list(stages)
        self.timeout_seconds = timeout_seconds

    def start(self, run_id: str, project: Project) -> asyncio.Task[None]:
        """Spawn the build as a detached task and return it immediately.

        Must be called from a running event loop.  Callers normally go
        through ``RunRegistry.start`` which guards against double starts.
        """
        return asyncio.create_task(self.run(run_id, project), name=f"build-{run_id}")

    async def run(self, run_id: str, project: Project) -> None:
        """Drive a run to a terminal state.  Never raises, except cancellation.

        The watchdog and the failure boundary cover the script up to the
        closing log line.  The visitor counter runs after it, so a slow
        counter can neither time out nor fail a finished run.
        """
        try:
            if self.timeout_seconds is None:
                await self._execute(run_id, project)
            else:
                await asyncio.wait_for(
                    self._execute(run_id, project), timeout=self.timeout_seconds
                )
        except asyncio.CancelledError:
            logger.warning("Build %s cancelled", run_id)
            await self._fail(run_id, "Build cancelled")
            raise
        except asyncio.TimeoutError:
            logger.error("Build %s exceeded %ss watchdog", run_id, self.timeout_seconds)
            await self._fail(
                run_id, f"Build timed out after {self.timeout_seconds:g}s"
            )
            return
        except Exception as exc:  # noqa: BLE001
            logger.exception("Build %s failed", run_id)
            await self._fail(run_id, f"Build failed: {exc}")
            return

        await asyncio.to_thread(self._bump_visitors, project.id)

    # ------------------------------------------------------------------
    # Script
    # ------------------------------------------------------------------

    async def _execute(self, run_id: str, project: Project) -> None:
        await asyncio.to_thread(self._machine.transition, run_id, RunStatus.RUNNING)
        await self._log(run_id, LogLevel.INFO, "Build queued")

        for stage in self.stages:
            await self._log(run_id, LogLevel.INFO, stage.progress_message)
            await self.executor.execute(stage, run_id, project)

        build_time = self.build_time_summary()
        await asyncio.to_thread(
            self._machine.transition, run_id, RunStatus.SUCCESS, build_time=build_time
        )
        await self._log(
            run_id, LogLevel.INFO, f"Build finished successfully in {build_time}"
        )
        logger.info("Build %s for %s succeeded in %s", run_id, project.name, build_time)

    def build_time_summary(self) -> str:
        """Return a bounded, randomized build-time label such as ``"23s"``."""
        return f"{self._rng.randint(10, 49)}s"

    async def _log(self, run_id: str, level: LogLevel, message: str) -> None:
        await asyncio.to_thread(self._logs.append, run_id, level, message)

    def _bump_visitors(self, project_id: str) -> None:
        """Best-effort: failure is logged and ignored, never fails the run."""
        try:
            self._store.rpc("increment_visitors", {"proj_id": project_id})
        except Exception as exc:  # noqa: BLE001
            logger.warning("Visitor counter update failed for %s: %s", project_id, exc)

    # ------------------------------------------------------------------
    # Failure path
    # ------------------------------------------------------------------

    async def _fail(self, run_id: str, message: str) -> None:
        try:
            await asyncio.to_thread(self._record_failure, run_id, message)
        except Exception:  # noqa: BLE001
            logger.exception(
                "Could not record failure of build %s; run state may be stale", run_id
            )

    def _record_failure(self, run_id: str, message: str) -> None:
        run = self._machine.get(run_id)
        if run is None:
            logger.error("Build %s failed for a run that no longer exists", run_id)
            return
        if run.status == RunStatus.QUEUED:
            # Failure paths pass through RUNNING; a cancelled start may
            # still land that transition on its own thread
            try:
                self._machine.transition(run_id, RunStatus.RUNNING)
            except InvalidTransitionError:
                logger.info("Build %s left queued concurrently", run_id)
        try:
            self._machine.transition(run_id, RunStatus.FAILED)
        except InvalidTransitionError as exc:
            # Already terminal; its log stays as is
            logger.warning("Build %s: %r not recorded: %s", run_id, message, exc)
            return
        self._logs.append(run_id, LogLevel.ERROR, message)
