"""Deploy orchestrator — the central coordinator for dexpress.

The Orchestrator wires together the DataStore, LogStream, RunStateMachine,
BuildDriver, RunRegistry and ProjectService, and exposes the operations
the HTTP API and the CLI are built on.  Ownership checks live here so
every surface enforces them the same way.
"""

from __future__ import annotations

import asyncio
import random
from typing import Any

from dexpress.config import ProdConfig
from dexpress.core.build_driver import BuildDriver, SimulatedStageExecutor, StageExecutor
from dexpress.core.errors import FieldValidationError, ForbiddenError, NotFoundError
from dexpress.core.log_stream import LogStream
from dexpress.core.projects import ProjectService
from dexpress.core.registry import RunRegistry
from dexpress.core.run_machine import RunStateMachine
from dexpress.core.store import DataStore, build_store
from dexpress.models.logs import LogEntry, LogLevel
from dexpress.models.projects import DeployPayload, DeployReceipt, Project
from dexpress.models.runs import Run


def parse_deploy_payload(body: Any) -> DeployPayload:
    """Extract the deploy payload from a request body.

    Accepts ``{"payload": {...}}`` and, for older clients, the payload
    object itself.  Raises ``FieldValidationError`` without a name.
    """
    if not isinstance(body, dict):
        raise FieldValidationError("payload.name required")
    payload = body.get("payload") or body
    if not isinstance(payload, dict):
        raise FieldValidationError("payload.name required")
    name = payload.get("name")
    if not isinstance(name, str) or not name.strip():
        raise FieldValidationError("payload.name required")
    return DeployPayload.model_validate(
        {
            "name": name,
            "repo": payload.get("repo") or "",
            "framework": payload.get("framework") or "",
            "region": payload.get("region") or "",
        }
    )


class Orchestrator:
    """Central deploy coordinator.

    Parameters
    ----------
    config:
        Service configuration. Uses the environment defaults if not provided.
    store:
        The data store.  Built from ``config`` if not provided.
    executor:
        Stage executor for the build driver.  Defaults to the simulated
        executor configured from ``config``.
    rng:
        Random source shared by the simulated executor and the driver.
    """

    def __init__(
        self,
        config: ProdConfig | None = None,
        *,
        store: DataStore | None = None,
        executor: StageExecutor | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.config = config or ProdConfig()
        self.store = store or build_store(self.config)
        rng = rng or random.Random()

        # Core subsystems
        self.logs = LogStream(self.store)
        self.machine = RunStateMachine(self.store)
        self.projects = ProjectService(self.store, self.config.domain_suffix)
        self.driver = BuildDriver(
            self.machine,
            self.logs,
            self.store,
            executor=executor
            or SimulatedStageExecutor(
                self.config.stage_delay_base_ms,
                self.config.stage_delay_jitter_ms,
                rng=rng,
            ),
            timeout_seconds=self.config.build_timeout_seconds or None,
            rng=rng,
        )
        self.registry = RunRegistry(self.machine, self.logs, self.driver)

    # ------------------------------------------------------------------
    # Deploy
    # ------------------------------------------------------------------

    async def deploy(self, payload: DeployPayload, owner: str) -> DeployReceipt:
        """Upsert the project, queue a run, and start its driver.

        Returns as soon as the run is queued; the build proceeds in the
        background.
        """
        project = await asyncio.to_thread(self.projects.upsert_for_deploy, payload, owner)
        run_id = await asyncio.to_thread(self.registry.create, project.id)
        await self.registry.start(run_id, project)
        return DeployReceipt(run_id=run_id, project_id=project.id)

    # ------------------------------------------------------------------
    # Reads (owner-scoped)
    # ------------------------------------------------------------------

    def list_projects(self, owner: str) -> list[Project]:
        return self.projects.list_for_owner(owner)

    def list_runs(self, owner: str, project_id: str | None = None) -> list[Run]:
        """Return runs of the caller's projects, newest first."""
        if project_id:
            project = self._owned_project(project_id, owner)
            return self.machine.list_for_project(project.id)
        runs: list[Run] = []
        for project in self.projects.list_for_owner(owner):
            runs.extend(self.machine.list_for_project(project.id))
        return sorted(runs, key=lambda r: r.created_at, reverse=True)

    def get_run_detail(self, run_id: str, owner: str) -> tuple[Run, list[LogEntry]]:
        """Return a run and its full log, after checking ownership."""
        run = self.authorize_run(run_id, owner)
        return run, self.logs.read(run_id)

    def authorize_run(self, run_id: str, owner: str) -> Run:
        """Return the run if ``owner`` owns its project.

        Raises ``NotFoundError`` for an unknown run and ``ForbiddenError``
        for someone else's run.
        """
        run = self.machine.get(run_id)
        if run is None:
            raise NotFoundError(f"run {run_id} not found")
        project = self.projects.get(run.project_id)
        if project is None or project.owner != owner:
            raise ForbiddenError()
        return run

    def _owned_project(self, project_id: str, owner: str) -> Project:
        project = self.projects.get(project_id)
        if project is None:
            raise NotFoundError(f"project {project_id} not found")
        if project.owner != owner:
            raise ForbiddenError()
        return project

    # ------------------------------------------------------------------
    # Log intake
    # ------------------------------------------------------------------

    def append_log(self, run_id: str, level: str | None, message: str | None) -> LogEntry:
        """Append a log line on behalf of a trusted external caller."""
        if not message:
            raise FieldValidationError("message required")
        try:
            log_level = LogLevel(level or LogLevel.INFO.value)
        except ValueError as exc:
            raise FieldValidationError(f"unknown level: {level}") from exc
        return self.logs.append(run_id, log_level, message)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def reap_stale_runs(self) -> list[str]:
        return self.registry.reap_stale(self.config.stale_run_seconds)

    async def shutdown(self) -> None:
        await self.registry.shutdown()
