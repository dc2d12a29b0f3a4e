"""Run lifecycle state machine.

Enforces:
- Valid status transitions only (VALID_TRANSITIONS table)
- No transition out of a terminal state
- Compare-and-set writes: a transition only lands if the run is still in
  the status it was validated against
- Terminal transitions stamp ``finished_at``; success also records
  ``build_time``

There is no in-memory state cache.  Every read goes to the store, so a
transition recorded by any process is visible to every later read.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from dexpress.core.errors import InvalidTransitionError, NotFoundError
from dexpress.core.store import RUNS_TABLE, DataStore, utc_timestamp
from dexpress.models.runs import VALID_TRANSITIONS, Run, RunStatus


class RunStateMachine:
    """Sole authority over run status.

    Parameters
    ----------
    store:
        The shared data store.
    """

    def __init__(self, store: DataStore) -> None:
        self._store = store

    # ------------------------------------------------------------------
    # Creation and reads
    # ------------------------------------------------------------------

    def create(self, project_id: str) -> Run:
        """Allocate a new run in QUEUED status."""
        now = datetime.now(timezone.utc)
        run = Run(
            id=str(uuid.uuid4()),
            project_id=project_id,
            status=RunStatus.QUEUED,
            started_at=now,
            created_at=now,
        )
        row = run.model_dump(mode="json")
        row["started_at"] = row["created_at"] = utc_timestamp(now)
        row = self._store.insert(RUNS_TABLE, row)
        return Run.model_validate(row)

    def get(self, run_id: str) -> Run | None:
        """Return the current run record, or None if unknown."""
        row = self._store.select_one(RUNS_TABLE, {"id": run_id})
        return Run.model_validate(row) if row else None

    def list_for_project(self, project_id: str) -> list[Run]:
        """Return a project's runs, newest first."""
        rows = self._store.select(
            RUNS_TABLE,
            filters={"project_id": project_id},
            order_by="created_at",
            descending=True,
        )
        return [Run.model_validate(row) for row in rows]

    def list_by_status(self, status: RunStatus) -> list[Run]:
        rows = self._store.select(RUNS_TABLE, filters={"status": status.value})
        return [Run.model_validate(row) for row in rows]

    # ------------------------------------------------------------------
    # Transition logic
    # ------------------------------------------------------------------

    def transition(
        self,
        run_id: str,
        target: RunStatus,
        *,
        build_time: str | None = None,
    ) -> Run:
        """Move a run to ``target`` and return the updated record.

        Validates:
        1. The run exists.
        2. The transition is allowed by VALID_TRANSITIONS.
        3. Nobody else moved the run between the read and the write.
        """
        run = self.get(run_id)
        if run is None:
            raise NotFoundError(f"run {run_id} not found")

        allowed = VALID_TRANSITIONS.get(run.status, set())
        if target not in allowed:
            raise InvalidTransitionError(
                f"Cannot transition run {run_id} from {run.status.value} to "
                f"{target.value}. Allowed: {sorted(s.value for s in allowed)}"
            )

        values: dict[str, str] = {"status": target.value}
        if target.is_terminal:
            values["finished_at"] = utc_timestamp()
        if target == RunStatus.SUCCESS and build_time:
            values["build_time"] = build_time

        rows = self._store.update(
            RUNS_TABLE, values, {"id": run_id, "status": run.status.value}
        )
        if not rows:
            current = self.get(run_id)
            observed = current.status.value if current else "missing"
            raise InvalidTransitionError(
                f"Run {run_id} left {run.status.value} concurrently "
                f"(now {observed}); refusing {target.value}"
            )
        return Run.model_validate(rows[0])

    def get_available_transitions(self, run_id: str) -> set[RunStatus]:
        """Return the set of valid target statuses for a run."""
        run = self.get(run_id)
        if run is None:
            return set()
        return set(VALID_TRANSITIONS.get(run.status, set()))
