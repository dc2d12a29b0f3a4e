"""Run lifecycle models — status enum and the transition table."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict


class RunStatus(str, Enum):
    """Lifecycle status of a single run."""

    QUEUED = "queued"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return not VALID_TRANSITIONS[self]


# Valid status transitions, enforced by RunStateMachine.
# Terminal states (SUCCESS, FAILED) have no outgoing transitions.
VALID_TRANSITIONS: dict[RunStatus, set[RunStatus]] = {
    RunStatus.QUEUED: {RunStatus.RUNNING},
    RunStatus.RUNNING: {RunStatus.SUCCESS, RunStatus.FAILED},
    RunStatus.SUCCESS: set(),  # terminal
    RunStatus.FAILED: set(),  # terminal
}


class Run(BaseModel):
    """One execution attempt of the deployment pipeline for a project."""

    model_config = ConfigDict(frozen=True)

    id: str
    project_id: str
    status: RunStatus
    started_at: datetime
    created_at: datetime
    finished_at: datetime | None = None
    build_time: str | None = None  # e.g. "23s", set on success only

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal


class BuildStage(BaseModel):
    """One scripted step of the simulated build."""

    model_config = ConfigDict(frozen=True)

    stage_id: str
    display_name: str

    @property
    def progress_message(self) -> str:
        return f"{self.display_name}..."


# The standard build script, executed in order.
DEFAULT_BUILD_STAGES: list[BuildStage] = [
    BuildStage(stage_id="clone", display_name="Cloning repo"),
    BuildStage(stage_id="install", display_name="Installing dependencies"),
    BuildStage(stage_id="build", display_name="Building assets"),
    BuildStage(stage_id="test", display_name="Running tests"),
    BuildStage(stage_id="package", display_name="Packaging"),
    BuildStage(stage_id="upload", display_name="Uploading"),
    BuildStage(stage_id="activate", display_name="Activating services"),
]
