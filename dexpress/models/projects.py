"""Project models and the deploy payload."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class Project(BaseModel):
    """A deployable project, keyed by its unique name."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    repo: str = ""
    framework: str = ""
    region: str = ""
    domain: str = ""
    owner: str | None = None  # external identity id, set at most once
    visitors: int = 0
    created_at: datetime


class DeployPayload(BaseModel):
    """The ``payload`` object of a deploy request."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str
    repo: str = ""
    framework: str = ""
    region: str = ""


class DeployReceipt(BaseModel):
    """What a deploy request returns: the queued run and its project."""

    model_config = ConfigDict(frozen=True)

    run_id: str
    project_id: str
    status: str = "queued"
