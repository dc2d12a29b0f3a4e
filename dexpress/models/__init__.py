"""dexpress data models — all Pydantic v2, all frozen (immutable)."""

from dexpress.models.identity import AuthenticatedUser
from dexpress.models.logs import LogEntry, LogLevel
from dexpress.models.projects import DeployPayload, DeployReceipt, Project
from dexpress.models.runs import (
    DEFAULT_BUILD_STAGES,
    VALID_TRANSITIONS,
    BuildStage,
    Run,
    RunStatus,
)

__all__ = [
    # identity
    "AuthenticatedUser",
    # logs
    "LogEntry",
    "LogLevel",
    # projects
    "DeployPayload",
    "DeployReceipt",
    "Project",
    # runs
    "DEFAULT_BUILD_STAGES",
    "VALID_TRANSITIONS",
    "BuildStage",
    "Run",
    "RunStatus",
]
