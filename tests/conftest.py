"""Shared test fixtures for dexpress."""

from __future__ import annotations

import random
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from dexpress.config import ProdConfig
from dexpress.core.build_driver import BuildDriver, SimulatedStageExecutor
from dexpress.core.log_stream import LogStream
from dexpress.core.projects import ProjectService
from dexpress.core.registry import RunRegistry
from dexpress.core.run_machine import RunStateMachine
from dexpress.core.sqlite_store import SqliteStore
from dexpress.models.projects import DeployPayload, Project
from dexpress.models.runs import Run
from tests.doubles import RecordingSleep


@pytest.fixture
def tmp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test databases."""
    return tmp_path


@pytest.fixture
def store(tmp_dir: Path) -> SqliteStore:
    """Provide a fresh SqliteStore backed by a temp database."""
    return SqliteStore(tmp_dir / "test.db")


@pytest.fixture
def logs(store: SqliteStore) -> LogStream:
    return LogStream(store)


@pytest.fixture
def machine(store: SqliteStore) -> RunStateMachine:
    return RunStateMachine(store)


@pytest.fixture
def projects(store: SqliteStore) -> ProjectService:
    return ProjectService(store)


@pytest.fixture
def project(projects: ProjectService) -> Project:
    """A project named 'alpha' owned by user-1."""
    return projects.upsert_for_deploy(
        DeployPayload(name="alpha", repo="git@example.com:alpha.git"), "user-1"
    )


@pytest.fixture
def run(machine: RunStateMachine, project: Project) -> Run:
    """A freshly queued run of the 'alpha' project."""
    return machine.create(project.id)


@pytest.fixture
def fast_config(tmp_dir: Path) -> ProdConfig:
    """Config with millisecond stage delays and two dev users."""
    return ProdConfig(
        _env_file=None,
        db_path=tmp_dir / "api.db",
        stage_delay_base_ms=1,
        stage_delay_jitter_ms=2,
        build_timeout_seconds=30,
        stream_poll_interval_seconds=0.02,
        dev_tokens={"token-alice": "alice", "token-bob": "bob"},
    )


@pytest.fixture
def make_driver(
    machine: RunStateMachine, logs: LogStream, store: SqliteStore
) -> Callable[..., BuildDriver]:
    """Factory fixture: build a BuildDriver wired to the test store.

    Stage delays are recorded, not slept.  Pass ``store=`` to swap the
    store the driver uses for the visitor counter.
    """

    def _factory(**overrides: Any) -> BuildDriver:
        rng = overrides.pop("rng", random.Random(7))
        defaults: dict[str, Any] = {
            "executor": SimulatedStageExecutor(1, 2, rng=rng, sleep=RecordingSleep()),
            "rng": rng,
        }
        defaults.update(overrides)
        driver_store = defaults.pop("store", store)
        return BuildDriver(machine, logs, driver_store, **defaults)

    return _factory


@pytest.fixture
def make_registry(
    machine: RunStateMachine, logs: LogStream, make_driver: Callable[..., BuildDriver]
) -> Callable[..., RunRegistry]:
    def _factory(**driver_overrides: Any) -> RunRegistry:
        return RunRegistry(machine, logs, make_driver(**driver_overrides))

    return _factory
