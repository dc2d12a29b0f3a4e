"""Tests for the Orchestrator — deploy flow, ownership scoping, log intake."""

from __future__ import annotations

import asyncio
import random

import pytest

from dexpress.config import ProdConfig
from dexpress.core.errors import FieldValidationError, ForbiddenError, NotFoundError
from dexpress.core.orchestrator import Orchestrator, parse_deploy_payload
from dexpress.models.logs import LogLevel
from dexpress.models.projects import DeployPayload
from dexpress.models.runs import RunStatus


@pytest.fixture
def orchestrator(fast_config: ProdConfig) -> Orchestrator:
    return Orchestrator(fast_config, rng=random.Random(11))


def _deploy(orchestrator: Orchestrator, name: str, owner: str) -> str:
    """Deploy and wait for the driver to finish; return the run id."""

    async def scenario():
        receipt = await orchestrator.deploy(DeployPayload(name=name), owner)
        assert receipt.status == "queued"
        while orchestrator.registry.is_active(receipt.run_id):
            await asyncio.sleep(0.01)
        return receipt.run_id

    return asyncio.run(scenario())


class TestParseDeployPayload:
    def test_wrapped_payload(self):
        payload = parse_deploy_payload({"payload": {"name": "alpha", "repo": "r"}})
        assert payload.name == "alpha"
        assert payload.repo == "r"

    def test_bare_payload(self):
        assert parse_deploy_payload({"name": "alpha"}).name == "alpha"

    def test_null_optional_fields(self):
        payload = parse_deploy_payload({"payload": {"name": "alpha", "framework": None}})
        assert payload.framework == ""

    @pytest.mark.parametrize(
        "body",
        [None, [], "alpha", {}, {"payload": {}}, {"payload": {"name": ""}},
         {"payload": {"name": "   "}}, {"payload": {"name": 7}}, {"payload": "alpha"}],
    )
    def test_missing_name(self, body):
        with pytest.raises(FieldValidationError, match="payload.name required"):
            parse_deploy_payload(body)


class TestDeploy:
    def test_deploy_runs_to_success(self, orchestrator: Orchestrator):
        run_id = _deploy(orchestrator, "alpha", "alice")
        run, logs = orchestrator.get_run_detail(run_id, "alice")
        assert run.status == RunStatus.SUCCESS
        assert logs[0].message == "Build queued"
        assert logs[-1].message.startswith("Build finished successfully in ")

    def test_redeploy_reuses_project(self, orchestrator: Orchestrator):
        first = _deploy(orchestrator, "alpha", "alice")
        second = _deploy(orchestrator, "alpha", "alice")
        assert first != second
        projects = orchestrator.list_projects("alice")
        assert len(projects) == 1
        assert projects[0].visitors == 2
        assert [r.id for r in orchestrator.list_runs("alice", projects[0].id)] == [second, first]

    def test_shutdown_with_nothing_running(self, orchestrator: Orchestrator):
        asyncio.run(orchestrator.shutdown())


class TestOwnership:
    def test_other_users_run_is_forbidden(self, orchestrator: Orchestrator):
        run_id = _deploy(orchestrator, "alpha", "alice")
        with pytest.raises(ForbiddenError):
            orchestrator.get_run_detail(run_id, "bob")

    def test_unknown_run(self, orchestrator: Orchestrator):
        with pytest.raises(NotFoundError):
            orchestrator.authorize_run("ghost", "alice")

    def test_list_runs_scoped_to_owner(self, orchestrator: Orchestrator):
        alice_run = _deploy(orchestrator, "alpha", "alice")
        bob_run = _deploy(orchestrator, "beta", "bob")
        assert [r.id for r in orchestrator.list_runs("alice")] == [alice_run]
        assert [r.id for r in orchestrator.list_runs("bob")] == [bob_run]

    def test_list_runs_for_foreign_project(self, orchestrator: Orchestrator):
        _deploy(orchestrator, "alpha", "alice")
        project = orchestrator.list_projects("alice")[0]
        with pytest.raises(ForbiddenError):
            orchestrator.list_runs("bob", project.id)
        with pytest.raises(NotFoundError):
            orchestrator.list_runs("bob", "ghost")


class TestAppendLog:
    def test_appends_with_default_level(self, orchestrator: Orchestrator):
        run_id = _deploy(orchestrator, "alpha", "alice")
        entry = orchestrator.append_log(run_id, None, "deployed by hook")
        assert entry.level == LogLevel.INFO
        _, logs = orchestrator.get_run_detail(run_id, "alice")
        assert logs[-1].message == "deployed by hook"

    @pytest.mark.parametrize("message", [None, ""])
    def test_message_required(self, orchestrator: Orchestrator, message):
        run_id = _deploy(orchestrator, "alpha", "alice")
        before = len(orchestrator.logs.read(run_id))
        with pytest.raises(FieldValidationError, match="message required"):
            orchestrator.append_log(run_id, "info", message)
        assert len(orchestrator.logs.read(run_id)) == before

    def test_unknown_level(self, orchestrator: Orchestrator):
        run_id = _deploy(orchestrator, "alpha", "alice")
        with pytest.raises(FieldValidationError, match="unknown level: fatal"):
            orchestrator.append_log(run_id, "fatal", "boom")

    def test_unknown_run(self, orchestrator: Orchestrator):
        with pytest.raises(NotFoundError):
            orchestrator.append_log("ghost", "info", "hello")
