"""Project records and deploy-time upsert.

Projects are keyed by name.  The first deploy of a name creates the
project; later deploys refresh repo/framework/region and claim an
ownerless project for the caller.  ``owner`` is written at most once.
"""

from __future__ import annotations

import logging
import re
import uuid

from dexpress.core.errors import StoreConflictError
from dexpress.core.store import PROJECTS_TABLE, DataStore, utc_timestamp
from dexpress.models.projects import DeployPayload, Project

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


def derive_domain(name: str, suffix: str = ".dexpress.app") -> str:
    """``"my app"`` -> ``"my-app.dexpress.app"``."""
    return _WHITESPACE.sub("-", name) + suffix


class ProjectService:
    """Reads and deploy-time writes of project rows.

    Parameters
    ----------
    store:
        The shared data store.
    domain_suffix:
        Appended to the slugged project name to form its domain.
    """

    def __init__(self, store: DataStore, domain_suffix: str = ".dexpress.app") -> None:
        self._store = store
        self._domain_suffix = domain_suffix

    def get(self, project_id: str) -> Project | None:
        row = self._store.select_one(PROJECTS_TABLE, {"id": project_id})
        return Project.model_validate(row) if row else None

    def get_by_name(self, name: str) -> Project | None:
        row = self._store.select_one(PROJECTS_TABLE, {"name": name})
        return Project.model_validate(row) if row else None

    def list_for_owner(self, owner: str) -> list[Project]:
        """Return the owner's projects, newest first."""
        rows = self._store.select(
            PROJECTS_TABLE,
            filters={"owner": owner},
            order_by="created_at",
            descending=True,
        )
        return [Project.model_validate(row) for row in rows]

    def upsert_for_deploy(self, payload: DeployPayload, owner: str) -> Project:
        """Create the project named in ``payload`` or refresh the existing one.

        Two concurrent first deploys of the same name race on the unique
        name constraint; the loser re-reads the winner's row and updates it.
        """
        existing = self.get_by_name(payload.name)
        if existing is None:
            try:
                return self._insert(payload, owner)
            except StoreConflictError:
                logger.info("Project %r created concurrently; updating instead", payload.name)
                existing = self.get_by_name(payload.name)
                if existing is None:
                    raise
        return self._refresh(existing, payload, owner)

    def _insert(self, payload: DeployPayload, owner: str) -> Project:
        row = self._store.insert(
            PROJECTS_TABLE,
            {
                "id": str(uuid.uuid4()),
                "name": payload.name,
                "repo": payload.repo,
                "framework": payload.framework,
                "region": payload.region,
                "domain": derive_domain(payload.name, self._domain_suffix),
                "visitors": 0,
                "owner": owner,
                "created_at": utc_timestamp(),
            },
        )
        logger.info("Created project %r (%s)", payload.name, row["id"])
        return Project.model_validate(row)

    def _refresh(self, project: Project, payload: DeployPayload, owner: str) -> Project:
        if not project.owner:
            project = self._claim(project, owner)

        rows = self._store.update(
            PROJECTS_TABLE,
            {
                "repo": payload.repo or project.repo,
                "framework": payload.framework or project.framework,
                "region": payload.region or project.region,
            },
            {"id": project.id},
        )
        return Project.model_validate(rows[0]) if rows else project

    def _claim(self, project: Project, owner: str) -> Project:
        """Set the owner of an ownerless project, compare-and-set on the
        owner value that was read.  A lost race keeps the winner's owner."""
        rows = self._store.update(
            PROJECTS_TABLE, {"owner": owner}, {"id": project.id, "owner": project.owner}
        )
        if rows:
            logger.info("Project %s claimed by %s", project.id, owner)
            return Project.model_validate(rows[0])

        current = self.get(project.id)
        logger.info(
            "Project %s was claimed concurrently by %s; owner kept",
            project.id,
            current.owner if current else None,
        )
        return current or project
