"""Authenticated caller identity."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class AuthenticatedUser(BaseModel):
    """A caller whose bearer token was accepted by the identity provider."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str | None = None
