"""Request-scoped dependencies: services from app state and the caller."""

from __future__ import annotations

from fastapi import Depends, Request

from dexpress.bridge.chat_proxy import ChatProxy
from dexpress.bridge.identity import IdentityProvider, parse_bearer
from dexpress.core.errors import NotAuthenticatedError
from dexpress.core.orchestrator import Orchestrator
from dexpress.models.identity import AuthenticatedUser


def get_orchestrator(request: Request) -> Orchestrator:
    return request.app.state.orchestrator


def get_chat_proxy(request: Request) -> ChatProxy:
    return request.app.state.chat


def current_user(request: Request) -> AuthenticatedUser | None:
    """Resolve the bearer token, if any.  Anonymous is not an error here."""
    token = parse_bearer(request.headers.get("authorization"))
    if token is None:
        return None
    identity: IdentityProvider = request.app.state.identity
    return identity.get_user(token)


def require_user(
    user: AuthenticatedUser | None = Depends(current_user),
) -> AuthenticatedUser:
    if user is None:
        raise NotAuthenticatedError()
    return user
