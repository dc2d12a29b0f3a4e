"""Identity bridge — resolves bearer tokens to callers.

Token validation is delegated to an ``IdentityProvider``.  A missing,
malformed, or rejected token resolves to ``None`` (anonymous); only
endpoints that require a caller turn that into a 401.

Providers:
1. **SupabaseIdentityProvider** — ``client.auth.get_user(token)``.
2. **StaticTokenIdentityProvider** — fixed token -> user id map for local
   development and tests (rejected in production by the guard).
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from dexpress.models.identity import AuthenticatedUser

if TYPE_CHECKING:
    from supabase import Client

    from dexpress.config import ProdConfig

logger = logging.getLogger(__name__)


def parse_bearer(header: str | None) -> str | None:
    """Return the token from an ``Authorization: Bearer <token>`` header."""
    if not header or not header.startswith("Bearer "):
        return None
    token = header[len("Bearer "):].strip()
    return token or None


@runtime_checkable
class IdentityProvider(Protocol):
    """Protocol for bearer token validation backends."""

    def get_user(self, token: str) -> AuthenticatedUser | None:
        """Return the caller for a valid token, ``None`` otherwise."""
        ...


class SupabaseIdentityProvider:
    """Validates tokens against Supabase Auth."""

    def __init__(self, client: Client) -> None:
        self._client = client

    def get_user(self, token: str) -> AuthenticatedUser | None:
        try:
            response = self._client.auth.get_user(token)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Token verification failed: %s", exc)
            return None
        user = getattr(response, "user", None) if response else None
        if user is None:
            return None
        return AuthenticatedUser(id=str(user.id), email=getattr(user, "email", None))


class StaticTokenIdentityProvider:
    """Accepts a fixed set of tokens.

    Parameters
    ----------
    tokens:
        Mapping of bearer token to user id.
    """

    def __init__(self, tokens: Mapping[str, str]) -> None:
        self._tokens = dict(tokens)

    def get_user(self, token: str) -> AuthenticatedUser | None:
        user_id = self._tokens.get(token)
        return AuthenticatedUser(id=user_id) if user_id else None


def build_identity_provider(
    config: ProdConfig, client: Client | None = None
) -> IdentityProvider:
    """Pick the provider matching the configured store backend."""
    if config.store_backend == "supabase":
        if client is None:
            from dexpress.bridge.supabase_store import create_supabase_client

            client = create_supabase_client(config)
        return SupabaseIdentityProvider(client)
    if not config.dev_tokens:
        logger.warning("No dev_tokens configured; every request will be anonymous.")
    return StaticTokenIdentityProvider(config.dev_tokens)
