"""FastAPI application factory.

Builds the service graph once per process (store, orchestrator, identity
provider, chat proxy) and hangs it on ``app.state``.  Collaborators can be
injected, which is how tests run the API against a temporary SQLite store.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from dexpress import __version__
from dexpress.api.errors import register_exception_handlers
from dexpress.api.routes import router
from dexpress.bridge.chat_proxy import ChatProxy
from dexpress.bridge.identity import IdentityProvider, build_identity_provider
from dexpress.config import ProdConfig
from dexpress.core.orchestrator import Orchestrator
from dexpress.core.production_guard import enforce_production_constraints

logger = logging.getLogger(__name__)


def create_app(
    config: ProdConfig | None = None,
    *,
    orchestrator: Orchestrator | None = None,
    identity: IdentityProvider | None = None,
    chat: ChatProxy | None = None,
) -> FastAPI:
    """Create the dexpress API.

    Parameters
    ----------
    config:
        Service configuration.  Defaults to the environment.
    orchestrator:
        Pre-built orchestrator; built from ``config`` if not provided.
    identity:
        Bearer token validator; chosen from ``config`` if not provided.
    chat:
        Chat passthrough; built from ``config`` if not provided.
    """
    config = config or (orchestrator.config if orchestrator else ProdConfig())

    # Fail fast: production guard must pass before anything is served
    enforce_production_constraints(config)

    orchestrator = orchestrator or Orchestrator(config)
    if identity is None:
        client = getattr(orchestrator.store, "client", None)
        identity = build_identity_provider(config, client)
    chat = chat or ChatProxy.from_config(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        reaped = await asyncio.to_thread(orchestrator.reap_stale_runs)
        if reaped:
            logger.warning("Failed %d stale run(s) at startup", len(reaped))
        yield
        await orchestrator.shutdown()

    app = FastAPI(title="dexpress", version=__version__, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.config = config
    app.state.orchestrator = orchestrator
    app.state.identity = identity
    app.state.chat = chat

    register_exception_handlers(app)
    app.include_router(router)
    return app
