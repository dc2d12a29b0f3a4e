"""HTTP routes.

Plain ``def`` handlers do blocking store reads and run in FastAPI's
threadpool.  Deploy, chat and the event stream are ``async`` because they
spawn driver tasks, await the upstream, or stream.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Body, Depends, Query
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, ConfigDict

from dexpress.api.dependencies import get_chat_proxy, get_orchestrator, require_user
from dexpress.api.streaming import run_event_stream
from dexpress.bridge.chat_proxy import ChatProxy
from dexpress.core.orchestrator import Orchestrator, parse_deploy_payload
from dexpress.models.identity import AuthenticatedUser

router = APIRouter()


class AppendLogRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    level: str | None = None
    message: str | None = None


class ChatRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    messages: list[dict[str, Any]] | None = None
    model: str | None = None
    max_tokens: int | None = None


@router.get("/health")
def health() -> dict[str, Any]:
    return {"ok": True, "now": datetime.now(timezone.utc).isoformat()}


@router.get("/api/projects")
def list_projects(
    user: AuthenticatedUser = Depends(require_user),
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    projects = orchestrator.list_projects(user.id)
    return {"projects": [p.model_dump(mode="json") for p in projects]}


@router.get("/api/runs")
def list_runs(
    project_id: str | None = Query(default=None),
    user: AuthenticatedUser = Depends(require_user),
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    runs = orchestrator.list_runs(user.id, project_id)
    return {"runs": [r.model_dump(mode="json") for r in runs]}


@router.get("/api/runs/{run_id}")
def get_run(
    run_id: str,
    user: AuthenticatedUser = Depends(require_user),
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    run, logs = orchestrator.get_run_detail(run_id, user.id)
    return {
        "run": run.model_dump(mode="json"),
        "logs": [entry.model_dump(mode="json") for entry in logs],
    }


@router.get("/api/runs/{run_id}/events")
async def stream_run(
    run_id: str,
    user: AuthenticatedUser = Depends(require_user),
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> StreamingResponse:
    await run_in_threadpool(orchestrator.authorize_run, run_id, user.id)
    return StreamingResponse(
        run_event_stream(
            orchestrator, run_id, orchestrator.config.stream_poll_interval_seconds
        ),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache"},
    )


@router.post("/api/logs/{run_id}")
def append_log(
    run_id: str,
    body: AppendLogRequest,
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    entry = orchestrator.append_log(run_id, body.level, body.message)
    return {"ok": True, "log": entry.model_dump(mode="json")}


@router.post("/api/deploy")
async def deploy(
    body: Any = Body(default=None),
    user: AuthenticatedUser = Depends(require_user),
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    payload = parse_deploy_payload(body)
    receipt = await orchestrator.deploy(payload, user.id)
    return {
        "runId": receipt.run_id,
        "projectId": receipt.project_id,
        "status": receipt.status,
    }


@router.post("/api/chat")
async def chat(
    body: ChatRequest,
    proxy: ChatProxy = Depends(get_chat_proxy),
) -> JSONResponse:
    status_code, data = await proxy.complete(
        body.messages, model=body.model, max_tokens=body.max_tokens
    )
    return JSONResponse(status_code=status_code, content=data)
