"""Server-sent event stream of a run's status and log tail.

The stream is a projection over the store: it polls the run record and
the log stream, emits what is new, and closes once the run is terminal
and the log tail has been flushed.  Because it only reads the store, it
works no matter which process is driving the run.

Events
------
- ``status``: the run record, whenever its status changes
- ``log``: one log entry, in append order
- ``end``: final status; the stream closes after it
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator
from typing import Any

from dexpress.core.orchestrator import Orchestrator
from dexpress.models.runs import RunStatus


def format_sse(event: str, data: Any) -> str:
    return f"event: {event}\ndata: {json.dumps(data)}\n\n"


async def run_event_stream(
    orchestrator: Orchestrator, run_id: str, poll_interval: float = 0.5
) -> AsyncIterator[str]:
    """Yield SSE frames for a run until it reaches a terminal state."""
    sent = 0
    last_status: RunStatus | None = None
    terminal_polls = 0

    while True:
        run = await asyncio.to_thread(orchestrator.machine.get, run_id)
        if run is None:
            yield format_sse("end", {"status": None})
            return

        if run.status != last_status:
            last_status = run.status
            yield format_sse("status", run.model_dump(mode="json"))

        entries = await asyncio.to_thread(orchestrator.logs.read_since, run_id, sent)
        for entry in entries:
            yield format_sse("log", entry.model_dump(mode="json"))
        sent += len(entries)

        if run.is_terminal and not orchestrator.registry.is_active(run_id):
            # The closing log line lands just after the terminal transition;
            # give it one more poll before closing.
            terminal_polls += 1
            if terminal_polls > 1:
                yield format_sse("end", {"status": run.status.value})
                return

        await asyncio.sleep(poll_interval)
