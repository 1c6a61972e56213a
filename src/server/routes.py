"""API routes for the web server."""

import asyncio
import json
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, HTTPException, Request
from sse_starlette.sse import EventSourceResponse

from generation_models import BackendId

from .app import get_pipeline, get_shutdown_event
from .models import (
    PriorityRequest,
    PriorityResponse,
    PromptRequest,
    QueuedResponse,
    StatusResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ----------------------------------------------------------------------------
# Queue Endpoints
# ----------------------------------------------------------------------------

@router.post("/api/prompts", response_model=QueuedResponse)
async def submit_prompt(req: PromptRequest):
    """Queue a prompt for progressive generation."""
    if not req.prompt.strip():
        raise HTTPException(status_code=400, detail="Prompt is required")

    item = get_pipeline().submit(req.prompt)
    return QueuedResponse(
        item_id=item.id,
        prompt=item.prompt,
        message=f"'{item.prompt}' added to queue",
    )


@router.post("/api/contextual", response_model=QueuedResponse)
async def submit_contextual():
    """Queue a prompt inspired by recent generations."""
    item = await get_pipeline().submit_contextual()
    if item is None:
        return QueuedResponse(item_id=None, prompt=None, message="No contextual prompt queued")
    return QueuedResponse(
        item_id=item.id,
        prompt=item.prompt,
        message=f"Contextual prompt '{item.prompt}' added to queue",
    )


@router.get("/api/status", response_model=StatusResponse)
async def get_status():
    """Get current queue status."""
    pipeline = get_pipeline()
    state = pipeline.queue.get_state()

    return StatusResponse(
        queue_length=len(state.pending) + (1 if state.current else 0),
        current=state.current,
        pending_count=len(state.pending),
        completed_count=len(state.completed),
        pending_upgrades=pipeline.orchestrator.pending_upgrades,
        history_size=len(pipeline.history.prompts),
    )


@router.delete("/api/queue", response_model=QueuedResponse)
async def clear_queue():
    """Clear all pending prompts."""
    count = get_pipeline().queue.clear_pending()
    return QueuedResponse(item_id=None, prompt=None, message=f"Cleared {count} pending prompts")


# ----------------------------------------------------------------------------
# Service Priority Endpoints
# ----------------------------------------------------------------------------

@router.get("/api/priority", response_model=PriorityResponse)
async def get_priority():
    """Get the current backend priority order."""
    order = get_pipeline().priority.snapshot()
    return PriorityResponse(
        order=[b.value for b in order],
        available=[b.value for b in BackendId],
    )


@router.put("/api/priority", response_model=PriorityResponse)
async def set_priority(req: PriorityRequest):
    """Replace the backend priority order."""
    try:
        order = get_pipeline().set_priority(req.order)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return PriorityResponse(
        order=[b.value for b in order],
        available=[b.value for b in BackendId],
    )


# ----------------------------------------------------------------------------
# Events
# ----------------------------------------------------------------------------

@router.get("/api/events")
async def sse_events(request: Request):
    """SSE endpoint for queue and image events."""
    pipeline = get_pipeline()
    queue = asyncio.Queue(maxsize=pipeline.settings.queue.sse_queue_size)
    timeout = pipeline.settings.queue.sse_timeout

    def on_event(event: str, data: dict):
        try:
            queue.put_nowait({"event": event, "data": data})
        except asyncio.QueueFull:
            logger.warning(f"SSE queue full, dropped event: {event}")

    # Register listener BEFORE getting initial state to avoid race condition
    pipeline.queue.add_listener(on_event)

    async def event_generator() -> AsyncGenerator:
        try:
            shutdown = get_shutdown_event()
        except RuntimeError:
            shutdown = None

        try:
            state = pipeline.queue.get_state()
            yield {
                "event": "status",
                "data": json.dumps({
                    "pending_count": len(state.pending),
                    "current": state.current.model_dump(mode="json") if state.current else None,
                }),
            }

            while True:
                if shutdown and shutdown.is_set():
                    break
                if await request.is_disconnected():
                    break

                try:
                    msg = await asyncio.wait_for(queue.get(), timeout=timeout)
                    yield {
                        "event": msg["event"],
                        "data": json.dumps(msg["data"], default=str),
                    }
                except asyncio.TimeoutError:
                    # Send keepalive
                    yield {"event": "ping", "data": ""}
        finally:
            pipeline.queue.remove_listener(on_event)

    return EventSourceResponse(event_generator())
