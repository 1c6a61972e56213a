"""Pydantic models for the web server API."""

from pydantic import BaseModel, Field

from generation_queue import QueueItem


# API Request Models

class PromptRequest(BaseModel):
    """Request to queue a prompt for generation."""
    prompt: str = Field(..., min_length=1, max_length=5000)


class PriorityRequest(BaseModel):
    """Request to replace the backend priority order."""
    order: list[str] = Field(..., min_length=1)


# API Response Models

class QueuedResponse(BaseModel):
    """Response after queueing a prompt."""
    item_id: str | None
    prompt: str | None
    message: str


class StatusResponse(BaseModel):
    """Response for queue status endpoint."""
    queue_length: int
    current: QueueItem | None
    pending_count: int
    completed_count: int
    pending_upgrades: int
    history_size: int


class PriorityResponse(BaseModel):
    """Current backend priority order."""
    order: list[str]
    available: list[str]
