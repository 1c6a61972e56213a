"""In-memory generation queue that runs one prompt at a time."""

import asyncio
import logging
import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable

from pydantic import BaseModel, Field

from config import QueueConfig

logger = logging.getLogger(__name__)


class ItemStatus(str, Enum):
    """Status of a queued prompt."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class ItemSource(str, Enum):
    """Where a queued prompt came from."""
    USER = "user"
    CONTEXTUAL = "contextual"


class QueueItem(BaseModel):
    """A prompt waiting for, or having gone through, generation."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    prompt: str = Field(..., min_length=1)
    source: ItemSource = ItemSource.USER
    status: ItemStatus = ItemStatus.PENDING
    created_at: datetime = Field(default_factory=datetime.now)
    started_at: datetime | None = None
    completed_at: datetime | None = None
    result: dict[str, Any] | None = None
    error: str | None = None


class QueueState(BaseModel):
    """Snapshot of the queue."""
    current: QueueItem | None = None
    pending: list[QueueItem] = Field(default_factory=list)
    completed: list[QueueItem] = Field(default_factory=list)


Processor = Callable[[QueueItem], Awaitable[dict | None]]
Listener = Callable[[str, dict], None]


class GenerationQueue:
    """Serializes prompt processing; the drain loop awaits only the processor.

    The processor returns once the item's initial image has settled, so
    background upgrades of one item overlap with the next item.
    """

    def __init__(self, processor: Processor, config: QueueConfig | None = None):
        """
        Args:
            processor: Coroutine run for each item; returns a result dict whose
                "success" key (default True) decides completed vs failed
            config: Queue limits
        """
        self.processor = processor
        self.config = config or QueueConfig()
        self._state = QueueState()
        self._listeners: list[Listener] = []
        self._drain_task: asyncio.Task | None = None

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def notify(self, event: str, data: dict) -> None:
        """Notify all listeners of an event.

        Iterates a snapshot so listeners may unsubscribe while handling.
        """
        for listener in list(self._listeners):
            try:
                listener(event, data)
            except Exception as e:
                logger.exception(f"Error in queue listener for event {event}: {e}")

    def _notify_updated(self) -> None:
        self.notify("queue_updated", {
            "pending_count": len(self._state.pending),
            "current": self._state.current.model_dump(mode="json") if self._state.current else None,
        })

    @property
    def is_idle(self) -> bool:
        return self._drain_task is None or self._drain_task.done()

    def enqueue(self, prompt: str, source: ItemSource = ItemSource.USER) -> QueueItem | None:
        """
        Add a prompt to the queue and start draining if idle.

        Returns:
            The queued item, or None for a contextual prompt refused because
            the backlog is already over its limit
        """
        if source == ItemSource.CONTEXTUAL and len(self._state.pending) > self.config.max_contextual_backlog:
            logger.info(f"Queue backlog is {len(self._state.pending)}, skipping contextual prompt")
            return None

        item = QueueItem(prompt=prompt, source=source)
        self._state.pending.append(item)
        logger.info(f"{prompt!r} added to queue, {len(self._state.pending)} item(s) waiting")
        self._notify_updated()

        if self.is_idle:
            self._drain_task = asyncio.create_task(self._drain())
        return item

    async def _drain(self) -> None:
        while self._state.pending:
            item = self._state.pending.pop(0)
            item.status = ItemStatus.RUNNING
            item.started_at = datetime.now()
            self._state.current = item
            self.notify("item_started", item.model_dump(mode="json"))

            try:
                result = await self.processor(item) or {}
            except Exception as e:
                logger.exception(f"Processing failed for {item.prompt!r}")
                self._finish(item, ItemStatus.FAILED, error=str(e))
                continue

            if result.get("success", True):
                self._finish(item, ItemStatus.COMPLETED, result=result)
            else:
                self._finish(item, ItemStatus.FAILED, result=result, error=result.get("error") or "Generation failed")

        self._state.current = None
        self._notify_updated()

    def _finish(self, item: QueueItem, status: ItemStatus, result: dict | None = None, error: str | None = None) -> None:
        item.status = status
        item.completed_at = datetime.now()
        item.result = result
        item.error = error

        self._state.completed.insert(0, item)
        self._state.completed = self._state.completed[:self.config.completed_history]
        self._state.current = None

        if status == ItemStatus.COMPLETED:
            self.notify("item_completed", {"item_id": item.id, "result": result})
        else:
            self.notify("item_failed", {"item_id": item.id, "error": error, "result": result})
        self._notify_updated()

    def clear_pending(self) -> int:
        """
        Drop every item that has not started yet.

        Returns:
            Number of items cleared
        """
        cleared = self._state.pending
        self._state.pending = []
        for item in cleared:
            item.status = ItemStatus.CANCELLED
        if cleared:
            self.notify("queue_cleared", {"count": len(cleared)})
            self._notify_updated()
        return len(cleared)

    async def join(self) -> None:
        """Wait until the queue has drained."""
        while not self.is_idle:
            await asyncio.shield(self._drain_task)

    def get_state(self) -> QueueState:
        return self._state.model_copy(deep=True)

    async def aclose(self) -> None:
        if self._drain_task is not None and not self._drain_task.done():
            self._drain_task.cancel()
            try:
                await self._drain_task
            except asyncio.CancelledError:
                pass
