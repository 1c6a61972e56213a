"""Mood board pipeline: wires the generation components together.

Provides a unified interface used by both the CLI and the web server.
Image results are reported through the generation queue's listeners.
"""

import asyncio
import logging
import uuid
from typing import Iterable

from backends.base import BackendAdapter
from backends.job_poller import JobPoller
from backends.registry import build_adapters
from config import Settings
from context_history import ContextHistory
from generation_models import BackendId, GeneratedImage, Quality
from generation_queue import GenerationQueue, ItemSource, QueueItem
from orchestrator import ProgressiveOrchestrator, RunResult
from prompt_enhancer import PromptEnhancer
from prompt_sanitizer import sanitize_or_fallback
from service_selector import ServicePriority, ServiceSelector

logger = logging.getLogger(__name__)


class MoodBoardPipeline:
    """Everything needed to turn prompts into a growing wall of images."""

    def __init__(
        self,
        settings: Settings,
        adapters: dict[BackendId, BackendAdapter],
        enhancer: PromptEnhancer | None = None,
        sleep=asyncio.sleep,
    ):
        self.settings = settings
        self.adapters = adapters
        self.priority = ServicePriority(settings.service_priority)
        self.poller = JobPoller(settings.polling, sleep=sleep)
        self.selector = ServiceSelector(adapters, self.priority, self.poller)
        self.orchestrator = ProgressiveOrchestrator.from_config(self.selector, settings.progressive, sleep=sleep)
        self.enhancer = enhancer or PromptEnhancer(settings.llm)
        self.history = ContextHistory(settings.context.max_history)
        self.queue = GenerationQueue(self.process, settings.queue)
        self._background: set[asyncio.Task] = set()

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> "MoodBoardPipeline":
        return cls(settings, build_adapters(settings), **kwargs)

    def _on_initial(self, image: GeneratedImage) -> None:
        self.queue.notify("image_initial", image.to_event())

    def _on_upgrade(self, image: GeneratedImage) -> None:
        self.queue.notify("image_upgrade", image.to_event())

    def submit(self, prompt: str) -> QueueItem:
        """
        Queue a user prompt.

        Raises:
            ValueError: If the prompt is empty
        """
        prompt = (prompt or "").strip()
        if not prompt:
            raise ValueError("Prompt is required")
        return self.queue.enqueue(prompt, ItemSource.USER)

    async def submit_contextual(self) -> QueueItem | None:
        """Queue a prompt inspired by recent history, if history allows it."""
        if not self.history.can_start_contextual(self.settings.context.min_images_before_start):
            logger.debug("Not enough history for a contextual prompt yet")
            return None

        prompt = await self.enhancer.suggest_contextual_prompt(self.history.recent_prompts())
        prompt = sanitize_or_fallback(prompt)
        return self.queue.enqueue(prompt, ItemSource.CONTEXTUAL)

    async def process(self, item: QueueItem) -> dict:
        """
        Run one queued prompt until its initial image has settled.

        Upgrades and the enhanced variant continue in the background.

        Returns:
            Result dict for the queue; "success" is False on total failure
        """
        result = await self.orchestrator.run(item.prompt, self._on_initial, self._on_upgrade)

        if not result.success:
            return self._failure_report(result)

        self.history.add(item.prompt)
        self.history.add_prompt(item.prompt)

        if self.settings.progressive.background_enhancement and self.settings.llm.enabled:
            self._spawn(self._enhanced_variant(item.prompt))

        config_errors = result.configuration_errors
        if config_errors:
            details = "; ".join(f"{f.backend.value}: {f.message}" for f in config_errors)
            logger.warning(f"Generated {item.prompt!r} after skipping misconfigured backends: {details}")

        return {
            "success": True,
            "slot_id": result.slot_id,
            "quality": result.initial.quality.value,
            "backend": result.initial.backend.value if result.initial.backend else None,
            "configuration_errors": [f.model_dump(mode="json") for f in config_errors],
        }

    def _failure_report(self, result: RunResult) -> dict:
        config_errors = result.configuration_errors
        error = result.error or "Generation failed"
        if config_errors:
            details = "; ".join(f"{f.backend.value}: {f.message}" for f in config_errors)
            error = f"{error}. Configuration errors: {details}"
            logger.error(error)
        return {
            "success": False,
            "error": error,
            "failures": [f.model_dump(mode="json") for f in result.failures],
        }

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def _enhanced_variant(self, prompt: str) -> None:
        """Generate an LLM-enhanced rendition of a prompt as a new board item."""
        try:
            enhanced = await self.enhancer.enhance(prompt)
            if not enhanced or enhanced.strip().lower() == prompt.strip().lower():
                return
            self.history.add(prompt, enhanced)

            outcome = await self.selector.generate_with_report(enhanced, Quality.MEDIUM)
            if not outcome.succeeded:
                logger.warning(f"Enhanced variant failed for {prompt!r}")
                return

            image = GeneratedImage(
                slot_id=uuid.uuid4().hex[:12],
                handle=outcome.handle,
                prompt=f"(Enhanced) {prompt}",
                quality=Quality.MEDIUM,
                backend=outcome.backend,
            )
            self.history.add_prompt(enhanced)
            self._on_initial(image)
        except Exception:
            logger.exception(f"Background enhancement failed for {prompt!r}")

    async def run_contextual_loop(self, stop_event: asyncio.Event) -> None:
        """Periodically queue contextual prompts until stop_event is set."""
        if not self.settings.context.enabled:
            return
        interval = self.settings.context.interval
        while not stop_event.is_set():
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=interval)
                break
            except asyncio.TimeoutError:
                pass
            if self.queue.is_idle:
                await self.submit_contextual()

    def set_priority(self, order: Iterable) -> list[BackendId]:
        """
        Replace the backend priority; affects fallback attempts started afterwards.

        Raises:
            ValueError: If a backend name is unknown or the list is empty
        """
        return self.priority.set(order)

    async def wait_for_background(self) -> None:
        """Wait for queued items, upgrades and enhanced variants to finish."""
        await self.queue.join()
        await self.orchestrator.wait_for_background()
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def aclose(self) -> None:
        await self.queue.aclose()
        self.orchestrator.cancel_background()
        for task in list(self._background):
            task.cancel()
        for adapter in self.adapters.values():
            await adapter.aclose()
        await self.enhancer.aclose()
