"""Progressive multi-quality generation for a single prompt.

The first quality level that succeeds is published as the initial image of a
new slot; every later success is published as an upgrade of that slot. The
caller of ``run`` waits only for the initial image, the remaining levels are
worked through by a background task.
"""

import asyncio
import inspect
import logging
import uuid
from dataclasses import dataclass, field
from typing import AsyncIterator, Awaitable, Callable, Iterable

from config import ProgressiveConfig
from generation_models import BackendFailure, FallbackOutcome, GeneratedImage, Quality
from quality_profiles import parse_sequence
from service_selector import ServiceSelector

logger = logging.getLogger(__name__)

ImageCallback = Callable[[GeneratedImage], Awaitable[None] | None]


@dataclass
class RunResult:
    """Result of one orchestration run, as seen by the caller of ``run``."""

    success: bool
    prompt: str
    slot_id: str | None = None
    initial: GeneratedImage | None = None
    failures: list[BackendFailure] = field(default_factory=list)
    error: str | None = None
    background: asyncio.Task | None = None

    @property
    def configuration_errors(self) -> list[BackendFailure]:
        return [f for f in self.failures if f.kind == "configuration"]


class ProgressiveOrchestrator:
    """Runs a prompt through the configured quality sequence."""

    def __init__(
        self,
        selector: ServiceSelector,
        sequence: Iterable = (Quality.LOW, Quality.MEDIUM, Quality.HIGH, Quality.ENHANCED_HIGH),
        delay: float = 0.2,
        sleep=asyncio.sleep,
    ):
        """
        Args:
            selector: Fallback chain used for every quality level
            sequence: Quality levels in the order they are requested
            delay: Seconds between one request finishing and the next starting
            sleep: Awaitable sleep function (injectable for tests)
        """
        self.selector = selector
        self.sequence = parse_sequence(sequence)
        self.delay = delay
        self._sleep = sleep
        self._background: set[asyncio.Task] = set()

    @classmethod
    def from_config(cls, selector: ServiceSelector, config: ProgressiveConfig, **kwargs) -> "ProgressiveOrchestrator":
        # Without progressive generation a prompt gets a single MEDIUM image
        sequence = config.sequence if config.enabled else (Quality.MEDIUM,)
        return cls(selector, sequence=sequence, delay=config.delay_between_generations, **kwargs)

    @property
    def pending_upgrades(self) -> int:
        return len(self._background)

    async def _request(self, prompt: str, quality: Quality, index: int) -> FallbackOutcome:
        if index > 0 and self.delay > 0:
            await self._sleep(self.delay)
        return await self.selector.generate_with_report(prompt, quality)

    async def _publish(self, callback: ImageCallback | None, image: GeneratedImage) -> None:
        if callback is None:
            return
        try:
            result = callback(image)
            if inspect.isawaitable(result):
                await result
        except Exception:
            kind = "upgrade" if image.is_upgrade else "initial"
            logger.exception(f"Error in {kind} image callback for slot {image.slot_id}")

    async def run(
        self,
        prompt: str,
        on_initial: ImageCallback | None = None,
        on_upgrade: ImageCallback | None = None,
    ) -> RunResult:
        """
        Generate the initial image and schedule the remaining upgrades.

        Returns once the initial image is published or every quality level
        has failed. Never raises for backend failures.

        Args:
            prompt: Prompt to render
            on_initial: Called once with the first successful image
            on_upgrade: Called with each later image of the same slot

        Returns:
            RunResult; ``background`` is the upgrade task when one was started
        """
        result = RunResult(success=False, prompt=prompt)
        logger.info(f"Starting progressive generation for: {prompt!r}")

        for index, quality in enumerate(self.sequence):
            outcome = await self._request(prompt, quality, index)
            result.failures.extend(outcome.failures)

            if not outcome.succeeded:
                logger.warning(f"No {quality.value} image for {prompt!r}, trying next quality level")
                continue

            result.slot_id = uuid.uuid4().hex[:12]
            result.initial = GeneratedImage(
                slot_id=result.slot_id,
                handle=outcome.handle,
                prompt=prompt,
                quality=quality,
                backend=outcome.backend,
            )
            result.success = True
            logger.info(f"Published initial {quality.value} image for slot {result.slot_id}")
            await self._publish(on_initial, result.initial)

            remaining = self.sequence[index + 1:]
            if remaining:
                result.background = self._spawn(self._upgrade(result, remaining, on_upgrade))
            return result

        result.error = "Failed to generate image at any quality level"
        logger.error(f"{result.error}: {prompt!r}")
        return result

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def _upgrade(self, result: RunResult, remaining: list[Quality], on_upgrade: ImageCallback | None) -> int:
        published = 0
        try:
            for quality in remaining:
                outcome = await self._request(result.prompt, quality, index=1)
                result.failures.extend(outcome.failures)
                if not outcome.succeeded:
                    logger.warning(f"Upgrade to {quality.value} failed for slot {result.slot_id}")
                    continue

                image = GeneratedImage(
                    slot_id=result.slot_id,
                    handle=outcome.handle,
                    prompt=result.prompt,
                    quality=quality,
                    is_upgrade=True,
                    backend=outcome.backend,
                )
                logger.info(f"Published {quality.value} upgrade for slot {result.slot_id}")
                await self._publish(on_upgrade, image)
                published += 1
        except Exception:
            logger.exception(f"Background upgrades aborted for slot {result.slot_id}")
        return published

    async def events(self, prompt: str) -> AsyncIterator[GeneratedImage]:
        """Yield every image of a full run in sequence order, without backgrounding."""
        slot_id = None
        for index, quality in enumerate(self.sequence):
            outcome = await self._request(prompt, quality, index)
            if not outcome.succeeded:
                logger.warning(f"No {quality.value} image for {prompt!r}")
                continue
            is_upgrade = slot_id is not None
            if slot_id is None:
                slot_id = uuid.uuid4().hex[:12]
            yield GeneratedImage(
                slot_id=slot_id,
                handle=outcome.handle,
                prompt=prompt,
                quality=quality,
                is_upgrade=is_upgrade,
                backend=outcome.backend,
            )

    async def wait_for_background(self) -> None:
        """Await all outstanding upgrade tasks."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    def cancel_background(self) -> int:
        """Cancel outstanding upgrade tasks. Returns how many were cancelled."""
        tasks = list(self._background)
        for task in tasks:
            task.cancel()
        return len(tasks)
