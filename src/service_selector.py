"""Fallback chain across image-generation backends."""

import logging
from typing import Iterable

from backends.base import BackendAdapter
from backends.errors import ConfigurationError, GenerationError, TransientServiceError
from backends.job_poller import JobPoller
from generation_models import BackendId, FallbackOutcome, ImageHandle, Quality
from quality_profiles import get_quality_params

logger = logging.getLogger(__name__)


def parse_backend_ids(values: Iterable) -> list[BackendId]:
    """
    Parse backend identifiers, dropping duplicates while keeping order.

    Raises:
        ValueError: If a name is not a known backend
    """
    if isinstance(values, str):
        values = values.split(",")
    known = [b.value for b in BackendId]
    order: list[BackendId] = []
    for value in values:
        name = str(getattr(value, "value", value)).strip().upper()
        if not name:
            continue
        if name not in known:
            raise ValueError(f"Unknown backend: {name}. Choose from: {known}")
        backend = BackendId(name)
        if backend not in order:
            order.append(backend)
    return order


class ServicePriority:
    """Ordered backend list that the user may change at runtime.

    Readers take a snapshot at the start of each fallback attempt, so a swap
    affects only attempts that start afterwards.
    """

    def __init__(self, order: Iterable):
        self._order = parse_backend_ids(order)

    def snapshot(self) -> list[BackendId]:
        return list(self._order)

    def set(self, order: Iterable) -> list[BackendId]:
        parsed = parse_backend_ids(order)
        if not parsed:
            raise ValueError("Service priority must name at least one backend")
        self._order = parsed
        logger.info(f"Service priority set to {[b.value for b in parsed]}")
        return self.snapshot()

    def swap(self, first: BackendId, second: BackendId) -> list[BackendId]:
        order = self.snapshot()
        i, j = order.index(first), order.index(second)
        order[i], order[j] = order[j], order[i]
        return self.set(order)


class ServiceSelector:
    """Asks each backend in priority order until one produces an image."""

    def __init__(
        self,
        adapters: dict[BackendId, BackendAdapter],
        priority: ServicePriority,
        poller: JobPoller,
    ):
        self.adapters = adapters
        self.priority = priority
        self.poller = poller

    async def _attempt(self, adapter: BackendAdapter, prompt: str, quality: Quality) -> ImageHandle:
        params = get_quality_params(adapter.backend_id, quality)
        handle = await adapter.generate(prompt, params)
        if handle.is_pending:
            handle = await self.poller.poll(handle.job_id, adapter, quality)
        return handle

    async def generate_with_report(self, prompt: str, quality: Quality) -> FallbackOutcome:
        """
        Walk the fallback chain once for a quality level.

        Each backend is tried at most once. Classified failures are recorded
        and never raised; the first success ends the walk.

        Returns:
            FallbackOutcome with the handle (None if every backend failed)
            and the absorbed failures
        """
        outcome = FallbackOutcome()
        order = self.priority.snapshot()

        for backend_id in order:
            adapter = self.adapters.get(backend_id)
            if adapter is None:
                logger.warning(f"No adapter registered for {backend_id.value}, skipping")
                continue
            if not adapter.enabled:
                logger.debug(f"{backend_id.value} disabled, skipping")
                continue

            logger.info(f"Trying {backend_id.value} for {quality.value} quality image")
            try:
                handle = await self._attempt(adapter, prompt, quality)
            except ConfigurationError as e:
                logger.error(f"{backend_id.value} is not configured: {e.message}")
                outcome.failures.append(e.to_failure(quality, backend_id))
                continue
            except GenerationError as e:
                logger.warning(f"{backend_id.value} failed for {quality.value}: {e.message}")
                outcome.failures.append(e.to_failure(quality, backend_id))
                continue
            except Exception as e:
                logger.exception(f"Unexpected error from {backend_id.value} for {quality.value}")
                error = TransientServiceError(f"Unexpected error: {e}", backend=backend_id)
                outcome.failures.append(error.to_failure(quality, backend_id))
                continue

            logger.info(f"Generated {quality.value} image with {backend_id.value}")
            outcome.handle = handle
            outcome.backend = backend_id
            return outcome

        logger.warning(f"Failed to generate {quality.value} image with all available services")
        return outcome

    async def generate_with_fallback(self, prompt: str, quality: Quality) -> ImageHandle | None:
        """Return the first successful handle, or None if the chain is exhausted."""
        outcome = await self.generate_with_report(prompt, quality)
        return outcome.handle
