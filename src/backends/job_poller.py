"""Polls asynchronous prediction jobs until they reach a terminal state."""

import asyncio
import logging
import math
from dataclasses import dataclass

from config import PollingConfig
from generation_models import ImageHandle, Job, JobStatus, Quality

from .base import BackendAdapter
from .errors import GenerationError, RejectedContentError, TransientServiceError

logger = logging.getLogger(__name__)

QUEUED_STATUSES = (JobStatus.STARTING, JobStatus.QUEUED)
REJECTION_MARKERS = ("nsfw", "safety", "content policy", "inappropriate")


@dataclass(frozen=True)
class PollingPolicy:
    """Cadence and limits for polling one job."""
    interval: float
    ceiling: float
    stuck_limit: int = 10
    error_backoff: float = 2.0
    log_every: int = 10

    @property
    def max_attempts(self) -> int:
        return max(1, math.floor(self.ceiling / self.interval))


def policy_for(config: PollingConfig, quality: Quality) -> PollingPolicy:
    """Preview qualities fail fast; everything else gets the long ceiling."""
    if quality.value in config.preview_qualities:
        return PollingPolicy(
            interval=config.preview_interval,
            ceiling=config.preview_ceiling,
            stuck_limit=config.stuck_limit,
            log_every=5,
        )
    return PollingPolicy(
        interval=config.interval,
        ceiling=config.ceiling,
        stuck_limit=config.stuck_limit,
    )


def _parse_status(value) -> JobStatus:
    try:
        return JobStatus(str(value).lower())
    except ValueError:
        return JobStatus.PROCESSING


def _first_output(output) -> str | None:
    if isinstance(output, str):
        return output or None
    if isinstance(output, (list, tuple)) and output:
        first = output[0]
        if isinstance(first, str) and first:
            return first
    return None


class JobPoller:
    """Resolves JOB handles into image handles."""

    def __init__(self, config: PollingConfig, sleep=asyncio.sleep):
        """
        Args:
            config: Polling cadence settings
            sleep: Awaitable sleep function (injectable for tests)
        """
        self.config = config
        self._sleep = sleep

    async def poll(self, job_id: str, backend: BackendAdapter, quality: Quality) -> ImageHandle:
        """
        Poll a job until success, failure, stall or timeout.

        Args:
            job_id: Remote job identifier
            backend: Adapter that created the job
            quality: Quality level the job was created for

        Returns:
            URL handle of the finished image

        Raises:
            RejectedContentError: The job failed with a policy-looking message
            TransientServiceError: Failure, cancellation, empty output, stall or timeout
        """
        policy = policy_for(self.config, quality)
        job = Job(id=job_id, backend=backend.backend_id, quality=quality)
        stuck_count = 0

        for attempt in range(1, policy.max_attempts + 1):
            try:
                data = await backend.fetch_job(job_id)
            except GenerationError as e:
                # A failed poll attempt still counts toward the ceiling
                logger.warning(f"Poll attempt {attempt} for {job_id} failed: {e.message}")
                if attempt < policy.max_attempts:
                    await self._sleep(policy.interval * policy.error_backoff)
                continue

            job.status = _parse_status(data.get("status"))

            if job.status in QUEUED_STATUSES:
                stuck_count += 1
                if stuck_count >= policy.stuck_limit:
                    raise TransientServiceError(
                        f"Job {job_id} stuck in {job.status.value} for {stuck_count} polls",
                        backend=backend.backend_id,
                    )
            else:
                stuck_count = 0

            if job.status == JobStatus.SUCCEEDED:
                url = _first_output(data.get("output"))
                if url is None:
                    raise TransientServiceError(
                        f"Job {job_id} succeeded but returned no output", backend=backend.backend_id
                    )
                logger.info(f"Job {job_id} ({quality.value}) succeeded after {attempt} polls")
                return ImageHandle.from_url(url)

            if job.status == JobStatus.FAILED:
                error = str(data.get("error") or "Unknown error occurred")
                if any(marker in error.lower() for marker in REJECTION_MARKERS):
                    raise RejectedContentError(f"Job {job_id} rejected: {error}", backend=backend.backend_id)
                raise TransientServiceError(f"Job {job_id} failed: {error}", backend=backend.backend_id)

            if job.status == JobStatus.CANCELED:
                raise TransientServiceError(f"Job {job_id} was canceled", backend=backend.backend_id)

            if attempt % policy.log_every == 0:
                logger.info(f"Job {job_id} still {job.status.value} after {attempt} polls")

            if attempt < policy.max_attempts:
                await self._sleep(policy.interval)

        job.status = JobStatus.TIMED_OUT
        raise TransientServiceError(
            f"Job {job_id} timed out after {policy.max_attempts} polls ({policy.ceiling:g}s)",
            backend=backend.backend_id,
        )
