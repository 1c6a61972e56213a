"""Common contract for image-generation backend adapters."""

import logging
from typing import Callable

from generation_models import BackendId, ImageHandle, QualityParams

from .errors import RejectedContentError

logger = logging.getLogger(__name__)


class BackendAdapter:
    """Translates a (prompt, quality params) pair into one backend request.

    Subclasses implement ``_generate_once`` and, for asynchronous services,
    ``fetch_job``. They return only confirmed results (decoded image data, an
    image URL, or a job id) and raise classified GenerationError subclasses
    for everything else. Adapters never mutate shared configuration.
    """

    backend_id: BackendId
    is_async = False

    def __init__(
        self,
        enabled: bool = True,
        max_prompt_length: int | None = None,
        rewrite_rejected: Callable[[str], str] | None = None,
    ):
        """
        Args:
            enabled: Disabled adapters are skipped by the fallback chain
            max_prompt_length: Prompts are silently truncated to this length
            rewrite_rejected: Produces the prompt for the single retry after
                a content-policy rejection (None disables the retry)
        """
        self.enabled = enabled
        self.max_prompt_length = max_prompt_length
        self.rewrite_rejected = rewrite_rejected

    @property
    def name(self) -> str:
        return self.backend_id.value

    def prepare_prompt(self, prompt: str) -> str:
        prompt = (prompt or "").strip()
        if not prompt:
            raise ValueError("Prompt must not be empty")
        if self.max_prompt_length and len(prompt) > self.max_prompt_length:
            prompt = prompt[:self.max_prompt_length]
        return prompt

    async def generate(self, prompt: str, params: QualityParams) -> ImageHandle:
        """Generate one image, retrying once with a rewritten prompt on rejection.

        Raises:
            ConfigurationError: Missing or placeholder credentials
            RejectedContentError: Rejected, and the retry (if any) was rejected too
            TransientServiceError: Any other failure
        """
        prompt = self.prepare_prompt(prompt)
        try:
            return await self._generate_once(prompt, params)
        except RejectedContentError as e:
            if self.rewrite_rejected is None:
                raise
            variant = self.rewrite_rejected(prompt)
            if not variant or variant.strip() == prompt:
                raise
            logger.warning(f"{self.name} rejected prompt ({e.message}); retrying once with: {variant!r}")

        try:
            return await self._generate_once(self.prepare_prompt(variant), params)
        except RejectedContentError as e:
            raise RejectedContentError(
                f"Rewritten prompt was rejected as well: {e.message}",
                backend=self.backend_id,
            ) from e

    async def _generate_once(self, prompt: str, params: QualityParams) -> ImageHandle:
        raise NotImplementedError

    async def fetch_job(self, job_id: str) -> dict:
        """Fetch the raw status payload of a remote job.

        Returns:
            Dict with at least "status"; "output" and "error" when available
        """
        raise NotImplementedError(f"{self.name} does not create asynchronous jobs")

    async def aclose(self) -> None:
        """Release network resources held by the adapter."""
        pass
