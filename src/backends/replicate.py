"""Adapter for the hosted prediction API (asynchronous jobs)."""

import logging

import httpx

from config import PLACEHOLDER_CREDENTIALS, ReplicateConfig
from generation_models import BackendId, ImageHandle, QualityParams

from .base import BackendAdapter
from .errors import (
    ConfigurationError,
    QuotaExceededError,
    RateLimitedError,
    TransientServiceError,
)

logger = logging.getLogger(__name__)


class ReplicateAdapter(BackendAdapter):
    """Creates predictions and exposes their status for the job poller."""

    backend_id = BackendId.REPLICATE
    is_async = True

    def __init__(self, config: ReplicateConfig, client: httpx.AsyncClient | None = None):
        super().__init__(enabled=config.enabled)
        self.config = config
        self._client = client

    def _headers(self) -> dict:
        token = (self.config.api_token or "").strip()
        if token in PLACEHOLDER_CREDENTIALS:
            raise ConfigurationError(
                "Replicate API token not configured. Set REPLICATE_API_TOKEN.",
                backend=self.backend_id,
            )
        return {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }

    def build_payload(self, prompt: str, params: QualityParams) -> dict:
        return {
            "version": self.config.model_version,
            "input": {
                "prompt": prompt,
                "negative_prompt": self.config.negative_prompt,
                "width": params.width,
                "height": params.height,
                "num_inference_steps": params.steps,
                "guidance_scale": params.guidance_scale,
                "safety_checker": self.config.safety_checker,
            },
        }

    async def _request(self, method: str, path: str, headers: dict, json: dict | None = None) -> httpx.Response:
        url = f"{self.config.api_base.rstrip('/')}{path}"
        if self._client is not None:
            return await self._client.request(method, url, headers=headers, json=json, timeout=self.config.timeout)
        async with httpx.AsyncClient(timeout=self.config.timeout) as client:
            return await client.request(method, url, headers=headers, json=json)

    def _raise_for_status(self, response: httpx.Response, action: str) -> None:
        status = response.status_code
        if status < 400:
            return
        detail = response.text[:200]
        try:
            body = response.json()
            if isinstance(body, dict):
                detail = body.get("detail") or body.get("error") or detail
        except ValueError:
            pass

        message = f"Replicate {action} failed ({status}): {detail}"
        if status in (401, 403):
            raise ConfigurationError(message, backend=self.backend_id)
        if status == 402:
            raise QuotaExceededError(message, backend=self.backend_id)
        if status == 429:
            raise RateLimitedError(message, backend=self.backend_id)
        raise TransientServiceError(message, backend=self.backend_id)

    async def _generate_once(self, prompt: str, params: QualityParams) -> ImageHandle:
        headers = self._headers()
        try:
            response = await self._request("POST", "/predictions", headers, json=self.build_payload(prompt, params))
        except httpx.HTTPError as e:
            raise TransientServiceError(f"Replicate unreachable: {e}", backend=self.backend_id) from e

        self._raise_for_status(response, "prediction create")

        try:
            data = response.json()
        except ValueError as e:
            raise TransientServiceError("Replicate returned malformed JSON", backend=self.backend_id) from e

        job_id = data.get("id") if isinstance(data, dict) else None
        if not job_id:
            raise TransientServiceError("Replicate returned no prediction id", backend=self.backend_id)

        logger.info(f"Prediction created with id {job_id} ({params.steps} steps at {params.size})")
        return ImageHandle.pending(job_id)

    async def fetch_job(self, job_id: str) -> dict:
        """GET the prediction; any failure is transient from the poller's view."""
        headers = self._headers()
        try:
            response = await self._request("GET", f"/predictions/{job_id}", headers)
        except httpx.HTTPError as e:
            raise TransientServiceError(f"Replicate poll failed: {e}", backend=self.backend_id) from e

        if response.status_code >= 400:
            raise TransientServiceError(
                f"Replicate poll failed: HTTP {response.status_code}", backend=self.backend_id
            )
        try:
            data = response.json()
        except ValueError as e:
            raise TransientServiceError("Replicate poll returned malformed JSON", backend=self.backend_id) from e
        if not isinstance(data, dict):
            raise TransientServiceError("Replicate poll returned an unexpected payload", backend=self.backend_id)
        return data

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
