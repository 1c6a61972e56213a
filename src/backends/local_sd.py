"""Adapter for a local Stable Diffusion web UI (txt2img API)."""

import logging

import httpx

from config import LocalSDConfig
from generation_models import BackendId, ImageHandle, QualityParams
from utils import InvalidImageError, decode_base64_image

from .base import BackendAdapter
from .errors import TransientServiceError

logger = logging.getLogger(__name__)

TXT2IMG_PATH = "/sdapi/v1/txt2img"


class LocalSDAdapter(BackendAdapter):
    """Synchronous backend returning inline base64 images."""

    backend_id = BackendId.LOCAL_SD

    def __init__(self, config: LocalSDConfig, client: httpx.AsyncClient | None = None):
        """
        Args:
            config: Local diffusion server settings
            client: Optional shared HTTP client (a new one is opened per request otherwise)
        """
        super().__init__(enabled=config.enabled)
        self.config = config
        self._client = client

    def build_payload(self, prompt: str, params: QualityParams) -> dict:
        payload = {
            "prompt": prompt,
            "negative_prompt": self.config.negative_prompt,
            "steps": params.steps,
            "width": params.width,
            "height": params.height,
            "cfg_scale": params.guidance_scale,
        }
        if params.sampler:
            payload["sampler_name"] = params.sampler
        return payload

    async def _post(self, payload: dict) -> httpx.Response:
        url = f"{self.config.base_url.rstrip('/')}{TXT2IMG_PATH}"
        if self._client is not None:
            return await self._client.post(url, json=payload, timeout=self.config.timeout)
        async with httpx.AsyncClient(timeout=self.config.timeout) as client:
            return await client.post(url, json=payload)

    async def _generate_once(self, prompt: str, params: QualityParams) -> ImageHandle:
        payload = self.build_payload(prompt, params)
        logger.debug(f"Local SD request: {params.steps} steps at {params.size}")

        try:
            response = await self._post(payload)
        except httpx.HTTPError as e:
            raise TransientServiceError(f"Local SD unreachable: {e}", backend=self.backend_id) from e

        if response.status_code != 200:
            logger.warning(f"Local SD returned {response.status_code}: {response.text[:200]}")
            raise TransientServiceError(
                f"Local SD API error: {response.status_code}", backend=self.backend_id
            )

        try:
            data = response.json()
        except ValueError as e:
            raise TransientServiceError("Local SD returned malformed JSON", backend=self.backend_id) from e

        images = data.get("images") if isinstance(data, dict) else None
        if not images or not images[0]:
            raise TransientServiceError(
                "Local SD returned 200 OK but no image data", backend=self.backend_id
            )

        try:
            image_bytes, mime_type = decode_base64_image(images[0])
        except InvalidImageError as e:
            raise TransientServiceError(f"Local SD returned an unusable image: {e}", backend=self.backend_id) from e

        return ImageHandle.inline(image_bytes, mime_type)

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
