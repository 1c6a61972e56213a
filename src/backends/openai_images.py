"""Adapter for the hosted, policy-moderated image API."""

import logging

import openai
from openai import AsyncOpenAI

from config import PLACEHOLDER_CREDENTIALS, OpenAIImageConfig
from generation_models import BackendId, ImageHandle, QualityParams
from prompt_sanitizer import genericize
from utils import InvalidImageError, decode_base64_image

from .base import BackendAdapter
from .errors import (
    ConfigurationError,
    GenerationError,
    QuotaExceededError,
    RateLimitedError,
    RejectedContentError,
    TransientServiceError,
)

logger = logging.getLogger(__name__)

CONTENT_POLICY_CODES = {"content_policy_violation"}
CONTENT_POLICY_TYPES = {"image_generation_user_error"}
CONTENT_POLICY_MARKERS = ("content policy", "safety system", "content_policy")


def classify_openai_error(error: Exception, backend: BackendId = BackendId.OPENAI) -> GenerationError:
    """Map an OpenAI SDK exception onto the pipeline's error taxonomy."""
    message = str(getattr(error, "message", None) or error)
    code = getattr(error, "code", None)
    error_type = getattr(error, "type", None)

    if isinstance(error, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return ConfigurationError(f"OpenAI rejected the credentials: {message}", backend=backend)
    if isinstance(error, openai.RateLimitError):
        if code == "insufficient_quota":
            return QuotaExceededError(f"OpenAI quota exceeded: {message}", backend=backend)
        return RateLimitedError(f"OpenAI rate limit exceeded: {message}", backend=backend)
    if isinstance(error, openai.BadRequestError):
        lowered = message.lower()
        if (
            code in CONTENT_POLICY_CODES
            or error_type in CONTENT_POLICY_TYPES
            or any(marker in lowered for marker in CONTENT_POLICY_MARKERS)
        ):
            return RejectedContentError(f"Content policy violation: {message}", backend=backend)
        return TransientServiceError(f"OpenAI rejected the request: {message}", backend=backend)
    if isinstance(error, openai.APIConnectionError):
        return TransientServiceError(f"Network error calling OpenAI: {message}", backend=backend)
    if isinstance(error, openai.APIStatusError):
        return TransientServiceError(f"OpenAI API error {error.status_code}: {message}", backend=backend)
    return TransientServiceError(f"OpenAI API error: {message}", backend=backend)


class OpenAIImageAdapter(BackendAdapter):
    """Synchronous backend returning image URLs (or inline base64)."""

    backend_id = BackendId.OPENAI

    def __init__(self, config: OpenAIImageConfig, client: AsyncOpenAI | None = None):
        super().__init__(
            enabled=config.enabled,
            max_prompt_length=config.max_prompt_length,
            rewrite_rejected=genericize,
        )
        self.config = config
        self._client = client

    def _get_client(self) -> AsyncOpenAI:
        if self._client is not None:
            return self._client
        api_key = (self.config.api_key or "").strip()
        if api_key in PLACEHOLDER_CREDENTIALS:
            raise ConfigurationError(
                "OpenAI API key not configured. Set OPENAI_API_KEY.",
                backend=self.backend_id,
            )
        self._client = AsyncOpenAI(
            api_key=api_key,
            base_url=self.config.base_url,
            timeout=self.config.timeout,
        )
        return self._client

    def build_request(self, prompt: str, params: QualityParams) -> dict:
        request = {
            "model": self.config.model,
            "prompt": prompt,
            "size": self.config.size,
            "n": 1,
        }
        # quality and style are only accepted by dall-e-3
        if self.config.model == "dall-e-3":
            request["quality"] = params.image_quality
            request["style"] = self.config.style
        return request

    async def _generate_once(self, prompt: str, params: QualityParams) -> ImageHandle:
        client = self._get_client()
        try:
            result = await client.images.generate(**self.build_request(prompt, params))
        except openai.OpenAIError as e:
            raise classify_openai_error(e, self.backend_id) from e

        data = getattr(result, "data", None) or []
        if not data:
            raise TransientServiceError("OpenAI returned no image", backend=self.backend_id)

        first = data[0]
        if getattr(first, "url", None):
            return ImageHandle.from_url(first.url)
        if getattr(first, "b64_json", None):
            try:
                image_bytes, mime_type = decode_base64_image(first.b64_json)
            except InvalidImageError as e:
                raise TransientServiceError(f"OpenAI returned an unusable image: {e}", backend=self.backend_id) from e
            return ImageHandle.inline(image_bytes, mime_type)
        raise TransientServiceError("OpenAI returned invalid response format - no image found", backend=self.backend_id)

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()
