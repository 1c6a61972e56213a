"""Builds the configured set of backend adapters."""

from config import Settings
from generation_models import BackendId

from .base import BackendAdapter
from .local_sd import LocalSDAdapter
from .openai_images import OpenAIImageAdapter
from .replicate import ReplicateAdapter


def build_adapters(settings: Settings) -> dict[BackendId, BackendAdapter]:
    """Create one adapter per known backend from settings.

    Disabled backends are still created so that the priority list can name
    them; the fallback chain skips them.
    """
    return {
        BackendId.LOCAL_SD: LocalSDAdapter(settings.local_sd),
        BackendId.REPLICATE: ReplicateAdapter(settings.replicate),
        BackendId.OPENAI: OpenAIImageAdapter(settings.openai),
    }
