"""Centralized configuration for the mood board generation pipeline."""

import os
from dataclasses import dataclass, field
from pathlib import Path


PLACEHOLDER_CREDENTIALS = frozenset({
    "",
    "your-openai-api-key-here",
    "your_replicate_api_token_here",
})


def _env_list(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    """Read a comma-separated environment variable as a tuple."""
    raw = os.environ.get(name)
    if raw is None:
        return default
    return tuple(part.strip() for part in raw.split(",") if part.strip())


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class LLMConfig:
    """Configuration for the local language model server (OpenAI-compatible)."""
    enabled: bool = True
    base_url: str = "http://localhost:11434/v1"
    api_key: str = "ollama"
    model: str = "llama3.2:latest"
    fast_model: str = "llama3.2:1b"
    temperature: float = 0.7
    top_p: float = 0.9
    max_tokens: int = 150
    timeout: float = 8.0  # seconds


@dataclass(frozen=True)
class LocalSDConfig:
    """Configuration for the local image-diffusion server."""
    enabled: bool = True
    base_url: str = "http://127.0.0.1:7860"
    negative_prompt: str = "blurry, bad art, low quality, text, watermark"
    timeout: float = 120.0


@dataclass(frozen=True)
class ReplicateConfig:
    """Configuration for the hosted prediction API."""
    enabled: bool = True
    api_base: str = "https://api.replicate.com/v1"
    api_token: str = ""
    model_version: str = "27b93a2413e7f36cd83da926f3656280b2931564ff050bf9575f1fdf9bcd7478"
    safety_checker: bool = False
    negative_prompt: str = (
        "nsfw, inappropriate, offensive, explicit, adult content, nudity, "
        "violence, gore, disturbing content"
    )
    timeout: float = 30.0


@dataclass(frozen=True)
class OpenAIImageConfig:
    """Configuration for the hosted, policy-moderated image API."""
    enabled: bool = True
    api_key: str = ""
    base_url: str | None = None
    model: str = "dall-e-3"
    size: str = "1024x1024"
    style: str = "vivid"
    max_prompt_length: int = 1000
    timeout: float = 60.0


@dataclass(frozen=True)
class ProgressiveConfig:
    """Configuration for progressive multi-quality generation."""
    enabled: bool = True
    sequence: tuple[str, ...] = ("LOW", "MEDIUM", "HIGH", "ENHANCED_HIGH")
    delay_between_generations: float = 0.2  # seconds
    background_enhancement: bool = True


@dataclass(frozen=True)
class PollingConfig:
    """Polling cadence for asynchronous prediction jobs."""
    preview_qualities: tuple[str, ...] = ("LOW",)
    preview_interval: float = 0.15  # seconds
    preview_ceiling: float = 15.0
    interval: float = 0.5
    ceiling: float = 60.0
    stuck_limit: int = 10


@dataclass(frozen=True)
class ContextConfig:
    """Configuration for contextual (history-inspired) generation."""
    enabled: bool = True
    min_images_before_start: int = 1
    interval: float = 2.0  # seconds
    max_history: int = 10


@dataclass(frozen=True)
class QueueConfig:
    """Configuration for the caller-side generation queue."""
    max_contextual_backlog: int = 2
    completed_history: int = 50
    sse_queue_size: int = 100
    sse_timeout: float = 5.0  # seconds between keepalives


@dataclass(frozen=True)
class PathConfig:
    """Centralized path configuration for the application."""

    @property
    def root_dir(self) -> Path:
        """Project root directory."""
        return Path(__file__).parent.parent

    @property
    def generated_dir(self) -> Path:
        """Directory for all generated output."""
        return self.root_dir / "generated"

    @property
    def boards_dir(self) -> Path:
        """Directory for CLI board runs."""
        return self.generated_dir / "boards"


# Singleton path configuration instance
paths = PathConfig()


@dataclass
class Settings:
    """Application settings, can be overridden via environment variables."""
    llm: LLMConfig = field(default_factory=LLMConfig)
    local_sd: LocalSDConfig = field(default_factory=LocalSDConfig)
    replicate: ReplicateConfig = field(default_factory=ReplicateConfig)
    openai: OpenAIImageConfig = field(default_factory=OpenAIImageConfig)
    progressive: ProgressiveConfig = field(default_factory=ProgressiveConfig)
    polling: PollingConfig = field(default_factory=PollingConfig)
    context: ContextConfig = field(default_factory=ContextConfig)
    queue: QueueConfig = field(default_factory=QueueConfig)
    service_priority: tuple[str, ...] = ("REPLICATE", "LOCAL_SD")

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from environment variables with MOODBOARD_ prefix."""
        llm = LLMConfig(
            enabled=_env_bool("MOODBOARD_LLM_ENABLED", LLMConfig.enabled),
            base_url=os.environ.get("MOODBOARD_LLM_URL", LLMConfig.base_url),
            api_key=os.environ.get("MOODBOARD_LLM_API_KEY", LLMConfig.api_key),
            model=os.environ.get("MOODBOARD_LLM_MODEL", LLMConfig.model),
            fast_model=os.environ.get("MOODBOARD_LLM_FAST_MODEL", LLMConfig.fast_model),
            temperature=float(os.environ.get("MOODBOARD_LLM_TEMPERATURE", LLMConfig.temperature)),
            timeout=float(os.environ.get("MOODBOARD_LLM_TIMEOUT", LLMConfig.timeout)),
        )
        local_sd = LocalSDConfig(
            enabled=_env_bool("MOODBOARD_LOCAL_SD_ENABLED", LocalSDConfig.enabled),
            base_url=os.environ.get("MOODBOARD_LOCAL_SD_URL", LocalSDConfig.base_url),
            timeout=float(os.environ.get("MOODBOARD_LOCAL_SD_TIMEOUT", LocalSDConfig.timeout)),
        )
        replicate = ReplicateConfig(
            enabled=_env_bool("MOODBOARD_REPLICATE_ENABLED", ReplicateConfig.enabled),
            api_base=os.environ.get("MOODBOARD_REPLICATE_URL", ReplicateConfig.api_base),
            api_token=os.environ.get("REPLICATE_API_TOKEN", ReplicateConfig.api_token),
            model_version=os.environ.get("MOODBOARD_REPLICATE_VERSION", ReplicateConfig.model_version),
            safety_checker=_env_bool("MOODBOARD_REPLICATE_SAFETY_CHECKER", ReplicateConfig.safety_checker),
        )
        openai = OpenAIImageConfig(
            enabled=_env_bool("MOODBOARD_OPENAI_ENABLED", OpenAIImageConfig.enabled),
            api_key=os.environ.get("OPENAI_API_KEY", OpenAIImageConfig.api_key),
            base_url=os.environ.get("MOODBOARD_OPENAI_URL", OpenAIImageConfig.base_url),
            model=os.environ.get("MOODBOARD_OPENAI_IMAGE_MODEL", OpenAIImageConfig.model),
            size=os.environ.get("MOODBOARD_OPENAI_IMAGE_SIZE", OpenAIImageConfig.size),
            style=os.environ.get("MOODBOARD_OPENAI_IMAGE_STYLE", OpenAIImageConfig.style),
        )
        progressive = ProgressiveConfig(
            enabled=_env_bool("MOODBOARD_PROGRESSIVE_ENABLED", ProgressiveConfig.enabled),
            sequence=_env_list("MOODBOARD_PROGRESSIVE_SEQUENCE", ProgressiveConfig.sequence),
            delay_between_generations=float(os.environ.get(
                "MOODBOARD_PROGRESSIVE_DELAY", ProgressiveConfig.delay_between_generations
            )),
            background_enhancement=_env_bool(
                "MOODBOARD_BACKGROUND_ENHANCEMENT", ProgressiveConfig.background_enhancement
            ),
        )
        polling = PollingConfig(
            interval=float(os.environ.get("MOODBOARD_POLL_INTERVAL", PollingConfig.interval)),
            ceiling=float(os.environ.get("MOODBOARD_POLL_CEILING", PollingConfig.ceiling)),
            stuck_limit=int(os.environ.get("MOODBOARD_POLL_STUCK_LIMIT", PollingConfig.stuck_limit)),
        )
        context = ContextConfig(
            enabled=_env_bool("MOODBOARD_CONTEXTUAL_ENABLED", ContextConfig.enabled),
            interval=float(os.environ.get("MOODBOARD_CONTEXTUAL_INTERVAL", ContextConfig.interval)),
        )
        return cls(
            llm=llm,
            local_sd=local_sd,
            replicate=replicate,
            openai=openai,
            progressive=progressive,
            polling=polling,
            context=context,
            service_priority=_env_list("MOODBOARD_SERVICE_PRIORITY", cls.service_priority),
        )

