"""Pydantic models shared by the generation pipeline."""

import base64
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Quality(str, Enum):
    """Named points on the resolution / iteration-count tradeoff curve."""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    ENHANCED_HIGH = "ENHANCED_HIGH"


class BackendId(str, Enum):
    """Image-generation services known to the pipeline."""
    LOCAL_SD = "LOCAL_SD"
    REPLICATE = "REPLICATE"
    OPENAI = "OPENAI"


class GenerationRequest(BaseModel):
    """A single (prompt, quality) request."""
    model_config = ConfigDict(frozen=True)

    prompt: str = Field(..., min_length=1)
    quality: Quality = Quality.MEDIUM


class QualityParams(BaseModel):
    """Backend-specific generation parameters for one quality level."""
    model_config = ConfigDict(frozen=True)

    width: int
    height: int
    steps: int
    guidance_scale: float
    sampler: str | None = None
    image_quality: str = "standard"

    @property
    def size(self) -> str:
        """Size string in WIDTHxHEIGHT form."""
        return f"{self.width}x{self.height}"


class JobStatus(str, Enum):
    """Lifecycle of a remote prediction."""
    STARTING = "starting"
    QUEUED = "queued"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELED = "canceled"
    TIMED_OUT = "timed_out"

    @property
    def is_terminal(self) -> bool:
        return self in (
            JobStatus.SUCCEEDED,
            JobStatus.FAILED,
            JobStatus.CANCELED,
            JobStatus.TIMED_OUT,
        )


class Job(BaseModel):
    """An in-flight remote prediction, alive only while it is polled."""
    id: str
    backend: BackendId
    quality: Quality
    created_at: datetime = Field(default_factory=datetime.now)
    status: JobStatus = JobStatus.STARTING


class ImageKind(str, Enum):
    """What an ImageHandle points at."""
    INLINE = "inline"
    URL = "url"
    JOB = "job"


class ImageHandle(BaseModel):
    """Inline image bytes, a remote image URL, or a pending job id."""
    model_config = ConfigDict(frozen=True, ser_json_bytes="base64")

    kind: ImageKind
    data: bytes | None = None
    mime_type: str = "image/png"
    url: str | None = None
    job_id: str | None = None

    @classmethod
    def inline(cls, data: bytes, mime_type: str = "image/png") -> "ImageHandle":
        return cls(kind=ImageKind.INLINE, data=data, mime_type=mime_type)

    @classmethod
    def from_url(cls, url: str) -> "ImageHandle":
        return cls(kind=ImageKind.URL, url=url)

    @classmethod
    def pending(cls, job_id: str) -> "ImageHandle":
        return cls(kind=ImageKind.JOB, job_id=job_id)

    @property
    def is_pending(self) -> bool:
        return self.kind == ImageKind.JOB

    def display_url(self) -> str:
        """URL usable in an <img> tag (data: URL for inline images).

        Raises:
            ValueError: If the handle is still a pending job
        """
        if self.kind == ImageKind.INLINE and self.data is not None:
            encoded = base64.b64encode(self.data).decode("ascii")
            return f"data:{self.mime_type};base64,{encoded}"
        if self.kind == ImageKind.URL and self.url:
            return self.url
        raise ValueError(f"Image handle has nothing to display: {self.kind.value}")


class GeneratedImage(BaseModel):
    """One published rendition of a prompt."""
    model_config = ConfigDict(frozen=True)

    slot_id: str
    handle: ImageHandle
    prompt: str
    quality: Quality
    is_upgrade: bool = False
    backend: BackendId | None = None
    created_at: datetime = Field(default_factory=datetime.now)

    @property
    def label(self) -> str:
        """Caption for the board; upgrades name their quality level."""
        if self.is_upgrade:
            return f"{self.prompt} ({self.quality.value} quality)"
        return self.prompt

    def to_event(self) -> dict:
        """Serializable payload for queue listeners."""
        return {
            "slot_id": self.slot_id,
            "url": self.handle.display_url(),
            "prompt": self.prompt,
            "label": self.label,
            "quality": self.quality.value,
            "is_upgrade": self.is_upgrade,
            "backend": self.backend.value if self.backend else None,
        }


class BackendFailure(BaseModel):
    """A classified failure absorbed by the fallback chain."""
    backend: BackendId
    quality: Quality
    kind: str
    message: str
    remediation: str | None = None


class FallbackOutcome(BaseModel):
    """Result of one walk down the fallback chain."""
    handle: ImageHandle | None = None
    backend: BackendId | None = None
    failures: list[BackendFailure] = Field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.handle is not None

    @property
    def configuration_errors(self) -> list[BackendFailure]:
        return [f for f in self.failures if f.kind == "configuration"]
