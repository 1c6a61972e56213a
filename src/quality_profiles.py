"""Static per-backend generation parameters for each quality level."""

from generation_models import BackendId, Quality, QualityParams


LOCAL_SD_SAMPLER = "DPM++ 2M Karras"

QUALITY_PROFILES: dict[BackendId, dict[Quality, QualityParams]] = {
    BackendId.LOCAL_SD: {
        Quality.LOW: QualityParams(width=256, height=256, steps=5, guidance_scale=3, sampler=LOCAL_SD_SAMPLER),
        Quality.MEDIUM: QualityParams(width=384, height=384, steps=15, guidance_scale=5, sampler=LOCAL_SD_SAMPLER),
        Quality.HIGH: QualityParams(width=512, height=512, steps=25, guidance_scale=7.5, sampler=LOCAL_SD_SAMPLER),
        Quality.ENHANCED_HIGH: QualityParams(width=768, height=768, steps=30, guidance_scale=8, sampler=LOCAL_SD_SAMPLER),
    },
    BackendId.REPLICATE: {
        Quality.LOW: QualityParams(width=256, height=256, steps=3, guidance_scale=2),
        Quality.MEDIUM: QualityParams(width=384, height=384, steps=8, guidance_scale=4),
        Quality.HIGH: QualityParams(width=512, height=512, steps=15, guidance_scale=6),
        Quality.ENHANCED_HIGH: QualityParams(width=768, height=768, steps=25, guidance_scale=7.5),
    },
    # The hosted image API has no step control; quality maps to its standard/hd switch
    BackendId.OPENAI: {
        Quality.LOW: QualityParams(width=1024, height=1024, steps=0, guidance_scale=0),
        Quality.MEDIUM: QualityParams(width=1024, height=1024, steps=0, guidance_scale=0),
        Quality.HIGH: QualityParams(width=1024, height=1024, steps=0, guidance_scale=0, image_quality="hd"),
        Quality.ENHANCED_HIGH: QualityParams(width=1024, height=1024, steps=0, guidance_scale=0, image_quality="hd"),
    },
}

SUPPORTED_QUALITIES = [q.value for q in Quality]


def get_quality_params(backend: BackendId, quality: Quality) -> QualityParams:
    """
    Look up the generation parameters for a backend at a quality level.

    Args:
        backend: Backend identifier
        quality: Requested quality level

    Returns:
        The configured parameters, or the backend's MEDIUM parameters if the
        level is not configured for that backend

    Raises:
        ValueError: If the backend has no profile at all
    """
    profiles = QUALITY_PROFILES.get(backend)
    if not profiles:
        raise ValueError(f"No quality profile for backend: {backend}")
    return profiles.get(quality) or profiles[Quality.MEDIUM]


def parse_sequence(values) -> list[Quality]:
    """
    Parse a quality sequence from a comma-separated string or an iterable.

    Raises:
        ValueError: If the sequence is empty or names an unknown quality
    """
    if isinstance(values, str):
        values = [v for v in values.split(",")]
    sequence = []
    for value in values:
        name = str(getattr(value, "value", value)).strip().upper()
        if not name:
            continue
        if name not in SUPPORTED_QUALITIES:
            raise ValueError(f"Unknown quality: {name}. Choose from: {SUPPORTED_QUALITIES}")
        sequence.append(Quality(name))
    if not sequence:
        raise ValueError("Quality sequence must not be empty")
    return sequence
