"""Shared utility functions for the mood board pipeline."""

import base64
import binascii
import hashlib
import io
import re
from pathlib import Path

from PIL import Image, UnidentifiedImageError
from PIL.PngImagePlugin import PngInfo


MIME_TYPES = {
    "PNG": "image/png",
    "JPEG": "image/jpeg",
    "WEBP": "image/webp",
    "GIF": "image/gif",
}


class InvalidImageError(ValueError):
    """Raised when bytes do not decode to an image."""
    pass


def hash_prompt(prompt: str) -> str:
    """Generate a short hash for naming runs by prompt."""
    return hashlib.sha256(prompt.encode()).hexdigest()[:12]


def verify_image_bytes(data: bytes) -> str:
    """Check that bytes hold a decodable image.

    Args:
        data: Raw image bytes

    Returns:
        The MIME type of the image

    Raises:
        InvalidImageError: If the data is empty or not an image
    """
    if not data:
        raise InvalidImageError("Image data is empty")
    try:
        with Image.open(io.BytesIO(data)) as img:
            fmt = img.format
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        raise InvalidImageError(f"Image data could not be decoded: {e}") from e
    return MIME_TYPES.get(fmt or "", "image/png")


def decode_base64_image(encoded: str) -> tuple[bytes, str]:
    """Decode a base64 image (optionally a data: URL) and verify it.

    Returns:
        Tuple of (image bytes, MIME type)

    Raises:
        InvalidImageError: If the payload is not valid base64 image data
    """
    if not encoded or not isinstance(encoded, str):
        raise InvalidImageError("No image payload")
    # Some servers return "data:image/png;base64,...", others the bare payload
    payload = re.sub(r"^data:[^;]+;base64,", "", encoded.strip())
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidImageError(f"Invalid base64 image payload: {e}") from e
    return data, verify_image_bytes(data)


def save_image(data: bytes, dest: Path, text: dict[str, str] | None = None) -> Path:
    """Save image bytes as PNG, embedding metadata in PNG text chunks.

    Args:
        data: Raw image bytes in any format PIL can read
        dest: Destination path (suffix forced to .png)
        text: Key/value pairs to embed

    Returns:
        Path to the written file
    """
    dest = dest.with_suffix(".png")
    dest.parent.mkdir(parents=True, exist_ok=True)

    png_info = PngInfo()
    for key, value in (text or {}).items():
        if value is not None:
            png_info.add_text(key, str(value))

    with Image.open(io.BytesIO(data)) as img:
        img.save(dest, format="PNG", pnginfo=png_info)
    return dest
