"""Tests for utility functions."""

import base64

import pytest
from PIL import Image

from conftest import make_png
from utils import (
    InvalidImageError,
    decode_base64_image,
    hash_prompt,
    save_image,
    verify_image_bytes,
)


class TestUtils:
    """Tests for utility functions."""

    def test_hash_prompt_is_stable(self):
        assert hash_prompt("a cat") == hash_prompt("a cat")
        assert hash_prompt("a cat") != hash_prompt("a dog")
        assert len(hash_prompt("a cat")) == 12

    def test_verify_png(self, png_bytes):
        assert verify_image_bytes(png_bytes) == "image/png"

    def test_verify_rejects_garbage(self):
        with pytest.raises(InvalidImageError):
            verify_image_bytes(b"not an image")

    def test_verify_rejects_empty(self):
        with pytest.raises(InvalidImageError):
            verify_image_bytes(b"")

    def test_decode_base64(self, png_bytes):
        encoded = base64.b64encode(png_bytes).decode()

        data, mime = decode_base64_image(encoded)

        assert data == png_bytes
        assert mime == "image/png"

    def test_decode_data_url(self, png_bytes):
        encoded = "data:image/png;base64," + base64.b64encode(png_bytes).decode()

        data, _ = decode_base64_image(encoded)

        assert data == png_bytes

    def test_decode_invalid_base64(self):
        with pytest.raises(InvalidImageError):
            decode_base64_image("!!not base64!!")

    def test_decode_base64_of_non_image(self):
        with pytest.raises(InvalidImageError):
            decode_base64_image(base64.b64encode(b"hello").decode())

    def test_decode_empty(self):
        with pytest.raises(InvalidImageError):
            decode_base64_image("")

    def test_save_image_embeds_text(self, temp_dir):
        dest = save_image(make_png("blue"), temp_dir / "out" / "image.jpg", text={"prompt": "a lake", "skip": None})

        assert dest.suffix == ".png"
        assert dest.exists()
        with Image.open(dest) as img:
            assert img.format == "PNG"
            assert img.text == {"prompt": "a lake"}
