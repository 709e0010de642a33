"""
Shared pytest fixtures: in-memory images and a predictable text measure.
"""

import io

import pytest
from PIL import Image


def make_image_bytes(size=(100, 100), color=(255, 0, 0), fmt="PNG") -> bytes:
    """Solid-color image encoded in memory."""
    mode = "RGBA" if fmt == "PNG" else "RGB"
    fill = color + (255,) if mode == "RGBA" and len(color) == 3 else color
    img = Image.new(mode, size, fill)
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


def char_measure(text: str) -> float:
    """10px per character, spaces included."""
    return len(text) * 10.0


@pytest.fixture
def template_bytes():
    return make_image_bytes(size=(250, 400), color=(200, 30, 30))


@pytest.fixture
def photo_bytes():
    return make_image_bytes(size=(300, 200), color=(20, 180, 40), fmt="JPEG")
