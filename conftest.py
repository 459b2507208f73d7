"""Shared fixtures: small generated images on disk and in memory."""

import io

import numpy as np
import pytest
from PIL import Image


def encode(image: Image.Image, fmt: str = "JPEG") -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format=fmt)
    return buffer.getvalue()


def make_image(width: int, height: int, color=(200, 30, 30), fmt: str = "JPEG", mode: str = "RGB") -> bytes:
    return encode(Image.new(mode, (width, height), color), fmt)


def split_image(width: int, height: int, left=(255, 0, 0), right=(0, 0, 255)) -> Image.Image:
    """Left half one colour, right half another."""
    image = Image.new("RGB", (width, height), left)
    image.paste(Image.new("RGB", (width - width // 2, height), right), (width // 2, 0))
    return image


def noisy_image(width: int, height: int, seed: int = 0) -> Image.Image:
    rng = np.random.default_rng(seed)
    pixels = rng.integers(0, 256, size=(height, width, 3), dtype=np.uint8)
    return Image.fromarray(pixels, "RGB")


def open_image(data: bytes) -> Image.Image:
    image = Image.open(io.BytesIO(data))
    image.load()
    return image


@pytest.fixture
def image_dir(tmp_path):
    """Directory of source images used by pipeline and API tests."""
    root = tmp_path / "images"
    root.mkdir()

    (root / "landscape.jpg").write_bytes(make_image(1000, 500))
    (root / "portrait.jpg").write_bytes(make_image(500, 1000))
    (root / "split.png").write_bytes(encode(split_image(1000, 500), "PNG"))
    (root / "my photo.jpg").write_bytes(make_image(400, 200))
    (root / "notes.txt").write_bytes(b"not an image")

    nested = root / "albums" / "2024"
    nested.mkdir(parents=True)
    (nested / "cover.png").write_bytes(make_image(300, 300, fmt="PNG"))

    # Outside the image directory
    (tmp_path / "secret.jpg").write_bytes(make_image(10, 10))

    return root
