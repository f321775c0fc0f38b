from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest
from PIL import Image

SOLID_COLORS = [(200, 30, 30), (30, 200, 30), (30, 30, 200)]


def write_jpeg(path: Path, pixels: np.ndarray, quality: int = 95) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.fromarray(pixels.astype(np.uint8)).save(path, format="JPEG", quality=quality)
    return path


def solid_pixels(color, size=(16, 16)) -> np.ndarray:
    width, height = size
    return np.tile(np.asarray(color, dtype=np.uint8), (height, width, 1))


def noisy_pixels(seed: int, size=(48, 48)) -> np.ndarray:
    width, height = size
    rng = np.random.default_rng(seed)
    return rng.integers(0, 256, size=(height, width, 3), dtype=np.uint8)


def read_gif_blocks(data: bytes) -> dict:
    """Walk the GIF block structure and return delays, image count and trailer state."""
    assert data[:6] in (b"GIF87a", b"GIF89a")
    flags = data[10]
    pos = 13
    if flags & 0x80:
        pos += 3 * (2 << (flags & 0x07))

    def skip_sub_blocks(offset: int) -> int:
        while True:
            length = data[offset]
            offset += 1
            if length == 0:
                return offset
            offset += length

    delays: list[int] = []
    images = 0
    extensions: list[int] = []
    while True:
        marker = data[pos]
        if marker == 0x3B:
            return {
                "delays": delays,
                "images": images,
                "extensions": extensions,
                "trailer_at_end": pos == len(data) - 1,
            }
        if marker == 0x21:
            label = data[pos + 1]
            extensions.append(label)
            pos += 2
            if label == 0xF9:
                delays.append(data[pos + 2] | (data[pos + 3] << 8))
            pos = skip_sub_blocks(pos)
        elif marker == 0x2C:
            local_flags = data[pos + 9]
            pos += 10
            if local_flags & 0x80:
                pos += 3 * (2 << (local_flags & 0x07))
            pos += 1
            pos = skip_sub_blocks(pos)
            images += 1
        else:
            raise AssertionError(f"unexpected GIF block 0x{marker:02x} at {pos}")


@pytest.fixture
def jpeg_dir(tmp_path: Path) -> Path:
    """Directory with three distinct solid-color JPEGs."""
    root = tmp_path / "frames"
    for name, color in zip(("a.jpg", "b.jpg", "c.jpg"), SOLID_COLORS):
        write_jpeg(root / name, solid_pixels(color))
    return root


@pytest.fixture
def noisy_dir(tmp_path: Path) -> Path:
    """Directory with several JPEGs holding far more than 256 colors."""
    root = tmp_path / "noisy"
    for i in range(6):
        write_jpeg(root / f"frame_{i:02d}.jpg", noisy_pixels(seed=i))
    return root
