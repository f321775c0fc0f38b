#!/usr/bin/env python3
"""
Median-cut color quantization for GIF frames.

A Frame is a paletted raster: a fixed 256-entry RGB color table plus one
palette index per pixel. Quantization is deterministic; identical input
pixels always give an identical Frame.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from PIL import Image

PALETTE_SIZE = 256

# Rows of distinct colors matched against the palette per step.
_NEAREST_CHUNK = 2048


@dataclass(frozen=True, eq=False)
class Frame:
    """Immutable paletted image: ``palette`` (256, 3) and ``indices`` (h, w)."""

    palette: np.ndarray
    indices: np.ndarray

    def __post_init__(self) -> None:
        palette = np.array(self.palette, dtype=np.uint8, order="C")
        indices = np.array(self.indices, dtype=np.uint8, order="C")
        if palette.shape != (PALETTE_SIZE, 3):
            raise ValueError(f"palette must have shape ({PALETTE_SIZE}, 3), got {palette.shape}")
        if indices.ndim != 2:
            raise ValueError(f"indices must be 2-D, got shape {indices.shape}")
        palette.flags.writeable = False
        indices.flags.writeable = False
        object.__setattr__(self, "palette", palette)
        object.__setattr__(self, "indices", indices)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Frame):
            return NotImplemented
        return np.array_equal(self.palette, other.palette) and np.array_equal(self.indices, other.indices)

    __hash__ = None

    @property
    def size(self) -> tuple[int, int]:
        """(width, height), matching Pillow's convention."""
        height, width = self.indices.shape
        return width, height

    def color_count(self) -> int:
        """Number of distinct palette entries actually used by pixels."""
        return int(np.unique(self.indices).size)

    def to_image(self) -> Image.Image:
        image = Image.frombytes("P", self.size, self.indices.tobytes())
        image.putpalette(self.palette.tobytes())
        return image

    @classmethod
    def from_paletted(cls, image: Image.Image) -> "Frame":
        """Wrap a mode "P" image as-is, padding its palette to 256 entries."""
        if image.mode != "P":
            raise ValueError(f"expected a mode 'P' image, got {image.mode!r}")
        raw = image.getpalette() or []
        palette = np.zeros((PALETTE_SIZE, 3), dtype=np.uint8)
        entries = np.asarray(raw[: PALETTE_SIZE * 3], dtype=np.uint8)
        entries = entries[: entries.size - entries.size % 3].reshape(-1, 3)
        palette[: len(entries)] = entries
        return cls(palette=palette, indices=np.asarray(image, dtype=np.uint8))


def _pad_palette(colors: np.ndarray) -> np.ndarray:
    palette = np.zeros((PALETTE_SIZE, 3), dtype=np.uint8)
    palette[: len(colors)] = colors
    return palette


def _distinct_colors(pixels: np.ndarray) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Return (colors, inverse, counts) for an (n, 3) uint8 pixel array."""
    rgb = pixels.astype(np.uint32)
    keys = (rgb[:, 0] << 16) | (rgb[:, 1] << 8) | rgb[:, 2]
    unique_keys, inverse, counts = np.unique(keys, return_inverse=True, return_counts=True)
    colors = np.stack(
        [(unique_keys >> 16) & 0xFF, (unique_keys >> 8) & 0xFF, unique_keys & 0xFF],
        axis=1,
    ).astype(np.uint8)
    return colors, inverse.reshape(-1), counts


def _channel_spread(colors: np.ndarray) -> tuple[int, int]:
    """Return (range, channel) of the widest channel in a bucket."""
    spans = colors.max(axis=0).astype(np.int16) - colors.min(axis=0).astype(np.int16)
    channel = int(np.argmax(spans))
    return int(spans[channel]), channel


def median_cut(colors: np.ndarray, counts: np.ndarray, num_colors: int) -> np.ndarray:
    """
    Reduce weighted distinct ``colors`` to at most ``num_colors`` representatives.

    The bucket with the largest channel range is split at the weighted median
    of that channel until ``num_colors`` buckets exist or every bucket holds a
    single color. Representatives are count-weighted bucket means.
    """
    buckets: list[np.ndarray] = [np.arange(len(colors))]
    spreads: list[tuple[int, int]] = [_channel_spread(colors)]

    while len(buckets) < num_colors:
        target = max(range(len(buckets)), key=lambda i: spreads[i][0])
        spread, channel = spreads[target]
        if spread == 0:
            break

        members = buckets[target]
        order = np.argsort(colors[members, channel], kind="stable")
        members = members[order]
        weights = np.cumsum(counts[members])
        cut = int(np.searchsorted(weights, weights[-1] / 2.0)) + 1
        cut = min(max(cut, 1), len(members) - 1)

        low, high = members[:cut], members[cut:]
        buckets[target] = low
        spreads[target] = _channel_spread(colors[low])
        buckets.append(high)
        spreads.append(_channel_spread(colors[high]))

    representatives = []
    for members in buckets:
        weight = counts[members].astype(np.float64)
        mean = (colors[members].astype(np.float64) * weight[:, None]).sum(axis=0) / weight.sum()
        representatives.append(np.rint(mean))
    return np.asarray(representatives, dtype=np.uint8)


def nearest_indices(colors: np.ndarray, palette: np.ndarray) -> np.ndarray:
    """Index of the closest palette entry for each color (ties go low)."""
    table = palette.astype(np.int32)
    result = np.empty(len(colors), dtype=np.uint8)
    for start in range(0, len(colors), _NEAREST_CHUNK):
        block = colors[start : start + _NEAREST_CHUNK].astype(np.int32)
        distances = ((block[:, None, :] - table[None, :, :]) ** 2).sum(axis=2)
        result[start : start + len(block)] = distances.argmin(axis=1)
    return result


def quantize(image: Image.Image, colors: int = PALETTE_SIZE) -> Frame:
    """
    Convert ``image`` to a Frame with at most ``colors`` palette entries.

    Paletted images pass through untouched so that re-quantizing a Frame's
    own image is a no-op.
    """
    if not 2 <= colors <= PALETTE_SIZE:
        raise ValueError(f"colors must be between 2 and {PALETTE_SIZE}, got {colors}")

    if image.mode == "P":
        return Frame.from_paletted(image)

    rgb = np.asarray(image.convert("RGB"), dtype=np.uint8)
    height, width, _ = rgb.shape
    distinct, inverse, counts = _distinct_colors(rgb.reshape(-1, 3))

    if len(distinct) <= colors:
        palette = distinct
        lut = np.arange(len(distinct), dtype=np.uint8)
    else:
        palette = median_cut(distinct, counts, colors)
        lut = nearest_indices(distinct, palette)

    indices = lut[inverse].reshape(height, width)
    return Frame(palette=_pad_palette(palette), indices=indices)
