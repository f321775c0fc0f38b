#!/usr/bin/env python3
"""Decode a single JPEG file into a paletted GIF frame."""

from __future__ import annotations

from pathlib import Path
from typing import Union

from PIL import Image, UnidentifiedImageError

from gif_errors import DecodeError, OpenError
from quantizer import PALETTE_SIZE, Frame, quantize


class FrameDecoder:
    """Callable that turns one source path into a Frame."""

    def __init__(self, colors: int = PALETTE_SIZE):
        if not 2 <= colors <= PALETTE_SIZE:
            raise ValueError(f"colors must be between 2 and {PALETTE_SIZE}, got {colors}")
        self.colors = colors

    def __call__(self, path: Union[str, Path]) -> Frame:
        return self.decode(path)

    def decode(self, path: Union[str, Path]) -> Frame:
        """
        Open, decode and quantize ``path``.

        Raises:
            OpenError: the file cannot be opened (missing, permission denied,
                not a regular file).
            DecodeError: the bytes are not a valid JPEG.
        """
        source = Path(path)
        try:
            handle = source.open("rb")
        except OSError as exc:
            raise OpenError(f"Cannot open {source}: {exc}", source) from exc

        with handle:
            try:
                image = Image.open(handle, formats=["JPEG"])
                # Pillow decodes lazily; force it while the handle is open.
                image.load()
            except UnidentifiedImageError as exc:
                raise DecodeError(f"Not a JPEG image: {source}", source) from exc
            except (OSError, SyntaxError, ValueError) as exc:
                raise DecodeError(f"Cannot decode {source}: {exc}", source) from exc

        return quantize(image, self.colors)


def decode(path: Union[str, Path], colors: int = PALETTE_SIZE) -> Frame:
    return FrameDecoder(colors).decode(path)
