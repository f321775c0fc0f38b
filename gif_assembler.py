#!/usr/bin/env python3
"""Build and write the animated GIF from a finished FrameSequence."""

from __future__ import annotations

import io
import logging
import os
from pathlib import Path
from typing import Optional, Union

from PIL import GifImagePlugin

from frame_pipeline import FrameSequence
from gif_errors import EncodeError, OutputExistsError

log = logging.getLogger("giffer")

DISPOSAL_NONE = 1
GIF_TRAILER = b";"


class GifAssembler:
    """Serializes frames one by one with Pillow's GIF block writer."""

    def __init__(self, loop: int = 0, logger: Optional[logging.Logger] = None):
        self.loop = loop
        self.log = logger or log

    def assemble(self, sequence: FrameSequence) -> bytes:
        """
        Encode every frame of ``sequence`` into animated GIF bytes.

        Every slot becomes exactly one frame: a graphic-control extension with
        the slot's delay in hundredths of a second, an image descriptor and a
        local color table. Identical neighbouring frames are kept as-is.

        Raises:
            EncodeError: the sequence is empty, a slot has no frame, the
                frames differ in size, or Pillow fails to encode.
        """
        if len(sequence) == 0:
            raise EncodeError("No frames to encode")

        missing = sequence.missing
        if missing:
            names = ", ".join(str(sequence.paths[i]) for i in missing)
            raise EncodeError(f"{len(missing)} frame(s) failed to decode: {names}")

        frames = sequence.frames
        size = frames[0].size
        for index, frame in enumerate(frames):
            if frame.size != size:
                raise EncodeError(
                    f"Frame {index} ({sequence.paths[index]}) is {frame.size[0]}x{frame.size[1]}, "
                    f"expected {size[0]}x{size[1]}"
                )

        images = [frame.to_image() for frame in frames]

        buffer = io.BytesIO()
        try:
            header, _ = GifImagePlugin.getheader(images[0], info={"loop": self.loop})
            for chunk in header:
                buffer.write(chunk)
            for image, ticks in zip(images, sequence.delays):
                # Disposal 1 (leave in place) keeps the control block present
                # even when the delay is 0 ticks. Pillow takes milliseconds.
                chunks = GifImagePlugin.getdata(
                    image,
                    duration=ticks * 10,
                    disposal=DISPOSAL_NONE,
                    include_color_table=True,
                )
                for chunk in chunks:
                    buffer.write(chunk)
            buffer.write(GIF_TRAILER)
        except (OSError, ValueError) as exc:
            raise EncodeError(f"Cannot encode GIF: {exc}") from exc

        data = buffer.getvalue()
        self.log.debug("Encoded %d frame(s) into %d bytes", len(images), len(data))
        return data

    def write(self, data: bytes, destination: Union[str, Path]) -> None:
        """
        Write ``data`` to a new file at ``destination``.

        The file is created exclusively; an existing file is never replaced.
        A partially written file is removed again.
        """
        target = Path(destination)
        try:
            handle = target.open("xb")
        except FileExistsError as exc:
            raise OutputExistsError(f"Output file already exists: {target}") from exc
        except OSError as exc:
            raise EncodeError(f"Cannot create {target}: {exc}") from exc

        try:
            with handle:
                handle.write(data)
        except OSError as exc:
            try:
                os.unlink(target)
            except OSError:
                self.log.warning("Could not remove partial output %s", target)
            raise EncodeError(f"Cannot write {target}: {exc}") from exc

    def save(self, sequence: FrameSequence, destination: Union[str, Path]) -> int:
        """Assemble then write; nothing is created when encoding fails."""
        data = self.assemble(sequence)
        self.write(data, destination)
        self.log.info("Wrote %s (%d frames, %d bytes)", destination, len(sequence), len(data))
        return len(data)
