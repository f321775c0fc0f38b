#!/usr/bin/env python3
"""
Concurrent decode pipeline for giffer.

One thread is spawned per source path; a bounded semaphore limits how many of
them decode at once. Results land in a FrameSequence slot addressed by the
path's position, so frame order never depends on completion order.
"""

from __future__ import annotations

import logging
import os
import threading
from pathlib import Path
from typing import Callable, Optional, Sequence, Union

from frame_decoder import FrameDecoder
from gif_errors import DecodeError, FrameError
from quantizer import Frame

log = logging.getLogger("giffer")

Decoder = Callable[[Path], Frame]
ProgressCallback = Callable[[], None]


def delay_ticks(delay_ms: int) -> int:
    """Convert a delay in milliseconds to GIF ticks (hundredths of a second)."""
    if delay_ms < 0:
        raise ValueError(f"delay must be non-negative, got {delay_ms}ms")
    return int(delay_ms) // 10


def default_worker_budget() -> int:
    return os.cpu_count() or 1


class FrameSequence:
    """Fixed-length, index-aligned frames, delays and per-slot errors."""

    def __init__(self, paths: Sequence[Union[str, Path]]):
        self.paths: tuple[Path, ...] = tuple(Path(p) for p in paths)
        size = len(self.paths)
        self._frames: list[Optional[Frame]] = [None] * size
        self._delays: list[int] = [0] * size
        self._errors: dict[int, FrameError] = {}
        self._frozen = False

    def __len__(self) -> int:
        return len(self.paths)

    def put(self, index: int, frame: Optional[Frame], delay: int, error: Optional[FrameError] = None) -> None:
        """Write one slot. Callers serialize writes; the sequence holds no lock."""
        if self._frozen:
            raise RuntimeError("FrameSequence is frozen")
        self._frames[index] = frame
        self._delays[index] = delay
        if error is not None:
            self._errors[index] = error
        else:
            self._errors.pop(index, None)

    def freeze(self) -> "FrameSequence":
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def frames(self) -> tuple[Optional[Frame], ...]:
        return tuple(self._frames)

    @property
    def delays(self) -> tuple[int, ...]:
        return tuple(self._delays)

    @property
    def errors(self) -> dict[int, FrameError]:
        return dict(self._errors)

    @property
    def missing(self) -> list[int]:
        return [i for i, frame in enumerate(self._frames) if frame is None]


class FramePipeline:
    """Decodes paths concurrently under a fixed worker budget."""

    def __init__(
        self,
        decoder: Optional[Decoder] = None,
        worker_budget: Optional[int] = None,
        logger: Optional[logging.Logger] = None,
        progress: Optional[ProgressCallback] = None,
    ):
        budget = worker_budget if worker_budget is not None else default_worker_budget()
        if budget < 1:
            raise ValueError(f"worker_budget must be at least 1, got {budget}")
        self.decoder: Decoder = decoder or FrameDecoder()
        self.worker_budget = budget
        self.log = logger or log
        self.progress = progress

    def _decode_one(self, path: Path) -> tuple[Optional[Frame], Optional[FrameError]]:
        self.log.debug("Processing %s", path)
        try:
            return self.decoder(path), None
        except FrameError as exc:
            self.log.error("Failed to process %s: %s", path, exc)
            return None, exc
        except Exception as exc:
            self.log.exception("Unexpected error while processing %s", path)
            return None, DecodeError(f"{type(exc).__name__}: {exc}", path)

    def _task(
        self,
        index: int,
        path: Path,
        delay: int,
        sequence: FrameSequence,
        slots: threading.BoundedSemaphore,
        write_lock: threading.Lock,
    ) -> None:
        with slots:
            frame, error = self._decode_one(path)

        with write_lock:
            sequence.put(index, frame, delay, error)
            if self.progress is not None:
                self.progress()

    def run(self, paths: Sequence[Union[str, Path]], delay_ms: int = 100) -> FrameSequence:
        """
        Decode every path and return the frozen, input-ordered FrameSequence.

        Failed files leave an empty slot and an entry in ``errors``; they never
        shift later frames. Blocks until every task has finished.
        """
        sequence = FrameSequence(paths)
        delay = delay_ticks(delay_ms)
        slots = threading.BoundedSemaphore(self.worker_budget)
        write_lock = threading.Lock()

        self.log.info(
            "Processing %d file(s) with %d worker(s)", len(sequence), self.worker_budget
        )

        threads: list[threading.Thread] = []
        for index, path in enumerate(sequence.paths):
            thread = threading.Thread(
                target=self._task,
                args=(index, path, delay, sequence, slots, write_lock),
                name=f"decode-{index}",
            )
            thread.start()
            threads.append(thread)

        for thread in threads:
            thread.join()

        sequence.freeze()
        failed = len(sequence.errors)
        self.log.info("Decoded %d/%d frame(s), %d failed", len(sequence) - failed, len(sequence), failed)
        return sequence
