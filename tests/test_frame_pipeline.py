from __future__ import annotations

import random
import threading
import time
from pathlib import Path

import numpy as np
import pytest

from frame_pipeline import FramePipeline, FrameSequence, delay_ticks
from gif_errors import DecodeError, OpenError
from quantizer import PALETTE_SIZE, Frame


def marker_frame(value: int) -> Frame:
    return Frame(
        palette=np.zeros((PALETTE_SIZE, 3), dtype=np.uint8),
        indices=np.full((2, 2), value % 256, dtype=np.uint8),
    )


def index_of(path: Path) -> int:
    return int(path.stem)


class SlowDecoder:
    """Fake decoder: later paths finish first; tracks concurrency."""

    def __init__(self, total: int, fail: frozenset = frozenset()):
        self.total = total
        self.fail = fail
        self.active = 0
        self.peak = 0
        self.lock = threading.Lock()

    def __call__(self, path: Path) -> Frame:
        index = index_of(path)
        with self.lock:
            self.active += 1
            self.peak = max(self.peak, self.active)
        try:
            time.sleep(0.002 * (self.total - index) + random.uniform(0, 0.003))
            if index in self.fail:
                raise DecodeError(f"bad frame {index}", path)
            return marker_frame(index)
        finally:
            with self.lock:
                self.active -= 1


def make_paths(count: int) -> list[Path]:
    return [Path(f"{i}.jpg") for i in range(count)]


def test_delay_ticks_truncates_to_hundredths():
    assert delay_ticks(100) == 10
    assert delay_ticks(105) == 10
    assert delay_ticks(9) == 0
    with pytest.raises(ValueError):
        delay_ticks(-1)


@pytest.mark.parametrize("budget", [1, 3, 8])
def test_order_matches_input_regardless_of_completion(budget):
    paths = make_paths(12)
    pipeline = FramePipeline(decoder=SlowDecoder(len(paths)), worker_budget=budget)

    sequence = pipeline.run(paths, delay_ms=100)

    assert len(sequence) == len(paths)
    assert list(sequence.paths) == paths
    assert [int(f.indices[0, 0]) for f in sequence.frames] == list(range(12))
    assert sequence.delays == (10,) * 12
    assert sequence.frozen


def test_worker_budget_bounds_concurrency():
    paths = make_paths(10)
    decoder = SlowDecoder(len(paths))

    FramePipeline(decoder=decoder, worker_budget=2).run(paths)

    assert 1 <= decoder.peak <= 2


def test_failures_leave_empty_slots_in_place():
    paths = make_paths(5)
    decoder = SlowDecoder(len(paths), fail=frozenset({1, 3}))

    sequence = FramePipeline(decoder=decoder, worker_budget=4).run(paths, delay_ms=50)

    assert len(sequence.frames) == len(sequence.delays) == 5
    assert sequence.missing == [1, 3]
    assert sorted(sequence.errors) == [1, 3]
    assert all(isinstance(e, DecodeError) for e in sequence.errors.values())
    assert int(sequence.frames[4].indices[0, 0]) == 4
    assert sequence.delays == (5,) * 5


def test_unexpected_decoder_exception_is_recorded():
    def explode(path: Path) -> Frame:
        if index_of(path) == 0:
            raise RuntimeError("boom")
        return marker_frame(index_of(path))

    sequence = FramePipeline(decoder=explode, worker_budget=2).run(make_paths(2))

    assert sequence.missing == [0]
    assert isinstance(sequence.errors[0], DecodeError)
    assert "boom" in str(sequence.errors[0])


def test_open_errors_are_recorded():
    def missing(path: Path) -> Frame:
        raise OpenError("gone", path)

    sequence = FramePipeline(decoder=missing, worker_budget=1).run(make_paths(3))

    assert sequence.missing == [0, 1, 2]
    assert all(isinstance(e, OpenError) for e in sequence.errors.values())


def test_progress_called_once_per_task():
    calls = []
    pipeline = FramePipeline(
        decoder=SlowDecoder(6, fail=frozenset({2})),
        worker_budget=3,
        progress=lambda: calls.append(1),
    )

    pipeline.run(make_paths(6))

    assert len(calls) == 6


def test_empty_path_list_returns_empty_sequence():
    sequence = FramePipeline(decoder=marker_frame, worker_budget=2).run([])

    assert len(sequence) == 0
    assert sequence.frozen


def test_invalid_worker_budget_rejected():
    with pytest.raises(ValueError):
        FramePipeline(decoder=marker_frame, worker_budget=0)


def test_frozen_sequence_rejects_writes():
    sequence = FrameSequence(make_paths(1)).freeze()

    with pytest.raises(RuntimeError):
        sequence.put(0, marker_frame(0), 10)
