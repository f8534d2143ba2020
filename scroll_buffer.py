# -*- coding: utf-8 -*-
########################
# scroll_buffer.py
########################
# Purpose:
# - The fretboard: a fixed-capacity sliding window of generated frames.
# - Owns frame generation (filler and single random note) and trimming.
#
# Design notes:
# - No Qt usage. Pure gameplay logic.
# - Oldest frame first. New frames enter at the far end, trim evicts from index 0.
# - Judgement rows are fixed indexes, so trim must run before judgement and render each tick.
# - Index validity is a startup precondition checked by the controller, not a runtime check here.
#
########################
# Interfaces:
# Public classes:
# - class ScrollBuffer
#   - __init__(lane_count: int, height: int)
#   - initialize() -> None
#   - append_filler() -> None
#   - append_random_note(rng: random.Random) -> int
#   - trim() -> None
#   - row(index: int) -> Frame
#   - mark(index: int, lane: int, state: CellState) -> None
#   - visible_frames() -> tuple[Frame, ...]
#
########################

from __future__ import annotations

import random
from typing import List, Tuple

from gameplay_models import CellState, Frame


class ScrollBuffer:
    def __init__(self, lane_count: int, height: int) -> None:
        if int(lane_count) <= 0:
            raise ValueError("lane_count must be positive")
        if int(height) <= 0:
            raise ValueError("height must be positive")
        self._lane_count = int(lane_count)
        self._height = int(height)
        self._frames: List[Frame] = []

    @property
    def lane_count(self) -> int:
        return self._lane_count

    @property
    def height(self) -> int:
        return self._height

    def __len__(self) -> int:
        return len(self._frames)

    def initialize(self) -> None:
        self._frames = [Frame.filler(self._lane_count) for _ in range(self._height)]

    def append_filler(self) -> None:
        self._frames.append(Frame.filler(self._lane_count))

    def append_random_note(self, rng: random.Random) -> int:
        """Append a frame with one note in a uniformly chosen lane. Returns the lane."""
        lane = rng.randrange(self._lane_count)
        self._frames.append(Frame.single_note(self._lane_count, lane))
        return lane

    def append_frame(self, frame: Frame) -> None:
        if frame.lane_count != self._lane_count:
            raise ValueError(f"frame has {frame.lane_count} lanes, buffer has {self._lane_count}")
        self._frames.append(frame)

    def trim(self) -> None:
        overflow = len(self._frames) - self._height
        if overflow > 0:
            del self._frames[:overflow]

    def row(self, index: int) -> Frame:
        return self._frames[int(index)]

    def mark(self, index: int, lane: int, state: CellState) -> None:
        self._frames[int(index)] = self._frames[int(index)].with_cell(lane, state)

    def visible_frames(self) -> Tuple[Frame, ...]:
        return tuple(self._frames)


def _run_unit_tests() -> None:
    buffer = ScrollBuffer(lane_count=4, height=6)
    buffer.initialize()
    assert len(buffer) == 6
    assert not any(frame.has_note() for frame in buffer.visible_frames())

    rng = random.Random(7)
    lane = buffer.append_random_note(rng)
    assert 0 <= lane < 4
    assert len(buffer) == 7

    buffer.trim()
    assert len(buffer) == 6
    assert buffer.row(5).has_note(lane)

    # Trim is idempotent.
    before = buffer.visible_frames()
    buffer.trim()
    assert buffer.visible_frames() == before

    # Frames migrate toward index 0 as new ones arrive.
    buffer.append_filler()
    buffer.trim()
    assert buffer.row(4).has_note(lane)

    buffer.mark(4, lane, CellState.HIT_HALF)
    assert buffer.row(4).cells[lane] == CellState.HIT_HALF
    assert not buffer.row(4).has_note()

    # Uniform lane choice covers every lane over enough draws.
    seen = set()
    for _ in range(200):
        seen.add(buffer.append_random_note(rng))
    buffer.trim()
    assert seen == {0, 1, 2, 3}
    assert len(buffer) == 6


if __name__ == "__main__":
    _run_unit_tests()
    print("scroll_buffer.py: ok")
