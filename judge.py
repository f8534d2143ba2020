# -*- coding: utf-8 -*-
########################
# judge.py
########################
# Purpose:
# - Hit judgement and scoring engine.
# - Classifies a keypress against the rows around the fixed bar (above, bar, below).
# - Scores an unconsumed note in the miss row once per tick.
#
# Design notes:
# - No Qt usage. Pure gameplay logic.
# - Strict inputs: a single key character, or a tick boundary.
# - ScrollBuffer owns the frames; JudgeEngine marks consumed cells via ScrollBuffer.mark.
# - The miss row is never part of the keypress hit window. A note there is already lost.
#
########################
# Interfaces:
# Constants:
# - HALF_VALUE, FULL_VALUE, STREAK_STEP, MAX_MULTIPLIER
#
# Public dataclasses:
# - JudgementZones(bar_index: int)
#   - above, bar, below, miss -> int
#   - min_height() -> int
#   - validate_height(height: int) -> None
# - Stats(
#     total_notes: int,
#     correct_notes: int,
#     mistaken_notes: int,
#     score: int,
#     last_note_delta: int,
#     streak: int,
#   )
#   - record_correct() -> None
#   - record_incorrect() -> None
#   - total_notes_add(count: int) -> None
#   - apply(delta: int) -> None
#   - multiplier() -> int
#   - accuracy() -> float
#
# Public classes:
# - class JudgeEngine
#   - __init__(scroll_buffer: ScrollBuffer, stats: Stats, zones: JudgementZones, lane_keys: Sequence[str])
#   - stats() -> Stats
#   - recent_judgements() -> list[JudgementEvent]
#   - on_key(key: str) -> JudgementEvent
#   - update_for_tick() -> Optional[JudgementEvent]
#
########################

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Deque, List, Optional, Sequence, Tuple

import gameplay_models
import scroll_buffer
from gameplay_models import CellState, JudgementEvent, JudgementKind


HALF_VALUE = 50
FULL_VALUE = 100
STREAK_STEP = 10
MAX_MULTIPLIER = 9

RECENT_JUDGEMENTS_KEPT = 16


@dataclass(frozen=True)
class JudgementZones:
    bar_index: int = 3

    @property
    def above(self) -> int:
        return int(self.bar_index) + 1

    @property
    def bar(self) -> int:
        return int(self.bar_index)

    @property
    def below(self) -> int:
        return int(self.bar_index) - 1

    @property
    def miss(self) -> int:
        return int(self.bar_index) - 2

    def min_height(self) -> int:
        return self.above + 1

    def validate_height(self, height: int) -> None:
        if self.miss < 0:
            raise ValueError(f"bar_index must be at least 2, got {self.bar_index}")
        if int(height) < self.min_height():
            raise ValueError(f"height {height} cannot fit the judgement rows, need at least {self.min_height()}")


@dataclass
class Stats:
    total_notes: int = 0
    correct_notes: int = 0
    mistaken_notes: int = 0
    score: int = 0
    last_note_delta: int = 0
    streak: int = 0

    def multiplier(self) -> int:
        return min(1 + self.streak // STREAK_STEP, MAX_MULTIPLIER)

    def accuracy(self) -> float:
        denominator = self.total_notes + self.mistaken_notes
        if denominator == 0:
            return 0.0
        return max(self.correct_notes / denominator * 100.0, 0.0)

    def apply(self, delta: int) -> None:
        self.last_note_delta = int(delta) * self.multiplier()
        self.score += self.last_note_delta
        if self.score < 0:
            self.score = 0

    def record_correct(self) -> None:
        self.correct_notes += 1
        self.total_notes += 1
        self.streak += 1

    def record_incorrect(self) -> None:
        self.streak = 0
        self.mistaken_notes += 1
        self.apply(-HALF_VALUE)

    def total_notes_add(self, count: int) -> None:
        self.total_notes += int(count)


class JudgeEngine:
    def __init__(
        self,
        scroll_buffer_obj: scroll_buffer.ScrollBuffer,
        stats: Stats,
        zones: JudgementZones,
        lane_keys: Sequence[str],
    ) -> None:
        if len(lane_keys) != scroll_buffer_obj.lane_count:
            raise ValueError("lane_keys must match the buffer lane count")
        self._buffer = scroll_buffer_obj
        self._stats = stats
        self._zones = zones
        self._lane_of_key = {str(key): index for index, key in enumerate(lane_keys)}
        self._recent_judgements: Deque[JudgementEvent] = deque(maxlen=RECENT_JUDGEMENTS_KEPT)

    def stats(self) -> Stats:
        return self._stats

    def zones(self) -> JudgementZones:
        return self._zones

    def recent_judgements(self) -> List[JudgementEvent]:
        return list(self._recent_judgements)

    def _hit_window(self) -> Tuple[Tuple[str, int, int, CellState], ...]:
        # Bar first so it takes scoring priority.
        return (
            ("bar", self._zones.bar, FULL_VALUE, CellState.HIT_FULL),
            ("above", self._zones.above, HALF_VALUE, CellState.HIT_HALF),
            ("below", self._zones.below, HALF_VALUE, CellState.HIT_HALF),
        )

    def on_key(self, key: str) -> JudgementEvent:
        lane = self._lane_of_key.get(str(key))
        if lane is None:
            self._stats.record_incorrect()
            return self._remember(JudgementKind.INVALID_KEY, key, None, (), self._stats.last_note_delta)

        matched = [
            (zone_name, row_index, value, marker)
            for zone_name, row_index, value, marker in self._hit_window()
            if self._buffer.row(row_index).has_note(lane)
        ]
        if not matched:
            self._stats.record_incorrect()
            return self._remember(JudgementKind.WRONG_KEY, key, lane, (), self._stats.last_note_delta)

        gained = 0
        for _zone_name, row_index, value, marker in matched:
            # Re-check: a cell consumed earlier in this loop is no longer live.
            if not self._buffer.row(row_index).has_note(lane):
                continue
            self._buffer.mark(row_index, lane, marker)
            self._stats.apply(value)
            gained += self._stats.last_note_delta

        # One streak step per press, however many rows matched.
        self._stats.record_correct()
        zone_names = tuple(zone_name for zone_name, _row, _value, _marker in matched)
        return self._remember(JudgementKind.HIT, key, lane, zone_names, gained)

    def update_for_tick(self) -> Optional[JudgementEvent]:
        miss_row = self._buffer.row(self._zones.miss)
        if not miss_row.has_note():
            return None

        lane = miss_row.cells.index(CellState.NOTE)
        self._stats.record_incorrect()
        # A lost note still counts toward the round total.
        self._stats.total_notes_add(1)
        return self._remember(JudgementKind.MISSED, None, lane, ("miss",), self._stats.last_note_delta)

    def _remember(
        self,
        kind: JudgementKind,
        key: Optional[str],
        lane: Optional[int],
        zones: Tuple[str, ...],
        delta: int,
    ) -> JudgementEvent:
        event = gameplay_models.JudgementEvent(kind=kind, key=key, lane=lane, zones=zones, delta=int(delta))
        self._recent_judgements.append(event)
        return event


def _build_engine(height: int = 6, bar_index: int = 3):
    buffer = scroll_buffer.ScrollBuffer(lane_count=4, height=height)
    buffer.initialize()
    stats = Stats()
    zones = JudgementZones(bar_index=bar_index)
    zones.validate_height(height)
    engine = JudgeEngine(buffer, stats, zones, ["h", "j", "k", "l"])
    return buffer, stats, engine


def _advance(buffer: scroll_buffer.ScrollBuffer, engine: JudgeEngine, frame=None) -> Optional[JudgementEvent]:
    if frame is None:
        buffer.append_filler()
    else:
        buffer.append_frame(frame)
    buffer.trim()
    return engine.update_for_tick()


def _run_unit_tests() -> None:
    # Multiplier is non-decreasing in streak and capped.
    stats = Stats()
    previous = 0
    for streak in range(0, 200):
        stats.streak = streak
        value = stats.multiplier()
        assert value == min(1 + streak // STREAK_STEP, MAX_MULTIPLIER)
        assert value >= previous
        previous = value
    assert previous == MAX_MULTIPLIER

    # Score never goes negative.
    stats = Stats()
    for delta in (-100, 50, -500, 25, -1):
        stats.apply(delta)
        assert stats.score >= 0

    # Accuracy guard and formula.
    stats = Stats()
    assert stats.accuracy() == 0.0
    stats.record_correct()
    stats.record_correct()
    stats.record_incorrect()
    assert abs(stats.accuracy() - (2 / 3 * 100.0)) < 1e-9

    # Scenario A: note in the row above the bar, pressed before the next tick.
    buffer, stats, engine = _build_engine()
    note = gameplay_models.Frame.single_note(4, 1)
    _advance(buffer, engine, note)  # lands at index 5
    _advance(buffer, engine)  # migrates to index 4 (above)
    assert buffer.row(4).has_note(1)
    event = engine.on_key("j")
    assert event.kind == JudgementKind.HIT
    assert event.zones == ("above",)
    assert stats.correct_notes == 1
    assert stats.score == HALF_VALUE * 1 == 50
    assert buffer.row(4).cells[1] == CellState.HIT_HALF

    # The consumed note is never counted as a miss later.
    for _ in range(5):
        assert _advance(buffer, engine) is None
    assert stats.mistaken_notes == 0

    # Scenario B: note on the bar, wrong lane key pressed.
    buffer, stats, engine = _build_engine()
    _advance(buffer, engine, note)
    _advance(buffer, engine)
    _advance(buffer, engine)  # index 3 (bar)
    assert buffer.row(3).has_note(1)
    event = engine.on_key("k")
    assert event.kind == JudgementKind.WRONG_KEY
    assert stats.mistaken_notes == 1
    assert stats.streak == 0
    assert stats.score == 0

    # Scenario C: a note nobody presses is missed exactly once.
    buffer, stats, engine = _build_engine()
    misses = [_advance(buffer, engine, note)]
    for _ in range(8):
        misses.append(_advance(buffer, engine))
    assert len([m for m in misses if m is not None]) == 1
    assert stats.mistaken_notes == 1
    assert stats.total_notes == 1
    assert stats.correct_notes == 0

    # Invalid key.
    buffer, stats, engine = _build_engine()
    event = engine.on_key("z")
    assert event.kind == JudgementKind.INVALID_KEY
    assert stats.mistaken_notes == 1

    # A note sitting in the miss row cannot be rescued.
    buffer, stats, engine = _build_engine()
    _advance(buffer, engine, note)
    for _ in range(3):
        _advance(buffer, engine)
    assert buffer.row(2).has_note(1)  # below
    missed = _advance(buffer, engine)
    assert missed is not None and missed.kind == JudgementKind.MISSED
    assert engine.on_key("j").kind == JudgementKind.WRONG_KEY
    assert stats.mistaken_notes == 2

    # A late hit in the row below the bar is not counted again when it reaches the miss row.
    buffer, stats, engine = _build_engine()
    _advance(buffer, engine, note)
    for _ in range(3):
        _advance(buffer, engine)
    assert buffer.row(2).has_note(1)
    event = engine.on_key("j")
    assert event.kind == JudgementKind.HIT
    assert event.zones == ("below",)
    assert stats.score == HALF_VALUE
    assert buffer.row(2).cells[1] == CellState.HIT_HALF
    assert _advance(buffer, engine) is None
    assert buffer.row(1).cells[1] == CellState.HIT_HALF
    assert stats.mistaken_notes == 0
    assert stats.total_notes == 1

    # Generous window: bar and above in the same lane both score, streak steps once.
    buffer, stats, engine = _build_engine()
    _advance(buffer, engine, note)
    _advance(buffer, engine, note)
    _advance(buffer, engine)
    assert buffer.row(3).has_note(1) and buffer.row(4).has_note(1)
    event = engine.on_key("j")
    assert event.zones == ("bar", "above")
    assert stats.score == FULL_VALUE + HALF_VALUE
    assert stats.streak == 1
    assert stats.correct_notes == 1
    assert engine.on_key("j").kind == JudgementKind.WRONG_KEY

    # Streak growth raises the multiplier applied to later hits.
    stats = Stats(streak=STREAK_STEP)
    stats.apply(FULL_VALUE)
    assert stats.last_note_delta == 2 * FULL_VALUE

    zones = JudgementZones(bar_index=3)
    assert (zones.miss, zones.below, zones.bar, zones.above) == (1, 2, 3, 4)
    try:
        zones.validate_height(4)
    except ValueError:
        pass
    else:
        raise AssertionError("height 4 should be rejected")


if __name__ == "__main__":
    _run_unit_tests()
    print("judge.py: ok")
