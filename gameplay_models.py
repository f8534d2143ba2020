# -*- coding: utf-8 -*-
########################
# gameplay_models.py
########################
# Purpose:
# - Core gameplay data models shared by the buffer, judge, controller and renderer.
# - Defines frames, control messages and the immutable snapshots handed to collaborators.
#
# Design notes:
# - Keep these models stable. Prefer extending with new optional fields rather than breaking changes.
# - No Qt usage. These are plain dataclasses and enums.
# - Frames are immutable. Marking a cell builds a replacement frame.
#
########################
# Interfaces:
# Public enums:
# - CellState: EMPTY, NOTE, HIT_FULL, HIT_HALF
# - MessageKind: TICK, KEY, PAUSE, RESTART, QUIT, SPEED_UP, SPEED_DOWN, INPUT_FAILED
# - JudgementKind: HIT, WRONG_KEY, INVALID_KEY, MISSED
#
# Public dataclasses:
# - Frame(cells: tuple[CellState, ...])
# - ControlMessage(kind: MessageKind, key: Optional[str], reason: Optional[str])
# - JudgementEvent(kind: JudgementKind, key: Optional[str], lane: Optional[int], zones: tuple[str, ...], delta: int)
# - StatsSnapshot(score, accuracy, last_delta, streak, multiplier, time_left_ms, speed, state, player_name, last_judgement)
# - RoundSummary(player_name, speed, score, accuracy, correct_notes, mistaken_notes, total_notes)
#
########################

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple


class CellState(str, Enum):
    EMPTY = "EMPTY"
    NOTE = "NOTE"
    HIT_FULL = "HIT_FULL"
    HIT_HALF = "HIT_HALF"


@dataclass(frozen=True)
class Frame:
    cells: Tuple[CellState, ...]

    @classmethod
    def filler(cls, lane_count: int) -> "Frame":
        return cls(cells=tuple(CellState.EMPTY for _ in range(int(lane_count))))

    @classmethod
    def single_note(cls, lane_count: int, lane: int) -> "Frame":
        return cls(
            cells=tuple(CellState.NOTE if index == int(lane) else CellState.EMPTY for index in range(int(lane_count)))
        )

    @property
    def lane_count(self) -> int:
        return len(self.cells)

    def has_note(self, lane: Optional[int] = None) -> bool:
        """True if the lane (or any lane when lane is None) holds an unconsumed note."""
        if lane is None:
            return CellState.NOTE in self.cells
        return self.cells[int(lane)] == CellState.NOTE

    def with_cell(self, lane: int, state: CellState) -> "Frame":
        cells = list(self.cells)
        cells[int(lane)] = state
        return Frame(cells=tuple(cells))


class MessageKind(str, Enum):
    TICK = "TICK"
    KEY = "KEY"
    PAUSE = "PAUSE"
    RESTART = "RESTART"
    QUIT = "QUIT"
    SPEED_UP = "SPEED_UP"
    SPEED_DOWN = "SPEED_DOWN"
    INPUT_FAILED = "INPUT_FAILED"


@dataclass(frozen=True)
class ControlMessage:
    kind: MessageKind
    key: Optional[str] = None
    reason: Optional[str] = None

    @classmethod
    def tick(cls) -> "ControlMessage":
        return cls(kind=MessageKind.TICK)

    @classmethod
    def key_press(cls, key: str) -> "ControlMessage":
        return cls(kind=MessageKind.KEY, key=str(key))

    @classmethod
    def input_failed(cls, reason: str) -> "ControlMessage":
        return cls(kind=MessageKind.INPUT_FAILED, reason=str(reason))


class JudgementKind(str, Enum):
    HIT = "HIT"
    WRONG_KEY = "WRONG_KEY"
    INVALID_KEY = "INVALID_KEY"
    MISSED = "MISSED"


@dataclass(frozen=True)
class JudgementEvent:
    kind: JudgementKind
    key: Optional[str]
    lane: Optional[int]
    zones: Tuple[str, ...]
    delta: int


@dataclass(frozen=True)
class StatsSnapshot:
    score: int
    accuracy: float
    last_delta: int
    streak: int
    multiplier: int
    time_left_ms: int
    speed: int
    state: str
    player_name: str = ""
    last_judgement: Optional[JudgementEvent] = None


@dataclass(frozen=True)
class RoundSummary:
    player_name: str
    speed: int
    score: int
    accuracy: float
    correct_notes: int
    mistaken_notes: int
    total_notes: int


def _run_unit_tests() -> None:
    frame = Frame.single_note(4, 2)
    assert frame.cells == (CellState.EMPTY, CellState.EMPTY, CellState.NOTE, CellState.EMPTY)
    assert frame.has_note()
    assert frame.has_note(2)
    assert not frame.has_note(1)

    marked = frame.with_cell(2, CellState.HIT_FULL)
    assert not marked.has_note()
    assert frame.has_note(2)

    assert not Frame.filler(4).has_note()
    assert Frame.filler(4).lane_count == 4

    message = ControlMessage.key_press("j")
    assert message.kind == MessageKind.KEY
    assert message.key == "j"
    assert ControlMessage.input_failed("eof").reason == "eof"


if __name__ == "__main__":
    _run_unit_tests()
    print("gameplay_models.py: ok")
