# -*- coding: utf-8 -*-
########################
# round_clock.py
########################
# Purpose:
# - Tracks remaining round time and the tick interval derived from speed.
#
# Design notes:
# - No Qt usage. The clock never reads wall time; it only moves when advance() is called.
# - Contract choice: speed changes replace the tick interval only. Round progress is kept.
# - time_left is clamped to non-negative, finished() is terminal once true.
#
########################
# Interfaces:
# Public classes:
# - class RoundClock
#   - __init__(round_ms: int, speed: int, min_speed: int = 1, max_speed: int = 12)
#   - time_left_ms() -> int
#   - speed() -> int
#   - tick_interval_ms() -> int
#   - advance(delta_ms: Optional[int] = None) -> None
#   - finished() -> bool
#   - set_speed(speed: int) -> int
#   - change_speed(step: int) -> int
#
########################

from __future__ import annotations

import math
from typing import Optional


def tick_interval_for_speed(speed: int) -> int:
    return int(round(1000.0 / float(speed)))


class RoundClock:
    def __init__(self, round_ms: int, speed: int, min_speed: int = 1, max_speed: int = 12) -> None:
        if int(min_speed) < 1 or int(max_speed) < int(min_speed):
            raise ValueError(f"invalid speed range [{min_speed}, {max_speed}]")
        self._min_speed = int(min_speed)
        self._max_speed = int(max_speed)
        self._time_left_ms = max(0, int(round_ms))
        self._speed = self._clamp(speed)

    def _clamp(self, speed: int) -> int:
        return max(self._min_speed, min(self._max_speed, int(speed)))

    def time_left_ms(self) -> int:
        return int(self._time_left_ms)

    def speed(self) -> int:
        return int(self._speed)

    def tick_interval_ms(self) -> int:
        return tick_interval_for_speed(self._speed)

    def advance(self, delta_ms: Optional[int] = None) -> None:
        step = self.tick_interval_ms() if delta_ms is None else int(delta_ms)
        self._time_left_ms = max(0, self._time_left_ms - max(0, step))

    def finished(self) -> bool:
        return self._time_left_ms <= 0

    def set_speed(self, speed: int) -> int:
        self._speed = self._clamp(speed)
        return self._speed

    def change_speed(self, step: int) -> int:
        return self.set_speed(self._speed + int(step))


def _run_unit_tests() -> None:
    clock = RoundClock(round_ms=30_000, speed=7)
    assert clock.tick_interval_ms() == 143

    expected_ticks = math.ceil(30_000 / 143)
    assert expected_ticks == 210
    for tick in range(1, expected_ticks + 1):
        clock.advance()
        assert clock.finished() == (tick == expected_ticks)
    for _ in range(5):
        clock.advance()
        assert clock.finished()
        assert clock.time_left_ms() == 0

    clock = RoundClock(round_ms=1_000, speed=7)
    assert clock.set_speed(40) == 12
    assert clock.set_speed(0) == 1
    assert clock.change_speed(+1) == 2
    assert clock.time_left_ms() == 1_000

    clock.advance(400)
    clock.change_speed(+3)
    assert clock.time_left_ms() == 600
    assert clock.tick_interval_ms() == 200
    assert not clock.finished()


if __name__ == "__main__":
    _run_unit_tests()
    print("round_clock.py: ok")
