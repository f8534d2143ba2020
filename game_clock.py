# -*- coding: utf-8 -*-
########################
# game_clock.py
########################
# Purpose:
# - Periodic tick producer for the game loop.
# - Wraps a QTimer on the main thread and emits ticked() once per tick interval.
#
# Design notes:
# - Gameplay logic must not depend on GameClock. RoundClock is the gameplay source of truth for time left.
# - GameClock only signals. It never touches the buffer or the stats.
# - Pausing stops the QTimer itself, so no backlog of ticks builds up while paused.
# - Changing the interval while running takes effect from the next tick.
#
########################
# Interfaces:
# Public classes:
# - class GameClock(PyQt6.QtCore.QObject)
#   - Signals:
#     - ticked()
#   - Methods:
#     - start(interval_ms: int) -> None
#     - stop() -> None
#     - set_interval_ms(interval_ms: int) -> None
#     - interval_ms() -> int
#     - is_active() -> bool
#
# Inputs:
# - Interval from RoundClock.tick_interval_ms(), supplied by GameController.
#
# Outputs:
# - ticked signal, relayed by GameSession as a TICK ControlMessage.
#
########################

from __future__ import annotations

from typing import Optional

from PyQt6.QtCore import QObject, QTimer, Qt, pyqtSignal


class GameClock(QObject):
    ticked = pyqtSignal()

    def __init__(self, parent: Optional[QObject] = None) -> None:
        super().__init__(parent)
        self._timer = QTimer(self)
        self._timer.setTimerType(Qt.TimerType.PreciseTimer)
        self._timer.timeout.connect(self.ticked)

    def start(self, interval_ms: int) -> None:
        self._timer.start(max(1, int(interval_ms)))

    def stop(self) -> None:
        self._timer.stop()

    def set_interval_ms(self, interval_ms: int) -> None:
        self._timer.setInterval(max(1, int(interval_ms)))

    def interval_ms(self) -> int:
        return int(self._timer.interval())

    def is_active(self) -> bool:
        return bool(self._timer.isActive())


def _run_unit_tests() -> None:
    from PyQt6.QtCore import QCoreApplication, QElapsedTimer

    application = QCoreApplication.instance() or QCoreApplication([])

    clock = GameClock()
    ticks = []
    clock.ticked.connect(lambda: ticks.append(1))

    assert not clock.is_active()
    clock.start(143)
    assert clock.is_active()
    assert clock.interval_ms() == 143

    clock.set_interval_ms(10)
    assert clock.interval_ms() == 10
    assert clock.is_active()

    elapsed = QElapsedTimer()
    elapsed.start()
    while not ticks and elapsed.elapsed() < 2000:
        application.processEvents()
    assert ticks

    clock.stop()
    assert not clock.is_active()
    count_after_stop = len(ticks)
    elapsed.restart()
    while elapsed.elapsed() < 50:
        application.processEvents()
    assert len(ticks) == count_after_stop


if __name__ == "__main__":
    _run_unit_tests()
    print("game_clock.py: ok")
