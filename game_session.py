# -*- coding: utf-8 -*-
########################
# game_session.py
########################
# Purpose:
# - Wires the producers (GameClock, KeyReader, OS signals) to the single GameController consumer.
# - Runs the Qt event loop until the controller reaches TERMINATED.
#
# Design notes:
# - Every producer output becomes a ControlMessage posted through one queued signal.
#   The controller therefore sees exactly one message at a time, on the main thread.
# - Producers never call the controller directly.
# - Qt aborts on exceptions escaping a slot, so a failing dispatch is captured here,
#   the loop is stopped, and run() re-raises it on the caller's side.
# - A short no-op timer keeps the Python interpreter getting control so SIGINT and SIGTERM handlers run.
#
########################
# Interfaces:
# Public classes:
# - class GameSession(PyQt6.QtCore.QObject)
#   - Signals:
#     - messagePosted(object)
#     - finished()
#   - Methods:
#     - post(message: ControlMessage) -> None
#     - start() -> None
#     - stop() -> None
#     - run(application: QCoreApplication) -> None
#   - Properties:
#     - error -> Optional[BaseException]
#
########################

from __future__ import annotations

import contextlib
import signal
from typing import Any, Dict, Optional

from PyQt6.QtCore import QCoreApplication, QObject, Qt, QTimer, pyqtSignal

import game_clock
import game_controller
import input_router
from game_logger import get_logger
from gameplay_models import ControlMessage, MessageKind


SIGNAL_PUMP_INTERVAL_MS = 250


class GameSession(QObject):
    messagePosted = pyqtSignal(object)
    finished = pyqtSignal()

    def __init__(
        self,
        controller: game_controller.GameController,
        clock: game_clock.GameClock,
        key_map: input_router.KeyMap,
        key_reader: Optional[input_router.KeyReader] = None,
        *,
        install_signal_handlers: bool = True,
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)
        self._controller = controller
        self._clock = clock
        self._key_map = key_map
        self._key_reader = key_reader
        self._install_signal_handlers = bool(install_signal_handlers)
        self._previous_handlers: Dict[int, Any] = {}
        self._error: Optional[BaseException] = None
        self._running = False

        self._signal_pump = QTimer(self)
        self._signal_pump.setInterval(SIGNAL_PUMP_INTERVAL_MS)
        self._signal_pump.timeout.connect(lambda: None)

        self.messagePosted.connect(self._deliver, Qt.ConnectionType.QueuedConnection)
        self._clock.ticked.connect(self._on_tick)
        if self._key_reader is not None:
            self._key_reader.keyPressed.connect(self._on_key)
            self._key_reader.inputFailed.connect(self._on_input_failed)

    @property
    def error(self) -> Optional[BaseException]:
        return self._error

    def post(self, message: ControlMessage) -> None:
        self.messagePosted.emit(message)

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        if self._install_signal_handlers:
            for signal_number in (signal.SIGINT, signal.SIGTERM):
                self._previous_handlers[signal_number] = signal.signal(signal_number, self._on_os_signal)
        self._signal_pump.start()
        self._controller.start()
        if self._key_reader is not None:
            self._key_reader.start()
        get_logger().info("session: started")

    def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        self._clock.stop()
        self._signal_pump.stop()
        if self._key_reader is not None:
            self._key_reader.stop()
        for signal_number, handler in self._previous_handlers.items():
            signal.signal(signal_number, handler)
        self._previous_handlers.clear()
        get_logger().info("session: stopped")

    def run(self, application: QCoreApplication) -> None:
        self.finished.connect(application.quit)
        self.start()
        try:
            if self._controller.state != game_controller.GameState.TERMINATED:
                application.exec()
        finally:
            self.stop()
        if self._error is not None:
            raise self._error

    # -----------------
    # Producer slots
    # -----------------

    def _on_tick(self) -> None:
        self.post(ControlMessage.tick())

    def _on_key(self, key: str) -> None:
        self.post(self._key_map.route(key))

    def _on_input_failed(self, reason: str) -> None:
        self.post(ControlMessage.input_failed(reason))

    def _on_os_signal(self, signal_number, _frame) -> None:
        get_logger().info("session: caught signal %s, shutting down", signal_number)
        self.post(ControlMessage(kind=MessageKind.QUIT))

    # -----------------
    # Consumer
    # -----------------

    def _deliver(self, message: ControlMessage) -> None:
        if not self._running:
            return
        try:
            self._controller.dispatch(message)
        except Exception as exception:
            get_logger().exception("session: %s failed", message.kind.value)
            self._error = exception
            self._shutdown()
            return

        if self._controller.state == game_controller.GameState.TERMINATED:
            self._shutdown()

    def _shutdown(self) -> None:
        self.stop()
        self.finished.emit()


class _NullRenderer:
    def render(self, frames, snapshot) -> None:
        pass

    def render_summary(self, summary, entries) -> None:
        pass


class _FailingLeaderboard:
    def add(self, entry):
        import leaderboard

        raise leaderboard.LeaderboardError("disk full")


@contextlib.contextmanager
def _loop_guard(application: QCoreApplication, timeout_ms: int = 5000):
    guard = QTimer()
    guard.setSingleShot(True)
    guard.timeout.connect(application.quit)
    guard.start(timeout_ms)
    try:
        yield
    finally:
        guard.stop()


def _run_unit_tests() -> None:
    import os
    import random

    import config
    import leaderboard

    application = QCoreApplication.instance() or QCoreApplication([])

    def build(round_ms: int, board, start_paused: bool):
        clock = game_clock.GameClock()
        controller = game_controller.GameController(
            game_controller.RoundSettings(lane_keys=("h", "j", "k", "l"), height=8, round_ms=round_ms),
            renderer=_NullRenderer(),
            leaderboard_sink=board,
            tick_source=clock,
            player_name="ada",
            speed=12,
            start_paused=start_paused,
            rng=random.Random(1),
        )
        key_map = input_router.KeyMap(("h", "j", "k", "l"), config.ControlsConfig())
        return clock, controller, key_map

    # Keys arrive from the reader thread and are applied in order on the main thread.
    clock, controller, key_map = build(30_000, _FailingLeaderboard(), True)
    read_fd, write_fd = os.pipe()
    reader = input_router.KeyReader(read_fd)
    session = GameSession(controller, clock, key_map, reader, install_signal_handlers=False)
    os.write(write_fd, b"p")
    QTimer.singleShot(300, lambda: os.write(write_fd, b"q"))
    with _loop_guard(application):
        session.run(application)
    assert controller.state == game_controller.GameState.TERMINATED
    assert controller.current_round.clock.time_left_ms() < 30_000
    assert not clock.is_active()
    assert session.error is None
    os.close(write_fd)
    os.close(read_fd)

    # A leaderboard failure at round end stops the loop and surfaces to the caller.
    clock, controller, key_map = build(300, _FailingLeaderboard(), False)
    session = GameSession(controller, clock, key_map, None, install_signal_handlers=False)
    try:
        with _loop_guard(application):
            session.run(application)
    except leaderboard.LeaderboardError:
        pass
    else:
        raise AssertionError("leaderboard failure should propagate out of run()")
    assert controller.state == game_controller.GameState.FINISHED
    assert not clock.is_active()

    # Input failure terminates the session.
    clock, controller, key_map = build(30_000, _FailingLeaderboard(), True)
    session = GameSession(controller, clock, key_map, None, install_signal_handlers=False)
    QTimer.singleShot(0, lambda: session.post(ControlMessage.input_failed("keyboard input closed")))
    with _loop_guard(application):
        session.run(application)
    assert controller.failure_reason == "keyboard input closed"


if __name__ == "__main__":
    _run_unit_tests()
    print("game_session.py: ok")
