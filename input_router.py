# -*- coding: utf-8 -*-
########################
# input_router.py
########################
# Purpose:
# - Single keyboard listener for the game.
# - KeyReader blocks on raw stdin in a background thread and emits one Qt signal per character.
# - KeyMap translates a character into a ControlMessage (control command or lane key).
#
# Design notes:
# - This must be the only key source. No duplicate key mapping elsewhere.
# - The reader thread never interprets keys and never touches game state. It only emits signals;
#   Qt queues them onto the receiver's thread.
# - A closed or failing input stream is reported once through inputFailed, then the thread ends.
#
########################
# Interfaces:
# Public classes:
# - class KeyMap
#   - __init__(lane_keys: Sequence[str], controls: config.ControlsConfig)
#   - route(key: str) -> ControlMessage
#   - lane_keys -> tuple[str, ...]
# - class KeyReader(PyQt6.QtCore.QObject)
#   - Signals:
#     - keyPressed(str)
#     - inputFailed(str)
#   - Methods:
#     - start() -> None
#     - stop() -> None
#
# Inputs:
# - Raw bytes from the stdin file descriptor (already in cbreak mode, see terminal_io.RawTerminal).
#
# Outputs:
# - ControlMessage values consumed by GameController.dispatch via GameSession.
#
########################

from __future__ import annotations

import codecs
import os
import threading
from typing import Dict, Optional, Sequence, Tuple

from PyQt6.QtCore import QObject, pyqtSignal

import config
from game_logger import get_logger
from gameplay_models import ControlMessage, MessageKind


# Ctrl-C and Ctrl-D always quit, whatever the bindings say.
_ALWAYS_QUIT = ("\x03", "\x04")


class KeyMap:
    def __init__(self, lane_keys: Sequence[str], controls: config.ControlsConfig) -> None:
        self._lane_keys: Tuple[str, ...] = tuple(str(key) for key in lane_keys)
        self._commands: Dict[str, MessageKind] = {key: MessageKind.QUIT for key in _ALWAYS_QUIT}
        self._commands[controls.quit] = MessageKind.QUIT
        self._commands[controls.restart] = MessageKind.RESTART
        self._commands[controls.pause] = MessageKind.PAUSE
        for key in controls.speed_up:
            self._commands[key] = MessageKind.SPEED_UP
        for key in controls.speed_down:
            self._commands[key] = MessageKind.SPEED_DOWN

    @property
    def lane_keys(self) -> Tuple[str, ...]:
        return self._lane_keys

    def route(self, key: str) -> ControlMessage:
        """Control keys become commands; every other character goes to judgement."""
        kind = self._commands.get(str(key))
        if kind is not None:
            return ControlMessage(kind=kind)
        return ControlMessage.key_press(key)


class KeyReader(QObject):
    keyPressed = pyqtSignal(str)
    inputFailed = pyqtSignal(str)

    def __init__(self, fd: int, parent: Optional[QObject] = None) -> None:
        super().__init__(parent)
        self._fd = int(fd)
        self._stop_requested = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._read_loop, name="fretline-key-reader", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        # The thread may stay blocked in os.read until the next byte; it is a daemon and emits nothing after this.
        self._stop_requested.set()

    def _read_loop(self) -> None:
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        while not self._stop_requested.is_set():
            try:
                chunk = os.read(self._fd, 1)
            except OSError as exception:
                if not self._stop_requested.is_set():
                    get_logger().error("input: read failed: %s", exception)
                    self.inputFailed.emit(f"keyboard read failed: {exception}")
                return

            if not chunk:
                if not self._stop_requested.is_set():
                    get_logger().error("input: stdin closed")
                    self.inputFailed.emit("keyboard input closed")
                return

            for character in decoder.decode(chunk):
                if self._stop_requested.is_set():
                    return
                self.keyPressed.emit(character)


def _run_unit_tests() -> None:
    key_map = KeyMap(["h", "j", "k", "l"], config.ControlsConfig())
    assert key_map.route("q").kind == MessageKind.QUIT
    assert key_map.route("\x03").kind == MessageKind.QUIT
    assert key_map.route("r").kind == MessageKind.RESTART
    assert key_map.route("p").kind == MessageKind.PAUSE
    assert key_map.route("+").kind == MessageKind.SPEED_UP
    assert key_map.route("-").kind == MessageKind.SPEED_DOWN

    lane_message = key_map.route("j")
    assert lane_message.kind == MessageKind.KEY and lane_message.key == "j"

    # Non-lane characters still go to judgement, which scores them as invalid.
    stray = key_map.route("z")
    assert stray.kind == MessageKind.KEY and stray.key == "z"

    # Reader: feed bytes through a pipe and collect signals without an event loop
    # (direct connections run in the emitting thread).
    from PyQt6.QtCore import Qt

    read_fd, write_fd = os.pipe()
    reader = KeyReader(read_fd)
    received = []
    failures = []
    done = threading.Event()

    def on_failed(reason: str) -> None:
        failures.append(reason)
        done.set()

    reader.keyPressed.connect(received.append, Qt.ConnectionType.DirectConnection)
    reader.inputFailed.connect(on_failed, Qt.ConnectionType.DirectConnection)
    reader.start()
    os.write(write_fd, "hjé".encode("utf-8"))
    os.close(write_fd)
    assert done.wait(5.0)
    os.close(read_fd)

    assert received == ["h", "j", "é"]
    assert failures == ["keyboard input closed"]


if __name__ == "__main__":
    _run_unit_tests()
    print("input_router.py: ok")
