# -*- coding: utf-8 -*-
########################
# terminal_io.py
########################
# Purpose:
# - Terminal driver helpers: geometry query, cbreak mode with echo off, cursor hiding, name prompt.
#
# Design notes:
# - Every failure here is fatal for the game. Nothing is retried or swallowed.
# - RawTerminal is a context manager so the previous terminal mode is restored on any exit path.
# - POSIX only (termios).
#
########################
# Interfaces:
# Public dataclasses:
# - TerminalGeometry(columns: int, rows: int)
#   - board_height() -> int
#
# Public functions:
# - query_geometry(fd: Optional[int] = None) -> TerminalGeometry
# - prompt_player_name(read_line: Callable[[str], str] = input) -> str
#
# Public classes:
# - class RawTerminal (context manager)
#
########################

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from typing import Callable, List, Optional, TextIO

from game_logger import get_logger


HIDE_CURSOR = "\033[?25l"
SHOW_CURSOR = "\033[?25h"

# Rows kept free under the board for the prompt line.
RESERVED_ROWS = 1


class TerminalError(RuntimeError):
    pass


@dataclass(frozen=True)
class TerminalGeometry:
    columns: int
    rows: int

    def board_height(self) -> int:
        return max(0, int(self.rows) - RESERVED_ROWS)


def query_geometry(fd: Optional[int] = None) -> TerminalGeometry:
    target_fd = sys.stdout.fileno() if fd is None else int(fd)
    try:
        size = os.get_terminal_size(target_fd)
    except OSError as exception:
        raise TerminalError(f"Cannot determine terminal size: {exception}") from exception
    if size.columns <= 0 or size.lines <= 0:
        raise TerminalError(f"Terminal reported an unusable size: {size.columns}x{size.lines}")
    return TerminalGeometry(columns=int(size.columns), rows=int(size.lines))


def prompt_player_name(read_line: Callable[[str], str] = input) -> str:
    try:
        raw_name = read_line("Enter your name: ")
    except EOFError as exception:
        raise TerminalError("Input closed before a player name was entered") from exception
    return str(raw_name).strip()


class RawTerminal:
    """Put stdin into cbreak mode with echo off and hide the cursor until exit."""

    def __init__(self, stdin: Optional[TextIO] = None, stdout: Optional[TextIO] = None) -> None:
        self._stdin = stdin if stdin is not None else sys.stdin
        self._stdout = stdout if stdout is not None else sys.stdout
        self._fd: Optional[int] = None
        self._saved_mode: Optional[List] = None

    @property
    def fd(self) -> int:
        if self._fd is None:
            raise TerminalError("RawTerminal is not active")
        return self._fd

    def __enter__(self) -> "RawTerminal":
        import termios
        import tty

        if not self._stdin.isatty():
            raise TerminalError("stdin is not a terminal; fretline needs an interactive terminal")

        fd = self._stdin.fileno()
        try:
            self._saved_mode = termios.tcgetattr(fd)
            tty.setcbreak(fd)
        except termios.error as exception:
            raise TerminalError(f"Cannot switch the terminal to cbreak mode: {exception}") from exception

        self._fd = fd
        self._stdout.write(HIDE_CURSOR)
        self._stdout.flush()
        get_logger().debug("terminal: cbreak mode on fd %d", fd)
        return self

    def __exit__(self, *args) -> None:
        import termios

        if self._fd is None or self._saved_mode is None:
            return
        try:
            termios.tcsetattr(self._fd, termios.TCSADRAIN, self._saved_mode)
        finally:
            self._stdout.write(SHOW_CURSOR)
            self._stdout.flush()
            get_logger().debug("terminal: mode restored on fd %d", self._fd)
            self._fd = None
            self._saved_mode = None


def _run_unit_tests() -> None:
    import io

    geometry = TerminalGeometry(columns=80, rows=24)
    assert geometry.board_height() == 23

    assert prompt_player_name(lambda _prompt: "  ada  \n") == "ada"

    def closed(_prompt: str) -> str:
        raise EOFError

    try:
        prompt_player_name(closed)
    except TerminalError:
        pass
    else:
        raise AssertionError("EOF at the prompt should be fatal")

    try:
        with RawTerminal(stdin=io.StringIO(""), stdout=io.StringIO()):
            pass
    except TerminalError:
        pass
    else:
        raise AssertionError("a non-tty stdin should be rejected")

    read_fd, write_fd = os.pipe()
    try:
        try:
            query_geometry(read_fd)
        except TerminalError:
            pass
        else:
            raise AssertionError("a pipe has no terminal size")
    finally:
        os.close(read_fd)
        os.close(write_fd)


if __name__ == "__main__":
    _run_unit_tests()
    print("terminal_io.py: ok")
