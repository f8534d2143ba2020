# -*- coding: utf-8 -*-
########################
# terminal_renderer.py
########################
# Purpose:
# - Draws the fretboard and the stats sidebar into the terminal.
# - Draws the end-of-round summary with the leaderboard.
#
########################
# Key Logic:
# - Newest frame on top, oldest at the bottom. Row index 0 of the buffer is the bottom line.
# - A lane cell is "| x " where x is the lane key for a live note, "-" for a full hit,
#   "+" for a half hit and a blank otherwise. Rows right above and below the bar draw blanks as "-".
# - Sidebar rows are anchored to the bar:
#   - bar - 1: time left in whole seconds
#   - bar:     score (accuracy%) last delta
#   - bar + 1: streak (multiplier x)
#   - bar + 2 and up: flame art while the multiplier is above 1
#   - bar - 2: the last judgement (zones hit, wrong key, invalid key or miss)
# - The top rows carry the player, speed, state and the key help when free.
# - Strict boundaries:
#   - Reads frames and StatsSnapshot only. Never mutates game state.
#   - All drawing goes through one rich Live display on the alternate screen.
#
########################
# Interfaces:
# Public functions:
# - build_board_text(frames, snapshot, *, lane_keys, bar_index) -> rich.text.Text
# - build_summary(summary, entries) -> rich.console.Group
# - describe_judgement(event: JudgementEvent) -> tuple[str, str]
#
# Public classes:
# - class TerminalRenderer (context manager)
#   - render(frames: Sequence[Frame], snapshot: StatsSnapshot) -> None
#   - render_summary(summary: RoundSummary, entries: Sequence[LeaderboardEntry]) -> None
#
# Inputs:
# - ScrollBuffer.visible_frames() and GameController.snapshot()
#
# Outputs:
# - Terminal output through rich.
#
########################

from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Tuple

from rich.console import Console, Group
from rich.live import Live
from rich.table import Table
from rich.text import Text

import leaderboard
from game_logger import get_logger
from gameplay_models import CellState, Frame, JudgementEvent, JudgementKind, RoundSummary, StatsSnapshot


FULL_HIT_SYMBOL = "-"
HALF_HIT_SYMBOL = "+"

LANE_STYLES = ("bold green", "bold red", "bold yellow", "bold blue", "bold magenta", "bold cyan")
HIT_STYLE = "bold white"
GUIDE_STYLE = "dim"

# Bottom line first.
FLAME_LINES = ("\\(_)/", "/ ) (", " ) \\", "  )")

HELP_TEXT = "p pause  r restart  +/- speed  q quit"


def _lane_style(lane: int) -> str:
    return LANE_STYLES[lane % len(LANE_STYLES)]


def describe_judgement(event: JudgementEvent) -> Tuple[str, str]:
    """Sidebar text and style for one judgement."""
    if event.kind == JudgementKind.HIT:
        return f"hit {'+'.join(event.zones)} {event.delta:+d}", "bold green"
    if event.kind == JudgementKind.MISSED:
        return f"miss {event.delta:+d}", "bold red"
    if event.kind == JudgementKind.WRONG_KEY:
        return f"wrong key {event.key} {event.delta:+d}", "red"
    return f"invalid key {event.key!r} {event.delta:+d}", "red"


def _sidebar_lines(snapshot: StatsSnapshot, bar_index: int, height: int) -> Dict[int, Tuple[str, str]]:
    lines: Dict[int, Tuple[str, str]] = {
        bar_index - 1: (f"time: {max(0, snapshot.time_left_ms) // 1000}", "bold"),
        bar_index: (f"score: {snapshot.score} ({int(snapshot.accuracy)}%) {snapshot.last_delta}", "bold"),
        bar_index + 1: (f"{snapshot.streak} ({snapshot.multiplier}x)", "bold"),
    }
    if snapshot.last_judgement is not None and bar_index >= 2:
        lines[bar_index - 2] = describe_judgement(snapshot.last_judgement)
    if snapshot.multiplier > 1:
        for offset, flame_line in enumerate(FLAME_LINES):
            lines[bar_index + 2 + offset] = (flame_line, "bold red")

    status = f"{snapshot.player_name or 'anonymous'}  speed {snapshot.speed}  {snapshot.state}"
    extras = [(status, "reverse bold" if snapshot.state == "PAUSED" else "dim"), (HELP_TEXT, "dim")]
    for row_index, extra in zip(range(height - 1, -1, -1), extras):
        if row_index not in lines:
            lines[row_index] = extra
    return lines


def build_board_text(
    frames: Sequence[Frame],
    snapshot: StatsSnapshot,
    *,
    lane_keys: Sequence[str],
    bar_index: int,
) -> Text:
    height = len(frames)
    sidebar = _sidebar_lines(snapshot, bar_index, height)
    guide_rows = (bar_index - 1, bar_index + 1)

    text = Text()
    for row_index in range(height - 1, -1, -1):
        blank = "-" if row_index in guide_rows else " "
        blank_style = GUIDE_STYLE if row_index in guide_rows else ""
        for lane, cell in enumerate(frames[row_index].cells):
            text.append("|", style=GUIDE_STYLE)
            text.append(blank, style=blank_style)
            if cell == CellState.NOTE:
                text.append(str(lane_keys[lane]), style=_lane_style(lane))
            elif cell == CellState.HIT_FULL:
                text.append(FULL_HIT_SYMBOL, style=HIT_STYLE)
            elif cell == CellState.HIT_HALF:
                text.append(HALF_HIT_SYMBOL, style=HIT_STYLE)
            else:
                text.append(blank, style=blank_style)
            text.append(blank, style=blank_style)
        text.append("|", style=GUIDE_STYLE)

        line = sidebar.get(row_index)
        if line is not None:
            text.append("  ")
            text.append(line[0], style=line[1])
        if row_index > 0:
            text.append("\n")
    return text


def build_summary(summary: RoundSummary, entries: Sequence[leaderboard.LeaderboardEntry]) -> Group:
    headline = Text()
    headline.append(f"Congratulations, your score was {summary.score} ({int(summary.accuracy)}%)!\n", style="bold")
    headline.append(
        f"Correct: {summary.correct_notes}, Mistakes: {summary.mistaken_notes}, Total: {summary.total_notes}"
    )

    table = Table(title=f"Highscores for speed {summary.speed}", title_justify="left", box=None, padding=(0, 1))
    table.add_column("#", justify="right", style="dim")
    table.add_column("Name")
    table.add_column("Score", justify="right", style="bold")
    table.add_column("Notes", justify="right")
    for rank, entry in enumerate(entries, start=1):
        table.add_row(f"{rank}.", entry.name, str(entry.score), f"{entry.correct}/{entry.total}")

    return Group(headline, Text(""), table, Text(""), Text("r play again  q quit", style="dim"))


class TerminalRenderer:
    def __init__(self, lane_keys: Sequence[str], bar_index: int, console: Optional[Console] = None) -> None:
        self._lane_keys: Tuple[str, ...] = tuple(lane_keys)
        self._bar_index = int(bar_index)
        self._console = console if console is not None else Console(highlight=False)
        self._live: Optional[Live] = None

    @property
    def console(self) -> Console:
        return self._console

    def __enter__(self) -> "TerminalRenderer":
        self._live = Live(Text(""), console=self._console, screen=True, auto_refresh=False, transient=True)
        self._live.start()
        get_logger().debug("render: live display started")
        return self

    def __exit__(self, *args) -> None:
        if self._live is None:
            return
        try:
            self._live.stop()
        finally:
            self._live = None
            get_logger().debug("render: live display stopped")

    def _require_live(self) -> Live:
        if self._live is None:
            raise RuntimeError("TerminalRenderer is not active")
        return self._live

    def render(self, frames: Sequence[Frame], snapshot: StatsSnapshot) -> None:
        board = build_board_text(frames, snapshot, lane_keys=self._lane_keys, bar_index=self._bar_index)
        self._require_live().update(board, refresh=True)

    def render_summary(self, summary: RoundSummary, entries: Sequence[leaderboard.LeaderboardEntry]) -> None:
        self._require_live().update(build_summary(summary, entries), refresh=True)


def _run_unit_tests() -> None:
    import io

    snapshot = StatsSnapshot(
        score=350,
        accuracy=87.5,
        last_delta=100,
        streak=12,
        multiplier=2,
        time_left_ms=12_900,
        speed=7,
        state="RUNNING",
        player_name="ada",
    )
    frames: List[Frame] = [Frame.filler(4) for _ in range(10)]
    frames[5] = Frame.single_note(4, 1)
    frames[3] = Frame.filler(4).with_cell(2, CellState.HIT_FULL)
    frames[4] = Frame.filler(4).with_cell(0, CellState.HIT_HALF)

    text = build_board_text(frames, snapshot, lane_keys=("h", "j", "k", "l"), bar_index=3)
    lines = text.plain.split("\n")
    assert len(lines) == 10

    # Top line is the newest frame (index 9), bottom line is index 0.
    by_index = {9 - position: line for position, line in enumerate(lines)}
    assert by_index[5].startswith("|   | j |   |   |")
    assert by_index[3].startswith("|   |   | - |   |  score: 350 (87%) 100")
    assert by_index[4].startswith("|-+-|---|---|---|  12 (2x)")
    assert by_index[2].startswith("|---|---|---|---|  time: 12")
    assert by_index[5].endswith("\\(_)/")
    assert by_index[9].endswith("ada  speed 7  RUNNING")
    assert by_index[0] == "|   |   |   |   |"

    # No flame without a multiplier; status moves into the free rows.
    calm = StatsSnapshot(
        score=0, accuracy=0.0, last_delta=0, streak=0, multiplier=1, time_left_ms=0, speed=3, state="PAUSED"
    )
    lines = build_board_text(frames, calm, lane_keys=("h", "j", "k", "l"), bar_index=3).plain.split("\n")
    assert not any("(_)" in line for line in lines)
    assert lines[0].endswith("anonymous  speed 3  PAUSED")
    assert lines[1].endswith(HELP_TEXT)

    # The last judgement sits beside the miss row.
    import dataclasses

    hit = JudgementEvent(kind=JudgementKind.HIT, key="j", lane=1, zones=("bar", "above"), delta=150)
    judged = dataclasses.replace(snapshot, last_judgement=hit)
    lines = build_board_text(frames, judged, lane_keys=("h", "j", "k", "l"), bar_index=3).plain.split("\n")
    assert lines[9 - 1].endswith("hit bar+above +150")
    assert describe_judgement(
        JudgementEvent(kind=JudgementKind.MISSED, key=None, lane=0, zones=("miss",), delta=-50)
    ) == ("miss -50", "bold red")
    assert describe_judgement(
        JudgementEvent(kind=JudgementKind.INVALID_KEY, key="z", lane=None, zones=(), delta=-50)
    )[0] == "invalid key 'z' -50"

    summary = RoundSummary(
        player_name="ada", speed=7, score=1200, accuracy=90.9, correct_notes=30, mistaken_notes=3, total_notes=30
    )
    entries = [leaderboard.LeaderboardEntry(name="ada", speed=7, score=1200, correct=30, total=30)]
    output = io.StringIO()
    console = Console(file=output, force_terminal=False, width=80, highlight=False)
    console.print(build_summary(summary, entries))
    printed = output.getvalue()
    assert "Congratulations, your score was 1200 (90%)!" in printed
    assert "Correct: 30, Mistakes: 3, Total: 30" in printed
    assert "Highscores for speed 7" in printed
    assert "30/30" in printed

    renderer = TerminalRenderer(("h", "j", "k", "l"), 3, console=console)
    try:
        renderer.render(frames, snapshot)
    except RuntimeError:
        pass
    else:
        raise AssertionError("rendering outside the live context should fail")

    with renderer:
        renderer.render(frames, snapshot)
        renderer.render_summary(summary, entries)


if __name__ == "__main__":
    _run_unit_tests()
    print("terminal_renderer.py: ok")
