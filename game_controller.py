# -*- coding: utf-8 -*-
########################
# game_controller.py
########################
# Purpose:
# - Round orchestrator and the authoritative game state machine.
# - Owns exactly one Round (ScrollBuffer + Stats + RoundClock + JudgeEngine) at a time.
# - Consumes ControlMessage values one at a time and drives the renderer, the tick source and the leaderboard.
#
# Stable notes:
# - Single owner for all mutable game state. Producers (timer, keyboard) only send messages.
# - Restart builds a new Round object and drops the old one. No field-by-field reset.
# - Contract choice: speed changes replace the tick interval only, round progress is kept.
#
########################
# Design notes:
# - States: RUNNING, PAUSED, FINISHED, TERMINATED. Initial state is PAUSED unless configured otherwise.
# - Tick order: append frame, advance clock, trim, miss evaluation, render, then the finished check.
# - A lane key is judged and re-rendered without advancing the buffer or evaluating the miss row,
#   so one frame can never be scored as a miss twice within a tick.
# - While PAUSED or FINISHED, ticks and lane keys change nothing. FINISHED accepts only restart and quit.
#
########################
# Interfaces:
# Public enums:
# - GameState: RUNNING, PAUSED, FINISHED, TERMINATED
#
# Public protocols:
# - Renderer: render(frames, snapshot) -> None, render_summary(summary, entries) -> None
# - LeaderboardSink: add(entry) -> list[LeaderboardEntry]
# - TickSource: start(interval_ms) -> None, stop() -> None, set_interval_ms(interval_ms) -> None
#
# Public dataclasses:
# - RoundSettings(lane_keys, height, bar_index, round_ms, note_probability, min_speed, max_speed)
#
# Public classes:
# - class Round
# - class GameController
#   - start() -> None
#   - dispatch(message: ControlMessage) -> None
#   - tick() -> None
#   - key_pressed(key: str) -> Optional[JudgementEvent]
#   - toggle_pause() -> None
#   - restart() -> None
#   - change_speed(step: int) -> None
#   - quit() -> None
#   - input_failed(reason: str) -> None
#   - snapshot() -> StatsSnapshot
#
########################

from __future__ import annotations

import random
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Protocol, Sequence, Tuple

import judge
import leaderboard
import round_clock
import scroll_buffer
from game_logger import get_logger
from gameplay_models import (
    ControlMessage,
    Frame,
    JudgementEvent,
    JudgementKind,
    MessageKind,
    RoundSummary,
    StatsSnapshot,
)


class GameState(str, Enum):
    RUNNING = "RUNNING"
    PAUSED = "PAUSED"
    FINISHED = "FINISHED"
    TERMINATED = "TERMINATED"


class Renderer(Protocol):
    def render(self, frames: Sequence[Frame], snapshot: StatsSnapshot) -> None: ...

    def render_summary(self, summary: RoundSummary, entries: Sequence[leaderboard.LeaderboardEntry]) -> None: ...


class LeaderboardSink(Protocol):
    def add(self, entry: leaderboard.LeaderboardEntry) -> List[leaderboard.LeaderboardEntry]: ...


class TickSource(Protocol):
    def start(self, interval_ms: int) -> None: ...

    def stop(self) -> None: ...

    def set_interval_ms(self, interval_ms: int) -> None: ...


@dataclass(frozen=True)
class RoundSettings:
    lane_keys: Tuple[str, ...]
    height: int
    bar_index: int = 3
    round_ms: int = 30_000
    note_probability: float = 0.5
    min_speed: int = 1
    max_speed: int = 12

    def zones(self) -> judge.JudgementZones:
        return judge.JudgementZones(bar_index=self.bar_index)

    def validate(self) -> None:
        if not self.lane_keys:
            raise ValueError("at least one lane key is required")
        if not 0.0 <= float(self.note_probability) <= 1.0:
            raise ValueError("note_probability must lie within [0, 1]")
        self.zones().validate_height(self.height)


class Round:
    """Everything one round owns. Restart replaces the whole object."""

    def __init__(self, settings: RoundSettings, speed: int) -> None:
        self.buffer = scroll_buffer.ScrollBuffer(lane_count=len(settings.lane_keys), height=settings.height)
        self.buffer.initialize()
        self.stats = judge.Stats()
        self.clock = round_clock.RoundClock(
            round_ms=settings.round_ms,
            speed=speed,
            min_speed=settings.min_speed,
            max_speed=settings.max_speed,
        )
        self.judge = judge.JudgeEngine(self.buffer, self.stats, settings.zones(), settings.lane_keys)


class GameController:
    def __init__(
        self,
        settings: RoundSettings,
        *,
        renderer: Renderer,
        leaderboard_sink: LeaderboardSink,
        tick_source: TickSource,
        player_name: str = "",
        speed: int = 7,
        start_paused: bool = True,
        rng: Optional[random.Random] = None,
    ) -> None:
        settings.validate()
        self._settings = settings
        self._renderer = renderer
        self._leaderboard = leaderboard_sink
        self._tick_source = tick_source
        self._player_name = str(player_name)
        self._start_paused = bool(start_paused)
        self._rng = rng if rng is not None else random.Random()

        self._round = Round(settings, speed)
        self._state = GameState.PAUSED
        self._failure_reason: Optional[str] = None
        self._last_summary: Optional[RoundSummary] = None
        self._last_entries: List[leaderboard.LeaderboardEntry] = []

    # -----------------
    # Properties
    # -----------------

    @property
    def state(self) -> GameState:
        return self._state

    @property
    def current_round(self) -> Round:
        return self._round

    @property
    def failure_reason(self) -> Optional[str]:
        return self._failure_reason

    @property
    def last_summary(self) -> Optional[RoundSummary]:
        return self._last_summary

    @property
    def last_entries(self) -> List[leaderboard.LeaderboardEntry]:
        return list(self._last_entries)

    def snapshot(self) -> StatsSnapshot:
        stats = self._round.stats
        clock = self._round.clock
        recent = self._round.judge.recent_judgements()
        return StatsSnapshot(
            score=stats.score,
            accuracy=stats.accuracy(),
            last_delta=stats.last_note_delta,
            streak=stats.streak,
            multiplier=stats.multiplier(),
            time_left_ms=clock.time_left_ms(),
            speed=clock.speed(),
            state=self._state.value,
            player_name=self._player_name,
            last_judgement=recent[-1] if recent else None,
        )

    # -----------------
    # Message entry point
    # -----------------

    def start(self) -> None:
        get_logger().info(
            "round: start player=%r speed=%d paused=%s", self._player_name, self._round.clock.speed(), self._start_paused
        )
        if self._start_paused:
            self._state = GameState.PAUSED
        else:
            self._resume_ticks()
        self._render()

    def dispatch(self, message: ControlMessage) -> None:
        kind = message.kind
        if kind == MessageKind.TICK:
            self.tick()
        elif kind == MessageKind.KEY:
            self.key_pressed(message.key or "")
        elif kind == MessageKind.PAUSE:
            self.toggle_pause()
        elif kind == MessageKind.RESTART:
            self.restart()
        elif kind == MessageKind.QUIT:
            self.quit()
        elif kind == MessageKind.SPEED_UP:
            self.change_speed(+1)
        elif kind == MessageKind.SPEED_DOWN:
            self.change_speed(-1)
        elif kind == MessageKind.INPUT_FAILED:
            self.input_failed(message.reason or "input failed")

    # -----------------
    # Transitions
    # -----------------

    def tick(self) -> None:
        if self._state != GameState.RUNNING:
            return

        current = self._round
        if self._rng.random() < self._settings.note_probability:
            current.buffer.append_random_note(self._rng)
        else:
            current.buffer.append_filler()

        current.clock.advance()
        current.buffer.trim()
        current.judge.update_for_tick()
        self._render()

        if current.clock.finished():
            self._finish()

    def key_pressed(self, key: str) -> Optional[JudgementEvent]:
        if self._state != GameState.RUNNING:
            return None
        event = self._round.judge.on_key(key)
        # Out-of-band re-render: no buffer advance and no miss evaluation.
        self._render()
        return event

    def toggle_pause(self) -> None:
        if self._state == GameState.RUNNING:
            self._tick_source.stop()
            self._state = GameState.PAUSED
            get_logger().info("round: paused with %d ms left", self._round.clock.time_left_ms())
        elif self._state == GameState.PAUSED:
            self._resume_ticks()
            get_logger().info("round: resumed")
        else:
            return
        self._render()

    def restart(self) -> None:
        if self._state == GameState.TERMINATED:
            return
        self._tick_source.stop()
        speed = self._round.clock.speed()
        self._round = Round(self._settings, speed)
        self._last_summary = None
        self._last_entries = []
        get_logger().info("round: restart at speed %d", speed)
        self._resume_ticks()
        self._render()

    def change_speed(self, step: int) -> None:
        if self._state not in (GameState.RUNNING, GameState.PAUSED):
            return
        clock = self._round.clock
        previous = clock.speed()
        speed = clock.change_speed(step)
        if speed == previous:
            return
        if self._state == GameState.RUNNING:
            self._tick_source.set_interval_ms(clock.tick_interval_ms())
        get_logger().info("round: speed %d -> %d", previous, speed)
        self._render()

    def quit(self) -> None:
        self._tick_source.stop()
        self._state = GameState.TERMINATED
        get_logger().info("round: quit")

    def input_failed(self, reason: str) -> None:
        self._tick_source.stop()
        self._failure_reason = str(reason)
        self._state = GameState.TERMINATED
        get_logger().error("round: terminated, %s", reason)

    # -----------------
    # Helpers
    # -----------------

    def _resume_ticks(self) -> None:
        self._state = GameState.RUNNING
        self._tick_source.start(self._round.clock.tick_interval_ms())

    def _render(self) -> None:
        self._renderer.render(self._round.buffer.visible_frames(), self.snapshot())

    def _finish(self) -> None:
        self._tick_source.stop()
        self._state = GameState.FINISHED

        stats = self._round.stats
        summary = RoundSummary(
            player_name=self._player_name,
            speed=self._round.clock.speed(),
            score=stats.score,
            accuracy=stats.accuracy(),
            correct_notes=stats.correct_notes,
            mistaken_notes=stats.mistaken_notes,
            total_notes=stats.total_notes,
        )
        self._last_summary = summary
        get_logger().info(
            "round: finished score=%d correct=%d mistakes=%d total=%d",
            summary.score,
            summary.correct_notes,
            summary.mistaken_notes,
            summary.total_notes,
        )

        entry = leaderboard.LeaderboardEntry.create(
            name=summary.player_name,
            speed=summary.speed,
            score=summary.score,
            correct=summary.correct_notes,
            total=summary.total_notes,
        )
        self._last_entries = list(self._leaderboard.add(entry))
        self._renderer.render_summary(summary, self._last_entries)


class _RecordingRenderer:
    def __init__(self) -> None:
        self.frames: List[Tuple[Frame, ...]] = []
        self.snapshots: List[StatsSnapshot] = []
        self.summaries: List[RoundSummary] = []

    def render(self, frames: Sequence[Frame], snapshot: StatsSnapshot) -> None:
        self.frames.append(tuple(frames))
        self.snapshots.append(snapshot)

    def render_summary(self, summary: RoundSummary, entries: Sequence[leaderboard.LeaderboardEntry]) -> None:
        self.summaries.append(summary)


class _RecordingLeaderboard:
    def __init__(self) -> None:
        self.added: List[leaderboard.LeaderboardEntry] = []

    def add(self, entry: leaderboard.LeaderboardEntry) -> List[leaderboard.LeaderboardEntry]:
        self.added.append(entry)
        return list(self.added)


class _RecordingTickSource:
    def __init__(self) -> None:
        self.active = False
        self.interval_ms = 0
        self.starts = 0

    def start(self, interval_ms: int) -> None:
        self.active = True
        self.interval_ms = int(interval_ms)
        self.starts += 1

    def stop(self) -> None:
        self.active = False

    def set_interval_ms(self, interval_ms: int) -> None:
        self.interval_ms = int(interval_ms)


def _build_controller(**overrides):
    settings_kwargs = dict(lane_keys=("h", "j", "k", "l"), height=6, bar_index=3, round_ms=30_000, note_probability=0.5)
    settings_kwargs.update(overrides.pop("settings", {}))
    renderer = _RecordingRenderer()
    board = _RecordingLeaderboard()
    ticks = _RecordingTickSource()
    controller = GameController(
        RoundSettings(**settings_kwargs),
        renderer=renderer,
        leaderboard_sink=board,
        tick_source=ticks,
        player_name="ada",
        rng=random.Random(3),
        **overrides,
    )
    return controller, renderer, board, ticks


def _run_unit_tests() -> None:
    tick = ControlMessage.tick()

    # Starts paused; ticks while paused change nothing.
    controller, renderer, board, ticks = _build_controller()
    controller.start()
    assert controller.state == GameState.PAUSED
    assert not ticks.active
    frames_before = controller.current_round.buffer.visible_frames()
    stats_before = judge.Stats(**vars(controller.current_round.stats))
    for _ in range(25):
        controller.dispatch(tick)
        controller.dispatch(ControlMessage.key_press("j"))
    assert controller.current_round.buffer.visible_frames() == frames_before
    assert vars(controller.current_round.stats) == vars(stats_before)
    assert controller.current_round.clock.time_left_ms() == 30_000

    # Resume starts the producer at the speed interval.
    controller.dispatch(ControlMessage(kind=MessageKind.PAUSE))
    assert controller.state == GameState.RUNNING
    assert ticks.active and ticks.interval_ms == 143
    controller.dispatch(tick)
    assert controller.current_round.clock.time_left_ms() == 30_000 - 143
    assert renderer.snapshots[-1].state == "RUNNING"

    # Pause again freezes time.
    controller.dispatch(ControlMessage(kind=MessageKind.PAUSE))
    assert not ticks.active
    left = controller.current_round.clock.time_left_ms()
    controller.dispatch(tick)
    assert controller.current_round.clock.time_left_ms() == left

    # Speed change while paused keeps progress; interval applies on resume.
    controller.dispatch(ControlMessage(kind=MessageKind.SPEED_UP))
    assert controller.current_round.clock.speed() == 8
    assert controller.current_round.clock.time_left_ms() == left
    controller.dispatch(ControlMessage(kind=MessageKind.PAUSE))
    assert ticks.interval_ms == 125
    controller.dispatch(ControlMessage(kind=MessageKind.SPEED_DOWN))
    assert ticks.interval_ms == 143

    # Speed is clamped to the configured range.
    for _ in range(20):
        controller.dispatch(ControlMessage(kind=MessageKind.SPEED_UP))
    assert controller.current_round.clock.speed() == 12

    # Restart builds a fresh round and keeps the chosen speed.
    old_round = controller.current_round
    controller.dispatch(ControlMessage.key_press("z"))
    assert old_round.stats.mistaken_notes == 1
    assert renderer.snapshots[-1].last_judgement.kind == JudgementKind.INVALID_KEY
    controller.dispatch(ControlMessage(kind=MessageKind.RESTART))
    assert controller.current_round is not old_round
    assert controller.current_round.stats.mistaken_notes == 0
    assert controller.current_round.clock.time_left_ms() == 30_000
    assert controller.current_round.clock.speed() == 12
    assert controller.state == GameState.RUNNING
    assert controller.snapshot().last_judgement is None

    # A lane key re-render does not evaluate the miss row again.
    controller, renderer, board, ticks = _build_controller(start_paused=False, settings={"note_probability": 0.0})
    controller.start()
    current = controller.current_round
    current.buffer.append_frame(Frame.single_note(4, 0))
    current.buffer.trim()
    for _ in range(4):
        controller.dispatch(tick)
    assert current.buffer.row(1).has_note(0)
    assert current.stats.mistaken_notes == 1
    controller.dispatch(ControlMessage.key_press("j"))
    controller.dispatch(ControlMessage.key_press("j"))
    assert current.stats.mistaken_notes == 3
    controller.dispatch(tick)
    assert current.stats.mistaken_notes == 3
    assert current.stats.total_notes == 1

    # Notes nobody presses still count toward the saved total.
    controller, renderer, board, ticks = _build_controller(
        start_paused=False, settings={"round_ms": 1_000, "note_probability": 1.0}
    )
    controller.start()
    for _ in range(7):
        controller.dispatch(tick)
    assert controller.state == GameState.FINISHED
    assert controller.last_summary.mistaken_notes == 3
    assert controller.last_summary.total_notes == 3
    assert board.added[0].correct == 0 and board.added[0].total == 3
    assert renderer.snapshots[-1].last_judgement.kind == JudgementKind.MISSED

    # A short round finishes, writes the leaderboard once, then accepts only restart and quit.
    controller, renderer, board, ticks = _build_controller(start_paused=False, settings={"round_ms": 1_000})
    controller.start()
    for _ in range(7):
        controller.dispatch(tick)
    assert controller.state == GameState.FINISHED
    assert not ticks.active
    assert len(board.added) == 1
    assert board.added[0].name == "ada" and board.added[0].speed == 7
    assert len(renderer.summaries) == 1
    finished_stats = vars(controller.current_round.stats).copy()
    controller.dispatch(tick)
    controller.dispatch(ControlMessage.key_press("h"))
    controller.dispatch(ControlMessage(kind=MessageKind.PAUSE))
    controller.dispatch(ControlMessage(kind=MessageKind.SPEED_UP))
    assert controller.state == GameState.FINISHED
    assert vars(controller.current_round.stats) == finished_stats
    assert len(board.added) == 1
    controller.dispatch(ControlMessage(kind=MessageKind.RESTART))
    assert controller.state == GameState.RUNNING
    assert controller.last_summary is None

    # Quit and input failure both terminate and stop the producer.
    controller.dispatch(ControlMessage(kind=MessageKind.QUIT))
    assert controller.state == GameState.TERMINATED
    assert not ticks.active
    controller.dispatch(ControlMessage(kind=MessageKind.RESTART))
    assert controller.state == GameState.TERMINATED

    controller, renderer, board, ticks = _build_controller(start_paused=False)
    controller.start()
    controller.dispatch(ControlMessage.input_failed("keyboard input closed"))
    assert controller.state == GameState.TERMINATED
    assert controller.failure_reason == "keyboard input closed"
    assert not ticks.active

    try:
        _build_controller(settings={"height": 4})
    except ValueError:
        pass
    else:
        raise AssertionError("a board too short for the judgement rows should be rejected")


if __name__ == "__main__":
    _run_unit_tests()
    print("game_controller.py: ok")
