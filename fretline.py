"""
fretline.py

Real entrypoint that launches the terminal game.

Integration
- Parses the command line
- Loads config, configures logging, loads the leaderboard
- Prompts for the player name and measures the terminal
- Puts the terminal into cbreak mode, opens the live display and runs the Qt event loop
  through GameSession until the player quits

Exit codes
- 0: normal quit (or an informational flag such as --scores)
- 1: the game failed while running (keyboard lost, leaderboard write failed)
- 2: setup failed before the first frame (config, terminal, leaderboard read)
"""

from __future__ import annotations

import argparse
import random
import sys
from pathlib import Path
from typing import List, Optional

from PyQt6.QtCore import QCoreApplication
from rich.console import Console
from rich.text import Text

import config
import game_clock
import game_controller
import game_session
import input_router
import leaderboard
import terminal_io
import terminal_renderer
from game_logger import configure_logging, get_logger


EXIT_OK = 0
EXIT_RUNTIME_FAILURE = 1
EXIT_SETUP_FAILURE = 2


def _build_argument_parser() -> argparse.ArgumentParser:
    argument_parser = argparse.ArgumentParser(description="fretline: a terminal rhythm game")
    argument_parser.add_argument("--name", default=None, help="Player name. Prompted for when omitted.")
    argument_parser.add_argument("--speed", type=int, default=None, help="Starting speed in ticks per second.")
    argument_parser.add_argument("--config", default=None, help="Path to a fretline_config.json file.")
    argument_parser.add_argument("--seed", type=int, default=None, help="Seed the note generator.")
    argument_parser.add_argument("--show-config", action="store_true", help="Print the effective config and exit.")
    argument_parser.add_argument("--scores", action="store_true", help="Print the leaderboard and exit.")
    argument_parser.add_argument("--run-tests", action="store_true", help="Run the built-in unit tests and exit.")
    return argument_parser


def _run_all_unit_tests() -> None:
    import game_logger
    import gameplay_models
    import judge
    import paths
    import round_clock
    import scroll_buffer

    for module in (
        gameplay_models,
        scroll_buffer,
        judge,
        round_clock,
        paths,
        config,
        game_logger,
        leaderboard,
        terminal_io,
        input_router,
        game_clock,
        terminal_renderer,
        game_controller,
        game_session,
    ):
        module._run_unit_tests()
        print(f"{module.__name__}.py: ok")
    _run_unit_tests()
    print("fretline.py: ok")


def _report(error_console: Console, problem: object) -> None:
    error_console.print(Text.assemble(("fretline: ", "bold red"), str(problem)))


def _resolve_speed(requested: Optional[int], gameplay: config.GameplayConfig) -> int:
    if requested is None:
        return int(gameplay.default_speed)
    if not gameplay.min_speed <= requested <= gameplay.max_speed:
        raise ValueError(f"--speed must lie within [{gameplay.min_speed}, {gameplay.max_speed}], got {requested}")
    return int(requested)


def main(argv: Optional[List[str]] = None) -> int:
    parsed_args = _build_argument_parser().parse_args(argv)

    if parsed_args.run_tests:
        _run_all_unit_tests()
        return EXIT_OK

    console = Console(highlight=False)
    error_console = Console(stderr=True, highlight=False)

    # Setup: every failure here ends the program before the terminal is touched.
    try:
        explicit_config_path = Path(parsed_args.config).expanduser() if parsed_args.config else None
        app_config, config_path = config.load_config(explicit_config_path)
        configure_logging(level=app_config.logging.level, log_path=app_config.logging.resolved_path())
    except (OSError, ValueError) as exception:
        _report(error_console, exception)
        return EXIT_SETUP_FAILURE

    get_logger().info("startup: config from %s", config_path or "built-in defaults")

    if parsed_args.show_config:
        console.print(config.to_json(app_config), markup=False)
        return EXIT_OK

    gameplay = app_config.gameplay
    store = leaderboard.LeaderboardStore(
        app_config.leaderboard.resolved_path(),
        show_top=app_config.leaderboard.show_top,
        filter_by_speed=app_config.leaderboard.filter_by_speed,
    )
    try:
        store.load()
        speed = _resolve_speed(parsed_args.speed, gameplay)
    except (leaderboard.LeaderboardError, ValueError) as exception:
        get_logger().error("startup: %s", exception)
        _report(error_console, exception)
        return EXIT_SETUP_FAILURE

    if parsed_args.scores:
        filter_speed = parsed_args.speed if app_config.leaderboard.filter_by_speed else None
        console.print(leaderboard.format_entries(store.top(filter_speed), speed=filter_speed), markup=False)
        return EXIT_OK

    try:
        raw_name = parsed_args.name if parsed_args.name is not None else terminal_io.prompt_player_name()
        geometry = terminal_io.query_geometry()
        settings = game_controller.RoundSettings(
            lane_keys=tuple(gameplay.lane_keys),
            height=geometry.board_height(),
            bar_index=gameplay.bar_index,
            round_ms=gameplay.round_seconds * 1000,
            note_probability=gameplay.note_probability,
            min_speed=gameplay.min_speed,
            max_speed=gameplay.max_speed,
        )
        settings.validate()
    except (terminal_io.TerminalError, ValueError) as exception:
        get_logger().error("startup: %s", exception)
        _report(error_console, exception)
        return EXIT_SETUP_FAILURE

    player_name = leaderboard.sanitize_name(raw_name)
    get_logger().info("startup: player=%r terminal=%dx%d", player_name, geometry.columns, geometry.rows)

    qt_application = QCoreApplication.instance() or QCoreApplication(sys.argv[:1])
    key_map = input_router.KeyMap(gameplay.lane_keys, app_config.controls)

    try:
        with terminal_io.RawTerminal() as raw_terminal:
            with terminal_renderer.TerminalRenderer(gameplay.lane_keys, gameplay.bar_index, console) as renderer:
                clock = game_clock.GameClock()
                controller = game_controller.GameController(
                    settings,
                    renderer=renderer,
                    leaderboard_sink=store,
                    tick_source=clock,
                    player_name=player_name,
                    speed=speed,
                    start_paused=gameplay.start_paused,
                    rng=random.Random(parsed_args.seed),
                )
                key_reader = input_router.KeyReader(raw_terminal.fd)
                session = game_session.GameSession(controller, clock, key_map, key_reader)
                session.run(qt_application)
    except terminal_io.TerminalError as exception:
        get_logger().error("startup: %s", exception)
        _report(error_console, exception)
        return EXIT_SETUP_FAILURE
    except leaderboard.LeaderboardError as exception:
        _report(error_console, exception)
        return EXIT_RUNTIME_FAILURE

    # The live display ran on the alternate screen; repeat the last summary on the normal one.
    if controller.last_summary is not None:
        console.print(terminal_renderer.build_summary(controller.last_summary, controller.last_entries))

    if controller.failure_reason is not None:
        _report(error_console, controller.failure_reason)
        return EXIT_RUNTIME_FAILURE

    get_logger().info("shutdown: clean exit")
    return EXIT_OK


def _run_unit_tests() -> None:
    parsed_args = _build_argument_parser().parse_args(["--name", "ada", "--speed", "9", "--seed", "4"])
    assert parsed_args.name == "ada"
    assert parsed_args.speed == 9 and parsed_args.seed == 4
    assert not parsed_args.scores and not parsed_args.show_config

    gameplay = config.GameplayConfig()
    assert _resolve_speed(None, gameplay) == 7
    assert _resolve_speed(12, gameplay) == 12
    try:
        _resolve_speed(13, gameplay)
    except ValueError:
        pass
    else:
        raise AssertionError("a speed outside the configured range should be rejected")


if __name__ == "__main__":
    raise SystemExit(main())
