# -*- coding: utf-8 -*-
########################
# paths.py
########################
# Purpose:
# - Central filesystem path helpers for the app.
# - Defines where the config file, the leaderboard file and the log file live.
#
# Design notes:
# - Keep path derivation consistent across modules.
# - No Qt usage. Return pathlib.Path only.
# - Nothing here creates directories. Writers create their parent directory when they write.
#
########################
# Interfaces:
# Public functions:
# - config_dir() -> pathlib.Path
# - data_dir() -> pathlib.Path
# - log_dir() -> pathlib.Path
# - config_candidates() -> list[pathlib.Path]
# - default_leaderboard_path() -> pathlib.Path
# - default_log_path() -> pathlib.Path
#
########################

from __future__ import annotations

from pathlib import Path
from typing import List

from platformdirs import user_config_dir, user_data_dir, user_log_dir


APP_NAME = "fretline"
APP_AUTHOR = "fretline"

CONFIG_FILE_NAME = "fretline_config.json"
LEADERBOARD_FILE_NAME = "highscore"
LOG_FILE_NAME = "fretline.log"


def config_dir() -> Path:
    return Path(user_config_dir(APP_NAME, APP_AUTHOR))


def data_dir() -> Path:
    return Path(user_data_dir(APP_NAME, APP_AUTHOR))


def log_dir() -> Path:
    return Path(user_log_dir(APP_NAME, APP_AUTHOR))


def config_candidates() -> List[Path]:
    """Config search order: working directory first, then the user config dir."""
    return [
        Path.cwd() / CONFIG_FILE_NAME,
        config_dir() / CONFIG_FILE_NAME,
        config_dir() / "config.json",
    ]


def default_leaderboard_path() -> Path:
    return data_dir() / LEADERBOARD_FILE_NAME


def default_log_path() -> Path:
    return log_dir() / LOG_FILE_NAME


def _run_unit_tests() -> None:
    assert default_leaderboard_path().name == LEADERBOARD_FILE_NAME
    assert default_log_path().name == LOG_FILE_NAME
    candidates = config_candidates()
    assert candidates[0] == Path.cwd() / CONFIG_FILE_NAME
    assert all(isinstance(candidate, Path) for candidate in candidates)


if __name__ == "__main__":
    _run_unit_tests()
    print("paths.py: ok")
