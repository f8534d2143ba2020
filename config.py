"""
config.py

Typed configuration loading and validation for fretline.

Design goals
- Load at most one UTF-8 JSON config file
- Validate with pydantic (defaults included)
- Support environment variable overrides
- No other I/O beyond reading the config file (no directory creation)

Config file location
- If FRETLINE_CONFIG_PATH is set, that file is used and must exist.
- Otherwise fretline searches these paths in order and uses the first one that exists:
  1) ./fretline_config.json (current working directory)
  2) <user config dir>/fretline/fretline_config.json
  3) <user config dir>/fretline/config.json
- If none exists the built-in defaults are used.

Example config file (fretline_config.json)
{
  "gameplay": {
    "lane_keys": ["h", "j", "k", "l"],
    "round_seconds": 30,
    "default_speed": 7,
    "note_probability": 0.5,
    "start_paused": true
  },
  "controls": {
    "quit": "q",
    "restart": "r",
    "pause": "p"
  },
  "leaderboard": {
    "show_top": 5,
    "filter_by_speed": true
  },
  "logging": {
    "level": "INFO"
  }
}
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

import paths


_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _single_character(value: str) -> str:
    if not isinstance(value, str) or len(value) != 1:
        raise ValueError(f"key bindings must be single characters, got {value!r}")
    return value


class GameplayConfig(BaseModel):
    lane_keys: List[str] = Field(default_factory=lambda: ["h", "j", "k", "l"], description="One key per lane, left to right.")
    round_seconds: int = Field(default=30, ge=1, le=3600, description="Length of one round.")
    default_speed: int = Field(default=7, ge=1, description="Ticks per second at round start.")
    min_speed: int = Field(default=1, ge=1)
    max_speed: int = Field(default=12, ge=1)
    note_probability: float = Field(default=0.5, ge=0.0, le=1.0, description="Chance that a tick generates a note.")
    bar_index: int = Field(default=3, ge=2, description="Row of the judgement bar, counted from the bottom.")
    start_paused: bool = Field(default=True, description="Wait for the pause key before the first tick.")

    @field_validator("lane_keys")
    @classmethod
    def validate_lane_keys(cls, value: List[str]) -> List[str]:
        if not value:
            raise ValueError("lane_keys must not be empty")
        for key in value:
            _single_character(key)
        if len(set(value)) != len(value):
            raise ValueError("lane_keys must be distinct")
        return list(value)

    @model_validator(mode="after")
    def validate_speed_range(self) -> "GameplayConfig":
        if self.max_speed < self.min_speed:
            raise ValueError("max_speed must be >= min_speed")
        if not self.min_speed <= self.default_speed <= self.max_speed:
            raise ValueError("default_speed must lie within [min_speed, max_speed]")
        return self


class ControlsConfig(BaseModel):
    quit: str = "q"
    restart: str = "r"
    pause: str = "p"
    speed_up: List[str] = Field(default_factory=lambda: ["+", "="])
    speed_down: List[str] = Field(default_factory=lambda: ["-", "_"])

    @field_validator("quit", "restart", "pause")
    @classmethod
    def validate_single_key(cls, value: str) -> str:
        return _single_character(value)

    @field_validator("speed_up", "speed_down")
    @classmethod
    def validate_key_list(cls, value: List[str]) -> List[str]:
        for key in value:
            _single_character(key)
        return list(value)

    def all_keys(self) -> List[str]:
        return [self.quit, self.restart, self.pause, *self.speed_up, *self.speed_down]


class LeaderboardConfig(BaseModel):
    path: Optional[str] = Field(default=None, description="Leaderboard file. Defaults to the user data dir.")
    show_top: int = Field(default=5, ge=1, le=100)
    filter_by_speed: bool = Field(default=True, description="Rank only rounds played at the same speed.")

    @field_validator("path")
    @classmethod
    def normalize_path(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        trimmed = value.strip()
        return trimmed or None

    def resolved_path(self) -> Path:
        if self.path:
            return Path(self.path).expanduser()
        return paths.default_leaderboard_path()


class LoggingConfig(BaseModel):
    level: str = Field(default="WARNING")
    path: Optional[str] = Field(default=None, description="Log file. Defaults to the user log dir.")

    @field_validator("level")
    @classmethod
    def validate_level(cls, value: str) -> str:
        normalized = (value or "").strip().upper()
        if normalized not in _LOG_LEVELS:
            raise ValueError("level must be one of: " + ", ".join(sorted(_LOG_LEVELS)))
        return normalized

    def resolved_path(self) -> Path:
        if self.path and self.path.strip():
            return Path(self.path.strip()).expanduser()
        return paths.default_log_path()


class AppConfig(BaseModel):
    gameplay: GameplayConfig = Field(default_factory=GameplayConfig)
    controls: ControlsConfig = Field(default_factory=ControlsConfig)
    leaderboard: LeaderboardConfig = Field(default_factory=LeaderboardConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @model_validator(mode="after")
    def validate_key_collisions(self) -> "AppConfig":
        control_keys = self.controls.all_keys()
        if len(set(control_keys)) != len(control_keys):
            raise ValueError("control keys must be distinct")
        clashing = sorted(set(self.gameplay.lane_keys) & set(control_keys))
        if clashing:
            raise ValueError("lane keys collide with control keys: " + ", ".join(clashing))
        return self


def _resolve_config_path() -> Optional[Path]:
    explicit_path_text = os.environ.get("FRETLINE_CONFIG_PATH", "").strip()
    if explicit_path_text:
        explicit_path = Path(explicit_path_text).expanduser()
        if not explicit_path.exists():
            raise FileNotFoundError(f"FRETLINE_CONFIG_PATH points at a missing file: {explicit_path}")
        return explicit_path

    for candidate_path in paths.config_candidates():
        if candidate_path.exists():
            return candidate_path

    return None


def _read_json_file_utf8(config_path: Path) -> Dict[str, Any]:
    try:
        raw_text = config_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise
    except OSError as exception:
        raise OSError(f"Failed to read config file: {config_path}. Error: {exception}") from exception

    try:
        parsed = json.loads(raw_text)
    except json.JSONDecodeError as exception:
        raise ValueError(f"Config file is not valid JSON: {config_path}. Error: {exception}") from exception

    if not isinstance(parsed, dict):
        raise ValueError(f"Config file root must be a JSON object: {config_path}")

    return parsed


def _apply_environment_overrides(config_dict: Dict[str, Any]) -> Dict[str, Any]:
    """
    Environment overrides are optional. The config file is the primary source of truth.

    Override variables:
    - FRETLINE_SPEED
    - FRETLINE_ROUND_SECONDS
    - FRETLINE_NOTE_PROBABILITY
    - FRETLINE_START_PAUSED
    - FRETLINE_LEADERBOARD_PATH
    - FRETLINE_LOG_LEVEL
    """
    def ensure_nested(config_root: Dict[str, Any], section_name: str) -> Dict[str, Any]:
        section = config_root.get(section_name)
        if isinstance(section, dict):
            return section
        section = {}
        config_root[section_name] = section
        return section

    updated_config = dict(config_dict)

    gameplay_section = ensure_nested(updated_config, "gameplay")
    leaderboard_section = ensure_nested(updated_config, "leaderboard")
    logging_section = ensure_nested(updated_config, "logging")

    def override_string(env_name: str, target_dict: Dict[str, Any], key_name: str) -> None:
        value_text = os.environ.get(env_name, "")
        if value_text.strip():
            target_dict[key_name] = value_text.strip()

    def override_number(env_name: str, target_dict: Dict[str, Any], key_name: str, parse) -> None:
        value_text = os.environ.get(env_name, "").strip()
        if not value_text:
            return
        try:
            target_dict[key_name] = parse(value_text)
        except ValueError as exception:
            raise ValueError(f"{env_name} is not a valid number: {value_text!r}") from exception

    def override_bool(env_name: str, target_dict: Dict[str, Any], key_name: str) -> None:
        value_text = os.environ.get(env_name, "").strip().lower()
        if not value_text:
            return
        truthy = {"1", "true", "yes", "on"}
        falsy = {"0", "false", "no", "off"}
        if value_text in truthy:
            target_dict[key_name] = True
        elif value_text in falsy:
            target_dict[key_name] = False
        else:
            raise ValueError(f"{env_name} must be a boolean, got {value_text!r}")

    override_number("FRETLINE_SPEED", gameplay_section, "default_speed", int)
    override_number("FRETLINE_ROUND_SECONDS", gameplay_section, "round_seconds", int)
    override_number("FRETLINE_NOTE_PROBABILITY", gameplay_section, "note_probability", float)
    override_bool("FRETLINE_START_PAUSED", gameplay_section, "start_paused")

    override_string("FRETLINE_LEADERBOARD_PATH", leaderboard_section, "path")
    override_string("FRETLINE_LOG_LEVEL", logging_section, "level")

    return updated_config


def load_config(config_path: Optional[Path] = None) -> Tuple[AppConfig, Optional[Path]]:
    resolved_path = config_path if config_path is not None else _resolve_config_path()
    json_dict: Dict[str, Any] = {}
    if resolved_path is not None:
        json_dict = _read_json_file_utf8(resolved_path)
    json_dict = _apply_environment_overrides(json_dict)

    try:
        config = AppConfig.model_validate(json_dict)
    except ValidationError as exception:
        source = str(resolved_path) if resolved_path is not None else "built-in defaults"
        raise ValueError(f"Config validation failed for {source}:\n{exception}") from exception

    return config, resolved_path


def to_json(config: AppConfig) -> str:
    return json.dumps(config.model_dump(), ensure_ascii=False, indent=2)


def _run_unit_tests() -> None:
    import tempfile

    config = AppConfig()
    assert config.gameplay.lane_keys == ["h", "j", "k", "l"]
    assert config.gameplay.default_speed == 7
    assert config.controls.pause == "p"

    try:
        AppConfig.model_validate({"gameplay": {"lane_keys": ["a", "p"]}})
    except ValidationError:
        pass
    else:
        raise AssertionError("lane key colliding with pause should be rejected")

    try:
        GameplayConfig(lane_keys=["a", "a"])
    except ValidationError:
        pass
    else:
        raise AssertionError("duplicate lane keys should be rejected")

    try:
        GameplayConfig(default_speed=20)
    except ValidationError:
        pass
    else:
        raise AssertionError("default_speed outside the range should be rejected")

    with tempfile.TemporaryDirectory() as temp_dir:
        config_path = Path(temp_dir) / "fretline_config.json"
        config_path.write_text(json.dumps({"gameplay": {"round_seconds": 45}}), encoding="utf-8")
        loaded, resolved = load_config(config_path)
        assert resolved == config_path
        assert loaded.gameplay.round_seconds == 45

        config_path.write_text("[1, 2]", encoding="utf-8")
        try:
            load_config(config_path)
        except ValueError:
            pass
        else:
            raise AssertionError("non-object root should be rejected")

    assert LoggingConfig(level="info").level == "INFO"
    assert LeaderboardConfig(path="  ").path is None


if __name__ == "__main__":
    _run_unit_tests()
    print("config.py: ok")
