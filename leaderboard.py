# -*- coding: utf-8 -*-
########################
# leaderboard.py
########################
# Purpose:
# - Persist and rank finished-round results.
# - Parse and write the plain text leaderboard file, one entry per line.
#
# Design notes:
# - No Qt usage. Pure parsing, serialization and ranking.
# - Line format: name,speed,score,correct,total
#   Legacy speed-agnostic lines name,score,correct,total are read with speed=None and written back unchanged.
# - Parsing never silently accepts a broken file. A malformed line raises LeaderboardParseError.
# - Names are sanitized on entry (commas and line breaks become spaces) so a name cannot corrupt the file.
# - Ranking is descending by score; ties keep insertion order.
#
########################
# Interfaces:
# Public dataclasses:
# - LeaderboardEntry(name: str, speed: Optional[int], score: int, correct: int, total: int)
#
# Public functions:
# - sanitize_name(name: str) -> str
# - parse_line(line: str, *, line_number: int = 0) -> LeaderboardEntry
# - serialize_entry(entry: LeaderboardEntry) -> str
#
# Public classes:
# - class LeaderboardStore
#   - __init__(path: pathlib.Path, *, show_top: int = 5, filter_by_speed: bool = True)
#   - load() -> list[LeaderboardEntry]
#   - add(entry: LeaderboardEntry) -> list[LeaderboardEntry]
#   - top(speed: Optional[int] = None) -> list[LeaderboardEntry]
#
########################

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from game_logger import get_logger


class LeaderboardError(Exception):
    """Base error for leaderboard storage."""


class LeaderboardParseError(LeaderboardError):
    """Raised when a leaderboard line cannot be parsed."""


_UNSAFE_NAME_CHARACTERS = re.compile(r"[,\r\n]+")


def sanitize_name(name: str) -> str:
    cleaned = _UNSAFE_NAME_CHARACTERS.sub(" ", str(name or "")).strip()
    return cleaned or "anonymous"


@dataclass(frozen=True)
class LeaderboardEntry:
    name: str
    speed: Optional[int]
    score: int
    correct: int
    total: int

    @classmethod
    def create(cls, *, name: str, speed: Optional[int], score: int, correct: int, total: int) -> "LeaderboardEntry":
        return cls(
            name=sanitize_name(name),
            speed=None if speed is None else int(speed),
            score=int(score),
            correct=int(correct),
            total=int(total),
        )


def parse_line(line: str, *, line_number: int = 0) -> LeaderboardEntry:
    text = str(line).rstrip("\r\n")
    name, separator, rest = text.partition(",")
    if not separator or not name:
        raise LeaderboardParseError(f"line {line_number}: expected name followed by numbers, got {text!r}")

    try:
        numbers = [int(part.strip()) for part in rest.split(",")]
    except ValueError as exception:
        raise LeaderboardParseError(f"line {line_number}: non-numeric field in {text!r}") from exception

    if len(numbers) == 4:
        speed, score, correct, total = numbers
        return LeaderboardEntry(name=name, speed=speed, score=score, correct=correct, total=total)
    if len(numbers) == 3:
        score, correct, total = numbers
        return LeaderboardEntry(name=name, speed=None, score=score, correct=correct, total=total)

    raise LeaderboardParseError(f"line {line_number}: expected 4 or 5 fields, got {len(numbers) + 1}")


def serialize_entry(entry: LeaderboardEntry) -> str:
    if entry.speed is None:
        return f"{entry.name},{entry.score},{entry.correct},{entry.total}\n"
    return f"{entry.name},{entry.speed},{entry.score},{entry.correct},{entry.total}\n"


class LeaderboardStore:
    def __init__(self, path: Path, *, show_top: int = 5, filter_by_speed: bool = True) -> None:
        self._path = Path(path)
        self._show_top = max(1, int(show_top))
        self._filter_by_speed = bool(filter_by_speed)
        self._entries: List[LeaderboardEntry] = []

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> List[LeaderboardEntry]:
        """Read the file (a missing file is an empty board) and return the full ranked list."""
        if not self._path.exists():
            self._entries = []
            return []

        try:
            raw_text = self._path.read_text(encoding="utf-8")
        except OSError as exception:
            raise LeaderboardError(f"Failed to read leaderboard file: {self._path}. Error: {exception}") from exception

        entries: List[LeaderboardEntry] = []
        for line_number, line in enumerate(raw_text.splitlines(), start=1):
            if not line.strip():
                continue
            entries.append(parse_line(line, line_number=line_number))

        self._entries = self._ranked(entries)
        return list(self._entries)

    def add(self, entry: LeaderboardEntry) -> List[LeaderboardEntry]:
        """Insert, re-rank, persist, and return the top-N view for the entry's speed."""
        self._entries = self._ranked([*self._entries, entry])
        self._save()
        get_logger().info("leaderboard: saved %s (%d) to %s", entry.name, entry.score, self._path)
        return self.top(entry.speed)

    def top(self, speed: Optional[int] = None) -> List[LeaderboardEntry]:
        entries = self._entries
        if self._filter_by_speed and speed is not None:
            entries = [entry for entry in entries if entry.speed == speed]
        return list(entries[: self._show_top])

    @staticmethod
    def _ranked(entries: List[LeaderboardEntry]) -> List[LeaderboardEntry]:
        return sorted(entries, key=lambda entry: entry.score, reverse=True)

    def _save(self) -> None:
        payload = "".join(serialize_entry(entry) for entry in self._entries)
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(payload, encoding="utf-8")
        except OSError as exception:
            raise LeaderboardError(f"Failed to write leaderboard file: {self._path}. Error: {exception}") from exception


def format_entries(entries: List[LeaderboardEntry], *, speed: Optional[int] = None) -> str:
    header = "Highscores:" if speed is None else f"Highscores for speed {speed}:"
    lines = [header]
    for rank, entry in enumerate(entries, start=1):
        lines.append(f"  {rank}. {entry.name} {entry.score} ({entry.correct}/{entry.total})")
    return "\n".join(lines)


def _run_unit_tests() -> None:
    import tempfile

    assert sanitize_name("  ada, lovelace\n") == "ada  lovelace"
    assert sanitize_name("   ") == "anonymous"

    entry = parse_line("ada,7,1200,30,32")
    assert entry == LeaderboardEntry(name="ada", speed=7, score=1200, correct=30, total=32)
    legacy = parse_line("bob,800,20,25")
    assert legacy.speed is None and legacy.score == 800
    assert serialize_entry(entry) == "ada,7,1200,30,32\n"
    assert serialize_entry(legacy) == "bob,800,20,25\n"

    for broken in ("noseparator", "ada,7,x,1,2", "ada,1,2", ",1,2,3,4"):
        try:
            parse_line(broken)
        except LeaderboardParseError:
            pass
        else:
            raise AssertionError(f"{broken!r} should not parse")

    with tempfile.TemporaryDirectory() as temp_dir:
        path = Path(temp_dir) / "scores" / "highscore"
        store = LeaderboardStore(path, show_top=2)
        assert store.load() == []

        store.add(LeaderboardEntry.create(name="a", speed=7, score=100, correct=3, total=4))
        store.add(LeaderboardEntry.create(name="b", speed=5, score=900, correct=9, total=9))
        store.add(LeaderboardEntry.create(name="c", speed=7, score=300, correct=5, total=6))
        top = store.add(LeaderboardEntry.create(name="d,e", speed=7, score=200, correct=4, total=5))
        assert [item.name for item in top] == ["c", "d e"]

        reloaded = LeaderboardStore(path, show_top=10)
        ranked = reloaded.load()
        assert [item.score for item in ranked] == [900, 300, 200, 100]
        assert [item.name for item in reloaded.top(7)] == ["c", "d e", "a"]

        unfiltered = LeaderboardStore(path, show_top=1, filter_by_speed=False)
        unfiltered.load()
        assert unfiltered.top(7)[0].name == "b"

        path.write_text("ok,1,2,3,4\nbroken line\n", encoding="utf-8")
        try:
            LeaderboardStore(path).load()
        except LeaderboardParseError:
            pass
        else:
            raise AssertionError("malformed file should raise")

    text = format_entries([entry], speed=7)
    assert text.splitlines()[0] == "Highscores for speed 7:"
    assert "1. ada 1200 (30/32)" in text


if __name__ == "__main__":
    _run_unit_tests()
    print("leaderboard.py: ok")
