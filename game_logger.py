"""
game_logger.py

One named logger for the whole game.

stdout is the game screen, so records go to a file. The entrypoint calls
configure_logging() once; every other module only calls get_logger().
Until configured, records are dropped by a NullHandler.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional


LOGGER_NAME = "fretline"
_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class GameLogger:
    """Singleton holder for the game logger."""

    _instance: Optional["GameLogger"] = None
    _logger: Optional[logging.Logger] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if self._logger is None:
            logger = logging.getLogger(LOGGER_NAME)
            logger.propagate = False
            if not logger.handlers:
                logger.addHandler(logging.NullHandler())
            type(self)._logger = logger

    @classmethod
    def get_logger(cls) -> logging.Logger:
        instance = cls()
        if instance._logger is None:
            instance.__init__()
        return instance._logger

    @classmethod
    def configure(cls, *, level: str, log_path: Path) -> logging.Logger:
        """Replace the handlers with a file handler at log_path."""
        logger = cls.get_logger()
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()

        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(_LOG_FORMAT))
        logger.addHandler(file_handler)
        logger.setLevel(getattr(logging, str(level).upper(), logging.WARNING))
        return logger


def get_logger() -> logging.Logger:
    return GameLogger.get_logger()


def configure_logging(*, level: str, log_path: Path) -> logging.Logger:
    return GameLogger.configure(level=level, log_path=log_path)


def _run_unit_tests() -> None:
    import tempfile

    assert get_logger() is get_logger()
    assert get_logger().name == LOGGER_NAME

    # A cleared singleton rebuilds its logger on the next lookup.
    GameLogger._logger = None
    assert get_logger().name == LOGGER_NAME
    assert GameLogger._logger is not None

    with tempfile.TemporaryDirectory() as temp_dir:
        log_path = Path(temp_dir) / "nested" / "fretline.log"
        logger = configure_logging(level="INFO", log_path=log_path)
        logger.info("round started")
        logger.debug("not written at INFO")
        for handler in logger.handlers:
            handler.flush()
        text = log_path.read_text(encoding="utf-8")
        assert "round started" in text
        assert "not written" not in text

        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()
        logger.addHandler(logging.NullHandler())


if __name__ == "__main__":
    _run_unit_tests()
    print("game_logger.py: ok")
