"""Logging setup for the league tracker."""

import logging
import logging.handlers
import pathlib
import sys
from typing import Optional

from league.config import settings

_logging_initialized = False

LOG_FORMAT = "[%(asctime)s] %(levelname)-8s [%(short_name)s] %(message)s"

# ANSI colours for console level names
COLORS = {
    "DEBUG": "\033[36m",
    "INFO": "\033[32m",
    "WARNING": "\033[33m",
    "ERROR": "\033[31m",
    "CRITICAL": "\033[35m",
}
RESET = "\033[0m"


class ColoredFormatter(logging.Formatter):
    """Formatter that colours the level name for the console."""

    def format(self, record: logging.LogRecord) -> str:
        levelname = record.levelname
        if levelname in COLORS:
            record.levelname = f"{COLORS[levelname]}{levelname}{RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = levelname


class ContextFilter(logging.Filter):
    """Adds ``short_name``: ``league.services.elo`` logs as ``elo``."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.short_name = record.name.rsplit(".", 1)[-1] if record.name else "root"
        return True


def _rotating(path: pathlib.Path, level: int, max_mb: int, backups: int) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=max_mb * 1024 * 1024,
        backupCount=backups,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    return handler


def setup_logging(log_dir: Optional[str] = None, console: bool = True) -> None:
    """
    Configure root logging once per process.

    Writes ``league.log`` at the configured level and ``errors.log`` for
    errors only, both rotating.

    Args:
        log_dir: Directory for the log files (defaults to settings)
        console: Also log to stderr
    """
    global _logging_initialized

    if _logging_initialized:
        return
    _logging_initialized = True

    directory = pathlib.Path(log_dir or settings.log_dir)
    directory.mkdir(parents=True, exist_ok=True)
    level = getattr(logging, settings.log_level, logging.INFO)

    handlers = [
        _rotating(directory / "league.log", level, max_mb=10, backups=5),
        _rotating(directory / "errors.log", logging.ERROR, max_mb=5, backups=10),
    ]
    if console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        console_handler.setFormatter(ColoredFormatter(LOG_FORMAT, datefmt="%H:%M:%S"))
        handlers.append(console_handler)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(level)
    context_filter = ContextFilter()
    for handler in handlers:
        handler.addFilter(context_filter)
        root_logger.addHandler(handler)

    # Quiet down libraries
    for name in ("sqlalchemy.engine", "aiosqlite", "PIL"):
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.info(f"Logging: level={settings.log_level} | dir={directory.absolute()}")
