"""Logging configuration.

The console handler defaults to WARNING so log lines do not tear through
the board redraw; everything goes to the log file.
"""
from __future__ import annotations
from pathlib import Path
from typing import Union
import logging
import sys

LOG_FILE = 'md-kanban.log'


class _ConsoleNoiseFilter(logging.Filter):
    """Third-party loggers (watchdog) reach the console only at ERROR+."""

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name.startswith("watchdog"):
            return record.levelno >= logging.ERROR
        return True


def setup_logging(
    *,
    log_dir: Union[str, Path],
    console_level: int = logging.WARNING,
    file_level: int = logging.DEBUG,
) -> Path:
    """Install console + file handlers on the root logger; returns the log file path."""
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(console_level)
    ch.setFormatter(fmt)
    ch.addFilter(_ConsoleNoiseFilter())
    root.addHandler(ch)

    fh = logging.FileHandler(str(log_file), encoding="utf-8")
    fh.setLevel(file_level)
    fh.setFormatter(fmt)
    root.addHandler(fh)

    logging.captureWarnings(True)
    logging.getLogger("watchdog").setLevel(logging.INFO)
    return log_file
