"""Persistence helpers for the markdown board folder.

Layout of a board folder:
    todo.md            the board itself (created with default lanes if missing)
    automation.md      optional automation records, merged on load
    notes/             one markdown note per task, created on demand
    ARCHIVE_*.md       exports of archived Done tasks

File errors are not caught here; OSError, and UnicodeDecodeError for a
file that is not UTF-8, reach the caller.
"""
from __future__ import annotations
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime
from pathlib import Path
from typing import Optional, Union
import logging
import re
import threading
import time

import codec
from models import Board

logger = logging.getLogger(__name__)

PRIMARY_FILE = 'todo.md'
AUTOMATION_FILE = 'automation.md'
NOTES_DIR = 'notes'
DEFAULT_BOARD = "## IceBox\n\n## Todo\n\n## Doing\n\n## Pending\n\n## Done\n\n## Reject\n\n## Archive\n"

PathLike = Union[str, Path]
_WS_RE = re.compile(r"\s+")


def _safe_filename(text: str) -> str:
    kept = ''.join(c for c in text if c.isalnum() or c.isspace() or c in '-_')
    return _WS_RE.sub('_', kept.strip())


class Storage:
    @staticmethod
    def primary_path(folder: PathLike) -> Path:
        return Path(folder) / PRIMARY_FILE

    @staticmethod
    def read_primary_file(folder: PathLike) -> str:
        """Return todo.md text, creating it with the default lanes first if missing."""
        path = Storage.primary_path(folder)
        if not path.exists():
            logger.info("Creating %s", path)
            path.write_text(DEFAULT_BOARD, encoding='utf-8')
        return path.read_text(encoding='utf-8')

    @staticmethod
    def write_primary_file(folder: PathLike, text: str) -> None:
        Storage.primary_path(folder).write_text(text, encoding='utf-8')

    @staticmethod
    def read_automation_file(folder: PathLike) -> str:
        """Automation file text; empty string when there is none."""
        path = Path(folder) / AUTOMATION_FILE
        if not path.exists():
            return ''
        return path.read_text(encoding='utf-8')

    @staticmethod
    def create_note_file(folder: PathLike, task_text: str, moment: Optional[datetime] = None) -> str:
        """Create notes/<text>_<YYYYMMDD>.md unless present; return its relative path."""
        moment = moment or datetime.now()
        notes_dir = Path(folder) / NOTES_DIR
        notes_dir.mkdir(exist_ok=True)
        filename = f"{_safe_filename(task_text)}_{moment.strftime('%Y%m%d')}.md"
        path = notes_dir / filename
        if not path.exists():
            path.write_text(
                f"# {task_text}\n\nCreated: {moment.strftime('%Y-%m-%d %H:%M:%S')}\n\n## Notes\n\n",
                encoding='utf-8',
            )
        return f"{NOTES_DIR}/{filename}"

    @staticmethod
    def write_archive_file(folder: PathLike, filename: str, text: str) -> None:
        (Path(folder) / filename).write_text(text, encoding='utf-8')

    @staticmethod
    def load_board(folder: PathLike) -> Board:
        """Decode todo.md and merge in the automation file."""
        board = codec.decode(Storage.read_primary_file(folder))
        extra = codec.parse_automations(Storage.read_automation_file(folder))
        return codec.merge_automations(board, extra)


class BackgroundWriter:
    """Writes todo.md off the calling thread.

    Writes run one at a time in submission order, and every submission
    carries the full board text, so the last write wins. Failures are
    logged and kept in last_error; nothing is retried.
    """

    def __init__(self, folder: PathLike):
        self.folder = Path(folder)
        self.last_error: Optional[BaseException] = None
        self._last_write = float('-inf')
        self._in_flight = 0
        self._lock = threading.Lock()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix='kanban-writer')

    def __call__(self, text: str) -> Future:
        return self.submit(text)

    def submit(self, text: str) -> Future:
        with self._lock:
            self._in_flight += 1
        future = self._executor.submit(self._write, text)
        future.add_done_callback(self._done)
        return future

    def _write(self, text: str) -> None:
        try:
            Storage.write_primary_file(self.folder, text)
        finally:
            with self._lock:
                self._last_write = time.monotonic()

    def _done(self, future: Future) -> None:
        with self._lock:
            self._in_flight -= 1
        error = future.exception()
        if error is not None:
            logger.error("Writing %s failed: %s", Storage.primary_path(self.folder), error)
            self.last_error = error

    def take_error(self) -> Optional[BaseException]:
        """Return and clear the last write failure."""
        error, self.last_error = self.last_error, None
        return error

    def wrote_recently(self, window_s: float) -> bool:
        """True while a write is in flight or finished less than window_s ago."""
        with self._lock:
            return self._in_flight > 0 or (time.monotonic() - self._last_write) < window_s

    def close(self) -> None:
        """Wait for queued writes, then stop the worker thread."""
        self._executor.shutdown(wait=True)
