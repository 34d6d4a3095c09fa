"""Watch todo.md for edits made outside the application.

Events that arrive while (or shortly after) this process writes the
file are ignored. Genuine external edits only raise a flag; the CLI
loop picks it up and reloads the whole board before its next redraw,
so the board is never touched from the observer thread.
"""
from __future__ import annotations
from pathlib import Path
from typing import Callable, Optional
import logging
import threading
import time

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

logger = logging.getLogger(__name__)


class BoardFileHandler(FileSystemEventHandler):
    """Flags changes of one file, skipping the ones this process caused."""

    def __init__(self, path: Path, is_self_write: Callable[[], bool]):
        self.path = Path(path).resolve()
        self.is_self_write = is_self_write
        self._lock = threading.Lock()
        self._changed_at: Optional[float] = None

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type not in ("modified", "created", "moved"):
            return
        targets = [event.src_path, getattr(event, "dest_path", "")]
        if not any(t and Path(t).resolve() == self.path for t in targets):
            return
        if self.is_self_write():
            logger.debug("Ignoring self write of %s", self.path)
            return
        with self._lock:
            self._changed_at = time.monotonic()
        logger.debug("External change of %s", self.path)

    def consume(self, quiet_s: float = 0.0) -> bool:
        """True once per external change, after quiet_s seconds without new events."""
        with self._lock:
            if self._changed_at is None:
                return False
            if time.monotonic() - self._changed_at < quiet_s:
                return False
            self._changed_at = None
            return True


class FileWatcher:
    def __init__(self, path: Path, is_self_write: Callable[[], bool], debounce_ms: int = 1000):
        self.path = Path(path)
        self.debounce_s = debounce_ms / 1000
        self.handler = BoardFileHandler(self.path, is_self_write)
        self._observer: Optional[Observer] = None

    def start(self) -> None:
        observer = Observer()
        observer.schedule(self.handler, str(self.path.parent.resolve()), recursive=False)
        observer.start()
        self._observer = observer
        logger.info("Watching %s", self.path)

    def stop(self) -> None:
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join()
        self._observer = None

    def changed(self) -> bool:
        return self.handler.consume(self.debounce_s)
