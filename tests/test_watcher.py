"""
Tests for external-change detection on todo.md.
"""
from watchdog.events import DirModifiedEvent, FileCreatedEvent, FileModifiedEvent, FileMovedEvent

from watcher import BoardFileHandler, FileWatcher


def test_external_modification_is_flagged_once(tmp_path):
    path = tmp_path / "todo.md"
    handler = BoardFileHandler(path, lambda: False)
    handler.on_any_event(FileModifiedEvent(str(path)))
    assert handler.consume()
    assert not handler.consume()


def test_self_write_is_ignored(tmp_path):
    path = tmp_path / "todo.md"
    handler = BoardFileHandler(path, lambda: True)
    handler.on_any_event(FileModifiedEvent(str(path)))
    assert not handler.consume()


def test_other_files_and_directories_are_ignored(tmp_path):
    path = tmp_path / "todo.md"
    handler = BoardFileHandler(path, lambda: False)
    handler.on_any_event(FileModifiedEvent(str(tmp_path / "automation.md")))
    handler.on_any_event(DirModifiedEvent(str(tmp_path)))
    assert not handler.consume()


def test_atomic_replace_is_flagged(tmp_path):
    """Editors that save via rename show up as a move onto todo.md"""
    path = tmp_path / "todo.md"
    handler = BoardFileHandler(path, lambda: False)
    handler.on_any_event(FileMovedEvent(str(tmp_path / ".todo.md.swp"), str(path)))
    assert handler.consume()


def test_quiet_period_delays_reload(tmp_path):
    path = tmp_path / "todo.md"
    handler = BoardFileHandler(path, lambda: False)
    handler.on_any_event(FileCreatedEvent(str(path)))
    assert not handler.consume(quiet_s=60)
    assert handler.consume(quiet_s=0)


def test_file_watcher_changed(tmp_path):
    path = tmp_path / "todo.md"
    watcher = FileWatcher(path, lambda: False, debounce_ms=0)
    assert not watcher.changed()
    watcher.handler.on_any_event(FileModifiedEvent(str(path)))
    assert watcher.changed()


def test_file_watcher_start_stop(tmp_path):
    path = tmp_path / "todo.md"
    path.write_text("## Todo\n", encoding="utf-8")
    watcher = FileWatcher(path, lambda: False)
    watcher.start()
    watcher.stop()
    watcher.stop()

