"""
Tests for root logger configuration.
"""
import logging

import pytest

from logging_setup import LOG_FILE, setup_logging


@pytest.fixture()
def configure(tmp_path):
    """setup_logging into tmp_path; installed handlers are removed afterwards."""
    root = logging.getLogger()
    level = root.level
    installed = []

    def _configure(**kwargs):
        log_file = setup_logging(log_dir=tmp_path / "logs", **kwargs)
        installed.extend(root.handlers)
        return log_file

    yield _configure
    for handler in installed:
        root.removeHandler(handler)
        handler.close()
    root.setLevel(level)
    logging.captureWarnings(False)


def test_setup_logging_writes_file(tmp_path, configure):
    log_file = configure()
    assert log_file == tmp_path / "logs" / LOG_FILE
    logging.getLogger("board").debug("moved a task")
    for handler in logging.getLogger().handlers:
        handler.flush()
    assert "DEBUG board: moved a task" in log_file.read_text(encoding="utf-8")


def test_console_hides_watchdog_chatter(configure):
    configure(console_level=logging.INFO)
    console = next(h for h in logging.getLogger().handlers if not isinstance(h, logging.FileHandler))
    noisy = logging.LogRecord("watchdog.observers", logging.WARNING, __file__, 1, "x", None, None)
    ours = logging.LogRecord("storage", logging.WARNING, __file__, 1, "x", None, None)
    assert not console.filter(noisy)
    assert console.filter(ours)
