"""
Tests for the board folder files and the background writer.
"""
from datetime import datetime

import pytest

from storage import DEFAULT_BOARD, BackgroundWriter, Storage
from models import Automation


def test_missing_board_is_created_with_default_lanes(tmp_path):
    text = Storage.read_primary_file(tmp_path)
    assert text == DEFAULT_BOARD
    assert (tmp_path / "todo.md").read_text(encoding="utf-8") == DEFAULT_BOARD


def test_load_board_default_lanes(tmp_path):
    board = Storage.load_board(tmp_path)
    assert [lane.name for lane in board.lanes] == [
        "IceBox", "Todo", "Doing", "Pending", "Done", "Reject", "Archive",
    ]
    assert board.automations == ()


def test_load_board_merges_automation_file(tmp_path):
    (tmp_path / "todo.md").write_text(
        "## Todo\n- [ ] a\n\n## Automations\nnightly:Todo:[backup]\n", encoding="utf-8"
    )
    (tmp_path / "automation.md").write_text(
        "# Automations\n\nnightly:Todo:[backup]\nweekly:Todo:[review, plan]\n", encoding="utf-8"
    )
    board = Storage.load_board(tmp_path)
    assert board.automations == (
        Automation("nightly", "Todo", ("backup",)),
        Automation("weekly", "Todo", ("review", "plan")),
    )


def test_create_note_file(tmp_path):
    moment = datetime(2025, 5, 30, 9, 15, 42)
    rel = Storage.create_note_file(tmp_path, "Buy milk & eggs!", moment)
    assert rel == "notes/Buy_milk_eggs_20250530.md"
    path = tmp_path / rel
    assert path.read_text(encoding="utf-8") == (
        "# Buy milk & eggs!\n\nCreated: 2025-05-30 09:15:42\n\n## Notes\n\n"
    )


def test_create_note_file_keeps_existing_content(tmp_path):
    moment = datetime(2025, 5, 30, 9, 0)
    rel = Storage.create_note_file(tmp_path, "Plan", moment)
    (tmp_path / rel).write_text("my notes", encoding="utf-8")
    assert Storage.create_note_file(tmp_path, "Plan", moment) == rel
    assert (tmp_path / rel).read_text(encoding="utf-8") == "my notes"


def test_write_archive_file(tmp_path):
    Storage.write_archive_file(tmp_path, "ARCHIVE_202505300900.md", "# Archive\n")
    assert (tmp_path / "ARCHIVE_202505300900.md").read_text(encoding="utf-8") == "# Archive\n"


def test_background_writer_last_write_wins(tmp_path):
    writer = BackgroundWriter(tmp_path)
    writer("## Todo\n\n")
    writer.submit("## Doing\n\n").result(timeout=5)
    writer.close()
    assert (tmp_path / "todo.md").read_text(encoding="utf-8") == "## Doing\n\n"
    assert writer.take_error() is None
    assert writer.wrote_recently(60)


def test_background_writer_idle_is_not_recent(tmp_path):
    writer = BackgroundWriter(tmp_path)
    assert not writer.wrote_recently(60)
    writer.close()


def test_background_writer_records_failure(tmp_path):
    writer = BackgroundWriter(tmp_path / "missing")
    future = writer.submit("## Todo\n")
    with pytest.raises(FileNotFoundError):
        future.result(timeout=5)
    writer.close()
    assert isinstance(writer.take_error(), FileNotFoundError)
    assert writer.take_error() is None


def test_note_filename_collapses_whitespace(tmp_path):
    rel = Storage.create_note_file(tmp_path, "Plan\tthe\n\ntrip  ", datetime(2025, 5, 30))
    assert rel == "notes/Plan_the_trip_20250530.md"
    assert (tmp_path / rel).exists()


def test_load_board_rejects_non_utf8(tmp_path):
    (tmp_path / "todo.md").write_bytes(b"## Todo\n- [ ] caf\xe9\n")
    with pytest.raises(UnicodeDecodeError):
        Storage.load_board(tmp_path)
