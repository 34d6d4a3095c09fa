"""Shared fixtures for md-kanban tests."""

import sys
from dataclasses import replace
from datetime import datetime, timedelta
from pathlib import Path

import pytest

# Modules live flat under src/
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import codec  # noqa: E402
from board import KanbanBoard  # noqa: E402

STANDARD_BOARD = "## Todo\n\n## Doing\n\n## Pending\n\n## Done\n\n## Reject\n\n## Archive\n"


class Clock:
    """Manually advanced clock for deterministic timestamps."""

    def __init__(self, start: datetime = datetime(2025, 5, 30, 9, 0)):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, minutes: int) -> datetime:
        self.current += timedelta(minutes=minutes)
        return self.current


def without_ids(board):
    """Board with ids and notes blanked, for comparing decoded snapshots."""
    return replace(board, lanes=tuple(
        replace(lane, todos=tuple(replace(t, id="", note=None) for t in lane.todos))
        for lane in board.lanes
    ))


@pytest.fixture()
def clock() -> Clock:
    return Clock()


@pytest.fixture()
def written() -> list:
    return []


@pytest.fixture()
def board(clock, written) -> KanbanBoard:
    return KanbanBoard(codec.decode(STANDARD_BOARD), persist=written.append, clock=clock)


def task_by_text(kb: KanbanBoard, text: str):
    for task in kb.state.all_tasks():
        if task.text == text:
            return task
    raise AssertionError(f"no task {text!r}")
