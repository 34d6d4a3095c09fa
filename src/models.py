"""Data models for the markdown Kanban board.

Every model is a frozen dataclass and every sequence is a tuple, so a
Board is an immutable snapshot. Mutations build a new snapshot with
dataclasses.replace; untouched lanes and tasks are shared between the
old and new Board.

Timestamps are plain strings: dates "YYYYMMDD", date-times
"YYYYMMDDHHMM" (local time, minute resolution), clock times "HH:MM".
"""
from __future__ import annotations
from dataclasses import dataclass, field, replace
from typing import Optional, Tuple
import uuid


def new_id() -> str:
    """Collision-resistant task id, never reused within a Board's lifetime."""
    return uuid.uuid4().hex


def renumber(tasks: Tuple["Task", ...]) -> Tuple["Task", ...]:
    """Reset each task's order to its index."""
    return tuple(t if t.order == i else replace(t, order=i) for i, t in enumerate(tasks))


@dataclass(frozen=True)
class Interval:
    """One span of time a task spent in the Doing role.

    end is None while the interval is still open.
    """
    start: Optional[str]
    end: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self.end is None


@dataclass(frozen=True)
class Task:
    """A single Kanban task.

    Fields:
        id: Opaque unique id (regenerated on every decode).
        text: Display text without metadata markers.
        lane_id: Owning lane id (denormalized).
        tags: Tags in encoding order; duplicates are kept.
        type: Optional classification label.
        deadline_date: "YYYYMMDD" or None.
        deadline_time: "HH:MM" or None.
        history: Doing intervals; only the last one may be open.
        completed_at / rejected_at: mutually exclusive timestamps.
        note: Relative path of a note file (kept in memory only).
        order: Position inside the lane.
    """
    text: str
    lane_id: str = ""
    id: str = field(default_factory=new_id)
    tags: Tuple[str, ...] = ()
    type: Optional[str] = None
    deadline_date: Optional[str] = None
    deadline_time: Optional[str] = None
    history: Tuple[Interval, ...] = ()
    completed_at: Optional[str] = None
    rejected_at: Optional[str] = None
    note: Optional[str] = None
    order: int = 0

    @property
    def has_open_interval(self) -> bool:
        return bool(self.history) and self.history[-1].is_open

    def __repr__(self) -> str:  # pragma: no cover - convenience only
        return f"Task(id={self.id}, text={self.text!r}, lane_id={self.lane_id})"


@dataclass(frozen=True)
class Lane:
    """A named column. id is derived from name (see lanes.lane_id_for)."""
    id: str
    name: str
    todos: Tuple[Task, ...] = ()
    is_restricted: bool = False
    order: int = 0

    def find(self, task_id: str) -> Optional[Task]:
        for task in self.todos:
            if task.id == task_id:
                return task
        return None

    def index_of(self, task_id: str) -> int:
        for idx, task in enumerate(self.todos):
            if task.id == task_id:
                return idx
        return -1


@dataclass(frozen=True)
class Automation:
    """Declarative rule carried as passthrough data: type:lane:[texts]."""
    type: str
    lane_name: str
    todo_texts: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Board:
    """Aggregate root: ordered lanes plus automations."""
    lanes: Tuple[Lane, ...] = ()
    automations: Tuple[Automation, ...] = ()

    def lane(self, lane_id: str) -> Optional[Lane]:
        for lane in self.lanes:
            if lane.id == lane_id:
                return lane
        return None

    def lane_named(self, name: str) -> Optional[Lane]:
        for lane in self.lanes:
            if lane.name == name:
                return lane
        return None

    def lane_of(self, task_id: str) -> Optional[Lane]:
        for lane in self.lanes:
            if lane.find(task_id) is not None:
                return lane
        return None

    def find_task(self, task_id: str) -> Optional[Task]:
        lane = self.lane_of(task_id)
        return lane.find(task_id) if lane else None

    def all_tasks(self) -> Tuple[Task, ...]:
        return tuple(task for lane in self.lanes for task in lane.todos)
