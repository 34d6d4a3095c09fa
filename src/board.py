"""Board logic: holds the current Board snapshot and applies every user
mutation (tasks, lanes, archive) through the workflow rules.

Each mutation builds a new immutable Board, swaps it in synchronously and
then hands the encoded text of the whole board to the persist callback.
A rejected or unresolvable mutation leaves the snapshot untouched and
persists nothing.
"""
from __future__ import annotations
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Callable, Iterable, List, Optional, Tuple
import logging
import re

import codec
from lanes import (
    LaneNameError, Role, check_new_name, find_role_lane, intake_lane, is_reserved,
    lane_id_for, lane_role,
)
from models import Board, Lane, Task, renumber
from workflow import (
    apply_history, can_move, displace_for_wip, needs_follow_up, spawn_follow_up, timestamp,
)

logger = logging.getLogger(__name__)

DATE_RE = re.compile(r"^\d{8}$")
TIME_RE = re.compile(r"^\d{2}:\d{2}$")

Persist = Callable[[str], None]


@dataclass(frozen=True)
class ArchiveExport:
    """Markdown export of archived Done tasks, written by the caller."""
    filename: str
    content: str


def build_archive(tasks: Iterable[Task], moment: datetime) -> ArchiveExport:
    lines = [f"# Archive - {moment.strftime('%Y-%m-%d %H:%M')}", "", "## Done Tasks", ""]
    for task in tasks:
        line = f"- [x] {task.text}"
        if task.tags:
            line += f" [{', '.join(task.tags)}]"
        if task.type:
            line += f" {{{task.type}}}"
        if task.completed_at:
            line += f" (done: {task.completed_at})"
        lines.append(line)
    return ArchiveExport(
        filename=f"ARCHIVE_{timestamp(moment)}.md",
        content="\n".join(lines) + "\n",
    )


# -------------------- pure snapshot helpers --------------------
def _swap(board: Board, old: Lane, new: Lane) -> Board:
    return replace(board, lanes=tuple(new if lane is old else lane for lane in board.lanes))


def _with_todos(lane: Lane, todos: Iterable[Task]) -> Lane:
    return replace(lane, todos=renumber(tuple(todos)))


def _renumber_lanes(lanes: Iterable[Lane]) -> Tuple[Lane, ...]:
    return tuple(l if l.order == i else replace(l, order=i) for i, l in enumerate(lanes))


def _array_move(items: List, old_index: int, new_index: int) -> List:
    items = list(items)
    item = items.pop(old_index)
    items.insert(max(0, min(new_index, len(items))), item)
    return items


def _clean_tags(tags: Iterable[str]) -> Tuple[str, ...]:
    """Whitespace-split tokens without a leading '#'; tokens that would not
    decode back as the same tag (e.g. 'a@20250101') are dropped."""
    out: List[str] = []
    for raw in tags:
        for token in raw.split():
            token = token.lstrip('#')
            if token and codec.parse_payload(f"#{token}").tags == (token,):
                out.append(token)
    return tuple(out)


class KanbanBoard:
    def __init__(
        self,
        state: Optional[Board] = None,
        persist: Optional[Persist] = None,
        wip_limit: bool = False,
        intake_lane_name: str = "Todo",
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.state: Board = state if state is not None else Board()
        self.persist = persist
        self.wip_limit = wip_limit
        self.intake_lane_name = intake_lane_name
        self._clock = clock

    # -------------------- state / persistence --------------------
    def replace_state(self, state: Board) -> None:
        """Swap in a board loaded from disk; nothing is written back."""
        self.state = state

    def _commit(self, state: Board) -> None:
        self.state = state
        if self.persist is not None:
            self.persist(codec.encode(state))

    def _now(self) -> str:
        return timestamp(self._clock())

    # -------------------- queries --------------------
    def role(self, lane: Lane) -> Role:
        return lane_role(lane)

    def numbered_tasks(self) -> List[Tuple[int, Lane, Task]]:
        """(display number, lane, task) in board order, numbered from 1."""
        out: List[Tuple[int, Lane, Task]] = []
        for lane in self.state.lanes:
            for task in lane.todos:
                out.append((len(out) + 1, lane, task))
        return out

    def all_tags(self) -> List[str]:
        return sorted({tag for task in self.state.all_tasks() for tag in task.tags})

    def all_types(self) -> List[str]:
        return sorted({task.type for task in self.state.all_tasks() if task.type})

    # -------------------- task operations --------------------
    def add_task(self, lane_id: str, payload: str) -> Optional[Task]:
        """Append a task; inline markers in payload become fields."""
        lane = self.state.lane(lane_id)
        if lane is None:
            return None
        task = codec.parse_payload(payload, lane.id, len(lane.todos))
        if not task.text:
            return None
        self._commit(_swap(self.state, lane, replace(lane, todos=lane.todos + (task,))))
        logger.debug("Added %r to %s", task.text, lane.name)
        return task

    def _update_task(self, task_id: str, updater: Callable[[Task], Task]) -> bool:
        lane = self.state.lane_of(task_id)
        if lane is None:
            return False
        new_todos = tuple(updater(t) if t.id == task_id else t for t in lane.todos)
        self._commit(_swap(self.state, lane, replace(lane, todos=new_todos)))
        return True

    def edit_task(self, task_id: str, payload: str) -> bool:
        """Replace the text; markers present in payload override their fields."""
        parsed = codec.parse_payload(payload)
        if not parsed.text:
            return False

        def apply(task: Task) -> Task:
            return replace(
                task,
                text=parsed.text,
                tags=parsed.tags or task.tags,
                type=parsed.type or task.type,
                deadline_date=parsed.deadline_date or task.deadline_date,
                deadline_time=parsed.deadline_time or task.deadline_time,
            )
        return self._update_task(task_id, apply)

    def set_tags(self, task_id: str, tags: Iterable[str]) -> bool:
        cleaned = _clean_tags(tags)
        return self._update_task(task_id, lambda t: replace(t, tags=cleaned))

    def set_type(self, task_id: str, type_: Optional[str]) -> bool:
        """Set or clear the type; False when it would not decode back unchanged."""
        tokens = (type_ or "").lstrip('$').split()
        value = tokens[0] if tokens else None
        if value is not None and codec.parse_payload(f"${value}").type != value:
            return False
        return self._update_task(task_id, lambda t: replace(t, type=value))

    def set_deadline(self, task_id: str, date: Optional[str], time: Optional[str] = None) -> bool:
        if date and not DATE_RE.match(date):
            return False
        if time and not TIME_RE.match(time):
            return False
        return self._update_task(
            task_id, lambda t: replace(t, deadline_date=date or None, deadline_time=time or None)
        )

    def attach_note(self, task_id: str, note_path: str) -> bool:
        return self._update_task(task_id, lambda t: replace(t, note=note_path))

    def remove_task(self, task_id: str) -> bool:
        lane = self.state.lane_of(task_id)
        if lane is None:
            return False
        todos = [t for t in lane.todos if t.id != task_id]
        self._commit(_swap(self.state, lane, _with_todos(lane, todos)))
        return True

    def reorder_task(self, task_id: str, to_index: int) -> bool:
        """Move a task to another position in its own lane."""
        lane = self.state.lane_of(task_id)
        if lane is None:
            return False
        todos = _array_move(list(lane.todos), lane.index_of(task_id), to_index)
        self._commit(_swap(self.state, lane, _with_todos(lane, todos)))
        return True

    def move_task(self, task_id: str, to_lane_id: str, before_task_id: Optional[str] = None) -> bool:
        """Move a task to another lane.

        The task is inserted before `before_task_id` when given, else
        appended. Returns False (and changes nothing) when the task or
        lane is gone or the transition is not allowed.
        """
        src = self.state.lane_of(task_id)
        dst = self.state.lane(to_lane_id)
        if src is None or dst is None:
            return False
        if src is dst:
            target = dst.index_of(before_task_id) if before_task_id else len(dst.todos)
            if target < 0:
                return False
            current = src.index_of(task_id)
            return self.reorder_task(task_id, target - 1 if target > current else target)
        if before_task_id is not None and dst.find(before_task_id) is None:
            return False

        task = src.find(task_id)
        from_role, to_role = lane_role(src), lane_role(dst)
        if not can_move(task, from_role, to_role):
            logger.info("Rejected move of %r: %s -> %s", task.text, src.name, dst.name)
            return False

        now = self._now()
        moved = replace(apply_history(task, from_role, to_role, now), lane_id=dst.id)
        dst_todos = list(dst.todos)
        index = dst.index_of(before_task_id) if before_task_id else len(dst_todos)
        dst_todos.insert(index, moved)
        new_src = _with_todos(src, (t for t in src.todos if t.id != task_id))
        new_dst = _with_todos(dst, dst_todos)
        board = _swap(_swap(self.state, src, new_src), dst, new_dst)

        if needs_follow_up(task, to_role):
            intake = intake_lane(board, self.intake_lane_name)
            if intake is None:
                logger.warning("No intake lane for follow-up of %r", task.text)
            else:
                follow = spawn_follow_up(task, intake)
                board = _swap(board, intake, replace(intake, todos=intake.todos + (follow,)))

        if self.wip_limit and to_role is Role.DOING:
            pending = find_role_lane(board, Role.PENDING)
            if pending is not None:
                displaced = displace_for_wip(new_dst, pending, task_id, now)
                if displaced is not None:
                    board = _swap(_swap(board, new_dst, displaced[0]), pending, displaced[1])

        self._commit(board)
        logger.debug("Moved %r: %s -> %s", task.text, src.name, dst.name)
        return True

    # -------------------- lane operations --------------------
    def move_lane(self, lane_id: str, to_index: int) -> bool:
        lanes = list(self.state.lanes)
        index = next((i for i, l in enumerate(lanes) if l.id == lane_id), -1)
        if index < 0:
            return False
        lanes = _array_move(lanes, index, to_index)
        self._commit(replace(self.state, lanes=_renumber_lanes(lanes)))
        return True

    def _check_id_free(self, new_id: str, ignore: Optional[Lane] = None) -> None:
        for lane in self.state.lanes:
            if lane is not ignore and lane.id == new_id:
                raise LaneNameError(f'A lane with id "{new_id}" already exists.')

    def add_lane(self, name: str, after_lane_id: Optional[str] = None) -> Optional[Lane]:
        """Insert a custom lane after `after_lane_id` (at the end when None)."""
        name = check_new_name(name)
        new_id = lane_id_for(name)
        self._check_id_free(new_id)
        lanes = list(self.state.lanes)
        if after_lane_id is None:
            position = len(lanes)
        else:
            index = next((i for i, l in enumerate(lanes) if l.id == after_lane_id), -1)
            if index < 0:
                return None
            position = index + 1
        lane = Lane(id=new_id, name=name, is_restricted=False, order=position)
        lanes.insert(position, lane)
        self._commit(replace(self.state, lanes=_renumber_lanes(lanes)))
        return lane

    def rename_lane(self, lane_id: str, new_name: str) -> Optional[str]:
        """Rename a custom lane; returns the lane's new id."""
        lane = self.state.lane(lane_id)
        if lane is None:
            return None
        if lane.is_restricted or is_reserved(lane.name):
            raise LaneNameError(f'Lane "{lane.name}" cannot be renamed.')
        name = check_new_name(new_name)
        new_id = lane_id_for(name)
        self._check_id_free(new_id, ignore=lane)
        renamed = replace(
            lane,
            id=new_id,
            name=name,
            todos=tuple(replace(t, lane_id=new_id) for t in lane.todos),
        )
        board = _swap(self.state, lane, renamed)
        self._commit(replace(board, lanes=_renumber_lanes(board.lanes)))
        return new_id

    def delete_lane(self, lane_id: str) -> bool:
        """Delete a custom lane together with any tasks it holds."""
        lane = self.state.lane(lane_id)
        if lane is None:
            return False
        if lane.is_restricted or is_reserved(lane.name):
            raise LaneNameError(f'Lane "{lane.name}" cannot be deleted.')
        lanes = [l for l in self.state.lanes if l is not lane]
        self._commit(replace(self.state, lanes=_renumber_lanes(lanes)))
        return True

    # -------------------- archive --------------------
    def archive_done(self, write: Optional[Callable[[ArchiveExport], None]] = None) -> Optional[ArchiveExport]:
        """Empty the Done lane and return its tasks as an archive export.

        `write` receives the export before the lane is emptied; if it
        raises, the board is left as it was.
        """
        done = find_role_lane(self.state, Role.DONE)
        if done is None or not done.todos:
            return None
        export = build_archive(done.todos, self._clock())
        if write is not None:
            write(export)
        self._commit(_swap(self.state, done, replace(done, todos=())))
        logger.info("Archived %d task(s) into %s", len(done.todos), export.filename)
        return export

    def __str__(self) -> str:
        return ', '.join(f'{lane.name}: {len(lane.todos)} tasks' for lane in self.state.lanes)
