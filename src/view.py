"""Terminal rendering: one column per lane, tasks numbered board-wide.

The display numbers are what the CLI commands take as task references.
"""
from datetime import datetime
from typing import List, Mapping, Tuple
import re, shutil

from board import KanbanBoard
from lanes import lane_role
from models import Lane, Task
from theme import color, HEADER_COLOR, ROLE_COLOR, ID_COLOR, EMPTY_COLOR, META_COLOR, BOLD
from workflow import minutes_in_doing

MIN_COL_WIDTH = 14
SEP = " | "
ANSI_RE = re.compile(r"\x1b\[[0-9;]*m")


def _day(stamp: str) -> str:
    return f"{stamp[0:4]}-{stamp[4:6]}-{stamp[6:8]}"


def _duration(minutes: int) -> str:
    hours, mins = divmod(minutes, 60)
    return f"{hours}h{mins:02d}m" if hours else f"{mins}m"


def task_suffix(task: Task, now: datetime) -> str:
    """Compact metadata shown after the task text."""
    parts: List[str] = []
    if task.deadline_date:
        due = _day(task.deadline_date)
        if task.deadline_time:
            due += f" {task.deadline_time}"
        parts.append(f"due {due}")
    if task.history:
        parts.append(f"⏱ {_duration(minutes_in_doing(task, now))}")
    if task.completed_at:
        parts.append(f"✓ {_day(task.completed_at)}")
    if task.rejected_at:
        parts.append(f"✗ {_day(task.rejected_at)}")
    parts.extend(f"#{tag}" for tag in task.tags)
    if task.type:
        parts.append(f"${task.type}")
    if task.note:
        parts.append("✎")
    return f" ({', '.join(parts)})" if parts else ''


class BoardView:
    def __init__(self, board: KanbanBoard):
        self.board = board

    def display(self) -> None:
        lanes = list(self.board.state.lanes)
        if not lanes:
            print(color('(no lanes)', EMPTY_COLOR))
            return
        numbers = {task.id: n for n, _, task in self.board.numbered_tasks()}
        now = datetime.now()
        term_width = shutil.get_terminal_size((120, 30)).columns
        widths = self._compute_column_widths(lanes, numbers, now, term_width)
        wrapped = [self._wrap_lane(lane, numbers, now, widths[i]) for i, lane in enumerate(lanes)]
        self._render(lanes, widths, wrapped)

    # ---- width calculation ----
    def _compute_column_widths(self, lanes: List[Lane], numbers: Mapping[str, int],
                               now: datetime, term_width: int) -> List[int]:
        sep_total = len(SEP) * (len(lanes) - 1)
        widths: List[int] = []
        for lane in lanes:
            longest = len(self._header(lane))
            for t in lane.todos:
                candidate = len(f"{numbers[t.id]}. ") + len(t.text) + len(task_suffix(t, now))
                longest = max(longest, candidate)
            widths.append(max(MIN_COL_WIDTH, longest))
        total = sum(widths) + sep_total
        if total > term_width:
            target_space = max(term_width - sep_total, len(lanes) * MIN_COL_WIDTH)
            while sum(widths) > target_space:
                widest = max(range(len(widths)), key=lambda i: widths[i])
                if widths[widest] <= MIN_COL_WIDTH:
                    break
                widths[widest] -= 1
        else:
            extra = term_width - total
            i = 0
            while extra > 0:
                widths[i % len(widths)] += 1
                extra -= 1
                i += 1
        return widths

    @staticmethod
    def _header(lane: Lane) -> str:
        return f"{lane.name.upper()} ({len(lane.todos)})"

    # ---- wrapping ----
    def _wrap_lane(self, lane: Lane, numbers: Mapping[str, int], now: datetime, width: int) -> List[str]:
        if not lane.todos:
            return [color('(empty)', EMPTY_COLOR)]
        role_col = ROLE_COLOR[lane_role(lane)]
        acc: List[str] = []
        for t in lane.todos:
            acc.extend(self._wrap_task(t, numbers[t.id], role_col, task_suffix(t, now), width))
        return acc

    @staticmethod
    def _wrap_words(words: List[str], limit: int) -> List[str]:
        lines: List[str] = []
        current = ''
        for w in words:
            candidate = w if not current else current + ' ' + w
            if len(candidate) <= limit:
                current = candidate
            else:
                if current:
                    lines.append(current)
                current = w
        if current:
            lines.append(current)
        return lines

    def _wrap_task(self, task: Task, number: int, role_col: str, suffix: str, col_width: int) -> List[str]:
        prefix_visible = f"{number}. "
        prefix_colored = color(f"{number}.", ID_COLOR, BOLD) + ' '
        limit = max(1, col_width - len(prefix_visible))
        # (text, style, trailing metadata)
        lines: List[Tuple[str, str, str]] = [
            (line, role_col, '') for line in self._wrap_words((task.text or '<untitled>').split(), limit)
        ] or [('', role_col, '')]
        if suffix:
            last, style, _ = lines[-1]
            if len(last) + len(suffix) <= limit:
                lines[-1] = (last, style, suffix)
            else:
                lines.extend((extra, META_COLOR, '') for extra in self._wrap_words(suffix.split(), limit))
        out: List[str] = []
        for idx, (text, style, tail) in enumerate(lines):
            lead = prefix_colored if idx == 0 else ' ' * len(prefix_visible)
            out.append(lead + color(text, style) + (color(tail, META_COLOR) if tail else ''))
        return out

    # ---- rendering ----
    def _render(self, lanes: List[Lane], widths: List[int], wrapped: List[List[str]]) -> None:
        rows = max(len(col) for col in wrapped)
        header_cells = [
            self._pad(color(self._header(lane), HEADER_COLOR, BOLD), widths[i])
            for i, lane in enumerate(lanes)
        ]
        print(SEP.join(header_cells))
        print(SEP.join(color('-' * w, HEADER_COLOR) for w in widths))
        for r in range(rows):
            row_cells: List[str] = []
            for i, col_lines in enumerate(wrapped):
                if r < len(col_lines):
                    row_cells.append(self._pad(col_lines[r], widths[i]))
                else:
                    row_cells.append(' ' * widths[i])
            print(SEP.join(row_cells))

    @classmethod
    def _pad(cls, s: str, width: int) -> str:
        pad = width - cls._visible_len(s)
        return s + ' ' * pad if pad > 0 else s

    @staticmethod
    def _visible_len(s: str) -> int:
        return len(ANSI_RE.sub('', s))
