"""Markdown codec: todo.md text <-> Board.

File grammar, one construct per line:

    ## <lane name>                 starts a lane
    - [ ] <payload>                task in the current lane
    <type>:<lane>:[a, b, c]        automation record

Anything else (blank lines, the "## Automations" header) carries no data.

A task payload is display text followed by optional metadata markers.
decode pulls the markers out in a fixed order because several of them
share a prefix (@ / @@, ! / !!):

    1. @YYYYMMDD                  deadline date
    2. @@HH:MM                    deadline time
    3. [(start,end),(start,)]     Doing history, 12-digit stamps, end may be empty
    4. !!YYYYMMDDHHMM             rejected at
    5. !YYYYMMDDHHMM              completed at
    6. #tag                       every token starting with '#'
    7. $type                      first match only

Each step removes its match from the remaining text before the next one
runs. Single-value markers (all but tags) are cut out everywhere and the
first occurrence is the value; afterwards the text holds no marker. A
marker that does not match its exact pattern stays in the text; decoding
never raises.
"""
from __future__ import annotations
from dataclasses import dataclass, field, replace
from typing import Callable, Iterable, List, Optional, Tuple
import logging
import re

from lanes import is_reserved, lane_id_for
from models import Automation, Board, Interval, Lane, Task

logger = logging.getLogger(__name__)

AUTOMATIONS_HEADER = "Automations"
LANE_PREFIX = "## "
TASK_PREFIX = "- [ ] "

_TASK_RE = re.compile(r"^- \[ \](?: (.*))?$")
_AUTOMATION_RE = re.compile(r"^(\S+):(\S+):\[(.*)\]$")

DEADLINE_DATE_RE = re.compile(r"@(\d{8})(?!\d)")
DEADLINE_TIME_RE = re.compile(r"@@(\d{2}:\d{2})(?!\d)")
HISTORY_RE = re.compile(r"\[((?:\((?:\d{12})?,(?:\d{12})?\),?)+)\]")
HISTORY_PAIR_RE = re.compile(r"\((\d{12})?,(\d{12})?\)")
REJECTED_RE = re.compile(r"!!(\d{12})(?!\d)")
COMPLETED_RE = re.compile(r"!(\d{12})(?!\d)")
TAG_RE = re.compile(r"(?:^|(?<=\s))#(\S+)")
TYPE_RE = re.compile(r"\$(\S+)")


# -------------------- payload extraction --------------------
@dataclass
class _Fields:
    """Mutable accumulator for one payload; turned into a Task at the end."""
    rest: str
    deadline_date: Optional[str] = None
    deadline_time: Optional[str] = None
    history: Tuple[Interval, ...] = ()
    rejected_at: Optional[str] = None
    completed_at: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    type: Optional[str] = None

    def take(self, pattern: re.Pattern[str]) -> Optional[re.Match[str]]:
        """Find the first match of pattern in the remaining text and cut it out."""
        m = pattern.search(self.rest)
        if m is not None:
            self.rest = _excise(self.rest, m.start(), m.end())
        return m

    def take_first(self, pattern: re.Pattern[str]) -> Optional[re.Match[str]]:
        """Cut out every match of pattern; only the first one carries the value."""
        first = self.take(pattern)
        if first is not None:
            while self.take(pattern) is not None:
                pass
        return first


def _excise(text: str, start: int, end: int) -> str:
    head = text[:start].rstrip()
    tail = text[end:].lstrip()
    if head and tail:
        return f"{head} {tail}"
    return head or tail


def _take_deadline_date(f: _Fields) -> None:
    m = f.take_first(DEADLINE_DATE_RE)
    if m:
        f.deadline_date = m.group(1)


def _take_deadline_time(f: _Fields) -> None:
    m = f.take_first(DEADLINE_TIME_RE)
    if m:
        f.deadline_time = m.group(1)


def _take_history(f: _Fields) -> None:
    m = f.take_first(HISTORY_RE)
    if m:
        f.history = tuple(
            Interval(start=start or None, end=end or None)
            for start, end in HISTORY_PAIR_RE.findall(m.group(1))
        )


def _take_rejected(f: _Fields) -> None:
    m = f.take_first(REJECTED_RE)
    if m:
        f.rejected_at = m.group(1)


def _take_completed(f: _Fields) -> None:
    m = f.take_first(COMPLETED_RE)
    if m:
        f.completed_at = m.group(1)


def _take_tags(f: _Fields) -> None:
    while True:
        m = f.take(TAG_RE)
        if m is None:
            return
        f.tags.append(m.group(1))


def _take_type(f: _Fields) -> None:
    m = f.take_first(TYPE_RE)
    if m:
        f.type = m.group(1)


EXTRACTION_PIPELINE: Tuple[Callable[[_Fields], None], ...] = (
    _take_deadline_date,
    _take_deadline_time,
    _take_history,
    _take_rejected,
    _take_completed,
    _take_tags,
    _take_type,
)


def parse_payload(payload: str, lane_id: str = "", order: int = 0) -> Task:
    """Build a Task from a raw payload (the text after '- [ ] ')."""
    f = _Fields(rest=payload.strip())
    for step in EXTRACTION_PIPELINE:
        step(f)
    return Task(
        text=f.rest.strip(),
        lane_id=lane_id,
        tags=tuple(f.tags),
        type=f.type,
        deadline_date=f.deadline_date,
        deadline_time=f.deadline_time,
        history=f.history,
        completed_at=f.completed_at,
        rejected_at=f.rejected_at,
        order=order,
    )


def encode_payload(task: Task) -> str:
    """Inverse of parse_payload, in the fixed marker order."""
    parts: List[str] = []
    if task.text:
        parts.append(task.text)
    if task.deadline_date:
        parts.append(f"@{task.deadline_date}")
    if task.deadline_time:
        parts.append(f"@@{task.deadline_time}")
    if task.history:
        pairs = ",".join(f"({iv.start or ''},{iv.end or ''})" for iv in task.history)
        parts.append(f"[{pairs}]")
    if task.completed_at:
        parts.append(f"!{task.completed_at}")
    if task.rejected_at:
        parts.append(f"!!{task.rejected_at}")
    parts.extend(f"#{tag}" for tag in task.tags)
    if task.type:
        parts.append(f"${task.type}")
    return " ".join(parts)


# -------------------- automations --------------------
def parse_automation(line: str) -> Optional[Automation]:
    m = _AUTOMATION_RE.match(line.strip())
    if not m:
        return None
    kind, lane_name, csv = m.groups()
    texts = tuple(t.strip() for t in csv.split(",") if t.strip())
    return Automation(type=kind, lane_name=lane_name, todo_texts=texts)


def parse_automations(text: str) -> Tuple[Automation, ...]:
    """Automation records of a companion file; other lines are ignored."""
    found = (parse_automation(line) for line in text.splitlines())
    return tuple(a for a in found if a is not None)


def encode_automation(automation: Automation) -> str:
    return f"{automation.type}:{automation.lane_name}:[{', '.join(automation.todo_texts)}]"


def merge_automations(board: Board, extra: Iterable[Automation]) -> Board:
    """Append automations not already present on the board."""
    merged = list(board.automations)
    for automation in extra:
        if automation not in merged:
            merged.append(automation)
    return replace(board, automations=tuple(merged))


# -------------------- whole file --------------------
def decode(text: str) -> Board:
    """Parse todo.md text into a Board. Never raises on malformed content."""
    lanes: List[Lane] = []
    automations: List[Automation] = []
    current: Optional[Lane] = None
    tasks: List[Task] = []

    def close_lane() -> None:
        if current is not None:
            lanes.append(replace(current, todos=tuple(tasks)))

    for raw in text.splitlines():
        line = raw.strip()
        if line.startswith(LANE_PREFIX):
            close_lane()
            tasks = []
            name = line[len(LANE_PREFIX):].strip()
            if name == AUTOMATIONS_HEADER:
                current = None
                continue
            current = Lane(
                id=lane_id_for(name),
                name=name,
                is_restricted=is_reserved(name),
                order=len(lanes),
            )
            continue
        m = _TASK_RE.match(line)
        if m:
            if current is None:
                logger.debug("Task line outside any lane ignored: %r", line)
                continue
            tasks.append(parse_payload(m.group(1) or "", current.id, len(tasks)))
            continue
        automation = parse_automation(line)
        if automation is not None:
            automations.append(automation)
    close_lane()
    return Board(lanes=tuple(lanes), automations=tuple(automations))


def encode(board: Board) -> str:
    """Render a Board as todo.md text."""
    out: List[str] = []
    for lane in sorted(board.lanes, key=lambda l: l.order):
        out.append(f"{LANE_PREFIX}{lane.name}\n")
        for task in lane.todos:
            out.append(f"{TASK_PREFIX}{encode_payload(task)}".rstrip() + "\n")
        out.append("\n")
    if board.automations:
        out.append(f"{LANE_PREFIX}{AUTOMATIONS_HEADER}\n")
        for automation in board.automations:
            out.append(encode_automation(automation) + "\n")
    return "".join(out)
