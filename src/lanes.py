"""Lane role table.

The single place that maps lane names to behaviour. Nothing else in the
code base compares a lane name against "Doing", "Done" and so on.
"""
from __future__ import annotations
from enum import Enum
from typing import Dict, Optional, TYPE_CHECKING
import re

if TYPE_CHECKING:  # pragma: no cover
    from models import Board, Lane


class Role(Enum):
    """Behavioural category of a lane, independent of its display name."""
    CUSTOM = "custom"
    DOING = "doing"
    PENDING = "pending"
    DONE = "done"
    REJECT = "reject"
    ARCHIVE = "archive"


ROLE_BY_NAME: Dict[str, Role] = {
    "Doing": Role.DOING,
    "Pending": Role.PENDING,
    "Done": Role.DONE,
    "Reject": Role.REJECT,
    "Archive": Role.ARCHIVE,
}
RESERVED_NAMES = frozenset(ROLE_BY_NAME)

_WS_RE = re.compile(r"\s+")


class LaneNameError(ValueError):
    """A lane add/rename/delete violates the naming rules."""


def role_of(name: str) -> Role:
    """Role for a lane name; matching is exact and case-sensitive."""
    return ROLE_BY_NAME.get(name, Role.CUSTOM)


def is_reserved(name: str) -> bool:
    return name in RESERVED_NAMES


def lane_id_for(name: str) -> str:
    """Lowercase the name and collapse whitespace runs into single hyphens."""
    return _WS_RE.sub("-", name.strip().lower())


def lane_role(lane: "Lane") -> Role:
    return role_of(lane.name)


def find_role_lane(board: "Board", role: Role) -> Optional["Lane"]:
    """First lane carrying a reserved role, or None."""
    for lane in board.lanes:
        if role_of(lane.name) is role:
            return lane
    return None


def intake_lane(board: "Board", preferred: str = "Todo") -> Optional["Lane"]:
    """Lane that receives follow-up tasks.

    The lane named `preferred` when it exists and is not reserved,
    otherwise the first custom lane.
    """
    lane = board.lane_named(preferred)
    if lane is not None and role_of(lane.name) is Role.CUSTOM:
        return lane
    for lane in board.lanes:
        if role_of(lane.name) is Role.CUSTOM:
            return lane
    return None


def check_new_name(name: str) -> str:
    """Validate a name for a new or renamed custom lane; returns it trimmed."""
    cleaned = name.strip()
    if not cleaned:
        raise LaneNameError("Lane name required.")
    if is_reserved(cleaned):
        raise LaneNameError(f'"{cleaned}" is a reserved lane name.')
    return cleaned
