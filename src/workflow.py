"""Task lifecycle rules: transition validation, Doing history, WIP limit
and follow-up spawning.

All functions are pure: they take snapshots and return new ones.
Lanes are referred to by Role (see lanes.py), never by display name.

Pipeline enforced by can_move:

    custom lanes -> Doing -> Pending <-> Doing
                          -> Done / Reject -> Archive
"""
from __future__ import annotations
from dataclasses import replace
from datetime import datetime
from typing import Optional, Tuple
import logging

from lanes import Role
from models import Interval, Lane, Task, new_id, renumber

logger = logging.getLogger(__name__)

STAMP_FORMAT = "%Y%m%d%H%M"
FOLLOW_UP_TAG = "follow"
FOLLOW_UP_TRIGGERS = frozenset({"ask", "request"})

_TERMINAL = (Role.DONE, Role.REJECT)
_FROM_PENDING = (Role.DOING, Role.REJECT)
_AFTER_DOING = (Role.PENDING, Role.DONE, Role.REJECT)


def timestamp(moment: Optional[datetime] = None) -> str:
    """12-digit local YYYYMMDDHHMM stamp."""
    return (moment or datetime.now()).strftime(STAMP_FORMAT)


def parse_timestamp(stamp: str) -> Optional[datetime]:
    try:
        return datetime.strptime(stamp, STAMP_FORMAT)
    except (TypeError, ValueError):
        return None


# -------------------- transition validator --------------------
def has_been_in_doing(task: Task, from_role: Role) -> bool:
    return bool(task.history) or from_role is Role.DOING


def can_move(task: Task, from_role: Role, to_role: Role) -> bool:
    """Whether a task may move between lanes of the given roles.

    Rules are checked top to bottom; the first that applies decides.
    """
    if from_role in _TERMINAL:
        return to_role is Role.ARCHIVE
    if from_role is Role.PENDING:
        return to_role in _FROM_PENDING
    if has_been_in_doing(task, from_role):
        return to_role in _AFTER_DOING
    if to_role is Role.PENDING:
        return from_role is Role.DOING
    return True


# -------------------- history tracker --------------------
def open_interval(history: Tuple[Interval, ...], now: str) -> Tuple[Interval, ...]:
    """Append an open interval; a dangling open one is closed first."""
    history = close_interval(history, now)
    return history + (Interval(start=now),)


def close_interval(history: Tuple[Interval, ...], now: str) -> Tuple[Interval, ...]:
    """Close the last interval if it is still open."""
    if not history or not history[-1].is_open:
        return history
    return history[:-1] + (replace(history[-1], end=now),)


def apply_history(task: Task, from_role: Role, to_role: Role, now: str) -> Task:
    """Record an approved transition on the task.

    Leaving Doing for Done or Reject keeps the interval open; only
    parking a task in Pending stops the clock.
    """
    if to_role is Role.DOING and from_role is not Role.DOING:
        return replace(task, history=open_interval(task.history, now))
    if from_role is Role.DOING and to_role is Role.PENDING:
        return replace(task, history=close_interval(task.history, now))
    if to_role is Role.DONE:
        return replace(task, completed_at=now, rejected_at=None)
    if to_role is Role.REJECT:
        return replace(task, rejected_at=now, completed_at=None)
    return task


def minutes_in_doing(task: Task, now: Optional[datetime] = None) -> int:
    """Total minutes across all intervals; open ones count up to now."""
    now = now or datetime.now()
    total = 0
    for iv in task.history:
        start = parse_timestamp(iv.start) if iv.start else None
        if start is None:
            continue
        end = parse_timestamp(iv.end) if iv.end else now
        if end is None or end < start:
            continue
        total += int((end - start).total_seconds() // 60)
    return total


# -------------------- WIP limiter --------------------
def displace_for_wip(doing: Lane, pending: Lane, keep_id: str, now: str) -> Optional[Tuple[Lane, Lane]]:
    """Push the first other task out of Doing into Pending.

    Returns the updated (doing, pending) lanes, or None when the newly
    arrived task is alone in Doing.
    """
    others = [t for t in doing.todos if t.id != keep_id]
    if not others:
        return None
    victim = others[0]
    parked = replace(
        victim,
        lane_id=pending.id,
        history=close_interval(victim.history, now),
        order=len(pending.todos),
    )
    logger.info("WIP limit: moving %r from %s to %s", victim.text, doing.name, pending.name)
    new_doing = tuple(t for t in doing.todos if t.id != victim.id)
    return (
        replace(doing, todos=renumber(new_doing)),
        replace(pending, todos=pending.todos + (parked,)),
    )


# -------------------- follow-up spawner --------------------
def needs_follow_up(task: Task, to_role: Role) -> bool:
    if to_role is not Role.DONE:
        return False
    return any(tag.lower() in FOLLOW_UP_TRIGGERS for tag in task.tags)


def spawn_follow_up(original: Task, intake: Lane) -> Task:
    """Fresh task with the original text and a single 'follow' tag."""
    return Task(
        id=new_id(),
        text=original.text,
        lane_id=intake.id,
        tags=(FOLLOW_UP_TAG,),
        order=len(intake.todos),
    )
