"""
Exam Attempt State Machine

State Flow: in_progress → submitted | auto_submitted

Both closing states are terminal. This table is the single authority for
which transitions exist; services never compare status strings ad hoc.
The persisted transition itself is a compare-and-swap performed by
services/attempt_service.py.
"""
from datetime import datetime
from typing import Dict, FrozenSet

from exam_platform.orm.exam_attempt import AttemptStatus


class AttemptStateMachine:
    """Transition rules for an exam attempt."""

    TRANSITIONS: Dict[AttemptStatus, FrozenSet[AttemptStatus]] = {
        AttemptStatus.IN_PROGRESS: frozenset({AttemptStatus.SUBMITTED, AttemptStatus.AUTO_SUBMITTED}),
        AttemptStatus.SUBMITTED: frozenset(),
        AttemptStatus.AUTO_SUBMITTED: frozenset(),
    }

    @classmethod
    def can_transition(cls, current: AttemptStatus, new: AttemptStatus) -> bool:
        return new in cls.TRANSITIONS.get(current, frozenset())

    @classmethod
    def is_terminal(cls, state: AttemptStatus) -> bool:
        return not cls.TRANSITIONS.get(state)

    @classmethod
    def accepts_answers(cls, state: AttemptStatus) -> bool:
        return not cls.is_terminal(state)


def minutes_elapsed(started_at: datetime, now: datetime) -> int:
    """Whole minutes between started_at and now, floored, never negative."""
    seconds = (now - started_at).total_seconds()
    if seconds <= 0:
        return 0
    return int(seconds // 60)


def remaining_minutes(attempt, duration_minutes: int, now: datetime) -> int:
    """
    Minutes left on an attempt's budget.

    Pure: recomputed on every read, nothing ticks in the background.
    Returns 0 for closed attempts.
    """
    if AttemptStateMachine.is_terminal(attempt.status):
        return 0
    return max(0, duration_minutes - minutes_elapsed(attempt.started_at, now))
