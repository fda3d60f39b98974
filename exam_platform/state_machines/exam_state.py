"""
Exam Lifecycle State Machine

State Flow: draft → published → completed

Leaving draft locks the exam's question paper.
"""
from typing import Dict, FrozenSet

from exam_platform.orm.exam import ExamStatus


class ExamStateMachine:

    TRANSITIONS: Dict[ExamStatus, FrozenSet[ExamStatus]] = {
        ExamStatus.DRAFT: frozenset({ExamStatus.PUBLISHED}),
        ExamStatus.PUBLISHED: frozenset({ExamStatus.COMPLETED}),
        ExamStatus.COMPLETED: frozenset(),
    }

    @classmethod
    def can_transition(cls, current: ExamStatus, new: ExamStatus) -> bool:
        return new in cls.TRANSITIONS.get(current, frozenset())

    @classmethod
    def locks_paper(cls, state: ExamStatus) -> bool:
        return state != ExamStatus.DRAFT
