"""
exam_platform/services/student_exam_service.py
What the student-facing API calls: listing, viewing and taking exams.

Each function returns plain dicts ready for JSON; remaining_minutes is
always computed from the injected ``now``.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from exam_platform.orm.batch import batch_students
from exam_platform.orm.exam import Exam, ExamStatus
from exam_platform.exceptions import NotFound
from exam_platform.services import attempt_service
from exam_platform.services.access_policy import can_enter, ensure_can_enter, has_attempt
from exam_platform.services.answer_register import save_answer
from exam_platform.services.exam_service import get_exam

logger = logging.getLogger(__name__)


async def list_accessible_exams(db: AsyncSession, student_id: int, now: datetime) -> List[Dict[str, Any]]:
    """Published exams of every batch the student belongs to."""
    batch_ids = select(batch_students.c.batch_id).where(batch_students.c.student_id == student_id)
    result = await db.execute(
        select(Exam)
        .where(
            Exam.batch_id.in_(batch_ids),
            Exam.status == ExamStatus.PUBLISHED
        )
        .order_by(Exam.start_time)
    )
    exams = result.unique().scalars().all()

    listing = []
    for exam in exams:
        listing.append({
            "exam": exam.to_dict(),
            "is_accessible": await can_enter(db, exam, student_id, now),
            "has_attempted": await has_attempt(db, exam.id, student_id),
        })
    return listing


async def view_exam_for_attempt(db: AsyncSession, exam_id: int, student_id: int, now: datetime) -> Dict[str, Any]:
    """The exam with its questions, correct options hidden."""
    exam = await get_exam(db, exam_id)
    await ensure_can_enter(db, exam, student_id, now)
    return {
        "exam": exam.to_dict(),
        "paper": exam.paper.to_dict(include_correct=False),
    }


async def start(db: AsyncSession, exam_id: int, student_id: int, now: datetime) -> Dict[str, Any]:
    exam = await get_exam(db, exam_id)
    attempt = await attempt_service.start_attempt(db, exam, student_id, now)
    return {
        "attempt": attempt.to_dict(now),
        "remaining_minutes": attempt_service.remaining_minutes(attempt, now),
    }


async def _own_attempt(db: AsyncSession, exam_id: int, student_id: int):
    attempt = await attempt_service.find_attempt(db, exam_id, student_id)
    if attempt is None:
        raise NotFound("Attempt for exam", exam_id)
    return attempt


async def save(
    db: AsyncSession,
    exam_id: int,
    student_id: int,
    question_id: int,
    payload: Dict[str, Any],
    now: datetime
) -> Dict[str, Any]:
    attempt = await _own_attempt(db, exam_id, student_id)
    answer = await save_answer(db, attempt.id, question_id, payload, now)
    attempt = await attempt_service.get_attempt(db, attempt.id)
    return {
        "answer": answer.to_dict(),
        "remaining_minutes": attempt_service.remaining_minutes(attempt, now),
    }


async def submit(db: AsyncSession, exam_id: int, student_id: int, now: datetime) -> Dict[str, Any]:
    attempt = await _own_attempt(db, exam_id, student_id)
    attempt = await attempt_service.submit_attempt(db, attempt.id, now)
    return {
        "attempt": attempt.to_dict(now),
        "score": float(attempt.score) if attempt.score is not None else 0.0,
    }


async def attempt_state(db: AsyncSession, attempt_id: int, student_id: int, now: datetime) -> Dict[str, Any]:
    """Current state of the student's attempt; expires it first if time ran out."""
    await attempt_service.get_attempt_for_student(db, attempt_id, student_id)
    attempt = await attempt_service.refresh_attempt(db, attempt_id, now)
    return {
        "attempt": attempt.to_dict(now),
        "remaining_minutes": attempt_service.remaining_minutes(attempt, now),
        "answers": [a.to_dict() for a in attempt.answers],
    }
