"""
exam_platform/services/access_policy.py
Decides whether a student may enter or continue an exam right now.

BUSINESS RULES (all must hold, otherwise access is refused):
1. Student is a current member of the exam's batch
2. Exam is published
3. now lies within [start_time, end_time], both bounds inclusive
"""
import logging
from datetime import datetime

from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from exam_platform.orm.exam import Exam, ExamStatus
from exam_platform.orm.exam_attempt import ExamAttempt
from exam_platform.exceptions import AccessDenied, InvariantViolation
from exam_platform.services.batch_service import is_member

logger = logging.getLogger(__name__)


def is_within_window(exam: Exam, now: datetime) -> bool:
    return exam.start_time <= now <= exam.end_time


async def denial_reason(db: AsyncSession, exam: Exam, student_id: int, now: datetime):
    """Return why the student may not enter, or None when access is allowed."""
    if not await is_member(db, exam.batch_id, student_id):
        return "not_a_batch_member"
    if exam.status != ExamStatus.PUBLISHED:
        return "exam_not_published"
    if not is_within_window(exam, now):
        return "outside_exam_window"
    return None


async def can_enter(db: AsyncSession, exam: Exam, student_id: int, now: datetime) -> bool:
    return await denial_reason(db, exam, student_id, now) is None


async def ensure_can_enter(db: AsyncSession, exam: Exam, student_id: int, now: datetime) -> None:
    """Raise AccessDenied unless can_enter holds."""
    reason = await denial_reason(db, exam, student_id, now)
    if reason is not None:
        logger.warning(f"Access denied: exam={exam.id} student={student_id} reason={reason}")
        raise AccessDenied(details={"reason": reason})


async def has_attempt(db: AsyncSession, exam_id: int, student_id: int) -> bool:
    """
    Existence check for the (exam, student) pair. Side-effect free.

    More than one row means the uniqueness constraint was bypassed, which
    is reported as an invariant violation rather than silently accepted.
    """
    result = await db.execute(
        select(func.count(ExamAttempt.id)).where(
            and_(
                ExamAttempt.exam_id == exam_id,
                ExamAttempt.student_id == student_id
            )
        )
    )
    count = result.scalar_one()
    if count > 1:
        raise InvariantViolation(
            "More than one attempt found for a single exam and student",
            {"exam_id": exam_id, "student_id": student_id, "count": count}
        )
    return count == 1
