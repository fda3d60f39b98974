"""
exam_platform/services/results_service.py
Read-only aggregations over closed attempts.

Only submitted / auto_submitted attempts are counted. Nothing here writes.
Pass rate uses the exam's total marks (a property of the exam, shared by
every attempt being summarized) and the configured threshold.
"""
import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from exam_platform.orm.batch import batch_students
from exam_platform.orm.exam import Exam
from exam_platform.orm.exam_attempt import ExamAttempt, CLOSED_STATUSES
from exam_platform.exceptions import NotFound
from exam_platform.services.grading_engine import GradingConfig, is_passing, TWO_PLACES

logger = logging.getLogger(__name__)

RECENT_ATTEMPTS_LIMIT = 5


def _as_float(value: Optional[Decimal]) -> Optional[float]:
    return float(value) if value is not None else None


def _score_stats(attempts: List[ExamAttempt]) -> Dict[str, Optional[float]]:
    scores = [Decimal(a.score) if a.score is not None else Decimal("0") for a in attempts]
    if not scores:
        return {"average_score": None, "highest_score": None, "lowest_score": None}
    average = (sum(scores) / len(scores)).quantize(TWO_PLACES)
    return {
        "average_score": _as_float(average),
        "highest_score": _as_float(max(scores)),
        "lowest_score": _as_float(min(scores)),
    }


def pass_rate(attempts: List[ExamAttempt], total_marks: int, config: GradingConfig) -> float:
    """Percentage of attempts scoring at least the pass mark."""
    if not attempts:
        return 0.0
    passed = sum(1 for a in attempts if is_passing(a.score, total_marks, config))
    return round(passed / len(attempts) * 100, 2)


async def _closed_attempts_for_exam(db: AsyncSession, exam_id: int) -> List[ExamAttempt]:
    result = await db.execute(
        select(ExamAttempt)
        .where(
            and_(
                ExamAttempt.exam_id == exam_id,
                ExamAttempt.status.in_(CLOSED_STATUSES)
            )
        )
        .order_by(ExamAttempt.submitted_at)
    )
    return list(result.unique().scalars().all())


async def exam_result_summary(db: AsyncSession, exam_id: int, config: GradingConfig) -> Dict[str, Any]:
    """Summary of every closed attempt at one exam."""
    result = await db.execute(select(Exam).where(Exam.id == exam_id))
    exam = result.unique().scalar_one_or_none()
    if exam is None:
        raise NotFound("Exam", exam_id)

    attempts = await _closed_attempts_for_exam(db, exam_id)
    total_marks = exam.total_marks

    students_result = await db.execute(
        select(func.count()).select_from(batch_students).where(batch_students.c.batch_id == exam.batch_id)
    )

    return {
        "exam_id": exam.id,
        "total_marks": total_marks,
        "total_students": students_result.scalar_one(),
        "total_attempts": len(attempts),
        **_score_stats(attempts),
        "pass_rate": pass_rate(attempts, total_marks, config),
        "attempts": [a.to_dict() for a in attempts],
    }


async def student_performance(
    db: AsyncSession,
    student_id: int,
    organization_id: Optional[int] = None
) -> Dict[str, Any]:
    """Closed attempts of one student, optionally limited to one organization."""
    stmt = (
        select(ExamAttempt)
        .join(Exam, Exam.id == ExamAttempt.exam_id)
        .where(
            and_(
                ExamAttempt.student_id == student_id,
                ExamAttempt.status.in_(CLOSED_STATUSES)
            )
        )
    )
    if organization_id is not None:
        stmt = stmt.where(Exam.organization_id == organization_id)

    result = await db.execute(stmt)
    attempts = list(result.unique().scalars().all())

    recent = sorted(attempts, key=lambda a: (a.submitted_at, a.id), reverse=True)[:RECENT_ATTEMPTS_LIMIT]

    return {
        "student_id": student_id,
        "total_exams": len(attempts),
        **_score_stats(attempts),
        "recent_attempts": [
            {**a.to_dict(), "exam_title": a.exam.title, "total_marks": a.exam.total_marks}
            for a in recent
        ],
    }


async def student_exam_result(db: AsyncSession, exam_id: int, student_id: int) -> Dict[str, Any]:
    """A student's own closed attempt at one exam, with per-answer marks."""
    result = await db.execute(
        select(ExamAttempt).where(
            and_(
                ExamAttempt.exam_id == exam_id,
                ExamAttempt.student_id == student_id,
                ExamAttempt.status.in_(CLOSED_STATUSES)
            )
        )
    )
    attempt = result.unique().scalar_one_or_none()
    if attempt is None:
        raise NotFound("Submitted attempt for exam", exam_id)

    total_marks = attempt.exam.total_marks
    score = Decimal(attempt.score) if attempt.score is not None else Decimal("0")
    percentage = round(float(score) / total_marks * 100, 2) if total_marks else 0.0

    return {
        "attempt": attempt.to_dict(),
        "answers": [a.to_dict() for a in attempt.answers],
        "score": float(score),
        "total_marks": total_marks,
        "percentage": percentage,
        "status": attempt.status.value,
        "submitted_at": attempt.submitted_at.isoformat() if attempt.submitted_at else None,
    }
