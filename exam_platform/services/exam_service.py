"""
exam_platform/services/exam_service.py
Exam scheduling and lifecycle (draft → published → completed).
"""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import select, update, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from exam_platform.orm.batch import Batch
from exam_platform.orm.exam import Exam, ExamStatus
from exam_platform.orm.exam_attempt import ExamAttempt
from exam_platform.state_machines.exam_state import ExamStateMachine
from exam_platform.exceptions import NotFound, InvalidState, ValidationError
from exam_platform.services.grading_engine import GradingConfig
from exam_platform.services.question_set_service import get_paper, lock_paper, question_count

logger = logging.getLogger(__name__)


async def get_exam(db: AsyncSession, exam_id: int) -> Exam:
    result = await db.execute(
        select(Exam)
        .where(Exam.id == exam_id)
        .execution_options(populate_existing=True)
    )
    exam = result.unique().scalar_one_or_none()
    if exam is None:
        raise NotFound("Exam", exam_id)
    return exam


def validate_schedule(start_time: datetime, end_time: datetime, duration_minutes: int,
                      now: Optional[datetime] = None) -> None:
    if start_time is None or end_time is None:
        raise ValidationError("start_time and end_time are required")
    if end_time <= start_time:
        raise ValidationError(
            "end_time must be after start_time",
            {"start_time": start_time.isoformat(), "end_time": end_time.isoformat()}
        )
    if isinstance(duration_minutes, bool) or not isinstance(duration_minutes, int) or duration_minutes < 1:
        raise ValidationError("duration_minutes must be at least 1", {"duration_minutes": duration_minutes})
    if now is not None and start_time <= now:
        raise ValidationError("start_time must be in the future", {"start_time": start_time.isoformat()})


async def create_exam(
    db: AsyncSession,
    organization_id: int,
    batch_id: int,
    paper_id: int,
    title: str,
    start_time: datetime,
    end_time: datetime,
    duration_minutes: int,
    now: Optional[datetime] = None
) -> Exam:
    """Schedule a new exam in draft status. Pass ``now`` to reject past start times."""
    if not title or not title.strip():
        raise ValidationError("Title is required")
    validate_schedule(start_time, end_time, duration_minutes, now)
    if await db.get(Batch, batch_id) is None:
        raise NotFound("Batch", batch_id)
    await get_paper(db, paper_id)

    exam = Exam(
        organization_id=organization_id,
        batch_id=batch_id,
        paper_id=paper_id,
        title=title,
        start_time=start_time,
        end_time=end_time,
        duration_minutes=duration_minutes,
        status=ExamStatus.DRAFT,
    )
    db.add(exam)
    await db.flush()
    exam_id = exam.id
    await db.commit()

    logger.info(f"Created exam {exam_id} for batch {batch_id}")
    return await get_exam(db, exam_id)


async def _set_status(db: AsyncSession, exam: Exam, new_status: ExamStatus) -> None:
    """
    Conditional status write: only matches while the row still holds the
    status this session read. Leaves the transaction open for the caller.
    """
    if not ExamStateMachine.can_transition(exam.status, new_status):
        raise InvalidState(
            f"Cannot move exam from {exam.status.value} to {new_status.value}",
            {"from": exam.status.value, "to": new_status.value}
        )
    exam_id, old_status = exam.id, exam.status
    result = await db.execute(
        update(Exam)
        .where(and_(Exam.id == exam_id, Exam.status == old_status))
        .values(status=new_status, updated_at=datetime.utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await db.rollback()
        logger.warning(f"Exam {exam_id} changed status concurrently, {new_status.value} refused")
        raise InvalidState(
            f"Exam is no longer {old_status.value}",
            {"from": old_status.value, "to": new_status.value}
        )


def _check_question_limits(count: int, config: GradingConfig) -> None:
    if count < max(1, config.min_questions):
        raise ValidationError("Cannot publish exam with no questions" if count == 0
                              else f"Exam needs at least {config.min_questions} questions",
                              {"question_count": count})
    if count > config.max_questions:
        raise ValidationError(f"Exam cannot have more than {config.max_questions} questions",
                              {"question_count": count})


async def publish_exam(db: AsyncSession, exam_id: int, config: GradingConfig) -> Exam:
    """
    Publish a draft exam. Its paper becomes locked.

    The paper row is written first, so a concurrent question edit either
    commits before the questions are counted or sees the exam published
    and is refused. Counting happens inside the same transaction as the
    status change.

    Raises:
        InvalidState: exam is not a draft
        ValidationError: paper has too few or too many questions
    """
    exam = await get_exam(db, exam_id)
    if exam.status != ExamStatus.DRAFT:
        raise InvalidState("Only draft exams can be published", {"status": exam.status.value})
    paper_id = exam.paper_id

    if not await lock_paper(db, paper_id):
        await db.rollback()
        raise NotFound("Question paper", paper_id)
    await _set_status(db, exam, ExamStatus.PUBLISHED)

    count = await question_count(db, paper_id)
    try:
        _check_question_limits(count, config)
    except ValidationError:
        await db.rollback()
        raise
    await db.commit()

    logger.info(f"Exam {exam_id}: draft → published")
    logger.info(f"Question paper {paper_id} locked by exam {exam_id}")
    return await get_exam(db, exam_id)


async def complete_exam(db: AsyncSession, exam_id: int) -> Exam:
    exam = await get_exam(db, exam_id)
    if exam.status != ExamStatus.PUBLISHED:
        raise InvalidState("Only published exams can be completed", {"status": exam.status.value})
    await _set_status(db, exam, ExamStatus.COMPLETED)
    await db.commit()
    logger.info(f"Exam {exam_id}: published → completed")
    return await get_exam(db, exam_id)


async def update_exam(
    db: AsyncSession,
    exam_id: int,
    title: str,
    start_time: datetime,
    end_time: datetime,
    duration_minutes: int,
    batch_id: Optional[int] = None,
    paper_id: Optional[int] = None,
    now: Optional[datetime] = None
) -> Exam:
    """
    Reschedule or retitle a draft exam. ``batch_id`` / ``paper_id`` are
    kept when omitted.

    Raises:
        InvalidState: exam is published or completed
        ValidationError: bad title or schedule
    """
    exam = await get_exam(db, exam_id)
    if exam.status != ExamStatus.DRAFT:
        raise InvalidState("Cannot update published or completed exams", {"status": exam.status.value})
    if not title or not title.strip():
        raise ValidationError("Title is required")
    validate_schedule(start_time, end_time, duration_minutes, now)

    values = dict(
        title=title,
        start_time=start_time,
        end_time=end_time,
        duration_minutes=duration_minutes,
        updated_at=datetime.utcnow(),
    )
    if batch_id is not None and batch_id != exam.batch_id:
        if await db.get(Batch, batch_id) is None:
            raise NotFound("Batch", batch_id)
        values["batch_id"] = batch_id
    if paper_id is not None and paper_id != exam.paper_id:
        await get_paper(db, paper_id)
        values["paper_id"] = paper_id

    result = await db.execute(
        update(Exam)
        .where(and_(Exam.id == exam_id, Exam.status == ExamStatus.DRAFT))
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await db.rollback()
        raise InvalidState("Cannot update published or completed exams")
    await db.commit()

    logger.info(f"Updated draft exam {exam_id}")
    return await get_exam(db, exam_id)


async def attempt_count(db: AsyncSession, exam_id: int) -> int:
    result = await db.execute(select(func.count(ExamAttempt.id)).where(ExamAttempt.exam_id == exam_id))
    return result.scalar_one()


async def delete_exam(db: AsyncSession, exam_id: int) -> None:
    """Delete an exam nobody has attempted."""
    exam = await get_exam(db, exam_id)
    attempts = await attempt_count(db, exam_id)
    if attempts > 0:
        raise InvalidState("Cannot delete exam with existing attempts", {"attempts": attempts})
    await db.delete(exam)
    await db.commit()
    logger.info(f"Deleted exam {exam_id}")
