"""
exam_platform/services/attempt_service.py
Exam attempt lifecycle: start → in_progress → submitted | auto_submitted

KEY FEATURES:
- One attempt per (exam, student), enforced by the unique constraint
- Remaining time derived from started_at + duration on every read
- Lazy expiry: an expired attempt is auto-submitted at its next interaction
- Closing is a compare-and-swap on status, graded in the same transaction

CONCURRENCY:
- Two concurrent starts: both may pass has_attempt, only one INSERT wins;
  the loser's IntegrityError is reported as DuplicateAttempt once the
  winning row is visible. An exam deleted meanwhile is reported as NotFound
- Submit racing AutoSubmit: only one conditional UPDATE matches; the
  losing submit raises AlreadyClosed, the losing auto-submit is a no-op
"""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import select, update, and_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from exam_platform.orm.exam import Exam
from exam_platform.orm.exam_attempt import ExamAttempt, AttemptStatus
from exam_platform.state_machines.attempt_state import AttemptStateMachine, remaining_minutes as _remaining
from exam_platform.exceptions import AlreadyClosed, DuplicateAttempt, NotFound
from exam_platform.services.access_policy import ensure_can_enter, has_attempt
from exam_platform.services.grading_engine import grade_attempt

logger = logging.getLogger(__name__)


# =============================================================================
# Loading
# =============================================================================

async def _load_attempt(db: AsyncSession, attempt_id: int) -> Optional[ExamAttempt]:
    result = await db.execute(
        select(ExamAttempt)
        .where(ExamAttempt.id == attempt_id)
        .execution_options(populate_existing=True)
    )
    return result.unique().scalar_one_or_none()


async def get_attempt(db: AsyncSession, attempt_id: int) -> ExamAttempt:
    attempt = await _load_attempt(db, attempt_id)
    if attempt is None:
        raise NotFound("Attempt", attempt_id)
    return attempt


async def get_attempt_for_student(db: AsyncSession, attempt_id: int, student_id: int) -> ExamAttempt:
    """Load an attempt owned by the student; other students' attempts look absent."""
    attempt = await _load_attempt(db, attempt_id)
    if attempt is None or attempt.student_id != student_id:
        raise NotFound("Attempt", attempt_id)
    return attempt


async def find_attempt(db: AsyncSession, exam_id: int, student_id: int) -> Optional[ExamAttempt]:
    result = await db.execute(
        select(ExamAttempt)
        .where(
            and_(
                ExamAttempt.exam_id == exam_id,
                ExamAttempt.student_id == student_id
            )
        )
        .execution_options(populate_existing=True)
    )
    return result.unique().scalar_one_or_none()


def remaining_minutes(attempt: ExamAttempt, now: datetime) -> int:
    """0 for closed attempts, otherwise what is left of the exam's duration."""
    return _remaining(attempt, attempt.exam.duration_minutes, now)


# =============================================================================
# Start
# =============================================================================

async def _exam_exists(db: AsyncSession, exam_id: int) -> bool:
    result = await db.execute(select(Exam.id).where(Exam.id == exam_id))
    return result.scalar_one_or_none() is not None


async def start_attempt(
    db: AsyncSession,
    exam: Exam,
    student_id: int,
    now: datetime
) -> ExamAttempt:
    """
    Start the student's single attempt at an exam.

    Raises:
        AccessDenied: access policy refused the student
        DuplicateAttempt: an attempt already exists (or won a concurrent race)
        NotFound: the exam was deleted before the attempt could be stored
    """
    exam_id = exam.id
    await ensure_can_enter(db, exam, student_id, now)

    if await has_attempt(db, exam_id, student_id):
        logger.warning(f"Duplicate start rejected: exam={exam_id} student={student_id}")
        raise DuplicateAttempt()

    attempt = ExamAttempt(
        exam_id=exam_id,
        student_id=student_id,
        started_at=now,
        status=AttemptStatus.IN_PROGRESS,
    )
    db.add(attempt)

    try:
        await db.flush()
        attempt_id = attempt.id
        await db.commit()
    except IntegrityError:
        await db.rollback()
        if await has_attempt(db, exam_id, student_id):
            logger.warning(f"Concurrent duplicate start lost the race: exam={exam_id} student={student_id}")
            raise DuplicateAttempt()
        if not await _exam_exists(db, exam_id):
            logger.warning(f"Exam {exam_id} deleted while student {student_id} was starting it")
            raise NotFound("Exam", exam_id)
        raise

    logger.info(f"Started attempt {attempt_id} for exam {exam_id}, student {student_id}")
    return await get_attempt(db, attempt_id)


# =============================================================================
# Close (submit / auto-submit)
# =============================================================================

async def _close_attempt(
    db: AsyncSession,
    attempt_id: int,
    target: AttemptStatus,
    now: datetime
) -> bool:
    """
    Move an in-progress attempt to ``target`` and grade it, atomically.

    The UPDATE only matches while status is still in_progress, so of any
    number of concurrent closers exactly one sees rowcount == 1. Grading
    and the score are committed with the status change or not at all.

    Returns:
        True if this call performed the transition
    """
    if not AttemptStateMachine.can_transition(AttemptStatus.IN_PROGRESS, target):
        raise ValueError(f"{target} is not a closing state")

    try:
        result = await db.execute(
            update(ExamAttempt)
            .where(
                and_(
                    ExamAttempt.id == attempt_id,
                    ExamAttempt.status == AttemptStatus.IN_PROGRESS
                )
            )
            .values(status=target, submitted_at=now, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )

        if result.rowcount != 1:
            await db.rollback()
            return False

        attempt = await get_attempt(db, attempt_id)
        attempt.score = await grade_attempt(db, attempt)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(f"Attempt {attempt_id} closed as {target.value} with score {attempt.score}")
    return True


async def submit_attempt(db: AsyncSession, attempt_id: int, now: datetime) -> ExamAttempt:
    """
    Explicit submit by the student.

    Raises:
        AlreadyClosed: the attempt is (or concurrently became) terminal
    """
    attempt = await get_attempt(db, attempt_id)
    if AttemptStateMachine.is_terminal(attempt.status):
        raise AlreadyClosed()

    if not await _close_attempt(db, attempt_id, AttemptStatus.SUBMITTED, now):
        logger.warning(f"Submit lost race for attempt {attempt_id}")
        raise AlreadyClosed()

    return await get_attempt(db, attempt_id)


async def try_auto_submit(db: AsyncSession, attempt_id: int, now: datetime) -> bool:
    """Auto-submit if still in progress; True when this call closed it."""
    attempt = await get_attempt(db, attempt_id)
    if AttemptStateMachine.is_terminal(attempt.status):
        return False
    return await _close_attempt(db, attempt_id, AttemptStatus.AUTO_SUBMITTED, now)


async def auto_submit_attempt(db: AsyncSession, attempt_id: int, now: datetime) -> ExamAttempt:
    """
    Close an attempt whose time ran out.

    Idempotent: a terminal attempt is returned unchanged, never an error,
    so the sweep and the answer path can race a manual submit safely.
    """
    if await try_auto_submit(db, attempt_id, now):
        logger.info(f"Attempt {attempt_id} auto-submitted due to time expiry")
    return await get_attempt(db, attempt_id)


# =============================================================================
# Lazy expiry read
# =============================================================================

async def refresh_attempt(db: AsyncSession, attempt_id: int, now: datetime) -> ExamAttempt:
    """
    Read an attempt, closing it first if its time budget is exhausted.

    Used by every read path that shows an attempt to the student.
    """
    attempt = await get_attempt(db, attempt_id)
    if attempt.is_in_progress() and remaining_minutes(attempt, now) == 0:
        attempt = await auto_submit_attempt(db, attempt_id, now)
    return attempt
