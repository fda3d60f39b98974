"""
exam_platform/services/expiry_reaper.py
Closes attempts whose time budget has elapsed.

Expiry is normally discovered lazily (refresh_attempt / save_answer). The
sweep here only mops up attempts nobody ever revisits; it relies on the
idempotent auto-submit, so running it next to live submissions is safe.
"""
import logging
from datetime import datetime, timedelta
from typing import List

from sqlalchemy import select, and_, or_
from sqlalchemy.ext.asyncio import AsyncSession

from exam_platform.orm.exam import Exam
from exam_platform.orm.exam_attempt import ExamAttempt, AttemptStatus
from exam_platform.services.attempt_service import try_auto_submit

logger = logging.getLogger(__name__)


async def _open_durations(db: AsyncSession) -> List[int]:
    result = await db.execute(
        select(Exam.duration_minutes)
        .join(ExamAttempt, ExamAttempt.exam_id == Exam.id)
        .where(ExamAttempt.status == AttemptStatus.IN_PROGRESS)
        .distinct()
    )
    return list(result.scalars().all())


async def find_expired_attempt_ids(db: AsyncSession, now: datetime) -> List[int]:
    """
    Ids of in-progress attempts with no time left at ``now``.

    An attempt is out of time once started_at <= now - duration, which is
    the same boundary remaining_minutes uses. One deadline per distinct exam
    duration; only ids are fetched.
    """
    durations = await _open_durations(db)
    if not durations:
        return []

    deadline_passed = or_(*[
        and_(
            Exam.duration_minutes == duration,
            ExamAttempt.started_at <= now - timedelta(minutes=duration)
        )
        for duration in durations
    ])
    result = await db.execute(
        select(ExamAttempt.id)
        .join(Exam, Exam.id == ExamAttempt.exam_id)
        .where(and_(ExamAttempt.status == AttemptStatus.IN_PROGRESS, deadline_passed))
        .order_by(ExamAttempt.started_at, ExamAttempt.id)
    )
    return list(result.scalars().all())


async def sweep_expired_attempts(db: AsyncSession, now: datetime) -> int:
    """
    Auto-submit every in-progress attempt that has run out of time.

    Returns:
        Number of attempts this sweep closed (ones closed concurrently by
        someone else are not counted)
    """
    expired_ids = await find_expired_attempt_ids(db, now)
    closed = 0

    for attempt_id in expired_ids:
        try:
            if await try_auto_submit(db, attempt_id, now):
                closed += 1
        except Exception as e:
            logger.error(f"Sweep failed to auto-submit attempt {attempt_id}: {str(e)}")
            raise

    if expired_ids:
        logger.info(f"Expiry sweep: {len(expired_ids)} expired, {closed} closed by this sweep")
    return closed
