"""
exam_platform/services/batch_service.py
Batch membership lookups.

Membership management proper belongs to the organization admin surface;
the attempt lifecycle only needs is_member.
"""
import logging

from sqlalchemy import select, and_, insert, delete
from sqlalchemy.ext.asyncio import AsyncSession

from exam_platform.orm.batch import batch_students

logger = logging.getLogger(__name__)


async def is_member(db: AsyncSession, batch_id: int, student_id: int) -> bool:
    """Is the student currently a member of the batch?"""
    result = await db.execute(
        select(batch_students.c.student_id).where(
            and_(
                batch_students.c.batch_id == batch_id,
                batch_students.c.student_id == student_id
            )
        )
    )
    return result.first() is not None


async def add_member(db: AsyncSession, batch_id: int, student_id: int) -> None:
    if await is_member(db, batch_id, student_id):
        return
    await db.execute(insert(batch_students).values(batch_id=batch_id, student_id=student_id))
    await db.commit()
    logger.info(f"Student {student_id} added to batch {batch_id}")


async def remove_member(db: AsyncSession, batch_id: int, student_id: int) -> None:
    await db.execute(
        delete(batch_students).where(
            and_(
                batch_students.c.batch_id == batch_id,
                batch_students.c.student_id == student_id
            )
        )
    )
    await db.commit()
    logger.info(f"Student {student_id} removed from batch {batch_id}")
