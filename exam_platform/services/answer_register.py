"""
exam_platform/services/answer_register.py
Records a student's answer for one question of an in-progress attempt.

Rules:
- Only while the attempt is in_progress
- An answer arriving after the time budget ran out is never stored; the
  attempt is auto-submitted and AttemptExpired raised instead
- One row per (attempt, question): repeated saves overwrite, no history
- Objective questions take selected_option_id (None clears the choice),
  free-text questions take answer_text
"""
import logging
from datetime import datetime
from typing import Any, Dict

from sqlalchemy import select, update, and_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from exam_platform.orm.exam_answer import ExamAnswer
from exam_platform.orm.exam_attempt import ExamAttempt, AttemptStatus
from exam_platform.orm.question_paper import Question
from exam_platform.state_machines.attempt_state import AttemptStateMachine
from exam_platform.exceptions import AttemptClosed, AttemptExpired, ValidationError
from exam_platform.services.attempt_service import get_attempt, remaining_minutes, auto_submit_attempt

logger = logging.getLogger(__name__)

ALLOWED_PAYLOAD_KEYS = {"selected_option_id", "answer_text"}


def _validate_payload(question: Question, payload: Dict[str, Any]) -> Dict[str, Any]:
    """Check the payload shape against the question type; return the column values."""
    unknown = set(payload) - ALLOWED_PAYLOAD_KEYS
    if unknown:
        raise ValidationError(
            f"Unexpected answer fields: {', '.join(sorted(unknown))}",
            {"fields": sorted(unknown)}
        )

    if question.is_objective():
        if payload.get("answer_text") is not None:
            raise ValidationError(
                "Objective questions take selected_option_id, not answer_text",
                {"question_id": question.id}
            )
        option_id = payload.get("selected_option_id")
        if option_id is not None:
            if isinstance(option_id, bool) or not isinstance(option_id, int):
                raise ValidationError("selected_option_id must be an integer", {"question_id": question.id})
            if question.option_by_id(option_id) is None:
                raise ValidationError(
                    "Selected option does not belong to this question",
                    {"question_id": question.id, "selected_option_id": option_id}
                )
        return {"selected_option_id": option_id, "answer_text": None}

    if payload.get("selected_option_id") is not None:
        raise ValidationError(
            "Free-text questions take answer_text, not selected_option_id",
            {"question_id": question.id}
        )
    text = payload.get("answer_text")
    if text is not None and not isinstance(text, str):
        raise ValidationError("answer_text must be a string", {"question_id": question.id})
    return {"selected_option_id": None, "answer_text": text}


async def _guard_in_progress(db: AsyncSession, attempt_id: int, now: datetime) -> bool:
    """
    Take the attempt row for writing, but only while it is in progress.

    A closing UPDATE and this one serialize on the same row, so an answer
    can never be committed after the attempt was graded.
    """
    result = await db.execute(
        update(ExamAttempt)
        .where(
            and_(
                ExamAttempt.id == attempt_id,
                ExamAttempt.status == AttemptStatus.IN_PROGRESS
            )
        )
        .values(updated_at=now)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def _upsert(db: AsyncSession, attempt_id: int, question_id: int, values: Dict[str, Any]) -> None:
    result = await db.execute(
        select(ExamAnswer).where(
            and_(
                ExamAnswer.exam_attempt_id == attempt_id,
                ExamAnswer.question_id == question_id
            )
        )
    )
    answer = result.unique().scalar_one_or_none()

    if answer is None:
        answer = ExamAnswer(exam_attempt_id=attempt_id, question_id=question_id)
        db.add(answer)

    answer.selected_option_id = values["selected_option_id"]
    answer.answer_text = values["answer_text"]
    answer.marks_awarded = None
    await db.flush()


async def save_answer(
    db: AsyncSession,
    attempt_id: int,
    question_id: int,
    payload: Dict[str, Any],
    now: datetime
) -> ExamAnswer:
    """
    Save/overwrite the answer to ``question_id``.

    Raises:
        AttemptClosed: attempt already submitted
        AttemptExpired: time ran out; attempt was auto-submitted, answer dropped
        ValidationError: question not in this exam or payload of the wrong shape
    """
    attempt = await get_attempt(db, attempt_id)

    if not AttemptStateMachine.accepts_answers(attempt.status):
        raise AttemptClosed()

    if remaining_minutes(attempt, now) == 0:
        await auto_submit_attempt(db, attempt_id, now)
        logger.info(f"Answer to question {question_id} dropped: attempt {attempt_id} expired")
        raise AttemptExpired()

    question = next((q for q in attempt.exam.paper.questions if q.id == question_id), None)
    if question is None:
        raise ValidationError(
            "Question does not belong to this exam",
            {"question_id": question_id, "exam_id": attempt.exam_id}
        )

    values = _validate_payload(question, payload)

    # A concurrent first save of the same question can hit the unique key;
    # the second pass then finds the row and overwrites it.
    for retry in range(2):
        try:
            if not await _guard_in_progress(db, attempt_id, now):
                await db.rollback()
                raise AttemptClosed()
            await _upsert(db, attempt_id, question_id, values)
            await db.commit()
            break
        except IntegrityError:
            await db.rollback()
            if retry == 1:
                raise

    result = await db.execute(
        select(ExamAnswer)
        .where(
            and_(
                ExamAnswer.exam_attempt_id == attempt_id,
                ExamAnswer.question_id == question_id
            )
        )
        .execution_options(populate_existing=True)
    )
    return result.unique().scalar_one()
