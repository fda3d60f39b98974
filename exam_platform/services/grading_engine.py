"""
exam_platform/services/grading_engine.py
Auto-grading of objective answers and score aggregation.

GRADING RULES:
1. Objective answer with a selected option: full marks if the option is
   the correct one, otherwise 0
2. Objective answer with no selection: left ungraded
3. Free-text answer: never graded here (marks_awarded untouched)
4. score = sum of marks_awarded, ungraded counting as 0

Grading is deterministic: running it again on the same attempt rewrites the
same marks and returns the same score.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from exam_platform.config import settings
from exam_platform.orm.exam_answer import ExamAnswer
from exam_platform.orm.exam_attempt import ExamAttempt
from exam_platform.exceptions import InvariantViolation

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal("0.01")


@dataclass(frozen=True)
class GradingConfig:
    """Explicit grading / paper-size configuration."""
    pass_threshold_percent: int = 40
    min_questions: int = 1
    max_questions: int = 50


def load_grading_config() -> GradingConfig:
    return GradingConfig(
        pass_threshold_percent=settings.PASS_THRESHOLD_PERCENT,
        min_questions=settings.MIN_QUESTIONS,
        max_questions=settings.MAX_QUESTIONS,
    )


def mark_objective_answer(answer: ExamAnswer) -> Optional[Decimal]:
    """Marks for a single answer; None means 'leave as is'."""
    question = answer.question
    if not question.is_objective() or answer.selected_option_id is None:
        return None
    option = question.option_by_id(answer.selected_option_id)
    if option is not None and option.is_correct:
        return Decimal(question.marks)
    return Decimal("0")


def total_score(answers: Iterable[ExamAnswer]) -> Decimal:
    total = Decimal("0")
    for answer in answers:
        if answer.marks_awarded is not None:
            total += Decimal(answer.marks_awarded)
    return total.quantize(TWO_PLACES)


async def grade_attempt(db: AsyncSession, attempt: ExamAttempt) -> Decimal:
    """
    Grade every answer of a closed attempt and return the score.

    Runs inside the caller's transaction (flush only, no commit) so the
    closing transition and the marks become visible together.

    Raises:
        InvariantViolation: if the attempt is still in progress
    """
    if not attempt.is_closed():
        raise InvariantViolation(
            "Grading invoked on an attempt that is not closed",
            {"attempt_id": attempt.id, "status": attempt.status.value}
        )

    result = await db.execute(
        select(ExamAnswer)
        .where(ExamAnswer.exam_attempt_id == attempt.id)
        .order_by(ExamAnswer.id)
        .execution_options(populate_existing=True)
    )
    answers = result.unique().scalars().all()

    graded = 0
    for answer in answers:
        marks = mark_objective_answer(answer)
        if marks is not None:
            answer.marks_awarded = marks
            graded += 1

    await db.flush()

    score = total_score(answers)
    logger.info(f"Graded attempt {attempt.id}: {graded}/{len(answers)} answers auto-graded, score={score}")
    return score


def pass_mark(total_marks: int, config: GradingConfig) -> Decimal:
    return (Decimal(total_marks) * Decimal(config.pass_threshold_percent) / Decimal(100)).quantize(TWO_PLACES)


def is_passing(score, total_marks: int, config: GradingConfig) -> bool:
    if score is None:
        return False
    return Decimal(score) >= pass_mark(total_marks, config)
