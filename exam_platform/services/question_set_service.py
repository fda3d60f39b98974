"""
exam_platform/services/question_set_service.py
Structural edits to question papers, refused once the paper is locked.

BUSINESS RULES:
- A paper is locked as soon as any exam using it is published or completed
- marks must be a positive integer
- Objective questions need at least 2 options and exactly one correct one
- Free-text questions carry no options
- total_marks is always the sum of the questions' marks

CONCURRENCY:
- Every edit and every publish first writes the paper row (lock_paper), so
  they serialize on it; the lock check runs after that write
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from exam_platform.orm.exam import Exam, ExamStatus
from exam_platform.orm.question_paper import QuestionPaper, Question, QuestionOption, QuestionType
from exam_platform.state_machines.exam_state import ExamStateMachine
from exam_platform.exceptions import NotFound, QuestionSetLocked, ValidationError

logger = logging.getLogger(__name__)

MIN_OBJECTIVE_OPTIONS = 2
LOCKING_STATUSES = [s for s in ExamStatus if ExamStateMachine.locks_paper(s)]


def validate_question(question_type: str, question_text: str, marks: Any,
                      options: Optional[List[Dict[str, Any]]]) -> QuestionType:
    """Validate a question definition and return its parsed type."""
    try:
        parsed_type = QuestionType(question_type)
    except ValueError:
        raise ValidationError(
            "Question type must be either objective or free_text",
            {"question_type": question_type}
        )

    if not question_text or not question_text.strip():
        raise ValidationError("Question text is required")

    if isinstance(marks, bool) or not isinstance(marks, int) or marks < 1:
        raise ValidationError("Marks must be a positive integer", {"marks": marks})

    if parsed_type == QuestionType.OBJECTIVE:
        if not options or len(options) < MIN_OBJECTIVE_OPTIONS:
            raise ValidationError("Objective questions must have at least 2 options")
        for option in options:
            if not str(option.get("text") or "").strip():
                raise ValidationError("Option text is required")
        correct_count = sum(1 for o in options if o.get("is_correct") is True)
        if correct_count != 1:
            raise ValidationError(
                "Objective questions must have exactly one correct answer",
                {"correct_options": correct_count}
            )
    elif options:
        raise ValidationError("Free-text questions cannot have options")

    return parsed_type


async def get_paper(db: AsyncSession, paper_id: int) -> QuestionPaper:
    result = await db.execute(
        select(QuestionPaper)
        .where(QuestionPaper.id == paper_id)
        .execution_options(populate_existing=True)
    )
    paper = result.scalar_one_or_none()
    if paper is None:
        raise NotFound("Question paper", paper_id)
    return paper


async def is_locked(db: AsyncSession, paper_id: int) -> bool:
    result = await db.execute(
        select(func.count(Exam.id)).where(
            and_(
                Exam.paper_id == paper_id,
                Exam.status.in_(LOCKING_STATUSES)
            )
        )
    )
    return result.scalar_one() > 0


async def lock_paper(db: AsyncSession, paper_id: int) -> bool:
    """
    Touch the paper row so this transaction holds it until commit or
    rollback. Must be the first write of the transaction. Returns False if
    the paper does not exist.
    """
    result = await db.execute(
        update(QuestionPaper)
        .where(QuestionPaper.id == paper_id)
        .values(updated_at=datetime.utcnow())
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def _lock_for_edit(db: AsyncSession, paper_id: int) -> None:
    if not await lock_paper(db, paper_id):
        await db.rollback()
        raise NotFound("Question paper", paper_id)
    if await is_locked(db, paper_id):
        await db.rollback()
        logger.warning(f"Rejected edit to locked question paper {paper_id}")
        raise QuestionSetLocked(details={"paper_id": paper_id})


async def create_paper(db: AsyncSession, organization_id: int, title: str,
                       subject: Optional[str] = None) -> QuestionPaper:
    if not title or not title.strip():
        raise ValidationError("Title is required")
    paper = QuestionPaper(organization_id=organization_id, title=title, subject=subject)
    db.add(paper)
    await db.flush()
    paper_id = paper.id
    await db.commit()
    return await get_paper(db, paper_id)


def _build_options(options: Optional[List[Dict[str, Any]]]) -> List[QuestionOption]:
    return [
        QuestionOption(option_text=o["text"], is_correct=bool(o.get("is_correct")))
        for o in (options or [])
    ]


async def _last_position(db: AsyncSession, paper_id: int) -> int:
    result = await db.execute(
        select(func.coalesce(func.max(Question.position), 0)).where(Question.paper_id == paper_id)
    )
    return int(result.scalar_one())


async def add_question(
    db: AsyncSession,
    paper_id: int,
    question_type: str,
    question_text: str,
    marks: int,
    options: Optional[List[Dict[str, Any]]] = None
) -> Question:
    """Append a question (with its options) to an unlocked paper."""
    await get_paper(db, paper_id)
    parsed_type = validate_question(question_type, question_text, marks, options)
    await _lock_for_edit(db, paper_id)

    next_position = await _last_position(db, paper_id) + 1
    question = Question(
        paper_id=paper_id,
        position=next_position,
        question_type=parsed_type,
        question_text=question_text,
        marks=marks,
        options=_build_options(options),
    )
    db.add(question)
    await db.flush()
    question_id = question.id
    await db.commit()

    logger.info(f"Added {parsed_type.value} question {question_id} to paper {paper_id}")
    return await get_question(db, question_id)


async def get_question(db: AsyncSession, question_id: int) -> Question:
    result = await db.execute(
        select(Question)
        .where(Question.id == question_id)
        .execution_options(populate_existing=True)
    )
    question = result.scalar_one_or_none()
    if question is None:
        raise NotFound("Question", question_id)
    return question


async def update_question(
    db: AsyncSession,
    question_id: int,
    question_type: str,
    question_text: str,
    marks: int,
    options: Optional[List[Dict[str, Any]]] = None
) -> Question:
    """Replace a question's definition; its options are rebuilt from scratch."""
    question = await get_question(db, question_id)
    parsed_type = validate_question(question_type, question_text, marks, options)
    await _lock_for_edit(db, question.paper_id)
    question = await get_question(db, question_id)

    question.question_type = parsed_type
    question.question_text = question_text
    question.marks = marks
    question.options = _build_options(options)
    await db.commit()

    return await get_question(db, question_id)


async def remove_question(db: AsyncSession, question_id: int) -> None:
    question = await get_question(db, question_id)
    paper_id = question.paper_id
    await _lock_for_edit(db, paper_id)
    question = await get_question(db, question_id)
    await db.delete(question)
    await db.commit()
    logger.info(f"Removed question {question_id} from paper {paper_id}")


async def paper_total_marks(db: AsyncSession, paper_id: int) -> int:
    result = await db.execute(
        select(func.coalesce(func.sum(Question.marks), 0)).where(Question.paper_id == paper_id)
    )
    return int(result.scalar_one())


async def question_count(db: AsyncSession, paper_id: int) -> int:
    result = await db.execute(
        select(func.count(Question.id)).where(Question.paper_id == paper_id)
    )
    return result.scalar_one()
