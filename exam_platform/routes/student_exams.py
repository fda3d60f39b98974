"""
exam_platform/routes/student_exams.py
Student-facing exam API

Provides endpoints for taking a timed exam:
- List exams of the student's batches
- View an exam's questions (correct options hidden)
- Start the single attempt
- Save answers
- Submit
- Get attempt state (auto-submits when time ran out)

Domain errors propagate to the application-level handler, which renders
the standard error envelope.
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from pydantic import BaseModel, Field, StrictInt

from exam_platform.database import get_db
from exam_platform.routes.deps import get_current_student_id, get_now
from exam_platform.services import student_exam_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/student/exams", tags=["student-exams"])


class SaveAnswerRequest(BaseModel):
    question_id: StrictInt = Field(..., description="Question being answered")
    selected_option_id: Optional[StrictInt] = Field(default=None, description="Chosen option (objective questions)")
    answer_text: Optional[str] = Field(default=None, description="Answer text (free-text questions)")


@router.get("")
async def list_exams(
    student_id: int = Depends(get_current_student_id),
    now: datetime = Depends(get_now),
    db: AsyncSession = Depends(get_db)
):
    """Published exams of every batch the student belongs to."""
    exams = await student_exam_service.list_accessible_exams(db, student_id, now)
    return {"exams": exams}


@router.get("/attempts/{attempt_id}")
async def get_attempt_state(
    attempt_id: int,
    student_id: int = Depends(get_current_student_id),
    now: datetime = Depends(get_now),
    db: AsyncSession = Depends(get_db)
):
    """
    Current attempt state.

    Used for:
    - Recovery after page refresh
    - Syncing the timer with the server

    Auto-submits if the attempt has expired.
    """
    return await student_exam_service.attempt_state(db, attempt_id, student_id, now)


@router.get("/{exam_id}")
async def show_exam(
    exam_id: int,
    student_id: int = Depends(get_current_student_id),
    now: datetime = Depends(get_now),
    db: AsyncSession = Depends(get_db)
):
    return await student_exam_service.view_exam_for_attempt(db, exam_id, student_id, now)


@router.post("/{exam_id}/start", status_code=status.HTTP_201_CREATED)
async def start_exam(
    exam_id: int,
    student_id: int = Depends(get_current_student_id),
    now: datetime = Depends(get_now),
    db: AsyncSession = Depends(get_db)
):
    """Start the student's single attempt; 409 if one already exists."""
    return await student_exam_service.start(db, exam_id, student_id, now)


@router.post("/{exam_id}/answers")
async def save_exam_answer(
    exam_id: int,
    request: SaveAnswerRequest,
    student_id: int = Depends(get_current_student_id),
    now: datetime = Depends(get_now),
    db: AsyncSession = Depends(get_db)
):
    """
    Save or overwrite one answer.

    Returns 410 and auto-submits when the time budget has run out.
    """
    payload = request.model_dump(exclude={"question_id"}, exclude_unset=True)
    return await student_exam_service.save(db, exam_id, student_id, request.question_id, payload, now)


@router.post("/{exam_id}/submit")
async def submit_exam(
    exam_id: int,
    student_id: int = Depends(get_current_student_id),
    now: datetime = Depends(get_now),
    db: AsyncSession = Depends(get_db)
):
    return await student_exam_service.submit(db, exam_id, student_id, now)
