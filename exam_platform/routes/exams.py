"""
exam_platform/routes/exams.py
Exam administration: schedule, reschedule, publish, complete, delete
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from pydantic import BaseModel, Field

from exam_platform.database import get_db
from exam_platform.routes.deps import get_now, get_grading_config
from exam_platform.services.grading_engine import GradingConfig
from exam_platform.services import exam_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/exams", tags=["exams"])


class CreateExamRequest(BaseModel):
    organization_id: int = Field(..., description="Owning organization")
    batch_id: int = Field(..., description="Batch whose members may sit the exam")
    paper_id: int = Field(..., description="Question paper used by the exam")
    title: str = Field(..., min_length=1, max_length=255)
    start_time: datetime = Field(..., description="Window opens (UTC)")
    end_time: datetime = Field(..., description="Window closes (UTC)")
    duration_minutes: int = Field(..., ge=1, description="Time budget per attempt")


class UpdateExamRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    start_time: datetime
    end_time: datetime
    duration_minutes: int = Field(..., ge=1)
    batch_id: Optional[int] = Field(None, description="Move the exam to another batch")
    paper_id: Optional[int] = Field(None, description="Swap the question paper")


def _naive_utc(value: datetime) -> datetime:
    """Store times as naive UTC, like the rest of the schema."""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_exam(
    request: CreateExamRequest,
    now: datetime = Depends(get_now),
    db: AsyncSession = Depends(get_db)
):
    """Schedule a draft exam. The window must start in the future."""
    exam = await exam_service.create_exam(
        db,
        organization_id=request.organization_id,
        batch_id=request.batch_id,
        paper_id=request.paper_id,
        title=request.title,
        start_time=_naive_utc(request.start_time),
        end_time=_naive_utc(request.end_time),
        duration_minutes=request.duration_minutes,
        now=now,
    )
    return {"exam": exam.to_dict()}


@router.get("/{exam_id}")
async def get_exam(exam_id: int, db: AsyncSession = Depends(get_db)):
    exam = await exam_service.get_exam(db, exam_id)
    return {"exam": exam.to_dict()}


@router.put("/{exam_id}")
async def update_exam(
    exam_id: int,
    request: UpdateExamRequest,
    now: datetime = Depends(get_now),
    db: AsyncSession = Depends(get_db)
):
    """Reschedule a draft exam. Published and completed exams are frozen."""
    exam = await exam_service.update_exam(
        db,
        exam_id,
        title=request.title,
        start_time=_naive_utc(request.start_time),
        end_time=_naive_utc(request.end_time),
        duration_minutes=request.duration_minutes,
        batch_id=request.batch_id,
        paper_id=request.paper_id,
        now=now,
    )
    return {"exam": exam.to_dict()}


@router.post("/{exam_id}/publish")
async def publish_exam(
    exam_id: int,
    config: GradingConfig = Depends(get_grading_config),
    db: AsyncSession = Depends(get_db)
):
    exam = await exam_service.publish_exam(db, exam_id, config)
    return {"exam": exam.to_dict()}


@router.post("/{exam_id}/complete")
async def complete_exam(exam_id: int, db: AsyncSession = Depends(get_db)):
    exam = await exam_service.complete_exam(db, exam_id)
    return {"exam": exam.to_dict()}


@router.delete("/{exam_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_exam(exam_id: int, db: AsyncSession = Depends(get_db)):
    await exam_service.delete_exam(db, exam_id)
