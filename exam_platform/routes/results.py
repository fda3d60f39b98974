"""
exam_platform/routes/results.py
Result aggregation endpoints (read-only)
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from exam_platform.database import get_db
from exam_platform.routes.deps import get_current_student_id, get_grading_config
from exam_platform.services.grading_engine import GradingConfig
from exam_platform.services import results_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/results", tags=["results"])


@router.get("/exams/{exam_id}")
async def get_exam_results(
    exam_id: int,
    config: GradingConfig = Depends(get_grading_config),
    db: AsyncSession = Depends(get_db)
):
    """Score statistics and pass rate over all closed attempts of an exam."""
    return await results_service.exam_result_summary(db, exam_id, config)


@router.get("/exams/{exam_id}/me")
async def get_my_exam_result(
    exam_id: int,
    student_id: int = Depends(get_current_student_id),
    db: AsyncSession = Depends(get_db)
):
    return await results_service.student_exam_result(db, exam_id, student_id)


@router.get("/students/{student_id}")
async def get_student_performance(
    student_id: int,
    organization_id: Optional[int] = Query(default=None, description="Only count exams of this organization"),
    db: AsyncSession = Depends(get_db)
):
    return await results_service.student_performance(db, student_id, organization_id)
