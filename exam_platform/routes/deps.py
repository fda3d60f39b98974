"""
Shared route dependencies.

Authentication is handled in front of this service; the gateway forwards
the authenticated student as the X-Student-Id header.
"""
from datetime import datetime
from typing import Optional

from fastapi import Depends, Header

from exam_platform.core.clock import Clock, get_clock
from exam_platform.exceptions import AuthRequired
from exam_platform.services.grading_engine import GradingConfig, load_grading_config


async def get_current_student_id(x_student_id: Optional[str] = Header(default=None)) -> int:
    if x_student_id is None or not x_student_id.strip():
        raise AuthRequired()
    try:
        student_id = int(x_student_id)
    except ValueError:
        raise AuthRequired("X-Student-Id must be an integer", {"x_student_id": x_student_id})
    if student_id < 1:
        raise AuthRequired("X-Student-Id must be positive", {"x_student_id": x_student_id})
    return student_id


def get_now(clock: Clock = Depends(get_clock)) -> datetime:
    return clock.now()


def get_grading_config() -> GradingConfig:
    return load_grading_config()
