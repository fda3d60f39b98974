"""
exam_platform/orm/exam_attempt.py
One student's single, non-repeatable run through an exam.

Key Design:
- At most one attempt per (exam, student): unique constraint, not a lookup
- started_at + exam.duration_minutes = deadline
- Expiry is detected lazily on the next read or write
- No modification once submitted / auto_submitted
"""
from enum import Enum

from sqlalchemy import Column, Integer, DateTime, ForeignKey, Index, Numeric, UniqueConstraint, Enum as SQLEnum
from sqlalchemy.orm import relationship

from exam_platform.orm.base import BaseModel


class AttemptStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"
    AUTO_SUBMITTED = "auto_submitted"


CLOSED_STATUSES = (AttemptStatus.SUBMITTED, AttemptStatus.AUTO_SUBMITTED)


class ExamAttempt(BaseModel):
    """
    Lifecycle:
    1. Student starts exam → attempt created (status=in_progress)
    2. Student answers questions → ExamAnswer rows upserted
    3. Student submits OR time expires → submitted / auto_submitted, graded
    4. Attempt locked → no further modifications
    """

    __tablename__ = "exam_attempts"

    exam_id = Column(
        Integer,
        ForeignKey("exams.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )

    student_id = Column(
        Integer,
        ForeignKey("students.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    started_at = Column(
        DateTime,
        nullable=False,
        comment="When the attempt was started"
    )

    submitted_at = Column(
        DateTime,
        nullable=True,
        comment="When the attempt was closed (NULL while in progress)"
    )

    score = Column(
        Numeric(8, 2),
        nullable=True,
        comment="Total marks awarded (NULL until closed)"
    )

    status = Column(
        SQLEnum(AttemptStatus),
        nullable=False,
        default=AttemptStatus.IN_PROGRESS,
        index=True
    )

    exam = relationship("Exam", lazy="joined")

    student = relationship("Student", lazy="joined")

    answers = relationship(
        "ExamAnswer",
        back_populates="attempt",
        order_by="ExamAnswer.id",
        lazy="selectin"
    )

    __table_args__ = (
        UniqueConstraint("exam_id", "student_id", name="uq_exam_attempt_exam_student"),
        Index("ix_exam_attempt_status_started", "status", "started_at"),
    )

    def __repr__(self):
        return f"<ExamAttempt(id={self.id}, exam_id={self.exam_id}, student_id={self.student_id}, status={self.status})>"

    def is_in_progress(self) -> bool:
        return self.status == AttemptStatus.IN_PROGRESS

    def is_closed(self) -> bool:
        return self.status in CLOSED_STATUSES

    def remaining_minutes(self, now) -> int:
        from exam_platform.state_machines.attempt_state import remaining_minutes
        return remaining_minutes(self, self.exam.duration_minutes, now)

    def to_dict(self, now=None) -> dict:
        data = {
            "id": self.id,
            "exam_id": self.exam_id,
            "student_id": self.student_id,
            "status": self.status.value,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "submitted_at": self.submitted_at.isoformat() if self.submitted_at else None,
            "score": float(self.score) if self.score is not None else None,
        }
        if now is not None:
            data["remaining_minutes"] = self.remaining_minutes(now)
        return data
