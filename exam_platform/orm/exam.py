"""
exam_platform/orm/exam.py
Scheduled exam: one paper, one batch, one time window.

Lifecycle: draft → published → completed (see state_machines/exam_state.py).
The paper is locked for edits as soon as the exam leaves draft.
"""
from enum import Enum

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index, CheckConstraint, Enum as SQLEnum
from sqlalchemy.orm import relationship

from exam_platform.orm.base import BaseModel


class ExamStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    COMPLETED = "completed"


class Exam(BaseModel):
    """
    An exam students of one batch may sit between start_time and end_time.

    Timer Enforcement:
    - The access window is [start_time, end_time], inclusive
    - Each attempt gets duration_minutes from its own started_at
    """

    __tablename__ = "exams"

    organization_id = Column(
        Integer,
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    batch_id = Column(
        Integer,
        ForeignKey("batches.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Batch whose members may sit the exam"
    )

    paper_id = Column(
        Integer,
        ForeignKey("question_papers.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
        comment="Question set used by this exam"
    )

    title = Column(String(255), nullable=False)

    start_time = Column(DateTime, nullable=False)

    end_time = Column(DateTime, nullable=False)

    duration_minutes = Column(
        Integer,
        nullable=False,
        comment="Time budget of a single attempt"
    )

    status = Column(
        SQLEnum(ExamStatus),
        nullable=False,
        default=ExamStatus.DRAFT,
        index=True
    )

    batch = relationship("Batch", lazy="joined")

    paper = relationship("QuestionPaper", lazy="joined")

    __table_args__ = (
        CheckConstraint("end_time > start_time", name="ck_exam_window"),
        CheckConstraint("duration_minutes > 0", name="ck_exam_duration"),
        Index("ix_exam_batch_status", "batch_id", "status"),
    )

    def __repr__(self):
        return f"<Exam(id={self.id}, title={self.title!r}, status={self.status})>"

    @property
    def total_marks(self) -> int:
        return self.paper.total_marks if self.paper else 0

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "batch_id": self.batch_id,
            "batch_name": self.batch.name if self.batch else None,
            "paper_id": self.paper_id,
            "title": self.title,
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "duration_minutes": self.duration_minutes,
            "status": self.status.value,
            "total_marks": self.total_marks,
        }
