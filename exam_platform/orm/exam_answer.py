"""
exam_platform/orm/exam_answer.py
Stores a student's answer to one question within an attempt.

Key Design:
- Unique per (attempt, question); the register upserts, last write wins
- Objective questions hold selected_option_id, free text holds answer_text
- marks_awarded stays NULL until grading; free text is never auto-graded
"""
from sqlalchemy import Column, Integer, Text, ForeignKey, Numeric, UniqueConstraint
from sqlalchemy.orm import relationship

from exam_platform.orm.base import BaseModel


class ExamAnswer(BaseModel):
    __tablename__ = "exam_answers"

    exam_attempt_id = Column(
        Integer,
        ForeignKey("exam_attempts.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )

    question_id = Column(
        Integer,
        ForeignKey("questions.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    selected_option_id = Column(
        Integer,
        ForeignKey("question_options.id", ondelete="SET NULL"),
        nullable=True,
        comment="Chosen option for objective questions (NULL = unanswered)"
    )

    answer_text = Column(
        Text,
        nullable=True,
        comment="Free-text answer (NULL if not attempted)"
    )

    marks_awarded = Column(
        Numeric(8, 2),
        nullable=True,
        comment="NULL until graded"
    )

    attempt = relationship(
        "ExamAttempt",
        back_populates="answers",
        lazy="raise"
    )

    question = relationship("Question", lazy="joined")

    selected_option = relationship("QuestionOption", lazy="joined")

    __table_args__ = (
        UniqueConstraint("exam_attempt_id", "question_id", name="uq_exam_answer_attempt_question"),
    )

    def __repr__(self):
        return f"<ExamAnswer(id={self.id}, attempt={self.exam_attempt_id}, question={self.question_id})>"

    def is_attempted(self) -> bool:
        if self.selected_option_id is not None:
            return True
        return bool(self.answer_text and self.answer_text.strip())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "exam_attempt_id": self.exam_attempt_id,
            "question_id": self.question_id,
            "selected_option_id": self.selected_option_id,
            "answer_text": self.answer_text,
            "marks_awarded": float(self.marks_awarded) if self.marks_awarded is not None else None,
            "is_attempted": self.is_attempted(),
        }
