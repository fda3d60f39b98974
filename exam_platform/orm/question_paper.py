"""
exam_platform/orm/question_paper.py
Question Set (paper), its questions and objective options.

Key Design:
- total_marks is derived from the questions, never stored
- A paper is locked once any exam using it leaves draft
- Option correctness is only serialized for grading and admin views
"""
from enum import Enum

from sqlalchemy import Column, Integer, String, Text, Boolean, ForeignKey, Index, Enum as SQLEnum
from sqlalchemy.orm import relationship

from exam_platform.orm.base import BaseModel


class QuestionType(str, Enum):
    OBJECTIVE = "objective"
    FREE_TEXT = "free_text"


class QuestionPaper(BaseModel):
    __tablename__ = "question_papers"

    organization_id = Column(
        Integer,
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    title = Column(String(255), nullable=False)

    subject = Column(String(255), nullable=True)

    questions = relationship(
        "Question",
        back_populates="paper",
        cascade="all, delete-orphan",
        order_by="Question.position",
        lazy="selectin"
    )

    def __repr__(self):
        return f"<QuestionPaper(id={self.id}, title={self.title!r})>"

    @property
    def total_marks(self) -> int:
        return sum(q.marks for q in self.questions)

    def to_dict(self, include_correct: bool = False) -> dict:
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "title": self.title,
            "subject": self.subject,
            "total_marks": self.total_marks,
            "questions": [q.to_dict(include_correct=include_correct) for q in self.questions],
        }


class Question(BaseModel):
    __tablename__ = "questions"

    paper_id = Column(
        Integer,
        ForeignKey("question_papers.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    position = Column(
        Integer,
        nullable=False,
        default=0,
        comment="Order of the question within its paper"
    )

    question_type = Column(
        SQLEnum(QuestionType),
        nullable=False
    )

    question_text = Column(Text, nullable=False)

    marks = Column(
        Integer,
        nullable=False,
        comment="Marks awarded for a fully correct answer"
    )

    paper = relationship(
        "QuestionPaper",
        back_populates="questions",
        lazy="raise"
    )

    options = relationship(
        "QuestionOption",
        back_populates="question",
        cascade="all, delete-orphan",
        order_by="QuestionOption.id",
        lazy="selectin"
    )

    __table_args__ = (
        Index("ix_question_paper_position", "paper_id", "position"),
    )

    def __repr__(self):
        return f"<Question(id={self.id}, type={self.question_type}, marks={self.marks})>"

    def is_objective(self) -> bool:
        return self.question_type == QuestionType.OBJECTIVE

    def option_by_id(self, option_id: int):
        return next((o for o in self.options if o.id == option_id), None)

    def to_dict(self, include_correct: bool = False) -> dict:
        return {
            "id": self.id,
            "position": self.position,
            "question_type": self.question_type.value,
            "question_text": self.question_text,
            "marks": self.marks,
            "options": [o.to_dict(include_correct=include_correct) for o in self.options],
        }


class QuestionOption(BaseModel):
    __tablename__ = "question_options"

    question_id = Column(
        Integer,
        ForeignKey("questions.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    option_text = Column(Text, nullable=False)

    is_correct = Column(
        Boolean,
        nullable=False,
        default=False
    )

    question = relationship(
        "Question",
        back_populates="options",
        lazy="raise"
    )

    def __repr__(self):
        return f"<QuestionOption(id={self.id}, question_id={self.question_id})>"

    def to_dict(self, include_correct: bool = False) -> dict:
        data = {
            "id": self.id,
            "option_text": self.option_text,
        }
        if include_correct:
            data["is_correct"] = self.is_correct
        return data
