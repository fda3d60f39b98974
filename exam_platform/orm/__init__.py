from .base import Base

from .organization import Organization
from .batch import Batch, batch_students
from .student import Student
from .question_paper import QuestionPaper, Question, QuestionOption, QuestionType
from .exam import Exam, ExamStatus
from .exam_attempt import ExamAttempt, AttemptStatus, CLOSED_STATUSES
from .exam_answer import ExamAnswer


__all__ = [
    "Base",
    "Organization",
    "Batch",
    "batch_students",
    "Student",
    "QuestionPaper",
    "Question",
    "QuestionOption",
    "QuestionType",
    "Exam",
    "ExamStatus",
    "ExamAttempt",
    "AttemptStatus",
    "CLOSED_STATUSES",
    "ExamAnswer",
]
