"""
exam_platform/orm/batch.py
Batch (cohort) of students. Exams are scheduled per batch.
"""
from sqlalchemy import Column, Integer, String, ForeignKey, Table, DateTime
from sqlalchemy.orm import relationship
from datetime import datetime

from exam_platform.orm.base import Base, BaseModel


batch_students = Table(
    "batch_students",
    Base.metadata,
    Column("batch_id", Integer, ForeignKey("batches.id", ondelete="CASCADE"), primary_key=True),
    Column("student_id", Integer, ForeignKey("students.id", ondelete="CASCADE"), primary_key=True),
    Column("joined_at", DateTime, nullable=False, default=datetime.utcnow),
)


class Batch(BaseModel):
    __tablename__ = "batches"

    organization_id = Column(
        Integer,
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    name = Column(String(255), nullable=False)

    students = relationship(
        "Student",
        secondary=batch_students,
        back_populates="batches",
        lazy="raise"
    )

    def __repr__(self):
        return f"<Batch(id={self.id}, name={self.name!r})>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "name": self.name,
        }
