"""
exam_platform/orm/student.py
Student profile. Identity/authentication lives outside this service.
"""
from sqlalchemy import Column, Integer, String, ForeignKey
from sqlalchemy.orm import relationship

from exam_platform.orm.base import BaseModel
from exam_platform.orm.batch import batch_students


class Student(BaseModel):
    __tablename__ = "students"

    organization_id = Column(
        Integer,
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Organization the student is enrolled with"
    )

    full_name = Column(String(255), nullable=False)

    email = Column(
        String(255),
        nullable=False,
        unique=True,
        index=True
    )

    batches = relationship(
        "Batch",
        secondary=batch_students,
        back_populates="students",
        lazy="selectin"
    )

    def __repr__(self):
        return f"<Student(id={self.id}, email={self.email!r})>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "full_name": self.full_name,
            "email": self.email,
        }
