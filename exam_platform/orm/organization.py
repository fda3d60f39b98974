"""
exam_platform/orm/organization.py
Organization: owner of batches, question papers and exams.
"""
from sqlalchemy import Column, String

from exam_platform.orm.base import BaseModel


class Organization(BaseModel):
    __tablename__ = "organizations"

    name = Column(
        String(255),
        nullable=False,
        comment="Display name of the organization"
    )

    def __repr__(self):
        return f"<Organization(id={self.id}, name={self.name!r})>"

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name}
