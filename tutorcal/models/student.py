# tutorcal/models/student.py
"""
Per-teacher student records.

A teacher may create a student record before the learner has an account, so
``user_id`` is nullable. Records that share a ``user_id`` are siblings: the
same learner as seen by different teachers (or duplicated by one teacher).
"""

from sqlalchemy import CheckConstraint, Column, ForeignKey, Index, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base
from .types import UTCDateTime


class Student(Base):
    __tablename__ = "students"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    teacher_id = Column(String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String(26), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    full_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False)
    credits = Column(Integer, nullable=False, default=0)
    created_at = Column(UTCDateTime(), server_default=func.now())
    updated_at = Column(UTCDateTime(), onupdate=func.now())

    teacher = relationship("User", foreign_keys=[teacher_id], back_populates="students")
    user = relationship("User", foreign_keys=[user_id])

    __table_args__ = (
        CheckConstraint("credits >= 0", name="ck_students_credits_non_negative"),
        Index("ix_students_teacher", "teacher_id"),
        Index("ix_students_user", "user_id"),
    )

    def __repr__(self) -> str:
        return f"<Student {self.id} teacher={self.teacher_id} user={self.user_id}>"
