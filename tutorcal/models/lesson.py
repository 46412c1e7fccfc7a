# tutorcal/models/lesson.py
"""
Lesson models.

A lesson occupies ``[start_time, end_time)`` for its teacher and every
participating student record until it is cancelled.
"""

from enum import Enum
import logging
from typing import Dict, FrozenSet, Tuple

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base
from .types import UTCDateTime

logger = logging.getLogger(__name__)


class LessonStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# pending -> confirmed -> completed; cancelled from pending or confirmed.
LESSON_TRANSITIONS: Dict[LessonStatus, FrozenSet[LessonStatus]] = {
    LessonStatus.PENDING: frozenset({LessonStatus.CONFIRMED, LessonStatus.CANCELLED}),
    LessonStatus.CONFIRMED: frozenset({LessonStatus.COMPLETED, LessonStatus.CANCELLED}),
    LessonStatus.COMPLETED: frozenset(),
    LessonStatus.CANCELLED: frozenset(),
}

# Statuses that occupy the teacher's and students' time.
OCCUPYING_STATUSES: Tuple[str, ...] = tuple(
    status.value for status in LessonStatus if status is not LessonStatus.CANCELLED
)
RESCHEDULABLE_STATUSES: FrozenSet[str] = frozenset(
    {LessonStatus.PENDING.value, LessonStatus.CONFIRMED.value}
)


def can_transition(current: str, target: str) -> bool:
    """Whether ``current -> target`` is a legal lesson status change."""
    try:
        return LessonStatus(target) in LESSON_TRANSITIONS[LessonStatus(current)]
    except ValueError:
        return False


class Lesson(Base):
    """
    A scheduled lesson between a teacher and one or more student records.

    ``student_id`` is the primary participant; every participant, the primary
    one included, also has a ``LessonStudent`` row.
    """

    __tablename__ = "lessons"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    teacher_id = Column(String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    student_id = Column(String(26), ForeignKey("students.id", ondelete="CASCADE"), nullable=False)
    title = Column(String(255), nullable=False, default="Lesson")
    description = Column(Text, nullable=True)
    start_time = Column(UTCDateTime(), nullable=False)
    end_time = Column(UTCDateTime(), nullable=False)
    status = Column(String(20), nullable=False, default=LessonStatus.PENDING.value)
    is_recurring = Column(Boolean, nullable=False, default=False)
    credits_used = Column(Integer, nullable=False, default=1)
    cancelled_at = Column(UTCDateTime(), nullable=True)
    created_at = Column(UTCDateTime(), server_default=func.now())
    updated_at = Column(UTCDateTime(), onupdate=func.now())

    teacher = relationship("User", foreign_keys=[teacher_id])
    student = relationship("Student", foreign_keys=[student_id])
    participants = relationship(
        "LessonStudent", back_populates="lesson", cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint("end_time > start_time", name="ck_lessons_time_order"),
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'completed', 'cancelled')",
            name="ck_lessons_status",
        ),
        CheckConstraint("credits_used >= 1", name="ck_lessons_credits_used"),
        Index("ix_lessons_teacher_window", "teacher_id", "start_time", "end_time"),
        Index("ix_lessons_student_window", "student_id", "start_time", "end_time"),
    )

    @property
    def participant_ids(self) -> list[str]:
        return [row.student_id for row in self.participants]

    def __repr__(self) -> str:
        return f"<Lesson {self.id} {self.start_time}-{self.end_time} status={self.status}>"


class LessonStudent(Base):
    """Participant row; one per student record attending a lesson."""

    __tablename__ = "lesson_students"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    lesson_id = Column(String(26), ForeignKey("lessons.id", ondelete="CASCADE"), nullable=False)
    student_id = Column(String(26), ForeignKey("students.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(UTCDateTime(), server_default=func.now())

    lesson = relationship("Lesson", back_populates="participants")
    student = relationship("Student")

    __table_args__ = (
        UniqueConstraint("lesson_id", "student_id", name="uq_lesson_students_pair"),
        Index("ix_lesson_students_student", "student_id"),
    )
