# tutorcal/models/user.py
"""
User model.

Both teachers and learners sign in as a ``User``. A learner is linked to one
``Student`` record per teacher they study with.
"""

from enum import Enum
import logging

from sqlalchemy import CheckConstraint, Column, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..core.config import settings
from ..database import Base
from .types import UTCDateTime

logger = logging.getLogger(__name__)


class UserRole(str, Enum):
    TEACHER = "teacher"
    STUDENT = "student"
    ADMIN = "admin"


class User(Base):
    """
    Authenticated account.

    Attributes:
        id: ULID primary key
        email: Unique email address
        full_name: Display name
        role: teacher, student or admin
        timezone: IANA timezone used to interpret availability wall-clock times
    """

    __tablename__ = "users"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    email = Column(String(255), unique=True, nullable=False, index=True)
    full_name = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default=UserRole.STUDENT.value)
    timezone = Column(String(64), nullable=False, default=lambda: settings.default_timezone)
    created_at = Column(UTCDateTime(), server_default=func.now())
    updated_at = Column(UTCDateTime(), onupdate=func.now())

    availability_rules = relationship(
        "AvailabilityRule", back_populates="teacher", cascade="all, delete-orphan"
    )
    students = relationship(
        "Student", foreign_keys="Student.teacher_id", back_populates="teacher"
    )

    __table_args__ = (
        CheckConstraint("role IN ('teacher', 'student', 'admin')", name="ck_users_role"),
    )

    @property
    def is_teacher(self) -> bool:
        return self.role == UserRole.TEACHER.value

    def __repr__(self) -> str:
        return f"<User {self.id} {self.email} role={self.role}>"
