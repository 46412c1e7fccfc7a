# tutorcal/models/__init__.py
"""
SQLAlchemy models for the TutorCal scheduling backend.

Importing this package registers every table on ``Base.metadata``.
"""

from .availability import AvailabilityRule, RuleKind
from .event_outbox import EventOutbox, EventOutboxStatus
from .lesson import (
    LESSON_TRANSITIONS,
    OCCUPYING_STATUSES,
    Lesson,
    LessonStatus,
    LessonStudent,
    can_transition,
)
from .student import Student
from .user import User, UserRole

__all__ = [
    "AvailabilityRule",
    "EventOutbox",
    "EventOutboxStatus",
    "LESSON_TRANSITIONS",
    "Lesson",
    "LessonStatus",
    "LessonStudent",
    "OCCUPYING_STATUSES",
    "RuleKind",
    "Student",
    "User",
    "UserRole",
    "can_transition",
]
