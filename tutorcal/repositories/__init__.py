# tutorcal/repositories/__init__.py
"""
Repository layer for the TutorCal scheduling backend.

Repositories own every query; services own transactions.
"""

from .availability_repository import AvailabilityRepository
from .base_repository import BaseRepository
from .conflict_checker_repository import ConflictCheckerRepository
from .event_outbox_repository import EventOutboxRepository
from .factory import RepositoryFactory
from .lesson_repository import LessonRepository
from .student_repository import StudentRepository
from .user_repository import UserRepository

__all__ = [
    "AvailabilityRepository",
    "BaseRepository",
    "ConflictCheckerRepository",
    "EventOutboxRepository",
    "LessonRepository",
    "RepositoryFactory",
    "StudentRepository",
    "UserRepository",
]
