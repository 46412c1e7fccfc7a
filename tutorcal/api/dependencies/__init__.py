"""
FastAPI dependencies: database sessions, services and the current user.
"""

from .auth import get_current_user, require_student, require_teacher
from .database import get_db
from .services import get_availability_service, get_lesson_service

__all__ = [
    "get_availability_service",
    "get_current_user",
    "get_db",
    "get_lesson_service",
    "require_student",
    "require_teacher",
]
