# tutorcal/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.
"""

from fastapi import Depends
from sqlalchemy.orm import Session

from ...services.availability_service import AvailabilityService
from ...services.lesson_service import LessonService
from .database import get_db


def get_availability_service(db: Session = Depends(get_db)) -> AvailabilityService:
    return AvailabilityService(db)


def get_lesson_service(db: Session = Depends(get_db)) -> LessonService:
    """Lesson service wired with its own conflict checker and outbox publisher."""
    return LessonService(db)
