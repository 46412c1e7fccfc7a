# tutorcal/repositories/lesson_repository.py
"""Lesson and lesson participant data access."""

from datetime import datetime
import logging
from typing import Iterable, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from ..core.exceptions import RepositoryException
from ..models.lesson import OCCUPYING_STATUSES, Lesson, LessonStudent
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class LessonRepository(BaseRepository[Lesson]):
    def __init__(self, db: Session):
        super().__init__(db, Lesson)

    def get_with_participants(self, lesson_id: str) -> Optional[Lesson]:
        try:
            return (
                self.db.query(Lesson)
                .options(selectinload(Lesson.participants), selectinload(Lesson.student))
                .filter(Lesson.id == lesson_id)
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading lesson {lesson_id}: {str(e)}")
            raise RepositoryException(f"Failed to load lesson: {str(e)}") from e

    def get_busy_lessons_for_teacher(
        self, teacher_id: str, window_start: datetime, window_end: datetime
    ) -> List[Lesson]:
        """Non-cancelled lessons of a teacher intersecting ``[window_start, window_end)``."""
        try:
            return list(
                self.db.query(Lesson)
                .filter(
                    Lesson.teacher_id == teacher_id,
                    Lesson.status.in_(OCCUPYING_STATUSES),
                    Lesson.start_time < window_end,
                    Lesson.end_time > window_start,
                )
                .order_by(Lesson.start_time)
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading busy lessons: {str(e)}")
            raise RepositoryException(f"Failed to load lessons: {str(e)}") from e

    def add_participants(self, lesson: Lesson, student_ids: Iterable[str]) -> List[LessonStudent]:
        """Insert one participant row per distinct student id."""
        rows = [
            LessonStudent(lesson_id=lesson.id, student_id=student_id)
            for student_id in dict.fromkeys(student_ids)
        ]
        try:
            self.db.add_all(rows)
            self.db.flush()
            return rows
        except IntegrityError as exc:
            self.logger.warning("Integrity error adding lesson participants: %s", exc)
            raise RepositoryException(f"Integrity constraint violated: {exc}") from exc
        except SQLAlchemyError as e:
            self.logger.error(f"Error adding lesson participants: {str(e)}")
            raise RepositoryException(f"Failed to add participants: {str(e)}") from e
