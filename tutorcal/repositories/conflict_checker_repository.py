# tutorcal/repositories/conflict_checker_repository.py
"""
ConflictChecker Repository for the TutorCal scheduling backend

Answers one question: which non-cancelled lessons occupy part of a proposed
``[start, end)`` for a teacher or for a set of student records.

Two queries run because a student can attend a lesson either as its primary
``student_id`` or only through a ``lesson_students`` row (group lessons).
"""

from datetime import datetime
import logging
from typing import List, Optional, Sequence

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.lesson import OCCUPYING_STATUSES, Lesson, LessonStudent
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class ConflictCheckerRepository(BaseRepository[Lesson]):
    """Read-only overlap queries over lessons and their participants."""

    def __init__(self, db: Session):
        super().__init__(db, Lesson)
        self.logger = logging.getLogger(__name__)

    def get_primary_conflicts(
        self,
        teacher_id: Optional[str],
        student_ids: Sequence[str],
        start: datetime,
        end: datetime,
        exclude_lesson_id: Optional[str] = None,
    ) -> List[str]:
        """
        Ids of overlapping lessons owned by ``teacher_id`` or whose primary
        student is one of ``student_ids``.
        """
        participant_filters = []
        if teacher_id:
            participant_filters.append(Lesson.teacher_id == teacher_id)
        if student_ids:
            participant_filters.append(Lesson.student_id.in_(list(student_ids)))
        if not participant_filters:
            return []

        try:
            query = self.db.query(Lesson.id).filter(
                Lesson.status.in_(OCCUPYING_STATUSES),
                Lesson.start_time < end,
                Lesson.end_time > start,
                or_(*participant_filters),
            )
            if exclude_lesson_id:
                query = query.filter(Lesson.id != exclude_lesson_id)
            return [row.id for row in query.order_by(Lesson.start_time).all()]
        except SQLAlchemyError as e:
            self.logger.error(f"Error checking primary lesson conflicts: {str(e)}")
            raise RepositoryException(f"Failed to check lesson conflicts: {str(e)}") from e

    def get_group_conflicts(
        self,
        student_ids: Sequence[str],
        start: datetime,
        end: datetime,
        exclude_lesson_id: Optional[str] = None,
    ) -> List[str]:
        """Ids of overlapping lessons any of ``student_ids`` attends as a participant."""
        if not student_ids:
            return []

        try:
            query = (
                self.db.query(Lesson.id)
                .join(LessonStudent, LessonStudent.lesson_id == Lesson.id)
                .filter(
                    LessonStudent.student_id.in_(list(student_ids)),
                    Lesson.status.in_(OCCUPYING_STATUSES),
                    Lesson.start_time < end,
                    Lesson.end_time > start,
                )
            )
            if exclude_lesson_id:
                query = query.filter(Lesson.id != exclude_lesson_id)
            return [row.id for row in query.distinct().all()]
        except SQLAlchemyError as e:
            self.logger.error(f"Error checking group lesson conflicts: {str(e)}")
            raise RepositoryException(f"Failed to check group lesson conflicts: {str(e)}") from e
