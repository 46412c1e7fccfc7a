# tutorcal/repositories/student_repository.py
"""Student record data access."""

import logging
from typing import Iterable, List

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.student import Student
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class StudentRepository(BaseRepository[Student]):
    def __init__(self, db: Session):
        super().__init__(db, Student)

    def get_by_ids(self, student_ids: Iterable[str]) -> List[Student]:
        ids = list(dict.fromkeys(student_ids))
        if not ids:
            return []
        try:
            return list(self.db.query(Student).filter(Student.id.in_(ids)).all())
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading students: {str(e)}")
            raise RepositoryException(f"Failed to load students: {str(e)}") from e

    def get_for_user(self, user_id: str) -> List[Student]:
        """All student records linked to one learner account."""
        try:
            return list(
                self.db.query(Student)
                .filter(Student.user_id == user_id)
                .order_by(Student.created_at, Student.id)
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading students for user {user_id}: {str(e)}")
            raise RepositoryException(f"Failed to load students: {str(e)}") from e

    def get_sibling_ids(self, student_ids: Iterable[str]) -> List[str]:
        """
        Expand student record ids to every record of the same learner.

        Records without a ``user_id`` only stand for themselves. The input ids
        always appear in the output, first and in their original order.
        """
        ids = list(dict.fromkeys(student_ids))
        if not ids:
            return []
        try:
            user_ids = [
                row.user_id
                for row in self.db.query(Student.user_id)
                .filter(Student.id.in_(ids), Student.user_id.isnot(None))
                .all()
            ]
            if not user_ids:
                return ids
            siblings = (
                self.db.query(Student.id)
                .filter(or_(Student.user_id.in_(user_ids), Student.id.in_(ids)))
                .order_by(Student.id)
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error resolving sibling students: {str(e)}")
            raise RepositoryException(f"Failed to resolve siblings: {str(e)}") from e
        result = list(ids)
        seen = set(ids)
        for row in siblings:
            if row.id not in seen:
                seen.add(row.id)
                result.append(row.id)
        return result
