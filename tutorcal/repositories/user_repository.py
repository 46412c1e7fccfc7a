# tutorcal/repositories/user_repository.py
"""User data access, including the teacher row lock that serializes bookings."""

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.user import User
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class UserRepository(BaseRepository[User]):
    def __init__(self, db: Session):
        super().__init__(db, User)

    def lock_for_scheduling(self, user_id: str) -> Optional[User]:
        """
        Take a row lock on a teacher for the rest of the transaction.

        Every lesson write for one teacher passes through here first, so two
        concurrent check-then-write sequences cannot both see the same free
        time. SQLite has no row locks and ignores ``FOR UPDATE``.
        """
        try:
            return self.db.query(User).filter(User.id == user_id).with_for_update().first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error locking user {user_id}: {str(e)}")
            raise RepositoryException(f"Failed to lock user: {str(e)}") from e
