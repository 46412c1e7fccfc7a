# tutorcal/api/dependencies/auth.py
"""
Authentication dependencies resolving the bearer token to a ``User``.
"""

import logging

from fastapi import Depends
from sqlalchemy.orm import Session

from ...auth import get_current_user_id
from ...core.exceptions import ForbiddenException, UnauthorizedException
from ...models.user import User, UserRole
from ...repositories import RepositoryFactory
from .database import get_db

logger = logging.getLogger(__name__)


def get_current_user(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> User:
    user = RepositoryFactory.create_user_repository(db).get_by_id(user_id)
    if user is None:
        logger.warning("Token subject %s has no user", user_id)
        raise UnauthorizedException("Could not validate credentials", code="INVALID_TOKEN").to_http_exception()
    return user


def require_teacher(current_user: User = Depends(get_current_user)) -> User:
    if current_user.role != UserRole.TEACHER.value:
        raise ForbiddenException("Teacher access required").to_http_exception()
    return current_user


def require_student(current_user: User = Depends(get_current_user)) -> User:
    if current_user.role != UserRole.STUDENT.value:
        raise ForbiddenException("Student access required").to_http_exception()
    return current_user
