# tutorcal/repositories/availability_repository.py
"""Availability rule data access."""

from datetime import date
import logging
from typing import List, Optional

from sqlalchemy import and_, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.availability import AvailabilityRule
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class AvailabilityRepository(BaseRepository[AvailabilityRule]):
    def __init__(self, db: Session):
        super().__init__(db, AvailabilityRule)

    def get_rules_for_teacher(
        self,
        teacher_id: str,
        *,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[AvailabilityRule]:
        """
        Rules of one teacher.

        With a date window, dated rules outside ``[start_date, end_date]`` are
        left out; recurring rules are always returned.
        """
        try:
            query = self.db.query(AvailabilityRule).filter(AvailabilityRule.teacher_id == teacher_id)
            if start_date is not None and end_date is not None:
                query = query.filter(
                    or_(
                        AvailabilityRule.is_recurring.is_(True),
                        and_(
                            AvailabilityRule.specific_date >= start_date,
                            AvailabilityRule.specific_date <= end_date,
                        ),
                    )
                )
            return list(
                query.order_by(
                    AvailabilityRule.is_recurring.desc(),
                    AvailabilityRule.day_of_week,
                    AvailabilityRule.specific_date,
                    AvailabilityRule.start_time,
                ).all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading availability rules: {str(e)}")
            raise RepositoryException(f"Failed to load availability rules: {str(e)}") from e
