# tutorcal/models/availability.py
"""
Availability rules.

A rule is one configured block of time a teacher is generally (weekly) or
specifically (on one date) available. Times are wall-clock strings in the
teacher's timezone; they are only turned into instants by the resolver.
"""

from enum import Enum
import logging

from sqlalchemy import Boolean, CheckConstraint, Column, Date, ForeignKey, Index, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base
from .types import UTCDateTime

logger = logging.getLogger(__name__)


class RuleKind(str, Enum):
    """Discriminator selecting how a rule picks the dates it applies to."""

    RECURRING = "recurring"
    DATED = "dated"


class AvailabilityRule(Base):
    __tablename__ = "availability_rules"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    teacher_id = Column(String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    is_recurring = Column(Boolean, nullable=False, default=True)
    day_of_week = Column(Integer, nullable=True)  # 0 = Sunday
    specific_date = Column(Date, nullable=True)
    start_time = Column(String(8), nullable=False)
    end_time = Column(String(8), nullable=False)
    created_at = Column(UTCDateTime(), server_default=func.now())

    teacher = relationship("User", back_populates="availability_rules")

    __table_args__ = (
        CheckConstraint(
            "(is_recurring AND day_of_week IS NOT NULL AND specific_date IS NULL) OR "
            "(NOT is_recurring AND specific_date IS NOT NULL AND day_of_week IS NULL)",
            name="ck_availability_rules_kind",
        ),
        CheckConstraint(
            "day_of_week IS NULL OR (day_of_week >= 0 AND day_of_week <= 6)",
            name="ck_availability_rules_day_of_week",
        ),
        Index("ix_availability_rules_teacher", "teacher_id"),
    )

    @property
    def kind(self) -> RuleKind:
        return RuleKind.RECURRING if self.is_recurring else RuleKind.DATED

    def __repr__(self) -> str:
        when = f"dow={self.day_of_week}" if self.is_recurring else f"date={self.specific_date}"
        return f"<AvailabilityRule {self.id} {when} {self.start_time}-{self.end_time}>"
