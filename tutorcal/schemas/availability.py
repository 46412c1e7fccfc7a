# tutorcal/schemas/availability.py
"""
Availability rule and free-time schemas.

Rule times are ``HH:MM`` strings in the teacher's timezone. Shape checks live
here; cross-field rules (kind invariant, end after start) are enforced by the
availability service so they surface as domain validation errors.
"""

from datetime import date, datetime
from typing import List, Optional

from pydantic import Field

from ..models.availability import RuleKind
from ._strict_base import ORMResponseModel, StrictModel, StrictRequestModel

TIME_PATTERN = r"^\d{1,2}:\d{2}(:\d{2})?$"


class AvailabilityRuleCreate(StrictRequestModel):
    is_recurring: bool = Field(..., description="Weekly rule when true, dated rule otherwise")
    day_of_week: Optional[int] = Field(None, description="0 = Sunday; weekly rules only")
    specific_date: Optional[date] = Field(None, description="Dated rules only")
    start_time: str = Field(..., pattern=TIME_PATTERN, examples=["09:00"])
    end_time: str = Field(..., pattern=TIME_PATTERN, examples=["17:00", "24:00"])


class AvailabilityRuleUpdate(StrictRequestModel):
    is_recurring: Optional[bool] = None
    day_of_week: Optional[int] = None
    specific_date: Optional[date] = None
    start_time: Optional[str] = Field(None, pattern=TIME_PATTERN)
    end_time: Optional[str] = Field(None, pattern=TIME_PATTERN)


class AvailabilityRuleResponse(ORMResponseModel):
    id: str
    teacher_id: str
    is_recurring: bool
    kind: RuleKind
    day_of_week: Optional[int] = None
    specific_date: Optional[date] = None
    start_time: str
    end_time: str


class AvailabilityRangeResponse(StrictModel):
    start: datetime
    end: datetime
    rule_ids: List[str]
    is_one_time: bool


class FreeRangesResponse(StrictModel):
    ranges: List[AvailabilityRangeResponse]


class CalendarEventResponse(StrictModel):
    id: str
    start: datetime
    end: datetime
    display: str
    backgroundColor: str
    classNames: List[str]


class CalendarEventsResponse(StrictModel):
    events: List[CalendarEventResponse]
