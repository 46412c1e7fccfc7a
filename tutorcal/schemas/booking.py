# tutorcal/schemas/booking.py
"""Student self-booking schemas. Field names follow the calendar client (camelCase)."""

from datetime import datetime
from typing import List

from pydantic import Field

from ._strict_base import StrictModel, StrictRequestModel


class BookableSlotResponse(StrictModel):
    startTime: str
    endTime: str


class BookableSlotsResponse(StrictModel):
    slots: List[BookableSlotResponse]


class BookingRequest(StrictRequestModel):
    slotStart: datetime
    slotEnd: datetime
    durationMinutes: int = Field(..., gt=0)
