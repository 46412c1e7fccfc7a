# tutorcal/routes/student_slots.py
"""Bookable slots offered to the signed-in student."""

import asyncio
from datetime import datetime
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..api.dependencies import get_availability_service, get_lesson_service, require_student
from ..core.exceptions import DomainException
from ..errors import handle_domain_exception
from ..models.user import User
from ..schemas.booking import BookableSlotsResponse
from ..services.availability_service import AvailabilityService
from ..services.lesson_service import LessonService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/student", tags=["student"])


@router.get("/bookable-slots", response_model=BookableSlotsResponse)
async def get_bookable_slots(
    start: datetime = Query(...),
    end: datetime = Query(...),
    teacher_id: Optional[str] = Query(None, description="Required when studying with several teachers"),
    current_user: User = Depends(require_student),
    availability_service: AvailabilityService = Depends(get_availability_service),
    lesson_service: LessonService = Depends(get_lesson_service),
) -> BookableSlotsResponse:
    try:
        student = await asyncio.to_thread(
            lesson_service.resolve_student_record, current_user, teacher_id
        )
        slots = await asyncio.to_thread(
            availability_service.get_bookable_slots, student.teacher_id, start, end
        )
        return BookableSlotsResponse.model_validate({"slots": [slot.to_dict() for slot in slots]})
    except DomainException as e:
        handle_domain_exception(e)
