# tutorcal/routes/bookings.py
"""Student self-booking."""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from ..api.dependencies import get_lesson_service, require_student
from ..core.exceptions import DomainException
from ..errors import handle_domain_exception
from ..models.user import User
from ..schemas.booking import BookingRequest
from ..schemas.lesson import LessonEnvelope, LessonResponse
from ..services.lesson_service import LessonService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["bookings"])


@router.post("/bookings", response_model=LessonEnvelope, status_code=status.HTTP_201_CREATED)
async def create_booking(
    payload: BookingRequest,
    teacher_id: Optional[str] = Query(None),
    current_user: User = Depends(require_student),
    service: LessonService = Depends(get_lesson_service),
) -> LessonEnvelope:
    """
    Book a slot returned by ``GET /student/bookable-slots``.

    The slot is recomputed server-side; a stale or hand-made slot is
    rejected with 409.
    """
    try:
        lesson = await asyncio.to_thread(
            service.book_slot, current_user, payload, teacher_id=teacher_id
        )
        return LessonEnvelope(lesson=LessonResponse.model_validate(lesson))
    except DomainException as e:
        handle_domain_exception(e)
