# tutorcal/routes/teacher_lessons.py
"""Teacher lesson scheduling and management."""

import asyncio
import logging

from fastapi import APIRouter, Depends, status

from ..api.dependencies import get_lesson_service, require_teacher
from ..core.exceptions import DomainException
from ..errors import handle_domain_exception
from ..models.user import User
from ..schemas.lesson import LessonCreate, LessonEnvelope, LessonResponse, LessonUpdate
from ..services.lesson_service import LessonService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/teacher/lessons", tags=["teacher-lessons"])


@router.post("", response_model=LessonEnvelope, status_code=status.HTTP_201_CREATED)
async def create_lesson(
    payload: LessonCreate,
    current_user: User = Depends(require_teacher),
    service: LessonService = Depends(get_lesson_service),
) -> LessonEnvelope:
    try:
        lesson = await asyncio.to_thread(service.create_lesson, current_user, payload)
        return LessonEnvelope(lesson=LessonResponse.model_validate(lesson))
    except DomainException as e:
        handle_domain_exception(e)


@router.patch("/{lesson_id}", response_model=LessonEnvelope)
async def update_lesson(
    lesson_id: str,
    payload: LessonUpdate,
    current_user: User = Depends(require_teacher),
    service: LessonService = Depends(get_lesson_service),
) -> LessonEnvelope:
    """Reschedule, edit, change status, or cancel (``action: "cancel"``)."""
    try:
        lesson = await asyncio.to_thread(service.update_lesson, current_user, lesson_id, payload)
        return LessonEnvelope(lesson=LessonResponse.model_validate(lesson))
    except DomainException as e:
        handle_domain_exception(e)
