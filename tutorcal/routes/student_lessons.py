# tutorcal/routes/student_lessons.py
"""Student responses to lessons: accept, decline, cancel."""

import asyncio
import logging

from fastapi import APIRouter, Depends

from ..api.dependencies import get_lesson_service, require_student
from ..core.exceptions import DomainException
from ..errors import handle_domain_exception
from ..models.user import User
from ..schemas.lesson import LessonEnvelope, LessonResponse, LessonStatusAction
from ..services.lesson_service import LessonService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/student/lessons", tags=["student"])


@router.post("/{lesson_id}/status", response_model=LessonEnvelope)
async def update_lesson_status(
    lesson_id: str,
    payload: LessonStatusAction,
    current_user: User = Depends(require_student),
    service: LessonService = Depends(get_lesson_service),
) -> LessonEnvelope:
    try:
        lesson = await asyncio.to_thread(
            service.respond_to_lesson, current_user, lesson_id, payload.action
        )
        return LessonEnvelope(lesson=LessonResponse.model_validate(lesson))
    except DomainException as e:
        handle_domain_exception(e)
