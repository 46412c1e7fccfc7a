# tutorcal/schemas/lesson.py
"""Lesson request and response schemas."""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import Field, field_validator

from ..models.lesson import LessonStatus
from ._strict_base import ORMResponseModel, StrictModel, StrictRequestModel


class LessonCreate(StrictRequestModel):
    """Teacher-scheduled lesson; ``additional_student_ids`` makes it a group lesson."""

    student_id: str = Field(..., min_length=1)
    additional_student_ids: List[str] = Field(default_factory=list)
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    start_time: datetime
    end_time: datetime
    credits_used: int = 1
    is_recurring: bool = False
    status: Optional[LessonStatus] = None

    @field_validator("additional_student_ids")
    @classmethod
    def _drop_blank_ids(cls, value: List[str]) -> List[str]:
        return [student_id for student_id in value if student_id]

    @field_validator("status")
    @classmethod
    def _initial_status_only(cls, value: Optional[LessonStatus]) -> Optional[LessonStatus]:
        if value not in (None, LessonStatus.PENDING, LessonStatus.CONFIRMED):
            raise ValueError("A new lesson starts as pending or confirmed")
        return value


class LessonUpdate(StrictRequestModel):
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    status: Optional[LessonStatus] = None
    action: Optional[Literal["cancel"]] = None


class LessonStatusAction(StrictRequestModel):
    action: Literal["accept", "decline", "cancel"]


class LessonResponse(ORMResponseModel):
    id: str
    teacher_id: str
    student_id: str
    title: str
    description: Optional[str] = None
    start_time: datetime
    end_time: datetime
    status: str
    is_recurring: bool
    credits_used: int
    cancelled_at: Optional[datetime] = None
    participant_ids: List[str] = Field(default_factory=list)


class LessonEnvelope(StrictModel):
    lesson: LessonResponse
