"""Lesson domain events."""
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, ClassVar, Dict, List, Optional

import ulid


def _new_event_id() -> str:
    return str(ulid.ULID())


@dataclass
class LessonCreated:
    """Fired after a teacher schedules a lesson or a student books a slot."""

    event_type: ClassVar[str] = "lesson.created"

    lesson_id: str
    teacher_id: str
    student_ids: List[str]
    start_time: datetime
    end_time: datetime
    status: str
    source: str  # 'teacher' or 'student_booking'

    def idempotency_key(self) -> str:
        return f"{self.event_type}:{self.lesson_id}"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class LessonRescheduled:
    """Fired after a lesson's time changes."""

    event_type: ClassVar[str] = "lesson.rescheduled"

    lesson_id: str
    teacher_id: str
    previous_start_time: datetime
    previous_end_time: datetime
    start_time: datetime
    end_time: datetime
    status: str
    # A lesson can move back to an earlier time; each move is its own event.
    event_id: str = field(default_factory=_new_event_id)

    def idempotency_key(self) -> str:
        return f"{self.event_type}:{self.lesson_id}:{self.event_id}"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class LessonCancelled:
    """Fired after a lesson is cancelled or declined."""

    event_type: ClassVar[str] = "lesson.cancelled"

    lesson_id: str
    teacher_id: str
    cancelled_by: str  # 'teacher' or 'student'
    cancelled_at: datetime
    previous_status: str
    reason: Optional[str] = None

    def idempotency_key(self) -> str:
        return f"{self.event_type}:{self.lesson_id}"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class LessonStatusChanged:
    """Fired after a non-cancelling status transition (accept, complete)."""

    event_type: ClassVar[str] = "lesson.status_changed"

    lesson_id: str
    teacher_id: str
    previous_status: str
    status: str
    changed_by: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    event_id: str = field(default_factory=_new_event_id)

    def idempotency_key(self) -> str:
        return f"{self.event_type}:{self.lesson_id}:{self.event_id}"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
