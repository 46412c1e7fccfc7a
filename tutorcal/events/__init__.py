"""Lesson domain events and the outbox publisher."""

from .lesson_events import LessonCancelled, LessonCreated, LessonRescheduled, LessonStatusChanged
from .publisher import EventPublisher

__all__ = [
    "EventPublisher",
    "LessonCancelled",
    "LessonCreated",
    "LessonRescheduled",
    "LessonStatusChanged",
]
