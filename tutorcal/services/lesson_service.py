# tutorcal/services/lesson_service.py
"""
Lesson Service for the TutorCal scheduling backend

Handles every lesson write:
- Teacher scheduling (single and group lessons)
- Student self-booking of bookable slots
- Rescheduling, metadata edits and status transitions
- Cancellation and student accept/decline

Each check-then-write runs in one transaction that first locks the
teacher's row, so two requests for the same teacher are serialized between
the overlap check and the insert. On PostgreSQL the lesson exclusion
constraints back this up; their violations surface as booking conflicts.
"""

from datetime import datetime, timedelta
import logging
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import (
    BookingConflictException,
    ConflictException,
    ForbiddenException,
    LessonStateException,
    NotFoundException,
    RepositoryException,
    SlotUnavailableException,
    ValidationException,
)
from ..core.timezone_utils import ensure_utc, get_user_timezone, local_day_bounds, to_utc_iso, utc_now
from ..events import (
    EventPublisher,
    LessonCancelled,
    LessonCreated,
    LessonRescheduled,
    LessonStatusChanged,
)
from ..models.lesson import RESCHEDULABLE_STATUSES, Lesson, LessonStatus, can_transition
from ..models.student import Student
from ..models.user import User
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories import RepositoryFactory
from ..schemas.booking import BookingRequest
from ..schemas.lesson import LessonCreate, LessonUpdate
from .availability_service import AvailabilityService
from .base import BaseService
from .conflict_checker import ConflictChecker

logger = logging.getLogger(__name__)

TEACHER_CONFLICT_MESSAGE = "This time overlaps another lesson. Please choose a different time."
STUDENT_CONFLICT_MESSAGE = "The student already has a lesson at this time."
STUDENT_SELF_CONFLICT_MESSAGE = "You already have a lesson at this time. Please pick another slot."

TEACHER_OVERLAP_CONSTRAINT = "lessons_no_overlap_per_teacher"
STUDENT_OVERLAP_CONSTRAINT = "lessons_no_overlap_per_student"

STUDENT_ACTIONS = ("accept", "decline", "cancel")


class LessonService(BaseService):
    """
    Service layer for lesson operations.

    Status machine: pending -> confirmed -> completed, with cancelled
    reachable from pending or confirmed. Nothing leaves cancelled or completed.
    """

    def __init__(
        self,
        db: Session,
        conflict_checker: Optional[ConflictChecker] = None,
        availability_service: Optional[AvailabilityService] = None,
        event_publisher: Optional[EventPublisher] = None,
    ):
        super().__init__(db)
        self.logger = logging.getLogger(__name__)
        self.repository = RepositoryFactory.create_lesson_repository(db)
        self.student_repository = RepositoryFactory.create_student_repository(db)
        self.user_repository = RepositoryFactory.create_user_repository(db)
        self.conflict_checker = conflict_checker or ConflictChecker(db)
        self.availability_service = availability_service or AvailabilityService(
            db, retry_reads=False
        )
        self.event_publisher = event_publisher or EventPublisher(
            RepositoryFactory.create_event_outbox_repository(db)
        )

    # Teacher scheduling

    @BaseService.measure_operation("create_lesson")
    def create_lesson(
        self, teacher: User, data: LessonCreate, *, now: Optional[datetime] = None
    ) -> Lesson:
        """
        Schedule a lesson directly as a teacher.

        Every participant record must exist and belong to the teacher. The
        overlap check covers the teacher and all sibling records of every
        participant.

        Raises:
            ValidationException: end not after start, credits below 1
            ConflictException: start not in the future
            NotFoundException: unknown student record
            ForbiddenException: student record of another teacher
            BookingConflictException: overlapping lesson
        """
        self._require_teacher(teacher)
        start = ensure_utc(data.start_time)
        end = ensure_utc(data.end_time)
        now = ensure_utc(now) if now is not None else utc_now()

        if end <= start:
            raise ValidationException("End time must be after start time.", code="INVALID_INTERVAL")
        if start <= now:
            raise ConflictException("Start time must be in the future.", code="START_IN_PAST")
        if data.credits_used < 1:
            raise ValidationException("Credits must be at least 1.", code="INVALID_CREDITS")

        participant_ids = list(dict.fromkeys([data.student_id, *data.additional_student_ids]))
        students = self.student_repository.get_by_ids(participant_ids)
        if len(students) != len(participant_ids):
            raise NotFoundException("One or more students not found", code="STUDENT_NOT_FOUND")
        if any(student.teacher_id != teacher.id for student in students):
            raise ForbiddenException("One or more students not linked to this teacher")

        initial_status = data.status or LessonStatus.PENDING

        with self.transaction():
            self._lock_teacher(teacher.id)
            overlap_ids = self.conflict_checker.resolve_sibling_student_ids(participant_ids)
            self.conflict_checker.ensure_no_conflict(
                teacher.id, overlap_ids, start, end, message=TEACHER_CONFLICT_MESSAGE
            )
            lesson = self._insert_lesson(
                teacher_id=teacher.id,
                student_id=data.student_id,
                participant_ids=participant_ids,
                title=data.title,
                description=data.description,
                start=start,
                end=end,
                status=initial_status,
                credits_used=data.credits_used,
                is_recurring=data.is_recurring,
            )
            self.event_publisher.publish(
                LessonCreated(
                    lesson_id=lesson.id,
                    teacher_id=teacher.id,
                    student_ids=participant_ids,
                    start_time=start,
                    end_time=end,
                    status=lesson.status,
                    source="teacher",
                )
            )

        self.log_operation("create_lesson", lesson_id=lesson.id, teacher_id=teacher.id)
        return lesson

    # Student self-booking

    @BaseService.measure_operation("book_slot")
    def book_slot(
        self,
        student_user: User,
        data: BookingRequest,
        *,
        teacher_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Lesson:
        """
        Book one of the teacher's bookable slots as a student.

        The requested slot must be one of the slots recomputed for its day,
        with both endpoints matching exactly. A lesson may use the whole slot
        or a shorter allowed duration starting at the slot start.

        Raises:
            ValidationException: unlinked student, bad duration, no credits
            SlotUnavailableException: the slot is not bookable any more
            BookingConflictException: the learner already has a lesson then
        """
        student = self.resolve_student_record(student_user, teacher_id)
        slot_start = ensure_utc(data.slotStart)
        slot_end = ensure_utc(data.slotEnd)
        duration = data.durationMinutes
        now = ensure_utc(now) if now is not None else utc_now()

        if slot_end <= slot_start:
            raise ValidationException("Slot end must be after slot start.", code="INVALID_INTERVAL")

        teacher = self.user_repository.get_by_id(student.teacher_id)
        if teacher is None:
            raise NotFoundException("Teacher not found", code="TEACHER_NOT_FOUND")

        with self.transaction():
            self._lock_teacher(teacher.id)

            day_start, day_end = local_day_bounds(slot_start, get_user_timezone(teacher))
            bookable = self.availability_service.get_bookable_slots(
                teacher.id, day_start, day_end, now=now
            )
            if not any(s.start == slot_start and s.end == slot_end for s in bookable):
                prometheus_metrics.inc_booking_conflict("slot_check")
                raise SlotUnavailableException(
                    details={"slotStart": to_utc_iso(slot_start), "slotEnd": to_utc_iso(slot_end)}
                )

            lesson_end = self._resolve_booking_end(slot_start, slot_end, duration)

            if (student.credits or 0) < 1:
                raise ValidationException(
                    "You do not have enough credits to book a lesson.", code="INSUFFICIENT_CREDITS"
                )

            sibling_ids = self.conflict_checker.resolve_sibling_student_ids([student.id])
            self.conflict_checker.ensure_no_conflict(
                teacher.id,
                sibling_ids,
                slot_start,
                lesson_end,
                message=STUDENT_SELF_CONFLICT_MESSAGE,
            )
            lesson = self._insert_lesson(
                teacher_id=teacher.id,
                student_id=student.id,
                participant_ids=[student.id],
                title=f"Lesson with {student.full_name or 'your teacher'}",
                description=None,
                start=slot_start,
                end=lesson_end,
                status=LessonStatus.CONFIRMED,
                credits_used=1,
                is_recurring=False,
            )
            self.event_publisher.publish(
                LessonCreated(
                    lesson_id=lesson.id,
                    teacher_id=teacher.id,
                    student_ids=[student.id],
                    start_time=slot_start,
                    end_time=lesson_end,
                    status=lesson.status,
                    source="student_booking",
                )
            )

        self.log_operation("book_slot", lesson_id=lesson.id, student_id=student.id)
        return lesson

    def resolve_student_record(self, student_user: User, teacher_id: Optional[str] = None) -> Student:
        """
        Find the learner's student record, optionally for a specific teacher.

        A learner studying with several teachers must name the teacher.
        """
        records = self.student_repository.get_for_user(student_user.id)
        if teacher_id is not None:
            records = [record for record in records if record.teacher_id == teacher_id]
        if not records:
            raise ValidationException(
                "Student or teacher relationship not found", code="STUDENT_NOT_LINKED"
            )
        if len({record.teacher_id for record in records}) > 1:
            raise ValidationException(
                "Several teachers found for this student; pass teacher_id.",
                code="TEACHER_REQUIRED",
            )
        return records[0]

    # Teacher updates

    @BaseService.measure_operation("update_lesson")
    def update_lesson(
        self,
        teacher: User,
        lesson_id: str,
        data: LessonUpdate,
        *,
        now: Optional[datetime] = None,
    ) -> Lesson:
        """
        Edit, reschedule, transition or cancel a lesson as its teacher.

        Time changes are allowed only while pending or confirmed; moving a
        confirmed lesson sends it back to pending for re-confirmation.
        """
        now = ensure_utc(now) if now is not None else utc_now()
        fields = data.model_dump(exclude_unset=True)

        if data.action == "cancel" or data.status == LessonStatus.CANCELLED:
            other_fields = sorted(set(fields) - {"action", "status"})
            if data.status not in (None, LessonStatus.CANCELLED):
                other_fields.append("status")
            if other_fields:
                raise LessonStateException(
                    "Cancellation cannot be combined with other changes.",
                    details={"fields": other_fields},
                )
            return self.cancel_lesson(teacher, lesson_id, now=now)

        with self.transaction():
            lesson = self._get_lesson_for_teacher(teacher, lesson_id)
            self._lock_teacher(lesson.teacher_id)
            self.db.refresh(lesson)

            if lesson.status not in RESCHEDULABLE_STATUSES:
                raise LessonStateException(
                    "Cannot update cancelled or completed lessons.", current_status=lesson.status
                )

            current_start = ensure_utc(lesson.start_time)
            current_end = ensure_utc(lesson.end_time)
            new_start = ensure_utc(data.start_time) if data.start_time else current_start
            new_end = ensure_utc(data.end_time) if data.end_time else current_end
            time_changed = new_start != current_start or new_end != current_end

            previous_status = lesson.status
            next_status = previous_status
            requested_status = data.status.value if data.status is not None else None
            if requested_status is not None and requested_status != previous_status:
                if time_changed:
                    raise LessonStateException(
                        "Status cannot change together with the lesson time.",
                        current_status=previous_status,
                    )
                if not can_transition(previous_status, requested_status):
                    raise LessonStateException(
                        f"Cannot change a {previous_status} lesson to {requested_status}.",
                        current_status=previous_status,
                    )
                next_status = requested_status

            updates: Dict[str, Any] = {}
            if time_changed:
                if new_end <= new_start:
                    raise ValidationException(
                        "End time must be after start time.", code="INVALID_INTERVAL"
                    )
                if new_start <= now:
                    raise ConflictException(
                        "Start time must be in the future.", code="START_IN_PAST"
                    )
                overlap_ids = self.conflict_checker.resolve_sibling_student_ids(
                    self._lesson_student_ids(lesson)
                )
                self.conflict_checker.ensure_no_conflict(
                    lesson.teacher_id,
                    overlap_ids,
                    new_start,
                    new_end,
                    exclude_lesson_id=lesson.id,
                    message=TEACHER_CONFLICT_MESSAGE,
                )
                updates["start_time"] = new_start
                updates["end_time"] = new_end
                if previous_status == LessonStatus.CONFIRMED.value:
                    next_status = LessonStatus.PENDING.value
            elif next_status == LessonStatus.CONFIRMED.value and previous_status != next_status:
                # Confirming re-checks the slot: it may have been double-requested while pending.
                overlap_ids = self.conflict_checker.resolve_sibling_student_ids(
                    self._lesson_student_ids(lesson)
                )
                self.conflict_checker.ensure_no_conflict(
                    lesson.teacher_id,
                    overlap_ids,
                    current_start,
                    current_end,
                    exclude_lesson_id=lesson.id,
                    message=TEACHER_CONFLICT_MESSAGE,
                )

            if "title" in fields and data.title is not None:
                updates["title"] = data.title
            if "description" in fields:
                updates["description"] = data.description
            if next_status != previous_status:
                updates["status"] = next_status

            if not updates:
                raise ValidationException("No changes provided.", code="NO_CHANGES")

            self._apply_lesson_updates(lesson, updates)

            if time_changed:
                self.event_publisher.publish(
                    LessonRescheduled(
                        lesson_id=lesson.id,
                        teacher_id=lesson.teacher_id,
                        previous_start_time=current_start,
                        previous_end_time=current_end,
                        start_time=new_start,
                        end_time=new_end,
                        status=lesson.status,
                    )
                )
            elif next_status != previous_status:
                self.event_publisher.publish(
                    LessonStatusChanged(
                        lesson_id=lesson.id,
                        teacher_id=lesson.teacher_id,
                        previous_status=previous_status,
                        status=next_status,
                        changed_by="teacher",
                    )
                )

        return lesson

    @BaseService.measure_operation("cancel_lesson")
    def cancel_lesson(
        self,
        teacher: User,
        lesson_id: str,
        *,
        reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Lesson:
        """Cancel a future pending or confirmed lesson as its teacher."""
        now = ensure_utc(now) if now is not None else utc_now()
        with self.transaction():
            lesson = self._get_lesson_for_teacher(teacher, lesson_id)
            self._lock_teacher(lesson.teacher_id)
            self.db.refresh(lesson)
            self._apply_cancellation(lesson, cancelled_by="teacher", now=now, reason=reason)
        return lesson

    # Student responses

    @BaseService.measure_operation("respond_to_lesson")
    def respond_to_lesson(
        self,
        student_user: User,
        lesson_id: str,
        action: str,
        *,
        now: Optional[datetime] = None,
    ) -> Lesson:
        """
        Accept, decline or cancel a lesson as its student.

        accept: pending -> confirmed (overlap re-checked for the learner)
        decline: pending -> cancelled
        cancel: confirmed -> cancelled
        """
        if action not in STUDENT_ACTIONS:
            raise ValidationException("Invalid action", code="INVALID_ACTION")
        now = ensure_utc(now) if now is not None else utc_now()

        with self.transaction():
            lesson = self.repository.get_with_participants(lesson_id)
            if lesson is None or lesson.student is None or lesson.student.user_id != student_user.id:
                raise NotFoundException("Lesson not found for this student", code="LESSON_NOT_FOUND")
            self._lock_teacher(lesson.teacher_id)
            self.db.refresh(lesson)

            if ensure_utc(lesson.start_time) <= now:
                raise LessonStateException(
                    "Only future lessons can be updated.", current_status=lesson.status
                )

            if action == "accept":
                if lesson.status != LessonStatus.PENDING.value:
                    raise LessonStateException(
                        "Only pending lessons can be accepted.", current_status=lesson.status
                    )
                sibling_ids = [record.id for record in self.student_repository.get_for_user(student_user.id)]
                self.conflict_checker.ensure_no_conflict(
                    lesson.teacher_id,
                    sibling_ids,
                    lesson.start_time,
                    lesson.end_time,
                    exclude_lesson_id=lesson.id,
                    message=STUDENT_SELF_CONFLICT_MESSAGE,
                )
                previous_status = lesson.status
                self._apply_lesson_updates(lesson, {"status": LessonStatus.CONFIRMED.value})
                self.event_publisher.publish(
                    LessonStatusChanged(
                        lesson_id=lesson.id,
                        teacher_id=lesson.teacher_id,
                        previous_status=previous_status,
                        status=lesson.status,
                        changed_by="student",
                    )
                )
            elif action == "decline":
                if lesson.status != LessonStatus.PENDING.value:
                    raise LessonStateException(
                        "Only pending lessons can be declined.", current_status=lesson.status
                    )
                self._apply_cancellation(lesson, cancelled_by="student", now=now, reason="declined")
            else:
                if lesson.status != LessonStatus.CONFIRMED.value:
                    raise LessonStateException(
                        "Only confirmed lessons can be cancelled.", current_status=lesson.status
                    )
                self._apply_cancellation(lesson, cancelled_by="student", now=now)

        self.log_operation("respond_to_lesson", lesson_id=lesson.id, action=action)
        return lesson

    # Private helpers

    def _require_teacher(self, user: User) -> None:
        if not user.is_teacher:
            raise ForbiddenException("Only teachers can schedule lessons")

    def _lock_teacher(self, teacher_id: str) -> User:
        teacher = self.user_repository.lock_for_scheduling(teacher_id)
        if teacher is None:
            raise NotFoundException("Teacher not found", code="TEACHER_NOT_FOUND")
        return teacher

    def _get_lesson_for_teacher(self, teacher: User, lesson_id: str) -> Lesson:
        lesson = self.repository.get_with_participants(lesson_id)
        if lesson is None:
            raise NotFoundException("Lesson not found", code="LESSON_NOT_FOUND")
        if lesson.teacher_id != teacher.id:
            raise ForbiddenException("Not authorized for this lesson")
        return lesson

    @staticmethod
    def _lesson_student_ids(lesson: Lesson) -> List[str]:
        return list(dict.fromkeys([lesson.student_id, *lesson.participant_ids]))

    @staticmethod
    def _resolve_booking_end(slot_start: datetime, slot_end: datetime, duration: int) -> datetime:
        if duration not in settings.allowed_lesson_durations:
            allowed = " or ".join(str(minutes) for minutes in settings.allowed_lesson_durations)
            raise ValidationException(
                f"Unsupported duration. Only {allowed} minutes allowed.", code="INVALID_DURATION"
            )
        lesson_end = slot_start + timedelta(minutes=duration)
        slot_minutes = int((slot_end - slot_start).total_seconds() // 60)
        if duration == slot_minutes and lesson_end != slot_end:
            raise ValidationException(
                "Requested duration does not match the slot.", code="INVALID_DURATION"
            )
        if lesson_end > slot_end:
            raise ValidationException(
                f"Requested {duration}-minute lesson does not fit in the slot.",
                code="INVALID_DURATION",
            )
        return lesson_end

    def _apply_cancellation(
        self, lesson: Lesson, *, cancelled_by: str, now: datetime, reason: Optional[str] = None
    ) -> None:
        if lesson.status not in RESCHEDULABLE_STATUSES:
            raise LessonStateException(
                "Only pending or confirmed lessons can be cancelled.", current_status=lesson.status
            )
        if ensure_utc(lesson.start_time) <= now:
            raise LessonStateException(
                "Only future lessons can be cancelled.", current_status=lesson.status
            )
        previous_status = lesson.status
        self._apply_lesson_updates(
            lesson, {"status": LessonStatus.CANCELLED.value, "cancelled_at": now}
        )
        self.event_publisher.publish(
            LessonCancelled(
                lesson_id=lesson.id,
                teacher_id=lesson.teacher_id,
                cancelled_by=cancelled_by,
                cancelled_at=now,
                previous_status=previous_status,
                reason=reason,
            )
        )

    def _insert_lesson(
        self,
        *,
        teacher_id: str,
        student_id: str,
        participant_ids: Sequence[str],
        title: str,
        description: Optional[str],
        start: datetime,
        end: datetime,
        status: LessonStatus,
        credits_used: int,
        is_recurring: bool,
    ) -> Lesson:
        try:
            lesson = self.repository.create(
                teacher_id=teacher_id,
                student_id=student_id,
                title=title,
                description=description,
                start_time=start,
                end_time=end,
                status=status.value,
                credits_used=credits_used,
                is_recurring=is_recurring,
            )
            self.repository.add_participants(lesson, participant_ids)
        except RepositoryException as exc:
            self._raise_conflict_from_repo_error(exc, {"start": to_utc_iso(start), "end": to_utc_iso(end)})
            raise
        return lesson

    def _apply_lesson_updates(self, lesson: Lesson, updates: Dict[str, Any]) -> None:
        try:
            self.repository.update(lesson, **updates)
        except RepositoryException as exc:
            self._raise_conflict_from_repo_error(exc, {"lesson_id": lesson.id})
            raise

    def _raise_conflict_from_repo_error(
        self, exc: RepositoryException, details: Dict[str, Any]
    ) -> None:
        """
        Translate overlap constraint violations into booking conflicts.

        Returns normally when ``exc`` is not an overlap violation.
        """
        cause = exc.__cause__
        if not isinstance(cause, IntegrityError):
            return

        constraint_name = ""
        diag = getattr(cause.orig, "diag", None)
        if diag is not None:
            constraint_name = getattr(diag, "constraint_name", "") or ""
        if not constraint_name:
            text = str(cause.orig)
            for candidate in (TEACHER_OVERLAP_CONSTRAINT, STUDENT_OVERLAP_CONSTRAINT):
                if candidate in text:
                    constraint_name = candidate
                    break

        if constraint_name == TEACHER_OVERLAP_CONSTRAINT:
            message = TEACHER_CONFLICT_MESSAGE
        elif constraint_name == STUDENT_OVERLAP_CONSTRAINT:
            message = STUDENT_CONFLICT_MESSAGE
        else:
            return

        prometheus_metrics.inc_booking_conflict("constraint")
        self.logger.warning("Lesson overlap rejected by %s", constraint_name)
        raise BookingConflictException(
            message, details={**details, "constraint": constraint_name}
        ) from exc
