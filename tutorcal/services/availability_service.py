# tutorcal/services/availability_service.py
"""
Availability Service for the TutorCal scheduling backend

Manages teacher availability rules and composes the resolver with lesson
data to answer "when is this teacher free?" for calendars and booking.
"""

from datetime import datetime, timedelta
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple, TypeVar

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import (
    AvailabilityUnverifiedException,
    ForbiddenException,
    NotFoundException,
    RepositoryException,
    ValidationException,
)
from ..core.timezone_utils import (
    ensure_utc,
    get_user_timezone,
    local_date,
    local_day_bounds,
    start_of_local_day,
    utc_now,
)
from ..database import with_db_retry
from ..models.availability import AvailabilityRule
from ..models.user import User
from ..repositories import RepositoryFactory
from ..utils.intervals import Interval
from ..utils.time_of_day import MINUTES_PER_DAY, format_time_of_day, parse_time_of_day
from .availability_resolver import (
    AvailabilityRange,
    BookableSlot,
    CalendarBackgroundEvent,
    filter_conflicting_slots,
    generate_bookable_slots,
    get_availability_ranges,
    lessons_to_busy_intervals,
    subtract_busy_from_availability,
    to_calendar_background_events,
)
from .base import BaseService

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Upper bound on a single query window; keeps day expansion bounded.
MAX_WINDOW_DAYS = 366
# How far slot generation looks past the window for the true edges of a free range.
SLOT_RANGE_LOOKAROUND_DAYS = 7


class AvailabilityService(BaseService):
    """
    Service for availability rule management and free-time computation.

    Rules are interpreted in the owning teacher's timezone; every computed
    range and slot is a UTC instant pair.
    """

    def __init__(self, db: Session, *, retry_reads: bool = True):
        super().__init__(db)
        self.logger = logging.getLogger(__name__)
        # Lesson writes reuse this service inside their locked transaction,
        # where a retried read would run on a fresh connection without the lock.
        self.retry_reads = retry_reads
        self.repository = RepositoryFactory.create_availability_repository(db)
        self.lesson_repository = RepositoryFactory.create_lesson_repository(db)
        self.user_repository = RepositoryFactory.create_user_repository(db)

    # Rule management

    @BaseService.measure_operation("list_rules")
    def list_rules(self, teacher: User) -> List[AvailabilityRule]:
        return self.repository.get_rules_for_teacher(teacher.id)

    @BaseService.measure_operation("create_rule")
    def create_rule(self, teacher: User, data: Dict[str, Any]) -> AvailabilityRule:
        """
        Create an availability rule for ``teacher``.

        Raises:
            ValidationException: malformed times, end not after start, or
                inconsistent weekly/dated fields
        """
        fields = self._validate_rule_fields(
            is_recurring=data.get("is_recurring"),
            day_of_week=data.get("day_of_week"),
            specific_date=data.get("specific_date"),
            start_time=data.get("start_time"),
            end_time=data.get("end_time"),
        )
        with self.transaction():
            rule = self.repository.create(teacher_id=teacher.id, **fields)
        self.log_operation("create_rule", teacher_id=teacher.id, rule_id=rule.id)
        return rule

    @BaseService.measure_operation("update_rule")
    def update_rule(self, teacher: User, rule_id: str, data: Dict[str, Any]) -> AvailabilityRule:
        rule = self._get_owned_rule(teacher, rule_id)
        merged = {
            "is_recurring": rule.is_recurring,
            "day_of_week": rule.day_of_week,
            "specific_date": rule.specific_date,
            "start_time": rule.start_time,
            "end_time": rule.end_time,
        }
        merged.update({key: value for key, value in data.items() if key in merged})
        # Switching kind clears the field that no longer applies.
        if "is_recurring" in data:
            if merged["is_recurring"] and "specific_date" not in data:
                merged["specific_date"] = None
            if not merged["is_recurring"] and "day_of_week" not in data:
                merged["day_of_week"] = None

        fields = self._validate_rule_fields(**merged)
        with self.transaction():
            rule = self.repository.update(rule, **fields)
        return rule

    @BaseService.measure_operation("delete_rule")
    def delete_rule(self, teacher: User, rule_id: str) -> None:
        rule = self._get_owned_rule(teacher, rule_id)
        with self.transaction():
            self.repository.delete(rule)
        self.log_operation("delete_rule", teacher_id=teacher.id, rule_id=rule_id)

    # Free time

    @BaseService.measure_operation("get_free_ranges")
    def get_free_ranges(
        self, teacher_id: str, start: datetime, end: datetime
    ) -> List[AvailabilityRange]:
        """
        Availability minus every non-cancelled lesson of the teacher in ``[start, end)``.
        """
        start, end = self._validate_window(start, end)
        teacher = self._get_teacher(teacher_id)
        return self._compute_free_ranges(teacher, start, end)

    @BaseService.measure_operation("get_calendar_events")
    def get_calendar_events(
        self, teacher_id: str, start: datetime, end: datetime
    ) -> List[CalendarBackgroundEvent]:
        return to_calendar_background_events(self.get_free_ranges(teacher_id, start, end))

    @BaseService.measure_operation("get_bookable_slots")
    def get_bookable_slots(
        self,
        teacher_id: str,
        start: datetime,
        end: datetime,
        *,
        now: Optional[datetime] = None,
        slot_minutes: Optional[int] = None,
        min_advance_hours: Optional[int] = None,
        max_booking_days: Optional[int] = None,
    ) -> List[BookableSlot]:
        """
        Fixed-length slots a student may book.

        The window is clamped to ``[now + min_advance_hours, now + max_booking_days]``
        and widened to whole local days of the teacher. Slots are carved from
        the start of each free range even when that range begins before the
        window (availability merged across midnight), so the grid does not
        depend on where the window starts. Slots are kept when their start
        lies inside the window and the clamp bounds.
        """
        start = ensure_utc(start)
        end = ensure_utc(end)
        if end < start:
            raise ValidationException("End must not be before start.", code="INVALID_WINDOW")

        slot_minutes = slot_minutes or settings.lesson_slot_minutes
        if min_advance_hours is None:
            min_advance_hours = settings.min_advance_booking_hours
        if max_booking_days is None:
            max_booking_days = settings.max_booking_days

        now = ensure_utc(now) if now is not None else utc_now()
        min_start = now + timedelta(hours=min_advance_hours)
        max_start = now + timedelta(days=max_booking_days)

        teacher = self._get_teacher(teacher_id)
        tz = get_user_timezone(teacher)

        query_start = start_of_local_day(local_date(max(start, min_start), tz), tz)
        query_end = local_day_bounds(min(end, max_start), tz)[1]
        if query_start >= query_end:
            return []

        free_ranges, busy = self._load_whole_free_ranges(teacher, query_start, query_end)
        slots = generate_bookable_slots(free_ranges, slot_minutes)
        slots = filter_conflicting_slots(slots, busy)
        return [
            slot
            for slot in slots
            if query_start <= slot.start < query_end and min_start <= slot.start <= max_start
        ]

    # Private helpers

    def _compute_free_ranges(
        self, teacher: User, start: datetime, end: datetime
    ) -> List[AvailabilityRange]:
        free_ranges, _ = self._load_free_ranges_and_busy(teacher, start, end)
        return free_ranges

    def _load_free_ranges_and_busy(
        self, teacher: User, start: datetime, end: datetime
    ) -> Tuple[List[AvailabilityRange], List[Interval]]:
        tz = get_user_timezone(teacher)
        try:
            rules = self._read(
                "load_availability_rules",
                lambda: self.repository.get_rules_for_teacher(
                    teacher.id,
                    start_date=local_date(start, tz),
                    end_date=local_date(end, tz),
                ),
            )
            lessons = self._read(
                "load_busy_lessons",
                lambda: self.lesson_repository.get_busy_lessons_for_teacher(teacher.id, start, end),
            )
        except RepositoryException as exc:
            raise AvailabilityUnverifiedException("Failed to load availability") from exc

        busy = lessons_to_busy_intervals(lessons)
        ranges = get_availability_ranges(rules, start, end, tz)
        return subtract_busy_from_availability(ranges, busy), busy

    def _load_whole_free_ranges(
        self, teacher: User, start: datetime, end: datetime
    ) -> Tuple[List[AvailabilityRange], List[Interval]]:
        """Free ranges for a window, widened by whole local days until no range is cut at an edge."""
        tz = get_user_timezone(teacher)
        free_ranges, busy = self._load_free_ranges_and_busy(teacher, start, end)
        for _ in range(SLOT_RANGE_LOOKAROUND_DAYS):
            cut_at_start = bool(free_ranges) and free_ranges[0].start <= start
            cut_at_end = bool(free_ranges) and free_ranges[-1].end >= end
            if not (cut_at_start or cut_at_end):
                break
            if cut_at_start:
                start = start_of_local_day(local_date(start, tz) - timedelta(days=1), tz)
            if cut_at_end:
                end = start_of_local_day(local_date(end, tz) + timedelta(days=1), tz)
            free_ranges, busy = self._load_free_ranges_and_busy(teacher, start, end)
        return free_ranges, busy

    def _read(self, op_name: str, func: Callable[[], T]) -> T:
        if self.retry_reads:
            return with_db_retry(op_name, func)
        return func()

    def _validate_window(self, start: datetime, end: datetime) -> Tuple[datetime, datetime]:
        start = ensure_utc(start)
        end = ensure_utc(end)
        if end <= start:
            raise ValidationException("End must be after start.", code="INVALID_WINDOW")
        if end - start > timedelta(days=MAX_WINDOW_DAYS):
            raise ValidationException(
                f"Window may span at most {MAX_WINDOW_DAYS} days.", code="WINDOW_TOO_LARGE"
            )
        return start, end

    def _get_teacher(self, teacher_id: str) -> User:
        teacher = self.user_repository.get_by_id(teacher_id)
        if teacher is None or not teacher.is_teacher:
            raise NotFoundException("Teacher not found", code="TEACHER_NOT_FOUND")
        return teacher

    def _get_owned_rule(self, teacher: User, rule_id: str) -> AvailabilityRule:
        rule = self.repository.get_by_id(rule_id)
        if rule is None:
            raise NotFoundException("Availability rule not found", code="RULE_NOT_FOUND")
        if rule.teacher_id != teacher.id:
            raise ForbiddenException("Availability rule belongs to another teacher")
        return rule

    @staticmethod
    def _validate_rule_fields(
        *,
        is_recurring: Optional[bool],
        day_of_week: Optional[int],
        specific_date: Any,
        start_time: Optional[str],
        end_time: Optional[str],
    ) -> Dict[str, Any]:
        if is_recurring is None:
            raise ValidationException("is_recurring is required", code="INVALID_RULE")
        if is_recurring:
            if day_of_week is None or specific_date is not None:
                raise ValidationException(
                    "Weekly rules need day_of_week and no specific_date", code="INVALID_RULE"
                )
            if not 0 <= day_of_week <= 6:
                raise ValidationException(
                    "day_of_week must be between 0 (Sunday) and 6", code="INVALID_RULE"
                )
        elif specific_date is None or day_of_week is not None:
            raise ValidationException(
                "Dated rules need specific_date and no day_of_week", code="INVALID_RULE"
            )

        if start_time is None or end_time is None:
            raise ValidationException("start_time and end_time are required", code="INVALID_RULE")
        try:
            start_minutes = parse_time_of_day(start_time)
            end_minutes = parse_time_of_day(end_time)
        except ValueError as exc:
            raise ValidationException(str(exc), code="INVALID_TIME") from exc
        if start_minutes >= MINUTES_PER_DAY or end_minutes <= start_minutes:
            raise ValidationException("End time must be after start time.", code="INVALID_TIME")

        return {
            "is_recurring": bool(is_recurring),
            "day_of_week": day_of_week if is_recurring else None,
            "specific_date": None if is_recurring else specific_date,
            "start_time": format_time_of_day(start_minutes),
            "end_time": format_time_of_day(end_minutes),
        }
