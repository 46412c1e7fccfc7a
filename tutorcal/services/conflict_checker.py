# tutorcal/services/conflict_checker.py
"""
Conflict Checker Service for the TutorCal scheduling backend

Decides whether a proposed lesson time overlaps a non-cancelled lesson of
the teacher or of any of the given student records. It guards teacher
scheduling, student self-booking, acceptance and rescheduling.

A failed overlap query is never reported as "no conflict": callers get
``AvailabilityUnverifiedException`` instead.
"""

from dataclasses import dataclass, field
from datetime import datetime
import logging
from typing import Iterable, List, Optional, Sequence, Union

from sqlalchemy.orm import Session

from ..core.exceptions import (
    AvailabilityUnverifiedException,
    BookingConflictException,
    RepositoryException,
    ValidationException,
)
from ..core.timezone_utils import ensure_utc, to_utc_iso
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories import RepositoryFactory
from ..repositories.conflict_checker_repository import ConflictCheckerRepository
from ..repositories.student_repository import StudentRepository
from .base import BaseService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OverlapResult:
    has_conflict: bool
    conflicting_lesson_ids: List[str] = field(default_factory=list)


def _normalize_student_ids(student_ids: Union[None, str, Iterable[Optional[str]]]) -> List[str]:
    if student_ids is None:
        return []
    if isinstance(student_ids, str):
        return [student_ids] if student_ids else []
    return [sid for sid in dict.fromkeys(student_ids) if sid]


class ConflictChecker(BaseService):
    """Service for checking lesson overlaps."""

    def __init__(
        self,
        db: Session,
        repository: Optional[ConflictCheckerRepository] = None,
        student_repository: Optional[StudentRepository] = None,
    ):
        super().__init__(db)
        self.logger = logging.getLogger(__name__)
        self.repository = repository or RepositoryFactory.create_conflict_checker_repository(db)
        self.student_repository = (
            student_repository or RepositoryFactory.create_student_repository(db)
        )

    @BaseService.measure_operation("check_lesson_overlap")
    def check_lesson_overlap(
        self,
        teacher_id: Optional[str],
        student_ids: Union[None, str, Sequence[Optional[str]]],
        start: datetime,
        end: datetime,
        exclude_lesson_id: Optional[str] = None,
    ) -> OverlapResult:
        """
        Check ``[start, end)`` against the teacher's and students' lessons.

        Args:
            teacher_id: Teacher whose lessons occupy time (optional)
            student_ids: Student record ids, already expanded to siblings
            start: Proposed start instant
            end: Proposed end instant
            exclude_lesson_id: Lesson being rescheduled or accepted

        Returns:
            OverlapResult listing every conflicting lesson id

        Raises:
            ValidationException: when ``end`` is not after ``start``
            AvailabilityUnverifiedException: when a query fails
        """
        start = ensure_utc(start)
        end = ensure_utc(end)
        if end <= start:
            raise ValidationException("End time must be after start time.", code="INVALID_INTERVAL")

        ids = _normalize_student_ids(student_ids)
        try:
            conflicts = self.repository.get_primary_conflicts(
                teacher_id, ids, start, end, exclude_lesson_id
            )
            if ids:
                for lesson_id in self.repository.get_group_conflicts(
                    ids, start, end, exclude_lesson_id
                ):
                    if lesson_id not in conflicts:
                        conflicts.append(lesson_id)
        except RepositoryException as exc:
            self.logger.error(
                "Overlap check failed",
                extra={"teacher_id": teacher_id, "student_ids": ids, "error": str(exc)},
            )
            raise AvailabilityUnverifiedException(
                details={"start": to_utc_iso(start), "end": to_utc_iso(end)}
            ) from exc

        return OverlapResult(has_conflict=bool(conflicts), conflicting_lesson_ids=conflicts)

    @BaseService.measure_operation("resolve_sibling_student_ids")
    def resolve_sibling_student_ids(self, student_ids: Iterable[str]) -> List[str]:
        """
        Expand student record ids to every record of the same learner.

        Raises:
            AvailabilityUnverifiedException: when the lookup fails
        """
        try:
            return self.student_repository.get_sibling_ids(_normalize_student_ids(student_ids))
        except RepositoryException as exc:
            self.logger.error("Sibling lookup failed: %s", exc)
            raise AvailabilityUnverifiedException() from exc

    def ensure_no_conflict(
        self,
        teacher_id: Optional[str],
        student_ids: Union[None, str, Sequence[Optional[str]]],
        start: datetime,
        end: datetime,
        exclude_lesson_id: Optional[str] = None,
        *,
        message: Optional[str] = None,
    ) -> None:
        """Raise ``BookingConflictException`` when the proposed time is taken."""
        result = self.check_lesson_overlap(teacher_id, student_ids, start, end, exclude_lesson_id)
        if result.has_conflict:
            prometheus_metrics.inc_booking_conflict("overlap_check")
            self.logger.info(
                "Lesson overlap rejected",
                extra={"teacher_id": teacher_id, "conflicts": result.conflicting_lesson_ids},
            )
            raise BookingConflictException(
                message,
                details={
                    "start": to_utc_iso(ensure_utc(start)),
                    "end": to_utc_iso(ensure_utc(end)),
                    "conflicting_lesson_ids": result.conflicting_lesson_ids,
                },
            )
