"""Lesson writes: teacher scheduling, student booking, updates and responses."""

from datetime import timedelta
from types import SimpleNamespace

from pydantic import ValidationError
import pytest
from sqlalchemy.exc import IntegrityError

from tests.factories import create_lesson, create_rule, create_student, create_user, utc
from tutorcal.core.exceptions import (
    BookingConflictException,
    ConflictException,
    ForbiddenException,
    LessonStateException,
    NotFoundException,
    RepositoryException,
    SlotUnavailableException,
    ValidationException,
)
from tutorcal.models import EventOutbox, Lesson, LessonStatus, UserRole
from tutorcal.schemas.booking import BookingRequest
from tutorcal.schemas.lesson import LessonCreate, LessonUpdate
from tutorcal.services.lesson_service import (
    STUDENT_SELF_CONFLICT_MESSAGE,
    TEACHER_CONFLICT_MESSAGE,
    LessonService,
)

NOW = utc(2026, 5, 25, 8)


def t(hour, minute=0):
    """2026-06-01 is a Monday."""
    return utc(2026, 6, 1, hour, minute)


def events_for(db, lesson_id):
    return (
        db.query(EventOutbox)
        .filter(EventOutbox.aggregate_id == lesson_id)
        .order_by(EventOutbox.created_at, EventOutbox.id)
        .all()
    )


@pytest.fixture
def service(db):
    return LessonService(db)


@pytest.fixture
def monday_hours(db, test_teacher):
    return create_rule(db, test_teacher, start="09:00", end="17:00", day_of_week=1)


def booking(start, end, minutes=60):
    return BookingRequest(slotStart=start, slotEnd=end, durationMinutes=minutes)


class TestCreateLesson:
    def test_creates_pending_lesson_and_event(self, db, service, test_teacher, student_record):
        lesson = service.create_lesson(
            test_teacher,
            LessonCreate(student_id=student_record.id, title="Algebra", start_time=t(10), end_time=t(11)),
            now=NOW,
        )

        assert lesson.status == LessonStatus.PENDING.value
        assert lesson.participant_ids == [student_record.id]
        events = events_for(db, lesson.id)
        assert [e.event_type for e in events] == ["lesson.created"]
        assert events[0].payload["source"] == "teacher"
        assert events[0].payload["student_ids"] == [student_record.id]

    def test_teacher_may_confirm_directly(self, service, test_teacher, student_record):
        lesson = service.create_lesson(
            test_teacher,
            LessonCreate(
                student_id=student_record.id,
                title="Algebra",
                start_time=t(10),
                end_time=t(11),
                status=LessonStatus.CONFIRMED,
            ),
            now=NOW,
        )
        assert lesson.status == LessonStatus.CONFIRMED.value

    @pytest.mark.parametrize("status", [LessonStatus.COMPLETED, LessonStatus.CANCELLED])
    def test_new_lesson_cannot_start_completed_or_cancelled(self, student_record, status):
        with pytest.raises(ValidationError):
            LessonCreate(
                student_id=student_record.id,
                title="Algebra",
                start_time=t(10),
                end_time=t(11),
                status=status,
            )

    def test_group_lesson_records_every_participant(self, db, service, test_teacher, student_record):
        friend = create_student(db, test_teacher, full_name="Friend Student")
        lesson = service.create_lesson(
            test_teacher,
            LessonCreate(
                student_id=student_record.id,
                additional_student_ids=[friend.id, student_record.id],
                title="Group",
                start_time=t(10),
                end_time=t(11),
            ),
            now=NOW,
        )
        assert sorted(lesson.participant_ids) == sorted([student_record.id, friend.id])

    def test_overlap_with_teacher_lesson_is_rejected(self, db, service, test_teacher, student_record):
        create_lesson(db, test_teacher, student_record, t(10, 30), t(11, 30), status=LessonStatus.PENDING)
        other = create_student(db, test_teacher, full_name="Other Student")

        with pytest.raises(BookingConflictException) as exc_info:
            service.create_lesson(
                test_teacher,
                LessonCreate(student_id=other.id, title="Clash", start_time=t(10), end_time=t(11)),
                now=NOW,
            )
        assert exc_info.value.message == TEACHER_CONFLICT_MESSAGE
        assert db.query(Lesson).count() == 1

    def test_back_to_back_lessons_are_allowed(self, db, service, test_teacher, student_record):
        create_lesson(db, test_teacher, student_record, t(10), t(11))
        lesson = service.create_lesson(
            test_teacher,
            LessonCreate(student_id=student_record.id, title="Next", start_time=t(11), end_time=t(12)),
            now=NOW,
        )
        assert lesson.start_time == t(11)

    def test_start_in_past_is_a_conflict(self, service, test_teacher, student_record):
        with pytest.raises(ConflictException) as exc_info:
            service.create_lesson(
                test_teacher,
                LessonCreate(student_id=student_record.id, title="Late", start_time=t(10), end_time=t(11)),
                now=t(10),
            )
        assert exc_info.value.code == "START_IN_PAST"

    def test_inverted_times_are_invalid(self, service, test_teacher, student_record):
        with pytest.raises(ValidationException):
            service.create_lesson(
                test_teacher,
                LessonCreate(student_id=student_record.id, title="Bad", start_time=t(11), end_time=t(10)),
                now=NOW,
            )

    def test_unknown_student(self, service, test_teacher):
        with pytest.raises(NotFoundException):
            service.create_lesson(
                test_teacher,
                LessonCreate(student_id="missing", title="Ghost", start_time=t(10), end_time=t(11)),
                now=NOW,
            )

    def test_student_of_another_teacher(self, db, service, student_record):
        other_teacher = create_user(db, email="other@example.com", role=UserRole.TEACHER)
        with pytest.raises(ForbiddenException):
            service.create_lesson(
                other_teacher,
                LessonCreate(student_id=student_record.id, title="Poach", start_time=t(10), end_time=t(11)),
                now=NOW,
            )

    def test_only_teachers_schedule(self, service, test_student_user, student_record):
        with pytest.raises(ForbiddenException):
            service.create_lesson(
                test_student_user,
                LessonCreate(student_id=student_record.id, title="Self", start_time=t(10), end_time=t(11)),
                now=NOW,
            )


class TestBookSlot:
    def test_books_full_slot(self, db, service, test_student_user, student_record, monday_hours):
        lesson = service.book_slot(test_student_user, booking(t(9), t(10)), now=NOW)

        assert lesson.status == LessonStatus.CONFIRMED.value
        assert (lesson.start_time, lesson.end_time) == (t(9), t(10))
        assert lesson.student_id == student_record.id
        assert lesson.title == "Lesson with Sam Student"
        events = events_for(db, lesson.id)
        assert events[0].payload["source"] == "student_booking"

    def test_books_half_hour_inside_slot(self, service, test_student_user, student_record, monday_hours):
        lesson = service.book_slot(test_student_user, booking(t(13), t(14), minutes=30), now=NOW)
        assert (lesson.start_time, lesson.end_time) == (t(13), t(13, 30))

    def test_unsupported_duration(self, service, test_student_user, student_record, monday_hours):
        with pytest.raises(ValidationException) as exc_info:
            service.book_slot(test_student_user, booking(t(13), t(14), minutes=45), now=NOW)
        assert exc_info.value.code == "INVALID_DURATION"

    def test_slot_must_match_exactly(self, service, test_student_user, student_record, monday_hours):
        with pytest.raises(SlotUnavailableException):
            service.book_slot(test_student_user, booking(t(9, 30), t(10, 30)), now=NOW)

    def test_taken_slot_is_unavailable(self, db, service, test_teacher, test_student_user, student_record, monday_hours):
        walk_in = create_student(db, test_teacher, full_name="Walk In")
        create_lesson(db, test_teacher, walk_in, t(9), t(10), status=LessonStatus.PENDING)

        with pytest.raises(SlotUnavailableException):
            service.book_slot(test_student_user, booking(t(9), t(10)), now=NOW)

    def test_slot_inside_minimum_notice_is_unavailable(self, service, test_student_user, student_record, monday_hours):
        with pytest.raises(SlotUnavailableException):
            service.book_slot(test_student_user, booking(t(9), t(10)), now=t(0))

    def test_learner_busy_with_another_teacher(
        self, db, service, test_student_user, student_record, monday_hours
    ):
        piano_teacher = create_user(db, email="piano@example.com", role=UserRole.TEACHER)
        piano_record = create_student(db, piano_teacher, user=test_student_user)
        create_lesson(db, piano_teacher, piano_record, t(9), t(10))

        with pytest.raises(BookingConflictException) as exc_info:
            service.book_slot(
                test_student_user, booking(t(9), t(10)), teacher_id=student_record.teacher_id, now=NOW
            )
        assert exc_info.value.message == STUDENT_SELF_CONFLICT_MESSAGE

    def test_requires_credits(self, db, service, test_teacher, test_student_user, monday_hours):
        create_student(db, test_teacher, user=test_student_user, credits=0)
        with pytest.raises(ValidationException) as exc_info:
            service.book_slot(test_student_user, booking(t(9), t(10)), now=NOW)
        assert exc_info.value.code == "INSUFFICIENT_CREDITS"

    def test_second_booking_of_same_slot_fails(self, db, service, test_teacher, test_student_user, student_record, monday_hours):
        service.book_slot(test_student_user, booking(t(9), t(10)), now=NOW)

        rival_user = create_user(db, email="rival@example.com")
        create_student(db, test_teacher, user=rival_user, full_name="Rival")
        with pytest.raises(SlotUnavailableException):
            service.book_slot(rival_user, booking(t(9), t(10)), now=NOW)
        assert db.query(Lesson).count() == 1

    def test_books_slot_listed_after_midnight(self, db, service, test_teacher, test_student_user, student_record):
        create_rule(db, test_teacher, start="22:30", end="24:00", day_of_week=1)
        create_rule(db, test_teacher, start="00:00", end="02:00", day_of_week=2)
        listed = service.availability_service.get_bookable_slots(
            test_teacher.id, t(0), utc(2026, 6, 3), now=NOW
        )
        after_midnight = (utc(2026, 6, 2, 0, 30), utc(2026, 6, 2, 1, 30))
        assert after_midnight in [(s.start, s.end) for s in listed]

        lesson = service.book_slot(test_student_user, booking(*after_midnight), now=NOW)

        assert (lesson.start_time, lesson.end_time) == after_midnight


class TestResolveStudentRecord:
    def test_unlinked_learner(self, service, test_student_user):
        with pytest.raises(ValidationException) as exc_info:
            service.resolve_student_record(test_student_user)
        assert exc_info.value.code == "STUDENT_NOT_LINKED"

    def test_several_teachers_need_disambiguation(self, db, service, test_student_user, student_record):
        other_teacher = create_user(db, email="other@example.com", role=UserRole.TEACHER)
        other_record = create_student(db, other_teacher, user=test_student_user)

        with pytest.raises(ValidationException) as exc_info:
            service.resolve_student_record(test_student_user)
        assert exc_info.value.code == "TEACHER_REQUIRED"
        assert service.resolve_student_record(test_student_user, other_teacher.id).id == other_record.id


class TestUpdateLesson:
    def test_reschedule_confirmed_lesson_returns_to_pending(self, db, service, test_teacher, student_record):
        lesson = create_lesson(db, test_teacher, student_record, t(10), t(11))

        updated = service.update_lesson(
            test_teacher, lesson.id, LessonUpdate(start_time=t(14), end_time=t(15)), now=NOW
        )

        assert updated.status == LessonStatus.PENDING.value
        assert (updated.start_time, updated.end_time) == (t(14), t(15))
        assert [e.event_type for e in events_for(db, lesson.id)] == ["lesson.rescheduled"]

    def test_moving_back_and_forth_announces_every_move(self, db, service, test_teacher, student_record):
        lesson = create_lesson(db, test_teacher, student_record, t(9), t(10), status=LessonStatus.PENDING)
        for hour in (11, 9, 11):
            service.update_lesson(
                test_teacher, lesson.id, LessonUpdate(start_time=t(hour), end_time=t(hour + 1)), now=NOW
            )

        moves = [e for e in events_for(db, lesson.id) if e.event_type == "lesson.rescheduled"]
        assert len(moves) == 3
        assert sorted(e.payload["start_time"] for e in moves) == sorted(
            [t(11).isoformat(), t(9).isoformat(), t(11).isoformat()]
        )
        assert len({e.idempotency_key for e in moves}) == 3

    def test_reconfirming_after_reschedule_announces_again(self, db, service, test_teacher, student_record):
        lesson = create_lesson(db, test_teacher, student_record, t(9), t(10), status=LessonStatus.PENDING)
        confirm = LessonUpdate(status=LessonStatus.CONFIRMED)

        service.update_lesson(test_teacher, lesson.id, confirm, now=NOW)
        service.update_lesson(test_teacher, lesson.id, LessonUpdate(start_time=t(11), end_time=t(12)), now=NOW)
        service.update_lesson(test_teacher, lesson.id, confirm, now=NOW)

        confirmations = [e for e in events_for(db, lesson.id) if e.event_type == "lesson.status_changed"]
        assert len(confirmations) == 2
        assert all(e.payload["status"] == "confirmed" for e in confirmations)

    def test_reschedule_over_own_old_slot(self, db, service, test_teacher, student_record):
        lesson = create_lesson(db, test_teacher, student_record, t(10), t(11), status=LessonStatus.PENDING)
        updated = service.update_lesson(
            test_teacher, lesson.id, LessonUpdate(start_time=t(10, 30), end_time=t(11, 30)), now=NOW
        )
        assert updated.start_time == t(10, 30)

    def test_reschedule_onto_another_lesson(self, db, service, test_teacher, student_record):
        lesson = create_lesson(db, test_teacher, student_record, t(10), t(11))
        create_lesson(db, test_teacher, student_record, t(14), t(15))

        with pytest.raises(BookingConflictException):
            service.update_lesson(
                test_teacher, lesson.id, LessonUpdate(start_time=t(14, 30), end_time=t(15, 30)), now=NOW
            )
        db.refresh(lesson)
        assert lesson.start_time == t(10)

    def test_completed_lesson_cannot_be_rescheduled(self, db, service, test_teacher, student_record):
        lesson = create_lesson(db, test_teacher, student_record, t(10), t(11), status=LessonStatus.COMPLETED)
        with pytest.raises(LessonStateException) as exc_info:
            service.update_lesson(
                test_teacher, lesson.id, LessonUpdate(start_time=t(14), end_time=t(15)), now=NOW
            )
        assert exc_info.value.details["current_status"] == "completed"

    def test_reschedule_into_past(self, db, service, test_teacher, student_record):
        lesson = create_lesson(db, test_teacher, student_record, t(10), t(11))
        with pytest.raises(ConflictException) as exc_info:
            service.update_lesson(
                test_teacher, lesson.id, LessonUpdate(start_time=t(8), end_time=t(9)), now=t(9)
            )
        assert exc_info.value.code == "START_IN_PAST"

    def test_metadata_edit_keeps_status(self, db, service, test_teacher, student_record):
        lesson = create_lesson(db, test_teacher, student_record, t(10), t(11))
        updated = service.update_lesson(
            test_teacher, lesson.id, LessonUpdate(title="Geometry", description="Bring a ruler"), now=NOW
        )
        assert updated.title == "Geometry"
        assert updated.status == LessonStatus.CONFIRMED.value

    def test_confirm_pending_lesson(self, db, service, test_teacher, student_record):
        lesson = create_lesson(db, test_teacher, student_record, t(10), t(11), status=LessonStatus.PENDING)
        updated = service.update_lesson(
            test_teacher, lesson.id, LessonUpdate(status=LessonStatus.CONFIRMED), now=NOW
        )
        assert updated.status == LessonStatus.CONFIRMED.value
        events = events_for(db, lesson.id)
        assert events[0].event_type == "lesson.status_changed"
        assert events[0].payload["previous_status"] == "pending"

    def test_complete_confirmed_lesson(self, db, service, test_teacher, student_record):
        lesson = create_lesson(db, test_teacher, student_record, t(10), t(11))
        updated = service.update_lesson(
            test_teacher, lesson.id, LessonUpdate(status=LessonStatus.COMPLETED), now=NOW
        )
        assert updated.status == LessonStatus.COMPLETED.value

    def test_illegal_transition(self, db, service, test_teacher, student_record):
        lesson = create_lesson(db, test_teacher, student_record, t(10), t(11), status=LessonStatus.PENDING)
        with pytest.raises(LessonStateException):
            service.update_lesson(
                test_teacher, lesson.id, LessonUpdate(status=LessonStatus.COMPLETED), now=NOW
            )

    def test_status_and_time_cannot_change_together(self, db, service, test_teacher, student_record):
        lesson = create_lesson(db, test_teacher, student_record, t(10), t(11), status=LessonStatus.PENDING)
        with pytest.raises(LessonStateException):
            service.update_lesson(
                test_teacher,
                lesson.id,
                LessonUpdate(start_time=t(14), end_time=t(15), status=LessonStatus.CONFIRMED),
                now=NOW,
            )

    def test_empty_update(self, db, service, test_teacher, student_record):
        lesson = create_lesson(db, test_teacher, student_record, t(10), t(11))
        with pytest.raises(ValidationException) as exc_info:
            service.update_lesson(test_teacher, lesson.id, LessonUpdate(), now=NOW)
        assert exc_info.value.code == "NO_CHANGES"

    def test_cancel_action(self, db, service, test_teacher, student_record):
        lesson = create_lesson(db, test_teacher, student_record, t(10), t(11))
        cancelled = service.update_lesson(test_teacher, lesson.id, LessonUpdate(action="cancel"), now=NOW)

        assert cancelled.status == LessonStatus.CANCELLED.value
        assert cancelled.cancelled_at == NOW
        event = events_for(db, lesson.id)[0]
        assert event.event_type == "lesson.cancelled"
        assert event.payload["cancelled_by"] == "teacher"

    @pytest.mark.parametrize(
        "changes",
        [
            {"action": "cancel", "title": "Renamed"},
            {"action": "cancel", "start_time": t(14), "end_time": t(15)},
            {"status": LessonStatus.CANCELLED, "description": "Moved online"},
            {"action": "cancel", "status": LessonStatus.CONFIRMED},
        ],
    )
    def test_cancel_rejects_other_changes(self, db, service, test_teacher, student_record, changes):
        lesson = create_lesson(db, test_teacher, student_record, t(10), t(11))

        with pytest.raises(LessonStateException):
            service.update_lesson(test_teacher, lesson.id, LessonUpdate(**changes), now=NOW)

        db.refresh(lesson)
        assert lesson.status == LessonStatus.CONFIRMED.value
        assert lesson.title == "Existing lesson"
        assert events_for(db, lesson.id) == []

    def test_cancelled_time_becomes_free(self, db, service, test_teacher, student_record):
        lesson = create_lesson(db, test_teacher, student_record, t(10), t(11))
        service.cancel_lesson(test_teacher, lesson.id, now=NOW)

        replacement = service.create_lesson(
            test_teacher,
            LessonCreate(student_id=student_record.id, title="Again", start_time=t(10), end_time=t(11)),
            now=NOW,
        )
        assert replacement.id != lesson.id

    def test_cannot_cancel_started_lesson(self, db, service, test_teacher, student_record):
        lesson = create_lesson(db, test_teacher, student_record, t(10), t(11))
        with pytest.raises(LessonStateException):
            service.cancel_lesson(test_teacher, lesson.id, now=t(10, 30))

    def test_cannot_cancel_completed_lesson(self, db, service, test_teacher, student_record):
        lesson = create_lesson(db, test_teacher, student_record, t(10), t(11), status=LessonStatus.COMPLETED)
        with pytest.raises(LessonStateException):
            service.cancel_lesson(test_teacher, lesson.id, now=NOW)

    def test_other_teacher_is_forbidden(self, db, service, test_teacher, student_record):
        lesson = create_lesson(db, test_teacher, student_record, t(10), t(11))
        intruder = create_user(db, email="intruder@example.com", role=UserRole.TEACHER)
        with pytest.raises(ForbiddenException):
            service.update_lesson(intruder, lesson.id, LessonUpdate(title="Mine"), now=NOW)

    def test_unknown_lesson(self, service, test_teacher):
        with pytest.raises(NotFoundException):
            service.update_lesson(test_teacher, "missing", LessonUpdate(title="x"), now=NOW)


class TestRespondToLesson:
    def test_accept_pending(self, db, service, test_teacher, test_student_user, student_record):
        lesson = create_lesson(db, test_teacher, student_record, t(10), t(11), status=LessonStatus.PENDING)
        accepted = service.respond_to_lesson(test_student_user, lesson.id, "accept", now=NOW)
        assert accepted.status == LessonStatus.CONFIRMED.value
        assert events_for(db, lesson.id)[0].payload["changed_by"] == "student"

    def test_accept_rechecks_learner_calendar(self, db, service, test_teacher, test_student_user, student_record):
        lesson = create_lesson(db, test_teacher, student_record, t(10), t(11), status=LessonStatus.PENDING)
        piano_teacher = create_user(db, email="piano@example.com", role=UserRole.TEACHER)
        piano_record = create_student(db, piano_teacher, user=test_student_user)
        create_lesson(db, piano_teacher, piano_record, t(10, 30), t(11, 30))

        with pytest.raises(BookingConflictException):
            service.respond_to_lesson(test_student_user, lesson.id, "accept", now=NOW)

    def test_accept_requires_pending(self, db, service, test_teacher, test_student_user, student_record):
        lesson = create_lesson(db, test_teacher, student_record, t(10), t(11))
        with pytest.raises(LessonStateException):
            service.respond_to_lesson(test_student_user, lesson.id, "accept", now=NOW)

    def test_decline_pending(self, db, service, test_teacher, test_student_user, student_record):
        lesson = create_lesson(db, test_teacher, student_record, t(10), t(11), status=LessonStatus.PENDING)
        declined = service.respond_to_lesson(test_student_user, lesson.id, "decline", now=NOW)
        assert declined.status == LessonStatus.CANCELLED.value
        assert events_for(db, lesson.id)[0].payload["reason"] == "declined"

    def test_cancel_confirmed(self, db, service, test_teacher, test_student_user, student_record):
        lesson = create_lesson(db, test_teacher, student_record, t(10), t(11))
        cancelled = service.respond_to_lesson(test_student_user, lesson.id, "cancel", now=NOW)
        assert cancelled.status == LessonStatus.CANCELLED.value

    def test_cancel_requires_confirmed(self, db, service, test_teacher, test_student_user, student_record):
        lesson = create_lesson(db, test_teacher, student_record, t(10), t(11), status=LessonStatus.PENDING)
        with pytest.raises(LessonStateException):
            service.respond_to_lesson(test_student_user, lesson.id, "cancel", now=NOW)

    def test_past_lessons_are_frozen(self, db, service, test_teacher, test_student_user, student_record):
        lesson = create_lesson(db, test_teacher, student_record, t(10), t(11), status=LessonStatus.PENDING)
        with pytest.raises(LessonStateException):
            service.respond_to_lesson(test_student_user, lesson.id, "accept", now=t(12))

    def test_other_learner_cannot_see_lesson(self, db, service, test_teacher, student_record):
        lesson = create_lesson(db, test_teacher, student_record, t(10), t(11), status=LessonStatus.PENDING)
        stranger = create_user(db, email="stranger@example.com")
        with pytest.raises(NotFoundException):
            service.respond_to_lesson(stranger, lesson.id, "accept", now=NOW)

    def test_invalid_action(self, db, service, test_student_user):
        with pytest.raises(ValidationException):
            service.respond_to_lesson(test_student_user, "any", "reschedule", now=NOW)


class TestConstraintViolations:
    @staticmethod
    def _repository_error(constraint_name):
        orig = SimpleNamespace(diag=SimpleNamespace(constraint_name=constraint_name))
        error = RepositoryException("Integrity constraint violated")
        error.__cause__ = IntegrityError("INSERT INTO lessons", {}, orig)
        return error

    def test_exclusion_violation_is_a_booking_conflict(self, monkeypatch, service, test_teacher, student_record):
        error = self._repository_error("lessons_no_overlap_per_teacher")

        def fail(**kwargs):
            raise error

        monkeypatch.setattr(service.repository, "create", fail)
        with pytest.raises(BookingConflictException) as exc_info:
            service.create_lesson(
                test_teacher,
                LessonCreate(student_id=student_record.id, title="Race", start_time=t(10), end_time=t(11)),
                now=NOW,
            )
        assert exc_info.value.details["constraint"] == "lessons_no_overlap_per_teacher"

    def test_other_integrity_errors_propagate(self, monkeypatch, service, test_teacher, student_record):
        error = self._repository_error("uq_lesson_students_pair")

        def fail(**kwargs):
            raise error

        monkeypatch.setattr(service.repository, "create", fail)
        with pytest.raises(RepositoryException):
            service.create_lesson(
                test_teacher,
                LessonCreate(student_id=student_record.id, title="Race", start_time=t(10), end_time=t(11)),
                now=NOW,
            )


def test_now_defaults_to_current_time(db, service, test_teacher, student_record):
    soon = utc(2020, 1, 1) + timedelta(hours=1)
    with pytest.raises(ConflictException):
        service.create_lesson(
            test_teacher,
            LessonCreate(student_id=student_record.id, title="Old", start_time=soon, end_time=soon + timedelta(hours=1)),
        )
