"""Lesson overlap checks against the teacher's and the learner's lessons."""

from unittest.mock import Mock

import pytest

from tests.factories import create_lesson, create_student, create_user, utc
from tutorcal.core.exceptions import (
    AvailabilityUnverifiedException,
    BookingConflictException,
    RepositoryException,
    ValidationException,
)
from tutorcal.models import LessonStatus, UserRole
from tutorcal.services.conflict_checker import ConflictChecker


def t(hour, minute=0):
    return utc(2026, 6, 1, hour, minute)


@pytest.fixture
def checker(db):
    return ConflictChecker(db)


@pytest.fixture
def existing_lesson(db, test_teacher, student_record):
    return create_lesson(db, test_teacher, student_record, t(10), t(11))


class TestTeacherOverlap:
    @pytest.mark.parametrize(
        "start,end,expected",
        [
            ((9,), (10,), False),
            ((11,), (12,), False),
            ((10, 30), (11, 30), True),
            ((9, 30), (10, 30), True),
            ((9,), (12,), True),
            ((10, 15), (10, 45), True),
        ],
    )
    def test_overlap_iff_intervals_intersect(
        self, checker, test_teacher, existing_lesson, start, end, expected
    ):
        result = checker.check_lesson_overlap(test_teacher.id, [], t(*start), t(*end))
        assert result.has_conflict is expected
        assert result.conflicting_lesson_ids == ([existing_lesson.id] if expected else [])

    def test_pending_lesson_blocks(self, db, checker, test_teacher, student_record):
        pending = create_lesson(
            db, test_teacher, student_record, t(10, 30), t(11, 30), status=LessonStatus.PENDING
        )
        with pytest.raises(BookingConflictException) as exc_info:
            checker.ensure_no_conflict(test_teacher.id, [], t(10), t(11))
        assert exc_info.value.details["conflicting_lesson_ids"] == [pending.id]
        assert exc_info.value.code == "LESSON_CONFLICT"

    def test_cancelled_lesson_is_ignored(self, db, checker, test_teacher, student_record):
        create_lesson(db, test_teacher, student_record, t(10), t(11), status=LessonStatus.CANCELLED)
        assert not checker.check_lesson_overlap(test_teacher.id, [], t(10), t(11)).has_conflict

    def test_completed_lesson_blocks(self, db, checker, test_teacher, student_record):
        create_lesson(db, test_teacher, student_record, t(10), t(11), status=LessonStatus.COMPLETED)
        assert checker.check_lesson_overlap(test_teacher.id, [], t(10), t(11)).has_conflict

    def test_excluded_lesson_does_not_conflict_with_itself(
        self, checker, test_teacher, student_record, existing_lesson
    ):
        result = checker.check_lesson_overlap(
            test_teacher.id,
            [student_record.id],
            t(10, 30),
            t(11, 30),
            exclude_lesson_id=existing_lesson.id,
        )
        assert result.has_conflict is False

    def test_other_teachers_lessons_do_not_count(self, db, checker, existing_lesson):
        other = create_user(db, email="other@example.com", role=UserRole.TEACHER)
        assert not checker.check_lesson_overlap(other.id, [], t(10), t(11)).has_conflict

    def test_invalid_interval_is_rejected(self, checker, test_teacher):
        with pytest.raises(ValidationException):
            checker.check_lesson_overlap(test_teacher.id, [], t(11), t(11))


class TestStudentOverlap:
    def test_sibling_record_with_another_teacher_conflicts(
        self, db, checker, test_teacher, test_student_user, student_record
    ):
        other_teacher = create_user(db, email="piano@example.com", role=UserRole.TEACHER)
        other_record = create_student(db, other_teacher, user=test_student_user)
        elsewhere = create_lesson(db, other_teacher, other_record, t(10), t(11))

        sibling_ids = checker.resolve_sibling_student_ids([student_record.id])
        assert sibling_ids[0] == student_record.id
        assert set(sibling_ids) == {student_record.id, other_record.id}

        result = checker.check_lesson_overlap(test_teacher.id, sibling_ids, t(10, 30), t(11, 30))
        assert result.conflicting_lesson_ids == [elsewhere.id]

    def test_unlinked_record_has_no_siblings(self, db, checker, test_teacher):
        walk_in = create_student(db, test_teacher, full_name="Walk In")
        assert checker.resolve_sibling_student_ids([walk_in.id]) == [walk_in.id]

    def test_group_participant_conflicts(self, db, checker, test_teacher, student_record):
        other_teacher = create_user(db, email="group@example.com", role=UserRole.TEACHER)
        host = create_student(db, other_teacher, full_name="Host Student")
        guest = create_student(db, other_teacher, full_name="Guest Student")
        group = create_lesson(db, other_teacher, host, t(10), t(11), extra_students=[guest])

        result = checker.check_lesson_overlap(test_teacher.id, [guest.id], t(10), t(11))
        assert result.conflicting_lesson_ids == [group.id]

    def test_conflict_ids_are_not_duplicated(self, checker, test_teacher, student_record, existing_lesson):
        result = checker.check_lesson_overlap(test_teacher.id, [student_record.id], t(10), t(11))
        assert result.conflicting_lesson_ids == [existing_lesson.id]


def test_query_failure_is_never_reported_as_free(db, test_teacher):
    repository = Mock()
    repository.get_primary_conflicts.side_effect = RepositoryException("connection lost")
    checker = ConflictChecker(db, repository=repository)

    with pytest.raises(AvailabilityUnverifiedException) as exc_info:
        checker.check_lesson_overlap(test_teacher.id, ["s1"], t(10), t(11))
    assert exc_info.value.status_code == 503


def test_sibling_lookup_failure_is_unverified(db):
    student_repository = Mock()
    student_repository.get_sibling_ids.side_effect = RepositoryException("boom")
    checker = ConflictChecker(db, student_repository=student_repository)

    with pytest.raises(AvailabilityUnverifiedException):
        checker.resolve_sibling_student_ids(["s1"])
