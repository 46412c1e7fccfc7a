"""Repository queries that the services depend on."""

from datetime import date

from tests.factories import create_lesson, create_rule, create_student, create_user, utc
from tutorcal.models import EventOutboxStatus, LessonStatus, UserRole
from tutorcal.repositories import RepositoryFactory


def test_sibling_ids_put_inputs_first(db, test_teacher, test_student_user, student_record):
    other_teacher = create_user(db, email="other@example.com", role=UserRole.TEACHER)
    other_record = create_student(db, other_teacher, user=test_student_user)
    unrelated = create_student(db, test_teacher, full_name="Unrelated")

    repo = RepositoryFactory.create_student_repository(db)
    assert repo.get_sibling_ids([other_record.id]) == [other_record.id, student_record.id]
    assert repo.get_sibling_ids([unrelated.id]) == [unrelated.id]
    assert repo.get_sibling_ids([]) == []


def test_rules_window_keeps_weekly_rules(db, test_teacher):
    weekly = create_rule(db, test_teacher, start="09:00", end="10:00", day_of_week=1)
    inside = create_rule(db, test_teacher, start="09:00", end="10:00", specific_date=date(2026, 6, 3))
    create_rule(db, test_teacher, start="09:00", end="10:00", specific_date=date(2026, 7, 1))

    repo = RepositoryFactory.create_availability_repository(db)
    rules = repo.get_rules_for_teacher(
        test_teacher.id, start_date=date(2026, 6, 1), end_date=date(2026, 6, 7)
    )
    assert {rule.id for rule in rules} == {weekly.id, inside.id}
    assert len(repo.get_rules_for_teacher(test_teacher.id)) == 3


def test_busy_lessons_skip_cancelled_and_outside_window(db, test_teacher, student_record):
    busy = create_lesson(db, test_teacher, student_record, utc(2026, 6, 1, 10), utc(2026, 6, 1, 11))
    create_lesson(
        db,
        test_teacher,
        student_record,
        utc(2026, 6, 1, 12),
        utc(2026, 6, 1, 13),
        status=LessonStatus.CANCELLED,
    )
    create_lesson(db, test_teacher, student_record, utc(2026, 6, 2, 10), utc(2026, 6, 2, 11))

    repo = RepositoryFactory.create_lesson_repository(db)
    lessons = repo.get_busy_lessons_for_teacher(
        test_teacher.id, utc(2026, 6, 1), utc(2026, 6, 2)
    )
    assert [lesson.id for lesson in lessons] == [busy.id]


def test_outbox_enqueue_is_idempotent(db):
    repo = RepositoryFactory.create_event_outbox_repository(db)
    first = repo.enqueue(
        event_type="lesson.created",
        aggregate_id="L1",
        idempotency_key="lesson.created:L1",
        payload={"lesson_id": "L1"},
    )
    second = repo.enqueue(
        event_type="lesson.created",
        aggregate_id="L1",
        idempotency_key="lesson.created:L1",
        payload={"lesson_id": "L1", "again": True},
    )
    db.commit()

    assert second.id == first.id
    assert first.status == EventOutboxStatus.PENDING.value
    assert [row.id for row in repo.list_pending()] == [first.id]
    assert [row.id for row in repo.list_for_aggregate("L1")] == [first.id]


def test_lock_for_scheduling_returns_user(db, test_teacher):
    repo = RepositoryFactory.create_user_repository(db)
    assert repo.lock_for_scheduling(test_teacher.id).id == test_teacher.id
    assert repo.lock_for_scheduling("missing") is None


def test_outbox_delivered_and_failed_rows_leave_pending_queue(db):
    repo = RepositoryFactory.create_event_outbox_repository(db)
    sent = repo.enqueue(
        event_type="lesson.created",
        aggregate_id="L2",
        idempotency_key="lesson.created:L2",
        payload={"lesson_id": "L2"},
    )
    failed = repo.enqueue(
        event_type="lesson.updated",
        aggregate_id="L2",
        idempotency_key="lesson.updated:L2",
        payload={"lesson_id": "L2"},
    )
    sent.mark_sent(attempt_count=1)
    failed.mark_failed(attempt_count=5, error="x" * 2000)
    db.commit()

    assert sent.status == EventOutboxStatus.SENT.value
    assert failed.status == EventOutboxStatus.FAILED.value
    assert len(failed.last_error) == 1000
    assert repo.list_pending() == []
