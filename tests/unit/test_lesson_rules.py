from datetime import timedelta

import pytest

from models import Feedback, Lesson, LessonStatus, UserRole, utcnow
from utils.error_handling import ConflictError, InvalidTransitionError
from utils.lesson_rules import can_transition, pending_feedback_query, transition


class TestStateMachine:
    """Lesson status lifecycle"""

    @pytest.mark.parametrize(
        "current,target",
        [
            (LessonStatus.SCHEDULED, LessonStatus.COMPLETED),
            (LessonStatus.SCHEDULED, LessonStatus.CANCELLED),
            (LessonStatus.CANCELLED, LessonStatus.SCHEDULED),
        ],
    )
    def test_allowed(self, current, target):
        assert can_transition(current, target)

    @pytest.mark.parametrize(
        "current,target",
        [
            (LessonStatus.COMPLETED, LessonStatus.SCHEDULED),
            (LessonStatus.COMPLETED, LessonStatus.CANCELLED),
            (LessonStatus.CANCELLED, LessonStatus.COMPLETED),
            (LessonStatus.SCHEDULED, LessonStatus.SCHEDULED),
            (LessonStatus.CANCELLED, LessonStatus.CANCELLED),
        ],
    )
    def test_rejected(self, current, target):
        assert not can_transition(current, target)
        lesson = Lesson(status=current)
        with pytest.raises(InvalidTransitionError) as exc_info:
            transition(lesson, target)
        assert lesson.status == current
        assert f"{current.value} -> {target.value}" in exc_info.value.message

    def test_invalid_transition_is_conflict(self):
        assert issubclass(InvalidTransitionError, ConflictError)
        assert InvalidTransitionError.status_code == 409

    def test_transition_updates_status(self):
        lesson = Lesson(status=LessonStatus.SCHEDULED)
        transition(lesson, LessonStatus.CANCELLED)
        assert lesson.status == LessonStatus.CANCELLED


class TestFeedbackEligibility:
    def test_completed_is_eligible(self):
        lesson = Lesson(status=LessonStatus.COMPLETED, scheduled_at=utcnow() + timedelta(days=1))
        assert lesson.is_feedback_eligible()

    def test_started_scheduled_is_eligible(self):
        lesson = Lesson(status=LessonStatus.SCHEDULED, scheduled_at=utcnow() - timedelta(minutes=5))
        assert lesson.is_feedback_eligible()

    def test_future_scheduled_is_not_eligible(self):
        lesson = Lesson(status=LessonStatus.SCHEDULED, scheduled_at=utcnow() + timedelta(hours=1))
        assert not lesson.is_feedback_eligible()

    def test_cancelled_is_not_eligible(self):
        lesson = Lesson(status=LessonStatus.CANCELLED, scheduled_at=utcnow() - timedelta(days=1))
        assert not lesson.is_feedback_eligible()

    def test_pending_feedback_query(self, test_db, make_user, make_lesson):
        teacher = make_user(UserRole.TEACHER)
        student = make_user(UserRole.STUDENT)
        past = utcnow() - timedelta(days=1)

        pending = make_lesson(teacher, student, scheduled_at=past)
        make_lesson(teacher, student, scheduled_at=past, status=LessonStatus.CANCELLED)
        make_lesson(teacher, student)  # future
        done = make_lesson(teacher, student, scheduled_at=past, status=LessonStatus.COMPLETED)
        test_db.add(
            Feedback(lesson_id=done.id, teacher_id=teacher.id, student_id=student.id, rating=4, content="Good")
        )
        test_db.commit()

        assert [lesson.id for lesson in pending_feedback_query(test_db, teacher.id).all()] == [pending.id]
