"""
Integration Tests for the Feedback Service
One feedback per lesson and the student reaction round trip
"""

from datetime import datetime, timedelta, timezone

import pytest
from fastapi import status

from models import Feedback, LessonStatus, Notification, NotificationType, UserRole, utcnow

API = "/api/feedback"
KST = timezone(timedelta(hours=9))


def _feedback_body(lesson, student, **overrides):
    body = {
        "lesson_id": lesson.id,
        "student_id": student.id,
        "rating": 5,
        "content": "Great breath support today",
        "homework": "Lip trills, 10 minutes a day",
        "reference_urls": ["https://example.com/warmup", "https://example.com/song"],
    }
    body.update(overrides)
    return body


@pytest.fixture
def past_lesson(make_lesson, teacher, student):
    return make_lesson(teacher, student, scheduled_at=datetime(2025, 3, 1, 14, 0, tzinfo=KST), duration=60)


class TestFeedbackCreate:
    def test_complete_then_feedback_once(self, client, test_db, teacher, student, past_lesson, auth_headers):
        headers = auth_headers(teacher)
        assert client.patch(f"/api/lessons/{past_lesson.id}/complete", headers=headers).status_code == 200

        first = client.post(API, json=_feedback_body(past_lesson, student), headers=headers)
        assert first.status_code == status.HTTP_201_CREATED
        assert first.json()["rating"] == 5
        assert first.json()["reference_urls"] == ["https://example.com/warmup", "https://example.com/song"]

        second = client.post(API, json=_feedback_body(past_lesson, student, rating=4), headers=headers)
        assert second.status_code == status.HTTP_409_CONFLICT
        assert second.json()["error"] == "Feedback already exists for this lesson"
        assert test_db.query(Feedback).count() == 1

        notification = test_db.query(Notification).filter(Notification.user_id == student.id).one()
        assert notification.type == NotificationType.FEEDBACK_RECEIVED

    def test_concurrent_create_is_a_conflict(
        self, client, test_db, teacher, student, past_lesson, auth_headers, monkeypatch
    ):
        test_db.add(
            Feedback(
                lesson_id=past_lesson.id,
                teacher_id=teacher.id,
                student_id=student.id,
                rating=4,
                content="Written by the other request",
            )
        )
        test_db.commit()
        # The competing row lands between the existence check and the insert
        monkeypatch.setattr("routes.feedback.feedback_exists", lambda db, lesson_id: False)

        response = client.post(API, json=_feedback_body(past_lesson, student), headers=auth_headers(teacher))
        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.json()["error"] == "Feedback already exists for this lesson"
        assert test_db.query(Feedback).count() == 1
        assert test_db.query(Feedback).one().content == "Written by the other request"
        assert test_db.query(Notification).count() == 0

    def test_started_scheduled_lesson_is_eligible(self, client, teacher, student, past_lesson, auth_headers):
        response = client.post(API, json=_feedback_body(past_lesson, student), headers=auth_headers(teacher))
        assert response.status_code == status.HTTP_201_CREATED

    def test_future_lesson_rejected(self, client, teacher, student, make_lesson, auth_headers):
        lesson = make_lesson(teacher, student)
        response = client.post(API, json=_feedback_body(lesson, student), headers=auth_headers(teacher))
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_cancelled_lesson_rejected(self, client, teacher, student, make_lesson, auth_headers):
        lesson = make_lesson(teacher, student, scheduled_at=utcnow() - timedelta(days=1), status=LessonStatus.CANCELLED)
        response = client.post(API, json=_feedback_body(lesson, student), headers=auth_headers(teacher))
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    @pytest.mark.parametrize("rating", [0, 6])
    def test_rating_out_of_range(self, client, teacher, student, past_lesson, auth_headers, rating):
        response = client.post(
            API, json=_feedback_body(past_lesson, student, rating=rating), headers=auth_headers(teacher)
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_student_mismatch(self, client, teacher, past_lesson, make_user, auth_headers):
        stranger = make_user(UserRole.STUDENT)
        response = client.post(API, json=_feedback_body(past_lesson, stranger), headers=auth_headers(teacher))
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_other_teacher_cannot_write(self, client, other_teacher, student, past_lesson, auth_headers):
        response = client.post(API, json=_feedback_body(past_lesson, student), headers=auth_headers(other_teacher))
        assert response.status_code == status.HTTP_404_NOT_FOUND


@pytest.fixture
def feedback(test_db, teacher, student, past_lesson):
    item = Feedback(
        lesson_id=past_lesson.id, teacher_id=teacher.id, student_id=student.id, rating=4, content="Solid progress"
    )
    test_db.add(item)
    test_db.commit()
    test_db.refresh(item)
    return item


class TestFeedbackAccess:
    def test_lists(self, client, teacher, student, feedback, auth_headers):
        assert [f["id"] for f in client.get(API, headers=auth_headers(teacher)).json()] == [feedback.id]
        assert [f["id"] for f in client.get(API, headers=auth_headers(student)).json()] == [feedback.id]

    def test_lesson_detail_includes_summary(self, client, student, feedback, past_lesson, auth_headers):
        response = client.get(f"/api/lessons/{past_lesson.id}", headers=auth_headers(student))
        assert response.json()["feedback"]["id"] == feedback.id

        by_lesson = client.get(f"/api/lessons/{past_lesson.id}/feedback", headers=auth_headers(student))
        assert by_lesson.json()["content"] == "Solid progress"

    def test_outsider_gets_404(self, client, other_teacher, feedback, auth_headers):
        response = client.get(f"{API}/{feedback.id}", headers=auth_headers(other_teacher))
        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_update_by_owner(self, client, teacher, feedback, auth_headers):
        response = client.put(
            f"{API}/{feedback.id}", json={"rating": 5, "improvements": "Vowels"}, headers=auth_headers(teacher)
        )
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["rating"] == 5
        assert response.json()["improvements"] == "Vowels"

    def test_student_cannot_update(self, client, student, feedback, auth_headers):
        response = client.put(f"{API}/{feedback.id}", json={"rating": 1}, headers=auth_headers(student))
        assert response.status_code == status.HTTP_403_FORBIDDEN


class TestReactions:
    def test_reaction_round_trip(self, client, teacher, student, feedback, auth_headers):
        teacher_headers = auth_headers(teacher)
        student_headers = auth_headers(student)
        count_url = f"{API}/unviewed-reactions-count"

        assert client.get(count_url, headers=teacher_headers).json()["count"] == 0

        reacted = client.patch(
            f"{API}/{feedback.id}/reaction",
            json={"reaction": "🔥", "message": "Thank you!"},
            headers=student_headers,
        )
        assert reacted.status_code == status.HTTP_200_OK
        assert reacted.json()["student_reaction"] == "🔥"
        assert reacted.json()["student_reacted_at"] is not None
        assert client.get(count_url, headers=teacher_headers).json()["count"] == 1

        viewed = client.patch(f"{API}/{feedback.id}/view-reaction", headers=teacher_headers)
        first_viewed_at = viewed.json()["teacher_viewed_reaction_at"]
        assert first_viewed_at is not None
        assert client.get(count_url, headers=teacher_headers).json()["count"] == 0

        again = client.patch(f"{API}/{feedback.id}/view-reaction", headers=teacher_headers)
        assert again.json()["teacher_viewed_reaction_at"] == first_viewed_at

        client.patch(f"{API}/{feedback.id}/reaction", json={"reaction": "🙏"}, headers=student_headers)
        assert client.get(count_url, headers=teacher_headers).json()["count"] == 1

    def test_long_message_rejected(self, client, student, feedback, auth_headers):
        response = client.patch(
            f"{API}/{feedback.id}/reaction",
            json={"reaction": "👍", "message": "a" * 101},
            headers=auth_headers(student),
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_message_at_limit_accepted(self, client, student, feedback, auth_headers):
        response = client.patch(
            f"{API}/{feedback.id}/reaction",
            json={"reaction": "👍", "message": "a" * 100},
            headers=auth_headers(student),
        )
        assert response.status_code == status.HTTP_200_OK

    def test_teacher_cannot_react(self, client, teacher, feedback, auth_headers):
        response = client.patch(f"{API}/{feedback.id}/reaction", json={"reaction": "👍"}, headers=auth_headers(teacher))
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_other_student_cannot_react(self, client, feedback, make_user, auth_headers):
        stranger = make_user(UserRole.STUDENT)
        response = client.patch(
            f"{API}/{feedback.id}/reaction", json={"reaction": "👍"}, headers=auth_headers(stranger)
        )
        assert response.status_code == status.HTTP_404_NOT_FOUND
