"""
Integration Tests for Student Self-Service
"""

from datetime import timedelta

from fastapi import status

from models import Feedback, LessonStatus, UserRole, utcnow

API = "/api/student"


class TestStudentProfile:
    def test_own_profile_with_teacher_contact(self, client, student, teacher, auth_headers):
        response = client.get(f"{API}/profile", headers=auth_headers(student))
        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["user_id"] == student.id
        assert data["teacher"]["email"] == "kim@example.com"

    def test_unassigned_student_has_no_profile(self, client, make_user, auth_headers):
        loner = make_user(UserRole.STUDENT)
        response = client.get(f"{API}/profile", headers=auth_headers(loner))
        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["error"] == "Student profile not found"

    def test_teacher_has_no_student_profile(self, client, teacher, auth_headers):
        assert client.get(f"{API}/profile", headers=auth_headers(teacher)).status_code == status.HTTP_403_FORBIDDEN


class TestStudentDashboard:
    def test_dashboard_stats(self, client, test_db, teacher, student, make_lesson, auth_headers):
        soon = make_lesson(teacher, student, scheduled_at=utcnow() + timedelta(days=1))
        make_lesson(teacher, student, scheduled_at=utcnow() + timedelta(days=8))
        make_lesson(teacher, student, status=LessonStatus.CANCELLED)
        done_a = make_lesson(teacher, student, scheduled_at=utcnow() - timedelta(days=7), status=LessonStatus.COMPLETED)
        done_b = make_lesson(teacher, student, scheduled_at=utcnow() - timedelta(days=1), status=LessonStatus.COMPLETED)
        for lesson, rating in ((done_a, 4), (done_b, 5)):
            test_db.add(
                Feedback(
                    lesson_id=lesson.id, teacher_id=teacher.id, student_id=student.id, rating=rating, content="ok"
                )
            )
        test_db.commit()

        response = client.get(f"{API}/dashboard", headers=auth_headers(student))
        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["profile"]["teacher_id"] == teacher.id
        assert data["stats"] == {
            "total_lessons": 5,
            "completed_lessons": 2,
            "scheduled_lessons": 2,
            "total_feedbacks": 2,
            "average_rating": 4.5,
        }
        assert data["upcoming_lessons"][0]["id"] == soon.id
        assert len(data["upcoming_lessons"]) == 2
        assert len(data["recent_feedbacks"]) == 2

    def test_empty_dashboard(self, client, make_user, auth_headers):
        loner = make_user(UserRole.STUDENT)
        data = client.get(f"{API}/dashboard", headers=auth_headers(loner)).json()
        assert data["profile"] is None
        assert data["stats"]["total_lessons"] == 0
        assert data["stats"]["average_rating"] is None
        assert data["upcoming_lessons"] == []
