"""
Integration Tests for Announcements
Teacher broadcasts and per-student read receipts
"""

import pytest
from fastapi import status

from models import AnnouncementRead, Notification, NotificationType, StudentProfile, UserRole
from routes import announcements

TEACHER_API = "/api/announcements"
STUDENT_API = "/api/student/announcements"


@pytest.fixture
def posted(client, teacher, student, auth_headers):
    response = client.post(
        TEACHER_API,
        json={"title": "Recital", "content": "Recital on Saturday at 3pm"},
        headers=auth_headers(teacher),
    )
    assert response.status_code == status.HTTP_201_CREATED
    return response.json()


class TestTeacherAnnouncements:
    def test_post_notifies_active_students(self, client, test_db, teacher, student, make_user, assign, auth_headers):
        second = make_user(UserRole.STUDENT)
        assign(second, teacher)
        former = make_user(UserRole.STUDENT)
        assign(former, teacher, is_active=False)

        response = client.post(
            TEACHER_API, json={"title": "Holiday", "content": "No lessons next week"}, headers=auth_headers(teacher)
        )
        assert response.status_code == status.HTTP_201_CREATED

        recipients = {
            n.user_id
            for n in test_db.query(Notification).filter(Notification.type == NotificationType.ANNOUNCEMENT_POSTED)
        }
        assert recipients == {student.id, second.id}

    def test_empty_title_rejected(self, client, teacher, auth_headers):
        response = client.post(TEACHER_API, json={"title": "", "content": "x"}, headers=auth_headers(teacher))
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_student_cannot_post(self, client, student, auth_headers):
        response = client.post(TEACHER_API, json={"title": "t", "content": "c"}, headers=auth_headers(student))
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_read_counts(self, client, teacher, student, posted, auth_headers):
        teacher_headers = auth_headers(teacher)
        listing = client.get(TEACHER_API, headers=teacher_headers).json()
        assert listing[0]["read_count"] == 0
        assert listing[0]["total_students"] == 1

        client.post(f"{STUDENT_API}/{posted['id']}/read", headers=auth_headers(student))

        detail = client.get(f"{TEACHER_API}/{posted['id']}", headers=teacher_headers).json()
        assert detail["read_count"] == 1
        assert detail["students"] == [
            {
                "student_id": student.id,
                "student_name": "Choi Student",
                "is_read": True,
                "read_at": detail["students"][0]["read_at"],
            }
        ]
        assert detail["students"][0]["read_at"] is not None

    def test_read_counts_follow_active_roster(
        self, client, test_db, teacher, student, posted, make_user, assign, auth_headers
    ):
        client.post(f"{STUDENT_API}/{posted['id']}/read", headers=auth_headers(student))
        test_db.query(StudentProfile).filter(StudentProfile.user_id == student.id).update({"is_active": False})
        test_db.commit()
        assign(make_user(UserRole.STUDENT), teacher)

        teacher_headers = auth_headers(teacher)
        listing = client.get(TEACHER_API, headers=teacher_headers).json()
        assert (listing[0]["read_count"], listing[0]["total_students"]) == (0, 1)
        detail = client.get(f"{TEACHER_API}/{posted['id']}", headers=teacher_headers).json()
        assert (detail["read_count"], detail["total_students"]) == (0, 1)
        assert test_db.query(AnnouncementRead).count() == 1

    def test_update_and_hide(self, client, teacher, student, posted, auth_headers):
        response = client.put(
            f"{TEACHER_API}/{posted['id']}", json={"is_active": False}, headers=auth_headers(teacher)
        )
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["is_active"] is False
        assert client.get(STUDENT_API, headers=auth_headers(student)).json() == []

    def test_other_teacher_gets_404(self, client, other_teacher, posted, auth_headers):
        response = client.get(f"{TEACHER_API}/{posted['id']}", headers=auth_headers(other_teacher))
        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_delete_removes_read_receipts(self, client, test_db, teacher, student, posted, auth_headers):
        client.post(f"{STUDENT_API}/{posted['id']}/read", headers=auth_headers(student))
        assert test_db.query(AnnouncementRead).count() == 1

        response = client.delete(f"{TEACHER_API}/{posted['id']}", headers=auth_headers(teacher))
        assert response.status_code == status.HTTP_200_OK
        assert test_db.query(AnnouncementRead).count() == 0


class TestStudentAnnouncements:
    def test_unread_then_read(self, client, student, posted, auth_headers):
        headers = auth_headers(student)
        assert client.get(f"{STUDENT_API}/unread-count", headers=headers).json()["count"] == 1

        listing = client.get(STUDENT_API, headers=headers).json()
        assert listing[0]["teacher_name"] == "Kim Teacher"
        assert listing[0]["is_read"] is False

        first = client.post(f"{STUDENT_API}/{posted['id']}/read", headers=headers)
        assert first.status_code == status.HTTP_200_OK
        assert first.json()["is_read"] is True
        assert client.get(f"{STUDENT_API}/unread-count", headers=headers).json()["count"] == 0

    def test_mark_read_twice_keeps_first_time(self, client, test_db, student, posted, auth_headers):
        headers = auth_headers(student)
        first = client.post(f"{STUDENT_API}/{posted['id']}/read", headers=headers).json()
        second = client.post(f"{STUDENT_API}/{posted['id']}/read", headers=headers).json()
        assert second["read_at"] == first["read_at"]
        assert test_db.query(AnnouncementRead).count() == 1

    def test_concurrent_read_is_not_an_error(self, client, test_db, student, posted, auth_headers, monkeypatch):
        test_db.add(AnnouncementRead(announcement_id=posted["id"], student_id=student.id))
        test_db.commit()

        # First lookup misses the receipt another request just wrote
        real_find_read = announcements.find_read
        lookups = []

        def stale_then_real(db, announcement_id, student_id):
            lookups.append(announcement_id)
            if len(lookups) == 1:
                return None
            return real_find_read(db, announcement_id, student_id)

        monkeypatch.setattr(announcements, "find_read", stale_then_real)

        response = client.post(f"{STUDENT_API}/{posted['id']}/read", headers=auth_headers(student))
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["is_read"] is True
        assert response.json()["read_at"] is not None
        assert len(lookups) == 2
        assert test_db.query(AnnouncementRead).count() == 1

    def test_unassigned_student_sees_nothing(self, client, make_user, posted, auth_headers):
        loner = make_user(UserRole.STUDENT)
        headers = auth_headers(loner)
        assert client.get(STUDENT_API, headers=headers).json() == []
        assert client.get(f"{STUDENT_API}/unread-count", headers=headers).json()["count"] == 0
        response = client.post(f"{STUDENT_API}/{posted['id']}/read", headers=headers)
        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_teacher_cannot_use_student_view(self, client, teacher, auth_headers):
        assert client.get(STUDENT_API, headers=auth_headers(teacher)).status_code == status.HTTP_403_FORBIDDEN
