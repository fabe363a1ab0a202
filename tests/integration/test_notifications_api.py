"""
Integration Tests for In-App Notifications
"""

from datetime import timedelta

import pytest
from fastapi import status
from sqlalchemy.exc import OperationalError

from models import Lesson, Notification, NotificationType, utcnow
from utils.notifications import notify

API = "/api/notifications"


@pytest.fixture
def inbox(test_db, student):
    items = []
    for n in range(3):
        notification = Notification(
            user_id=student.id,
            type=NotificationType.LESSON_CREATED,
            title=f"Lesson {n}",
            message="A new lesson was scheduled",
        )
        test_db.add(notification)
        items.append(notification)
    test_db.commit()
    for notification in items:
        test_db.refresh(notification)
    return items


class TestNotifications:
    def test_list_newest_first(self, client, student, inbox, auth_headers):
        response = client.get(API, headers=auth_headers(student))
        assert response.status_code == status.HTTP_200_OK
        ids = [item["id"] for item in response.json()]
        assert ids == sorted((n.id for n in inbox), reverse=True)

    def test_limit(self, client, student, inbox, auth_headers):
        response = client.get(API, params={"limit": 2}, headers=auth_headers(student))
        assert len(response.json()) == 2

    def test_mark_one_read(self, client, student, inbox, auth_headers):
        headers = auth_headers(student)
        response = client.patch(f"{API}/{inbox[0].id}/read", headers=headers)
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["is_read"] is True

        assert client.get(f"{API}/unread-count", headers=headers).json()["count"] == 2
        unread = client.get(API, params={"unread_only": True}, headers=headers).json()
        assert inbox[0].id not in [item["id"] for item in unread]

    def test_mark_all_read(self, client, student, inbox, auth_headers):
        headers = auth_headers(student)
        response = client.patch(f"{API}/read-all", headers=headers)
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["updated"] == 3
        assert client.get(f"{API}/unread-count", headers=headers).json()["count"] == 0

        again = client.patch(f"{API}/read-all", headers=headers)
        assert again.json()["updated"] == 0

    def test_cannot_touch_someone_elses(self, client, teacher, inbox, auth_headers):
        response = client.patch(f"{API}/{inbox[0].id}/read", headers=auth_headers(teacher))
        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert client.get(API, headers=auth_headers(teacher)).json() == []

    def test_requires_login(self, client):
        assert client.get(f"{API}/unread-count").status_code == status.HTTP_401_UNAUTHORIZED


class TestNotificationFailures:
    def test_unknown_recipient_is_logged_not_raised(self, test_db, teacher, student, make_lesson):
        lesson = make_lesson(teacher, student)
        created = notify(test_db, 999999, NotificationType.LESSON_CREATED, "Lesson", "Nobody home")
        assert created is None
        assert test_db.query(Lesson).filter(Lesson.id == lesson.id).count() == 1
        assert test_db.query(Notification).count() == 0

    def test_failed_fan_out_keeps_the_lesson(self, client, test_db, teacher, student, auth_headers, monkeypatch):
        real_commit = test_db.commit

        def commit_without_notifications():
            if any(isinstance(obj, Notification) for obj in test_db.new):
                raise OperationalError("INSERT INTO notifications", {}, Exception("database is locked"))
            return real_commit()

        monkeypatch.setattr(test_db, "commit", commit_without_notifications)

        response = client.post(
            "/api/lessons",
            json={
                "student_id": student.id,
                "title": "Breathing",
                "scheduled_at": (utcnow() + timedelta(days=2)).isoformat(),
            },
            headers=auth_headers(teacher),
        )
        assert response.status_code == status.HTTP_201_CREATED
        assert test_db.query(Lesson).filter(Lesson.id == response.json()["id"]).count() == 1
        assert test_db.query(Notification).count() == 0
