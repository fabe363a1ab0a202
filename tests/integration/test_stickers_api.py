"""
Integration Tests for the Sticker Service
"""

import pytest
from fastapi import status

from models import Sticker, StickerLevel, UserRole

API = "/api/stickers"


@pytest.fixture
def issue(test_db):
    def _issue(teacher, student, level, **fields):
        sticker = Sticker(teacher_id=teacher.id, student_id=student.id, level=level, **fields)
        test_db.add(sticker)
        test_db.commit()
        test_db.refresh(sticker)
        return sticker

    return _issue


class TestStickerLevels:
    def test_levels_are_public(self, client):
        response = client.get(f"{API}/levels")
        assert response.status_code == status.HTTP_200_OK
        levels = response.json()
        assert [item["level"] for item in levels] == [level.value for level in StickerLevel]
        assert levels[0] == {"level": "seed", "order": 1, "name": "씨앗", "emoji": "🌱", "points": 10}


class TestStickerCreate:
    def test_teacher_issues_sticker(self, client, teacher, student, auth_headers):
        response = client.post(
            API,
            json={"student_id": student.id, "level": "rocket", "comment": "High notes!"},
            headers=auth_headers(teacher),
        )
        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()
        assert data["level"] == "rocket"
        assert data["level_meta"]["points"] == 50

    def test_student_cannot_issue(self, client, student, auth_headers):
        response = client.post(API, json={"student_id": student.id, "level": "seed"}, headers=auth_headers(student))
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_only_for_own_active_students(self, client, other_teacher, student, auth_headers):
        response = client.post(
            API, json={"student_id": student.id, "level": "seed"}, headers=auth_headers(other_teacher)
        )
        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_unknown_level_rejected(self, client, teacher, student, auth_headers):
        response = client.post(API, json={"student_id": student.id, "level": "comet"}, headers=auth_headers(teacher))
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_lesson_must_match_teacher_and_student(
        self, client, teacher, student, make_user, assign, make_lesson, auth_headers
    ):
        other_student = make_user(UserRole.STUDENT)
        assign(other_student, teacher)
        lesson = make_lesson(teacher, other_student)

        response = client.post(
            API,
            json={"student_id": student.id, "level": "seed", "lesson_id": lesson.id},
            headers=auth_headers(teacher),
        )
        assert response.status_code == status.HTTP_404_NOT_FOUND

        own_lesson = make_lesson(teacher, student)
        response = client.post(
            API,
            json={"student_id": student.id, "level": "seed", "lesson_id": own_lesson.id},
            headers=auth_headers(teacher),
        )
        assert response.status_code == status.HTTP_201_CREATED
        assert response.json()["lesson_id"] == own_lesson.id


class TestStickerQueries:
    def test_list_scoped_and_paged(self, client, teacher, student, issue, auth_headers):
        for level in (StickerLevel.SEED, StickerLevel.BLOOM, StickerLevel.ROCKET):
            issue(teacher, student, level)

        response = client.get(API, params={"limit": 2}, headers=auth_headers(student))
        data = response.json()
        assert data["total"] == 3
        assert len(data["stickers"]) == 2

        rest = client.get(API, params={"limit": 2, "offset": 2}, headers=auth_headers(student)).json()
        assert len(rest["stickers"]) == 1

    def test_stats_list_all_levels(self, client, teacher, student, issue, auth_headers):
        issue(teacher, student, StickerLevel.SEED)
        issue(teacher, student, StickerLevel.SEED)
        latest = issue(teacher, student, StickerLevel.ROCKET)

        response = client.get(f"{API}/stats", headers=auth_headers(student))
        assert response.status_code == status.HTTP_200_OK
        stats = response.json()
        assert stats["total_count"] == 3
        assert stats["total_points"] == 70
        assert len(stats["level_counts"]) == 7
        counts = {item["level"]: item["count"] for item in stats["level_counts"]}
        assert counts["seed"] == 2
        assert counts["rocket"] == 1
        assert counts["to_the_moon"] == 0
        assert stats["latest_sticker"]["id"] == latest.id

    def test_stats_for_student_without_stickers(self, client, student, auth_headers):
        stats = client.get(f"{API}/stats", headers=auth_headers(student)).json()
        assert stats["total_count"] == 0
        assert stats["total_points"] == 0
        assert len(stats["level_counts"]) == 7
        assert stats["latest_sticker"] is None

    def test_teacher_stats_need_student_id(self, client, teacher, student, auth_headers):
        headers = auth_headers(teacher)
        assert client.get(f"{API}/stats", headers=headers).status_code == status.HTTP_400_BAD_REQUEST
        response = client.get(f"{API}/stats", params={"student_id": student.id}, headers=headers)
        assert response.status_code == status.HTTP_200_OK

    def test_teacher_stats_scoped(self, client, other_teacher, student, auth_headers):
        response = client.get(f"{API}/stats", params={"student_id": student.id}, headers=auth_headers(other_teacher))
        assert response.status_code == status.HTTP_404_NOT_FOUND


class TestStickerChanges:
    def test_update_and_delete_by_issuer(self, client, teacher, student, issue, auth_headers):
        sticker = issue(teacher, student, StickerLevel.SEED)
        headers = auth_headers(teacher)

        updated = client.patch(f"{API}/{sticker.id}", json={"level": "aurora"}, headers=headers)
        assert updated.status_code == status.HTTP_200_OK
        assert updated.json()["level_meta"]["points"] == 85

        assert client.delete(f"{API}/{sticker.id}", headers=headers).status_code == status.HTTP_200_OK
        assert client.get(API, headers=headers).json()["total"] == 0

    def test_other_teacher_cannot_delete(self, client, teacher, other_teacher, student, issue, auth_headers):
        sticker = issue(teacher, student, StickerLevel.SEED)
        response = client.delete(f"{API}/{sticker.id}", headers=auth_headers(other_teacher))
        assert response.status_code == status.HTTP_404_NOT_FOUND
