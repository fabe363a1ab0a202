"""
In-app notification fan-out

Notifications are written after the primary change has been committed, so a
failure here is logged and rolled back without undoing that change.
"""

from datetime import datetime
from typing import Iterable, List, Optional
from zoneinfo import ZoneInfo

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config import settings
from models import Lesson, Notification, NotificationType
from utils.structured_logging import get_logger, LogCategory

logger = get_logger("notifications")


def format_lesson_time(value: datetime) -> str:
    """Lesson start in the studio's local time, e.g. 2025-03-01 14:00"""
    return value.astimezone(ZoneInfo(settings.STUDIO_TIMEZONE)).strftime("%Y-%m-%d %H:%M")


def notify_many(
    db: Session,
    user_ids: Iterable[int],
    notification_type: NotificationType,
    title: str,
    message: str,
    related_lesson_id: Optional[int] = None,
) -> List[Notification]:
    """Create one notification per recipient in a single commit; never raises on database errors"""
    recipients = list(dict.fromkeys(user_ids))
    if not recipients:
        return []

    notifications = [
        Notification(
            user_id=user_id,
            type=notification_type,
            title=title,
            message=message,
            related_lesson_id=related_lesson_id,
        )
        for user_id in recipients
    ]
    try:
        db.add_all(notifications)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(
            f"Failed to create {notification_type.value} notifications",
            category=LogCategory.NOTIFICATION,
            exception=e,
            extra={"recipients": recipients, "related_lesson_id": related_lesson_id},
        )
        return []

    logger.info(
        f"Created {len(notifications)} {notification_type.value} notification(s)",
        category=LogCategory.NOTIFICATION,
        extra={"recipients": recipients},
    )
    return notifications


def notify(
    db: Session,
    user_id: int,
    notification_type: NotificationType,
    title: str,
    message: str,
    related_lesson_id: Optional[int] = None,
) -> Optional[Notification]:
    created = notify_many(db, [user_id], notification_type, title, message, related_lesson_id)
    return created[0] if created else None


def notify_lesson_created(db: Session, lesson: Lesson, teacher_name: str):
    return notify(
        db,
        lesson.student_id,
        NotificationType.LESSON_CREATED,
        "New lesson scheduled",
        f"{teacher_name} scheduled a lesson for {format_lesson_time(lesson.scheduled_at)}",
        related_lesson_id=lesson.id,
    )


def notify_lesson_updated(db: Session, lesson: Lesson, reason: str = "rescheduled"):
    return notify(
        db,
        lesson.student_id,
        NotificationType.LESSON_UPDATED,
        "Lesson updated",
        f"Your lesson was {reason}: {format_lesson_time(lesson.scheduled_at)}",
        related_lesson_id=lesson.id,
    )


def notify_lesson_cancelled(db: Session, lesson: Lesson):
    return notify(
        db,
        lesson.student_id,
        NotificationType.LESSON_CANCELLED,
        "Lesson cancelled",
        f"Your lesson on {format_lesson_time(lesson.scheduled_at)} was cancelled",
        related_lesson_id=lesson.id,
    )
