"""
Notification Service Router
In-app notifications for the signed-in user
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from config import settings
from db import get_db
from models import Notification, User
from schemas.api_models import CountResponse, MarkAllReadResponse, NotificationResponse
from utils.error_handling import NotFoundError, safe_commit
from utils.permissions import Permission, require_permission

router = APIRouter()


def _own_notifications(db: Session, user: User):
    return db.query(Notification).filter(Notification.user_id == user.id)


@router.get("", response_model=List[NotificationResponse])
async def list_notifications(
    limit: Optional[int] = Query(None, ge=1, le=200),
    unread_only: bool = Query(False),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.VIEW_NOTIFICATIONS)),
):
    """Newest first"""
    query = _own_notifications(db, current_user)
    if unread_only:
        query = query.filter(Notification.is_read.is_(False))
    notifications = (
        query.order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(limit or settings.NOTIFICATION_PAGE_SIZE)
        .all()
    )
    return [NotificationResponse.model_validate(n) for n in notifications]


@router.get("/unread-count", response_model=CountResponse)
async def unread_count(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.VIEW_NOTIFICATIONS)),
):
    count = _own_notifications(db, current_user).filter(Notification.is_read.is_(False)).count()
    return CountResponse(count=count)


@router.patch("/read-all", response_model=MarkAllReadResponse)
async def mark_all_read(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.VIEW_NOTIFICATIONS)),
):
    updated = (
        _own_notifications(db, current_user)
        .filter(Notification.is_read.is_(False))
        .update({Notification.is_read: True}, synchronize_session=False)
    )
    safe_commit(db, "mark all notifications read")
    return MarkAllReadResponse(message="All notifications marked as read", updated=updated)


@router.patch("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.VIEW_NOTIFICATIONS)),
):
    notification = _own_notifications(db, current_user).filter(Notification.id == notification_id).first()
    if not notification:
        raise NotFoundError("Notification not found")

    if not notification.is_read:
        notification.is_read = True
        safe_commit(db, "mark notification read")
        db.refresh(notification)
    return NotificationResponse.model_validate(notification)
