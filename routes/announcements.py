"""
Announcement Service Routers
Teachers broadcast notices to their active students and see who has read them
"""

from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from db import get_db
from models import Announcement, AnnouncementRead, NotificationType, User
from schemas.api_models import (
    AnnouncementCreateRequest,
    AnnouncementDetailResponse,
    AnnouncementReadStatus,
    AnnouncementResponse,
    AnnouncementUpdateRequest,
    BaseResponse,
    CountResponse,
    StudentAnnouncementResponse,
    TeacherAnnouncementResponse,
)
from utils.error_handling import NotFoundError, ValidationError, safe_commit, log_operation_success
from utils.notifications import notify_many
from utils.permissions import Permission, require_permission
from utils.student_assignment import active_students_query, get_active_profile
from utils.structured_logging import get_logger, LogCategory

router = APIRouter()
student_router = APIRouter()

logger = get_logger("routes.announcements")


def _own_announcement(db: Session, announcement_id: int, teacher: User) -> Announcement:
    announcement = (
        db.query(Announcement)
        .filter(Announcement.id == announcement_id, Announcement.teacher_id == teacher.id)
        .first()
    )
    if not announcement:
        raise NotFoundError("Announcement not found")
    return announcement


def _read_counts(db: Session, announcement_ids: List[int], student_ids: List[int]) -> Dict[int, int]:
    """Reads per announcement, counting only the given (currently active) students"""
    if not announcement_ids or not student_ids:
        return {}
    rows = (
        db.query(AnnouncementRead.announcement_id, func.count(AnnouncementRead.id))
        .filter(
            AnnouncementRead.announcement_id.in_(announcement_ids),
            AnnouncementRead.student_id.in_(student_ids),
        )
        .group_by(AnnouncementRead.announcement_id)
        .all()
    )
    return dict(rows)


# =============================================================================
# TEACHER ENDPOINTS
# =============================================================================


@router.post("", response_model=AnnouncementResponse, status_code=status.HTTP_201_CREATED)
async def create_announcement(
    data: AnnouncementCreateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.MANAGE_ANNOUNCEMENTS)),
):
    announcement = Announcement(teacher_id=current_user.id, title=data.title, content=data.content)
    db.add(announcement)
    safe_commit(db, "create announcement")
    db.refresh(announcement)

    recipients = [profile.user_id for profile in active_students_query(db, current_user.id).all()]
    logger.info(
        "Announcement posted",
        category=LogCategory.BUSINESS,
        user_id=current_user.id,
        extra={"announcement_id": announcement.id, "recipients": len(recipients)},
    )
    notify_many(
        db,
        recipients,
        NotificationType.ANNOUNCEMENT_POSTED,
        f"New announcement from {current_user.name}",
        announcement.title,
    )
    return AnnouncementResponse.model_validate(announcement)


@router.get("", response_model=List[TeacherAnnouncementResponse])
async def list_announcements(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.MANAGE_ANNOUNCEMENTS)),
):
    announcements = (
        db.query(Announcement)
        .filter(Announcement.teacher_id == current_user.id)
        .order_by(Announcement.created_at.desc(), Announcement.id.desc())
        .all()
    )
    student_ids = [profile.user_id for profile in active_students_query(db, current_user.id).all()]
    read_counts = _read_counts(db, [a.id for a in announcements], student_ids)

    return [
        TeacherAnnouncementResponse(
            **AnnouncementResponse.model_validate(a).model_dump(),
            read_count=read_counts.get(a.id, 0),
            total_students=len(student_ids),
        )
        for a in announcements
    ]


@router.get("/{announcement_id}", response_model=AnnouncementDetailResponse)
async def get_announcement(
    announcement_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.MANAGE_ANNOUNCEMENTS)),
):
    """Read status of every active student of the teacher"""
    announcement = _own_announcement(db, announcement_id, current_user)
    reads = {read.student_id: read.read_at for read in announcement.reads}
    profiles = active_students_query(db, current_user.id).all()

    students = [
        AnnouncementReadStatus(
            student_id=profile.user_id,
            student_name=profile.student.name,
            is_read=profile.user_id in reads,
            read_at=reads.get(profile.user_id),
        )
        for profile in profiles
    ]
    return AnnouncementDetailResponse(
        **AnnouncementResponse.model_validate(announcement).model_dump(),
        read_count=sum(1 for entry in students if entry.is_read),
        total_students=len(profiles),
        students=students,
    )


@router.put("/{announcement_id}", response_model=AnnouncementResponse)
async def update_announcement(
    announcement_id: int,
    data: AnnouncementUpdateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.MANAGE_ANNOUNCEMENTS)),
):
    announcement = _own_announcement(db, announcement_id, current_user)

    changes = data.model_dump(exclude_unset=True)
    for field, value in changes.items():
        if value is None:
            raise ValidationError(f"{field} cannot be empty")
        setattr(announcement, field, value)

    safe_commit(db, "update announcement")
    db.refresh(announcement)
    log_operation_success("Announcement updated", f"announcement={announcement.id}")
    return AnnouncementResponse.model_validate(announcement)


@router.delete("/{announcement_id}", response_model=BaseResponse)
async def delete_announcement(
    announcement_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.MANAGE_ANNOUNCEMENTS)),
):
    """Read receipts go with the announcement"""
    announcement = _own_announcement(db, announcement_id, current_user)
    db.delete(announcement)
    safe_commit(db, "delete announcement")
    log_operation_success("Announcement deleted", f"announcement={announcement_id}")
    return BaseResponse(message="Announcement deleted")


# =============================================================================
# STUDENT ENDPOINTS
# =============================================================================


def _assigned_teacher_id(db: Session, student: User) -> Optional[int]:
    profile = get_active_profile(db, student.id)
    return profile.teacher_id if profile else None


def _visible_announcements(db: Session, teacher_id: int):
    return db.query(Announcement).filter(Announcement.teacher_id == teacher_id, Announcement.is_active.is_(True))


def find_read(db: Session, announcement_id: int, student_id: int) -> Optional[AnnouncementRead]:
    return (
        db.query(AnnouncementRead)
        .filter(AnnouncementRead.announcement_id == announcement_id, AnnouncementRead.student_id == student_id)
        .first()
    )


def _student_view(announcement: Announcement, read: Optional[AnnouncementRead]) -> StudentAnnouncementResponse:
    return StudentAnnouncementResponse(
        **AnnouncementResponse.model_validate(announcement).model_dump(),
        teacher_name=announcement.teacher.name if announcement.teacher else None,
        is_read=read is not None,
        read_at=read.read_at if read else None,
    )


@student_router.get("", response_model=List[StudentAnnouncementResponse])
async def list_student_announcements(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.READ_ANNOUNCEMENTS)),
):
    """Active announcements of the student's current teacher; empty when unassigned"""
    teacher_id = _assigned_teacher_id(db, current_user)
    if teacher_id is None:
        return []

    rows = (
        _visible_announcements(db, teacher_id)
        .outerjoin(
            AnnouncementRead,
            (AnnouncementRead.announcement_id == Announcement.id) & (AnnouncementRead.student_id == current_user.id),
        )
        .add_entity(AnnouncementRead)
        .order_by(Announcement.created_at.desc(), Announcement.id.desc())
        .all()
    )
    return [_student_view(announcement, read) for announcement, read in rows]


@student_router.get("/unread-count", response_model=CountResponse)
async def student_unread_count(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.READ_ANNOUNCEMENTS)),
):
    teacher_id = _assigned_teacher_id(db, current_user)
    if teacher_id is None:
        return CountResponse(count=0)

    visible = _visible_announcements(db, teacher_id)
    total = visible.count()
    read = (
        visible.join(AnnouncementRead, AnnouncementRead.announcement_id == Announcement.id)
        .filter(AnnouncementRead.student_id == current_user.id)
        .count()
    )
    return CountResponse(count=max(total - read, 0))


@student_router.post("/{announcement_id}/read", response_model=StudentAnnouncementResponse)
async def mark_announcement_read(
    announcement_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.READ_ANNOUNCEMENTS)),
):
    """Idempotent: reading twice keeps the first read time"""
    teacher_id = _assigned_teacher_id(db, current_user)
    announcement = None
    if teacher_id is not None:
        announcement = _visible_announcements(db, teacher_id).filter(Announcement.id == announcement_id).first()
    if not announcement:
        raise NotFoundError("Announcement not found")

    read = find_read(db, announcement.id, current_user.id)
    if read is None:
        db.add(AnnouncementRead(announcement_id=announcement.id, student_id=current_user.id))
        try:
            db.commit()
        except IntegrityError:
            # Another request recorded the read first
            db.rollback()
        read = find_read(db, announcement.id, current_user.id)

    return _student_view(announcement, read)
