"""
Sticker Service Router
Gamified rewards issued by teachers, with per-student point totals
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from db import get_db
from models import Lesson, Sticker, User, UserRole
from schemas.api_models import (
    BaseResponse,
    StickerCreateRequest,
    StickerLevelCount,
    StickerLevelResponse,
    StickerListResponse,
    StickerResponse,
    StickerStatsResponse,
    StickerUpdateRequest,
)
from utils.error_handling import NotFoundError, ValidationError, safe_commit, log_operation_success
from utils.permissions import Permission, ensure_teaches_student, require_permission
from utils.sticker_levels import STICKER_LEVELS_LIST, calc_total_points, zero_filled_counts
from utils.structured_logging import get_logger, LogCategory

router = APIRouter()

logger = get_logger("routes.stickers")


def _own_sticker(db: Session, sticker_id: int, teacher: User) -> Sticker:
    sticker = db.query(Sticker).filter(Sticker.id == sticker_id, Sticker.teacher_id == teacher.id).first()
    if not sticker:
        raise NotFoundError("Sticker not found")
    return sticker


def sticker_stats(db: Session, student_id: int) -> StickerStatsResponse:
    """Counts for every level in reward order, point total and the newest sticker"""
    rows = (
        db.query(Sticker.level, func.count(Sticker.id))
        .filter(Sticker.student_id == student_id)
        .group_by(Sticker.level)
        .all()
    )
    level_counts = {level: count for level, count in rows}
    latest = (
        db.query(Sticker)
        .filter(Sticker.student_id == student_id)
        .order_by(Sticker.created_at.desc(), Sticker.id.desc())
        .first()
    )
    return StickerStatsResponse(
        student_id=student_id,
        total_count=sum(level_counts.values()),
        total_points=calc_total_points(level_counts),
        level_counts=[StickerLevelCount(**entry) for entry in zero_filled_counts(level_counts)],
        latest_sticker=StickerResponse.model_validate(latest) if latest else None,
    )


@router.get("/levels", response_model=List[StickerLevelResponse])
async def get_sticker_levels():
    """Public reward table, lowest level first"""
    return [StickerLevelResponse(**meta.to_dict()) for meta in STICKER_LEVELS_LIST]


@router.post("", response_model=StickerResponse, status_code=status.HTTP_201_CREATED)
async def create_sticker(
    data: StickerCreateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.ISSUE_STICKERS)),
):
    ensure_teaches_student(db, current_user, data.student_id)

    if data.lesson_id is not None:
        lesson = (
            db.query(Lesson)
            .filter(
                Lesson.id == data.lesson_id,
                Lesson.teacher_id == current_user.id,
                Lesson.student_id == data.student_id,
            )
            .first()
        )
        if not lesson:
            raise NotFoundError("Lesson not found")

    sticker = Sticker(
        teacher_id=current_user.id,
        student_id=data.student_id,
        level=data.level,
        comment=data.comment,
        lesson_id=data.lesson_id,
    )
    db.add(sticker)
    safe_commit(db, "issue sticker")
    db.refresh(sticker)

    logger.info(
        f"Sticker issued: {sticker.level.value}",
        category=LogCategory.BUSINESS,
        user_id=current_user.id,
        extra={"sticker_id": sticker.id, "student_id": sticker.student_id},
    )
    return StickerResponse.model_validate(sticker)


@router.get("", response_model=StickerListResponse)
async def list_stickers(
    student_id: Optional[int] = Query(None),
    lesson_id: Optional[int] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.VIEW_STICKERS)),
):
    """Teachers see stickers they issued, students the stickers they received"""
    query = db.query(Sticker)
    if current_user.role == UserRole.TEACHER:
        query = query.filter(Sticker.teacher_id == current_user.id)
        if student_id is not None:
            query = query.filter(Sticker.student_id == student_id)
    else:
        query = query.filter(Sticker.student_id == current_user.id)

    if lesson_id is not None:
        query = query.filter(Sticker.lesson_id == lesson_id)

    total = query.count()
    stickers = query.order_by(Sticker.created_at.desc(), Sticker.id.desc()).offset(offset).limit(limit).all()
    return StickerListResponse(
        stickers=[StickerResponse.model_validate(sticker) for sticker in stickers],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/stats", response_model=StickerStatsResponse)
async def get_sticker_stats(
    student_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.VIEW_STICKERS)),
):
    if current_user.role == UserRole.STUDENT:
        return sticker_stats(db, current_user.id)

    if student_id is None:
        raise ValidationError("student_id is required")
    ensure_teaches_student(db, current_user, student_id, active_only=False)
    return sticker_stats(db, student_id)


@router.patch("/{sticker_id}", response_model=StickerResponse)
async def update_sticker(
    sticker_id: int,
    data: StickerUpdateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.ISSUE_STICKERS)),
):
    sticker = _own_sticker(db, sticker_id, current_user)

    changes = data.model_dump(exclude_unset=True)
    if "level" in changes and changes["level"] is None:
        raise ValidationError("level cannot be empty")
    for field, value in changes.items():
        setattr(sticker, field, value)

    safe_commit(db, "update sticker")
    db.refresh(sticker)
    log_operation_success("Sticker updated", f"sticker={sticker.id}")
    return StickerResponse.model_validate(sticker)


@router.delete("/{sticker_id}", response_model=BaseResponse)
async def delete_sticker(
    sticker_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.ISSUE_STICKERS)),
):
    sticker = _own_sticker(db, sticker_id, current_user)
    db.delete(sticker)
    safe_commit(db, "delete sticker")
    log_operation_success("Sticker deleted", f"sticker={sticker_id}")
    return BaseResponse(message="Sticker deleted")
