"""
Lesson Service Router
Scheduling, status changes and lesson views for teachers and students
"""

from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from db import get_db
from models import Lesson, LessonStatus, User, UserRole, utcnow
from schemas.api_models import (
    FeedbackResponse,
    LessonCreateRequest,
    LessonDetailResponse,
    LessonResponse,
    LessonUpdateRequest,
)
from utils.error_handling import AuthorizationError, NotFoundError, ValidationError, safe_commit, log_operation_success
from utils.lesson_rules import transition
from utils.notifications import notify_lesson_cancelled, notify_lesson_created, notify_lesson_updated
from utils.permissions import Permission, ensure_lesson_access, ensure_teaches_student, require_permission
from utils.student_assignment import get_student, get_teacher
from utils.structured_logging import get_logger, LogCategory

router = APIRouter()

logger = get_logger("routes.lessons")


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def load_lesson(db: Session, lesson_id: int) -> Optional[Lesson]:
    return db.query(Lesson).filter(Lesson.id == lesson_id).first()


def update_lesson(db: Session, lesson: Lesson, data: LessonUpdateRequest, actor: User) -> Lesson:
    """
    Apply a partial update; teacher/student reassignment is admin-only

    The student is told when the schedule changes, or when the lesson is
    moved onto them.
    """
    changes = data.model_dump(exclude_unset=True)

    reassigning = {key for key in ("teacher_id", "student_id") if changes.get(key) is not None}
    reassigning = {key for key in reassigning if changes[key] != getattr(lesson, key)}
    if reassigning and not actor.is_admin:
        raise AuthorizationError("Only administrators can move a lesson to another teacher or student")

    if "teacher_id" in reassigning:
        lesson.teacher_id = get_teacher(db, changes["teacher_id"]).id
    student_changed = "student_id" in reassigning
    if student_changed:
        lesson.student_id = get_student(db, changes["student_id"]).id

    schedule_changed = False
    if changes.get("scheduled_at") is not None:
        new_start = _as_utc(changes["scheduled_at"])
        schedule_changed = new_start != lesson.scheduled_at
        lesson.scheduled_at = new_start
    if changes.get("duration") is not None:
        schedule_changed = schedule_changed or changes["duration"] != lesson.duration
        lesson.duration = changes["duration"]

    for field in ("title", "location", "notes"):
        if field in changes:
            setattr(lesson, field, changes[field])

    safe_commit(db, "update lesson")
    db.refresh(lesson)
    log_operation_success("Lesson updated", f"lesson={lesson.id} by={actor.id}")

    if student_changed:
        notify_lesson_updated(db, lesson, reason="assigned to you")
    elif schedule_changed:
        notify_lesson_updated(db, lesson, reason="rescheduled")
    return lesson


def cancel_lesson(db: Session, lesson: Lesson) -> Lesson:
    transition(lesson, LessonStatus.CANCELLED)
    safe_commit(db, "cancel lesson")
    db.refresh(lesson)
    log_operation_success("Lesson cancelled", f"lesson={lesson.id}")
    notify_lesson_cancelled(db, lesson)
    return lesson


@router.post("", response_model=LessonResponse, status_code=status.HTTP_201_CREATED)
async def create_lesson(
    data: LessonCreateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.MANAGE_LESSONS)),
):
    ensure_teaches_student(db, current_user, data.student_id)

    lesson = Lesson(
        teacher_id=current_user.id,
        student_id=data.student_id,
        title=data.title,
        scheduled_at=_as_utc(data.scheduled_at),
        duration=data.duration,
        location=data.location,
        notes=data.notes,
        status=LessonStatus.SCHEDULED,
    )
    db.add(lesson)
    safe_commit(db, "create lesson")
    db.refresh(lesson)

    logger.info(
        "Lesson scheduled",
        category=LogCategory.BUSINESS,
        user_id=current_user.id,
        extra={"lesson_id": lesson.id, "student_id": lesson.student_id},
    )
    notify_lesson_created(db, lesson, current_user.name)
    return LessonResponse.model_validate(lesson)


@router.get("", response_model=List[LessonResponse])
async def list_lessons(
    status_filter: Optional[LessonStatus] = Query(None, alias="status"),
    student_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.VIEW_LESSONS)),
):
    """Own lessons only: a teacher's schedule or a student's lessons"""
    query = db.query(Lesson)
    if current_user.role == UserRole.TEACHER:
        query = query.filter(Lesson.teacher_id == current_user.id)
        if student_id is not None:
            query = query.filter(Lesson.student_id == student_id)
    else:
        query = query.filter(Lesson.student_id == current_user.id)

    if status_filter is not None:
        query = query.filter(Lesson.status == status_filter)

    lessons = query.order_by(Lesson.scheduled_at.desc()).all()
    return [LessonResponse.model_validate(lesson) for lesson in lessons]


@router.get("/{lesson_id}", response_model=LessonDetailResponse)
async def get_lesson(
    lesson_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.VIEW_LESSONS)),
):
    lesson = ensure_lesson_access(current_user, load_lesson(db, lesson_id))
    return LessonDetailResponse.model_validate(lesson)


@router.get("/{lesson_id}/feedback", response_model=FeedbackResponse)
async def get_lesson_feedback(
    lesson_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.VIEW_FEEDBACK)),
):
    lesson = ensure_lesson_access(current_user, load_lesson(db, lesson_id))
    if not lesson.feedback:
        raise NotFoundError("Feedback not found")
    return FeedbackResponse.model_validate(lesson.feedback)


@router.put("/{lesson_id}", response_model=LessonResponse)
async def update_lesson_endpoint(
    lesson_id: int,
    data: LessonUpdateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.MANAGE_LESSONS)),
):
    lesson = ensure_lesson_access(current_user, load_lesson(db, lesson_id), write=True)
    return LessonResponse.model_validate(update_lesson(db, lesson, data, current_user))


@router.patch("/{lesson_id}/cancel", response_model=LessonResponse)
async def cancel_lesson_endpoint(
    lesson_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.MANAGE_LESSONS)),
):
    lesson = ensure_lesson_access(current_user, load_lesson(db, lesson_id), write=True)
    return LessonResponse.model_validate(cancel_lesson(db, lesson))


@router.patch("/{lesson_id}/restore", response_model=LessonResponse)
async def restore_lesson(
    lesson_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.MANAGE_LESSONS)),
):
    """Only a cancelled lesson can be restored"""
    lesson = ensure_lesson_access(current_user, load_lesson(db, lesson_id), write=True)
    transition(lesson, LessonStatus.SCHEDULED)
    safe_commit(db, "restore lesson")
    db.refresh(lesson)

    log_operation_success("Lesson restored", f"lesson={lesson.id}")
    notify_lesson_updated(db, lesson, reason="restored")
    return LessonResponse.model_validate(lesson)


@router.patch("/{lesson_id}/complete", response_model=LessonResponse)
async def complete_lesson(
    lesson_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.MANAGE_LESSONS)),
):
    """Mark a started lesson as completed; repeating the call is a no-op"""
    lesson = ensure_lesson_access(current_user, load_lesson(db, lesson_id), write=True)
    if lesson.status == LessonStatus.COMPLETED:
        return LessonResponse.model_validate(lesson)

    if lesson.status == LessonStatus.SCHEDULED and lesson.scheduled_at > utcnow():
        raise ValidationError("Lesson has not started yet")

    transition(lesson, LessonStatus.COMPLETED)
    safe_commit(db, "complete lesson")
    db.refresh(lesson)

    log_operation_success("Lesson completed", f"lesson={lesson.id}")
    return LessonResponse.model_validate(lesson)
