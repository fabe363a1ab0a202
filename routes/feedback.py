"""
Feedback Service Router
Teacher feedback on lessons and the student reaction workflow
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from db import get_db
from models import Feedback, Lesson, NotificationType, User, UserRole, utcnow
from schemas.api_models import (
    CountResponse,
    FeedbackCreateRequest,
    FeedbackResponse,
    FeedbackUpdateRequest,
    ReactionRequest,
)
from utils.error_handling import ConflictError, NotFoundError, ValidationError, safe_commit, log_operation_success
from utils.notifications import format_lesson_time, notify
from utils.permissions import Permission, require_permission
from utils.structured_logging import get_logger, LogCategory

router = APIRouter()

logger = get_logger("routes.feedback")

FEEDBACK_EXISTS = "Feedback already exists for this lesson"


def _join_urls(urls: Optional[List[str]]) -> Optional[str]:
    if not urls:
        return None
    cleaned = [url.strip() for url in urls if url and url.strip()]
    return "\n".join(cleaned) or None


def unviewed_reactions_query(db: Session, teacher_id: int):
    return db.query(Feedback).filter(
        Feedback.teacher_id == teacher_id,
        Feedback.student_reaction.isnot(None),
        Feedback.teacher_viewed_reaction_at.is_(None),
    )


def _visible_feedback(db: Session, feedback_id: int, user: User) -> Feedback:
    """The feedback's teacher and student can see it; anyone else gets 404"""
    feedback = db.query(Feedback).filter(Feedback.id == feedback_id).first()
    if not feedback or user.id not in (feedback.teacher_id, feedback.student_id):
        raise NotFoundError("Feedback not found")
    return feedback


def _own_feedback(db: Session, feedback_id: int, teacher: User) -> Feedback:
    feedback = db.query(Feedback).filter(Feedback.id == feedback_id, Feedback.teacher_id == teacher.id).first()
    if not feedback:
        raise NotFoundError("Feedback not found")
    return feedback


def feedback_exists(db: Session, lesson_id: int) -> bool:
    return db.query(Feedback.id).filter(Feedback.lesson_id == lesson_id).first() is not None


@router.post("", response_model=FeedbackResponse, status_code=status.HTTP_201_CREATED)
async def create_feedback(
    data: FeedbackCreateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.WRITE_FEEDBACK)),
):
    """One feedback per lesson, written by the lesson's teacher once the lesson has started"""
    lesson = db.query(Lesson).filter(Lesson.id == data.lesson_id, Lesson.teacher_id == current_user.id).first()
    if not lesson:
        raise NotFoundError("Lesson not found")
    if lesson.student_id != data.student_id:
        raise ValidationError("Student does not match the lesson")
    if not lesson.is_feedback_eligible():
        raise ValidationError("Feedback can only be written for a completed or started lesson")

    if feedback_exists(db, lesson.id):
        raise ConflictError(FEEDBACK_EXISTS)

    feedback = Feedback(
        lesson_id=lesson.id,
        teacher_id=current_user.id,
        student_id=lesson.student_id,
        rating=data.rating,
        content=data.content,
        strengths=data.strengths,
        improvements=data.improvements,
        homework=data.homework,
        reference_urls=_join_urls(data.reference_urls),
    )
    db.add(feedback)
    # A concurrent create for the same lesson trips the unique constraint
    safe_commit(db, "create feedback", conflict_message=FEEDBACK_EXISTS)
    db.refresh(feedback)

    logger.info(
        "Feedback written",
        category=LogCategory.BUSINESS,
        user_id=current_user.id,
        extra={"feedback_id": feedback.id, "lesson_id": lesson.id},
    )
    notify(
        db,
        feedback.student_id,
        NotificationType.FEEDBACK_RECEIVED,
        "New feedback",
        f"{current_user.name} left feedback on your lesson of {format_lesson_time(lesson.scheduled_at)}",
        related_lesson_id=lesson.id,
    )
    return FeedbackResponse.model_validate(feedback)


@router.get("", response_model=List[FeedbackResponse])
async def list_feedback(
    student_id: Optional[int] = Query(None),
    lesson_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.VIEW_FEEDBACK)),
):
    query = db.query(Feedback)
    if current_user.role == UserRole.TEACHER:
        query = query.filter(Feedback.teacher_id == current_user.id)
        if student_id is not None:
            query = query.filter(Feedback.student_id == student_id)
    else:
        query = query.filter(Feedback.student_id == current_user.id)

    if lesson_id is not None:
        query = query.filter(Feedback.lesson_id == lesson_id)

    feedbacks = query.order_by(Feedback.created_at.desc(), Feedback.id.desc()).all()
    return [FeedbackResponse.model_validate(feedback) for feedback in feedbacks]


@router.get("/unviewed-reactions-count", response_model=CountResponse)
async def unviewed_reactions_count(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.WRITE_FEEDBACK)),
):
    return CountResponse(count=unviewed_reactions_query(db, current_user.id).count())


@router.get("/{feedback_id}", response_model=FeedbackResponse)
async def get_feedback(
    feedback_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.VIEW_FEEDBACK)),
):
    return FeedbackResponse.model_validate(_visible_feedback(db, feedback_id, current_user))


@router.put("/{feedback_id}", response_model=FeedbackResponse)
async def update_feedback(
    feedback_id: int,
    data: FeedbackUpdateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.WRITE_FEEDBACK)),
):
    feedback = _own_feedback(db, feedback_id, current_user)

    changes = data.model_dump(exclude_unset=True)
    if "reference_urls" in changes:
        changes["reference_urls"] = _join_urls(changes["reference_urls"])
    for field in ("rating", "content"):
        if field in changes and changes[field] is None:
            raise ValidationError(f"{field} cannot be empty")
    for field, value in changes.items():
        setattr(feedback, field, value)

    safe_commit(db, "update feedback")
    db.refresh(feedback)
    log_operation_success("Feedback updated", f"feedback={feedback.id}")
    return FeedbackResponse.model_validate(feedback)


@router.patch("/{feedback_id}/reaction", response_model=FeedbackResponse)
async def react_to_feedback(
    feedback_id: int,
    data: ReactionRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.REACT_TO_FEEDBACK)),
):
    """A new reaction replaces the old one and shows as unviewed again"""
    feedback = db.query(Feedback).filter(Feedback.id == feedback_id, Feedback.student_id == current_user.id).first()
    if not feedback:
        raise NotFoundError("Feedback not found")

    feedback.student_reaction = data.reaction
    feedback.student_message = data.message
    feedback.student_reacted_at = utcnow()
    feedback.teacher_viewed_reaction_at = None

    safe_commit(db, "react to feedback")
    db.refresh(feedback)
    log_operation_success("Feedback reaction saved", f"feedback={feedback.id} student={current_user.id}")
    return FeedbackResponse.model_validate(feedback)


@router.patch("/{feedback_id}/view-reaction", response_model=FeedbackResponse)
async def mark_reaction_viewed(
    feedback_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.WRITE_FEEDBACK)),
):
    feedback = _own_feedback(db, feedback_id, current_user)
    if feedback.student_reaction and feedback.teacher_viewed_reaction_at is None:
        feedback.teacher_viewed_reaction_at = utcnow()
        safe_commit(db, "mark reaction viewed")
        db.refresh(feedback)
    return FeedbackResponse.model_validate(feedback)
