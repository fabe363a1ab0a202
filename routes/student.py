"""
Student Self-Service Router
Profile and dashboard for the signed-in student
"""

from fastapi import APIRouter, Depends
from sqlalchemy import func
from sqlalchemy.orm import Session

from db import get_db
from models import Feedback, Lesson, LessonStatus, User
from schemas.api_models import (
    FeedbackResponse,
    LessonResponse,
    StudentDashboardResponse,
    StudentDashboardStats,
    StudentProfileResponse,
)
from utils.error_handling import NotFoundError
from utils.lesson_rules import upcoming_clause
from utils.permissions import Permission, require_permission
from utils.student_assignment import get_active_profile

router = APIRouter()

DASHBOARD_ITEMS = 5


@router.get("/profile", response_model=StudentProfileResponse)
async def get_my_profile(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.VIEW_OWN_PROFILE)),
):
    """Active profile including the teacher's contact details"""
    profile = get_active_profile(db, current_user.id)
    if not profile:
        raise NotFoundError("Student profile not found")
    return StudentProfileResponse.model_validate(profile)


@router.get("/dashboard", response_model=StudentDashboardResponse)
async def get_dashboard(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.VIEW_OWN_PROFILE)),
):
    profile = get_active_profile(db, current_user.id)

    status_counts = dict(
        db.query(Lesson.status, func.count(Lesson.id))
        .filter(Lesson.student_id == current_user.id)
        .group_by(Lesson.status)
        .all()
    )
    total_feedbacks, average_rating = (
        db.query(func.count(Feedback.id), func.avg(Feedback.rating))
        .filter(Feedback.student_id == current_user.id)
        .one()
    )

    upcoming = (
        db.query(Lesson)
        .filter(Lesson.student_id == current_user.id, upcoming_clause())
        .order_by(Lesson.scheduled_at.asc())
        .limit(DASHBOARD_ITEMS)
        .all()
    )
    recent_feedbacks = (
        db.query(Feedback)
        .filter(Feedback.student_id == current_user.id)
        .order_by(Feedback.created_at.desc(), Feedback.id.desc())
        .limit(DASHBOARD_ITEMS)
        .all()
    )

    stats = StudentDashboardStats(
        total_lessons=sum(status_counts.values()),
        completed_lessons=status_counts.get(LessonStatus.COMPLETED, 0),
        scheduled_lessons=status_counts.get(LessonStatus.SCHEDULED, 0),
        total_feedbacks=total_feedbacks,
        average_rating=round(float(average_rating), 2) if average_rating is not None else None,
    )
    return StudentDashboardResponse(
        profile=StudentProfileResponse.model_validate(profile) if profile else None,
        stats=stats,
        upcoming_lessons=[LessonResponse.model_validate(lesson) for lesson in upcoming],
        recent_feedbacks=[FeedbackResponse.model_validate(feedback) for feedback in recent_feedbacks],
    )
