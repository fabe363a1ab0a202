"""
Admin Service Router
Studio-wide reports, assignment management and lesson oversight for admin teachers
"""

from datetime import datetime
from typing import List, Literal, Optional, Tuple
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func
from sqlalchemy.orm import Session

from config import settings
from db import get_db
from models import Lesson, LessonStatus, StudentProfile, User, UserRole, utcnow
from routes.lessons import cancel_lesson, load_lesson, update_lesson
from schemas.api_models import (
    AdminAssignRequest,
    AdminFlagRequest,
    AdminStatsResponse,
    AdminStudentResponse,
    AdminTeacherResponse,
    LessonDetailResponse,
    LessonResponse,
    LessonUpdateRequest,
    ReassignRequest,
    StudentProfileResponse,
    TeacherLessonStat,
    TeacherLessonStatsResponse,
    UserResponse,
)
from utils.error_handling import NotFoundError, ValidationError, safe_commit
from utils.lesson_rules import upcoming_clause
from utils.permissions import Permission, require_permission
from utils.student_assignment import assign_student, reassign_student, unassigned_students_query
from utils.structured_logging import get_logger, LogCategory

router = APIRouter()

logger = get_logger("routes.admin")


def month_bounds(month: Optional[str] = None, tz_name: Optional[str] = None) -> Tuple[str, datetime, datetime]:
    """
    Start and end (exclusive) of a calendar month in the studio timezone

    Args:
        month: "YYYY-MM"; the current month when omitted
        tz_name: IANA timezone, STUDIO_TIMEZONE by default

    Returns:
        (label, start, end) with timezone-aware bounds
    """
    tz = ZoneInfo(tz_name or settings.STUDIO_TIMEZONE)
    if month:
        try:
            start = datetime.strptime(month, "%Y-%m").replace(tzinfo=tz)
        except ValueError:
            raise ValidationError("month must be formatted as YYYY-MM")
    else:
        start = utcnow().astimezone(tz).replace(day=1, hour=0, minute=0, second=0, microsecond=0)

    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)
    return start.strftime("%Y-%m"), start, end


# =============================================================================
# REPORTS
# =============================================================================


@router.get("/stats", response_model=AdminStatsResponse)
async def get_admin_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.VIEW_REPORTS)),
):
    active_students = (
        db.query(func.count(func.distinct(StudentProfile.user_id)))
        .filter(StudentProfile.is_active.is_(True))
        .scalar()
    )
    return AdminStatsResponse(
        total_teachers=db.query(User).filter(User.role == UserRole.TEACHER).count(),
        total_students=db.query(User).filter(User.role == UserRole.STUDENT).count(),
        active_students=active_students or 0,
        unassigned_students=unassigned_students_query(db).count(),
        total_lessons=db.query(Lesson).count(),
        upcoming_lessons=db.query(Lesson).filter(upcoming_clause()).count(),
    )


@router.get("/teacher-lesson-stats", response_model=TeacherLessonStatsResponse)
async def get_teacher_lesson_stats(
    month: Optional[str] = Query(None, description="YYYY-MM, defaults to the current month"),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.VIEW_REPORTS)),
):
    """Completed and scheduled lessons per teacher for one month; cancelled lessons are left out"""
    label, start, end = month_bounds(month)

    rows = (
        db.query(Lesson.teacher_id, Lesson.status, func.count(Lesson.id))
        .filter(
            Lesson.scheduled_at >= start,
            Lesson.scheduled_at < end,
            Lesson.status.in_([LessonStatus.COMPLETED, LessonStatus.SCHEDULED]),
        )
        .group_by(Lesson.teacher_id, Lesson.status)
        .all()
    )
    counts = {(teacher_id, status): count for teacher_id, status, count in rows}

    teachers = db.query(User).filter(User.role == UserRole.TEACHER).order_by(User.name.asc(), User.id.asc()).all()
    stats = []
    for teacher in teachers:
        completed = counts.get((teacher.id, LessonStatus.COMPLETED), 0)
        scheduled = counts.get((teacher.id, LessonStatus.SCHEDULED), 0)
        stats.append(
            TeacherLessonStat(
                teacher_id=teacher.id,
                teacher_name=teacher.name,
                completed_lessons=completed,
                scheduled_lessons=scheduled,
                total_lessons=completed + scheduled,
            )
        )
    return TeacherLessonStatsResponse(month=label, stats=stats)


@router.get("/teachers", response_model=List[AdminTeacherResponse])
async def list_teachers(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.VIEW_REPORTS)),
):
    student_counts = dict(
        db.query(StudentProfile.teacher_id, func.count(StudentProfile.id))
        .filter(StudentProfile.is_active.is_(True))
        .group_by(StudentProfile.teacher_id)
        .all()
    )
    teachers = db.query(User).filter(User.role == UserRole.TEACHER).order_by(User.name.asc(), User.id.asc()).all()
    return [
        AdminTeacherResponse(
            **UserResponse.model_validate(teacher).model_dump(),
            active_student_count=student_counts.get(teacher.id, 0),
        )
        for teacher in teachers
    ]


@router.get("/students", response_model=List[AdminStudentResponse])
async def list_students(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.VIEW_REPORTS)),
):
    """Every student with their active profile and teacher, if any"""
    students = db.query(User).filter(User.role == UserRole.STUDENT).order_by(User.created_at.desc()).all()
    return [
        AdminStudentResponse(
            **UserResponse.model_validate(student).model_dump(),
            profile=StudentProfileResponse.model_validate(student.active_profile) if student.active_profile else None,
        )
        for student in students
    ]


# =============================================================================
# ASSIGNMENTS
# =============================================================================


@router.post("/assign-student", response_model=StudentProfileResponse, status_code=201)
async def admin_assign_student(
    data: AdminAssignRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.MANAGE_ASSIGNMENTS)),
):
    profile = assign_student(db, data.student_id, data.teacher_id)
    return StudentProfileResponse.model_validate(profile)


@router.put("/reassign-student", response_model=StudentProfileResponse)
async def admin_reassign_student(
    data: ReassignRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.MANAGE_ASSIGNMENTS)),
):
    profile = reassign_student(db, data.student_profile_id, data.new_teacher_id)
    return StudentProfileResponse.model_validate(profile)


# =============================================================================
# LESSON OVERSIGHT
# =============================================================================


@router.get("/lessons", response_model=List[LessonResponse])
async def list_all_lessons(
    status: Optional[Literal["upcoming", "past"]] = Query(None),
    teacher_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.MANAGE_ALL_LESSONS)),
):
    """upcoming: scheduled and not yet started, soonest first; past: everything else, latest first"""
    now = utcnow()
    query = db.query(Lesson)
    if teacher_id is not None:
        query = query.filter(Lesson.teacher_id == teacher_id)

    if status == "upcoming":
        query = query.filter(upcoming_clause(now)).order_by(Lesson.scheduled_at.asc())
    elif status == "past":
        query = query.filter(~upcoming_clause(now)).order_by(Lesson.scheduled_at.desc())
    else:
        query = query.order_by(Lesson.scheduled_at.desc())

    return [LessonResponse.model_validate(lesson) for lesson in query.all()]


def _any_lesson(db: Session, lesson_id: int) -> Lesson:
    lesson = load_lesson(db, lesson_id)
    if not lesson:
        raise NotFoundError("Lesson not found")
    return lesson


@router.get("/lessons/{lesson_id}", response_model=LessonDetailResponse)
async def admin_get_lesson(
    lesson_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.MANAGE_ALL_LESSONS)),
):
    return LessonDetailResponse.model_validate(_any_lesson(db, lesson_id))


@router.put("/lessons/{lesson_id}", response_model=LessonResponse)
async def admin_update_lesson(
    lesson_id: int,
    data: LessonUpdateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.MANAGE_ALL_LESSONS)),
):
    lesson = update_lesson(db, _any_lesson(db, lesson_id), data, current_user)
    return LessonResponse.model_validate(lesson)


@router.patch("/lessons/{lesson_id}/cancel", response_model=LessonResponse)
async def admin_cancel_lesson(
    lesson_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.MANAGE_ALL_LESSONS)),
):
    return LessonResponse.model_validate(cancel_lesson(db, _any_lesson(db, lesson_id)))


# =============================================================================
# USERS
# =============================================================================


@router.patch("/users/{user_id}/admin", response_model=UserResponse)
async def set_admin_flag(
    user_id: int,
    data: AdminFlagRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.MANAGE_USERS)),
):
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError("User not found")
    if user.role != UserRole.TEACHER:
        raise ValidationError("Only teachers can be administrators")
    if user.id == current_user.id and not data.is_admin:
        raise ValidationError("You cannot revoke your own admin access")

    user.is_admin = data.is_admin
    safe_commit(db, "set admin flag")
    db.refresh(user)

    logger.info(
        f"Admin access {'granted' if data.is_admin else 'revoked'}",
        category=LogCategory.AUTHENTICATION,
        user_id=current_user.id,
        extra={"target_user_id": user.id},
    )
    return UserResponse.model_validate(user)
