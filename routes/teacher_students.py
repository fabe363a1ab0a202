"""
Teacher Service Router
A teacher's roster (pre-registration, assignment, profile edits) and dashboard counters
"""

from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from db import get_db
from models import Lesson, StudentProfile, User
from routes.feedback import unviewed_reactions_query
from schemas.api_models import (
    AssignRequest,
    BaseResponse,
    StudentPreRegisterRequest,
    StudentProfileResponse,
    StudentProfileUpdateRequest,
    TeacherDashboardResponse,
    UserResponse,
)
from utils.error_handling import NotFoundError, safe_commit, log_operation_success
from utils.lesson_rules import pending_feedback_query, upcoming_clause
from utils.permissions import Permission, require_permission
from utils.student_assignment import (
    active_students_query,
    assign_student,
    deactivate_profile,
    pre_register_student,
    unassigned_students_query,
)

router = APIRouter()


def _own_profile(db: Session, profile_id: int, teacher: User) -> StudentProfile:
    profile = (
        db.query(StudentProfile)
        .filter(
            StudentProfile.id == profile_id,
            StudentProfile.teacher_id == teacher.id,
            StudentProfile.is_active.is_(True),
        )
        .first()
    )
    if not profile:
        raise NotFoundError("Student not found")
    return profile


@router.get("/dashboard", response_model=TeacherDashboardResponse)
async def teacher_dashboard(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.MANAGE_STUDENTS)),
):
    return TeacherDashboardResponse(
        active_students=active_students_query(db, current_user.id).count(),
        upcoming_lessons=db.query(Lesson).filter(Lesson.teacher_id == current_user.id, upcoming_clause()).count(),
        pending_feedback=pending_feedback_query(db, current_user.id).count(),
        unviewed_reactions=unviewed_reactions_query(db, current_user.id).count(),
    )


@router.get("/students", response_model=List[StudentProfileResponse])
async def list_students(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.MANAGE_STUDENTS)),
):
    profiles = active_students_query(db, current_user.id).all()
    return [StudentProfileResponse.model_validate(profile) for profile in profiles]


@router.post("/students", response_model=StudentProfileResponse, status_code=status.HTTP_201_CREATED)
async def pre_register(
    data: StudentPreRegisterRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.MANAGE_STUDENTS)),
):
    """Create a placeholder student the real student later claims by signing up with the same phone"""
    profile = pre_register_student(
        db,
        current_user,
        data.name,
        data.phone,
        voice_type=data.voice_type,
        level=data.level,
        start_date=data.start_date,
        goals=data.goals,
    )
    return StudentProfileResponse.model_validate(profile)


@router.get("/students/unassigned", response_model=List[UserResponse])
async def list_unassigned_students(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.MANAGE_STUDENTS)),
):
    return [UserResponse.model_validate(user) for user in unassigned_students_query(db).all()]


@router.post("/students/assign", response_model=StudentProfileResponse, status_code=status.HTTP_201_CREATED)
async def assign_to_me(
    data: AssignRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.MANAGE_STUDENTS)),
):
    profile = assign_student(db, data.student_id, current_user.id)
    return StudentProfileResponse.model_validate(profile)


@router.get("/students/{profile_id}", response_model=StudentProfileResponse)
async def get_student_profile(
    profile_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.MANAGE_STUDENTS)),
):
    return StudentProfileResponse.model_validate(_own_profile(db, profile_id, current_user))


@router.put("/students/{profile_id}", response_model=StudentProfileResponse)
async def update_student_profile(
    profile_id: int,
    data: StudentProfileUpdateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.MANAGE_STUDENTS)),
):
    profile = _own_profile(db, profile_id, current_user)
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(profile, field, value)

    safe_commit(db, "update student profile")
    db.refresh(profile)
    log_operation_success("Student profile updated", f"profile={profile.id}")
    return StudentProfileResponse.model_validate(profile)


@router.delete("/students/{profile_id}", response_model=BaseResponse)
async def remove_student(
    profile_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.MANAGE_STUDENTS)),
):
    """Soft delete: lessons, feedback and stickers are kept"""
    deactivate_profile(db, _own_profile(db, profile_id, current_user))
    return BaseResponse(message="Student removed")
