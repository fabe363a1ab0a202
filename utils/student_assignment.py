"""
Student <-> teacher assignment rules shared by the teacher and admin routers
"""

from typing import Optional

from sqlalchemy import and_, exists
from sqlalchemy.orm import Query, Session

from models import NotificationType, StudentProfile, User, UserRole
from utils.error_handling import ConflictError, NotFoundError, safe_commit, log_operation_success
from utils.notifications import notify

ALREADY_ASSIGNED = "Student is already assigned to a teacher"


def get_active_profile(db: Session, student_id: int) -> Optional[StudentProfile]:
    return (
        db.query(StudentProfile)
        .filter(StudentProfile.user_id == student_id, StudentProfile.is_active.is_(True))
        .first()
    )


def get_student(db: Session, student_id: int) -> User:
    student = db.query(User).filter(User.id == student_id, User.role == UserRole.STUDENT).first()
    if not student:
        raise NotFoundError("Student not found")
    return student


def get_teacher(db: Session, teacher_id: int) -> User:
    teacher = db.query(User).filter(User.id == teacher_id, User.role == UserRole.TEACHER).first()
    if not teacher:
        raise NotFoundError("Teacher not found")
    return teacher


def active_students_query(db: Session, teacher_id: int) -> Query:
    """Active profiles of a teacher, oldest first"""
    return (
        db.query(StudentProfile)
        .filter(StudentProfile.teacher_id == teacher_id, StudentProfile.is_active.is_(True))
        .order_by(StudentProfile.created_at.asc(), StudentProfile.id.asc())
    )


def unassigned_students_query(db: Session) -> Query:
    """Students with no active profile"""
    has_active_profile = exists().where(
        and_(StudentProfile.user_id == User.id, StudentProfile.is_active.is_(True))
    )
    return db.query(User).filter(User.role == UserRole.STUDENT, ~has_active_profile).order_by(User.created_at.desc())


def assign_student(db: Session, student_id: int, teacher_id: int) -> StudentProfile:
    """Create a new active profile for a student who currently has none"""
    student = get_student(db, student_id)
    get_teacher(db, teacher_id)

    if get_active_profile(db, student.id):
        raise ConflictError(ALREADY_ASSIGNED)

    profile = StudentProfile(user_id=student.id, teacher_id=teacher_id, is_active=True)
    db.add(profile)
    # The partial unique index catches a concurrent assignment
    safe_commit(db, "assign student", conflict_message=ALREADY_ASSIGNED)
    db.refresh(profile)

    log_operation_success("Student assigned", f"student={student.id} teacher={teacher_id}")
    return profile


def reassign_student(db: Session, profile_id: int, new_teacher_id: int) -> StudentProfile:
    """Point an active profile at another teacher and tell the student"""
    profile = (
        db.query(StudentProfile)
        .filter(StudentProfile.id == profile_id, StudentProfile.is_active.is_(True))
        .first()
    )
    if not profile:
        raise NotFoundError("Student profile not found")

    new_teacher = get_teacher(db, new_teacher_id)
    if profile.teacher_id == new_teacher.id:
        return profile

    previous_teacher_id = profile.teacher_id
    profile.teacher_id = new_teacher.id
    safe_commit(db, "reassign student")
    db.refresh(profile)

    log_operation_success(
        "Student reassigned", f"profile={profile.id} from={previous_teacher_id} to={new_teacher.id}"
    )
    notify(
        db,
        profile.user_id,
        NotificationType.TEACHER_CHANGED,
        "Your teacher has changed",
        f"{new_teacher.name} is now your teacher",
    )
    return profile


def pre_register_student(db: Session, teacher: User, name: str, phone: str, **profile_fields) -> StudentProfile:
    """Placeholder account (no password) plus an active profile under the teacher"""
    if db.query(User).filter(User.phone == phone).first():
        raise ConflictError("Phone number already registered")

    student = User(name=name, phone=phone, role=UserRole.STUDENT, password_hash=None)
    profile = StudentProfile(student=student, teacher_id=teacher.id, is_active=True, **profile_fields)
    db.add(profile)
    safe_commit(db, "pre-register student", conflict_message="Phone number already registered")
    db.refresh(profile)

    log_operation_success("Student pre-registered", f"student={student.id} teacher={teacher.id}")
    return profile


def deactivate_profile(db: Session, profile: StudentProfile) -> StudentProfile:
    """Soft delete: history stays, the student drops out of the teacher's scope"""
    profile.is_active = False
    safe_commit(db, "deactivate student profile")
    db.refresh(profile)
    log_operation_success("Student profile deactivated", f"profile={profile.id}")
    return profile
