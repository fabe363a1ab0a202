"""
Role-Based Access Control (RBAC) System
One policy table maps roles to permissions; ownership predicates are checked
uniformly before handler logic runs.
"""

from enum import Enum
from typing import Set, Dict, List, Optional
from fastapi import Depends
from sqlalchemy.orm import Session

from models import User, UserRole, Lesson, StudentProfile
from utils.auth_dependencies import get_current_user
from utils.error_handling import AuthorizationError, NotFoundError
from utils.logging_config import logger


class AccessRole(str, Enum):
    """Effective roles used by the policy table; admin is layered on top of teacher"""

    STUDENT = "student"
    TEACHER = "teacher"
    ADMIN = "admin"


class Permission(Enum):
    """Define specific permissions in the system"""

    # Lessons
    VIEW_LESSONS = "view_lessons"
    MANAGE_LESSONS = "manage_lessons"

    # Feedback
    VIEW_FEEDBACK = "view_feedback"
    WRITE_FEEDBACK = "write_feedback"
    REACT_TO_FEEDBACK = "react_to_feedback"

    # Stickers
    VIEW_STICKERS = "view_stickers"
    ISSUE_STICKERS = "issue_stickers"

    # Announcements
    MANAGE_ANNOUNCEMENTS = "manage_announcements"
    READ_ANNOUNCEMENTS = "read_announcements"

    # Students
    MANAGE_STUDENTS = "manage_students"
    VIEW_OWN_PROFILE = "view_own_profile"

    # Notifications
    VIEW_NOTIFICATIONS = "view_notifications"

    # Administration
    VIEW_REPORTS = "view_reports"
    MANAGE_ASSIGNMENTS = "manage_assignments"
    MANAGE_ALL_LESSONS = "manage_all_lessons"
    MANAGE_USERS = "manage_users"


# Define role-permission mappings
STUDENT_PERMISSIONS = {
    Permission.VIEW_LESSONS,
    Permission.VIEW_FEEDBACK,
    Permission.REACT_TO_FEEDBACK,
    Permission.VIEW_STICKERS,
    Permission.READ_ANNOUNCEMENTS,
    Permission.VIEW_OWN_PROFILE,
    Permission.VIEW_NOTIFICATIONS,
}

TEACHER_PERMISSIONS = {
    Permission.VIEW_LESSONS,
    Permission.MANAGE_LESSONS,
    Permission.VIEW_FEEDBACK,
    Permission.WRITE_FEEDBACK,
    Permission.VIEW_STICKERS,
    Permission.ISSUE_STICKERS,
    Permission.MANAGE_ANNOUNCEMENTS,
    Permission.MANAGE_STUDENTS,
    Permission.VIEW_NOTIFICATIONS,
}

ADMIN_PERMISSIONS = {
    Permission.VIEW_REPORTS,
    Permission.MANAGE_ASSIGNMENTS,
    Permission.MANAGE_ALL_LESSONS,
    Permission.MANAGE_USERS,
}

ROLE_PERMISSIONS: Dict[AccessRole, Set[Permission]] = {
    AccessRole.STUDENT: STUDENT_PERMISSIONS,
    AccessRole.TEACHER: TEACHER_PERMISSIONS,
    AccessRole.ADMIN: ADMIN_PERMISSIONS,
}


class PermissionChecker:
    """Helper class for checking permissions"""

    @staticmethod
    def get_user_roles(user: User) -> List[AccessRole]:
        if not user or not user.role:
            return []
        roles = [AccessRole(user.role.value)]
        if user.is_admin:
            roles.append(AccessRole.ADMIN)
        return roles

    @staticmethod
    def get_user_permissions(user: User) -> Set[Permission]:
        """Get all permissions for a user"""
        permissions: Set[Permission] = set()
        for role in PermissionChecker.get_user_roles(user):
            permissions |= ROLE_PERMISSIONS.get(role, set())
        return permissions

    @staticmethod
    def user_has_permission(user: User, permission: Permission) -> bool:
        return permission in PermissionChecker.get_user_permissions(user)

    @staticmethod
    def is_admin(user: User) -> bool:
        return bool(user and user.is_admin)


def require_permission(permission: Permission):
    """Dependency factory: the current user must hold the given permission"""

    async def permission_dependency(current_user: User = Depends(get_current_user)) -> User:
        if not PermissionChecker.user_has_permission(current_user, permission):
            logger.warning(f"Permission denied: User {current_user.id} attempted {permission.value} without permission")
            raise AuthorizationError(f"Permission required: {permission.value}")
        return current_user

    return permission_dependency


# =============================================================================
# OWNERSHIP PREDICATES
# =============================================================================


def can_view_lesson(user: User, lesson: Lesson) -> bool:
    return user.is_admin or lesson.teacher_id == user.id or lesson.student_id == user.id


def can_modify_lesson(user: User, lesson: Lesson) -> bool:
    if user.role != UserRole.TEACHER:
        return False
    return user.is_admin or lesson.teacher_id == user.id


def ensure_lesson_access(user: User, lesson: Optional[Lesson], write: bool = False) -> Lesson:
    """
    Resolve lesson visibility for the caller

    Lessons outside the caller's scope are reported as missing; a student who
    can see a lesson but tries to change it gets 403.
    """
    if not lesson or not can_view_lesson(user, lesson):
        raise NotFoundError("Lesson not found")
    if write and not can_modify_lesson(user, lesson):
        raise AuthorizationError("Only the lesson's teacher can modify it")
    return lesson


def find_teacher_profile(
    db: Session, teacher_id: int, student_id: int, active_only: bool = True
) -> Optional[StudentProfile]:
    """The profile linking the student to the teacher, if any"""
    query = db.query(StudentProfile).filter(
        StudentProfile.user_id == student_id, StudentProfile.teacher_id == teacher_id
    )
    if active_only:
        query = query.filter(StudentProfile.is_active.is_(True))
    return query.order_by(StudentProfile.is_active.desc(), StudentProfile.id.desc()).first()


def ensure_teaches_student(db: Session, teacher: User, student_id: int, active_only: bool = True) -> StudentProfile:
    """A student is only in a teacher's scope through a StudentProfile pointing at that teacher"""
    profile = find_teacher_profile(db, teacher.id, student_id, active_only=active_only)
    if not profile:
        raise NotFoundError("Student not found")
    return profile
