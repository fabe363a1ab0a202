"""
Pydantic schemas for the studio API
This is the single source of truth for all API contracts
"""

from pydantic import BaseModel, Field, ConfigDict, EmailStr, field_validator, computed_field
from typing import List, Optional, Dict, Union
from datetime import date, datetime

from models import UserRole, LessonStatus, StickerLevel, NotificationType
from utils.sticker_levels import get_level_meta


def _blank_to_none(value):
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


# ============================================================================
# BASE MODELS
# ============================================================================

class BaseResponse(BaseModel):
    """Base response with common fields"""
    success: bool = True
    message: Optional[str] = None


class CountResponse(BaseModel):
    count: int


class HealthResponse(BaseModel):
    status: str
    timestamp: datetime


# ============================================================================
# USER MODELS
# ============================================================================

class UserBrief(BaseModel):
    id: int
    name: str
    phone: str
    email: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class UserResponse(UserBrief):
    role: UserRole
    is_admin: bool = False
    created_at: datetime


class SignupRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    phone: str = Field(..., min_length=1, max_length=30)
    role: UserRole
    password: str = Field(..., min_length=6)

    @field_validator("name", "phone", mode="before")
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("email", mode="before")
    @classmethod
    def empty_email(cls, v):
        return _blank_to_none(v)


class LoginRequest(BaseModel):
    """Teachers log in with their email, students with their phone number"""
    identifier: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)
    role: UserRole

    @field_validator("identifier", mode="before")
    @classmethod
    def strip_identifier(cls, v):
        return v.strip() if isinstance(v, str) else v


class LoginResponse(BaseResponse):
    user: UserResponse
    token: str
    expires_at: datetime


class AdminFlagRequest(BaseModel):
    is_admin: bool


# ============================================================================
# STUDENT PROFILE MODELS
# ============================================================================

class StudentProfileFields(BaseModel):
    voice_type: Optional[str] = Field(None, max_length=50)
    level: Optional[str] = Field(None, max_length=50)
    start_date: Optional[date] = None
    goals: Optional[str] = None


class StudentPreRegisterRequest(StudentProfileFields):
    name: str = Field(..., min_length=1, max_length=100)
    phone: str = Field(..., min_length=1, max_length=30)

    @field_validator("name", "phone", mode="before")
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v


class StudentProfileUpdateRequest(StudentProfileFields):
    pass


class StudentProfileResponse(StudentProfileFields):
    id: int
    user_id: int
    teacher_id: int
    is_active: bool
    created_at: datetime
    student: Optional[UserBrief] = None
    teacher: Optional[UserBrief] = None

    model_config = ConfigDict(from_attributes=True)


class AssignRequest(BaseModel):
    student_id: int


class AdminAssignRequest(BaseModel):
    student_id: int
    teacher_id: int


class ReassignRequest(BaseModel):
    student_profile_id: int
    new_teacher_id: int


class AdminStudentResponse(UserResponse):
    profile: Optional[StudentProfileResponse] = None


class AdminTeacherResponse(UserResponse):
    active_student_count: int = 0


# ============================================================================
# LESSON MODELS
# ============================================================================

class LessonCreateRequest(BaseModel):
    student_id: int
    title: Optional[str] = Field(None, max_length=200)
    scheduled_at: datetime
    duration: int = Field(60, gt=0)
    location: Optional[str] = Field(None, max_length=200)
    notes: Optional[str] = None


class LessonUpdateRequest(BaseModel):
    """teacher_id and student_id are honoured for admins only"""
    title: Optional[str] = Field(None, max_length=200)
    scheduled_at: Optional[datetime] = None
    duration: Optional[int] = Field(None, gt=0)
    location: Optional[str] = Field(None, max_length=200)
    notes: Optional[str] = None
    teacher_id: Optional[int] = None
    student_id: Optional[int] = None


class FeedbackSummary(BaseModel):
    id: int
    rating: int
    student_reaction: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class LessonResponse(BaseModel):
    id: int
    teacher_id: int
    student_id: int
    title: Optional[str] = None
    scheduled_at: datetime
    duration: int
    status: LessonStatus
    location: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    teacher: Optional[UserBrief] = None
    student: Optional[UserBrief] = None

    model_config = ConfigDict(from_attributes=True)


class LessonDetailResponse(LessonResponse):
    feedback: Optional[FeedbackSummary] = None


# ============================================================================
# FEEDBACK MODELS
# ============================================================================

class FeedbackCreateRequest(BaseModel):
    lesson_id: int
    student_id: int
    rating: int = Field(..., ge=1, le=5)
    content: str = Field(..., min_length=1)
    strengths: Optional[str] = None
    improvements: Optional[str] = None
    homework: Optional[str] = None
    reference_urls: Optional[List[str]] = None


class FeedbackUpdateRequest(BaseModel):
    rating: Optional[int] = Field(None, ge=1, le=5)
    content: Optional[str] = Field(None, min_length=1)
    strengths: Optional[str] = None
    improvements: Optional[str] = None
    homework: Optional[str] = None
    reference_urls: Optional[List[str]] = None


class ReactionRequest(BaseModel):
    reaction: str = Field(..., min_length=1, max_length=16)
    message: Optional[str] = Field(None, max_length=100)

    @field_validator("message", mode="before")
    @classmethod
    def empty_message(cls, v):
        return _blank_to_none(v)


class FeedbackResponse(BaseModel):
    id: int
    lesson_id: int
    teacher_id: int
    student_id: int
    rating: int
    content: str
    strengths: Optional[str] = None
    improvements: Optional[str] = None
    homework: Optional[str] = None
    reference_urls: List[str] = []
    student_reaction: Optional[str] = None
    student_message: Optional[str] = None
    student_reacted_at: Optional[datetime] = None
    teacher_viewed_reaction_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    lesson: Optional[LessonResponse] = None

    model_config = ConfigDict(from_attributes=True)

    @field_validator("reference_urls", mode="before")
    @classmethod
    def split_urls(cls, v):
        # Stored newline-joined
        if v is None:
            return []
        if isinstance(v, str):
            return [line for line in v.splitlines() if line.strip()]
        return v


# ============================================================================
# STICKER MODELS
# ============================================================================

class StickerLevelResponse(BaseModel):
    level: StickerLevel
    order: int
    name: str
    emoji: str
    points: int


class StickerLevelCount(StickerLevelResponse):
    count: int = 0


class StickerCreateRequest(BaseModel):
    student_id: int
    level: StickerLevel
    comment: Optional[str] = None
    lesson_id: Optional[int] = None


class StickerUpdateRequest(BaseModel):
    level: Optional[StickerLevel] = None
    comment: Optional[str] = None


class StickerResponse(BaseModel):
    id: int
    teacher_id: int
    student_id: int
    level: StickerLevel
    comment: Optional[str] = None
    lesson_id: Optional[int] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @computed_field
    @property
    def level_meta(self) -> StickerLevelResponse:
        return StickerLevelResponse(**get_level_meta(self.level).to_dict())


class StickerListResponse(BaseModel):
    stickers: List[StickerResponse]
    total: int
    limit: int
    offset: int


class StickerStatsResponse(BaseModel):
    student_id: int
    total_count: int
    total_points: int
    level_counts: List[StickerLevelCount]
    latest_sticker: Optional[StickerResponse] = None


# ============================================================================
# ANNOUNCEMENT MODELS
# ============================================================================

class AnnouncementCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1)


class AnnouncementUpdateRequest(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    content: Optional[str] = Field(None, min_length=1)
    is_active: Optional[bool] = None


class AnnouncementResponse(BaseModel):
    id: int
    teacher_id: int
    title: str
    content: str
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TeacherAnnouncementResponse(AnnouncementResponse):
    read_count: int = 0
    total_students: int = 0


class AnnouncementReadStatus(BaseModel):
    student_id: int
    student_name: str
    is_read: bool
    read_at: Optional[datetime] = None


class AnnouncementDetailResponse(TeacherAnnouncementResponse):
    students: List[AnnouncementReadStatus] = []


class StudentAnnouncementResponse(AnnouncementResponse):
    teacher_name: Optional[str] = None
    is_read: bool = False
    read_at: Optional[datetime] = None


# ============================================================================
# NOTIFICATION MODELS
# ============================================================================

class NotificationResponse(BaseModel):
    id: int
    type: NotificationType
    title: str
    message: str
    related_lesson_id: Optional[int] = None
    is_read: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class MarkAllReadResponse(BaseResponse):
    updated: int


# ============================================================================
# DASHBOARD & REPORT MODELS
# ============================================================================

class StudentDashboardStats(BaseModel):
    total_lessons: int
    completed_lessons: int
    scheduled_lessons: int
    total_feedbacks: int
    average_rating: Optional[float] = None


class StudentDashboardResponse(BaseModel):
    profile: Optional[StudentProfileResponse] = None
    stats: StudentDashboardStats
    upcoming_lessons: List[LessonResponse]
    recent_feedbacks: List[FeedbackResponse]


class TeacherDashboardResponse(BaseModel):
    active_students: int
    upcoming_lessons: int
    pending_feedback: int
    unviewed_reactions: int


class AdminStatsResponse(BaseModel):
    total_teachers: int
    total_students: int
    active_students: int
    unassigned_students: int
    total_lessons: int
    upcoming_lessons: int


class TeacherLessonStat(BaseModel):
    teacher_id: int
    teacher_name: str
    completed_lessons: int
    scheduled_lessons: int
    total_lessons: int


class TeacherLessonStatsResponse(BaseModel):
    month: str  # YYYY-MM in the studio timezone
    stats: List[TeacherLessonStat]


# ============================================================================
# ERROR MODELS
# ============================================================================

class ErrorDetail(BaseModel):
    field: Optional[str] = None
    message: str
    code: Optional[str] = None


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    detail: Optional[Union[str, List[ErrorDetail], Dict]] = None
    status_code: int
    request_id: Optional[str] = None
