from sqlalchemy import Column, Integer, String, DateTime, Date, ForeignKey, Enum, Boolean, Text
from sqlalchemy import UniqueConstraint, CheckConstraint, Index, text
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.types import TypeDecorator
import enum
from datetime import datetime, timezone

Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware timestamp stored as UTC.

    - On PostgreSQL => TIMESTAMP WITH TIME ZONE
    - On SQLite     => naive UTC text, re-tagged as UTC when loaded

    Naive values coming in are assumed to already be UTC.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        value = value.astimezone(timezone.utc)
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class UserRole(str, enum.Enum):
    TEACHER = "teacher"
    STUDENT = "student"


class LessonStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class StickerLevel(str, enum.Enum):
    SEED = "seed"
    BLOOM = "bloom"
    SHOOTING_STAR = "shooting_star"
    ROCKET = "rocket"
    SATELLITE = "satellite"
    AURORA = "aurora"
    TO_THE_MOON = "to_the_moon"


class NotificationType(str, enum.Enum):
    LESSON_CREATED = "lesson_created"
    LESSON_UPDATED = "lesson_updated"
    LESSON_CANCELLED = "lesson_cancelled"
    TEACHER_CHANGED = "teacher_changed"
    FEEDBACK_RECEIVED = "feedback_received"
    ANNOUNCEMENT_POSTED = "announcement_posted"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, nullable=True, index=True)
    phone = Column(String(30), unique=True, nullable=False, index=True)
    password_hash = Column(String, nullable=True)  # NULL for pre-registered placeholders
    role = Column(Enum(UserRole, name="user_role", values_callable=_enum_values), nullable=False, index=True)
    is_admin = Column(Boolean, default=False, nullable=False)
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)

    student_profiles = relationship(
        "StudentProfile", foreign_keys="StudentProfile.user_id", back_populates="student", lazy="select"
    )

    @property
    def is_placeholder(self) -> bool:
        """Pre-registered by a teacher and not yet claimed through signup"""
        return self.password_hash is None

    @property
    def active_profile(self):
        return next((p for p in self.student_profiles if p.is_active), None)


class UserSession(Base):
    __tablename__ = "user_sessions"

    jti = Column(String(64), primary_key=True)  # JWT ID, one row per issued bearer token
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    issued_at = Column(UTCDateTime, default=utcnow, nullable=False)
    expires_at = Column(UTCDateTime, nullable=False)
    revoked_at = Column(UTCDateTime, nullable=True)

    user = relationship("User")

    @property
    def is_revoked(self) -> bool:
        return self.revoked_at is not None


class StudentProfile(Base):
    __tablename__ = "student_profiles"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    teacher_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    voice_type = Column(String(50), nullable=True)  # soprano, alto, tenor, ...
    level = Column(String(50), nullable=True)
    start_date = Column(Date, nullable=True)
    goals = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)

    student = relationship("User", foreign_keys=[user_id], back_populates="student_profiles")
    teacher = relationship("User", foreign_keys=[teacher_id])

    # One active profile per student
    __table_args__ = (
        Index(
            "uq_student_profiles_active_user",
            "user_id",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
        Index("idx_student_profiles_teacher_active", "teacher_id", "is_active"),
    )


class Lesson(Base):
    __tablename__ = "lessons"

    id = Column(Integer, primary_key=True, index=True)
    teacher_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    student_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(200), nullable=True)
    scheduled_at = Column(UTCDateTime, nullable=False, index=True)
    duration = Column(Integer, default=60, nullable=False)  # minutes
    status = Column(
        Enum(LessonStatus, name="lesson_status", values_callable=_enum_values),
        default=LessonStatus.SCHEDULED,
        nullable=False,
        index=True,
    )
    location = Column(String(200), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)

    teacher = relationship("User", foreign_keys=[teacher_id])
    student = relationship("User", foreign_keys=[student_id])
    feedback = relationship("Feedback", uselist=False, back_populates="lesson")

    __table_args__ = (
        CheckConstraint("duration > 0", name="ck_lessons_duration_positive"),
        Index("idx_lessons_teacher_scheduled_at", "teacher_id", "scheduled_at"),
    )

    def is_feedback_eligible(self, now: datetime = None) -> bool:
        """Completed, or still scheduled but its start time has passed"""
        now = now or utcnow()
        if self.status == LessonStatus.COMPLETED:
            return True
        return self.status == LessonStatus.SCHEDULED and self.scheduled_at <= now


class Feedback(Base):
    __tablename__ = "feedback"

    id = Column(Integer, primary_key=True, index=True)
    lesson_id = Column(Integer, ForeignKey("lessons.id", ondelete="CASCADE"), nullable=False, unique=True)
    teacher_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    student_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    rating = Column(Integer, nullable=False)
    content = Column(Text, nullable=False)
    strengths = Column(Text, nullable=True)
    improvements = Column(Text, nullable=True)
    homework = Column(Text, nullable=True)
    reference_urls = Column(Text, nullable=True)  # newline-joined list

    # Student reaction sub-workflow
    student_reaction = Column(String(16), nullable=True)
    student_message = Column(String(100), nullable=True)
    student_reacted_at = Column(UTCDateTime, nullable=True)
    teacher_viewed_reaction_at = Column(UTCDateTime, nullable=True)

    created_at = Column(UTCDateTime, default=utcnow, nullable=False)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)

    lesson = relationship("Lesson", back_populates="feedback")
    teacher = relationship("User", foreign_keys=[teacher_id])
    student = relationship("User", foreign_keys=[student_id])

    __table_args__ = (CheckConstraint("rating BETWEEN 1 AND 5", name="ck_feedback_rating_range"),)


class Sticker(Base):
    __tablename__ = "stickers"

    id = Column(Integer, primary_key=True, index=True)
    teacher_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    student_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    level = Column(Enum(StickerLevel, name="sticker_level", values_callable=_enum_values), nullable=False)
    comment = Column(Text, nullable=True)
    lesson_id = Column(Integer, ForeignKey("lessons.id", ondelete="SET NULL"), nullable=True, index=True)
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)

    teacher = relationship("User", foreign_keys=[teacher_id])
    student = relationship("User", foreign_keys=[student_id])
    lesson = relationship("Lesson")

    __table_args__ = (Index("idx_stickers_student_created_at", "student_id", "created_at"),)


class Announcement(Base):
    __tablename__ = "announcements"

    id = Column(Integer, primary_key=True, index=True)
    teacher_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    content = Column(Text, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)

    teacher = relationship("User")
    reads = relationship(
        "AnnouncementRead", back_populates="announcement", cascade="all, delete-orphan", passive_deletes=True
    )


class AnnouncementRead(Base):
    __tablename__ = "announcement_reads"

    id = Column(Integer, primary_key=True, index=True)
    announcement_id = Column(Integer, ForeignKey("announcements.id", ondelete="CASCADE"), nullable=False)
    student_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    read_at = Column(UTCDateTime, default=utcnow, nullable=False)

    announcement = relationship("Announcement", back_populates="reads")
    student = relationship("User")

    # Ensure one read receipt per announcement-student pair
    __table_args__ = (UniqueConstraint("announcement_id", "student_id", name="unique_announcement_student_read"),)


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    type = Column(Enum(NotificationType, name="notification_type", values_callable=_enum_values), nullable=False)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    related_lesson_id = Column(Integer, ForeignKey("lessons.id", ondelete="SET NULL"), nullable=True)
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)

    user = relationship("User")

    __table_args__ = (Index("idx_notifications_user_read", "user_id", "is_read"),)
