"""
Lesson status lifecycle and feedback-eligibility queries
"""

from datetime import datetime
from typing import Dict, Optional, Set

from sqlalchemy import and_, or_
from sqlalchemy.orm import Query, Session

from models import Feedback, Lesson, LessonStatus, utcnow
from utils.error_handling import InvalidTransitionError

# completed has no outgoing edge
ALLOWED_TRANSITIONS: Dict[LessonStatus, Set[LessonStatus]] = {
    LessonStatus.SCHEDULED: {LessonStatus.COMPLETED, LessonStatus.CANCELLED},
    LessonStatus.CANCELLED: {LessonStatus.SCHEDULED},
    LessonStatus.COMPLETED: set(),
}


def can_transition(current: LessonStatus, target: LessonStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(LessonStatus(current), set())


def transition(lesson: Lesson, target: LessonStatus) -> Lesson:
    """Move the lesson to target status or raise InvalidTransitionError"""
    current = LessonStatus(lesson.status)
    if not can_transition(current, target):
        raise InvalidTransitionError(current.value, LessonStatus(target).value)
    lesson.status = target
    return lesson


def feedback_eligible_clause(now: Optional[datetime] = None):
    """SQL twin of Lesson.is_feedback_eligible"""
    now = now or utcnow()
    return or_(
        Lesson.status == LessonStatus.COMPLETED,
        and_(Lesson.status == LessonStatus.SCHEDULED, Lesson.scheduled_at <= now),
    )


def pending_feedback_query(db: Session, teacher_id: int, now: Optional[datetime] = None) -> Query:
    """Feedback-eligible lessons of the teacher that have no feedback yet"""
    return (
        db.query(Lesson)
        .outerjoin(Feedback, Feedback.lesson_id == Lesson.id)
        .filter(Lesson.teacher_id == teacher_id, feedback_eligible_clause(now), Feedback.id.is_(None))
    )


def upcoming_clause(now: Optional[datetime] = None):
    now = now or utcnow()
    return and_(Lesson.status == LessonStatus.SCHEDULED, Lesson.scheduled_at > now)
