"""
Centralized error handling utilities for consistent error responses
"""

from fastapi import status
from sqlalchemy.exc import SQLAlchemyError, IntegrityError
from sqlalchemy.orm import Session
from utils.logging_config import logger
from typing import Optional, Any


class AppError(Exception):
    """Base class for domain errors; each subclass maps to one HTTP status"""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, detail: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail


class ValidationError(AppError):
    """Missing or malformed input"""

    status_code = status.HTTP_400_BAD_REQUEST


class AuthError(AppError):
    """Bad credentials or no valid session"""

    status_code = status.HTTP_401_UNAUTHORIZED


class AuthorizationError(AppError):
    """Wrong role or not the owner of the resource"""

    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(AppError):
    """Id does not resolve under the caller's scope"""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(AppError):
    """Duplicate unique field or state conflict"""

    status_code = status.HTTP_409_CONFLICT


class InvalidTransitionError(ConflictError):
    """Lesson status change not allowed by the lesson state machine"""

    def __init__(self, current: str, target: str):
        super().__init__(f"Invalid status transition: {current} -> {target}")
        self.current = current
        self.target = target


def safe_commit(db: Session, operation: str, conflict_message: Optional[str] = None) -> None:
    """
    Commit the current unit of work, rolling back on failure

    Args:
        db: Active session
        operation: Description of the operation, used in logs
        conflict_message: Message for the ConflictError raised on unique/constraint violations
    """
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.warning(f"Database integrity error during {operation}: {e.orig}")
        raise ConflictError(
            conflict_message or "Data integrity constraint violated. This operation conflicts with existing data."
        )
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Database error during {operation}: {str(e)}")
        raise


def log_operation_success(operation: str, details: Optional[str] = None) -> None:
    """Log successful operations for audit purposes"""
    if details:
        logger.info(f"Operation successful: {operation} - {details}")
    else:
        logger.info(f"Operation successful: {operation}")


def format_validation_errors(errors: list) -> list:
    """
    Flatten Pydantic validation errors into field/message/code triples

    Args:
        errors: List of validation error details
    """
    formatted_errors = []
    for error in errors:
        loc = [str(part) for part in error.get("loc", []) if part != "body"]
        formatted_errors.append(
            {
                "field": ".".join(loc),
                "message": error.get("msg", "Validation error"),
                "code": error.get("type", "validation_error"),
            }
        )
    return formatted_errors
