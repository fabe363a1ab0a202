"""
OpenAPI Documentation Models
Tag metadata, security schemes and shared error responses for the generated docs
"""

from .api_models import ErrorResponse


# ============================================================================
# OPENAPI DOCUMENTATION ENHANCEMENTS
# ============================================================================


class OpenAPITags:
    """Centralized tag definitions for OpenAPI documentation"""

    AUTH = {
        "name": "🔐 Authentication",
        "description": "Signup (including claiming a pre-registered student account), login, logout, current user.",
    }
    LESSONS = {
        "name": "🎤 Lessons",
        "description": "Lesson scheduling and the scheduled / completed / cancelled lifecycle.",
    }
    FEEDBACK = {
        "name": "📝 Feedback",
        "description": "One feedback per lesson from the teacher, with a student reaction.",
    }
    STICKERS = {
        "name": "🌠 Stickers",
        "description": "Seven-level reward stickers and per-student point totals.",
    }
    ANNOUNCEMENTS = {
        "name": "📢 Announcements",
        "description": "Teacher announcements with per-student read receipts.",
    }
    TEACHER = {
        "name": "👩‍🏫 Teacher",
        "description": "Roster management (pre-registration, assignment, profiles) and the teacher dashboard.",
    }
    STUDENT = {
        "name": "🎓 Student",
        "description": "Student profile, dashboard and announcements.",
    }
    NOTIFICATIONS = {
        "name": "🔔 Notifications",
        "description": "In-app notifications of the signed-in user.",
    }
    ADMIN = {
        "name": "🛡️ Admin",
        "description": "Studio-wide statistics, assignments and lesson oversight. Requires the admin flag.",
    }
    SYSTEM = {
        "name": "🔧 System",
        "description": "Health checks.",
    }

    @classmethod
    def all(cls):
        return [
            cls.AUTH,
            cls.LESSONS,
            cls.FEEDBACK,
            cls.STICKERS,
            cls.ANNOUNCEMENTS,
            cls.TEACHER,
            cls.STUDENT,
            cls.NOTIFICATIONS,
            cls.ADMIN,
            cls.SYSTEM,
        ]


class OpenAPIMetadata:
    """OpenAPI metadata for the generated documentation"""

    TITLE = "🎤 Vocal Studio API"

    DESCRIPTION = """
    ## Vocal Studio API

    Backend for a vocal-lesson studio: teachers manage students, schedule
    lessons, write feedback, issue stickers and post announcements; students
    follow their schedule, feedback and sticker progress.

    ### Authentication

    `POST /api/auth/login` returns a bearer token. Send it as
    `Authorization: Bearer <token>` on every other call.
    """

    VERSION = "1.0.0"

    CONTACT = {"name": "Vocal Studio API Support"}

    LICENSE_INFO = {"name": "MIT License", "url": "https://opensource.org/licenses/MIT"}

    SERVERS = [
        {"url": "http://localhost:8000", "description": "Development server"},
    ]


SECURITY_SCHEMES = {
    "BearerAuth": {
        "type": "http",
        "scheme": "bearer",
        "bearerFormat": "JWT",
        "description": "Session token from /api/auth/login. Include token in Authorization header.",
    },
}


def _error_response(description: str, error: str, status_code: int, detail=None) -> dict:
    example = {"success": False, "error": error, "status_code": status_code}
    if detail is not None:
        example["detail"] = detail
    return {
        "description": description,
        "content": {"application/json": {"schema": ErrorResponse.model_json_schema(), "example": example}},
    }


# Common response schemas for all endpoints
COMMON_RESPONSES = {
    400: _error_response(
        "Bad Request - Invalid input data",
        "Validation Error",
        400,
        [{"field": "rating", "message": "Input should be less than or equal to 5", "code": "less_than_equal"}],
    ),
    401: _error_response("Unauthorized - Missing, expired or revoked session", "Session expired. Please log in again.", 401),
    403: _error_response("Forbidden - Insufficient permissions", "Permission required: issue_stickers", 403),
    404: _error_response("Not Found - Resource does not exist in the caller's scope", "Lesson not found", 404),
    409: _error_response("Conflict - Duplicate or invalid state change", "Feedback already exists for this lesson", 409),
    500: _error_response(
        "Internal Server Error - Unexpected server error",
        "Internal Server Error",
        500,
        "An unexpected error occurred. Please try again later.",
    ),
}
