"""
Vocal Studio API
JSON REST backend for teachers, students and studio administrators
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.openapi.utils import get_openapi
from starlette.exceptions import HTTPException as StarletteHTTPException

from routes import admin, announcements, auth, feedback, lessons, notifications, stickers, student, teacher_students
from config import settings
from db import init_db
from models import utcnow
from schemas.api_models import ErrorResponse, HealthResponse
from schemas.openapi_models import COMMON_RESPONSES, SECURITY_SCHEMES, OpenAPIMetadata, OpenAPITags
from utils.error_handling import AppError, AuthError, format_validation_errors

# Configure structured logging
from utils.structured_logging import (
    configure_logging,
    get_logger,
    log_request_middleware,
    LogCategory,
)

# Configure structured logging system
configure_logging(level=settings.LOG_LEVEL, json_output=settings.LOG_JSON)
logger = get_logger("app")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Production schemas are managed by alembic
    if settings.NODE_ENV == "development":
        init_db()
    logger.info("Vocal Studio API started", category=LogCategory.SYSTEM, extra={"env": settings.NODE_ENV})
    yield


# Create FastAPI instance with enhanced metadata
app = FastAPI(
    title=OpenAPIMetadata.TITLE,
    description=OpenAPIMetadata.DESCRIPTION,
    version=OpenAPIMetadata.VERSION,
    contact=OpenAPIMetadata.CONTACT,
    license_info=OpenAPIMetadata.LICENSE_INFO,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    servers=OpenAPIMetadata.SERVERS,
    openapi_tags=OpenAPITags.all(),
    lifespan=lifespan,
)

# CORS configuration - Load from environment
origins = [origin.strip() for origin in settings.CORS_ORIGINS.split(",") if origin.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With", "Accept", "Origin", "X-Correlation-ID"],
    expose_headers=["X-Request-ID", "X-Correlation-ID"],
)


# Structured logging middleware - adds correlation IDs and logs all requests
@app.middleware("http")
async def structured_logging_middleware(request: Request, call_next):
    """Add correlation IDs and structured logging to all requests"""
    return await log_request_middleware(request, call_next)


def _error_response(request: Request, status_code: int, error: str, detail=None, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            error=error,
            detail=detail,
            status_code=status_code,
            request_id=getattr(request.state, "request_id", None),
        ).model_dump(mode="json", exclude_none=True),
        headers=headers,
    )


# Global exception handlers
@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    """Domain errors carry their own HTTP status"""
    logger.warning(
        f"HTTP {exc.status_code} {type(exc).__name__}",
        category=LogCategory.ERROR,
        request_method=request.method,
        request_path=request.url.path,
        response_status=exc.status_code,
        error_message=exc.message,
        user_id=getattr(request.state, "user_id", None),
    )
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthError) else None
    return _error_response(request, exc.status_code, exc.message, exc.detail, headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed input is a 400 with one entry per offending field"""
    errors = format_validation_errors(exc.errors())

    logger.warning(
        "Validation error",
        category=LogCategory.ERROR,
        request_method=request.method,
        request_path=request.url.path,
        error_type="ValidationError",
        error_message=f"{len(errors)} validation errors",
        extra={"errors": errors},
    )
    return _error_response(request, 400, "Validation Error", errors)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions with proper structure and logging"""
    if exc.status_code >= 500:
        logger.error(
            f"HTTP {exc.status_code} error",
            category=LogCategory.ERROR,
            request_method=request.method,
            request_path=request.url.path,
            response_status=exc.status_code,
            error_message=str(exc.detail),
        )
    return _error_response(request, exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions with structured logging"""
    logger.error(
        "Unexpected server error",
        category=LogCategory.ERROR,
        exception=exc,
        request_method=request.method,
        request_path=request.url.path,
        user_id=getattr(request.state, "user_id", None),
    )
    return _error_response(
        request, 500, "Internal Server Error", "An unexpected error occurred. Please try again later."
    )


# Routers, all under the API prefix
ROUTERS = [
    (auth.router, "/auth", OpenAPITags.AUTH),
    (lessons.router, "/lessons", OpenAPITags.LESSONS),
    (feedback.router, "/feedback", OpenAPITags.FEEDBACK),
    (stickers.router, "/stickers", OpenAPITags.STICKERS),
    (announcements.router, "/announcements", OpenAPITags.ANNOUNCEMENTS),
    (announcements.student_router, "/student/announcements", OpenAPITags.STUDENT),
    (student.router, "/student", OpenAPITags.STUDENT),
    (teacher_students.router, "/teacher", OpenAPITags.TEACHER),
    (notifications.router, "/notifications", OpenAPITags.NOTIFICATIONS),
    (admin.router, "/admin", OpenAPITags.ADMIN),
]

for router, prefix, tag in ROUTERS:
    app.include_router(
        router,
        prefix=f"{settings.API_PREFIX}{prefix}",
        tags=[tag["name"]],
        responses=COMMON_RESPONSES,
    )


def custom_openapi():
    """Generated schema plus the bearer security scheme applied to every operation"""
    if app.openapi_schema:
        return app.openapi_schema

    schema = get_openapi(
        title=app.title,
        version=app.version,
        description=app.description,
        routes=app.routes,
        tags=app.openapi_tags,
        servers=app.servers,
        contact=app.contact,
        license_info=app.license_info,
    )
    schema.setdefault("components", {})["securitySchemes"] = SECURITY_SCHEMES
    schema["security"] = [{"BearerAuth": []}]
    app.openapi_schema = schema
    return app.openapi_schema


app.openapi = custom_openapi


# Root endpoint
@app.get("/", response_model=HealthResponse, tags=[OpenAPITags.SYSTEM["name"]], summary="Service status")
async def root():
    return HealthResponse(status="ok", timestamp=utcnow())


# Health check endpoint
@app.get(
    f"{settings.API_PREFIX}/health",
    response_model=HealthResponse,
    tags=[OpenAPITags.SYSTEM["name"]],
    summary="Health Check",
)
async def health_check():
    """Liveness probe for load balancers and uptime checks"""
    return HealthResponse(status="ok", timestamp=utcnow())


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
