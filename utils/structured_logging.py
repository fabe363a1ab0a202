"""
Structured Logging with Correlation IDs
One JSON object per line, tagged with the request's correlation ID
"""

import logging
import json
import sys
import time
import traceback
from typing import Dict, Any, Optional
from datetime import datetime, timezone
from contextvars import ContextVar
import uuid
from enum import Enum
from fastapi import Request
from pydantic import BaseModel, ConfigDict, Field

# Context variable for storing correlation ID
correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)


class LogCategory(str, Enum):
    """Log categories for filtering and analysis"""

    REQUEST = "request"
    RESPONSE = "response"
    DATABASE = "database"
    AUTHENTICATION = "authentication"
    NOTIFICATION = "notification"
    ERROR = "error"
    BUSINESS = "business"
    SYSTEM = "system"


class StructuredLogEntry(BaseModel):
    """Standard structured log entry format"""

    model_config = ConfigDict(use_enum_values=True)

    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    level: str
    category: str
    message: str
    correlation_id: Optional[str] = None
    user_id: Optional[str] = None

    request_id: Optional[str] = None
    request_method: Optional[str] = None
    request_path: Optional[str] = None
    request_ip: Optional[str] = None
    response_status: Optional[int] = None
    response_time_ms: Optional[float] = None

    error_type: Optional[str] = None
    error_message: Optional[str] = None
    error_stack: Optional[str] = None

    extra: Optional[Dict[str, Any]] = Field(default_factory=dict)


class StructuredFormatter(logging.Formatter):
    """JSON output for records that did not come through StructuredLogger"""

    def format(self, record: logging.LogRecord) -> str:
        if isinstance(record.msg, str) and record.msg.startswith("{"):
            return record.msg

        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": correlation_id_var.get(),
        }
        if record.exc_info:
            entry["error_stack"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


class StructuredLogger:
    """Logger with structured output and correlation IDs"""

    def __init__(self, name: str, level: str = "INFO", json_output: bool = True):
        self.name = name
        self.logger = logging.getLogger(name)
        self.logger.handlers = []
        self.logger.propagate = False

        handler = logging.StreamHandler(sys.stdout)
        self.logger.addHandler(handler)
        self.configure(level, json_output)

    def configure(self, level: str, json_output: bool):
        self.logger.setLevel(getattr(logging, level.upper()))
        formatter = StructuredFormatter() if json_output else logging.Formatter("%(levelname)s %(name)s %(message)s")
        for handler in self.logger.handlers:
            handler.setFormatter(formatter)

    def log(self, level: int, message: str, category: str, **kwargs) -> Optional[StructuredLogEntry]:
        if not self.logger.isEnabledFor(level):
            return None
        if kwargs.get("user_id") is not None:
            kwargs["user_id"] = str(kwargs["user_id"])
        entry = StructuredLogEntry(
            level=logging.getLevelName(level),
            category=category,
            message=message,
            correlation_id=correlation_id_var.get(),
            **kwargs,
        )
        self.logger.log(level, entry.model_dump_json(exclude_none=True))
        return entry

    def debug(self, message: str, category: str = LogCategory.SYSTEM, **kwargs):
        return self.log(logging.DEBUG, message, category, **kwargs)

    def info(self, message: str, category: str = LogCategory.SYSTEM, **kwargs):
        return self.log(logging.INFO, message, category, **kwargs)

    def warning(self, message: str, category: str = LogCategory.SYSTEM, **kwargs):
        return self.log(logging.WARNING, message, category, **kwargs)

    def error(self, message: str, category: str = LogCategory.ERROR, exception: Optional[Exception] = None, **kwargs):
        """Log error message with optional exception"""
        if exception:
            kwargs["error_type"] = type(exception).__name__
            kwargs["error_message"] = str(exception)
            kwargs["error_stack"] = traceback.format_exc()
        return self.log(logging.ERROR, message, category, **kwargs)


# ============================================================================
# LOGGER FACTORY
# ============================================================================

_loggers: Dict[str, StructuredLogger] = {}
_config: Dict[str, Any] = {"level": "INFO", "json_output": True}


def get_logger(name: str) -> StructuredLogger:
    """Get or create a structured logger"""
    if name not in _loggers:
        _loggers[name] = StructuredLogger(name, _config["level"], _config["json_output"])
    return _loggers[name]


def configure_logging(level: str = "INFO", json_output: bool = True):
    """Apply level and format to the root logger and every structured logger, including ones created at import"""
    _config.update({"level": level.upper(), "json_output": json_output})

    logging.getLogger().setLevel(getattr(logging, _config["level"]))
    if json_output:
        for handler in logging.getLogger().handlers:
            handler.setFormatter(StructuredFormatter())

    for structured in _loggers.values():
        structured.configure(_config["level"], json_output)

    get_logger("system").info("Logging configured", extra=dict(_config))


# ============================================================================
# REQUEST LOGGING MIDDLEWARE
# ============================================================================


async def log_request_middleware(request: Request, call_next):
    """Tag the request with correlation and request IDs and log its outcome"""
    correlation_id = request.headers.get("X-Correlation-ID") or f"corr_{uuid.uuid4().hex[:16]}"
    correlation_id_var.set(correlation_id)

    # Error handlers echo request_id back in the error envelope
    request.state.correlation_id = correlation_id
    request.state.request_id = f"req_{uuid.uuid4().hex[:8]}"

    logger = get_logger("api.request")
    logger.info(
        f"Incoming {request.method} {request.url.path}",
        category=LogCategory.REQUEST,
        request_id=request.state.request_id,
        request_method=request.method,
        request_path=request.url.path,
        request_ip=request.client.host if request.client else None,
    )

    start_time = time.time()
    try:
        response = await call_next(request)
    except Exception as e:
        logger.error(
            f"Request failed: {str(e)}",
            exception=e,
            request_id=request.state.request_id,
            request_method=request.method,
            request_path=request.url.path,
            response_time_ms=(time.time() - start_time) * 1000,
        )
        raise

    response.headers["X-Correlation-ID"] = correlation_id
    response.headers["X-Request-ID"] = request.state.request_id

    logger.info(
        f"Response {response.status_code} for {request.method} {request.url.path}",
        category=LogCategory.RESPONSE,
        request_id=request.state.request_id,
        request_method=request.method,
        request_path=request.url.path,
        response_status=response.status_code,
        response_time_ms=(time.time() - start_time) * 1000,
        user_id=getattr(request.state, "user_id", None),
    )
    return response


def log_authentication_event(
    event_type: str,
    user_id: Optional[int] = None,
    success: bool = True,
    method: str = "password",
    details: Optional[Dict] = None,
):
    """Audit trail for signup, login and logout"""
    logger = get_logger("auth")
    extra = {"method": method, "success": success, **(details or {})}
    if success:
        logger.info(
            f"Authentication successful: {event_type}",
            category=LogCategory.AUTHENTICATION,
            user_id=user_id,
            extra=extra,
        )
    else:
        logger.warning(
            f"Authentication failed: {event_type}",
            category=LogCategory.AUTHENTICATION,
            user_id=user_id,
            extra=extra,
        )
