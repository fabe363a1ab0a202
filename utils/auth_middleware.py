"""
Centralized Authentication Utilities
Token extraction, session resolution and authentication audit logging
"""

from fastapi import Request
from sqlalchemy.orm import Session
from typing import Optional, Union

from models import User, UserSession, utcnow
from utils.jwt_utils import jwt_manager
from utils.error_handling import AuthError
from utils.logging_config import logger


class AuthContext:
    """Container for authentication context within a request"""

    def __init__(self):
        self.user: Optional[User] = None
        self.session: Optional[UserSession] = None
        self.auth_method: Optional[str] = None

    def set_user(self, user: User, session: UserSession, method: str = "bearer"):
        self.user = user
        self.session = session
        self.auth_method = method


def extract_bearer_token(authorization: Optional[str]) -> str:
    """Extract bearer token from Authorization header"""
    if not authorization:
        raise AuthError("Authentication required")

    if not authorization.startswith("Bearer "):
        raise AuthError("Invalid authorization header format. Expected 'Bearer <token>'")

    token = authorization[len("Bearer "):].strip()
    if not token:
        raise AuthError("Authentication required")
    return token


def resolve_session(token: str, db: Session) -> UserSession:
    """
    Resolve a bearer token to its live server-side session

    Raises AuthError for invalid, expired or revoked tokens
    """
    payload = jwt_manager.verify_session_token(token)
    if not payload:
        raise AuthError("Session expired. Please log in again.")

    session = db.query(UserSession).filter(UserSession.jti == payload["jti"]).first()
    if not session or session.is_revoked or session.expires_at <= utcnow():
        raise AuthError("Session expired. Please log in again.")

    if str(session.user_id) != str(payload["sub"]):
        raise AuthError("Session expired. Please log in again.")

    return session


def get_auth_context(request: Request) -> AuthContext:
    """Get authentication context from request state"""
    context = getattr(request.state, "auth", None)
    if context is None:
        context = AuthContext()
        request.state.auth = context
    return context


def log_authentication_attempt(
    request: Request,
    success: bool,
    user_id: Optional[Union[int, str]] = None,
    method: Optional[str] = None,
    error: Optional[str] = None,
):
    """Log authentication attempts for security monitoring"""
    client_ip = request.client.host if request.client else "unknown"

    log_data = {
        "request_id": getattr(request.state, "request_id", None),
        "success": success,
        "client_ip": client_ip,
        "endpoint": str(request.url.path),
        "method": request.method,
    }

    if user_id:
        log_data["user_id"] = user_id
    if method:
        log_data["auth_method"] = method
    if error:
        log_data["error"] = error

    if success:
        logger.debug(f"Authentication successful: {log_data}")
    else:
        logger.warning(f"Authentication failed: {log_data}")
