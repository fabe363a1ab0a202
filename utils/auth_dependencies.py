"""
FastAPI Authentication Dependencies
Provides clean dependency injection for authentication across routes
"""

from fastapi import Depends, Request
from sqlalchemy.orm import Session
from typing import Optional

from models import User
from db import get_db
from utils.auth_middleware import (
    get_auth_context,
    resolve_session,
    extract_bearer_token,
    log_authentication_attempt,
)
from utils.error_handling import AuthError


# =============================================================================
# CORE AUTHENTICATION DEPENDENCIES
# =============================================================================


async def get_current_user_optional(request: Request, db: Session = Depends(get_db)) -> Optional[User]:
    """
    Get current user if a valid bearer token is present, None otherwise
    Use this for endpoints where authentication is optional
    """
    auth_context = get_auth_context(request)

    # If user already resolved in this request, return it
    if auth_context.user:
        return auth_context.user

    authorization = request.headers.get("Authorization")
    if not authorization:
        return None

    try:
        session = resolve_session(extract_bearer_token(authorization), db)
    except AuthError:
        return None

    auth_context.set_user(session.user, session)
    request.state.user_id = session.user_id
    return session.user


async def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    """
    Get current authenticated user - raises 401 if not authenticated
    Use this for endpoints that require authentication
    """
    auth_context = get_auth_context(request)
    if auth_context.user:
        return auth_context.user

    try:
        token = extract_bearer_token(request.headers.get("Authorization"))
        session = resolve_session(token, db)
    except AuthError as e:
        log_authentication_attempt(request, False, method="bearer", error=e.message)
        raise

    auth_context.set_user(session.user, session)
    request.state.user_id = session.user_id
    log_authentication_attempt(request, True, user_id=session.user_id, method="bearer")
    return session.user

