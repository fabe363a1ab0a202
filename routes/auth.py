"""
Authentication Service Router
Handles signup (including takeover of pre-registered students), login, logout and the current user
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request, status
from passlib.hash import bcrypt
from sqlalchemy.orm import Session

from db import get_db
from models import User, UserRole, UserSession, utcnow
from schemas.api_models import BaseResponse, LoginRequest, LoginResponse, SignupRequest, UserResponse
from utils.auth_dependencies import get_current_user, get_current_user_optional
from utils.auth_middleware import get_auth_context
from utils.error_handling import AuthError, ConflictError, ValidationError, safe_commit
from utils.jwt_utils import jwt_manager
from utils.structured_logging import get_logger, LogCategory, log_authentication_event

router = APIRouter()

logger = get_logger("routes.auth")

PHONE_TAKEN = "Phone number already registered"
EMAIL_TAKEN = "Email already registered"


def _email_owner(db: Session, email: Optional[str]) -> Optional[User]:
    if not email:
        return None
    return db.query(User).filter(User.email == email).first()


@router.post("/signup", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def signup(data: SignupRequest, db: Session = Depends(get_db)):
    """
    Register a teacher or student account

    A student whose phone was pre-registered by a teacher claims that
    placeholder in place, so the existing profile stays linked.
    """
    email = data.email.lower() if data.email else None
    if data.role == UserRole.TEACHER and not email:
        raise ValidationError("Email is required for teacher accounts")

    existing = db.query(User).filter(User.phone == data.phone).first()
    email_owner = _email_owner(db, email)

    if existing:
        if not (existing.is_placeholder and existing.role == UserRole.STUDENT and data.role == UserRole.STUDENT):
            raise ConflictError(PHONE_TAKEN)
        if email_owner and email_owner.id != existing.id:
            raise ConflictError(EMAIL_TAKEN)

        existing.name = data.name
        if email:
            existing.email = email
        existing.password_hash = bcrypt.hash(data.password)
        safe_commit(db, "claim pre-registered student", conflict_message=EMAIL_TAKEN)
        db.refresh(existing)

        logger.info(
            "Pre-registered student claimed account",
            category=LogCategory.AUTHENTICATION,
            user_id=existing.id,
        )
        return UserResponse.model_validate(existing)

    if email_owner:
        raise ConflictError(EMAIL_TAKEN)

    user = User(
        name=data.name,
        email=email,
        phone=data.phone,
        role=data.role,
        password_hash=bcrypt.hash(data.password),
    )
    db.add(user)
    safe_commit(db, "signup", conflict_message=PHONE_TAKEN)
    db.refresh(user)

    logger.info(f"New {user.role.value} account created", category=LogCategory.AUTHENTICATION, user_id=user.id)
    return UserResponse.model_validate(user)


@router.post("/login", response_model=LoginResponse)
async def login(data: LoginRequest, db: Session = Depends(get_db)):
    """Teachers log in by email, students by phone number"""
    query = db.query(User).filter(User.role == data.role)
    if data.role == UserRole.TEACHER:
        user = query.filter(User.email == data.identifier.lower()).first()
    else:
        user = query.filter(User.phone == data.identifier).first()

    if not user:
        log_authentication_event("login", success=False, details={"reason": "user_not_found", "role": data.role.value})
        raise AuthError("User not found")

    if user.is_placeholder or not bcrypt.verify(data.password, user.password_hash):
        log_authentication_event("login", user_id=user.id, success=False, details={"reason": "bad_password"})
        raise AuthError("Invalid credentials")

    issued = jwt_manager.create_session_token(user.id, user.role.value)
    db.add(
        UserSession(
            jti=issued["jti"],
            user_id=user.id,
            issued_at=issued["issued_at"],
            expires_at=issued["expires_at"],
        )
    )
    safe_commit(db, "create session")
    db.refresh(user)

    log_authentication_event("login", user_id=user.id, success=True)
    return LoginResponse(
        message="Login successful",
        user=UserResponse.model_validate(user),
        token=issued["token"],
        expires_at=issued["expires_at"],
    )


@router.post("/logout", response_model=BaseResponse)
async def logout(
    request: Request,
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_current_user_optional),
):
    """Revoke the caller's session; succeeds even without a valid token"""
    session = get_auth_context(request).session
    if current_user and session and not session.is_revoked:
        session.revoked_at = utcnow()
        safe_commit(db, "logout")
        log_authentication_event("logout", user_id=current_user.id, success=True)

    return BaseResponse(message="Logged out")


@router.get("/me", response_model=UserResponse)
async def me(current_user: User = Depends(get_current_user)):
    return UserResponse.model_validate(current_user)
