import pytest
import os
import sys
from datetime import timedelta
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

# Set test environment variables
os.environ["NODE_ENV"] = "test"
os.environ["POSTGRES_USER"] = "test_user"
os.environ["POSTGRES_PASSWORD"] = "test_password"
os.environ["POSTGRES_HOST"] = "localhost"
os.environ["POSTGRES_DATABASE"] = "test_db"
os.environ["POSTGRES_PORT"] = "5432"
os.environ["JWT_SECRET"] = "test-jwt-secret-0123456789abcdef0123456789"
os.environ["LOG_LEVEL"] = "WARNING"

from fastapi.testclient import TestClient
from passlib.hash import bcrypt

from app import app
from db import engine, get_db, SessionLocal
from models import Base, Lesson, LessonStatus, StudentProfile, User, UserRole, UserSession, utcnow
from utils.jwt_utils import jwt_manager

TEST_PASSWORD = "secret123"

# Low work factor keeps fixture setup fast; verification reads the rounds from the hash
_test_bcrypt = bcrypt.using(rounds=4)


@pytest.fixture(scope="session")
def test_engine():
    """In-memory SQLite engine shared by the app and the tests"""
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def test_db(test_engine):
    """Create test database session"""
    session = SessionLocal()

    yield session

    # Cleanup after each test
    session.rollback()
    session.close()
    with test_engine.begin() as connection:
        for table in reversed(Base.metadata.sorted_tables):
            connection.execute(table.delete())


@pytest.fixture(scope="function")
def client(test_db):
    """Create test client with test database"""

    def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    # Clean up dependency override
    app.dependency_overrides.clear()


# =============================================================================
# FACTORIES
# =============================================================================


@pytest.fixture
def make_user(test_db):
    """Create a user; password=None makes a pre-registered placeholder"""
    counter = {"n": 0}

    def _make_user(role=UserRole.TEACHER, name=None, phone=None, email=None, password=TEST_PASSWORD, is_admin=False):
        counter["n"] += 1
        n = counter["n"]
        if role == UserRole.TEACHER and email is None:
            email = f"teacher{n}@example.com"
        user = User(
            name=name or f"{role.value.title()} {n}",
            phone=phone or f"010-0000-{n:04d}",
            email=email,
            role=role,
            password_hash=_test_bcrypt.hash(password) if password else None,
            is_admin=is_admin,
        )
        test_db.add(user)
        test_db.commit()
        test_db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def assign(test_db):
    """Link a student to a teacher through an active profile"""

    def _assign(student, teacher, **fields):
        fields.setdefault("is_active", True)
        profile = StudentProfile(user_id=student.id, teacher_id=teacher.id, **fields)
        test_db.add(profile)
        test_db.commit()
        test_db.refresh(profile)
        return profile

    return _assign


@pytest.fixture
def make_lesson(test_db):
    def _make_lesson(teacher, student, scheduled_at=None, status=LessonStatus.SCHEDULED, duration=60, **fields):
        lesson = Lesson(
            teacher_id=teacher.id,
            student_id=student.id,
            scheduled_at=scheduled_at or utcnow() + timedelta(days=1),
            duration=duration,
            status=status,
            **fields,
        )
        test_db.add(lesson)
        test_db.commit()
        test_db.refresh(lesson)
        return lesson

    return _make_lesson


@pytest.fixture
def auth_headers(test_db):
    """Bearer headers backed by a live server-side session"""

    def _auth_headers(user):
        issued = jwt_manager.create_session_token(user.id, user.role.value)
        test_db.add(
            UserSession(
                jti=issued["jti"],
                user_id=user.id,
                issued_at=issued["issued_at"],
                expires_at=issued["expires_at"],
            )
        )
        test_db.commit()
        return {"Authorization": f"Bearer {issued['token']}"}

    return _auth_headers


@pytest.fixture
def teacher(make_user):
    return make_user(UserRole.TEACHER, name="Kim Teacher", email="kim@example.com")


@pytest.fixture
def other_teacher(make_user):
    return make_user(UserRole.TEACHER, name="Lee Teacher", email="lee@example.com")


@pytest.fixture
def admin(make_user):
    return make_user(UserRole.TEACHER, name="Park Admin", email="admin@example.com", is_admin=True)


@pytest.fixture
def student(make_user, assign, teacher):
    """A student actively assigned to `teacher`"""
    user = make_user(UserRole.STUDENT, name="Choi Student", phone="010-5555-0001")
    assign(user, teacher)
    return user
