# tests/conftest.py
"""
Pytest configuration for the TutorCal backend.

Every test gets a fresh in-memory SQLite database. SQLite ignores row locks
and has no exclusion constraints, so the tests exercise the application-level
overlap checks that run on every backend.
"""

import os

# Set testing configuration BEFORE any app imports.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "test"
os.environ.setdefault("LOG_LEVEL", "WARNING")

from typing import Iterable

from fastapi.testclient import TestClient
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from tests.factories import create_student, create_user
from tutorcal.api.dependencies.database import get_db
from tutorcal.database import Base
from tutorcal.main import app
from tutorcal.models import Student, User, UserRole


@pytest.fixture
def db() -> Iterable[Session]:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(
        autocommit=False, autoflush=False, bind=engine, expire_on_commit=False
    )
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def client(db: Session) -> Iterable[TestClient]:
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def test_teacher(db: Session) -> User:
    return create_user(db, email="teacher@example.com", role=UserRole.TEACHER, full_name="Tina Teacher")


@pytest.fixture
def test_student_user(db: Session) -> User:
    return create_user(db, email="student@example.com", role=UserRole.STUDENT, full_name="Sam Student")


@pytest.fixture
def student_record(db: Session, test_teacher: User, test_student_user: User) -> Student:
    return create_student(db, test_teacher, user=test_student_user, full_name="Sam Student")
