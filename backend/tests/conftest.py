"""Pytest configuration and shared fixtures."""

import os
from collections.abc import Generator

# Settings are read at import time, so the environment must be set first
os.environ["ENV"] = "test"
os.environ["DATABASE_URL"] = os.environ.get("TEST_DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("JWT_SECRET", "test-secret-key-for-pytest-only")

import pytest  # noqa: E402
from fastapi import FastAPI  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from examprep.core.security import create_access_token  # noqa: E402
from examprep.db.base import Base  # noqa: E402
from examprep.db.engine import engine  # noqa: E402
from examprep.db.session import SessionLocal, get_db  # noqa: E402
from examprep.main import app  # noqa: E402
from examprep.models import Exam, User  # noqa: E402
from tests.helpers.seed import create_test_exam, create_test_student  # noqa: E402

# Configure pytest-asyncio
pytest_plugins = ("pytest_asyncio",)


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Fresh schema per test; application code is free to commit."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def api_app(db) -> Generator[FastAPI, None, None]:
    """The application wired to the test database session."""

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield app
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def client(api_app) -> TestClient:
    """Create a FastAPI test client with database dependency override."""
    return TestClient(api_app)


@pytest.fixture
def student(db) -> User:
    user = create_test_student(db, full_name="Test Student")
    db.commit()
    return user


@pytest.fixture
def other_student(db) -> User:
    user = create_test_student(db, full_name="Other Student")
    db.commit()
    return user


@pytest.fixture
def student_token(student) -> str:
    return create_access_token(user_id=str(student.id), role=student.role)


@pytest.fixture
def auth_headers(student_token) -> dict[str, str]:
    return {"Authorization": f"Bearer {student_token}"}


@pytest.fixture
def other_auth_headers(other_student) -> dict[str, str]:
    token = create_access_token(user_id=str(other_student.id), role=other_student.role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def exam(db) -> Exam:
    """Two sections: reading (single choice, reorder) and writing (essay); five questions per type."""
    exam = create_test_exam(db)
    db.commit()
    return exam
