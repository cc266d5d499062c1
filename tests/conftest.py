import os
import tempfile

# Settings are read at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["CERTIFICATE_OUTPUT_DIR"] = tempfile.mkdtemp(prefix="vx_certificates_")

import pytest
from fastapi.testclient import TestClient

from vx_academy.database import Base, SessionLocal, engine, get_db
from vx_academy.main import app
from vx_academy.models.course import Course, CourseUnit, LearningBlock, Module, TrainingArea, Unit
from vx_academy.models.user import User, UserRole
from vx_academy.services.auth import auth_service

import vx_academy.models  # noqa: F401

PASSWORD = "Password123"
_PASSWORD_HASH = auth_service.get_password_hash(PASSWORD)


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    def override_get_db():
        try:
            yield db
        finally:
            # Mirror the request-scoped session: nothing uncommitted survives
            db.rollback()

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def make_user(db, username, role=UserRole.USER, **kwargs):
    kwargs.setdefault("name", username.title())
    kwargs.setdefault("is_active", True)
    user = User(
        username=username,
        email=f"{username}@vx-academy.com",
        role=role,
        hashed_password=_PASSWORD_HASH,
        **kwargs,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def auth_headers(user):
    token = auth_service.create_user_tokens(user)["access_token"]
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def learner(db):
    return make_user(db, "learner")


@pytest.fixture
def admin(db):
    return make_user(db, "admin", role=UserRole.ADMIN)


@pytest.fixture
def learner_headers(learner):
    return auth_headers(learner)


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin)


@pytest.fixture
def course(db):
    """Course with two units; the first unit has two blocks, the second one"""
    area = TrainingArea(name="Customer Service")
    db.add(area)
    db.flush()
    module = Module(training_area_id=area.id, name="Front Desk")
    db.add(module)
    db.flush()
    course = Course(training_area_id=area.id, module_id=module.id, name="Guest Welcome", duration=60)
    db.add(course)
    db.flush()
    for position in (1, 2):
        unit = Unit(name=f"Unit {position}", order=position)
        db.add(unit)
        db.flush()
        db.add(CourseUnit(course_id=course.id, unit_id=unit.id, order=position))
        for block_order in range(1, 4 - position):
            db.add(LearningBlock(
                unit_id=unit.id,
                type="text",
                title=f"Block {position}.{block_order}",
                content="Lorem ipsum",
                order=block_order,
                xp_points=10,
            ))
    db.commit()
    db.refresh(course)
    return course
