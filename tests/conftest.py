import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

from datetime import datetime, date, timedelta
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from eduos.main import app
from eduos.database import get_db
from eduos.models import Base, User, UserRole, MedicalRequest, MedicalStatus, SubjectAttendance, SubjectMarks
from eduos.core.utils.helpers import password_hasher, current_time
from eduos.core.utils.face_matcher import EncodingFaceMatcher, get_face_matcher
from eduos.core.services.activity import ActivityLogger, get_activity_logger
from eduos.core.services.summary import SummaryService, get_summary_service

# Monday, inside school hours and before the late cutoff
DEFAULT_NOW = datetime(2026, 10, 19, 8, 30)


class Clock:
    def __init__(self, now: datetime = DEFAULT_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class FakeGenerator:
    def __init__(self, reply="Generated summary.", error=None):
        self.reply = reply
        self.error = error
        self.prompts = []
        # when set, every call waits here until the whole batch is in flight
        self.barrier = None

    def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.barrier is not None:
            self.barrier.wait()
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
def client(session_factory, clock, generator):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[current_time] = clock
    app.dependency_overrides[get_summary_service] = lambda: SummaryService(generator)
    app.dependency_overrides[get_activity_logger] = lambda: ActivityLogger(session_factory)
    app.dependency_overrides[get_face_matcher] = EncodingFaceMatcher
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def factory(role=UserRole.STUDENT, name=None, email=None, password=None,
                class_id=None, student_id=None, is_active=True):
        counter["n"] += 1
        n = counter["n"]
        role = UserRole(role)
        if role != UserRole.STUDENT and email is None:
            email = f"{role.value}{n}@school.edu"
        if role == UserRole.STUDENT and student_id is None:
            student_id = f"STU{n:03d}"
        user = User(
            name=name or f"{role.value.title()} {n}",
            email=email,
            password=password_hasher.hash_password(password) if password else None,
            role=role,
            class_id=class_id,
            student_id=student_id,
            is_active=is_active,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return factory


@pytest.fixture
def auth_headers():
    def factory(user):
        return {"Authorization": f"Bearer {password_hasher.create_access_token(user)}"}
    return factory


@pytest.fixture
def add_records(db):
    def factory(student, attendance=None, marks=None):
        for subject, value in (attendance or {}).items():
            db.add(SubjectAttendance(student_id=student.id, subject=subject, percentage=value))
        for subject, value in (marks or {}).items():
            db.add(SubjectMarks(student_id=student.id, subject=subject, score=value))
        db.commit()
    return factory


@pytest.fixture
def approve_leave(db):
    def factory(student, from_date: date, to_date: date, status=MedicalStatus.APPROVED):
        request = MedicalRequest(
            student_id=student.id,
            from_date=from_date,
            to_date=to_date,
            reason="Fever",
            status=status,
        )
        db.add(request)
        db.commit()
        db.refresh(request)
        return request
    return factory


def days(n: int) -> timedelta:
    return timedelta(days=n)
