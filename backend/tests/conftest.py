import os

os.environ["TESTING"] = "true"

from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from academy.core.database import DatabaseManager, SessionLocal
from academy.core.security import get_password_hash
from academy.main import app
from academy.models import (
    Course, CourseStatus, Enrollment, EnrollmentStatus, Material, PaymentStatus,
    Question, QuestionType, Test, Topic, User, UserRole
)
from academy.routers.auth import issue_token
from academy.utils import test_timer


PASSWORD = "Secret#Pass1"


@pytest.fixture(autouse=True)
def setup_database():
    DatabaseManager.create_all_tables()
    yield
    DatabaseManager.drop_all_tables()


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


def make_user(db, email, role, full_name=None):
    user = User(
        email=email,
        full_name=full_name or email.split("@")[0].title(),
        hashed_password=get_password_hash(PASSWORD),
        role=role.value,
        is_active=True
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def auth_headers(user):
    return {"Authorization": f"Bearer {issue_token(user)}"}


@pytest.fixture
def owner(db):
    return make_user(db, "owner@academy.io", UserRole.OWNER)


@pytest.fixture
def admin(db):
    return make_user(db, "admin@academy.io", UserRole.ADMIN)


@pytest.fixture
def tutor(db):
    return make_user(db, "tutor@academy.io", UserRole.TUTOR, "Tina Tutor")


@pytest.fixture
def student(db):
    return make_user(db, "student@academy.io", UserRole.STUDENT, "Sam Student")


@pytest.fixture
def other_student(db):
    return make_user(db, "other@academy.io", UserRole.STUDENT, "Olive Other")


@pytest.fixture
def owner_headers(owner):
    return auth_headers(owner)


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin)


@pytest.fixture
def tutor_headers(tutor):
    return auth_headers(tutor)


@pytest.fixture
def student_headers(student):
    return auth_headers(student)


@pytest.fixture
def course(db, tutor):
    """An active free course with one topic, two materials and a timed test."""
    course = Course(
        title="Algebra Basics",
        description="Equations and inequalities",
        category="math",
        price=Decimal("0"),
        max_students=30,
        tutor_id=tutor.id,
        status=CourseStatus.ACTIVE.value,
        enrolled_count=0
    )
    db.add(course)
    db.flush()

    topic = Topic(course_id=course.id, title="Linear equations", order_index=0)
    db.add(topic)
    db.flush()

    db.add_all([
        Material(topic_id=topic.id, title="Intro", type="TEXT", content="x + 1 = 2", order_index=0),
        Material(topic_id=topic.id, title="Video", type="VIDEO", url="https://example.com/v", order_index=1),
    ])

    test = Test(
        topic_id=topic.id,
        title="Quiz 1",
        time_limit_minutes=10,
        max_attempts=2,
        passing_score=50,
        is_active=True
    )
    db.add(test)
    db.flush()

    db.add_all([
        Question(
            test_id=test.id, text="2 + 2?", type=QuestionType.MULTIPLE_CHOICE.value,
            options=["3", "4", "5"], correct_answer="4", points=2, order_index=0
        ),
        Question(
            test_id=test.id, text="1 is odd", type=QuestionType.TRUE_FALSE.value,
            options=["True", "False"], correct_answer="True", points=1, order_index=1
        ),
        Question(
            test_id=test.id, text="Capital of France", type=QuestionType.SHORT_ANSWER.value,
            options=[], correct_answer="Paris", points=1, order_index=2
        ),
    ])
    db.commit()
    db.refresh(course)
    return course


@pytest.fixture
def quiz(db, course):
    return course.topics[0].tests[0]


@pytest.fixture
def enrolled_student(db, course, student, tutor):
    db.add(Enrollment(
        course_id=course.id,
        student_id=student.id,
        tutor_id=tutor.id,
        status=EnrollmentStatus.ACTIVE.value,
        payment_status=PaymentStatus.PAID.value
    ))
    course.enrolled_count += 1
    db.commit()
    return student


class FrozenClock:
    """Controls the time seen by the test-taking endpoints."""

    def __init__(self, start):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock(monkeypatch):
    frozen = FrozenClock(datetime(2024, 3, 1, 9, 0, 0))
    monkeypatch.setattr(test_timer, "utcnow", frozen)
    return frozen
