"""Shared fixtures: in-memory database, seeded courses and an authenticated client"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ.setdefault("ENVIRONMENT", "test")

from datetime import datetime, timedelta, timezone
from itertools import count

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app import models
from app.api.v1.endpoints.quizzes import get_notification_sender
from app.core.database import Base, build_engine, get_db
from app.core.security import create_access_token
from app.main import app
from app.services.notifications import DatabaseNotificationSender


@pytest.fixture
def engine():
    test_engine = build_engine("sqlite://", poolclass=StaticPool, echo=False)
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def notification_sender(session_factory):
    return DatabaseNotificationSender(session_factory)


@pytest.fixture
def client(session_factory, notification_sender):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notification_sender] = lambda: notification_sender
    yield TestClient(app)
    app.dependency_overrides.clear()


def auth_headers(user) -> dict:
    return {"Authorization": f"Bearer {create_access_token({'sub': str(user.id)})}"}


class Seeder:
    """Creates committed rows for tests"""

    def __init__(self, session):
        self.session = session
        self._sequence = count(1)

    def _save(self, row):
        self.session.add(row)
        self.session.commit()
        return row

    def user(self, first_name="Test", last_name="User"):
        number = next(self._sequence)
        return self._save(
            models.User(email=f"user{number}@example.com", first_name=first_name, last_name=last_name)
        )

    def instructor(self, verified=True):
        user = self.user(first_name="Ada", last_name="Instructor")
        return self._save(models.Instructor(user_id=user.id, is_verified=verified))

    def course(self, instructor, status=models.CourseStatus.DRAFT):
        return self._save(models.Course(title="Algorithms", instructor_id=instructor.id, status=status))

    def section(self, course):
        return self._save(models.Section(course_id=course.id, title="Week 1"))

    def quiz(self, section, order, title=None, questions=1):
        quiz = models.Quiz(
            section_id=section.id,
            title=title or f"Quiz {order}",
            duration=30,
            passing_score=70,
            max_attempts=3,
            order=order,
        )
        for position in range(1, questions + 1):
            quiz.questions.append(
                models.Question(
                    question=f"Question {position}?",
                    type="SHORT_ANSWER",
                    points=5,
                    order=position,
                    correct_answer=["answer"],
                )
            )
        return self._save(quiz)

    def enrollment(self, course, student, status=models.EnrollmentStatus.ACTIVE):
        return self._save(models.Enrollment(course_id=course.id, student_id=student.id, status=status))

    def attempt(self, quiz, student, score, passed, started_at=None, time_spent=600):
        started = started_at or datetime.now(timezone.utc) - timedelta(days=1)
        return self._save(
            models.QuizAttempt(
                quiz_id=quiz.id,
                student_id=student.id,
                score=score,
                passed=passed,
                time_spent=time_spent,
                started_at=started,
                completed_at=started + timedelta(seconds=time_spent),
            )
        )

    def answer(self, attempt, question, is_correct):
        return self._save(
            models.Answer(attempt_id=attempt.id, question_id=question.id, is_correct=is_correct)
        )


@pytest.fixture
def seed(db):
    return Seeder(db)


@pytest.fixture
def owner(seed):
    return seed.instructor()


@pytest.fixture
def owner_headers(owner, db):
    return auth_headers(db.get(models.User, owner.user_id))


@pytest.fixture
def draft_section(seed, owner):
    return seed.section(seed.course(owner))


def section_orders(session, section_id):
    """{title: order} as currently stored"""
    session.expire_all()
    quizzes = (
        session.query(models.Quiz)
        .filter(models.Quiz.section_id == section_id)
        .order_by(models.Quiz.order)
        .all()
    )
    return {quiz.title: quiz.order for quiz in quizzes}
