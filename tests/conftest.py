from datetime import datetime, timedelta, timezone

import pytest

from study_core.config import SchedulerConfig
from study_core.fsrs import database
from study_core.fsrs.constants import State
from study_core.fsrs.memory_state import Card
from study_core.fsrs.models import Course, Enrollment, Exam, Question, Topic

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)
USER = "user-1"


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def no_fuzz():
    return SchedulerConfig(enable_fuzz=False)


@pytest.fixture
def engine():
    """Fresh in-memory database per test."""
    engine = database.get_engine("sqlite://")
    database.init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return database.get_session_factory(engine)


@pytest.fixture
def session(session_factory):
    session = session_factory()
    yield session
    session.close()


class Seeder:
    """Writes course content and cards, committing after each call."""

    def __init__(self, session):
        self.session = session

    def course(self, course_id, enroll=(USER,)):
        self.session.add(Course(id=course_id, title=f"Course {course_id}"))
        for user_id in enroll:
            self.session.add(Enrollment(user_id=user_id, course_id=course_id))
        self.session.commit()

    def topic(self, topic_id, course_id, scheduled_date, position=0, title=None):
        self.session.add(Topic(
            id=topic_id,
            course_id=course_id,
            title=title or topic_id.title(),
            scheduled_date=scheduled_date,
            position=position,
        ))
        self.session.commit()

    def questions(self, course_id, question_ids, topic_id=None, **fields):
        for question_id in question_ids:
            self.session.add(Question(
                id=question_id,
                course_id=course_id,
                topic_id=topic_id,
                prompt=f"Prompt for {question_id}",
                **fields,
            ))
        self.session.commit()

    def exam(self, course_id, title, exam_date):
        exam = Exam(course_id=course_id, title=title, exam_date=exam_date)
        self.session.add(exam)
        self.session.commit()
        return exam.id

    def card(self, question_id, card, user_id=USER):
        database.put_card(self.session, user_id, question_id, card, now=NOW)
        self.session.commit()


@pytest.fixture
def seed(session):
    return Seeder(session)


@pytest.fixture
def make_review_card():
    """Factory for a Review-state card due at a given instant."""
    def _make(due, stability=10.0, difficulty=5.0, reps=3, lapses=0, last_review=None):
        last_review = last_review or due - timedelta(days=stability)
        return Card(
            due=due,
            stability=stability,
            difficulty=difficulty,
            last_review=last_review,
            reps=reps,
            lapses=lapses,
            elapsed_days=stability,
            scheduled_days=stability,
            state=State.REVIEW,
        )
    return _make
