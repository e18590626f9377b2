"""
SQLAlchemy ORM Models for the Study Database

Course content (courses, topics, questions, exams), enrollments, the
per-(user, question) FSRS card state, and the append-only attempt log.
"""

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class Course(Base):
    __tablename__ = 'courses'

    id = Column(String(255), primary_key=True)
    title = Column(String(255), nullable=False)

    def __repr__(self):
        return f"<Course({self.id}, {self.title!r})>"


class Enrollment(Base):
    __tablename__ = 'enrollments'

    user_id = Column(String(255), primary_key=True, nullable=False)
    course_id = Column(String(255), ForeignKey('courses.id'), primary_key=True, nullable=False)

    def __repr__(self):
        return f"<Enrollment({self.user_id}, {self.course_id})>"


class Topic(Base):
    """
    A unit of course material with its scheduled coverage date.
    """
    __tablename__ = 'topics'

    id = Column(String(255), primary_key=True)
    course_id = Column(String(255), ForeignKey('courses.id'), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    scheduled_date = Column(Date, nullable=True)  # None = not on the course calendar
    position = Column(Integer, nullable=False, default=0)

    def __repr__(self):
        return f"<Topic({self.id}, {self.title!r}, {self.scheduled_date})>"


class Question(Base):
    """
    A practice question. Only published, approved questions that are not
    flagged for review are eligible for study plans.
    """
    __tablename__ = 'questions'

    id = Column(String(255), primary_key=True)
    course_id = Column(String(255), ForeignKey('courses.id'), nullable=False, index=True)
    topic_id = Column(String(255), ForeignKey('topics.id'), nullable=True, index=True)
    prompt = Column(Text, nullable=True)
    difficulty = Column(Integer, nullable=False, default=3)  # authored 1-5, not FSRS difficulty
    is_published = Column(Boolean, nullable=False, default=True)
    status = Column(String(50), nullable=False, default='approved')
    needs_review = Column(Boolean, nullable=False, default=False)
    source_exam = Column(String(255), nullable=True)

    def __repr__(self):
        return f"<Question({self.id}, topic={self.topic_id})>"


class Exam(Base):
    __tablename__ = 'exams'

    id = Column(Integer, primary_key=True, autoincrement=True)
    course_id = Column(String(255), ForeignKey('courses.id'), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    exam_date = Column(Date, nullable=False)

    def __repr__(self):
        return f"<Exam({self.title!r}, {self.exam_date})>"


class CardState(Base):
    """
    Persistent FSRS state for a single (user, question) card.

    ``version`` increments on every write; writers must present the version
    they read (optimistic concurrency).
    """
    __tablename__ = 'srs_state'

    user_id = Column(String(255), primary_key=True, nullable=False)
    question_id = Column(String(255), ForeignKey('questions.id'), primary_key=True, nullable=False)

    due_at = Column(DateTime(timezone=True), nullable=False, index=True)
    last_reviewed_at = Column(DateTime(timezone=True), nullable=True)

    reps = Column(Integer, nullable=False, default=0)
    lapses = Column(Integer, nullable=False, default=0)
    stability = Column(Float, nullable=False)
    difficulty = Column(Float, nullable=False)
    elapsed_days = Column(Float, nullable=False, default=0.0)
    scheduled_days = Column(Float, nullable=False, default=0.0)
    learning_steps = Column(Integer, nullable=False, default=0)
    state = Column(Integer, nullable=False, default=0)  # 0=New, 1=Learning, 2=Review, 3=Relearning

    version = Column(Integer, nullable=False, default=1)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    def __repr__(self):
        return f"<CardState({self.user_id}, {self.question_id}, state={self.state}, v{self.version})>"


class Attempt(Base):
    """
    Immutable log entry for one answered question.
    """
    __tablename__ = 'attempts'

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(255), nullable=False, index=True)
    question_id = Column(String(255), ForeignKey('questions.id'), nullable=False)

    is_correct = Column(Boolean, nullable=False)
    confidence = Column(String(20), nullable=True)  # guessed / unsure / knew_it
    rating = Column(Integer, nullable=False)        # 1=AGAIN, 2=HARD, 3=GOOD, 4=EASY
    time_spent_ms = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)

    # Scheduler snapshot for analytics
    state_before = Column(Integer, nullable=True)
    retrievability_before = Column(Float, nullable=True)
    stability_after = Column(Float, nullable=True)
    difficulty_after = Column(Float, nullable=True)

    def __repr__(self):
        return f"<Attempt(id={self.id}, {self.question_id}, rating={self.rating})>"
