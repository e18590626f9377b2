"""
Database - Card State Store and Course Content Queries

Handles all database operations for card state, attempts, and the course
content the planner reads. Uses SQLAlchemy ORM; every function takes an open
Session and leaves commit/rollback to the caller, so one caller-owned
transaction is one unit of work.

This module handles ONLY database I/O.
Algorithm logic is handled by the scheduler module.
"""

from __future__ import annotations
import logging
from datetime import date, datetime, time, timezone
from typing import Callable, NamedTuple, Optional

from sqlalchemy import create_engine, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from study_core.config import get_database_url
from study_core.errors import ConcurrencyConflictError
from study_core.fsrs.memory_state import Card, days_between
from study_core.fsrs.models import (
    Attempt as AttemptModel,
    Base,
    CardState as CardStateModel,
    Enrollment,
    Exam,
    Question,
    Topic,
)
from study_core.fsrs.persistence import as_utc, card_from_row, card_to_row

logger = logging.getLogger(__name__)

# elapsed_days changes at or below this are not written back
ELAPSED_EPSILON_DAYS = 0.1

SessionFactory = Callable[[], Session]


class StoredCard(NamedTuple):
    """A card together with the row version it was read at."""
    card: Card
    version: int


class DueCard(NamedTuple):
    """A due card with the question references the planner needs."""
    question_id: str
    course_id: str
    topic_id: Optional[str]
    card: Card


# ---- Engine / session ----

def get_engine(database_url: Optional[str] = None, echo: bool = False) -> Engine:
    """
    Get SQLAlchemy engine for database connection.

    In-memory SQLite URLs share one connection (StaticPool) so every session
    sees the same database; other backends use a pre-pinged connection pool.

    Args:
        database_url: Connection string (defaults to DATABASE_URL)
        echo: Log emitted SQL

    Returns:
        SQLAlchemy Engine instance
    """
    url = database_url or get_database_url()
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(url, echo=echo, **kwargs)

    return create_engine(
        url,
        pool_size=5,           # Keep 5 connections open
        max_overflow=10,       # Allow up to 10 extra connections
        pool_pre_ping=True,    # Verify connections before use
        echo=echo,
    )


def get_session_factory(engine: Engine) -> SessionFactory:
    """Session factory bound to engine; objects stay usable after commit."""
    return sessionmaker(bind=engine, expire_on_commit=False)


def init_db(engine: Engine) -> None:
    """
    Create all tables that do not exist yet.

    Safe to call multiple times.
    """
    Base.metadata.create_all(engine)


# ---- Card state ----

def load_card(session: Session, user_id: str, question_id: str) -> Optional[StoredCard]:
    """
    Load a card and its row version.

    Returns:
        StoredCard if found, None if the question was never attempted
    """
    row = session.get(CardStateModel, (user_id, question_id), populate_existing=True)
    if row is None:
        return None
    return StoredCard(card_from_row(row), row.version)


def get_card(session: Session, user_id: str, question_id: str) -> Optional[Card]:
    """Card for (user, question), or None."""
    stored = load_card(session, user_id, question_id)
    return stored.card if stored else None


def put_card(
    session: Session,
    user_id: str,
    question_id: str,
    card: Card,
    expected_version: Optional[int] = None,
    now: Optional[datetime] = None
) -> int:
    """
    Write a card if nobody else has written it since it was read.

    Args:
        session: Open session (caller commits)
        user_id: User identifier
        question_id: Question identifier
        card: Card to persist
        expected_version: Version the card was read at, None for a first write
        now: Write timestamp

    Returns:
        New row version

    Raises:
        ConcurrencyConflictError: if the stored version moved on (or a
            concurrent first write already created the row)
    """
    values = card_to_row(card)
    values["due_at"] = as_utc(values["due_at"])
    values["last_reviewed_at"] = as_utc(values["last_reviewed_at"])
    values["updated_at"] = as_utc(now) if now else datetime.now(timezone.utc)

    if expected_version is None:
        session.add(CardStateModel(user_id=user_id, question_id=question_id, version=1, **values))
        try:
            session.flush()
        except IntegrityError as exc:
            raise ConcurrencyConflictError(
                "Card was created concurrently",
                {"user_id": user_id, "question_id": question_id},
            ) from exc
        return 1

    result = session.execute(
        update(CardStateModel)
        .where(
            CardStateModel.user_id == user_id,
            CardStateModel.question_id == question_id,
            CardStateModel.version == expected_version,
        )
        .values(version=expected_version + 1, **values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise ConcurrencyConflictError(
            "Card was updated concurrently",
            {"user_id": user_id, "question_id": question_id, "expected_version": expected_version},
        )
    return expected_version + 1


def append_attempt(session: Session, **fields) -> AttemptModel:
    """
    Append an immutable attempt record.

    Args:
        session: Open session (caller commits)
        **fields: Attempt column values

    Returns:
        The flushed Attempt row
    """
    fields["created_at"] = as_utc(fields["created_at"])
    row = AttemptModel(**fields)
    session.add(row)
    session.flush()
    return row


def list_due_cards(
    session: Session,
    user_id: str,
    as_of: datetime,
    course_id: Optional[str] = None
) -> list[DueCard]:
    """
    Cards due at or before as_of, most overdue first.

    Args:
        session: Open session
        user_id: User identifier
        as_of: Cut-off instant
        course_id: Restrict to one course

    Returns:
        List of DueCard
    """
    stmt = (
        select(CardStateModel, Question.course_id, Question.topic_id)
        .join(Question, Question.id == CardStateModel.question_id)
        .where(
            CardStateModel.user_id == user_id,
            CardStateModel.due_at <= as_utc(as_of),
        )
        .order_by(CardStateModel.due_at, CardStateModel.question_id)
        .execution_options(populate_existing=True)
    )
    if course_id is not None:
        stmt = stmt.where(Question.course_id == course_id)

    return [
        DueCard(row.question_id, course, topic, card_from_row(row))
        for row, course, topic in session.execute(stmt)
    ]


def list_user_cards(
    session: Session,
    user_id: str,
    course_id: Optional[str] = None
) -> dict[str, Card]:
    """
    All of a user's cards keyed by question_id.
    """
    stmt = (
        select(CardStateModel)
        .where(CardStateModel.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    if course_id is not None:
        stmt = stmt.join(Question, Question.id == CardStateModel.question_id).where(
            Question.course_id == course_id
        )
    return {row.question_id: card_from_row(row) for row in session.scalars(stmt)}


# ---- Course content ----

def list_enrolled_courses(session: Session, user_id: str) -> list[str]:
    """Course ids the user is enrolled in, sorted."""
    stmt = (
        select(Enrollment.course_id)
        .where(Enrollment.user_id == user_id)
        .order_by(Enrollment.course_id)
    )
    return list(session.scalars(stmt))


def list_topic_schedule(session: Session, course_id: str) -> list[Topic]:
    """
    Topics of a course in coverage order.

    Ordered by scheduled_date (unscheduled topics last), then position.
    """
    stmt = (
        select(Topic)
        .where(Topic.course_id == course_id)
        .order_by(Topic.scheduled_date.is_(None), Topic.scheduled_date, Topic.position, Topic.id)
    )
    return list(session.scalars(stmt))


def get_question(session: Session, question_id: str) -> Optional[Question]:
    return session.get(Question, question_id)


def list_course_questions(session: Session, course_id: str) -> list[Question]:
    """All questions of a course (eligibility is the caller's concern)."""
    stmt = select(Question).where(Question.course_id == course_id).order_by(Question.id)
    return list(session.scalars(stmt))


def list_upcoming_exams(
    session: Session,
    course_id: str,
    today: date,
    within_days: Optional[int] = None
) -> list[Exam]:
    """Exams on or after today, soonest first."""
    stmt = (
        select(Exam)
        .where(Exam.course_id == course_id, Exam.exam_date >= today)
        .order_by(Exam.exam_date, Exam.id)
    )
    exams = list(session.scalars(stmt))
    if within_days is not None:
        exams = [e for e in exams if (e.exam_date - today).days <= within_days]
    return exams


# ---- Maintenance ----

def recalculate_elapsed_for_user(
    session: Session,
    user_id: str,
    now: Optional[datetime] = None
) -> tuple[int, int]:
    """
    Refresh elapsed_days for a user's cards last reviewed before today.

    Only stability-neutral bookkeeping: no scheduling decisions are made.
    A row is written only when elapsed_days moved by more than 0.1 days,
    so running this twice in a row updates nothing the second time.

    Args:
        session: Open session (caller commits)
        user_id: User identifier
        now: Reference instant (defaults to now)

    Returns:
        (updated_count, processed_count)
    """
    now = as_utc(now) if now else datetime.now(timezone.utc)
    start_of_today = datetime.combine(now.date(), time.min, tzinfo=timezone.utc)

    rows = session.scalars(
        select(CardStateModel).where(
            CardStateModel.user_id == user_id,
            CardStateModel.last_reviewed_at.is_not(None),
            CardStateModel.last_reviewed_at < start_of_today,
        )
        .execution_options(populate_existing=True)
    ).all()

    updated = 0
    for row in rows:
        elapsed = days_between(as_utc(row.last_reviewed_at), now)
        if abs(elapsed - (row.elapsed_days or 0.0)) <= ELAPSED_EPSILON_DAYS:
            continue
        result = session.execute(
            update(CardStateModel)
            .where(
                CardStateModel.user_id == row.user_id,
                CardStateModel.question_id == row.question_id,
                CardStateModel.version == row.version,
            )
            .values(elapsed_days=elapsed, updated_at=now, version=row.version + 1)
            .execution_options(synchronize_session=False)
        )
        # A concurrent review already rewrote this card with fresh values
        if result.rowcount == 1:
            updated += 1

    logger.info(
        "Recalculated elapsed days for user %s: %d updated, %d processed",
        user_id, updated, len(rows),
    )
    return updated, len(rows)
