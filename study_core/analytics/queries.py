"""
Data-loading helpers for analytics.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

import pandas as pd
from sqlalchemy import select
from sqlalchemy.orm import Session

from study_core.analytics.constants import ATTEMPT_COLUMNS, CARD_COLUMNS, TOPIC_COLUMNS
from study_core.fsrs.models import Attempt, CardState, Question, Topic
from study_core.fsrs.persistence import as_utc


def load_topics_df(session: Session, course_ids: list[str]) -> pd.DataFrame:
    """
    Load topics of the given courses in schedule order.
    """
    if not course_ids:
        return pd.DataFrame(columns=TOPIC_COLUMNS)

    stmt = (
        select(
            Topic.id.label("topic_id"),
            Topic.title.label("topic_title"),
            Topic.course_id,
        )
        .where(Topic.course_id.in_(course_ids))
        .order_by(Topic.course_id, Topic.scheduled_date.is_(None), Topic.scheduled_date, Topic.position)
    )
    rows = [dict(row) for row in session.execute(stmt).mappings()]
    if not rows:
        return pd.DataFrame(columns=TOPIC_COLUMNS)
    return pd.DataFrame(rows, columns=TOPIC_COLUMNS)


def load_cards_df(session: Session, user_id: str, course_ids: list[str]) -> pd.DataFrame:
    """
    Load a user's card states with their question's course and topic.
    """
    empty = pd.DataFrame(columns=CARD_COLUMNS)
    if not course_ids:
        return empty

    stmt = (
        select(
            CardState.question_id,
            Question.course_id,
            Question.topic_id,
            CardState.due_at,
            CardState.last_reviewed_at,
            CardState.stability,
            CardState.difficulty,
            CardState.elapsed_days,
            CardState.reps,
            CardState.lapses,
            CardState.state,
        )
        .join(Question, Question.id == CardState.question_id)
        .where(CardState.user_id == user_id, Question.course_id.in_(course_ids))
    )
    rows = [dict(row) for row in session.execute(stmt).mappings()]
    if not rows:
        return empty

    df = pd.DataFrame(rows, columns=CARD_COLUMNS)
    df["due_at"] = pd.to_datetime(df["due_at"], utc=True)
    df["last_reviewed_at"] = pd.to_datetime(df["last_reviewed_at"], utc=True)
    for column in ("stability", "difficulty", "elapsed_days"):
        df[column] = df[column].astype("float64")
    for column in ("reps", "lapses", "state"):
        df[column] = df[column].astype("int64")
    return df


def load_attempts_df(
    session: Session,
    user_id: str,
    course_ids: list[str],
    since: Optional[datetime] = None
) -> pd.DataFrame:
    """
    Load a user's attempts (optionally only those after since).
    """
    empty = pd.DataFrame(columns=ATTEMPT_COLUMNS)
    if not course_ids:
        return empty

    stmt = (
        select(
            Attempt.question_id,
            Question.topic_id,
            Attempt.is_correct,
            Attempt.created_at,
        )
        .join(Question, Question.id == Attempt.question_id)
        .where(Attempt.user_id == user_id, Question.course_id.in_(course_ids))
        .order_by(Attempt.created_at)
    )
    if since is not None:
        stmt = stmt.where(Attempt.created_at >= as_utc(since))

    rows = [dict(row) for row in session.execute(stmt).mappings()]
    if not rows:
        return empty

    df = pd.DataFrame(rows, columns=ATTEMPT_COLUMNS)
    df["created_at"] = pd.to_datetime(df["created_at"], utc=True)
    df["is_correct"] = df["is_correct"].astype(bool)
    return df
