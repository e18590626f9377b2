"""
Service layer to assemble progress dashboards and exam projections.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.orm import Session

from study_core.analytics.constants import DEFAULT_DAYS_BACK, DEFAULT_TARGET_RETENTION
from study_core.analytics.metrics import (
    compute_review_forecast,
    compute_topic_progress,
    project_topics_to_exam,
    summarize_progress,
)
from study_core.analytics.queries import (
    load_attempts_df,
    load_cards_df,
    load_topics_df,
)
from study_core.analytics.types import ExamProjection, ProgressDashboard
from study_core.config import RiskThresholds
from study_core.errors import NotFoundError
from study_core.fsrs import database
from study_core.fsrs.models import Exam


def build_progress_dashboard(
    session: Session,
    user_id: str,
    course_ids: Optional[list[str]] = None,
    now: Optional[datetime] = None,
    days_back: Optional[int] = DEFAULT_DAYS_BACK,
    thresholds: RiskThresholds = RiskThresholds(),
    target_retention: float = DEFAULT_TARGET_RETENTION
) -> ProgressDashboard:
    """
    Build topic stats, summary, and forecast for a user's courses.

    Args:
        session: Open session
        user_id: User identifier
        course_ids: Courses in scope (defaults to all enrollments)
        now: Reference instant
        days_back: Attempt window in days (None = all time)
        thresholds: Risk bucket thresholds
        target_retention: Retention the schedule aims for

    Returns:
        ProgressDashboard
    """
    now = now or datetime.now(timezone.utc)
    if course_ids is None:
        course_ids = database.list_enrolled_courses(session, user_id)

    since = now - timedelta(days=days_back) if days_back is not None else None
    topics_df = load_topics_df(session, course_ids)
    cards_df = load_cards_df(session, user_id, course_ids)
    attempts_df = load_attempts_df(session, user_id, course_ids, since)

    topic_progress = compute_topic_progress(topics_df, cards_df, attempts_df, now, thresholds)
    return ProgressDashboard(
        topics=topic_progress,
        summary=summarize_progress(topic_progress, target_retention),
        forecast=compute_review_forecast(cards_df, now),
    )


def project_exam_readiness(
    session: Session,
    user_id: str,
    exam_id: int,
    now: Optional[datetime] = None,
    target_retention: float = DEFAULT_TARGET_RETENTION
) -> ExamProjection:
    """
    Project each studied topic's retention to the exam date.

    Raises:
        NotFoundError: if the exam does not exist
    """
    exam = session.get(Exam, exam_id)
    if exam is None:
        raise NotFoundError("Exam", exam_id)

    now = now or datetime.now(timezone.utc)
    days_until = max((exam.exam_date - now.date()).days, 0)

    course_ids = [exam.course_id]
    topic_progress = compute_topic_progress(
        load_topics_df(session, course_ids),
        load_cards_df(session, user_id, course_ids),
        load_attempts_df(session, user_id, course_ids),
        now,
    )
    topics = project_topics_to_exam(topic_progress, days_until, target_retention)
    overall = float(topics["projected_r"].mean()) if not topics.empty else 0.0

    return ExamProjection(
        exam_id=exam.id,
        exam_title=exam.title,
        course_id=exam.course_id,
        exam_date=exam.exam_date,
        days_until=days_until,
        overall_projected_r=overall,
        topics=topics,
    )
