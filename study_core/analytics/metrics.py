"""
Metric computations for progress dashboards.

Pure pandas functions over the frames produced by queries.py.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

import pandas as pd

from study_core.analytics.constants import (
    COUNT_COLUMNS,
    FORECAST_DAYS,
    P10_QUANTILE,
    RECOMMENDATION_STEPS,
    TOPIC_PROGRESS_COLUMNS,
)
from study_core.analytics.types import ProgressSummary
from study_core.config import RiskThresholds
from study_core.fsrs.constants import Risk, State
from study_core.fsrs.memory_state import classify_risk, project_retention


def utc_day(now: datetime) -> pd.Timestamp:
    """Start of the UTC day containing now."""
    ts = pd.Timestamp(now)
    ts = ts.tz_localize("UTC") if ts.tzinfo is None else ts.tz_convert("UTC")
    return ts.floor("D")


def _optional(value) -> Optional[float]:
    return None if pd.isna(value) else float(value)


def median_retention(
    median_stability: Optional[float],
    median_elapsed_days: Optional[float],
    horizon_days: float = 0.0
) -> Optional[float]:
    """
    Retrievability of a topic's median card, or None without review data.
    """
    if median_stability is None or median_elapsed_days is None or median_stability <= 0:
        return None
    return project_retention(median_stability, max(median_elapsed_days, 0.0), horizon_days)


def compute_topic_progress(
    topics_df: pd.DataFrame,
    cards_df: pd.DataFrame,
    attempts_df: pd.DataFrame,
    now: datetime,
    thresholds: RiskThresholds = RiskThresholds()
) -> pd.DataFrame:
    """
    One row per topic: card counts by state, due today, FSRS medians, attempt
    counts, current median retention, and risk bucket.

    FSRS aggregates only consider cards that have been reviewed.
    """
    if topics_df.empty:
        return pd.DataFrame(columns=TOPIC_PROGRESS_COLUMNS)

    result = topics_df.set_index("topic_id")

    if not cards_df.empty:
        end_of_today = utc_day(now) + pd.Timedelta(days=1)
        cards = cards_df.assign(
            is_new=cards_df["state"] == int(State.NEW),
            is_learning=cards_df["state"].isin([int(State.LEARNING), int(State.RELEARNING)]),
            is_review=cards_df["state"] == int(State.REVIEW),
        )
        cards["is_due_today"] = ~cards["is_new"] & (cards["due_at"] < end_of_today)

        counts = cards.groupby("topic_id").agg(
            total_cards=("question_id", "count"),
            new_cards=("is_new", "sum"),
            learning_cards=("is_learning", "sum"),
            review_cards=("is_review", "sum"),
            due_today=("is_due_today", "sum"),
            total_reps=("reps", "sum"),
            total_lapses=("lapses", "sum"),
        )
        reviewed = cards[~cards["is_new"]]
        fsrs_stats = reviewed.groupby("topic_id").agg(
            median_stability=("stability", "median"),
            p10_stability=("stability", lambda s: s.quantile(P10_QUANTILE)),
            median_difficulty=("difficulty", "median"),
            median_elapsed_days=("elapsed_days", "median"),
        )
        result = result.join(counts).join(fsrs_stats)

    if not attempts_df.empty:
        attempt_stats = attempts_df.groupby("topic_id").agg(
            attempts_count=("is_correct", "size"),
            correct_count=("is_correct", "sum"),
        )
        result = result.join(attempt_stats)

    for column in COUNT_COLUMNS:
        if column not in result:
            result[column] = 0
        result[column] = result[column].fillna(0).astype("int64")
    for column in ("median_stability", "p10_stability", "median_difficulty", "median_elapsed_days"):
        if column not in result:
            result[column] = float("nan")
        result[column] = result[column].astype("float64")

    r_now = [
        median_retention(_optional(s), _optional(e))
        for s, e in zip(result["median_stability"], result["median_elapsed_days"])
    ]
    result["r_now"] = r_now
    # Bucket before pandas turns missing values into NaN
    result["risk"] = [classify_risk(r, thresholds).value for r in r_now]

    return result.reset_index()[TOPIC_PROGRESS_COLUMNS]


def summarize_progress(topic_df: pd.DataFrame, target_retention: float) -> ProgressSummary:
    """
    Roll topic rows into headline numbers.

    Only topics with at least one card can be at risk; global medians are
    medians of the topic medians.
    """
    if topic_df.empty:
        return ProgressSummary(0, 0, None, None, None, target_retention, 0)

    studied = topic_df[topic_df["total_cards"] > 0]
    attempts = int(topic_df["attempts_count"].sum())
    correct = int(topic_df["correct_count"].sum())

    return ProgressSummary(
        total_due_today=int(topic_df["due_today"].sum()),
        at_risk_topic_count=int((studied["risk"] != Risk.SAFE.value).sum()),
        global_median_stability=_optional(studied["median_stability"].median()),
        global_median_difficulty=_optional(studied["median_difficulty"].median()),
        observed_recall=correct / attempts if attempts else None,
        target_retention=target_retention,
        total_attempts=attempts,
    )


def compute_review_forecast(
    cards_df: pd.DataFrame,
    now: datetime,
    days: int = FORECAST_DAYS
) -> pd.DataFrame:
    """
    Reviews falling due on each of the next days, starting today (UTC).

    Overdue cards fold into today and set its is_overdue flag.
    """
    today = utc_day(now)
    day_index = pd.date_range(start=today, periods=days, freq="D")
    day_index.name = "date"

    counts = pd.Series(0, index=day_index, dtype="int64")
    any_overdue = False
    if not cards_df.empty:
        scheduled = cards_df[cards_df["state"] != int(State.NEW)]
        due_day = scheduled["due_at"].dt.floor("D")
        overdue = due_day < today
        any_overdue = bool(overdue.any())
        due_day = due_day.where(~overdue, today)
        counts = due_day.value_counts().reindex(day_index, fill_value=0).astype("int64")

    forecast = pd.DataFrame({"review_count": counts}, index=day_index)
    forecast["is_overdue"] = False
    if any_overdue:
        forecast.loc[today, "is_overdue"] = True
    forecast["label"] = [f"{d:%a} {d.day}" for d in day_index]
    return forecast


def exam_recommendation(projected_r: float, target_retention: float) -> Optional[str]:
    """How much review a topic needs before the exam, or None if on target."""
    if projected_r >= target_retention:
        return None
    deficit = target_retention - projected_r
    for min_deficit, advice in RECOMMENDATION_STEPS:
        if deficit > min_deficit:
            return advice
    return RECOMMENDATION_STEPS[-1][1]


def project_topics_to_exam(
    topic_df: pd.DataFrame,
    days_until: int,
    target_retention: float
) -> pd.DataFrame:
    """
    Current and exam-day retention per studied topic, weakest first.
    """
    columns = ["topic_id", "topic_title", "current_r", "projected_r", "median_stability", "recommendation"]
    studied = topic_df[topic_df["total_cards"] > 0] if not topic_df.empty else topic_df
    if studied.empty:
        return pd.DataFrame(columns=columns)

    rows = []
    for row in studied.itertuples(index=False):
        current_r = _optional(row.r_now) or 0.0
        projected = median_retention(
            _optional(row.median_stability),
            _optional(row.median_elapsed_days),
            max(days_until, 0),
        )
        projected_r = current_r if projected is None else projected
        rows.append({
            "topic_id": row.topic_id,
            "topic_title": row.topic_title,
            "current_r": current_r,
            "projected_r": projected_r,
            "median_stability": _optional(row.median_stability),
            "recommendation": exam_recommendation(projected_r, target_retention),
        })

    return (
        pd.DataFrame(rows, columns=columns)
        .sort_values(["projected_r", "topic_id"])
        .reset_index(drop=True)
    )
