"""
Types for progress dashboards and exam projections.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional

import pandas as pd


@dataclass(frozen=True)
class ProgressSummary:
    """
    Headline numbers across all topics in scope.
    """
    total_due_today: int
    at_risk_topic_count: int
    global_median_stability: Optional[float]
    global_median_difficulty: Optional[float]
    observed_recall: Optional[float]   # correct / attempts within the window
    target_retention: float
    total_attempts: int


@dataclass(frozen=True)
class ProgressDashboard:
    """
    Per-topic FSRS stats, summary, and the upcoming review forecast.
    """
    topics: pd.DataFrame
    summary: ProgressSummary
    forecast: pd.DataFrame


@dataclass(frozen=True)
class ExamProjection:
    exam_id: int
    exam_title: str
    course_id: str
    exam_date: date
    days_until: int
    overall_projected_r: float
    topics: pd.DataFrame
