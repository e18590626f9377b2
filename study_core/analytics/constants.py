"""
Constants for progress analytics.
"""

from __future__ import annotations

from typing import Final


FORECAST_DAYS: Final[int] = 14
DEFAULT_DAYS_BACK: Final[int] = 30
DEFAULT_TARGET_RETENTION: Final[float] = 0.9
P10_QUANTILE: Final[float] = 0.1

# Retention deficit (target - projected R) above which more review passes are advised
RECOMMENDATION_STEPS: Final[list[tuple[float, str]]] = [
    (0.3, "Review multiple times before exam"),
    (0.1, "Review 2x before exam"),
    (0.0, "Review once before exam"),
]

CARD_COLUMNS: Final[list[str]] = [
    "question_id", "course_id", "topic_id", "due_at", "last_reviewed_at",
    "stability", "difficulty", "elapsed_days", "reps", "lapses", "state",
]
ATTEMPT_COLUMNS: Final[list[str]] = [
    "question_id", "topic_id", "is_correct", "created_at",
]
TOPIC_COLUMNS: Final[list[str]] = ["topic_id", "topic_title", "course_id"]

COUNT_COLUMNS: Final[list[str]] = [
    "total_cards", "new_cards", "learning_cards", "review_cards", "due_today",
    "attempts_count", "correct_count", "total_reps", "total_lapses",
]
TOPIC_PROGRESS_COLUMNS: Final[list[str]] = TOPIC_COLUMNS + COUNT_COLUMNS + [
    "median_stability", "p10_stability", "median_difficulty", "median_elapsed_days",
    "r_now", "risk",
]
