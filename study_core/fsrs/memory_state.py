"""
Memory State - FSRS Card and Retrievability

Defines the per-(user, question) card and the retention projector.

Key concepts:
- Stability (S): days until recall probability decays to 90%
- Difficulty (D): how hard the card is to learn (1-10 scale)
- Retrievability (R): probability of successful recall at time t
"""

from __future__ import annotations
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from study_core.config import RiskThresholds, SchedulerConfig
from study_core.errors import ValidationError
from study_core.fsrs.constants import DECAY, FACTOR, Rating, Risk, State
from study_core.fsrs.ltm_updates import initial_difficulty, initial_stability


SECONDS_PER_DAY = 86400.0
DEFAULT_RISK_THRESHOLDS = RiskThresholds()


@dataclass(frozen=True)
class Card:
    """
    Memory state for a single (user, question) pair.

    Cards are immutable; the scheduler returns a new Card per review.
    """
    due: datetime
    stability: float   # S, in days
    difficulty: float  # D, range 1-10
    last_review: Optional[datetime] = None
    reps: int = 0
    lapses: int = 0
    elapsed_days: float = 0.0
    scheduled_days: float = 0.0
    learning_steps: int = 0
    state: State = State.NEW


def new_card(now: datetime, config: SchedulerConfig = SchedulerConfig()) -> Card:
    """
    Create a card for a question that has never been attempted.

    Stability and difficulty start at the Good-rating seeds so the card
    satisfies S > 0 before its first review; the first review reseeds them.
    """
    require_aware(now, "now")
    w = config.parameters
    return Card(
        due=now,
        stability=initial_stability(Rating.GOOD, w),
        difficulty=initial_difficulty(Rating.GOOD, w),
    )


def days_between(start: datetime, end: datetime) -> float:
    """Fractional days from start to end."""
    return (end - start).total_seconds() / SECONDS_PER_DAY


def require_aware(value: datetime, name: str) -> None:
    if not isinstance(value, datetime):
        raise ValidationError(f"{name} must be a datetime", {name: repr(value)})
    if value.tzinfo is None or value.utcoffset() is None:
        raise ValidationError(f"{name} must be timezone-aware", {name: value.isoformat()})


def validate_card(card: Card) -> None:
    """
    Reject a malformed card before it reaches the scheduler.

    Raises:
        ValidationError: on any out-of-range field or broken invariant
    """
    if not isinstance(card, Card):
        raise ValidationError("Expected a Card", {"type": type(card).__name__})

    require_aware(card.due, "due")
    if card.last_review is not None:
        require_aware(card.last_review, "last_review")
        if card.due < card.last_review:
            raise ValidationError("Card due precedes last review")

    if not math.isfinite(card.stability) or card.stability <= 0:
        raise ValidationError("Stability must be positive", {"stability": card.stability})
    if not math.isfinite(card.difficulty) or not 1.0 <= card.difficulty <= 10.0:
        raise ValidationError("Difficulty must be in [1, 10]", {"difficulty": card.difficulty})

    for name in ("reps", "lapses", "learning_steps"):
        value = getattr(card, name)
        if not isinstance(value, int) or value < 0:
            raise ValidationError(f"{name} must be a non-negative integer", {name: value})
    for name in ("elapsed_days", "scheduled_days"):
        if getattr(card, name) < 0:
            raise ValidationError(f"{name} must be non-negative", {name: getattr(card, name)})

    try:
        state = State(card.state)
    except ValueError:
        raise ValidationError("Unknown card state", {"state": card.state}) from None

    is_unreviewed = card.reps == 0 and card.last_review is None
    if (state == State.NEW) != is_unreviewed:
        raise ValidationError(
            "Card state New requires reps == 0 and no last review",
            {"state": state.name, "reps": card.reps},
        )


# ---- Retention projector ----

def retrievability(stability: float, elapsed_days: float) -> float:
    """
    Probability of recall after elapsed_days.

    Formula: R = (1 + FACTOR * t / S) ^ DECAY

    R decreases strictly in t, increases strictly in S, and equals 0.9
    when t == S.

    Args:
        stability: Stability in days (> 0)
        elapsed_days: Days since last review (>= 0)

    Returns:
        Retrievability between 0 and 1

    Raises:
        ValidationError: for non-positive stability or negative elapsed time
    """
    if not math.isfinite(stability) or stability <= 0:
        raise ValidationError("Stability must be positive", {"stability": stability})
    if not math.isfinite(elapsed_days) or elapsed_days < 0:
        raise ValidationError("Elapsed days must be non-negative", {"elapsed_days": elapsed_days})
    return math.pow(1.0 + FACTOR * elapsed_days / stability, DECAY)


def interval_at_retention(stability: float, retention: float) -> float:
    """
    Days until retrievability decays from 1 to the given retention.

    Inverse of retrievability: retrievability(S, interval_at_retention(S, r)) == r
    """
    if stability <= 0:
        raise ValidationError("Stability must be positive", {"stability": stability})
    if not 0.0 < retention < 1.0:
        raise ValidationError("Retention must be in (0, 1)", {"retention": retention})
    return stability / FACTOR * (math.pow(retention, 1.0 / DECAY) - 1.0)


def project_retention(
    stability: float,
    elapsed_days_at_last_review: float,
    horizon_days_ahead: float = 0.0
) -> float:
    """
    Retrievability horizon_days_ahead from now, without touching any card.

    Matches retrievability() exactly when horizon_days_ahead == 0.
    """
    if horizon_days_ahead < 0:
        raise ValidationError("Horizon must be non-negative", {"horizon_days_ahead": horizon_days_ahead})
    return retrievability(stability, elapsed_days_at_last_review + horizon_days_ahead)


def card_retrievability(card: Card, now: datetime) -> float:
    """Current retrievability of a card (1.0 for cards never reviewed)."""
    if card.last_review is None:
        return 1.0
    return retrievability(card.stability, max(days_between(card.last_review, now), 0.0))


def classify_risk(
    r: Optional[float],
    thresholds: RiskThresholds = DEFAULT_RISK_THRESHOLDS
) -> Risk:
    """
    Bucket a retrievability into safe / warning / danger.

    Unknown retrievability (None) is reported as a warning.
    """
    if r is None:
        return Risk.WARNING
    if r >= thresholds.safe:
        return Risk.SAFE
    if r >= thresholds.warning:
        return Risk.WARNING
    return Risk.DANGER
