"""
Persistence Mapping - srs_state rows <-> Card

Total mapping between stored rows and the typed Card used by the scheduler.

Rows are not trusted: timestamps read back naive (SQLite) are treated as
UTC, out-of-range stability/difficulty/durations are clamped, and anything
that cannot be repaired (missing due date, unknown state, negative counters,
broken New-state invariant) raises ValidationError.
"""

from __future__ import annotations
import math
from datetime import datetime, timezone
from typing import Any, Optional

from study_core.errors import ValidationError
from study_core.fsrs.constants import State
from study_core.fsrs.ltm_updates import clamp_difficulty, clamp_stability
from study_core.fsrs.memory_state import Card, validate_card


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalise a stored timestamp to an aware UTC datetime.
    """
    if value is None:
        return None
    if value.tzinfo is None or value.utcoffset() is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _finite(value: Any, name: str) -> float:
    if value is None:
        raise ValidationError(f"Stored {name} is missing")
    number = float(value)
    if not math.isfinite(number):
        raise ValidationError(f"Stored {name} is not finite", {name: value})
    return number


def _counter(value: Any, name: str) -> int:
    count = int(value or 0)
    if count < 0:
        raise ValidationError(f"Stored {name} is negative", {name: value})
    return count


def card_from_row(row) -> Card:
    """
    Build a Card from an srs_state row (ORM object or any attribute holder).

    Args:
        row: Object exposing the srs_state columns as attributes

    Returns:
        Validated Card

    Raises:
        ValidationError: if the row cannot be mapped to a legal card
    """
    due = as_utc(row.due_at)
    if due is None:
        raise ValidationError("Stored card has no due date")

    try:
        state = State(int(row.state))
    except (TypeError, ValueError):
        raise ValidationError("Stored card has unknown state", {"state": row.state}) from None

    card = Card(
        due=due,
        last_review=as_utc(row.last_reviewed_at),
        reps=_counter(row.reps, "reps"),
        lapses=_counter(row.lapses, "lapses"),
        stability=clamp_stability(_finite(row.stability, "stability")),
        difficulty=clamp_difficulty(_finite(row.difficulty, "difficulty")),
        elapsed_days=max(_finite(row.elapsed_days or 0.0, "elapsed_days"), 0.0),
        scheduled_days=max(_finite(row.scheduled_days or 0.0, "scheduled_days"), 0.0),
        learning_steps=_counter(row.learning_steps, "learning_steps"),
        state=state,
    )
    validate_card(card)
    return card


def card_to_row(card: Card) -> dict:
    """
    Column values for persisting a card (identity and version excluded).
    """
    validate_card(card)
    return {
        "due_at": card.due,
        "last_reviewed_at": card.last_review,
        "reps": card.reps,
        "lapses": card.lapses,
        "stability": card.stability,
        "difficulty": card.difficulty,
        "elapsed_days": card.elapsed_days,
        "scheduled_days": card.scheduled_days,
        "learning_steps": card.learning_steps,
        "state": int(card.state),
    }
