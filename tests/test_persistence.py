from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from study_core.errors import ValidationError
from study_core.fsrs.constants import STABILITY_MIN, State
from study_core.fsrs.persistence import as_utc, card_from_row, card_to_row


def make_row(**overrides):
    values = dict(
        due_at=datetime(2026, 3, 12, 9, 0),
        last_reviewed_at=datetime(2026, 3, 2, 9, 0),
        reps=4,
        lapses=1,
        stability=10.0,
        difficulty=5.5,
        elapsed_days=10.0,
        scheduled_days=10.0,
        learning_steps=0,
        state=int(State.REVIEW),
    )
    values.update(overrides)
    return SimpleNamespace(**values)


def test_naive_timestamps_are_read_as_utc():
    card = card_from_row(make_row())

    assert card.due == datetime(2026, 3, 12, 9, 0, tzinfo=timezone.utc)
    assert card.last_review.tzinfo is not None
    assert card.state == State.REVIEW


def test_as_utc_converts_other_offsets():
    plus_two = timezone(timedelta(hours=2))
    assert as_utc(datetime(2026, 3, 10, 14, 0, tzinfo=plus_two)) == datetime(
        2026, 3, 10, 12, 0, tzinfo=timezone.utc
    )
    assert as_utc(None) is None


def test_out_of_range_values_are_clamped():
    card = card_from_row(make_row(stability=0.0, difficulty=14.0, elapsed_days=-3.0, scheduled_days=None))

    assert card.stability == STABILITY_MIN
    assert card.difficulty == 10.0
    assert card.elapsed_days == 0.0
    assert card.scheduled_days == 0.0


@pytest.mark.parametrize("overrides", [
    {"due_at": None},
    {"state": 9},
    {"state": None},
    {"reps": -1},
    {"stability": float("nan")},
    {"stability": None},
    {"state": int(State.NEW)},  # New with reps > 0
])
def test_unrepairable_rows_are_rejected(overrides):
    with pytest.raises(ValidationError):
        card_from_row(make_row(**overrides))


def test_card_to_row_carries_every_column():
    card = card_from_row(make_row())
    row = card_to_row(card)

    assert row["state"] == int(State.REVIEW)
    assert row["due_at"] == card.due
    assert set(row) == {
        "due_at", "last_reviewed_at", "reps", "lapses", "stability", "difficulty",
        "elapsed_days", "scheduled_days", "learning_steps", "state",
    }
    assert card_from_row(SimpleNamespace(**row)) == card
