from dataclasses import replace
from datetime import timedelta

import pytest

from study_core.config import RiskThresholds
from study_core.errors import ValidationError
from study_core.fsrs.constants import Risk, State
from study_core.fsrs.memory_state import (
    card_retrievability,
    classify_risk,
    interval_at_retention,
    new_card,
    project_retention,
    retrievability,
    validate_card,
)


def test_retrievability_is_ninety_percent_at_stability():
    for stability in (0.5, 3.0, 10.0, 120.0):
        assert retrievability(stability, stability) == pytest.approx(0.9)
    assert retrievability(10.0, 0.0) == 1.0


def test_retrievability_decreases_with_time_and_increases_with_stability():
    curve = [retrievability(10.0, t) for t in (0, 1, 5, 10, 30, 365)]
    assert curve == sorted(curve, reverse=True)
    assert len(set(curve)) == len(curve)

    assert retrievability(5.0, 10.0) < retrievability(20.0, 10.0)


def test_projection_at_zero_horizon_matches_retrievability():
    assert project_retention(7.3, 4.1, 0) == retrievability(7.3, 4.1)
    assert project_retention(7.3, 4.1, 10) == retrievability(7.3, 14.1)


def test_interval_at_retention_inverts_retrievability():
    days = interval_at_retention(12.0, 0.8)
    assert retrievability(12.0, days) == pytest.approx(0.8)
    assert interval_at_retention(12.0, 0.9) == pytest.approx(12.0)


@pytest.mark.parametrize("args", [(0.0, 1.0), (-2.0, 1.0), (5.0, -0.5), (float("nan"), 1.0)])
def test_retrievability_rejects_bad_inputs(args):
    with pytest.raises(ValidationError):
        retrievability(*args)


def test_projection_rejects_negative_horizon():
    with pytest.raises(ValidationError):
        project_retention(5.0, 1.0, -1)


def test_risk_buckets():
    # Stability 10 days, 30 days since review
    r = retrievability(10.0, 30.0)
    assert r == pytest.approx(0.766, abs=0.001)
    assert classify_risk(r) == Risk.SAFE
    assert classify_risk(0.6) == Risk.WARNING

    assert classify_risk(0.95) == Risk.SAFE
    assert classify_risk(0.8) == Risk.SAFE
    assert classify_risk(0.5) == Risk.WARNING
    assert classify_risk(0.2) == Risk.DANGER
    assert classify_risk(None) == Risk.WARNING
    assert classify_risk(0.75, RiskThresholds(safe=0.7, warning=0.4)) == Risk.SAFE


def test_new_card_is_valid_and_unreviewed(now):
    card = new_card(now)

    validate_card(card)
    assert card.state == State.NEW
    assert card.reps == 0
    assert card.last_review is None
    assert card.stability > 0
    assert 1.0 <= card.difficulty <= 10.0
    assert card_retrievability(card, now) == 1.0


def test_card_retrievability_uses_time_since_review(now, make_review_card):
    card = make_review_card(due=now, stability=10.0)
    assert card_retrievability(card, now) == pytest.approx(0.9)


@pytest.mark.parametrize("changes", [
    {"reps": 1},
    {"difficulty": 0.5},
    {"difficulty": 11.0},
    {"stability": 0.0},
    {"lapses": -1},
    {"state": 7},
])
def test_validate_card_rejects_broken_cards(now, changes):
    with pytest.raises(ValidationError):
        validate_card(replace(new_card(now), **changes))


def test_validate_card_rejects_due_before_last_review(now, make_review_card):
    card = make_review_card(due=now, last_review=now + timedelta(hours=1))
    with pytest.raises(ValidationError):
        validate_card(card)


def test_validate_card_rejects_naive_due(now):
    with pytest.raises(ValidationError):
        validate_card(replace(new_card(now), due=now.replace(tzinfo=None)))
