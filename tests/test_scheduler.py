import random
from dataclasses import replace
from datetime import timedelta

import pytest

from study_core.config import DEFAULT_PARAMETERS, SchedulerConfig
from study_core.errors import ValidationError
from study_core.fsrs import scheduler
from study_core.fsrs.constants import Rating, State
from study_core.fsrs.memory_state import new_card
from study_core.fsrs.stm_updates import hard_interval, next_step


def test_new_card_good_enters_learning(now, no_fuzz):
    card = scheduler.schedule(new_card(now), Rating.GOOD, now, no_fuzz)

    assert card.state == State.LEARNING
    assert card.learning_steps == 1
    assert card.reps == 1
    assert card.lapses == 0
    assert card.last_review == now
    assert card.due == now + timedelta(minutes=10)
    assert card.stability == pytest.approx(DEFAULT_PARAMETERS[2])


def test_new_card_again_and_hard_use_first_step(now, no_fuzz):
    again = scheduler.schedule(new_card(now), Rating.AGAIN, now, no_fuzz)
    hard = scheduler.schedule(new_card(now), Rating.HARD, now, no_fuzz)

    assert again.state == State.LEARNING and again.learning_steps == 0
    assert again.due == now + timedelta(minutes=1)
    assert hard.state == State.LEARNING and hard.learning_steps == 0
    assert hard.due == now + timedelta(minutes=5, seconds=30)


def test_new_card_easy_graduates(now, no_fuzz):
    card = scheduler.schedule(new_card(now), Rating.EASY, now, no_fuzz)

    assert card.state == State.REVIEW
    assert card.stability == pytest.approx(DEFAULT_PARAMETERS[3])
    # At 90% desired retention the interval equals the stability
    assert card.due == now + timedelta(days=16)
    assert card.scheduled_days == pytest.approx(16.0)


def test_graduate_on_first_good(now):
    config = SchedulerConfig(enable_fuzz=False, graduate_on_first_good=True)
    card = scheduler.schedule(new_card(now), Rating.GOOD, now, config)

    assert card.state == State.REVIEW
    assert card.due == now + timedelta(days=3)


def test_learning_walks_steps_then_graduates(now, no_fuzz):
    card = scheduler.schedule(new_card(now), Rating.GOOD, now, no_fuzz)
    later = card.due
    card = scheduler.schedule(card, Rating.GOOD, later, no_fuzz)

    assert card.state == State.REVIEW
    assert card.learning_steps == 0
    assert card.reps == 2
    assert card.scheduled_days >= 1


def test_review_lapse_enters_relearning(now, no_fuzz, make_review_card):
    card = make_review_card(due=now, stability=10.0, reps=5, lapses=1)

    updated, event = scheduler.process_review(card, Rating.AGAIN, now, no_fuzz)

    assert updated.state == State.RELEARNING
    assert updated.lapses == 2
    assert updated.reps == 6
    assert updated.stability < 10.0
    assert updated.due == now + timedelta(minutes=10)
    assert event["state_before"] == State.REVIEW
    assert event["retrievability_before"] == pytest.approx(0.9)
    assert event["elapsed_days"] == pytest.approx(10.0)


def test_lapse_without_relearning_steps_uses_long_term_interval(now, make_review_card):
    config = SchedulerConfig(enable_fuzz=False, relearning_steps=())
    card = make_review_card(due=now, stability=10.0)

    updated = scheduler.schedule(card, Rating.AGAIN, now, config)

    assert updated.state == State.RELEARNING
    assert updated.due >= now + timedelta(days=1)


def test_relearning_good_returns_to_review(now, no_fuzz, make_review_card):
    lapsed = scheduler.schedule(make_review_card(due=now), Rating.AGAIN, now, no_fuzz)
    recovered = scheduler.schedule(lapsed, Rating.GOOD, lapsed.due, no_fuzz)

    assert recovered.state == State.REVIEW
    assert recovered.lapses == lapsed.lapses


def test_successful_review_grows_stability_by_rating(now, no_fuzz, make_review_card):
    card = make_review_card(due=now, stability=10.0)

    hard = scheduler.schedule(card, Rating.HARD, now, no_fuzz)
    good = scheduler.schedule(card, Rating.GOOD, now, no_fuzz)
    easy = scheduler.schedule(card, Rating.EASY, now, no_fuzz)

    assert 10.0 < hard.stability < good.stability < easy.stability
    assert hard.difficulty > good.difficulty > easy.difficulty
    assert {hard.state, good.state, easy.state} == {State.REVIEW}


def test_never_returns_new(now, no_fuzz, make_review_card):
    learning = scheduler.schedule(new_card(now), Rating.AGAIN, now, no_fuzz)
    review = make_review_card(due=now)
    relearning = scheduler.schedule(review, Rating.AGAIN, now, no_fuzz)

    for card in (new_card(now), learning, review, relearning):
        for rating in Rating:
            at = max(now, card.last_review or now)
            result = scheduler.schedule(card, rating, at, no_fuzz)
            assert result.state != State.NEW
            assert result.due > at
            assert result.last_review == at


def test_deterministic_without_fuzz(now, no_fuzz, make_review_card):
    card = make_review_card(due=now - timedelta(days=3), stability=20.0)

    first = scheduler.schedule(card, Rating.GOOD, now, no_fuzz)
    second = scheduler.schedule(card, Rating.GOOD, now, no_fuzz)

    assert first == second


def test_seeded_fuzz_is_reproducible(now, make_review_card):
    config = SchedulerConfig(enable_fuzz=True)
    card = make_review_card(due=now, stability=30.0)

    first = scheduler.schedule(card, Rating.GOOD, now, config, random.Random(7))
    second = scheduler.schedule(card, Rating.GOOD, now, config, random.Random(7))

    assert first == second


def test_fuzz_stays_inside_range():
    config = SchedulerConfig()
    low, high = scheduler.fuzz_range(30, config.maximum_interval)
    rng = random.Random(1234)

    assert low < 30 < high
    for _ in range(200):
        assert low <= scheduler.fuzz_interval(30, config, rng) <= high


def test_short_intervals_are_not_fuzzed():
    assert scheduler.fuzz_interval(2, SchedulerConfig(), random.Random(0)) == 2


def test_next_interval_is_clamped():
    assert scheduler.next_interval(0.01) == 1
    assert scheduler.next_interval(10_000.0) == 365
    assert scheduler.next_interval(10_000.0, SchedulerConfig(maximum_interval=100)) == 100


@pytest.mark.parametrize("rating", [0, 5, -1, True, 2.5, "3", None])
def test_invalid_rating_rejected(now, rating):
    with pytest.raises(ValidationError):
        scheduler.schedule(new_card(now), rating, now)


def test_negative_stability_rejected(now, make_review_card):
    card = replace(make_review_card(due=now), stability=-1.0)

    with pytest.raises(ValidationError):
        scheduler.schedule(card, Rating.GOOD, now)


def test_review_before_last_review_rejected(now, make_review_card):
    card = make_review_card(due=now, last_review=now - timedelta(days=1))

    with pytest.raises(ValidationError):
        scheduler.schedule(card, Rating.GOOD, now - timedelta(days=2))


def test_naive_timestamp_rejected(now):
    with pytest.raises(ValidationError):
        scheduler.schedule(new_card(now), Rating.GOOD, now.replace(tzinfo=None))


def test_same_day_review_uses_short_term_stability(now, no_fuzz):
    learning = scheduler.schedule(new_card(now), Rating.GOOD, now, no_fuzz)
    again = scheduler.schedule(learning, Rating.AGAIN, now + timedelta(minutes=10), no_fuzz)

    assert again.stability < learning.stability
    assert again.state == State.LEARNING
    assert again.learning_steps == 0


def test_step_table_helpers():
    steps = (timedelta(minutes=1), timedelta(minutes=10))

    assert hard_interval(steps, 0) == timedelta(minutes=5, seconds=30)
    assert hard_interval(steps[:1], 0) == timedelta(seconds=90)
    assert hard_interval(steps, 1) == timedelta(minutes=10)

    outcome = next_step(State.LEARNING, 1, Rating.GOOD, steps)
    assert outcome.state == State.REVIEW and outcome.interval is None

    outcome = next_step(State.RELEARNING, 0, Rating.AGAIN, (timedelta(minutes=10),))
    assert outcome == (State.RELEARNING, 0, timedelta(minutes=10))

    # A step index past a shortened table graduates
    assert next_step(State.LEARNING, 5, Rating.HARD, steps).state == State.REVIEW
