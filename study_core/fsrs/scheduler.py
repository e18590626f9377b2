"""
Scheduler - FSRS Algorithm Logic

Pure FSRS scheduling and state updates (no database calls).

Main workflow:
1. Validate the card, rating, and review timestamp
2. Calculate elapsed days and retrievability before the review
3. Update stability and difficulty (seed, short-term, recall, or forget)
4. Walk the learning-step table or compute a long-term interval
5. Return the new card + event data dict

Randomness only enters through the injected ``rng`` used for interval
fuzz, so runs with fuzz disabled (or a seeded rng) are deterministic.
"""

from __future__ import annotations
import random
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

from study_core.config import SchedulerConfig
from study_core.errors import ValidationError
from study_core.fsrs import ltm_updates, memory_state, stm_updates
from study_core.fsrs.constants import (
    DECAY,
    FACTOR,
    FUZZ_MIN_INTERVAL,
    FUZZ_RANGES,
    Rating,
    State,
)

DEFAULT_CONFIG = SchedulerConfig()


def coerce_rating(rating) -> Rating:
    """
    Validate a rating value.

    Raises:
        ValidationError: if rating is not one of 1..4
    """
    if isinstance(rating, bool) or not isinstance(rating, int):
        raise ValidationError("Rating must be an integer 1-4", {"rating": repr(rating)})
    try:
        return Rating(rating)
    except ValueError:
        raise ValidationError("Rating out of range", {"rating": rating}) from None


def next_interval(stability: float, config: SchedulerConfig = DEFAULT_CONFIG) -> int:
    """
    Whole-day interval at which retrievability reaches the desired retention.

    Formula: I = S / FACTOR * (r^(1/DECAY) - 1), rounded, clamped to [1, max]
    """
    interval = stability / FACTOR * (config.desired_retention ** (1.0 / DECAY) - 1.0)
    return min(max(int(round(interval)), 1), config.maximum_interval)


def fuzz_range(interval_days: int, maximum_interval: int) -> tuple[int, int]:
    """
    Inclusive day range an interval may be fuzzed into.
    """
    delta = 1.0
    for start, end, factor in FUZZ_RANGES:
        delta += factor * max(min(interval_days, end) - start, 0.0)

    min_ivl = max(2, int(round(interval_days - delta)))
    max_ivl = min(int(round(interval_days + delta)), maximum_interval)
    return min(min_ivl, max_ivl), max_ivl


def fuzz_interval(
    interval_days: int,
    config: SchedulerConfig = DEFAULT_CONFIG,
    rng: Optional[random.Random] = None
) -> int:
    """
    Spread an interval so cards reviewed together do not stay clumped.

    Intervals shorter than 2.5 days are left unchanged.
    """
    if interval_days < FUZZ_MIN_INTERVAL:
        return interval_days
    rng = rng or random.Random()

    min_ivl, max_ivl = fuzz_range(interval_days, config.maximum_interval)
    fuzzed = rng.random() * (max_ivl - min_ivl + 1) + min_ivl
    return min(int(fuzzed), max_ivl)


def process_review(
    card: memory_state.Card,
    rating: Rating,
    timestamp: Optional[datetime] = None,
    config: SchedulerConfig = DEFAULT_CONFIG,
    rng: Optional[random.Random] = None
) -> Tuple[memory_state.Card, dict]:
    """
    Process a review and return the updated card + event data.

    This is the core FSRS algorithm. No database calls.
    Caller is responsible for:
    1. Loading (or creating) the card
    2. Saving the card after review
    3. Persisting the attempt

    Args:
        card: Card to update (may be new or existing)
        rating: Review rating (AGAIN, HARD, GOOD, EASY)
        timestamp: Review timestamp (defaults to now, must be tz-aware)
        config: Scheduler parameters
        rng: Random source for interval fuzz

    Returns:
        Tuple of (updated_card, event_data_dict)

    Raises:
        ValidationError: invalid rating, malformed card, or a timestamp
            earlier than the card's last review
    """
    if timestamp is None:
        timestamp = datetime.now(timezone.utc)

    rating = coerce_rating(rating)
    memory_state.validate_card(card)
    memory_state.require_aware(timestamp, "timestamp")
    if card.last_review is not None and timestamp < card.last_review:
        raise ValidationError(
            "Review timestamp precedes last review",
            {"timestamp": timestamp.isoformat(), "last_review": card.last_review.isoformat()},
        )

    w = config.parameters
    is_new_card = card.state == State.NEW

    if is_new_card:
        elapsed_days = 0.0
        retrievability_before = None
        stability = ltm_updates.initial_stability(rating, w)
        difficulty = ltm_updates.initial_difficulty(rating, w)
    else:
        elapsed_days = memory_state.days_between(card.last_review, timestamp)
        retrievability_before = memory_state.retrievability(card.stability, elapsed_days)
        stability, difficulty = ltm_updates.apply_ltm_update(
            stability=card.stability,
            difficulty=card.difficulty,
            retrievability=retrievability_before,
            rating=rating,
            elapsed_days=elapsed_days,
            w=w,
        )

    outcome, lapses = _next_state(card, rating, config)

    if outcome.interval is None:
        interval_days = next_interval(stability, config)
        if config.enable_fuzz:
            interval_days = fuzz_interval(interval_days, config, rng)
        interval = timedelta(days=interval_days)
    else:
        interval = outcome.interval

    updated = replace(
        card,
        due=timestamp + interval,
        stability=stability,
        difficulty=difficulty,
        last_review=timestamp,
        reps=card.reps + 1,
        lapses=lapses,
        elapsed_days=elapsed_days,
        scheduled_days=interval.total_seconds() / memory_state.SECONDS_PER_DAY,
        learning_steps=outcome.step,
        state=outcome.state,
    )

    event_data = {
        "rating": rating,
        "reviewed_at": timestamp,
        "state_before": card.state,
        "state_after": updated.state,
        "stability_before": None if is_new_card else card.stability,
        "difficulty_before": None if is_new_card else card.difficulty,
        "retrievability_before": retrievability_before,
        "stability_after": updated.stability,
        "difficulty_after": updated.difficulty,
        "elapsed_days": elapsed_days,
        "scheduled_days": updated.scheduled_days,
    }
    return updated, event_data


def schedule(
    card: memory_state.Card,
    rating: Rating,
    now: datetime,
    config: SchedulerConfig = DEFAULT_CONFIG,
    rng: Optional[random.Random] = None
) -> memory_state.Card:
    """Apply one review and return the new card."""
    updated, _ = process_review(card, rating, now, config, rng)
    return updated


def _next_state(
    card: memory_state.Card,
    rating: Rating,
    config: SchedulerConfig
) -> tuple[stm_updates.StepOutcome, int]:
    """
    Decide the next state/step/interval and the new lapse count.
    """
    if card.state == State.REVIEW:
        if rating != Rating.AGAIN:
            return stm_updates.StepOutcome(State.REVIEW, 0, None), card.lapses
        steps = config.relearning_steps
        # Without relearning steps the lapse is scheduled on the long-term curve
        interval = steps[0] if steps else None
        return stm_updates.StepOutcome(State.RELEARNING, 0, interval), card.lapses + 1

    steps = config.relearning_steps if card.state == State.RELEARNING else config.learning_steps
    outcome = stm_updates.next_step(
        card.state,
        card.learning_steps,
        rating,
        steps,
        graduate_on_good=config.graduate_on_first_good and card.state == State.NEW,
    )
    return outcome, card.lapses
