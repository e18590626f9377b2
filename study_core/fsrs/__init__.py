"""
FSRS - Free Spaced Repetition Scheduler

Main API for the course study scheduler.

This package implements the FSRS-5 memory model with:
- Power-law forgetting curve: R = (1 + 19/81 * t/S) ^ -0.5
- Learning / relearning steps before long-term review
- Interpretable memory state (Stability, Difficulty, Retrievability)
- A versioned card store so concurrent answers never overwrite each other

Quick start:
    from study_core import fsrs

    # Initialize database
    engine = fsrs.get_engine()
    fsrs.init_db(engine)
    session_factory = fsrs.get_session_factory(engine)

    # Process a review (algorithm only, no DB calls)
    card = fsrs.schedule(card, fsrs.Rating.GOOD, now, config)

    # Record an answered question (load, schedule, save, log)
    card = fsrs.record_attempt(session_factory, attempt)
"""

# Core scheduler API (algorithm logic)
from study_core.fsrs.scheduler import process_review, schedule, next_interval

# Attempt ingestion
from study_core.fsrs.scheduling import rating_from_attempt, record_attempt

# Database API
from study_core.fsrs.database import (
    get_engine,
    get_session_factory,
    init_db,
    load_card,
    get_card,
    put_card,
    append_attempt,
    list_due_cards,
    list_user_cards,
    list_topic_schedule,
    list_enrolled_courses,
    recalculate_elapsed_for_user,
)

# Constants and enums
from study_core.fsrs.constants import (
    Rating,
    State,
    Risk,
    DECAY,
    FACTOR,
    STABILITY_MIN,
)

# Memory state and retention projection
from study_core.fsrs.memory_state import (
    Card,
    new_card,
    retrievability,
    interval_at_retention,
    project_retention,
    card_retrievability,
    classify_risk,
)


__all__ = [
    # Core algorithm
    "process_review",
    "schedule",
    "next_interval",

    # Ingestion
    "rating_from_attempt",
    "record_attempt",

    # Database operations
    "get_engine",
    "get_session_factory",
    "init_db",
    "load_card",
    "get_card",
    "put_card",
    "append_attempt",
    "list_due_cards",
    "list_user_cards",
    "list_topic_schedule",
    "list_enrolled_courses",
    "recalculate_elapsed_for_user",

    # Enums
    "Rating",
    "State",
    "Risk",

    # Memory state
    "Card",
    "new_card",
    "retrievability",
    "interval_at_retention",
    "project_retention",
    "card_retrievability",
    "classify_risk",

    # Parameters
    "DECAY",
    "FACTOR",
    "STABILITY_MIN",
]
