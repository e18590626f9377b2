"""
Scheduling - Attempt Ingestion

Ties together the scheduler and the card store: the only path by which a
learner's answer changes card state.

Main workflow:
1. Map correctness + confidence to an FSRS rating
2. Load the card (or create a new one on first attempt)
3. Run the scheduler
4. Save the card with an optimistic version check and log the attempt
5. On a concurrent write, retry against the freshly read card
"""

from __future__ import annotations
import logging
import random
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from study_core.config import SchedulerConfig
from study_core.errors import ConcurrencyConflictError, NotFoundError
from study_core.fsrs import database, scheduler
from study_core.fsrs.constants import Rating
from study_core.fsrs.memory_state import Card, new_card
from study_core.schemas import Attempt, Confidence

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 3

# Correct answers only; an incorrect answer is always AGAIN
CONFIDENCE_RATINGS = {
    Confidence.GUESSED: Rating.HARD,
    Confidence.UNSURE: Rating.GOOD,
    Confidence.KNEW_IT: Rating.EASY,
}


def rating_from_attempt(is_correct: bool, confidence: Optional[Confidence]) -> Rating:
    """
    Derive the FSRS rating for an answer.

    incorrect -> AGAIN regardless of confidence;
    correct -> HARD / GOOD / EASY by confidence, GOOD when not reported.
    """
    if not is_correct:
        return Rating.AGAIN
    if confidence is None:
        return Rating.GOOD
    return CONFIDENCE_RATINGS[Confidence(confidence)]


def _apply_attempt(
    session: Session,
    attempt: Attempt,
    rating: Rating,
    timestamp: datetime,
    config: SchedulerConfig,
    rng: Optional[random.Random],
    after_conflict: bool = False
) -> Card:
    """
    One try of ingestion inside an open transaction.

    After a lost race the fresh card may already carry a later review than
    this attempt; the attempt is then applied at that later instant.
    """
    if database.get_question(session, attempt.question_id) is None:
        raise NotFoundError("Question", attempt.question_id)

    stored = database.load_card(session, attempt.user_id, attempt.question_id)
    if stored is None:
        card, version = new_card(timestamp, config), None
    else:
        card, version = stored

    review_at = timestamp
    if after_conflict and card.last_review is not None and card.last_review > timestamp:
        logger.info(
            "Attempt %s/%s lost a race to a later review; applying at %s",
            attempt.user_id, attempt.question_id, card.last_review.isoformat(),
        )
        review_at = card.last_review

    updated, event_data = scheduler.process_review(card, rating, review_at, config, rng)

    database.put_card(
        session,
        attempt.user_id,
        attempt.question_id,
        updated,
        expected_version=version,
        now=review_at,
    )
    database.append_attempt(
        session,
        user_id=attempt.user_id,
        question_id=attempt.question_id,
        is_correct=attempt.is_correct,
        confidence=attempt.confidence.value if attempt.confidence else None,
        rating=int(rating),
        time_spent_ms=attempt.time_spent_ms,
        created_at=timestamp,
        state_before=int(event_data["state_before"]),
        retrievability_before=event_data["retrievability_before"],
        stability_after=event_data["stability_after"],
        difficulty_after=event_data["difficulty_after"],
    )
    return updated


def record_attempt(
    session_factory: database.SessionFactory,
    attempt: Attempt,
    config: SchedulerConfig = scheduler.DEFAULT_CONFIG,
    rng: Optional[random.Random] = None,
    now: Optional[datetime] = None,
    max_retries: int = DEFAULT_MAX_RETRIES
) -> Card:
    """
    Record an answered question and reschedule its card.

    Each try runs in its own transaction. A concurrency conflict rolls the
    try back and retries against the latest stored card; validation and
    not-found errors propagate immediately.

    Args:
        session_factory: Callable returning a new Session
        attempt: Validated attempt
        config: Scheduler parameters
        rng: Random source for interval fuzz
        now: Review time when the attempt carries no created_at
        max_retries: Retries after the first conflicting try

    Returns:
        The updated Card

    Raises:
        ValidationError: malformed stored card or out-of-order timestamp
        NotFoundError: the question does not exist
        ConcurrencyConflictError: still conflicting after max_retries
    """
    rating = rating_from_attempt(attempt.is_correct, attempt.confidence)
    timestamp = attempt.created_at or now or datetime.now(timezone.utc)
    last_conflict: Optional[ConcurrencyConflictError] = None

    for try_number in range(1, max_retries + 2):
        session = session_factory()
        try:
            card = _apply_attempt(
                session, attempt, rating, timestamp, config, rng,
                after_conflict=last_conflict is not None,
            )
            session.commit()
        except ConcurrencyConflictError as exc:
            session.rollback()
            last_conflict = exc
            logger.warning(
                "Conflict recording attempt for %s/%s (try %d of %d)",
                attempt.user_id, attempt.question_id, try_number, max_retries + 1,
            )
            continue
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

        logger.info(
            "Recorded attempt %s/%s rating=%s state=%s due=%s",
            attempt.user_id, attempt.question_id, rating.name, card.state.name,
            card.due.isoformat(),
        )
        return card

    raise ConcurrencyConflictError(
        "Card kept changing while recording attempt; please retry",
        {
            "user_id": attempt.user_id,
            "question_id": attempt.question_id,
            "tries": max_retries + 1,
        },
    ) from last_conflict
