"""
Long-Term Memory (LTM) Updates

Stability and difficulty update formulas of the FSRS-5 model.

- Initial stability/difficulty are seeded per rating on a card's first review.
- Successful recall grows stability multiplicatively; growth is larger for
  easier items, lower current stability, and lower retrievability at review.
- A lapse resets stability through the forget formula, which is always
  strictly below the pre-lapse stability.
- Difficulty moves with linear damping and mean-reverts toward the Easy seed.

All functions are pure; ``w`` is the 19-weight parameter tuple.
"""

from __future__ import annotations
import math
from typing import Sequence

from study_core.fsrs.constants import (
    Rating,
    STABILITY_MIN,
    DIFFICULTY_MIN,
    DIFFICULTY_MAX,
)


def clamp_stability(stability: float) -> float:
    return max(STABILITY_MIN, stability)


def clamp_difficulty(difficulty: float) -> float:
    return min(max(difficulty, DIFFICULTY_MIN), DIFFICULTY_MAX)


def initial_stability(rating: Rating, w: Sequence[float]) -> float:
    """Seed stability for a first review: w[rating - 1]."""
    return clamp_stability(w[int(rating) - 1])


def _raw_initial_difficulty(rating: Rating, w: Sequence[float]) -> float:
    return w[4] - math.exp(w[5] * (int(rating) - 1)) + 1


def initial_difficulty(rating: Rating, w: Sequence[float]) -> float:
    """
    Seed difficulty for a first review.

    Formula: D0(G) = w4 - exp(w5 * (G - 1)) + 1, clamped to [1, 10]
    """
    return clamp_difficulty(_raw_initial_difficulty(rating, w))


def next_difficulty(difficulty: float, rating: Rating, w: Sequence[float]) -> float:
    """
    Update difficulty after a review.

    Formula:
        delta = -w6 * (G - 3)
        D' = D + delta * (10 - D) / 9            (linear damping)
        D'' = w7 * D0(EASY) + (1 - w7) * D'      (mean reversion)

    Args:
        difficulty: Current difficulty
        rating: Review rating
        w: Model weights

    Returns:
        New difficulty clamped to [1, 10]
    """
    delta = -w[6] * (int(rating) - 3)
    damped = difficulty + delta * (10.0 - difficulty) / 9.0
    reverted = w[7] * _raw_initial_difficulty(Rating.EASY, w) + (1 - w[7]) * damped
    return clamp_difficulty(reverted)


def next_recall_stability(
    difficulty: float,
    stability: float,
    retrievability: float,
    rating: Rating,
    w: Sequence[float]
) -> float:
    """
    Stability after a successful review (Hard/Good/Easy).

    Formula:
        S' = S * (1 + e^w8 * (11 - D) * S^-w9 * (e^(w10 * (1 - R)) - 1) * hard * easy)

    Where hard = w15 for Hard ratings and easy = w16 for Easy ratings.
    """
    hard_penalty = w[15] if rating == Rating.HARD else 1.0
    easy_bonus = w[16] if rating == Rating.EASY else 1.0

    growth = (
        math.exp(w[8])
        * (11.0 - difficulty)
        * math.pow(stability, -w[9])
        * (math.exp(w[10] * (1.0 - retrievability)) - 1.0)
        * hard_penalty
        * easy_bonus
    )
    return clamp_stability(stability * (1.0 + growth))


def next_forget_stability(
    difficulty: float,
    stability: float,
    retrievability: float,
    w: Sequence[float]
) -> float:
    """
    Stability after a lapse (Again on a reviewed card).

    Formula:
        S_long  = w11 * D^-w12 * ((S + 1)^w13 - 1) * e^(w14 * (1 - R))
        S_short = S / e^(w17 * w18)
        S' = min(S_long, S_short)

    The short-term bound keeps the post-lapse stability strictly below S.
    """
    long_term = (
        w[11]
        * math.pow(difficulty, -w[12])
        * (math.pow(stability + 1.0, w[13]) - 1.0)
        * math.exp(w[14] * (1.0 - retrievability))
    )
    short_term = stability / math.exp(w[17] * w[18])
    return clamp_stability(min(long_term, short_term))


def next_short_term_stability(stability: float, rating: Rating, w: Sequence[float]) -> float:
    """
    Stability after a same-day review.

    Formula: S' = S * e^(w17 * (G - 3 + w18))

    Good and Easy never lower stability on a same-day review.
    """
    increase = math.exp(w[17] * (int(rating) - 3 + w[18]))
    if rating in (Rating.GOOD, Rating.EASY):
        increase = max(increase, 1.0)
    return clamp_stability(stability * increase)


def apply_ltm_update(
    stability: float,
    difficulty: float,
    retrievability: float,
    rating: Rating,
    elapsed_days: float,
    w: Sequence[float]
) -> tuple[float, float]:
    """
    Apply the memory update for a card that already has a memory state.

    Same-day reviews (elapsed < 1 day) use the short-term stability update;
    otherwise recall or forget stability depending on the rating.

    Returns:
        (new_stability, new_difficulty)
    """
    if elapsed_days < 1.0:
        new_stability = next_short_term_stability(stability, rating, w)
    elif rating == Rating.AGAIN:
        new_stability = next_forget_stability(difficulty, stability, retrievability, w)
    else:
        new_stability = next_recall_stability(difficulty, stability, retrievability, rating, w)

    new_difficulty = next_difficulty(difficulty, rating, w)
    return new_stability, new_difficulty
