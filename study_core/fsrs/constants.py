"""
FSRS Constants

Enums and fixed model constants for the FSRS-5 memory model.
Tunable values (weights, retention target, steps) live in study_core.config.
"""

from enum import Enum, IntEnum


# ---- Ratings ----

class Rating(IntEnum):
    """Review outcome, ordinal worst -> best."""
    AGAIN = 1   # Forgot
    HARD = 2    # Recalled with serious difficulty
    GOOD = 3    # Recalled after hesitation
    EASY = 4    # Recalled fluently


# ---- Card States ----

class State(IntEnum):
    """Lifecycle state of a card."""
    NEW = 0
    LEARNING = 1
    REVIEW = 2
    RELEARNING = 3


class Risk(str, Enum):
    """Retention risk bucket for reporting."""
    SAFE = "safe"
    WARNING = "warning"
    DANGER = "danger"


# ---- Forgetting Curve ----
# R(t, S) = (1 + FACTOR * t / S) ** DECAY, so that R(S, S) = 0.9

DECAY = -0.5
FACTOR = 0.9 ** (1 / DECAY) - 1   # 19/81


# ---- Bounds ----

STABILITY_MIN = 0.001
DIFFICULTY_MIN = 1.0
DIFFICULTY_MAX = 10.0


# ---- Interval Fuzz ----
# (start_days, end_days, factor): the fuzz window widens by factor * span
# of the interval that falls inside each range.

FUZZ_RANGES = (
    (2.5, 7.0, 0.15),
    (7.0, 20.0, 0.1),
    (20.0, float("inf"), 0.05),
)
FUZZ_MIN_INTERVAL = 2.5
