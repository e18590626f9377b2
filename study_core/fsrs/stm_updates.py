"""
Short-Term Memory (STM) Steps

Learning and relearning step transitions.

Cards in Learning or Relearning walk a short fixed table of intervals
(minutes) before graduating to Review. Memory parameters are updated by
ltm_updates; this module only decides the next state, step, and the
step interval.
"""

from __future__ import annotations
from datetime import timedelta
from typing import NamedTuple, Optional, Sequence

from study_core.fsrs.constants import Rating, State


class StepOutcome(NamedTuple):
    """
    Result of a step transition.

    interval is None when the card graduates and the caller must compute
    a long-term interval from the new stability.
    """
    state: State
    step: int
    interval: Optional[timedelta]


def _graduate() -> StepOutcome:
    return StepOutcome(State.REVIEW, 0, None)


def hard_interval(steps: Sequence[timedelta], step: int) -> timedelta:
    """
    Interval for Hard: repeat the current step.

    On the first step this is the midpoint of the first two steps, or 1.5x
    a lone step.
    """
    if step == 0:
        if len(steps) == 1:
            return steps[0] * 1.5
        return (steps[0] + steps[1]) / 2
    return steps[step]


def next_step(
    state: State,
    step: int,
    rating: Rating,
    steps: Sequence[timedelta],
    graduate_on_good: bool = False
) -> StepOutcome:
    """
    Advance a New, Learning, or Relearning card through its step table.

    Args:
        state: Current state (NEW is treated as Learning step 0)
        step: Current step index
        rating: Review rating
        steps: Learning or relearning step table for this state
        graduate_on_good: Good graduates immediately

    Returns:
        StepOutcome with the next state, step, and interval
    """
    step_state = State.RELEARNING if state == State.RELEARNING else State.LEARNING
    if state == State.NEW:
        step = 0

    # No steps, or a step index past the table (e.g. steps shortened by config)
    if not steps or (step >= len(steps) and rating != Rating.AGAIN):
        return _graduate()

    if rating == Rating.AGAIN:
        return StepOutcome(step_state, 0, steps[0])

    if rating == Rating.HARD:
        return StepOutcome(step_state, step, hard_interval(steps, step))

    if rating == Rating.GOOD:
        if graduate_on_good or step + 1 >= len(steps):
            return _graduate()
        return StepOutcome(step_state, step + 1, steps[step + 1])

    return _graduate()
