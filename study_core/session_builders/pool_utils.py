"""
Pool utilities for the daily plan builder.

Small composable steps (filter, rank, cap, fill, allocate, merge) so each
selection policy can be reasoned about and tested on its own.
"""

from __future__ import annotations
import math
from typing import Callable, Iterable, Sequence

from study_core.config import PoolProportions
from study_core.session_builders.pool_types import (
    POOL_ORDER,
    Candidate,
    DailyPlanItem,
)


def filter_eligible(candidates: Iterable[Candidate]) -> tuple[list[Candidate], int]:
    """
    Drop candidates withheld by content moderation.

    Returns:
        (kept_candidates, filtered_count)
    """
    kept: list[Candidate] = []
    filtered = 0
    for cand in candidates:
        if cand.eligible:
            kept.append(cand)
        else:
            filtered += 1
    return kept, filtered


def rank(candidates: Iterable[Candidate]) -> list[Candidate]:
    """Deterministic pool-internal order."""
    return sorted(candidates, key=lambda c: c.sort_key)


def pool_caps(allocation: int, proportions: PoolProportions) -> dict[str, int]:
    """
    Per-pool slot caps for an allocation: ceil(proportion * allocation).
    """
    caps = {}
    for name in POOL_ORDER:
        share = max(getattr(proportions, name), 0.0)
        caps[name] = min(allocation, int(math.ceil(share * allocation)))
    return caps


def fill_in_order(
    pools: dict[str, list[Candidate]],
    order: Sequence[str],
    target_size: int,
    caps: dict[str, int] | None = None
) -> list[Candidate]:
    """
    Fill a plan by walking pools in order until target_size is reached.

    Each pool contributes at most caps[name] items; a question already
    taken by an earlier pool is skipped.
    """
    session: list[Candidate] = []
    seen: set[str] = set()
    for name in order:
        taken = 0
        limit = caps.get(name, target_size) if caps is not None else target_size
        for cand in pools.get(name, []):
            if len(session) >= target_size:
                return session
            if taken >= limit:
                break
            if cand.item.question_id in seen:
                continue
            session.append(cand)
            seen.add(cand.item.question_id)
            taken += 1
    return session


def top_up(
    selected: list[Candidate],
    pools: dict[str, list[Candidate]],
    order: Sequence[str],
    target_size: int
) -> list[Candidate]:
    """
    Fill slots the capped pass left empty, walking pools in order without
    caps and skipping questions already selected.

    The result is grouped by pool order; within a pool, capped picks come
    before top-up picks, which keeps the pool's ranking.
    """
    session = list(selected)
    seen = {cand.item.question_id for cand in session}
    for name in order:
        for cand in pools.get(name, []):
            if len(session) >= target_size:
                break
            if cand.item.question_id in seen:
                continue
            session.append(cand)
            seen.add(cand.item.question_id)

    position = {name: idx for idx, name in enumerate(order)}
    return sorted(session, key=lambda c: position.get(c.item.category, len(position)))


def allocate_course_slots(
    course_ids: Sequence[str],
    limit: int,
    fill_count: Callable[[str, int], int]
) -> dict[str, int]:
    """
    Split limit across courses by equal-share water-filling.

    Slots are handed out one at a time, round-robin in course order. A
    course stops receiving slots once it cannot fill one more, and its
    leftover share flows to the remaining courses.

    Args:
        course_ids: Courses in allocation order
        limit: Total slots
        fill_count: fill_count(course_id, n) -> items the course can
            supply when given n slots

    Returns:
        Slots per course (sums to at most limit)
    """
    allocation = {course_id: 0 for course_id in course_ids}
    active = list(course_ids)
    remaining = limit

    while remaining > 0 and active:
        for course_id in list(active):
            if remaining == 0:
                break
            wanted = allocation[course_id] + 1
            if fill_count(course_id, wanted) >= wanted:
                allocation[course_id] = wanted
                remaining -= 1
            else:
                active.remove(course_id)
    return allocation


def merge_course_selections(
    selections: dict[str, list[Candidate]],
    course_order: Sequence[str]
) -> list[DailyPlanItem]:
    """
    Interleave per-course selections: pool order, then score, then course.

    Items from the same course keep their selected order on ties.
    """
    position = {name: idx for idx, name in enumerate(POOL_ORDER)}
    keyed = []
    for course_idx, course_id in enumerate(course_order):
        for within_idx, cand in enumerate(selections.get(course_id, [])):
            item = cand.item
            keyed.append((
                (position[item.category], -item.priority_score, course_idx, within_idx),
                item,
            ))
    keyed.sort(key=lambda pair: pair[0])
    return [item for _, item in keyed]
