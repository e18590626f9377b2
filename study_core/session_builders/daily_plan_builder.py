"""
Daily Plan - Four-Pool Session Creation

Creates a bounded daily study plan from four pools:
1. Review pool: due Learning/Relearning cards first, then due Review cards
   (pulled forward when behind)
2. Current pool: Questions from topics the course covered recently
3. Bridge pool: Unattempted questions from earlier topics (catch-up, only
   when the learner is behind)
4. Stretch pool: Unattempted questions from topics just ahead of schedule

Plan Logic:
- Per course: pool -> filter -> rank -> cap, filled in pool order, then
  leftover slots topped up from the same pools without caps
- Across courses: equal-share slot allocation, then merge by pool order

pace_offset is in days: positive = behind the course schedule, negative = ahead.
"""

from __future__ import annotations
import logging
import math
from datetime import date, datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.orm import Session

from study_core.config import PlanConfig
from study_core.errors import ValidationError
from study_core.fsrs import database
from study_core.fsrs.constants import State
from study_core.fsrs.memory_state import Card, days_between
from study_core.session_builders.pool_types import (
    POOL_ORDER,
    Candidate,
    CoursePools,
    CourseSnapshot,
    DailyPlan,
    DailyPlanItem,
    ExamInfo,
    QuestionInfo,
    TopicInfo,
)
from study_core.session_builders.pool_utils import (
    allocate_course_slots,
    fill_in_order,
    filter_eligible,
    merge_course_selections,
    pool_caps,
    rank,
    top_up,
)

logger = logging.getLogger(__name__)

# ---- Plan Configuration ----
DEFAULT_LIMIT = 10
DEFAULT_PLAN_CONFIG = PlanConfig()

# Stretch questions taken from past exams rank ahead of the rest
EXAM_SOURCE_BONUS = 50.0

# Due learning steps outrank any overdue Review card
LEARNING_DUE_SCORE = 1000.0

LEARNING_STATES = (State.LEARNING, State.RELEARNING)


def _short_date(d: date) -> str:
    return f"{d:%b} {d.day}"


def _plural_days(n: int) -> str:
    return f"{n} day" if n == 1 else f"{n} days"


def _is_eligible(question) -> bool:
    return bool(question.is_published) and question.status == "approved" and not question.needs_review


def load_course_snapshot(
    session: Session,
    user_id: str,
    course_id: str,
    today: date,
    config: PlanConfig = DEFAULT_PLAN_CONFIG
) -> CourseSnapshot:
    """
    Read one course's topics, questions, exams, and the user's cards.
    """
    topics = {
        t.id: TopicInfo(t.id, t.course_id, t.title, t.scheduled_date, t.position or 0)
        for t in database.list_topic_schedule(session, course_id)
    }
    questions = [
        QuestionInfo(
            id=q.id,
            course_id=q.course_id,
            topic_id=q.topic_id,
            difficulty=q.difficulty if q.difficulty is not None else 3,
            eligible=_is_eligible(q),
            source_exam=q.source_exam,
        )
        for q in database.list_course_questions(session, course_id)
    ]
    exams = [
        ExamInfo(e.title, e.exam_date)
        for e in database.list_upcoming_exams(
            session, course_id, today, within_days=config.exam_prep_window_days
        )
    ]
    return CourseSnapshot(
        course_id=course_id,
        topics=topics,
        questions=questions,
        cards=database.list_user_cards(session, user_id, course_id),
        exams=exams,
    )


# ---- Pools (pure, no DB calls) ----

def build_review_pool(snapshot: CourseSnapshot, now: datetime, pace_offset: int) -> list[Candidate]:
    """
    Cards whose next review has come up.

    Learning and Relearning cards due by now come first, whatever topic
    they belong to, so a lapsed card always gets its relearning step.
    Then Review-state cards due by now, or by now + pace_offset days when
    behind, ranked most overdue first; score = days overdue.
    """
    horizon = now + timedelta(days=max(pace_offset, 0))
    pool = []
    for question in snapshot.questions:
        card = snapshot.cards.get(question.id)
        if card is None:
            continue

        overdue = days_between(card.due, now)
        if card.state in LEARNING_STATES:
            if card.due > now:
                continue
            if card.state == State.RELEARNING:
                why = "Relearning: missed on last review"
            else:
                why = "Learning step due"
            item = DailyPlanItem(
                question_id=question.id,
                course_id=snapshot.course_id,
                topic_id=question.topic_id,
                category="review",
                priority_score=LEARNING_DUE_SCORE,
                why_selected=why,
            )
            pool.append(Candidate(item, (0, -overdue, question.id), question.eligible))
            continue

        if card.state != State.REVIEW or card.due > horizon:
            continue

        if overdue >= 1:
            why = f"Overdue by {_plural_days(int(overdue))}"
        elif overdue >= 0:
            why = "Due for review"
        else:
            why = f"Due within {_plural_days(math.ceil(-overdue))} (pulled forward)"

        item = DailyPlanItem(
            question_id=question.id,
            course_id=snapshot.course_id,
            topic_id=question.topic_id,
            category="review",
            priority_score=round(overdue, 4),
            why_selected=why,
        )
        pool.append(Candidate(item, (1, -overdue, question.id), question.eligible))
    return pool


def _schedule_candidate(
    snapshot: CourseSnapshot,
    question: QuestionInfo,
    topic: TopicInfo,
    category: str,
    today: date,
    why: str,
    bonus: float = 0.0
) -> Candidate:
    score = float((today - topic.scheduled_date).days) + bonus
    item = DailyPlanItem(
        question_id=question.id,
        course_id=snapshot.course_id,
        topic_id=topic.id,
        category=category,
        priority_score=score,
        why_selected=why,
    )
    sort_key = (-score, topic.scheduled_date, topic.position, question.difficulty, question.id)
    return Candidate(item, sort_key, question.eligible)


def _is_unattempted(card: Optional[Card]) -> bool:
    return card is None or card.state == State.NEW


def _scheduled_questions(snapshot: CourseSnapshot):
    for question in snapshot.questions:
        topic = snapshot.topics.get(question.topic_id) if question.topic_id else None
        if topic is None or topic.scheduled_date is None:
            continue
        yield question, topic, snapshot.cards.get(question.id)


def build_current_pool(
    snapshot: CourseSnapshot,
    today: date,
    config: PlanConfig = DEFAULT_PLAN_CONFIG
) -> list[Candidate]:
    """
    Recently covered material: topics scheduled within the recent window
    whose questions are new or still in early learning.
    """
    window_start = today - timedelta(days=config.recent_window_days)
    pool = []
    for question, topic, card in _scheduled_questions(snapshot):
        if not window_start <= topic.scheduled_date <= today:
            continue
        if _is_unattempted(card):
            why = f"New topic covered {_short_date(topic.scheduled_date)}: {topic.title}"
        elif card.state in LEARNING_STATES and card.reps <= config.low_rep_threshold:
            why = f"Still learning: {topic.title}"
        else:
            continue
        pool.append(_schedule_candidate(snapshot, question, topic, "current", today, why))
    return pool


def build_bridge_pool(
    snapshot: CourseSnapshot,
    today: date,
    pace_offset: int,
    config: PlanConfig = DEFAULT_PLAN_CONFIG
) -> list[Candidate]:
    """
    Catch-up material: never-attempted questions from topics covered
    before the recent window. Empty unless the learner is behind.
    """
    if pace_offset <= 0:
        return []

    window_start = today - timedelta(days=config.recent_window_days)
    pool = []
    for question, topic, card in _scheduled_questions(snapshot):
        if topic.scheduled_date >= window_start or not _is_unattempted(card):
            continue
        why = f"Catch-up: {topic.title} (covered {_short_date(topic.scheduled_date)})"
        pool.append(_schedule_candidate(snapshot, question, topic, "bridge", today, why))
    return pool


def build_stretch_pool(
    snapshot: CourseSnapshot,
    today: date,
    pace_offset: int,
    config: PlanConfig = DEFAULT_PLAN_CONFIG
) -> list[Candidate]:
    """
    Advance exposure: never-attempted questions from topics scheduled just
    ahead. Learners ahead of pace (negative offset) look further ahead.
    """
    horizon = today + timedelta(days=config.stretch_window_days + max(-pace_offset, 0))
    next_exam = snapshot.exams[0] if snapshot.exams else None

    pool = []
    for question, topic, card in _scheduled_questions(snapshot):
        if not today < topic.scheduled_date <= horizon or not _is_unattempted(card):
            continue
        if next_exam is not None:
            days_left = (next_exam.exam_date - today).days
            why = f"{next_exam.title} in {days_left} days - exam prep"
        else:
            why = f"Preview: {topic.title} (scheduled {_short_date(topic.scheduled_date)})"
        bonus = EXAM_SOURCE_BONUS if question.source_exam else 0.0
        pool.append(_schedule_candidate(snapshot, question, topic, "stretch", today, why, bonus))
    return pool


def build_course_pools(
    snapshot: CourseSnapshot,
    now: datetime,
    pace_offset: int,
    config: PlanConfig = DEFAULT_PLAN_CONFIG
) -> CoursePools:
    """
    Build, filter, and rank all four pools for one course.
    """
    today = now.date()
    raw = {
        "review": build_review_pool(snapshot, now, pace_offset),
        "current": build_current_pool(snapshot, today, config),
        "bridge": build_bridge_pool(snapshot, today, pace_offset, config),
        "stretch": build_stretch_pool(snapshot, today, pace_offset, config),
    }

    pools = {}
    filtered_total = 0
    for name in POOL_ORDER:
        kept, filtered = filter_eligible(raw[name])
        pools[name] = rank(kept)
        filtered_total += filtered
    return CoursePools(snapshot.course_id, pools, filtered_total)


def select_from_pools(
    course_pools: CoursePools,
    allocation: int,
    config: PlanConfig = DEFAULT_PLAN_CONFIG
) -> list[Candidate]:
    """
    Fill an allocation from one course's pools: a capped pass first, then
    a top-up pass so leftover slots go to whatever candidates remain.
    """
    if allocation <= 0:
        return []
    caps = pool_caps(allocation, config.proportions)
    selected = fill_in_order(course_pools.pools, POOL_ORDER, allocation, caps)
    return top_up(selected, course_pools.pools, POOL_ORDER, allocation)


def _combine(all_pools: list[CoursePools]) -> CoursePools:
    pools = {
        name: rank(c for cp in all_pools for c in cp.pools[name])
        for name in POOL_ORDER
    }
    return CoursePools("*", pools, sum(cp.filtered_count for cp in all_pools))


def assemble_plan(
    items: list[DailyPlanItem],
    config: PlanConfig = DEFAULT_PLAN_CONFIG,
    empty_reason: str = "nothing_due"
) -> DailyPlan:
    """Wrap selected items with mix counts, catch-up flag, and time estimate."""
    mix = {name: 0 for name in POOL_ORDER}
    for item in items:
        mix[item.category] += 1
    return DailyPlan(
        items=items,
        mix=mix,
        is_behind=mix["bridge"] > 0,
        estimated_minutes=int(round(len(items) * config.minutes_per_item)),
        reason="ok" if items else empty_reason,
    )


def build_daily_plan(
    session: Session,
    user_id: str,
    course_id: Optional[str] = None,
    limit: int = DEFAULT_LIMIT,
    pace_offset: int = 0,
    now: Optional[datetime] = None,
    config: PlanConfig = DEFAULT_PLAN_CONFIG
) -> DailyPlan:
    """
    Build today's plan for a user.

    Read-only: nothing is written, so an abandoned call needs no cleanup.

    Args:
        session: Open session
        user_id: User identifier
        course_id: Restrict to one enrolled course
        limit: Maximum number of items
        pace_offset: Days behind (positive) or ahead (negative) of schedule
        now: Reference instant (defaults to now, UTC)
        config: Plan parameters

    Returns:
        DailyPlan with at most limit items; an empty plan carries a reason
        of no_enrollment, nothing_due, or all_filtered

    Raises:
        ValidationError: negative limit or non-integer pace_offset
    """
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 0:
        raise ValidationError("limit must be a non-negative integer", {"limit": limit})
    if isinstance(pace_offset, bool) or not isinstance(pace_offset, int):
        raise ValidationError("pace_offset must be an integer number of days", {"pace_offset": pace_offset})
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        raise ValidationError("now must be timezone-aware")

    enrolled = database.list_enrolled_courses(session, user_id)
    if course_id is not None:
        enrolled = [c for c in enrolled if c == course_id]
    if not enrolled:
        logger.info("No enrollment for user %s (course filter %s)", user_id, course_id)
        return assemble_plan([], config, empty_reason="no_enrollment")

    today = now.date()
    all_pools = [
        build_course_pools(load_course_snapshot(session, user_id, c, today, config), now, pace_offset, config)
        for c in enrolled
    ]

    if len(all_pools) > 1 and config.balance_courses:
        by_course = {cp.course_id: cp for cp in all_pools}
        allocation = allocate_course_slots(
            enrolled,
            limit,
            lambda c, n: len(select_from_pools(by_course[c], n, config)),
        )
        selections = {c: select_from_pools(by_course[c], allocation[c], config) for c in enrolled}
        items = merge_course_selections(selections, enrolled)
    else:
        combined = all_pools[0] if len(all_pools) == 1 else _combine(all_pools)
        items = [cand.item for cand in select_from_pools(combined, limit, config)]

    filtered = sum(cp.filtered_count for cp in all_pools)
    eligible = sum(cp.candidate_count() for cp in all_pools)
    empty_reason = "all_filtered" if filtered and not eligible else "nothing_due"

    plan = assemble_plan(items[:limit], config, empty_reason=empty_reason)
    logger.info(
        "Built plan for user %s: %d items %s behind=%s",
        user_id, len(plan.items), plan.mix, plan.is_behind,
    )
    return plan
