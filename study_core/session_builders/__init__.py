"""Daily plan building from review, current, bridge, and stretch pools."""

from study_core.session_builders.daily_plan_builder import (
    build_course_pools,
    build_daily_plan,
    load_course_snapshot,
    select_from_pools,
)
from study_core.session_builders.pool_types import (
    POOL_ORDER,
    DailyPlan,
    DailyPlanItem,
    PlanCategory,
)

__all__ = [
    "build_course_pools",
    "build_daily_plan",
    "load_course_snapshot",
    "select_from_pools",
    "POOL_ORDER",
    "DailyPlan",
    "DailyPlanItem",
    "PlanCategory",
]
