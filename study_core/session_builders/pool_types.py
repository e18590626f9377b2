"""
Typed pool models shared by the daily plan builder.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date
from typing import Literal, Optional

from study_core.fsrs.memory_state import Card
from study_core.schemas import DailyPlanItemSchema


PlanCategory = Literal["review", "current", "bridge", "stretch"]
PlanReason = Literal["ok", "no_enrollment", "nothing_due", "all_filtered"]

# Fill order, highest priority first
POOL_ORDER: tuple[PlanCategory, ...] = ("review", "current", "bridge", "stretch")


@dataclass(frozen=True)
class TopicInfo:
    id: str
    course_id: str
    title: str
    scheduled_date: Optional[date]
    position: int = 0


@dataclass(frozen=True)
class QuestionInfo:
    id: str
    course_id: str
    topic_id: Optional[str]
    difficulty: int = 3
    eligible: bool = True        # published, approved, not flagged
    source_exam: Optional[str] = None


@dataclass(frozen=True)
class ExamInfo:
    title: str
    exam_date: date


@dataclass
class CourseSnapshot:
    """
    Everything the planner needs about one course, read once per call.
    """
    course_id: str
    topics: dict[str, TopicInfo]
    questions: list[QuestionInfo]
    cards: dict[str, Card]
    exams: list[ExamInfo] = field(default_factory=list)


@dataclass(frozen=True)
class DailyPlanItem:
    question_id: str
    course_id: str
    topic_id: Optional[str]
    category: PlanCategory
    priority_score: float
    why_selected: str


@dataclass(frozen=True)
class Candidate:
    """
    A plan item before selection.

    sort_key orders candidates within their pool; eligible is False for
    questions withheld by content moderation.
    """
    item: DailyPlanItem
    sort_key: tuple
    eligible: bool = True


@dataclass
class CoursePools:
    """Filtered, ranked candidates of one course, keyed by category."""
    course_id: str
    pools: dict[str, list[Candidate]]
    filtered_count: int = 0

    def candidate_count(self) -> int:
        return sum(len(cands) for cands in self.pools.values())


@dataclass(frozen=True)
class DailyPlan:
    items: list[DailyPlanItem]
    mix: dict[str, int]
    is_behind: bool
    estimated_minutes: int
    reason: PlanReason

    def to_payload(self) -> dict:
        """JSON-ready representation for clients."""
        return {
            "items": [
                DailyPlanItemSchema(
                    question_id=item.question_id,
                    course_id=item.course_id,
                    topic_id=item.topic_id,
                    category=item.category,
                    priority_score=item.priority_score,
                    why_selected=item.why_selected,
                ).model_dump()
                for item in self.items
            ],
            "mix": dict(self.mix),
            "is_behind": self.is_behind,
            "estimated_minutes": self.estimated_minutes,
            "reason": self.reason,
        }
