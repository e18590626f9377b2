"""
Pydantic models for data crossing the core's boundary.

Attempts arrive from the study session client; plan items leave for it.
Internal state (cards, configs) uses dataclasses instead.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from study_core.errors import ValidationError


class Confidence(str, Enum):
    """Self-reported confidence after a correct answer."""
    GUESSED = "guessed"
    UNSURE = "unsure"
    KNEW_IT = "knew_it"


# Client confidence buttons are numbered 1-3
_CONFIDENCE_LEVELS = {1: Confidence.GUESSED, 2: Confidence.UNSURE, 3: Confidence.KNEW_IT}


class Attempt(BaseModel):
    """One answered question. Immutable once built."""
    model_config = ConfigDict(frozen=True)

    user_id: str = Field(..., min_length=1, description="Learner id")
    question_id: str = Field(..., min_length=1, description="Question id")
    is_correct: bool
    confidence: Optional[Confidence] = Field(None, description="Absent when not asked")
    time_spent_ms: Optional[int] = Field(None, ge=0)
    created_at: Optional[datetime] = Field(None, description="Defaults to ingestion time")

    @field_validator("confidence", mode="before")
    @classmethod
    def _confidence_level(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            if value not in _CONFIDENCE_LEVELS:
                raise ValueError(f"confidence level must be 1-3, got {value}")
            return _CONFIDENCE_LEVELS[value]
        return value

    @field_validator("created_at")
    @classmethod
    def _aware_timestamp(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            raise ValueError("created_at must be timezone-aware")
        return value


class DailyPlanItemSchema(BaseModel):
    """Wire shape of a selected plan item."""
    question_id: str
    course_id: str
    topic_id: Optional[str] = None
    category: str
    priority_score: float
    why_selected: str


def parse_attempt(payload: dict) -> Attempt:
    """
    Validate a raw attempt payload.

    Raises:
        ValidationError: if the payload does not describe a valid attempt
    """
    try:
        return Attempt.model_validate(payload)
    except PydanticValidationError as exc:
        raise ValidationError(
            "Invalid attempt",
            {"errors": exc.errors(include_url=False)},
        ) from exc
