"""
Pydantic schemas for the question generation pipeline.

Question          — the fully-generated coding problem (one persisted record)
QuestionExample   — input / output / explanation triple
GenerationLedger  — per-call success/failure report returned by the orchestrator
"""

import enum
from datetime import datetime
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

MAX_TITLE_LENGTH = 200
MAX_TOPICS = 10
MIN_DESCRIPTION_LENGTH = 10
MAX_DESCRIPTION_LENGTH = 2000


class Difficulty(str, enum.Enum):
    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"


class GenerationOutcome(str, enum.Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


# ─── Question record ───────────────────────────────────────────────────────────

class QuestionExample(BaseModel):
    input: str = Field(..., min_length=1)
    output: str = Field(..., min_length=1)
    explanation: str = Field(..., min_length=1)

    @field_validator("input", "output", "explanation", mode="before")
    @classmethod
    def _stringify_scalars(cls, value):
        # Models often answer "input": 4 or "output": true
        if isinstance(value, (bool, int, float)):
            value = str(value)
        return value.strip() if isinstance(value, str) else value


def _clean_lines(value):
    """Stringify list items and drop blanks; leave non-lists for the type check to reject."""
    if not isinstance(value, list):
        return value
    cleaned = []
    for item in value:
        if item is None:
            continue
        text = str(item).strip()
        if text:
            cleaned.append(text)
    return cleaned


class Question(BaseModel):
    """A generated coding problem. Either fully valid or never written."""
    id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1, max_length=MAX_TITLE_LENGTH)
    difficulty: Difficulty
    topics: List[str] = Field(..., min_length=1, max_length=MAX_TOPICS)
    description: str = Field(..., min_length=MIN_DESCRIPTION_LENGTH, max_length=MAX_DESCRIPTION_LENGTH)
    example: QuestionExample
    solution_python: str = Field(..., min_length=1)
    step_by_step_explanation: List[str] = Field(..., min_length=1)
    pseudocode: Optional[List[str]] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    @field_validator("difficulty", mode="before")
    @classmethod
    def _normalise_difficulty(cls, value):
        # Models answer "easy" / "MEDIUM" as often as "Easy"
        if isinstance(value, str):
            return value.strip().capitalize()
        return value

    @field_validator("topics", "step_by_step_explanation", "pseudocode", mode="before")
    @classmethod
    def _normalise_lines(cls, value):
        return _clean_lines(value)

    @field_validator("description", "solution_python", mode="before")
    @classmethod
    def _strip_text(cls, value):
        return value.strip() if isinstance(value, str) else value


# ─── Orchestration ledger ──────────────────────────────────────────────────────

class GenerationLedger(BaseModel):
    """Aggregate report of one generate() call. Immutable once returned, never persisted."""
    model_config = ConfigDict(frozen=True)

    total: int
    completed: int = 0
    failed: int = 0
    errors: Tuple[str, ...] = ()

    @computed_field
    @property
    def outcome(self) -> GenerationOutcome:
        if self.completed == 0:
            return GenerationOutcome.FAILED
        if self.failed > 0:
            return GenerationOutcome.PARTIAL
        return GenerationOutcome.SUCCESS
