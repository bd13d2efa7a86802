# lingua_eval/models/evaluation.py
import math
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

ErrorType = Literal["grammar", "vocabulary", "spelling", "punctuation", "logic", "pronunciation"]
ERROR_TYPES = ("grammar", "vocabulary", "spelling", "punctuation", "logic", "pronunciation")

Severity = Literal["critical", "major", "minor"]
SEVERITIES = ("critical", "major", "minor")

Tone = Literal["encouraging", "constructive", "neutral"]
AIProvider = Literal["primary-model", "fallback-heuristic"]
ChallengeSeverity = Literal["high", "medium", "low"]

PRIMARY_MODEL: AIProvider = "primary-model"
FALLBACK_HEURISTIC: AIProvider = "fallback-heuristic"


def _new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def clamp(value: Any, low: float, high: float, default: float) -> float:
    """Coerce ``value`` to float inside [low, high]; unusable input gives ``default``."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if number != number:  # NaN
        return default
    return max(low, min(high, number))


def round_half_up(value: float) -> int:
    """Nearest integer with .5 going up; builtin round() sends halves to the even neighbour."""
    # absorb float noise such as 68.49999999999999 from weighted sums
    return int(math.floor(round(value, 9) + 0.5))


def clamp_score(value: Any, default: float = 0.0) -> int:
    return round_half_up(clamp(value, 0.0, 100.0, default))


class Evaluation(BaseModel):
    """Scored outcome of one submission (1:1)."""
    evaluation_id: str = Field(default_factory=lambda: _new_id("eval"))
    submission_id: str
    student_id: str
    content_type: str
    overall_score: int
    grammar_score: Optional[int] = None
    vocabulary_score: Optional[int] = None
    structure_score: Optional[int] = None
    clarity_score: Optional[int] = None
    pronunciation_score: Optional[int] = None
    logic_score: Optional[int] = None
    score_breakdown: Dict[str, Any] = Field(default_factory=dict)
    ai_confidence: float = 0.0
    ai_provider: AIProvider = FALLBACK_HEURISTIC
    ai_model: str = "rule-based"
    student_level: str = "B1"
    reasoning: str = ""
    evaluated_at: datetime = Field(default_factory=_utcnow)
    # Reviewer side-channel, owned by humans; the pipeline never writes these
    teacher_reviewed: bool = False
    teacher_notes: Optional[str] = None

    @field_validator(
        "overall_score", "grammar_score", "vocabulary_score", "structure_score",
        "clarity_score", "pronunciation_score", "logic_score",
        mode="before",
    )
    @classmethod
    def _clamp_scores(cls, v):
        if v is None:
            return None
        return clamp_score(v)

    @field_validator("ai_confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, v):
        return clamp(v, 0.0, 1.0, 0.0)


class Mistake(BaseModel):
    """One localized error; created in bulk and never mutated afterwards."""
    mistake_id: str = Field(default_factory=lambda: _new_id("mist"))
    evaluation_id: str = ""
    error_type: ErrorType = "grammar"
    severity: Severity = "minor"
    original_text: str = ""
    corrected_text: str = ""
    description: str = ""
    suggestion: str = ""
    position: Optional[int] = None
    position_start: Optional[int] = None
    position_end: Optional[int] = None
    is_possible_error: bool = False


class Feedback(BaseModel):
    feedback_id: str = Field(default_factory=lambda: _new_id("fdbk"))
    evaluation_id: str = ""
    feedback_text: str
    strengths: List[str] = Field(default_factory=list)
    improvements: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    next_steps: str = ""
    tone: Tone = "constructive"
    is_summarized: bool = False
    ai_generated: bool = False
    generated_at: datetime = Field(default_factory=_utcnow)


class Challenge(BaseModel):
    """Recurring learning difficulty across a student's recent submissions."""
    challenge_type: str
    pattern: str = ""
    frequency: str = ""
    percentage: int = Field(default=0, ge=0, le=100)
    severity: ChallengeSeverity = "medium"
    recommendation: str = ""
    ai_generated: bool = False


class BatchItemResult(BaseModel):
    submission_id: str
    success: bool
    evaluation: Optional[Evaluation] = None
    error: Optional[str] = None
